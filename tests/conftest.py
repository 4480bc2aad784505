import pytest_asyncio

from .utils import open_ledger


@pytest_asyncio.fixture
async def ledger(tmp_path):
    ledger = await open_ledger(tmp_path)
    yield ledger
    await ledger.aclose()
