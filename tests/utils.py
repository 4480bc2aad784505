from __future__ import annotations

from pathlib import Path
from typing import Any, Awaitable, Callable

import httpx

from easy_donate.config import Settings
from easy_donate.ledger import DonationLedger
from easy_donate.redemption import RedemptionClient

Handler = Callable[[httpx.Request], Awaitable[httpx.Response]]


def make_settings(**overrides) -> Settings:
    data = {
        "DATABASE_URL": "sqlite+aiosqlite:///:memory:",
        "REDEEM_API_URL": "https://redeem.example.com/api/redeem",
        "TRUEMONEY_MOBILE": "0812345678",
        "REDEEM_TIMEOUT_SEC": 5,
        "RECENT_DEFAULT_LIMIT": 10,
        "RECENT_MAX_LIMIT": 50,
        "FEED_QUEUE_SIZE": 8,
        "API_HOST": "127.0.0.1",
        "API_PORT": 9000,
        "LOG_LEVEL": "INFO",
        "LOCALE": "en",
    }
    data.update(overrides)
    return Settings.model_validate(data)


def ledger_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}"


async def open_ledger(tmp_path: Path) -> DonationLedger:
    ledger = DonationLedger.from_url(ledger_url(tmp_path))
    await ledger.create_schema()
    return ledger


def make_client(settings: Settings, handler: Handler) -> RedemptionClient:
    return RedemptionClient(settings=settings, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def success_payload(amount: Any = "50") -> dict[str, Any]:
    return {"success": True, "data": {"voucher": {"amount_baht": amount}}}


class RecordingPublisher:
    """Publisher double that keeps every broadcast."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def publish(self, event: str, payload: dict[str, Any]) -> int:
        self.events.append((event, payload))
        return 1


class FailingPublisher:
    """Publisher double whose transport is down."""

    def __init__(self) -> None:
        self.attempts = 0

    def publish(self, event: str, payload: dict[str, Any]) -> int:
        self.attempts += 1
        raise ConnectionError("live feed transport is down")
