import asyncio

import httpx
import pytest
from sqlalchemy import select

from easy_donate.errors import PersistenceFailure
from easy_donate.feed import NEW_DONATION
from easy_donate.ledger import DonationLedger
from easy_donate.ledger.schema import DonationRow
from easy_donate.models import DonationClaim, DonationRecord, DonationStatus
from easy_donate.pipeline import RedemptionPipeline
from easy_donate.voucher import VoucherLocator

from .utils import FailingPublisher, RecordingPublisher, make_client, make_settings, success_payload

LINK = "https://x/campaign/?v=ABC123"


class CountingUpstream:
    """Fake redemption endpoint that counts calls."""

    def __init__(self, payload=None, error: Exception | None = None) -> None:
        self.calls = 0
        self._payload = payload if payload is not None else success_payload("50")
        self._error = error

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        await asyncio.sleep(0)
        if self._error is not None:
            raise self._error
        return httpx.Response(200, json=self._payload)


class RacingLedger(DonationLedger):
    """Duplicate check that always misses, as when two claims interleave."""

    async def is_duplicate(self, voucher_hash: str) -> bool:
        return False


class BrokenWritesLedger(DonationLedger):
    async def insert(self, record: DonationRecord) -> int:
        raise PersistenceFailure("disk full")


def claim(link: str = LINK, donor: str = "Alice", message: str = "Keep it up") -> DonationClaim:
    return DonationClaim(voucher_link=link, donor_name=donor, message=message, ip_address="10.0.0.1")


def build(ledger, upstream, **settings_overrides):
    settings = make_settings(**settings_overrides)
    publisher = RecordingPublisher()
    pipeline = RedemptionPipeline(ledger, make_client(settings, upstream), publisher, settings=settings)
    return pipeline, publisher


async def all_rows(ledger: DonationLedger) -> list[DonationRow]:
    async with ledger._sessions() as session:
        return list((await session.scalars(select(DonationRow).order_by(DonationRow.id))).all())


@pytest.mark.asyncio
async def test_successful_claim_is_recorded_and_broadcast(ledger: DonationLedger) -> None:
    upstream = CountingUpstream({"success": True, "data": {"voucher": {"amount_baht": "50"}}})
    pipeline, publisher = build(ledger, upstream)

    result = await pipeline.process(claim())

    assert result.success is True
    assert "Alice" in result.message and "50" in result.message
    assert result.data is not None
    assert result.data.amount == 50
    assert result.data.donor_name == "Alice"

    rows = await all_rows(ledger)
    assert len(rows) == 1
    assert rows[0].status == DonationStatus.COMPLETED.value
    assert rows[0].amount == 50
    assert rows[0].voucher_hash == "ABC123"
    assert rows[0].voucher_link == LINK
    assert rows[0].ip_address == "10.0.0.1"
    assert rows[0].raw_response == {"success": True, "data": {"voucher": {"amount_baht": "50"}}}
    assert result.data.id == str(rows[0].id)

    assert len(publisher.events) == 1
    event, payload = publisher.events[0]
    assert event == NEW_DONATION
    assert payload["donorName"] == "Alice"
    assert payload["amount"] == 50
    assert payload["message"] == "Keep it up"
    assert set(payload) == {"id", "donorName", "amount", "message", "timestamp"}


@pytest.mark.asyncio
async def test_second_submission_is_rejected_without_upstream_call(ledger: DonationLedger) -> None:
    upstream = CountingUpstream()
    pipeline, publisher = build(ledger, upstream)

    first = await pipeline.process(claim())
    second = await pipeline.process(claim(donor="Bob"))

    assert first.success is True
    assert second.success is False
    assert second.message == "voucher already redeemed"
    assert second.data is None
    assert upstream.calls == 1
    assert len(publisher.events) == 1

    rows = await all_rows(ledger)
    assert [row.status for row in rows] == ["completed", "failed"]
    assert rows[1].voucher_hash is None
    assert rows[1].amount == 0


@pytest.mark.asyncio
async def test_invalid_link_fails_before_any_io(ledger: DonationLedger) -> None:
    upstream = CountingUpstream()
    pipeline, publisher = build(ledger, upstream)

    result = await pipeline.process(claim(link="not a voucher"))

    assert result.success is False
    assert result.message == "Invalid voucher link format"
    assert upstream.calls == 0
    assert publisher.events == []
    rows = await all_rows(ledger)
    assert len(rows) == 1
    assert rows[0].status == "failed"
    assert rows[0].voucher_hash is None
    assert rows[0].error_message.startswith("Invalid voucher link format")


@pytest.mark.asyncio
async def test_timeout_records_failed_attempt(ledger: DonationLedger) -> None:
    upstream = CountingUpstream(error=httpx.ReadTimeout("timed out"))
    pipeline, publisher = build(ledger, upstream)

    result = await pipeline.process(claim())

    assert result.success is False
    assert "timed out" in result.message
    assert publisher.events == []
    rows = await all_rows(ledger)
    assert len(rows) == 1
    assert rows[0].status == "failed"
    assert rows[0].amount == 0
    assert rows[0].voucher_hash == "ABC123"
    assert rows[0].error_message


@pytest.mark.asyncio
async def test_upstream_rejection_message_is_passed_through(ledger: DonationLedger) -> None:
    payload = {"success": False, "message": "Voucher has expired"}
    pipeline, _ = build(ledger, CountingUpstream(payload))

    result = await pipeline.process(claim())

    assert result.success is False
    assert result.message == "Voucher has expired"
    rows = await all_rows(ledger)
    assert rows[0].raw_response == payload


@pytest.mark.asyncio
async def test_success_flag_with_zero_amount_fails(ledger: DonationLedger) -> None:
    pipeline, publisher = build(ledger, CountingUpstream({"success": True, "data": {"voucher": {"amount_baht": "0"}}}))

    result = await pipeline.process(claim())

    assert result.success is False
    assert publisher.events == []
    assert (await ledger.aggregate()).total_donations == 0


@pytest.mark.asyncio
async def test_missing_mobile_does_not_claim_the_voucher(ledger: DonationLedger) -> None:
    upstream = CountingUpstream()
    pipeline, _ = build(ledger, upstream, TRUEMONEY_MOBILE=None)

    result = await pipeline.process(claim())

    assert result.success is False
    assert upstream.calls == 0
    assert await ledger.is_duplicate("ABC123") is False


@pytest.mark.asyncio
async def test_lost_insert_race_reports_already_redeemed(tmp_path) -> None:
    ledger = RacingLedger.from_url(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}")
    await ledger.create_schema()
    upstream = CountingUpstream()
    pipeline, publisher = build(ledger, upstream)
    try:
        first = await pipeline.process(claim())
        second = await pipeline.process(claim(donor="Bob"))
    finally:
        rows = await all_rows(ledger)
        await ledger.aclose()

    assert first.success is True
    assert second.success is False
    assert second.message == "voucher already redeemed"
    # both claims reached upstream; only the ledger arbitrated
    assert upstream.calls == 2
    assert len(publisher.events) == 1
    assert [row.status for row in rows] == ["completed", "failed"]
    assert rows[1].raw_response is not None


@pytest.mark.asyncio
async def test_concurrent_claims_complete_at_most_once(ledger: DonationLedger) -> None:
    pipeline, publisher = build(ledger, CountingUpstream())

    results = await asyncio.gather(*(pipeline.process(claim(donor=f"Donor {i}")) for i in range(4)))

    assert sum(result.success for result in results) == 1
    assert all(r.message == "voucher already redeemed" for r in results if not r.success)
    assert len(publisher.events) == 1
    stats = await ledger.aggregate()
    assert stats.total_donations == 1
    assert stats.total_amount == 50


@pytest.mark.asyncio
async def test_write_failure_does_not_overturn_success(tmp_path) -> None:
    ledger = BrokenWritesLedger.from_url(f"sqlite+aiosqlite:///{tmp_path / 'broken.db'}")
    await ledger.create_schema()
    pipeline, publisher = build(ledger, CountingUpstream())
    try:
        result = await pipeline.process(claim())
        failure = await pipeline.process(claim(link="garbage"))
    finally:
        await ledger.aclose()

    assert result.success is True
    assert result.data is not None and result.data.id is None
    assert len(publisher.events) == 1
    assert failure.success is False


@pytest.mark.asyncio
async def test_thai_locale_messages(ledger: DonationLedger) -> None:
    pipeline, _ = build(ledger, CountingUpstream(success_payload("1250")), LOCALE="th")

    result = await pipeline.process(claim(donor="สมชาย"))
    again = await pipeline.process(claim(donor="สมชาย"))

    assert result.message == "ขอบคุณ สมชาย สำหรับการบริจาค 1,250 บาท!"
    assert again.message == "ลิงก์นี้ถูกใช้งานไปแล้ว"


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [success_payload("50"), {"success": False, "message": "Voucher expired"}])
async def test_overlong_voucher_hash_fails_before_any_io(ledger: DonationLedger, payload) -> None:
    upstream = CountingUpstream(payload)
    pipeline, publisher = build(ledger, upstream)

    result = await pipeline.process(claim(link="https://x/campaign/?v=" + "A" * 200))

    assert result.success is False
    assert result.message == "Invalid voucher link format"
    assert upstream.calls == 0
    assert publisher.events == []
    rows = await all_rows(ledger)
    assert len(rows) == 1
    assert rows[0].status == "failed"
    assert rows[0].voucher_hash is None


@pytest.mark.asyncio
async def test_unrepresentable_record_does_not_overturn_success(ledger: DonationLedger) -> None:
    settings = make_settings()
    publisher = RecordingPublisher()
    # locator that lets through hashes wider than the ledger column
    pipeline = RedemptionPipeline(
        ledger,
        make_client(settings, CountingUpstream()),
        publisher,
        locator=VoucherLocator(max_length=1000),
        settings=settings,
    )

    result = await pipeline.process(claim(link="https://x/campaign/?v=" + "B" * 200))

    assert result.success is True
    assert result.data is not None and result.data.id is None
    assert result.data.amount == 50
    assert len(publisher.events) == 1
    assert await all_rows(ledger) == []


@pytest.mark.asyncio
async def test_broken_publisher_does_not_fail_the_donation(ledger: DonationLedger) -> None:
    settings = make_settings()
    publisher = FailingPublisher()
    pipeline = RedemptionPipeline(ledger, make_client(settings, CountingUpstream()), publisher, settings=settings)

    result = await pipeline.process(claim())

    assert publisher.attempts == 1
    assert result.success is True
    assert "Alice" in result.message
    rows = await all_rows(ledger)
    assert len(rows) == 1
    assert rows[0].status == "completed"
    assert rows[0].amount == 50
    assert result.data is not None and result.data.id == str(rows[0].id)
