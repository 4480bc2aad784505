"""Claim processing: locate, duplicate check, redeem, persist, publish."""

from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import ValidationError

from .config import Settings, get_settings
from .errors import (
    DonationError,
    DuplicateVoucher,
    InvalidVoucherFormat,
    PersistenceFailure,
    RedemptionError,
)
from .feed import NEW_DONATION, Publisher
from .ledger import DonationLedger
from .messages import error_message, success_message
from .models import DonationClaim, DonationEvent, DonationRecord, DonationResult, DonationStatus, utcnow
from .redemption import RedemptionClient
from .voucher import VoucherLocator

logger = logging.getLogger(__name__)


class RedemptionPipeline:
    """Turns one claim into exactly one terminal outcome.

    Every expected failure ends as ``DonationResult(success=False)``. Ledger
    writes happen after the outcome is decided and their faults are only
    logged, so bookkeeping never changes what the submitter is told.
    """

    def __init__(
        self,
        ledger: DonationLedger,
        client: RedemptionClient,
        publisher: Publisher,
        locator: Optional[VoucherLocator] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._ledger = ledger
        self._client = client
        self._publisher = publisher
        self._locator = locator or VoucherLocator()

    async def process(self, claim: DonationClaim) -> DonationResult:
        logger.info("pipeline.claim_received", extra={"donor": claim.donor_name, "ip": claim.ip_address})

        try:
            voucher_hash = self._locator.extract(claim.voucher_link)
        except InvalidVoucherFormat as exc:
            return await self._fail(claim, exc)

        try:
            if await self._ledger.is_duplicate(voucher_hash):
                return await self._fail(claim, DuplicateVoucher(voucher_hash))
        except PersistenceFailure as exc:
            return await self._fail(claim, exc)

        try:
            redemption = await self._client.redeem(voucher_hash)
        except RedemptionError as exc:
            return await self._fail(
                claim,
                exc,
                voucher_hash=voucher_hash if exc.reached_upstream else None,
                raw_response=exc.raw_response,
            )

        record = self._build_record(
            claim,
            amount=redemption.amount,
            voucher_hash=voucher_hash,
            status=DonationStatus.COMPLETED,
            raw_response=redemption.raw_response,
        )
        record_id: Optional[int] = None
        if record is not None:
            try:
                record_id = await self._ledger.insert(record)
            except DuplicateVoucher as exc:
                # lost the race against a concurrent claim for the same voucher
                logger.warning("pipeline.duplicate_race", extra={"voucher_hash": voucher_hash})
                return await self._fail(claim, exc, raw_response=redemption.raw_response)
            except PersistenceFailure as exc:
                logger.error(
                    "pipeline.completed_not_recorded",
                    extra={"voucher_hash": voucher_hash, "amount": redemption.amount, "error": str(exc)},
                )

        event = DonationEvent(
            id=str(record_id) if record_id is not None else None,
            donor_name=claim.donor_name,
            amount=redemption.amount,
            message=claim.message,
            timestamp=record.timestamp if record is not None else utcnow(),
        )
        self._broadcast(event)
        logger.info(
            "pipeline.completed",
            extra={"id": record_id, "donor": claim.donor_name, "amount": redemption.amount},
        )
        return DonationResult(
            success=True,
            message=success_message(self._settings.locale, claim.donor_name, redemption.amount),
            data=event,
        )

    async def _fail(
        self,
        claim: DonationClaim,
        error: DonationError,
        voucher_hash: Optional[str] = None,
        raw_response: Optional[dict[str, Any]] = None,
    ) -> DonationResult:
        text = error_message(self._settings.locale, error)
        logger.warning(
            "pipeline.failed",
            extra={"donor": claim.donor_name, "code": error.code, "detail": error.detail},
        )
        record = self._build_record(
            claim,
            amount=0,
            voucher_hash=voucher_hash,
            status=DonationStatus.FAILED,
            error_message=text if not error.detail or error.detail == text else f"{text} ({error.detail})",
            raw_response=raw_response,
        )
        if record is not None:
            try:
                await self._ledger.insert(record)
            except DonationError as exc:
                logger.error("pipeline.failure_not_recorded", extra={"code": exc.code, "error": str(exc)})
        return DonationResult(success=False, message=text)

    def _build_record(self, claim: DonationClaim, **fields: Any) -> Optional[DonationRecord]:
        """Return the ledger entry for ``claim``, or ``None`` if it cannot be represented."""

        try:
            return DonationRecord(
                donor_name=claim.donor_name,
                message=claim.message,
                voucher_link=claim.voucher_link,
                ip_address=claim.ip_address,
                **fields,
            )
        except ValidationError as exc:
            logger.error(
                "pipeline.record_invalid",
                extra={"status": str(fields.get("status")), "error": str(exc)},
            )
            return None

    def _broadcast(self, event: DonationEvent) -> None:
        try:
            self._publisher.publish(NEW_DONATION, event.model_dump(mode="json", by_alias=True))
        except Exception as exc:
            logger.exception("pipeline.publish_failed", exc_info=exc)
