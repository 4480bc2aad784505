"""Shared domain models for claims, ledger records and feed events."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

# shared by the locator, the record model and the ledger column
VOUCHER_HASH_MAX_LENGTH = 128


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys, accepting either spelling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DonationStatus(str, Enum):
    """Lifecycle state of a redemption attempt."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class DonationClaim(CamelModel):
    """Inbound request to redeem a voucher as a donation."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    voucher_link: str = Field(..., min_length=1, max_length=2048)
    donor_name: str = Field(..., min_length=1, max_length=100)
    message: str = Field(default="", max_length=500)
    ip_address: str = Field(default="unknown", max_length=64)


class DonationRecord(CamelModel):
    """Append-only ledger entry for a single redemption attempt."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: Optional[int] = None
    donor_name: str = Field(..., min_length=1, max_length=100)
    amount: float = Field(..., ge=0)
    message: str = Field(default="", max_length=500)
    voucher_hash: Optional[str] = Field(default=None, max_length=VOUCHER_HASH_MAX_LENGTH)
    voucher_link: str = ""
    ip_address: str = "unknown"
    status: DonationStatus = DonationStatus.PENDING
    error_message: Optional[str] = None
    raw_response: Optional[dict[str, Any]] = None
    timestamp: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _check_status_invariants(self) -> "DonationRecord":
        if self.status is DonationStatus.COMPLETED:
            if self.amount <= 0:
                raise ValueError("A completed donation must have a positive amount")
            if not self.voucher_hash:
                raise ValueError("A completed donation must carry its voucher hash")
        elif self.status is DonationStatus.FAILED:
            if self.amount != 0:
                raise ValueError("A failed donation must have a zero amount")
            if not self.error_message:
                raise ValueError("A failed donation must carry an error message")
        return self


class DonationEvent(CamelModel):
    """Public view of a completed donation, as broadcast to viewers."""

    id: Optional[str] = Field(default=None, description="Ledger identifier, absent if the write failed")
    donor_name: str
    amount: float
    message: str = ""
    timestamp: datetime

    @classmethod
    def from_record(cls, record: DonationRecord) -> "DonationEvent":
        return cls(
            id=str(record.id) if record.id is not None else None,
            donor_name=record.donor_name,
            amount=record.amount,
            message=record.message,
            timestamp=record.timestamp,
        )


class AggregateStats(CamelModel):
    """Statistics computed over completed donations."""

    total_amount: float = 0.0
    total_donations: int = 0
    average_amount: float = 0.0
    top_donation: float = 0.0
    last_donation_timestamp: Optional[datetime] = None


class DonationResult(CamelModel):
    """Outcome returned to the submitter of a claim."""

    success: bool
    message: str
    data: Optional[DonationEvent] = None


@dataclass(slots=True)
class RedemptionResult:
    """Normalized answer of the external redemption service."""

    amount: float
    raw_response: dict[str, Any] = field(default_factory=dict)
