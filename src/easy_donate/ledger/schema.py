"""SQLAlchemy table definitions for the donation ledger."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..models import VOUCHER_HASH_MAX_LENGTH, DonationRecord, DonationStatus, utcnow


class Base(DeclarativeBase):
    pass


class DonationRow(Base):
    """Database representation of one redemption attempt."""

    __tablename__ = "donations"
    __table_args__ = (Index("ix_donations_status_timestamp", "status", "timestamp"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    donor_name: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    message: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    # NULL for attempts that never reached the redemption service; NULLs never collide
    voucher_hash: Mapped[Optional[str]] = mapped_column(
        String(VOUCHER_HASH_MAX_LENGTH), unique=True, nullable=True
    )
    voucher_link: Mapped[str] = mapped_column(Text, nullable=False, default="")
    ip_address: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=DonationStatus.PENDING.value)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    raw_response: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    @classmethod
    def from_record(cls, record: DonationRecord) -> "DonationRow":
        return cls(
            donor_name=record.donor_name,
            amount=record.amount,
            message=record.message,
            voucher_hash=record.voucher_hash,
            voucher_link=record.voucher_link,
            ip_address=record.ip_address,
            status=record.status.value,
            error_message=record.error_message,
            raw_response=record.raw_response,
            timestamp=record.timestamp,
        )

    def to_record(self) -> DonationRecord:
        return DonationRecord(
            id=self.id,
            donor_name=self.donor_name,
            amount=self.amount,
            message=self.message,
            voucher_hash=self.voucher_hash,
            voucher_link=self.voucher_link,
            ip_address=self.ip_address,
            status=DonationStatus(self.status),
            error_message=self.error_message,
            raw_response=self.raw_response,
            timestamp=as_utc(self.timestamp),
        )

    def __repr__(self) -> str:
        return f"<DonationRow id={self.id} status={self.status} amount={self.amount} hash={self.voucher_hash}>"


def as_utc(value: datetime) -> datetime:
    """SQLite drops tzinfo on the way back; stored values are always UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
