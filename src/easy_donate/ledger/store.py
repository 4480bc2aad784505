"""Append-only donation ledger over an async SQLAlchemy engine."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from ..config import Settings, get_settings
from ..errors import DuplicateVoucher, PersistenceFailure
from ..models import AggregateStats, DonationRecord, DonationStatus
from .schema import Base, DonationRow, as_utc

logger = logging.getLogger(__name__)


class DonationLedger:
    """Single-row inserts plus the duplicate lookup and dashboard reads.

    Rows are never updated or deleted here; the unique index on
    ``voucher_hash`` is the only arbiter between concurrent claims.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._sessions = async_sessionmaker(engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, url: str) -> "DonationLedger":
        return cls(create_async_engine(url))

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "DonationLedger":
        settings = settings or get_settings()
        return cls.from_url(settings.database_url)

    async def create_schema(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("ledger.schema_ready", extra={"url": self._engine.url.render_as_string(hide_password=True)})

    async def aclose(self) -> None:
        await self._engine.dispose()

    async def is_duplicate(self, voucher_hash: str) -> bool:
        stmt = select(DonationRow.id).where(DonationRow.voucher_hash == voucher_hash).limit(1)
        try:
            async with self._sessions() as session:
                found = await session.scalar(stmt)
        except SQLAlchemyError as exc:
            logger.error("ledger.lookup_failed", extra={"voucher_hash": voucher_hash, "error": str(exc)})
            raise PersistenceFailure(str(exc)) from exc
        return found is not None

    async def insert(self, record: DonationRecord) -> int:
        """Persist ``record`` and return its new identifier.

        Raises:
            DuplicateVoucher: the voucher hash is already stored.
            PersistenceFailure: any other storage fault.
        """

        row = DonationRow.from_record(record)
        try:
            async with self._sessions() as session:
                async with session.begin():
                    session.add(row)
        except IntegrityError as exc:
            if record.voucher_hash is not None:
                raise DuplicateVoucher(record.voucher_hash) from exc
            raise PersistenceFailure(str(exc)) from exc
        except SQLAlchemyError as exc:
            raise PersistenceFailure(str(exc)) from exc
        logger.debug("ledger.inserted", extra={"id": row.id, "status": row.status})
        return row.id

    async def recent_completed(self, limit: int = 10) -> list[DonationRecord]:
        """Return up to ``limit`` completed donations, newest first."""

        if limit <= 0:
            return []
        stmt = (
            select(DonationRow)
            .where(DonationRow.status == DonationStatus.COMPLETED.value)
            .order_by(DonationRow.timestamp.desc(), DonationRow.id.desc())
            .limit(limit)
        )
        try:
            async with self._sessions() as session:
                rows = (await session.scalars(stmt)).all()
        except SQLAlchemyError as exc:
            logger.error("ledger.recent_failed", extra={"error": str(exc)})
            return []
        return [row.to_record() for row in rows]

    async def aggregate(self) -> AggregateStats:
        """Statistics over completed donations; zero-valued on empty or failing store."""

        stmt = select(
            func.coalesce(func.sum(DonationRow.amount), 0.0),
            func.count(DonationRow.id),
            func.coalesce(func.avg(DonationRow.amount), 0.0),
            func.coalesce(func.max(DonationRow.amount), 0.0),
            func.max(DonationRow.timestamp),
        ).where(DonationRow.status == DonationStatus.COMPLETED.value)
        try:
            async with self._sessions() as session:
                total, count, average, top, last = (await session.execute(stmt)).one()
        except SQLAlchemyError as exc:
            logger.error("ledger.aggregate_failed", extra={"error": str(exc)})
            return AggregateStats()

        if not count:
            return AggregateStats()
        return AggregateStats(
            total_amount=float(total),
            total_donations=int(count),
            average_amount=float(average),
            top_donation=float(top),
            last_donation_timestamp=as_utc(last) if last is not None else None,
        )
