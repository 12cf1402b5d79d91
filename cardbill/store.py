"""Record store: invoices, invoice line items and time entries.

Each public method runs in its own session and commits on its own, so a
multi-step flow (header, then line items) is not atomic.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cardbill.db.connection import Database
from cardbill.db.models import InvoiceCardRecord, InvoiceRecord, TimeEntryRecord
from cardbill.errors import NotFoundError, RecordStoreError
from cardbill.models import (
    Invoice,
    InvoiceCard,
    InvoiceStatus,
    TimeEntry,
    TimeEntryCreate,
    TimeEntryUpdate,
    TimeTrackingSummary,
)

logger = logging.getLogger(__name__)


class RecordStore:
    """Thin async wrapper over the three tables and the summary aggregate."""

    def __init__(self, db: Database):
        self.db = db

    @asynccontextmanager
    async def _session(self, action: str) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with self.db.session() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error(f"Record store failed to {action}: {e}")
            raise RecordStoreError(f"Failed to {action}: {e}") from e

    # --- Invoices ---

    async def insert_invoice(self, values: dict) -> Invoice:
        async with self._session("create invoice") as session:
            record = InvoiceRecord(**values)
            session.add(record)
            await session.flush()
            await session.refresh(record)
            return Invoice.model_validate(record)

    async def insert_invoice_cards(self, rows: list[dict]) -> None:
        if not rows:
            return
        async with self._session("create invoice cards") as session:
            session.add_all([InvoiceCardRecord(**row) for row in rows])

    async def list_invoices(self) -> list[Invoice]:
        async with self._session("fetch invoices") as session:
            result = await session.scalars(
                select(InvoiceRecord).order_by(InvoiceRecord.created_at.desc())
            )
            return [Invoice.model_validate(r) for r in result]

    async def get_invoice(self, invoice_id: str) -> Invoice:
        async with self._session("fetch invoice") as session:
            record = await session.get(InvoiceRecord, invoice_id)
            if record is None:
                raise NotFoundError("Invoice", invoice_id)
            return Invoice.model_validate(record)

    async def list_invoice_cards(self, invoice_id: str) -> list[InvoiceCard]:
        async with self._session("fetch invoice cards") as session:
            result = await session.scalars(
                select(InvoiceCardRecord)
                .where(InvoiceCardRecord.invoice_id == invoice_id)
                .order_by(InvoiceCardRecord.position)
            )
            return [InvoiceCard.model_validate(r) for r in result]

    async def invoice_card_ids(self, invoice_id: str) -> list[int]:
        async with self._session("fetch invoice cards") as session:
            result = await session.scalars(
                select(InvoiceCardRecord.card_id)
                .where(InvoiceCardRecord.invoice_id == invoice_id)
                .order_by(InvoiceCardRecord.position)
            )
            return list(result)

    async def update_invoice_status(
        self, invoice_id: str, status: InvoiceStatus
    ) -> Invoice:
        async with self._session("update invoice status") as session:
            result = await session.execute(
                update(InvoiceRecord)
                .where(InvoiceRecord.id == invoice_id)
                .values(status=status.value)
            )
            if result.rowcount == 0:
                raise NotFoundError("Invoice", invoice_id)
            record = await session.get(InvoiceRecord, invoice_id, populate_existing=True)
            await session.refresh(record)
            return Invoice.model_validate(record)

    async def delete_invoice(self, invoice_id: str) -> None:
        """Delete the header; line items go with it via ON DELETE CASCADE."""
        async with self._session("delete invoice") as session:
            result = await session.execute(
                delete(InvoiceRecord).where(InvoiceRecord.id == invoice_id)
            )
            if result.rowcount == 0:
                raise NotFoundError("Invoice", invoice_id)

    # --- Time entries ---

    async def insert_time_entry(self, data: TimeEntryCreate) -> TimeEntry:
        async with self._session("create time entry") as session:
            record = TimeEntryRecord(**data.model_dump())
            session.add(record)
            await session.flush()
            await session.refresh(record)
            return TimeEntry.model_validate(record)

    async def update_time_entry(self, entry_id: str, data: TimeEntryUpdate) -> TimeEntry:
        changes = data.model_dump(exclude_unset=True)
        async with self._session("update time entry") as session:
            record = await session.get(TimeEntryRecord, entry_id)
            if record is None:
                raise NotFoundError("Time entry", entry_id)
            for field, value in changes.items():
                setattr(record, field, value)
            await session.flush()
            await session.refresh(record)
            return TimeEntry.model_validate(record)

    async def get_time_entry(self, entry_id: str) -> TimeEntry:
        async with self._session("fetch time entry") as session:
            record = await session.get(TimeEntryRecord, entry_id)
            if record is None:
                raise NotFoundError("Time entry", entry_id)
            return TimeEntry.model_validate(record)

    async def delete_time_entry(self, entry_id: str) -> None:
        async with self._session("delete time entry") as session:
            result = await session.execute(
                delete(TimeEntryRecord).where(TimeEntryRecord.id == entry_id)
            )
            if result.rowcount == 0:
                raise NotFoundError("Time entry", entry_id)

    async def time_entries_for_card(self, card_id: int) -> list[TimeEntry]:
        async with self._session("fetch time entries") as session:
            result = await session.scalars(
                select(TimeEntryRecord)
                .where(TimeEntryRecord.card_id == card_id)
                .order_by(TimeEntryRecord.date.desc(), TimeEntryRecord.created_at.desc())
            )
            return [TimeEntry.model_validate(r) for r in result]

    # --- time_tracking_summary aggregate ---

    async def time_summaries(self, card_ids: list[int]) -> list[TimeTrackingSummary]:
        """Per-card ledger totals, one row per card that has entries."""
        if not card_ids:
            return []
        minutes_all = func.sum(TimeEntryRecord.hours * 60 + TimeEntryRecord.minutes)
        stmt = (
            select(
                TimeEntryRecord.card_id,
                minutes_all,
                func.count(TimeEntryRecord.id),
                func.max(TimeEntryRecord.date),
            )
            .where(TimeEntryRecord.card_id.in_(set(card_ids)))
            .group_by(TimeEntryRecord.card_id)
        )
        async with self._session("fetch time tracking summaries") as session:
            rows = (await session.execute(stmt)).all()
        return [
            TimeTrackingSummary.from_totals(
                card_id=card_id,
                minutes_all=int(total or 0),
                entries_count=count,
                last_entry_date=last_date,
            )
            for card_id, total, count, last_date in rows
        ]

    async def time_summary(self, card_id: int) -> Optional[TimeTrackingSummary]:
        summaries = await self.time_summaries([card_id])
        return summaries[0] if summaries else None
