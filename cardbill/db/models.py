"""Database models for invoices, invoice line items and manual time entries.

Uses SQLAlchemy 2.0 with async support.
Backend-agnostic: works with SQLite (dev/tests) and PostgreSQL.
"""

import datetime as dt
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    func,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def _new_id() -> str:
    return str(uuid.uuid4())


class InvoiceRecord(Base):
    """Invoice header. Space/board titles are snapshots taken at creation."""

    __tablename__ = "invoices"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)

    space_id: Mapped[int] = mapped_column(Integer, nullable=False)
    space_title: Mapped[Optional[str]] = mapped_column(String(500))
    board_id: Mapped[int] = mapped_column(Integer, nullable=False)
    board_title: Mapped[Optional[str]] = mapped_column(String(500))

    # --- Totals (minutes, frozen at creation) ---
    total_time_spent: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_cards: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    status: Mapped[str] = mapped_column(String(20), default="draft", nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    cards: Mapped[list["InvoiceCardRecord"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_invoices_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Invoice {self.id} {self.board_title!r} [{self.status}]>"


class InvoiceCardRecord(Base):
    """One billed card. Immutable once written."""

    __tablename__ = "invoice_cards"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    invoice_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False
    )

    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)  # billing order
    card_id: Mapped[int] = mapped_column(Integer, nullable=False)
    card_title: Mapped[str] = mapped_column(String(1000), nullable=False)
    card_description: Mapped[Optional[str]] = mapped_column(Text)

    # --- Billed minutes: total plus its two sources ---
    time_spent: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    api_time_spent: Mapped[Optional[int]] = mapped_column(Integer)
    manual_time_spent: Mapped[Optional[int]] = mapped_column(Integer)

    tags: Mapped[Optional[list]] = mapped_column(JSON, default=list)
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime)  # card creation
    created_at_record: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    invoice: Mapped["InvoiceRecord"] = relationship(back_populates="cards")

    __table_args__ = (
        Index("ix_invoice_cards_invoice_id", "invoice_id"),
    )


class TimeEntryRecord(Base):
    """Manual time logged against a board card."""

    __tablename__ = "time_entries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    card_id: Mapped[int] = mapped_column(Integer, nullable=False)
    hours: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    minutes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_time_entries_card_id", "card_id"),
    )
