"""Pydantic models for the board API, the time ledger and invoices."""

import datetime as dt
from datetime import date, datetime
from enum import Enum, IntEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# --- Board service ---


class CardState(IntEnum):
    """Card lifecycle as reported by the board API."""

    QUEUED = 1
    IN_PROGRESS = 2
    DONE = 3


class CardCondition(IntEnum):
    """Archive flag as the board API writes it."""

    LIVE = 1
    ARCHIVED = 2


class Space(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    title: str
    created: Optional[datetime] = None
    updated: Optional[datetime] = None


class Board(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    title: str
    description: Optional[str] = None
    created: Optional[datetime] = None
    updated: Optional[datetime] = None


class Card(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    title: str
    board_id: int
    column_id: Optional[int] = None
    lane_id: Optional[int] = None
    state: int
    archived: bool = False
    time_spent_sum: Optional[int] = None  # minutes, tracked by the board service
    tags: list[Any] = []
    description: Optional[str] = None
    created: Optional[datetime] = None
    updated: Optional[datetime] = None

    @property
    def api_minutes(self) -> int:
        return self.time_spent_sum or 0

    @property
    def is_billable(self) -> bool:
        """Only finished, live cards can go on an invoice."""
        return self.state == CardState.DONE and not self.archived


class CardRow(BaseModel):
    """A card as shown in the board table, with ledger time folded in."""

    card: Card
    manual_minutes: int = 0

    @property
    def api_minutes(self) -> int:
        return self.card.api_minutes

    @property
    def total_minutes(self) -> int:
        return self.card.api_minutes + self.manual_minutes


# --- Time ledger ---


class TimeEntryFields(BaseModel):
    """Shared bounds for hours/minutes on create and update."""

    hours: int = Field(default=0, ge=0, le=23)
    minutes: int = Field(default=0, ge=0, le=59)
    description: Optional[str] = None

    @model_validator(mode="after")
    def _strip_description(self):
        if self.description is not None:
            self.description = self.description.strip() or None
        return self


class TimeEntryCreate(TimeEntryFields):
    card_id: int
    date: date

    @model_validator(mode="after")
    def _require_some_time(self):
        if self.hours == 0 and self.minutes == 0:
            raise ValueError("Please enter at least some time (hours or minutes).")
        return self


class TimeEntryUpdate(BaseModel):
    hours: Optional[int] = Field(default=None, ge=0, le=23)
    minutes: Optional[int] = Field(default=None, ge=0, le=59)
    description: Optional[str] = None
    date: Optional[dt.date] = None

    @model_validator(mode="after")
    def _no_explicit_nulls(self):
        # Omitted fields keep their stored value; null would clear a required column.
        for name in ("hours", "minutes", "date"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        if self.description is not None:
            self.description = self.description.strip() or None
        return self


class TimeEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    card_id: int
    hours: int
    minutes: int
    description: Optional[str] = None
    date: date
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def total_minutes(self) -> int:
        return self.hours * 60 + self.minutes


class TimeTrackingSummary(BaseModel):
    card_id: int
    total_hours: int
    total_minutes: int  # remainder after whole hours
    total_minutes_all: int
    entries_count: int
    last_entry_date: Optional[date] = None

    @classmethod
    def from_totals(
        cls,
        card_id: int,
        minutes_all: int,
        entries_count: int,
        last_entry_date: Optional[date],
    ) -> "TimeTrackingSummary":
        return cls(
            card_id=card_id,
            total_hours=minutes_all // 60,
            total_minutes=minutes_all % 60,
            total_minutes_all=minutes_all,
            entries_count=entries_count,
            last_entry_date=last_entry_date,
        )


# --- Invoices ---


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"


class CreateInvoiceData(BaseModel):
    """Space/board snapshot the invoice header is created from."""

    space_id: int
    space_title: Optional[str] = None
    board_id: int
    board_title: Optional[str] = None
    notes: Optional[str] = None


class InvoiceRequest(BaseModel):
    """Body of POST /api/invoices."""

    space_id: int
    board_id: int
    card_ids: list[int] = Field(..., min_length=1)
    notes: Optional[str] = None


class StatusUpdate(BaseModel):
    status: InvoiceStatus


class Invoice(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    space_id: int
    space_title: Optional[str] = None
    board_id: int
    board_title: Optional[str] = None
    total_time_spent: int
    total_cards: int
    status: InvoiceStatus = InvoiceStatus.DRAFT
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class InvoiceCard(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    invoice_id: str
    card_id: int
    card_title: str
    card_description: Optional[str] = None
    time_spent: int
    api_time_spent: Optional[int] = None
    manual_time_spent: Optional[int] = None
    tags: list[Any] = []
    created_at: Optional[datetime] = None  # card creation on the board
    created_at_record: Optional[datetime] = None


class InvoiceWithCards(Invoice):
    invoice_cards: list[InvoiceCard] = []
