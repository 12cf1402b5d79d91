"""Dashboard state and the read models behind the HTML views.

- DashboardState: selected space/board, current view, open time-entry modal
- CardSelection: which Done cards are ticked for the next invoice
- BoardBrowser: cached board API reads joined with ledger minutes
- InvoiceView: invoice detail with display-only amounts
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from cardbill.adapters.board_adapter import BoardAdapter
from cardbill.billing import calculate_cost
from cardbill.cache import QueryCache
from cardbill.ledger import TimeLedger
from cardbill.models import Board, Card, CardRow, InvoiceCard, InvoiceWithCards, Space

logger = logging.getLogger(__name__)


class View(str, Enum):
    CREATE = "create"
    INVOICES = "invoices"
    INVOICE_DETAILS = "invoice-details"


@dataclass
class CardSelection:
    """Card ids picked for billing. Non-billable cards never get in."""

    ids: set[int] = field(default_factory=set)

    def toggle(self, card: Card) -> None:
        if not card.is_billable:
            return
        if card.id in self.ids:
            self.ids.discard(card.id)
        else:
            self.ids.add(card.id)

    def toggle_all(self, cards: Iterable[Card]) -> None:
        """Select every billable card, or clear if they are all selected already."""
        billable = {c.id for c in cards if c.is_billable}
        if billable and self.ids == billable:
            self.ids = set()
        else:
            self.ids = billable

    def clear(self) -> None:
        self.ids = set()

    def selected(self, cards: Iterable[Card]) -> list[Card]:
        return [c for c in cards if c.id in self.ids]

    def __len__(self) -> int:
        return len(self.ids)

    def __contains__(self, card_id: int) -> bool:
        return card_id in self.ids


@dataclass
class DashboardState:
    selected_space_id: Optional[int] = None
    selected_board_id: Optional[int] = None
    view: View = View.CREATE
    selected_invoice_id: Optional[str] = None
    time_entry_card_id: Optional[int] = None  # card whose time modal is open
    selection: CardSelection = field(default_factory=CardSelection)

    def select_space(self, space_id: Optional[int]) -> None:
        # A new space invalidates the board choice and the picked cards.
        self.selected_space_id = space_id
        self.selected_board_id = None
        self.selection.clear()

    def select_board(self, board_id: Optional[int]) -> None:
        self.selected_board_id = board_id

    def open_invoice(self, invoice_id: str) -> None:
        self.selected_invoice_id = invoice_id
        self.view = View.INVOICE_DETAILS

    def back_to_invoices(self) -> None:
        self.selected_invoice_id = None
        self.view = View.INVOICES

    def open_time_entry(self, card_id: int) -> None:
        self.time_entry_card_id = card_id

    def close_time_entry(self) -> None:
        self.time_entry_card_id = None


class BoardBrowser:
    """Board API reads through the query cache."""

    def __init__(self, board: BoardAdapter, ledger: TimeLedger, cache: QueryCache):
        self.board = board
        self.ledger = ledger
        self.cache = cache

    async def spaces(self) -> list[Space]:
        return await self.cache.get_or_load(("spaces",), self.board.list_spaces)

    async def boards(self, space_id: Optional[int]) -> list[Board]:
        if not space_id:
            return []
        return await self.cache.get_or_load(
            ("boards", space_id), lambda: self.board.list_boards(space_id)
        )

    async def board_detail(self, board_id: int) -> Board:
        return await self.cache.get_or_load(
            ("board", board_id), lambda: self.board.get_board(board_id)
        )

    async def cards(self, board_id: Optional[int]) -> list[Card]:
        return await self.cache.get_or_load(
            ("cards", board_id), lambda: self.board.list_cards(board_id)
        )

    async def card_rows(self, board_id: int) -> list[CardRow]:
        """Board cards with manual ledger minutes added."""
        cards = await self.cards(board_id)
        manual = await self.ledger.minutes_by_card([c.id for c in cards])
        return [CardRow(card=c, manual_minutes=manual.get(c.id, 0)) for c in cards]

    async def load(self, state: DashboardState) -> tuple[list[Space], list[Board], list[CardRow]]:
        """Everything the create view needs, fetched in parallel."""
        spaces, boards, rows = await asyncio.gather(
            self.spaces(),
            self.boards(state.selected_space_id),
            self.card_rows(state.selected_board_id) if state.selected_board_id else _empty(),
        )
        return spaces, boards, rows


async def _empty() -> list:
    return []


@dataclass
class InvoiceLine:
    card: InvoiceCard
    amount: float


@dataclass
class InvoiceView:
    """Invoice detail priced at the current hourly rate."""

    invoice: InvoiceWithCards
    hourly_rate: float
    lines: list[InvoiceLine] = field(default_factory=list)

    @classmethod
    def build(cls, invoice: InvoiceWithCards, hourly_rate: float) -> "InvoiceView":
        lines = [
            InvoiceLine(card=c, amount=calculate_cost(c.time_spent, hourly_rate))
            for c in invoice.invoice_cards
        ]
        return cls(invoice=invoice, hourly_rate=hourly_rate, lines=lines)

    @property
    def total_amount(self) -> float:
        return sum(line.amount for line in self.lines)
