"""Invoice service: build invoices from board cards and track their status.

Usage:
  svc = InvoiceService(store, board, archive_sync, cache)
  invoice = await svc.create_invoice(
      CreateInvoiceData(space_id=1, space_title="Acme", board_id=7, board_title="Sprint"),
      cards,
  )
  await svc.update_status(invoice.id, InvoiceStatus.PAID)  # archives the cards

Totals are minutes: the board's own ``time_spent_sum`` plus manual ledger
time, frozen at creation. Money is never stored.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from cardbill.adapters.board_adapter import BoardAdapter
from cardbill.archive import ArchiveSync
from cardbill.cache import QueryCache
from cardbill.errors import IneligibleCardError
from cardbill.models import (
    Card,
    CreateInvoiceData,
    Invoice,
    InvoiceRequest,
    InvoiceStatus,
    InvoiceWithCards,
)
from cardbill.store import RecordStore

logger = logging.getLogger(__name__)

INVOICES = "invoices"


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class InvoiceService:
    def __init__(
        self,
        store: RecordStore,
        board: BoardAdapter,
        archive_sync: ArchiveSync,
        cache: QueryCache,
    ):
        self.store = store
        self.board = board
        self.archive_sync = archive_sync
        self.cache = cache

    async def create_invoice(self, data: CreateInvoiceData, cards: list[Card]) -> Invoice:
        """Persist one invoice header plus one line item per card.

        The header is committed before the line items. If the line-item insert
        fails the header stays behind without cards.
        """
        summaries = await self.store.time_summaries([c.id for c in cards])
        manual = {s.card_id: s.total_minutes_all for s in summaries}

        rows = []
        for position, card in enumerate(cards):
            manual_minutes = manual.get(card.id, 0)
            rows.append({
                "position": position,
                "card_id": card.id,
                "card_title": card.title,
                "card_description": None,
                "time_spent": card.api_minutes + manual_minutes,
                "api_time_spent": card.api_minutes,
                "manual_time_spent": manual_minutes,
                "tags": list(card.tags or []),
                "created_at": _naive_utc(card.created),
            })

        invoice = await self.store.insert_invoice({
            "space_id": data.space_id,
            "space_title": data.space_title,
            "board_id": data.board_id,
            "board_title": data.board_title,
            "total_time_spent": sum(r["time_spent"] for r in rows),
            "total_cards": len(rows),
            "status": InvoiceStatus.DRAFT.value,
            "notes": data.notes,
        })

        for row in rows:
            row["invoice_id"] = invoice.id
        await self.store.insert_invoice_cards(rows)

        logger.info(
            f"Invoice {invoice.id} created: {invoice.total_cards} cards, "
            f"{invoice.total_time_spent} min ({data.board_title})"
        )
        self.cache.invalidate(INVOICES)
        return invoice

    async def create_from_request(self, request: InvoiceRequest) -> Invoice:
        """Resolve ids against the board service, check eligibility, then bill."""
        spaces, board, cards = await asyncio.gather(
            self.board.list_spaces(),
            self.board.get_board(request.board_id),
            self.board.list_cards(request.board_id),
        )
        space = next((s for s in spaces if s.id == request.space_id), None)

        by_id = {c.id: c for c in cards}
        wanted = list(dict.fromkeys(request.card_ids))
        rejected = [cid for cid in wanted if cid not in by_id or not by_id[cid].is_billable]
        if rejected:
            raise IneligibleCardError(rejected)

        return await self.create_invoice(
            CreateInvoiceData(
                space_id=request.space_id,
                space_title=space.title if space else None,
                board_id=board.id,
                board_title=board.title,
                notes=request.notes,
            ),
            [by_id[cid] for cid in wanted],
        )

    async def list_invoices(self) -> list[Invoice]:
        return await self.cache.get_or_load((INVOICES,), self.store.list_invoices)

    async def get_invoice_with_cards(self, invoice_id: str) -> InvoiceWithCards:
        async def load() -> InvoiceWithCards:
            invoice, cards = await asyncio.gather(
                self.store.get_invoice(invoice_id),
                self.store.list_invoice_cards(invoice_id),
            )
            return InvoiceWithCards(**invoice.model_dump(), invoice_cards=cards)

        return await self.cache.get_or_load((INVOICES, invoice_id), load)

    async def delete_invoice(self, invoice_id: str) -> None:
        await self.store.delete_invoice(invoice_id)
        logger.info(f"Invoice {invoice_id} deleted")
        self.cache.invalidate(INVOICES)

    async def update_status(self, invoice_id: str, status: InvoiceStatus) -> Invoice:
        """Change status; ``paid`` archives the invoice's cards, anything else unarchives.

        Archive Sync runs first. If it fails the status row is left untouched
        and the error propagates; cards updated before the failure stay updated.
        """
        await self.store.get_invoice(invoice_id)
        card_ids = await self.store.invoice_card_ids(invoice_id)
        if card_ids:
            try:
                await self.archive_sync.run(card_ids, archived=status == InvoiceStatus.PAID)
            finally:
                self.cache.invalidate("cards")

        invoice = await self.store.update_invoice_status(invoice_id, status)
        self.cache.invalidate(INVOICES)
        logger.info(f"Invoice {invoice_id} → {status.value}")
        return invoice
