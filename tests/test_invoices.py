"""Tests for invoice creation, status changes with Archive Sync, and deletion."""

from datetime import date, datetime
from unittest.mock import AsyncMock

import pytest

from cardbill.errors import (
    ArchiveSyncError,
    IneligibleCardError,
    NotFoundError,
    RecordStoreError,
)
from cardbill.models import (
    CreateInvoiceData,
    InvoiceRequest,
    InvoiceStatus,
    TimeEntryCreate,
)


async def log_time(ledger, card_id, hours=0, minutes=0):
    await ledger.create_entry(
        TimeEntryCreate(card_id=card_id, hours=hours, minutes=minutes, date=date(2026, 1, 15))
    )


def request(card_ids, notes=None):
    return InvoiceRequest(space_id=1, board_id=10, card_ids=card_ids, notes=notes)


class TestCreateInvoice:
    @pytest.mark.asyncio
    async def test_totals_include_manual_time(self, invoice_service, ledger):
        await log_time(ledger, 102, hours=1)
        await log_time(ledger, 103, minutes=30)

        invoice = await invoice_service.create_from_request(request([101, 102, 103]))

        # 120 + (45 + 60) + (0 + 30)
        assert invoice.total_time_spent == 255
        assert invoice.total_cards == 3

    @pytest.mark.asyncio
    async def test_line_items_split_sources(self, invoice_service, ledger):
        await log_time(ledger, 102, hours=1)
        invoice = await invoice_service.create_from_request(request([101, 102]))

        detail = await invoice_service.get_invoice_with_cards(invoice.id)
        lines = {c.card_id: c for c in detail.invoice_cards}
        assert lines[101].time_spent == 120
        assert lines[101].api_time_spent == 120
        assert lines[101].manual_time_spent == 0
        assert lines[102].time_spent == 105
        assert lines[102].api_time_spent == 45
        assert lines[102].manual_time_spent == 60

    @pytest.mark.asyncio
    async def test_snapshots_card_and_board_fields(self, invoice_service):
        invoice = await invoice_service.create_from_request(request([101], notes="January"))
        detail = await invoice_service.get_invoice_with_cards(invoice.id)

        assert detail.space_title == "Acme Corp"
        assert detail.board_title == "Sprint 12"
        assert detail.notes == "January"
        line = detail.invoice_cards[0]
        assert line.card_title == "Login page"
        assert line.tags == [{"name": "web"}]
        assert line.created_at == datetime(2026, 1, 5, 10, 0)
        assert line.created_at_record is not None

    @pytest.mark.asyncio
    async def test_always_starts_as_draft(self, invoice_service):
        invoice = await invoice_service.create_from_request(request([101]))
        assert invoice.status == InvoiceStatus.DRAFT

    @pytest.mark.asyncio
    async def test_duplicate_ids_billed_once(self, invoice_service):
        invoice = await invoice_service.create_from_request(request([101, 101, 102]))
        assert invoice.total_cards == 2
        assert invoice.total_time_spent == 165

    @pytest.mark.asyncio
    async def test_line_items_keep_billing_order(self, invoice_service, store):
        invoice = await invoice_service.create_from_request(request([103, 101, 102]))

        detail = await invoice_service.get_invoice_with_cards(invoice.id)
        assert [c.card_id for c in detail.invoice_cards] == [103, 101, 102]
        assert await store.invoice_card_ids(invoice.id) == [103, 101, 102]

    @pytest.mark.asyncio
    async def test_create_invoice_directly(self, invoice_service, board):
        cards = [await board.get_card(102), await board.get_card(103)]
        invoice = await invoice_service.create_invoice(
            CreateInvoiceData(space_id=1, board_id=10, board_title="Sprint 12"), cards
        )
        assert invoice.total_time_spent == 45
        assert invoice.space_title is None


class TestEligibility:
    @pytest.mark.asyncio
    async def test_not_done_rejected(self, invoice_service, store):
        with pytest.raises(IneligibleCardError) as exc_info:
            await invoice_service.create_from_request(request([101, 104]))
        assert exc_info.value.card_ids == [104]
        assert await store.list_invoices() == []

    @pytest.mark.asyncio
    async def test_archived_and_unknown_rejected(self, invoice_service):
        with pytest.raises(IneligibleCardError) as exc_info:
            await invoice_service.create_from_request(request([105, 999]))
        assert exc_info.value.card_ids == [105, 999]

    def test_empty_selection_rejected(self):
        with pytest.raises(ValueError):
            request([])


class TestNoRollback:
    @pytest.mark.asyncio
    async def test_header_survives_failed_line_items(self, invoice_service, store):
        store.insert_invoice_cards = AsyncMock(side_effect=RecordStoreError("disk full"))

        with pytest.raises(RecordStoreError):
            await invoice_service.create_from_request(request([101]))

        invoices = await store.list_invoices()
        assert len(invoices) == 1
        assert await store.list_invoice_cards(invoices[0].id) == []


class TestListing:
    @pytest.mark.asyncio
    async def test_list_sees_new_invoice(self, invoice_service):
        assert await invoice_service.list_invoices() == []
        created = await invoice_service.create_from_request(request([101]))
        assert [i.id for i in await invoice_service.list_invoices()] == [created.id]

    @pytest.mark.asyncio
    async def test_unknown_invoice(self, invoice_service):
        with pytest.raises(NotFoundError):
            await invoice_service.get_invoice_with_cards("nope")


class TestStatusChanges:
    @pytest.mark.asyncio
    async def test_sync_follows_billing_order(self, invoice_service, board_api):
        invoice = await invoice_service.create_from_request(request([103, 101, 102]))

        await invoice_service.update_status(invoice.id, InvoiceStatus.PAID)

        assert board_api.patch_attempts == [103, 101, 102]

    @pytest.mark.asyncio
    async def test_paid_archives_cards(self, invoice_service, board_api):
        invoice = await invoice_service.create_from_request(request([101, 102]))

        updated = await invoice_service.update_status(invoice.id, InvoiceStatus.PAID)

        assert updated.status == InvoiceStatus.PAID
        assert board_api.patches == [(101, {"condition": 2}), (102, {"condition": 2})]

    @pytest.mark.asyncio
    async def test_back_from_paid_unarchives(self, invoice_service, board_api):
        invoice = await invoice_service.create_from_request(request([101, 102]))
        await invoice_service.update_status(invoice.id, InvoiceStatus.PAID)
        board_api.patches.clear()

        updated = await invoice_service.update_status(invoice.id, InvoiceStatus.SENT)

        assert updated.status == InvoiceStatus.SENT
        assert board_api.patches == [(101, {"condition": 1}), (102, {"condition": 1})]

    @pytest.mark.asyncio
    async def test_draft_to_sent_also_unarchives(self, invoice_service, board_api):
        invoice = await invoice_service.create_from_request(request([101]))
        await invoice_service.update_status(invoice.id, InvoiceStatus.SENT)
        assert board_api.patches == [(101, {"condition": 1})]

    @pytest.mark.asyncio
    async def test_status_visible_after_update(self, invoice_service):
        invoice = await invoice_service.create_from_request(request([101]))
        await invoice_service.get_invoice_with_cards(invoice.id)

        await invoice_service.update_status(invoice.id, InvoiceStatus.PAID)

        detail = await invoice_service.get_invoice_with_cards(invoice.id)
        assert detail.status == InvoiceStatus.PAID

    @pytest.mark.asyncio
    async def test_failed_sync_leaves_status(self, invoice_service, board_api, store):
        invoice = await invoice_service.create_from_request(request([101, 102, 103]))
        board_api.fail(102, 500)

        with pytest.raises(ArchiveSyncError) as exc_info:
            await invoice_service.update_status(invoice.id, InvoiceStatus.PAID)

        assert exc_info.value.completed == [101]
        assert (await store.get_invoice(invoice.id)).status == InvoiceStatus.DRAFT
        assert board_api.patch_attempts == [101, 102]

    @pytest.mark.asyncio
    async def test_unknown_invoice_touches_no_cards(self, invoice_service, board_api):
        with pytest.raises(NotFoundError):
            await invoice_service.update_status("nope", InvoiceStatus.PAID)
        assert board_api.patch_attempts == []

    @pytest.mark.asyncio
    async def test_sync_drops_cached_cards(self, invoice_service, cache):
        invoice = await invoice_service.create_from_request(request([101]))
        cache.set(("cards", 10), ["stale"])

        await invoice_service.update_status(invoice.id, InvoiceStatus.PAID)

        assert cache.get(("cards", 10)) is None


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_cascades(self, invoice_service, store):
        invoice = await invoice_service.create_from_request(request([101, 102]))

        await invoice_service.delete_invoice(invoice.id)

        with pytest.raises(NotFoundError):
            await invoice_service.get_invoice_with_cards(invoice.id)
        assert await store.list_invoice_cards(invoice.id) == []
        assert await invoice_service.list_invoices() == []

    @pytest.mark.asyncio
    async def test_delete_missing(self, invoice_service):
        with pytest.raises(NotFoundError):
            await invoice_service.delete_invoice("nope")

    @pytest.mark.asyncio
    async def test_delete_does_not_touch_board(self, invoice_service, board_api):
        invoice = await invoice_service.create_from_request(request([101]))
        await invoice_service.delete_invoice(invoice.id)
        assert board_api.patch_attempts == []
