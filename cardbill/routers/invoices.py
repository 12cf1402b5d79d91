"""
Invoices API Endpoints
"""

from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from cardbill.container import Services
from cardbill.dashboard import InvoiceView
from cardbill.models import Invoice, InvoiceCard, InvoiceRequest, InvoiceWithCards, StatusUpdate
from cardbill.routers import get_services

router = APIRouter()


class InvoiceLineResponse(InvoiceCard):
    amount: float


class InvoiceDetailResponse(InvoiceWithCards):
    invoice_cards: List[InvoiceLineResponse] = []
    hourly_rate: float
    currency: str
    total_amount: float


@router.get("", response_model=List[Invoice])
async def list_invoices(
    status: Optional[str] = None,
    services: Services = Depends(get_services),
):
    """List all invoices, newest first"""
    invoices = await services.invoices.list_invoices()
    if status:
        invoices = [i for i in invoices if i.status.value == status]
    return invoices


@router.post("", response_model=Invoice, status_code=201)
async def create_invoice(
    request: InvoiceRequest,
    services: Services = Depends(get_services),
):
    """Create a draft invoice from Done cards of one board"""
    return await services.invoices.create_from_request(request)


@router.get("/{invoice_id}", response_model=InvoiceDetailResponse)
async def get_invoice(invoice_id: str, services: Services = Depends(get_services)):
    """Get an invoice with its line items, priced at the current rate"""
    billing = services.config.billing
    invoice = await services.invoices.get_invoice_with_cards(invoice_id)
    view = InvoiceView.build(invoice, billing.hourly_rate)
    return InvoiceDetailResponse(
        **invoice.model_dump(exclude={"invoice_cards"}),
        invoice_cards=[
            InvoiceLineResponse(**line.card.model_dump(), amount=line.amount)
            for line in view.lines
        ],
        hourly_rate=billing.hourly_rate,
        currency=billing.currency,
        total_amount=view.total_amount,
    )


@router.patch("/{invoice_id}/status", response_model=Invoice)
async def update_status(
    invoice_id: str,
    update: StatusUpdate,
    services: Services = Depends(get_services),
):
    """Update invoice status; paid archives the cards, draft/sent unarchives them"""
    return await services.invoices.update_status(invoice_id, update.status)


@router.delete("/{invoice_id}")
async def delete_invoice(invoice_id: str, services: Services = Depends(get_services)):
    """Delete an invoice and its line items"""
    await services.invoices.delete_invoice(invoice_id)
    return {"message": "Invoice deleted"}
