"""
Dashboard Views (server-rendered HTML)

Every page renders inside ``<div id="{container_id}">`` so a host page can
mount it. Failures never bubble up as error pages: they are logged and shown
as a single alert.
"""

import logging
from datetime import date
from pathlib import Path
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from jinja2 import Environment, FileSystemLoader
from pydantic import ValidationError

from cardbill.billing import (
    calculate_cost,
    card_state_label,
    format_currency,
    format_hours_minutes,
    format_time,
    status_label,
)
from cardbill.container import Services
from cardbill.dashboard import DashboardState, InvoiceView, View
from cardbill.errors import BoardServiceError, CardbillError, NotFoundError
from cardbill.models import InvoiceRequest, InvoiceStatus, TimeEntryCreate
from cardbill.routers import get_services

logger = logging.getLogger(__name__)

router = APIRouter()

TEMPLATE_DIR = Path(__file__).parent.parent / "templates"

_jinja = Environment(loader=FileSystemLoader(str(TEMPLATE_DIR)), autoescape=True)
_jinja.filters["time"] = format_time
_jinja.filters["state_label"] = card_state_label
_jinja.filters["status_label"] = status_label

FIELD_MESSAGES = {
    "hours": "Hours must be a whole number between 0 and 23.",
    "minutes": "Minutes must be a whole number between 0 and 59.",
    "date": "Please select a date.",
}


def _render(services: Services, name: str, status_code: int = 200, **context) -> HTMLResponse:
    billing = services.config.billing
    template = _jinja.get_template(name)
    html = template.render(
        container_id=services.config.container_id,
        hourly_rate=billing.hourly_rate,
        money=lambda amount: format_currency(amount, billing.currency),
        cost=lambda minutes: calculate_cost(minutes, billing.hourly_rate),
        statuses=[s.value for s in InvoiceStatus],
        **context,
    )
    return HTMLResponse(html, status_code=status_code)


def _alert(e: Exception, action: str) -> str:
    logger.error(f"Failed to {action}: {e}")
    if isinstance(e, BoardServiceError):
        return f"Failed to {action}. Please try again."
    return f"Failed to {action}: {e}"


def _int_or_none(value) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def time_entry_errors(exc: ValidationError) -> dict[str, str]:
    """Map pydantic errors onto the form's fields."""
    errors: dict[str, str] = {}
    for err in exc.errors():
        field = str(err["loc"][0]) if err["loc"] else "time"
        errors[field] = FIELD_MESSAGES.get(field, err["msg"].removeprefix("Value error, "))
    return errors


# --- Create view: board + card table ---


@router.get("/", response_class=HTMLResponse)
async def dashboard(request: Request, services: Services = Depends(get_services)):
    params = request.query_params
    space_id = _int_or_none(params.get("space_id"))
    state = DashboardState()
    state.select_space(space_id)
    state.select_board(_int_or_none(params.get("board_id")))

    spaces, boards, rows, alert = [], [], [], None
    try:
        spaces, boards, rows = await services.browser.load(state)
    except CardbillError as e:
        alert = _alert(e, "load the board")

    cards = [row.card for row in rows]
    for card_id in params.getlist("selected"):
        card = next((c for c in cards if c.id == _int_or_none(card_id)), None)
        if card:
            state.selection.toggle(card)
    if params.get("toggle_all"):
        state.selection.toggle_all(cards)

    previous_space_id = _int_or_none(params.get("prev_space_id"))
    if previous_space_id is not None and previous_space_id != space_id:
        state.select_space(space_id)
        rows, cards = [], []

    return _render(
        services,
        "dashboard.html",
        view=View.CREATE.value,
        state=state,
        spaces=spaces,
        boards=boards,
        rows=rows,
        selection=state.selection,
        billable_count=sum(1 for c in cards if c.is_billable),
        alert=alert,
        message=params.get("message"),
    )


@router.post("/invoices/create")
async def create_invoice_form(request: Request, services: Services = Depends(get_services)):
    form = await request.form()
    space_id = _int_or_none(form.get("space_id"))
    board_id = _int_or_none(form.get("board_id"))
    card_ids = [cid for cid in map(_int_or_none, form.getlist("card_ids")) if cid]

    if not (space_id and board_id and card_ids):
        return RedirectResponse(
            f"/?space_id={space_id or ''}&board_id={board_id or ''}", status_code=303
        )

    try:
        await services.invoices.create_from_request(
            InvoiceRequest(
                space_id=space_id,
                board_id=board_id,
                card_ids=card_ids,
                notes=form.get("notes") or None,
            )
        )
    except CardbillError as e:
        return _render(
            services,
            "invoices.html",
            status_code=400,
            view=View.INVOICES.value,
            invoices=[],
            alert=_alert(e, "create invoice"),
        )
    return RedirectResponse("/invoices?message=Invoice+created+successfully!", status_code=303)


# --- Invoice list & detail ---


@router.get("/invoices", response_class=HTMLResponse)
async def invoice_list(request: Request, services: Services = Depends(get_services)):
    invoices, alert = [], None
    try:
        invoices = await services.invoices.list_invoices()
    except CardbillError as e:
        alert = _alert(e, "load invoices")
    return _render(
        services,
        "invoices.html",
        view=View.INVOICES.value,
        invoices=invoices,
        alert=alert,
        message=request.query_params.get("message"),
    )


@router.get("/invoices/{invoice_id}", response_class=HTMLResponse)
async def invoice_detail(invoice_id: str, services: Services = Depends(get_services)):
    state = DashboardState()
    state.open_invoice(invoice_id)
    try:
        invoice = await services.invoices.get_invoice_with_cards(invoice_id)
    except NotFoundError:
        return _render(
            services, "invoice_detail.html", status_code=404,
            view=state.view.value, detail=None,
        )
    except CardbillError as e:
        return _render(
            services, "invoice_detail.html", status_code=500,
            view=state.view.value, detail=None, alert=_alert(e, "load invoice"),
        )
    detail = InvoiceView.build(invoice, services.config.billing.hourly_rate)
    return _render(services, "invoice_detail.html", view=state.view.value, detail=detail)


@router.post("/invoices/{invoice_id}/status")
async def invoice_status_form(
    invoice_id: str, request: Request, services: Services = Depends(get_services)
):
    form = await request.form()
    back = form.get("next") or f"/invoices/{invoice_id}"
    try:
        status = InvoiceStatus(form.get("status"))
        await services.invoices.update_status(invoice_id, status)
    except (CardbillError, ValueError) as e:
        return _render(
            services, "invoices.html", status_code=400,
            view=View.INVOICES.value, invoices=[],
            alert=_alert(e, "update invoice status"),
        )
    return RedirectResponse(back, status_code=303)


@router.post("/invoices/{invoice_id}/delete")
async def invoice_delete_form(invoice_id: str, services: Services = Depends(get_services)):
    try:
        await services.invoices.delete_invoice(invoice_id)
    except CardbillError as e:
        return _render(
            services, "invoices.html", status_code=400,
            view=View.INVOICES.value, invoices=[],
            alert=_alert(e, "delete invoice"),
        )
    return RedirectResponse("/invoices", status_code=303)


# --- Time entry modal ---


async def _time_page(
    services: Services,
    card_id: int,
    card_title: str,
    errors: Optional[dict] = None,
    form: Optional[dict] = None,
    status_code: int = 200,
) -> HTMLResponse:
    state = DashboardState()
    state.open_time_entry(card_id)
    entries, alert = [], None
    try:
        entries = await services.ledger.entries_for_card(card_id)
    except CardbillError as e:
        alert = _alert(e, "load time entries")
    total = sum(e.total_minutes for e in entries)
    return _render(
        services,
        "time_entry.html",
        status_code=status_code,
        view=View.CREATE.value,
        card_id=state.time_entry_card_id,
        card_title=card_title,
        entries=entries,
        total=format_hours_minutes(total // 60, total % 60) if total else None,
        errors=errors or {},
        form=form or {"hours": 0, "minutes": 0, "date": date.today().isoformat(), "description": ""},
        alert=alert,
    )


@router.get("/cards/{card_id}/time", response_class=HTMLResponse)
async def time_entry_form(
    card_id: int, request: Request, services: Services = Depends(get_services)
):
    return await _time_page(services, card_id, request.query_params.get("title", ""))


@router.post("/cards/{card_id}/time", response_class=HTMLResponse)
async def time_entry_submit(
    card_id: int, request: Request, services: Services = Depends(get_services)
):
    form = await request.form()
    title = form.get("title", "")
    values = {
        "hours": form.get("hours") or 0,
        "minutes": form.get("minutes") or 0,
        "date": form.get("date") or None,
        "description": form.get("description") or "",
    }
    try:
        data = TimeEntryCreate(card_id=card_id, **values)
    except ValidationError as e:
        return await _time_page(
            services, card_id, title, errors=time_entry_errors(e), form=values,
            status_code=422,
        )

    try:
        await services.ledger.create_entry(data)
    except CardbillError as e:
        logger.error(f"Failed to save time entry for card {card_id}: {e}")
        return await _time_page(
            services, card_id, title,
            errors={"submit": "Failed to save time entry. Please try again."},
            form=values, status_code=500,
        )
    return await _time_page(services, card_id, title)


@router.post("/time-entries/{entry_id}/delete")
async def time_entry_delete(
    entry_id: str, request: Request, services: Services = Depends(get_services)
):
    form = await request.form()
    card_id = _int_or_none(form.get("card_id"))
    title = form.get("title", "")
    try:
        await services.ledger.delete_entry(entry_id)
    except CardbillError as e:
        logger.error(f"Failed to delete time entry {entry_id}: {e}")
        if card_id:
            return await _time_page(
                services, card_id, title,
                errors={"submit": "Failed to delete time entry. Please try again."},
                status_code=400,
            )
    if not card_id:
        return RedirectResponse("/", status_code=303)
    return RedirectResponse(
        f"/cards/{card_id}/time?{urlencode({'title': title})}", status_code=303
    )
