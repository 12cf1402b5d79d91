"""Time and money formatting for the dashboard.

Amounts are derived from minutes and the configured hourly rate at display
time only; nothing here is persisted.
"""

from typing import Optional

from cardbill.models import CardState

DEFAULT_HOURLY_RATE = 850

NBSP = "\u00a0"  # keeps amounts on one line in tables

CURRENCY_SYMBOLS = {"RUB": "₽", "EUR": "€", "USD": "$"}

STATE_LABELS = {
    CardState.QUEUED: "Queued",
    CardState.IN_PROGRESS: "In Progress",
    CardState.DONE: "Done",
}

STATUS_LABELS = {"draft": "Draft", "sent": "Sent", "paid": "Paid"}


def format_hours_minutes(hours: int, minutes: int) -> str:
    """Render an (hours, minutes) pair: "0m", "45m", "2h", "2h 5m"."""
    if hours == 0 and minutes == 0:
        return "0m"
    if hours == 0:
        return f"{minutes}m"
    if minutes == 0:
        return f"{hours}h"
    return f"{hours}h {minutes}m"


def format_time(minutes: Optional[int], empty: str = "—") -> str:
    """Render a minute total for tables; zero or missing shows ``empty``."""
    if not minutes:
        return empty
    return format_hours_minutes(minutes // 60, minutes % 60)


def calculate_cost(minutes: Optional[int], hourly_rate: float = DEFAULT_HOURLY_RATE) -> float:
    if not minutes:
        return 0
    return (minutes / 60) * hourly_rate


def format_currency(amount: float, currency: str = "RUB") -> str:
    """Whole units grouped by NBSP, e.g. 12750 -> "12\\u00a0750\\u00a0₽"."""
    whole = f"{round(amount):,}".replace(",", NBSP)
    symbol = CURRENCY_SYMBOLS.get(currency, currency)
    return f"{whole}{NBSP}{symbol}"


def card_state_label(state: int) -> str:
    try:
        return STATE_LABELS[CardState(state)]
    except ValueError:
        return "Unknown"


def status_label(status: str) -> str:
    return STATUS_LABELS.get(status, status)
