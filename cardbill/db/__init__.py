"""Database package for invoices and the time ledger."""

from cardbill.db.connection import Database
from cardbill.db.models import InvoiceCardRecord, InvoiceRecord, TimeEntryRecord

__all__ = [
    "Database",
    "InvoiceRecord",
    "InvoiceCardRecord",
    "TimeEntryRecord",
]
