"""Builds every component from one ServiceConfig and hands them around."""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx

from cardbill.adapters.board_adapter import BoardAdapter
from cardbill.archive import ArchiveSync
from cardbill.cache import QueryCache
from cardbill.config import ServiceConfig
from cardbill.dashboard import BoardBrowser
from cardbill.db.connection import Database
from cardbill.invoices import InvoiceService
from cardbill.ledger import TimeLedger
from cardbill.store import RecordStore


@dataclass
class Services:
    config: ServiceConfig
    db: Database
    cache: QueryCache
    board: BoardAdapter
    store: RecordStore
    ledger: TimeLedger
    archive_sync: ArchiveSync
    invoices: InvoiceService
    browser: BoardBrowser

    async def start(self) -> None:
        await self.db.init()

    async def close(self) -> None:
        await self.db.close()


def build_services(
    config: ServiceConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Services:
    db = Database(config.database)
    cache = QueryCache(
        ttl_seconds=config.cache.ttl_seconds, max_size=config.cache.max_size
    )
    board = BoardAdapter(config.board, transport=transport)
    store = RecordStore(db)
    ledger = TimeLedger(store, cache)
    archive_sync = ArchiveSync(board, config.archive_sync, sleep=sleep)
    return Services(
        config=config,
        db=db,
        cache=cache,
        board=board,
        store=store,
        ledger=ledger,
        archive_sync=archive_sync,
        invoices=InvoiceService(store, board, archive_sync, cache),
        browser=BoardBrowser(board, ledger, cache),
    )
