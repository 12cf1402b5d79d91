"""
Card Invoicing Test Configuration

Shared fixtures: a fake board API behind httpx.MockTransport, a scratch
SQLite database per test and a recording stand-in for asyncio.sleep.
"""
import copy
import json
from typing import Dict, List

import httpx
import pytest
import pytest_asyncio

from cardbill.adapters.board_adapter import BoardAdapter
from cardbill.archive import ArchiveSync
from cardbill.cache import QueryCache
from cardbill.config import (
    ArchiveSyncConfig,
    BoardConfig,
    DatabaseConfig,
    ServiceConfig,
)
from cardbill.db.connection import Database
from cardbill.invoices import InvoiceService
from cardbill.ledger import TimeLedger
from cardbill.store import RecordStore

BOARD_URL = "https://board.test/api/latest"
BOARD_TOKEN = "test-token"


# =============================================================================
# FIXTURES: Sample Board Data
# =============================================================================

SPACES: List[Dict] = [
    {"id": 1, "title": "Acme Corp"},
    {"id": 2, "title": "Internal"},
]

BOARDS: Dict[int, List[Dict]] = {
    1: [{"id": 10, "title": "Sprint 12", "description": "Customer portal"}],
    2: [{"id": 20, "title": "Ops"}],
}

CARDS: List[Dict] = [
    {
        "id": 101,
        "title": "Login page",
        "board_id": 10,
        "state": 3,
        "time_spent_sum": 120,
        "tags": [{"name": "web"}],
        "created": "2026-01-05T10:00:00Z",
    },
    {"id": 102, "title": "Password reset", "board_id": 10, "state": 3, "time_spent_sum": 45},
    {"id": 103, "title": "Audit log", "board_id": 10, "state": 3, "time_spent_sum": None},
    {"id": 104, "title": "Dark mode", "board_id": 10, "state": 2, "time_spent_sum": 30},
    {
        "id": 105,
        "title": "Legacy export",
        "board_id": 10,
        "state": 3,
        "archived": True,
        "time_spent_sum": 60,
    },
    {"id": 201, "title": "Rotate certificates", "board_id": 20, "state": 1},
]


class FakeBoardAPI:
    """In-memory board service. Answers the paths BoardAdapter calls."""

    def __init__(self):
        self.spaces = copy.deepcopy(SPACES)
        self.boards = copy.deepcopy(BOARDS)
        self.cards = copy.deepcopy(CARDS)
        self.requests: List[httpx.Request] = []
        self.patch_attempts: List[int] = []
        self.patches: List[tuple] = []
        self.failures: Dict[int, List[int]] = {}
        self.down_status = None

    def fail(self, card_id: int, *statuses: int) -> None:
        """Answer the next PATCHes of ``card_id`` with these status codes."""
        self.failures[card_id] = list(statuses)

    def go_down(self, status: int = 500) -> None:
        self.down_status = status

    def _card(self, card_id: int):
        return next((c for c in self.cards if c["id"] == card_id), None)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.down_status:
            return httpx.Response(self.down_status, json={"message": "unavailable"})

        parts = request.url.path.removeprefix("/api/latest").strip("/").split("/")

        if request.method == "PATCH" and parts[0] == "cards":
            card_id = int(parts[1])
            self.patch_attempts.append(card_id)
            pending = self.failures.get(card_id)
            if pending:
                return httpx.Response(pending.pop(0), json={"message": "rejected"})
            body = json.loads(request.content)
            card = self._card(card_id)
            if card is None:
                return httpx.Response(404, json={"message": "Card not found"})
            card["archived"] = body["condition"] == 2
            self.patches.append((card_id, body))
            return httpx.Response(200, json=card)

        if parts == ["spaces"]:
            return httpx.Response(200, json=self.spaces)
        if len(parts) == 3 and parts[0] == "spaces" and parts[2] == "boards":
            return httpx.Response(200, json=self.boards.get(int(parts[1]), []))
        if len(parts) == 2 and parts[0] == "boards":
            for boards in self.boards.values():
                for board in boards:
                    if board["id"] == int(parts[1]):
                        return httpx.Response(200, json=board)
        if parts == ["cards"]:
            cards = self.cards
            board_id = request.url.params.get("board_id")
            if board_id:
                cards = [c for c in cards if c["board_id"] == int(board_id)]
            if request.url.params.get("condition") == "1":
                cards = [c for c in cards if not c.get("archived")]
            return httpx.Response(200, json=cards)
        if len(parts) == 2 and parts[0] == "cards":
            card = self._card(int(parts[1]))
            if card:
                return httpx.Response(200, json=card)

        return httpx.Response(404, json={"message": "Not found"})


class RecordedSleep:
    """Stands in for asyncio.sleep and remembers every delay."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


# =============================================================================
# FIXTURES: Components
# =============================================================================

@pytest.fixture
def board_api() -> FakeBoardAPI:
    return FakeBoardAPI()


@pytest.fixture
def transport(board_api) -> httpx.MockTransport:
    return httpx.MockTransport(board_api.handler)


@pytest.fixture
def board_config() -> BoardConfig:
    return BoardConfig(base_url=BOARD_URL, api_token=BOARD_TOKEN)


@pytest.fixture
def board(board_config, transport) -> BoardAdapter:
    return BoardAdapter(board_config, transport=transport)


@pytest.fixture
def sleep() -> RecordedSleep:
    return RecordedSleep()


@pytest.fixture
def database_config(tmp_path) -> DatabaseConfig:
    return DatabaseConfig(url=f"sqlite+aiosqlite:///{tmp_path / 'data' / 'test.db'}")


@pytest_asyncio.fixture
async def db(database_config):
    """Fresh SQLite database for each test."""
    database = Database(database_config)
    await database.init()
    yield database
    await database.close()


@pytest.fixture
def store(db) -> RecordStore:
    return RecordStore(db)


@pytest.fixture
def cache() -> QueryCache:
    return QueryCache(ttl_seconds=300)


@pytest.fixture
def ledger(store, cache) -> TimeLedger:
    return TimeLedger(store, cache)


@pytest.fixture
def archive_sync(board, sleep) -> ArchiveSync:
    return ArchiveSync(board, ArchiveSyncConfig(), sleep=sleep)


@pytest.fixture
def invoice_service(store, board, archive_sync, cache) -> InvoiceService:
    return InvoiceService(store, board, archive_sync, cache)


@pytest.fixture
def service_config(board_config, database_config) -> ServiceConfig:
    return ServiceConfig(board=board_config, database=database_config)
