"""Board service adapter (Kaiten-style REST API).

Handles:
- Space, board and card reads
- Archive flag updates (condition 1 = live, 2 = archived)

All requests carry the session's bearer token. HTTP failures are logged and
re-raised as BoardServiceError; a 429 becomes RateLimitError so callers can
decide whether to retry.
"""

import logging
from typing import Any, Optional

import httpx

from cardbill.config import BoardConfig
from cardbill.errors import BoardServiceError, RateLimitError
from cardbill.models import Board, Card, CardCondition, Space

logger = logging.getLogger(__name__)


class BoardAdapter:
    """Board API adapter used for browsing and for Archive Sync."""

    def __init__(
        self,
        config: BoardConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.base = config.base_url.rstrip("/")
        self.headers = {
            "Authorization": f"Bearer {config.api_token}",
            "Content-Type": "application/json",
        }
        self._transport = transport

    @property
    def is_enabled(self) -> bool:
        return bool(self.config.api_token)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base,
            headers=self.headers,
            timeout=self.config.timeout,
            transport=self._transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> Any:
        try:
            async with self._client() as client:
                resp = await client.request(method, path, params=params, json=json)
                resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            detail = e.response.text or e.response.reason_phrase
            logger.error(f"Board API Error: {method} {path} → {status} {detail}")
            if status == 429:
                raise RateLimitError(f"{method} {path}: rate limited") from e
            raise BoardServiceError(f"{method} {path} failed: {status}", status) from e
        except httpx.HTTPError as e:
            logger.error(f"Board API Error: {method} {path} → {e}")
            raise BoardServiceError(f"{method} {path} failed: {e}") from e

        if not resp.content:
            return None
        return resp.json()

    # --- Spaces & Boards ---

    async def list_spaces(self) -> list[Space]:
        data = await self._request("GET", "/spaces")
        return [Space.model_validate(s) for s in data or []]

    async def list_boards(self, space_id: Optional[int]) -> list[Board]:
        if not space_id:
            return []
        data = await self._request("GET", f"/spaces/{space_id}/boards")
        return [Board.model_validate(b) for b in data or []]

    async def get_board(self, board_id: int) -> Board:
        data = await self._request("GET", f"/boards/{board_id}")
        return Board.model_validate(data)

    # --- Cards ---

    async def list_cards(self, board_id: Optional[int] = None) -> list[Card]:
        """Live (non-archived) cards, optionally limited to one board."""
        params: dict[str, Any] = {"condition": int(CardCondition.LIVE)}
        if board_id:
            params["board_id"] = board_id
        data = await self._request("GET", "/cards", params=params)
        return [Card.model_validate(c) for c in data or []]

    async def get_card(self, card_id: int) -> Card:
        data = await self._request("GET", f"/cards/{card_id}")
        return Card.model_validate(data)

    async def set_archived(self, card_id: int, archived: bool) -> None:
        condition = CardCondition.ARCHIVED if archived else CardCondition.LIVE
        await self._request(
            "PATCH", f"/cards/{card_id}", json={"condition": int(condition)}
        )

    async def health_check(self) -> bool:
        try:
            await self._request("GET", "/spaces")
            return True
        except BoardServiceError:
            return False
