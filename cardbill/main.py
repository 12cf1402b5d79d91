"""Card Invoicing Service.

FastAPI application providing:
- Board browsing (spaces, boards, cards with manual time folded in)
- Invoices built from Done cards, with draft/sent/paid tracking
- Archive Sync: paid invoices archive their cards on the board
- Manual time entries per card
- Server-rendered dashboard views mounted into the host's container element

Usage (local):
  uvicorn cardbill.main:app --reload

Embedding:
  from cardbill.main import init_app
  app = init_app(EmbedConfig(container_id="kaiten-app", api_url=..., api_token=...))
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cardbill import __version__
from cardbill.config import EmbedConfig, ServiceConfig, load_config
from cardbill.container import Services, build_services
from cardbill.errors import (
    ArchiveSyncError,
    BoardServiceError,
    IneligibleCardError,
    NotFoundError,
    RateLimitError,
    RecordStoreError,
)
from cardbill.routers import boards, invoices, time_entries, views

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

BOARD_RETRY_MESSAGE = "The board service is unavailable. Please try again."


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(IneligibleCardError)
    async def ineligible(request: Request, exc: IneligibleCardError):
        return JSONResponse(
            status_code=400, content={"detail": str(exc), "card_ids": exc.card_ids}
        )

    @app.exception_handler(ArchiveSyncError)
    async def archive_failed(request: Request, exc: ArchiveSyncError):
        return JSONResponse(
            status_code=502,
            content={
                "detail": str(exc),
                "card_id": exc.card_id,
                "completed": exc.completed,
            },
        )

    @app.exception_handler(RateLimitError)
    async def rate_limited(request: Request, exc: RateLimitError):
        return JSONResponse(status_code=429, content={"detail": BOARD_RETRY_MESSAGE})

    @app.exception_handler(BoardServiceError)
    async def board_failed(request: Request, exc: BoardServiceError):
        return JSONResponse(status_code=502, content={"detail": BOARD_RETRY_MESSAGE})

    @app.exception_handler(RecordStoreError)
    async def store_failed(request: Request, exc: RecordStoreError):
        return JSONResponse(status_code=500, content={"detail": str(exc)})


def create_app(
    config: Optional[ServiceConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> FastAPI:
    """Build the app. ``transport``/``sleep`` let tests stand in for the board API."""
    config = config or load_config()
    services: Services = build_services(
        config, transport=transport, **({"sleep": sleep} if sleep else {})
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create tables on startup, dispose the engine on shutdown."""
        await services.start()
        logger.info(
            f"Service started. Board API: {config.board.base_url}, "
            f"container: #{config.container_id}"
        )
        yield
        await services.close()
        logger.info("Service shutdown.")

    app = FastAPI(
        title="Card Invoicing Service",
        description="Invoices from board cards, with manual time tracking",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _register_error_handlers(app)

    app.include_router(boards.router, prefix="/api", tags=["Boards"])
    app.include_router(invoices.router, prefix="/api/invoices", tags=["Invoices"])
    app.include_router(time_entries.router, prefix="/api", tags=["Time Entries"])
    app.include_router(views.router, tags=["Dashboard"])

    @app.get("/health")
    async def health():
        """Service health check including board API reachability."""
        return {
            "status": "ok",
            "version": __version__,
            "board_api": await services.board.health_check()
            if services.board.is_enabled else False,
            "cache": services.cache.stats(),
        }

    return app


def init_app(embed: EmbedConfig, config: Optional[ServiceConfig] = None) -> FastAPI:
    """Mount point for host pages: container id plus board API URL and token."""
    if not embed.container_id:
        raise ValueError("container_id is required")
    base = config or load_config()
    return create_app(base.with_embed(embed))


app = create_app()
