"""FastAPI application entry point."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from prompt_keeper.api.router import api_router
from prompt_keeper.config import get_settings
from prompt_keeper.core.analytics import get_usage_analytics
from prompt_keeper.core.errors import (
    AlreadyRestoredError,
    KeeperError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from prompt_keeper.core.events import get_event_publisher
from prompt_keeper.core.tracker import UsageTracker
from prompt_keeper.db.client import get_record_store
from prompt_keeper.utils.logging import setup_logging

logger = structlog.get_logger()

VERSION = "0.1.0"

_STATUS_CODES: dict[type[KeeperError], int] = {
    NotFoundError: 404,
    UnauthorizedError: 403,
    ValidationError: 422,
    AlreadyRestoredError: 409,
}


async def usage_flush_loop(tracker: UsageTracker, interval: float) -> None:
    """Background task: write queued usage events that missed their timer."""
    while True:
        try:
            await asyncio.sleep(interval)
            written = await tracker.flush()
            if written:
                logger.info("usage.periodic_flush", written=written)
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.warning("usage.periodic_flush_error", error=str(e))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    settings = get_settings()
    setup_logging(settings.log_level)
    logger.info("keeper.starting", port=settings.port)

    get_record_store()
    logger.info("keeper.supabase_connected")

    # NATS is optional; publishing is a no-op without it
    publisher = get_event_publisher()
    await publisher.connect()

    tracker = UsageTracker(get_usage_analytics(), settings.usage_batch_delay)
    app.state.usage_tracker = tracker
    flush_task = asyncio.create_task(usage_flush_loop(tracker, settings.usage_flush_interval))

    yield

    flush_task.cancel()
    try:
        await flush_task
    except asyncio.CancelledError:
        pass

    try:
        await tracker.flush()
    except Exception as e:
        logger.warning("keeper.usage_flush_failed", error=str(e))

    await publisher.disconnect()
    logger.info("keeper.shutdown")


app = FastAPI(
    title="Prompt Keeper",
    description="Shared prompt library with impact-aware deletion, backups and bulk operations",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.exception_handler(KeeperError)
async def keeper_error_handler(request: Request, exc: KeeperError) -> JSONResponse:
    status_code = next(
        (code for cls, code in _STATUS_CODES.items() if isinstance(exc, cls)), 400
    )
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.get("/")
async def root():
    """Service info endpoint."""
    return {"service": "prompt-keeper", "version": VERSION}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "service": "prompt-keeper", "version": VERSION}
