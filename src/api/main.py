"""
FastAPI application for the registration verification service.

Startup opens the PostgreSQL pool, applies the idempotent migrations and
starts the NotificationDispatcher; shutdown drains pending SMS and mail
deliveries before the pool is closed.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from psycopg_pool import ConnectionPool

from src.adapters.repository.postgres import run_migrations
from src.api.v1 import router as v1_router
from src.config.settings import Settings, get_settings
from src.domain.dispatch import NotificationDispatcher

logger = logging.getLogger(__name__)

tags_metadata = [
    {
        "name": "v1",
        "description": "Registration flow - confirm a phone number by SMS code, "
        "then an email address by link, then complete the account",
    },
]


def _create_dispatcher(settings: Settings) -> NotificationDispatcher:
    return NotificationDispatcher(
        max_workers=settings.notification_workers,
        max_attempts=settings.notification_max_attempts,
        backoff_seconds=settings.notification_backoff_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Own the process-wide resources shared by all requests.

    Both the pool and the dispatcher are exposed through ``app.state``
    for the dependency factories.
    """
    settings = get_settings()

    logger.info(
        "Opening database pool (min=%d, max=%d)", settings.pool_min_size, settings.pool_max_size
    )
    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
    )
    run_migrations(pool)

    app.state.pool = pool
    app.state.dispatcher = _create_dispatcher(settings)
    logger.info("Registration service ready")

    try:
        yield
    finally:
        logger.info("Draining notification queue")
        app.state.dispatcher.shutdown(wait=True)
        pool.close()
        logger.info("Registration service stopped")


app = FastAPI(
    title="duoverify",
    description="Dual-channel registration API - a draft identity becomes an account "
    "once its phone number and email address are both confirmed",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

app.include_router(v1_router, prefix="/v1")


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unexpected failures and answer with an opaque 500."""
    logger.error("Unhandled error on %s %s: %r", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


@app.get("/health")
async def health_check(request: Request) -> dict[str, str]:
    """Report healthy once the database answers a trivial query."""
    with request.app.state.pool.connection() as conn:
        conn.execute("SELECT 1")
    return {"status": "healthy"}
