"""FastAPI application entry point for the account escrow service.

Lifecycle:
    1. Startup: Initialize logging, database, Redis, the escrow service and
       the timeout sweeper.
    2. Running: Serve the REST API at /api/v1/* while the sweeper fails
       transactions that overstay their step.
    3. Shutdown: Stop background tasks, close database and Redis connections.

Run with:
    uv run uvicorn account_escrow.main:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from account_escrow.config import get_settings
from account_escrow.logging_config import get_logger, setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from account_escrow.infrastructure.rate_limiter import SlidingWindowRateLimiter


async def _prune_rate_limiter(limiter: SlidingWindowRateLimiter, interval_seconds: float) -> None:
    logger = get_logger(__name__)
    while True:
        await asyncio.sleep(interval_seconds)
        dropped = limiter.cleanup()
        if dropped:
            logger.debug("rate_limit.cleanup", dropped=dropped, remaining=len(limiter))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    settings = get_settings()

    # 1. Setup structured logging
    setup_logging(
        log_level=settings.app_log_level,
        json_logs=not settings.is_development,
    )
    logger = get_logger(__name__)
    logger.info(
        "app.starting",
        env=settings.app_env,
        debug=settings.app_debug,
    )

    # 2. Initialize database
    from account_escrow.infrastructure.database.engine import (
        close_db,
        get_session_factory,
        init_db,
    )
    from account_escrow.infrastructure.database.repositories import SqlRepository

    await init_db()

    # 3. Initialize Redis
    from account_escrow.infrastructure.redis_client import close_redis, init_redis

    try:
        await init_redis()
    except Exception as exc:
        logger.warning("app.redis_unavailable", error=str(exc))

    # 4. Wire the escrow service
    from account_escrow.infrastructure.notifiers import build_notifier
    from account_escrow.infrastructure.rate_limiter import SlidingWindowRateLimiter
    from account_escrow.services.escrow_service import EscrowService

    notifier = build_notifier(
        settings.notifier,
        webhook_url=settings.notification_webhook_url,
        timeout_seconds=settings.notification_timeout_seconds,
        max_attempts=settings.notification_max_attempts,
    )
    service = EscrowService.from_settings(settings, SqlRepository(get_session_factory()), notifier)
    limiter = SlidingWindowRateLimiter(
        max_requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
        max_keys=settings.rate_limit_max_keys,
    )
    app.state.escrow_service = service
    app.state.rate_limiter = limiter

    # 5. Background tasks
    tasks = [
        asyncio.create_task(service.sweeper().run(settings.timeout_sweep_interval_seconds)),
        asyncio.create_task(_prune_rate_limiter(limiter, settings.rate_limit_window_seconds)),
    ]

    logger.info(
        "app.started",
        host=settings.app_host,
        port=settings.app_port,
        admins=len(settings.admin_id_list),
        code_verifier=str(settings.code_verifier),
    )

    yield

    # Shutdown
    logger.info("app.shutting_down")
    for task in tasks:
        task.cancel()
    for task in tasks:
        with contextlib.suppress(asyncio.CancelledError):
            await task
    await close_db()
    await close_redis()
    logger.info("app.stopped")


def create_app() -> FastAPI:
    """Application factory — creates and configures the FastAPI app."""
    settings = get_settings()

    app = FastAPI(
        title="Account Escrow",
        description="Escrow service for peer-to-peer game account sales.",
        version="0.1.0",
        lifespan=lifespan,
        debug=settings.app_debug,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # --- Middleware ---
    from account_escrow.api.middleware import setup_middleware

    setup_middleware(app)

    # --- REST API Routes ---
    from account_escrow.api.routes.admin import router as admin_router
    from account_escrow.api.routes.health import router as health_router
    from account_escrow.api.routes.listings import router as listings_router
    from account_escrow.api.routes.transactions import router as transactions_router
    from account_escrow.api.routes.users import router as users_router

    app.include_router(health_router)
    app.include_router(transactions_router)
    app.include_router(listings_router)
    app.include_router(users_router)
    app.include_router(admin_router)

    return app


# The app instance used by Uvicorn
app = create_app()
