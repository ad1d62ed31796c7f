"""FastAPI application entry point for the business escrow service.

Lifecycle:
    1. Startup: Initialize logging, database, Redis, create tables (dev mode).
    2. Running: Serve the escrow, fee and migration REST API.
    3. Shutdown: Close database and Redis connections gracefully.

Run with:
    uvicorn business_escrow.main:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from business_escrow import __version__
from business_escrow.config import get_settings
from business_escrow.logging_config import get_logger, setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


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
        platform_fee_percent=str(settings.platform_fee_percent),
    )

    # 2. Initialize database
    from business_escrow.infrastructure.database.engine import close_db, init_db

    await init_db()

    # 3. Initialize Redis (optional: only idempotency keys depend on it)
    from business_escrow.infrastructure.redis_client import close_redis, init_redis

    try:
        await init_redis()
    except Exception as exc:
        logger.warning("app.redis_unavailable", error=str(exc))

    logger.info("app.started", host=settings.app_host, port=settings.app_port)

    yield

    # Shutdown
    logger.info("app.shutting_down")
    await close_db()
    await close_redis()
    logger.info("app.stopped")


def create_app() -> FastAPI:
    """Application factory — creates and configures the FastAPI app."""
    settings = get_settings()

    app = FastAPI(
        title="Business Escrow",
        description=(
            "Escrow transactions, platform fees and dual-confirmed migration "
            "checklists for online business sales."
        ),
        version=__version__,
        lifespan=lifespan,
        debug=settings.app_debug,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # --- Middleware ---
    from business_escrow.api.middleware import setup_middleware

    setup_middleware(app)

    # --- REST API Routes ---
    from business_escrow.api.routes.escrow import router as escrow_router
    from business_escrow.api.routes.fees import router as fees_router
    from business_escrow.api.routes.health import router as health_router
    from business_escrow.api.routes.migration import router as migration_router

    app.include_router(health_router)
    app.include_router(escrow_router)
    app.include_router(fees_router)
    app.include_router(migration_router)

    return app


# The app instance used by Uvicorn
app = create_app()
