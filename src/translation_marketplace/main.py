"""FastAPI application entry point for the translation marketplace.

Lifecycle:
    1. Startup: Initialize logging, database, Redis and the event relay.
    2. Running: Serve the REST API under /api/v1 and the push channel under /ws.
    3. Shutdown: Stop the relay, close database and Redis connections.

Run with:
    uvicorn translation_marketplace.main:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from translation_marketplace import __version__
from translation_marketplace.config import get_settings
from translation_marketplace.logging_config import get_logger, setup_logging

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
    logger.info("app.starting", env=settings.app_env, debug=settings.app_debug)

    # 2. Initialize database
    from translation_marketplace.infrastructure.database.engine import close_db, init_db

    await init_db()

    # 3. Initialize Redis and the cross-process event relay
    from redis.exceptions import RedisError

    from translation_marketplace.infrastructure.redis_client import close_redis, init_redis
    from translation_marketplace.notifications.gateway import get_notification_gateway

    gateway = get_notification_gateway()
    if settings.redis_events_enabled:
        try:
            await init_redis()
            await gateway.start_relay()
        except (RedisError, OSError) as exc:
            logger.warning("app.redis_unavailable", error=str(exc))

    logger.info("app.started", host=settings.app_host, port=settings.app_port)

    yield

    # Shutdown
    logger.info("app.shutting_down")
    await gateway.stop_relay()
    await close_db()
    await close_redis()
    logger.info("app.stopped")


def create_app() -> FastAPI:
    """Application factory: creates and configures the FastAPI app."""
    settings = get_settings()

    app = FastAPI(
        title="Translation Marketplace",
        description=(
            "Workflow service for book translation requests, applications, "
            "contracts, milestones and escrow."
        ),
        version=__version__,
        lifespan=lifespan,
        debug=settings.app_debug,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # --- Middleware ---
    from translation_marketplace.api.middleware import setup_middleware

    setup_middleware(app)

    # --- Routes ---
    from translation_marketplace.api.routes.applications import router as applications_router
    from translation_marketplace.api.routes.contracts import router as contracts_router
    from translation_marketplace.api.routes.escrows import router as escrows_router
    from translation_marketplace.api.routes.health import router as health_router
    from translation_marketplace.api.routes.milestones import router as milestones_router
    from translation_marketplace.api.routes.requests import router as requests_router
    from translation_marketplace.api.routes.ws import router as ws_router

    app.include_router(health_router)
    app.include_router(requests_router)
    app.include_router(applications_router)
    app.include_router(contracts_router)
    app.include_router(milestones_router)
    app.include_router(escrows_router)
    app.include_router(ws_router)

    return app


# The app instance used by Uvicorn
app = create_app()
