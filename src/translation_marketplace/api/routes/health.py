"""Health check endpoint.

Verifies connectivity to the database and Redis and reports the number of
open push-channel subscriptions.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from translation_marketplace import __version__
from translation_marketplace.api.deps import get_gateway
from translation_marketplace.infrastructure.database.engine import get_engine
from translation_marketplace.infrastructure.redis_client import get_redis
from translation_marketplace.logging_config import get_logger
from translation_marketplace.notifications.gateway import NotificationGateway
from translation_marketplace.schemas.common import HealthResponse

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns the health status of the application and its dependencies.",
)
async def health_check(
    gateway: NotificationGateway = Depends(get_gateway),
) -> HealthResponse:
    """Check connectivity to the database and Redis."""
    from redis.exceptions import RedisError

    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        db_status = "healthy"
    except (SQLAlchemyError, OSError) as exc:
        db_status = f"unhealthy: {exc}"
        logger.error("health.db_check_failed", error=str(exc))

    try:
        await get_redis().ping()
        redis_status = "healthy"
    except RuntimeError:
        redis_status = "disabled"
    except (RedisError, OSError) as exc:
        redis_status = f"unhealthy: {exc}"
        logger.error("health.redis_check_failed", error=str(exc))

    overall = (
        "ok" if db_status == "healthy" and redis_status in ("healthy", "disabled") else "degraded"
    )
    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        redis=redis_status,
        subscribers=gateway.subscriber_count,
    )
