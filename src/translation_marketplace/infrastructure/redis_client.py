"""Redis client for the cross-process workflow event relay.

Each API worker publishes the events it produced to one pub/sub channel and
re-delivers events published by other workers to its local subscribers.

Usage:
    from translation_marketplace.infrastructure.redis_client import get_redis, close_redis

    redis = get_redis()
    await publish_event_payload('{"entity_type": "contract", ...}')
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import redis.asyncio as aioredis

from translation_marketplace.config import get_settings
from translation_marketplace.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = get_logger(__name__)

_redis_client: aioredis.Redis | None = None


async def init_redis() -> aioredis.Redis:
    """Initialize and return the Redis client. Called during app startup."""
    global _redis_client
    settings = get_settings()
    _redis_client = aioredis.from_url(
        settings.redis_url,
        decode_responses=True,
    )
    # Verify connectivity
    await _redis_client.ping()
    logger.info("redis.connected", url=settings.redis_url)
    return _redis_client


def get_redis() -> aioredis.Redis:
    """Return the Redis client singleton. Must call init_redis() first."""
    if _redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis_client


def redis_available() -> bool:
    return _redis_client is not None


async def close_redis() -> None:
    """Close the Redis connection. Called during app shutdown."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        logger.info("redis.disconnected")
        _redis_client = None


# --- Event relay helpers ---


async def publish_event_payload(payload: str) -> int:
    """Publish one serialized event to the relay channel.

    Returns the number of processes that received it.
    """
    settings = get_settings()
    return await get_redis().publish(settings.redis_events_channel, payload)


async def iter_event_payloads() -> AsyncIterator[str]:
    """Yield serialized events from the relay channel until cancelled."""
    settings = get_settings()
    pubsub = get_redis().pubsub()
    await pubsub.subscribe(settings.redis_events_channel)
    logger.info("redis.relay_subscribed", channel=settings.redis_events_channel)
    try:
        async for message in pubsub.listen():
            if message.get("type") == "message":
                yield message["data"]
    finally:
        await pubsub.unsubscribe(settings.redis_events_channel)
        await pubsub.aclose()
