"""Redis client for idempotency keys.

Usage:
    from business_escrow.infrastructure.redis_client import get_redis, close_redis

    redis = get_redis()
    await redis.set("key", "value", ex=3600)
"""

from __future__ import annotations

import redis.asyncio as aioredis

from business_escrow.config import get_settings
from business_escrow.logging_config import get_logger

logger = get_logger(__name__)

_redis_client: aioredis.Redis | None = None

IDEMPOTENCY_PREFIX = "idempotency:escrow-create:"


async def init_redis() -> aioredis.Redis:
    """Initialize and return the Redis client. Called during app startup."""
    global _redis_client
    settings = get_settings()
    _redis_client = aioredis.from_url(settings.redis_url, decode_responses=True)
    try:
        await _redis_client.ping()
    except Exception:
        await _redis_client.aclose()
        _redis_client = None
        raise
    logger.info("redis.connected")
    return _redis_client


def get_redis() -> aioredis.Redis:
    """Return the Redis client singleton. Must call init_redis() first."""
    if _redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis_client


async def close_redis() -> None:
    """Close the Redis connection. Called during app shutdown."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        logger.info("redis.disconnected")
        _redis_client = None


# --- Idempotency Helpers ---


async def claim_idempotency(key: str, value: str = "1") -> bool:
    """Atomically claim an idempotency key.

    Returns True if this caller claimed it, False if it was already used
    within the TTL window.
    """
    settings = get_settings()
    redis = get_redis()
    claimed = await redis.set(
        f"{IDEMPOTENCY_PREFIX}{key}",
        value,
        ex=settings.redis_idempotency_ttl_seconds,
        nx=True,
    )
    return bool(claimed)


async def release_idempotency(key: str) -> None:
    """Forget a claimed key so a failed operation can be retried."""
    redis = get_redis()
    await redis.delete(f"{IDEMPOTENCY_PREFIX}{key}")
