"""Redis client for idempotency keys.

Usage:
    from account_escrow.infrastructure.redis_client import get_redis, close_redis

    redis = get_redis()
    await redis.set("key", "value", ex=3600)

Redis is optional: when it cannot be reached at startup the application
runs without duplicate-request protection.
"""

from __future__ import annotations

import redis.asyncio as aioredis

from account_escrow.config import get_settings
from account_escrow.domain.exceptions import DuplicateOperationError
from account_escrow.logging_config import get_logger

logger = get_logger(__name__)

_redis_client: aioredis.Redis | None = None


async def init_redis() -> aioredis.Redis:
    """Initialize and return the Redis client. Called during app startup."""
    global _redis_client
    settings = get_settings()
    client = aioredis.from_url(
        settings.redis_url,
        decode_responses=True,
    )
    # Verify connectivity
    await client.ping()
    _redis_client = client
    logger.info("redis.connected", url=settings.redis_url)
    return _redis_client


def get_redis() -> aioredis.Redis:
    """Return the Redis client singleton. Must call init_redis() first."""
    if _redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis_client


def is_redis_available() -> bool:
    return _redis_client is not None


async def close_redis() -> None:
    """Close the Redis connection. Called during app shutdown."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        logger.info("redis.disconnected")
        _redis_client = None


# --- Idempotency Helpers ---


async def claim_idempotency(redis: aioredis.Redis, key: str, ttl_seconds: int) -> None:
    """Reserve an idempotency key, or fail if it was already used.

    Raises:
        DuplicateOperationError: If the key exists.
    """
    created = await redis.set(f"idempotency:{key}", "1", ex=ttl_seconds, nx=True)
    if not created:
        logger.warning("idempotency.duplicate", key=key)
        raise DuplicateOperationError(key)


async def release_idempotency(redis: aioredis.Redis, key: str) -> None:
    """Forget a key so a failed request can be retried with it."""
    await redis.delete(f"idempotency:{key}")
