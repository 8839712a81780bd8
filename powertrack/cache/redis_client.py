"""
Redis client for cache operations.

Provides helpers for creating Redis connections and for the latest buying
price cache served by GET /consumer/buyingPrice. All cache operations are
best-effort: connection failures are logged but never propagate, so neither
reads nor ingestion are blocked by cache infrastructure issues.

CHANGELOG:
- 2026-04-12: Cache latest buying price, invalidate on selling price ingest (STORY-011)
- 2026-04-02: Initial creation (STORY-001)
"""

import json
import logging

import redis.asyncio as redis

from powertrack.config import get_settings

logger = logging.getLogger(__name__)

BUYING_PRICE_KEY = "buying_price:latest"


async def get_redis() -> redis.Redis:
    """Create and return an async Redis client from settings.

    Returns:
        redis.Redis: Async Redis client.
    """
    return redis.from_url(get_settings().redis_url)


async def get_cached_buying_price() -> dict | None:
    """Return the cached latest buying price, or None on miss or failure."""
    try:
        client = await get_redis()
        try:
            cached = await client.get(BUYING_PRICE_KEY)
        finally:
            await client.aclose()
    except Exception:
        logger.warning(
            "Redis read failed for key %s, falling back to DB",
            BUYING_PRICE_KEY,
            exc_info=True,
        )
        return None
    if cached is None:
        return None
    return json.loads(cached)


async def cache_buying_price(payload: dict, ttl_s: int) -> None:
    """Store the latest buying price with a TTL (best-effort).

    Args:
        payload: JSON-serialisable ``{date, amount}`` dict.
        ttl_s: Expiry in seconds.
    """
    try:
        client = await get_redis()
        try:
            await client.set(BUYING_PRICE_KEY, json.dumps(payload), ex=ttl_s)
        finally:
            await client.aclose()
    except Exception:
        logger.warning(
            "Redis write failed for key %s",
            BUYING_PRICE_KEY,
            exc_info=True,
        )


async def invalidate_buying_price() -> None:
    """Delete the cached latest buying price.

    Called after a new selling price sample is stored. Best-effort: if Redis
    is unavailable the entry simply expires after its TTL.
    """
    try:
        client = await get_redis()
        try:
            await client.delete(BUYING_PRICE_KEY)
        finally:
            await client.aclose()
    except Exception:
        logger.warning(
            "Failed to invalidate cache key %s",
            BUYING_PRICE_KEY,
            exc_info=True,
        )
