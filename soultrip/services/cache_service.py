"""
Redis caching for the published tour listing.

CACHING STRATEGY
================

What we cache:
  - Published tour listing responses (one page, JSON-serialized), including
    each card's current_bookings and is_sold_out
  - Key pattern: "tours:list:{filters}&page={page}&size={size}"

Invalidation:
  - Any committed tour create/update/delete, and every successful book or
    cancel, removes every "tours:list:*" key
  - TTL-based expiry as safety net (REDIS_CACHE_TTL)

What we do NOT cache:
  - The booking panel (capacity and "my booking"). It always reads live
    rows; the listing flag is for display only and never gates a booking.

Redis is optional. When it is disabled or unreachable every function here
degrades to a no-op and the listing is served from the database.
"""

import json
from typing import Optional

import redis.asyncio as redis

from soultrip.core.config import get_settings
from soultrip.core.logging import get_logger
from soultrip.core.metrics import record_cache_operation
from soultrip.schemas.tour import TourFilters

logger = get_logger(__name__)
settings = get_settings()

TOUR_LIST_PREFIX = "tours:list:"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except (redis.RedisError, OSError) as e:
            logger.error("redis_connection_failed", error=str(e))
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def make_tour_list_key(filters: TourFilters, page: int, page_size: int) -> str:
    # sort_keys keeps the key stable regardless of query parameter order
    filter_part = json.dumps(
        filters.model_dump(mode="json", exclude_defaults=False),
        sort_keys=True,
        separators=(",", ":"),
    )
    return f"{TOUR_LIST_PREFIX}{filter_part}&page={page}&size={page_size}"


async def get_cached_tours(filters: TourFilters, page: int, page_size: int) -> Optional[dict]:
    """Retrieve a cached listing page."""
    client = await get_redis()
    if not client:
        return None

    key = make_tour_list_key(filters, page, page_size)
    try:
        data = await client.get(key)
    except (redis.RedisError, OSError) as e:
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    record_cache_operation("get", hit=data is not None)
    if data is None:
        logger.debug("cache_miss", key=key)
        return None
    logger.debug("cache_hit", key=key)
    return json.loads(data)


async def set_cached_tours(filters: TourFilters, page: int, page_size: int, data: dict) -> None:
    """Cache a listing page with TTL."""
    client = await get_redis()
    if not client:
        return

    key = make_tour_list_key(filters, page, page_size)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except (redis.RedisError, OSError) as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_tour_cache() -> None:
    """Drop every cached listing page (SCAN over the key prefix)."""
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{TOUR_LIST_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except (redis.RedisError, OSError) as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
    except (redis.RedisError, OSError) as e:
        return {"status": "error", "error": str(e)}

    hits = info.get("keyspace_hits", 0)
    misses = info.get("keyspace_misses", 0)
    return {
        "status": "connected",
        "hits": hits,
        "misses": misses,
        "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
    }
