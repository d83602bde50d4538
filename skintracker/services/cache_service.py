"""
Cached page views backed by Redis.

Views are cached per viewer under ``page:<viewer>:<path>?<query>``. Membership
changes invalidate the collection, wishlist and skin detail views of the
affected user; a catalog sync invalidates those views for every user. When
Redis is disabled or unreachable every call degrades to a
cache miss / no-op, so callers never need to check availability.

Usage:
    cached = await cache_service.get_view(user_id, "/collection", query)
    ...
    await cache_service.invalidate_membership_views(user_id, skin_id)
"""

import json
import logging
import os
from typing import Optional, Any, List

from redis.asyncio import Redis

logger = logging.getLogger(__name__)

# Redis configuration from environment
REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_DB = int(os.getenv("REDIS_DB", "0"))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)
ENABLE_CACHE = os.getenv("ENABLE_CACHE", "true").lower() in ("true", "1", "yes")

# Connection settings
SOCKET_CONNECT_TIMEOUT = 2
SOCKET_TIMEOUT = 5

VIEW_TTL_SECONDS = 300
KEY_PREFIX = "page:"

# Global Redis client (singleton)
_redis_client: Optional[Redis] = None


async def get_redis_client() -> Optional[Redis]:
    """
    Get or create the Redis client singleton.

    Returns:
        Redis client or None if caching is disabled or the connection fails
    """
    global _redis_client

    if not ENABLE_CACHE:
        return None

    if _redis_client is not None:
        try:
            await _redis_client.ping()
            return _redis_client
        except Exception as e:
            logger.warning(f"Redis connection lost, recreating client: {e}")
            await close_redis_connection()

    try:
        client = Redis(
            host=REDIS_HOST,
            port=REDIS_PORT,
            db=REDIS_DB,
            password=REDIS_PASSWORD,
            decode_responses=True,
            socket_connect_timeout=SOCKET_CONNECT_TIMEOUT,
            socket_timeout=SOCKET_TIMEOUT,
        )
        await client.ping()
        _redis_client = client
        logger.info(f"Connected to Redis at {REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}")
        return _redis_client
    except Exception as e:
        logger.warning(f"Failed to connect to Redis at {REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}: {e}")
        _redis_client = None
        return None


async def close_redis_connection() -> None:
    """Close the Redis connection. Called from the API lifespan on shutdown."""
    global _redis_client

    if _redis_client is not None:
        try:
            await _redis_client.aclose()
        except Exception as e:
            logger.warning(f"Error closing Redis connection: {e}")
        finally:
            _redis_client = None


def view_key(viewer_id: Optional[str], path: str, query: str = "") -> str:
    """Cache key for one rendered view."""
    return f"{KEY_PREFIX}{viewer_id or 'anon'}:{path}?{query}"


async def get_view(viewer_id: Optional[str], path: str, query: str = "") -> Optional[Any]:
    """Return the cached JSON payload for a view, or None on miss."""
    try:
        client = await get_redis_client()
        if client:
            raw = await client.get(view_key(viewer_id, path, query))
            return json.loads(raw) if raw is not None else None
    except Exception as e:
        logger.warning(f"Redis GET error for view {path}: {e}")
    return None


async def set_view(viewer_id: Optional[str], path: str, payload: Any, query: str = "") -> bool:
    """Cache a JSON-serializable payload for a view."""
    try:
        client = await get_redis_client()
        if client:
            await client.setex(view_key(viewer_id, path, query), VIEW_TTL_SECONDS, json.dumps(payload))
            return True
    except Exception as e:
        logger.warning(f"Redis SET error for view {path}: {e}")
    return False


async def invalidate_paths(viewer_id: str, paths: List[str]) -> int:
    """
    Drop every cached variant (any query string) of the given paths.

    Returns:
        Number of keys deleted
    """
    deleted = 0
    try:
        client = await get_redis_client()
        if not client:
            return 0
        for path in paths:
            keys = [key async for key in client.scan_iter(match=f"{KEY_PREFIX}{viewer_id}:{path}?*")]
            if keys:
                deleted += await client.delete(*keys)
    except Exception as e:
        logger.warning(f"Redis invalidation error for {paths}: {e}")
    return deleted


async def invalidate_membership_views(viewer_id: str, skin_id: str) -> int:
    """Invalidate the views a collection/wishlist change can affect."""
    return await invalidate_paths(viewer_id, ["/collection", "/wishlist", f"/skins/{skin_id}"])


async def invalidate_for_all_viewers(path_patterns: List[str]) -> int:
    """
    Drop cached views matching the path patterns for every viewer.

    Args:
        path_patterns: Redis glob patterns for the ``<path>?<query>`` part of the key

    Returns:
        Number of keys deleted
    """
    deleted = 0
    try:
        client = await get_redis_client()
        if not client:
            return 0
        for pattern in path_patterns:
            keys = [key async for key in client.scan_iter(match=f"{KEY_PREFIX}*:{pattern}")]
            if keys:
                deleted += await client.delete(*keys)
    except Exception as e:
        logger.warning(f"Redis invalidation error for {path_patterns}: {e}")
    return deleted


async def invalidate_catalog_views() -> int:
    """Invalidate every view that embeds catalog data; run after a catalog sync."""
    return await invalidate_for_all_viewers(["/skins/*", "/collection?*", "/wishlist?*"])
