"""Redis connection pool used for page revalidation broadcasts.

Keys written by the rendering tier are namespaced t:{organization_id}: so one
organization's invalidations never touch another organization's cache.
"""

from __future__ import annotations

import redis.asyncio as aioredis

from src.manageros.config import get_settings

# ── Module-level Redis pool (lazy init) ─────────────────────────────────────

_redis_pool: aioredis.Redis | None = None


def get_redis_pool() -> aioredis.Redis | None:
    """Get or create the Redis connection pool singleton.

    Returns None when REDIS_URL is not configured.
    """
    global _redis_pool
    if _redis_pool is None:
        settings = get_settings()
        if not settings.REDIS_URL:
            return None
        _redis_pool = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )
    return _redis_pool


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_pool
    if _redis_pool:
        await _redis_pool.aclose()
        _redis_pool = None


def organization_key(organization_id: str, key: str) -> str:
    """Generate an organization-prefixed key: t:{organization_id}:{key}."""
    return f"t:{organization_id}:{key}"
