"""Stale-path revalidation after meeting writes.

Every successful write marks the meetings list page and the affected meeting
detail page stale. PathRevalidator always logs the paths; when a Redis client
is configured it also drops the cached page keys for the organization and
publishes the paths on REVALIDATION_CHANNEL for rendering workers.
"""

from __future__ import annotations

import json

import redis.asyncio as aioredis
import structlog

from src.manageros.core.redis import organization_key

logger = structlog.get_logger(__name__)


class PathRevalidator:
    """Marks rendered page paths stale.

    Args:
        redis_client: Optional async Redis client. Without one the
            revalidator only logs.
        channel: Pub/sub channel receiving invalidation messages.
    """

    def __init__(
        self,
        redis_client: aioredis.Redis | None = None,
        channel: str = "revalidate",
    ) -> None:
        self._redis = redis_client
        self._channel = channel

    async def revalidate(self, organization_id: str, *paths: str) -> None:
        """Invalidate the given page paths for an organization."""
        logger.info(
            "revalidation.paths_stale",
            organization_id=organization_id,
            paths=list(paths),
        )
        if self._redis is None or not paths:
            return

        keys = [organization_key(organization_id, f"page:{path}") for path in paths]
        await self._redis.delete(*keys)
        await self._redis.publish(
            self._channel,
            json.dumps({"organization_id": organization_id, "paths": list(paths)}),
        )
