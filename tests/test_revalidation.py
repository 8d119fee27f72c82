"""Tests for stale-path revalidation and meeting action metrics.

Tests cover:
- PathRevalidator log-only mode without Redis
- Organization-scoped cache key deletion and pub/sub broadcast
- organization_key format
- track_meeting_action outcome counting and error propagation
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest
from prometheus_client import REGISTRY

from src.manageros.core.monitoring import current_organization_id, track_meeting_action
from src.manageros.core.redis import organization_key
from src.manageros.core.revalidation import PathRevalidator


def _action_count(action: str, outcome: str) -> float:
    value = REGISTRY.get_sample_value(
        "meeting_actions_total", {"action": action, "outcome": outcome}
    )
    return value or 0.0


# ── PathRevalidator ──────────────────────────────────────────────────────────


class TestPathRevalidator:
    """Redis-backed and log-only revalidation."""

    def test_organization_key(self):
        assert organization_key("org-1", "page:/meetings") == "t:org-1:page:/meetings"

    @pytest.mark.asyncio
    async def test_without_redis_only_logs(self):
        revalidator = PathRevalidator()

        # Must not raise without a client
        await revalidator.revalidate("org-1", "/meetings", "/meetings/m-1")

    @pytest.mark.asyncio
    async def test_deletes_keys_and_publishes(self):
        redis = AsyncMock()
        revalidator = PathRevalidator(redis_client=redis, channel="pages")

        await revalidator.revalidate("org-1", "/meetings", "/meetings/m-1")

        redis.delete.assert_awaited_once_with(
            "t:org-1:page:/meetings", "t:org-1:page:/meetings/m-1"
        )
        redis.publish.assert_awaited_once()
        channel, message = redis.publish.await_args.args
        assert channel == "pages"
        assert json.loads(message) == {
            "organization_id": "org-1",
            "paths": ["/meetings", "/meetings/m-1"],
        }

    @pytest.mark.asyncio
    async def test_no_paths_skips_redis(self):
        redis = AsyncMock()
        revalidator = PathRevalidator(redis_client=redis)

        await revalidator.revalidate("org-1")

        redis.delete.assert_not_awaited()
        redis.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_redis_errors_propagate(self):
        redis = AsyncMock()
        redis.delete.side_effect = ConnectionError("redis down")
        revalidator = PathRevalidator(redis_client=redis)

        with pytest.raises(ConnectionError):
            await revalidator.revalidate("org-1", "/meetings")


# ── track_meeting_action ─────────────────────────────────────────────────────


class TestTrackMeetingAction:
    """Outcome counter and organization context."""

    @pytest.mark.asyncio
    async def test_success_counted(self):
        before = _action_count("test_success_action", "success")

        async with track_meeting_action("test_success_action", "org-1"):
            assert current_organization_id.get() == "org-1"

        assert _action_count("test_success_action", "success") == before + 1
        assert current_organization_id.get() is None

    @pytest.mark.asyncio
    async def test_error_counted_and_reraised(self):
        before = _action_count("test_error_action", "error")

        with pytest.raises(RuntimeError, match="boom"):
            async with track_meeting_action("test_error_action", "org-1"):
                raise RuntimeError("boom")

        assert _action_count("test_error_action", "error") == before + 1
        assert _action_count("test_error_action", "success") == 0.0
