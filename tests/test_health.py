"""Tests for liveness and readiness endpoints."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from src.manageros.api.v1.health import router


def _make_app() -> FastAPI:
    app = FastAPI()
    app.include_router(router)
    return app


async def _get(path: str):
    transport = ASGITransport(app=_make_app())
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.get(path)


@pytest.mark.asyncio
async def test_liveness():
    response = await _get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_ready_without_redis(engine):
    with patch("src.manageros.api.v1.health.get_engine", return_value=engine), patch(
        "src.manageros.api.v1.health.get_redis_pool", return_value=None
    ):
        response = await _get("/health/ready")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ready",
        "checks": {"database": "ok", "redis": "disabled"},
    }


@pytest.mark.asyncio
async def test_degraded_when_redis_fails(engine):
    redis = AsyncMock()
    redis.ping.return_value = False

    with patch("src.manageros.api.v1.health.get_engine", return_value=engine), patch(
        "src.manageros.api.v1.health.get_redis_pool", return_value=redis
    ):
        response = await _get("/health/ready")

    assert response.status_code == 503
    body = response.json()
    assert body["status"] == "degraded"
    assert body["checks"]["redis"] == "error"
