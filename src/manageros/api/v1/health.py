"""Health check endpoints.

Provides liveness (/health) and readiness (/health/ready) checks used by the
container orchestrator to decide whether the process is alive and able to
serve traffic.
"""

from __future__ import annotations

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from src.manageros.config import get_settings
from src.manageros.core.database import get_engine
from src.manageros.core.redis import get_redis_pool

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check.

    No external dependencies are checked -- just that the server is running.
    """
    settings = get_settings()
    return {"status": "ok", "environment": settings.ENVIRONMENT.value}


async def _check_dependencies() -> dict:
    """Check database and Redis connectivity. Returns check results dict."""
    checks: dict = {"database": "ok", "redis": "ok"}

    try:
        engine = get_engine()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        checks["database"] = "error"
        checks["database_error"] = str(e)

    # Redis only carries revalidation broadcasts; absent is not a failure
    try:
        redis = get_redis_pool()
        if redis is None:
            checks["redis"] = "disabled"
        elif not await redis.ping():
            checks["redis"] = "error"
            checks["redis_error"] = "PING did not return PONG"
    except Exception as e:
        checks["redis"] = "error"
        checks["redis_error"] = str(e)

    return checks


@router.get("/health/ready")
async def readiness_check():
    """Readiness check: verifies database and Redis connectivity.

    Returns 200 if all pass, 503 if any dependency fails.
    """
    checks = await _check_dependencies()
    all_healthy = checks.get("database") == "ok" and checks.get("redis") in ("ok", "disabled")

    return JSONResponse(
        status_code=status.HTTP_200_OK if all_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if all_healthy else "degraded",
            "checks": checks,
        },
    )
