"""Prometheus metrics and Sentry integration.

Provides:
- MetricsMiddleware: ASGI middleware for HTTP request metrics
- meeting_actions_total: Counter of meeting actions by outcome
- track_meeting_action(): Context manager recording one action outcome
- init_sentry(): Initialize Sentry with organization-aware before_send
- get_metrics_response(): Response body for /metrics
"""

from __future__ import annotations

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from contextvars import ContextVar

import structlog
from prometheus_client import (
    REGISTRY,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger(__name__)

# Organization of the action currently running, read by the Sentry hook
current_organization_id: ContextVar[str | None] = ContextVar(
    "current_organization_id", default=None
)

# ── HTTP Metrics ─────────────────────────────────────────────────────────────

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Domain Metrics ───────────────────────────────────────────────────────────

meeting_actions_total = Counter(
    "meeting_actions_total",
    "Meeting actions by outcome",
    ["action", "outcome"],
)


# ── Metrics Middleware ───────────────────────────────────────────────────────


class MetricsMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that records Prometheus metrics for every HTTP request.

    Uses the matched route pattern as the endpoint label so ids in paths do
    not blow up cardinality. Skips the /metrics endpoint itself.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        route = request.scope.get("route")
        endpoint = getattr(route, "path", None) or request.url.path

        http_requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=str(response.status_code),
        ).inc()

        http_request_duration_seconds.labels(
            method=request.method,
            endpoint=endpoint,
        ).observe(duration)

        return response


# ── Meeting Action Helper ───────────────────────────────────────────────────


@asynccontextmanager
async def track_meeting_action(
    action: str,
    organization_id: str | None,
) -> AsyncGenerator[None, None]:
    """Record the outcome of one meeting action.

    Usage:
        async with track_meeting_action("create_meeting", actor.organization_id):
            ...

    Increments meeting_actions_total with outcome "success" or "error" and
    logs failures at warning level with the action and organization.
    """
    token = current_organization_id.set(organization_id)
    outcome = "success"
    try:
        yield
    except Exception as exc:
        outcome = "error"
        logger.warning(
            "meetings.action_failed",
            action=action,
            organization_id=organization_id,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        raise
    finally:
        meeting_actions_total.labels(action=action, outcome=outcome).inc()
        current_organization_id.reset(token)


# ── Sentry Integration ───────────────────────────────────────────────────────


def init_sentry(dsn: str, environment: str) -> None:
    """Initialize Sentry SDK with organization-aware event tagging.

    Args:
        dsn: Sentry DSN string.
        environment: Deployment environment (development, staging, production).
    """
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.starlette import StarletteIntegration

    traces_sample_rate = 0.1 if environment == "production" else 1.0

    def before_send(event: dict, hint: dict) -> dict:
        """Add organization context to Sentry events."""
        organization_id = current_organization_id.get()
        if organization_id:
            event.setdefault("tags", {})["organization_id"] = organization_id
        return event

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=traces_sample_rate,
        integrations=[
            StarletteIntegration(),
            FastApiIntegration(),
        ],
        before_send=before_send,
    )


# ── Metrics Endpoint ─────────────────────────────────────────────────────────


def get_metrics_response() -> Response:
    """Generate Prometheus exposition format response."""
    return Response(
        content=generate_latest(REGISTRY),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
