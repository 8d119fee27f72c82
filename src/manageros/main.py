"""FastAPI application factory.

Creates the app with logging middleware, metrics middleware, CORS, Sentry,
lifespan events for database initialization and the meeting service wiring,
and the v1 API router.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import Response

from src.manageros.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.manageros.api.v1.router import router as v1_router
from src.manageros.config import get_settings
from src.manageros.core.database import close_db, get_session, init_db
from src.manageros.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry
from src.manageros.core.redis import close_redis, get_redis_pool
from src.manageros.core.revalidation import PathRevalidator
from src.manageros.meetings.repository import MeetingRepository
from src.manageros.meetings.service import MeetingService


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: init DB, Sentry and services on startup, close on shutdown."""
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()
    await init_db()

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    # ── Meetings ─────────────────────────────────────────────────────────
    redis_client = get_redis_pool()
    revalidator = PathRevalidator(
        redis_client=redis_client,
        channel=settings.REVALIDATION_CHANNEL,
    )
    repository = MeetingRepository(session_factory=get_session)
    app.state.meeting_repository = repository
    app.state.meeting_service = MeetingService(repository=repository, revalidator=revalidator)
    log.info(
        "meetings.service_initialized",
        revalidation="redis" if redis_client is not None else "log_only",
    )

    yield

    app.state.meeting_service = None
    await close_redis()
    await close_db()
    log.info("app.shutdown_complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="ManagerOS API",
        version="0.1.0",
        description="Meetings, meeting instances and participants for ManagerOS organizations",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)

    # CORS middleware
    if settings.CORS_ALLOWED_ORIGINS == "*":
        origins = ["*"]
    else:
        origins = [o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    app.include_router(v1_router)

    # Prometheus metrics endpoint (infrastructure route, outside v1 router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
