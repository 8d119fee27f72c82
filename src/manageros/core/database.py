"""Async SQLAlchemy engine, declarative base, and session factory.

Provides:
- Base: Declarative base for every ManagerOS table
- get_session(): AsyncSession generator used as a repository session factory
- init_db() / close_db(): lifespan hooks

Tenancy is row-level: every organization-owned table carries an
organization_id column and every query filters on it.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timezone

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from src.manageros.config import get_settings

# ── Module-level engine (lazy init) ────────────────────────────────────────

_engine: AsyncEngine | None = None


def get_engine() -> AsyncEngine:
    """Get or create the async engine singleton."""
    global _engine
    if _engine is None:
        settings = get_settings()
        if settings.DATABASE_URL.startswith("sqlite"):
            _engine = create_async_engine(settings.DATABASE_URL, echo=False)
        else:
            _engine = create_async_engine(
                settings.DATABASE_URL,
                pool_size=settings.DB_POOL_SIZE,
                max_overflow=settings.DB_MAX_OVERFLOW,
                pool_pre_ping=True,
                echo=False,
            )
    return _engine


# ── Declarative Base ────────────────────────────────────────────────────────

naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Base class for all ManagerOS models."""

    metadata = MetaData(naming_convention=naming_convention)


def utcnow() -> datetime:
    """Timezone-aware now, used as the Python-side timestamp default."""
    return datetime.now(timezone.utc)


def parse_uuid(value: str | uuid.UUID | None) -> uuid.UUID | None:
    """Parse a client-supplied identifier, returning None when malformed.

    Callers treat None as "no such record", so a garbage id produces the
    same not-found outcome as an unknown one.
    """
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


# ── Session Factory ─────────────────────────────────────────────────────────


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an AsyncSession bound to the module engine."""
    engine = get_engine()
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session


# ── Database Initialization ─────────────────────────────────────────────────


async def init_db() -> None:
    """Create all tables if they don't exist (development convenience).

    Production schemas are managed by Alembic; create_all is a no-op for
    tables that already exist.
    """
    # Register every model on Base.metadata before create_all
    import src.manageros.meetings.models  # noqa: F401
    import src.manageros.models.shared  # noqa: F401
    import src.manageros.models.tenant  # noqa: F401

    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of the engine and close all connections."""
    global _engine
    if _engine:
        await _engine.dispose()
        _engine = None
