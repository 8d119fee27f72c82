"""Test fixtures for the meetings service.

Provides:
- A file-backed aiosqlite database per test with every table created
- A session factory matching core.database.get_session
- Two organizations (alpha, beta) with users, people, a team and an initiative
- A recording revalidator and a MeetingService wired to the real repository
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator
from dataclasses import dataclass

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool

import src.manageros.meetings.models  # noqa: F401
from src.manageros.core.context import ActorContext
from src.manageros.core.database import Base
from src.manageros.meetings.repository import MeetingRepository
from src.manageros.meetings.service import MeetingService
from src.manageros.models.shared import Organization, User
from src.manageros.models.tenant import Initiative, Person, Team


class RecordingRevalidator:
    """PathRevalidator double that records every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[str, ...]]] = []

    async def revalidate(self, organization_id: str, *paths: str) -> None:
        self.calls.append((organization_id, paths))

    @property
    def paths(self) -> list[str]:
        return [path for _, paths in self.calls for path in paths]


@dataclass
class Directory:
    """Seeded records for two organizations.

    Organization alpha:
        creator (user U1, person P1), owner (U2, P2), participant (U3, P3),
        outsider (U4, no linked person), person P4 with no user,
        a team and an initiative.
    Organization beta:
        beta_member (U5, P5), a team and an initiative.
    Plus a user with no organization.
    """

    org_id: str
    other_org_id: str
    creator: ActorContext
    owner: ActorContext
    participant: ActorContext
    outsider: ActorContext
    beta_member: ActorContext
    no_org: ActorContext
    p1: str
    p2: str
    p3: str
    p4: str
    p5: str
    team_id: str
    initiative_id: str
    other_team_id: str
    other_initiative_id: str


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Async engine over a fresh SQLite file with all tables created."""
    db_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'manageros.db'}",
        poolclass=NullPool,
    )
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield db_engine
    await db_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    """Session factory with the same shape as core.database.get_session."""

    async def factory() -> AsyncGenerator[AsyncSession, None]:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            yield session

    return factory


@pytest_asyncio.fixture
async def directory(engine) -> Directory:
    """Seed both organizations and return their identifiers."""
    ids = {name: uuid.uuid4() for name in (
        "org", "other_org",
        "u1", "u2", "u3", "u4", "u5", "u6",
        "p1", "p2", "p3", "p4", "p5",
        "team", "initiative", "other_team", "other_initiative",
    )}

    async with AsyncSession(engine, expire_on_commit=False) as session:
        session.add_all([
            Organization(id=ids["org"], name="Alpha", slug="alpha"),
            Organization(id=ids["other_org"], name="Beta", slug="beta"),
        ])
        await session.flush()
        session.add_all([
            User(id=ids["u1"], email="ada@alpha.test", name="Ada Lovelace", organization_id=ids["org"]),
            User(id=ids["u2"], email="grace@alpha.test", name="Grace Hopper", organization_id=ids["org"]),
            User(id=ids["u3"], email="alan@alpha.test", name="Alan Turing", organization_id=ids["org"]),
            User(id=ids["u4"], email="outsider@alpha.test", name="Olive Outsider", organization_id=ids["org"]),
            User(id=ids["u5"], email="bob@beta.test", name="Bob Beta", organization_id=ids["other_org"]),
            User(id=ids["u6"], email="new@nowhere.test", name="New User"),
        ])
        await session.flush()
        session.add_all([
            Person(id=ids["p1"], organization_id=ids["org"], name="Ada Lovelace",
                   email="ada@alpha.test", user_id=ids["u1"]),
            Person(id=ids["p2"], organization_id=ids["org"], name="Grace Hopper",
                   email="grace@alpha.test", user_id=ids["u2"]),
            Person(id=ids["p3"], organization_id=ids["org"], name="Alan Turing",
                   email="alan@alpha.test", user_id=ids["u3"]),
            Person(id=ids["p4"], organization_id=ids["org"], name="Katherine Johnson",
                   email=None),
            Person(id=ids["p5"], organization_id=ids["other_org"], name="Bob Beta",
                   email="bob@beta.test", user_id=ids["u5"]),
            Team(id=ids["team"], organization_id=ids["org"], name="Platform"),
            Initiative(id=ids["initiative"], organization_id=ids["org"], title="Q4 Launch"),
            Team(id=ids["other_team"], organization_id=ids["other_org"], name="Beta Team"),
            Initiative(id=ids["other_initiative"], organization_id=ids["other_org"], title="Beta Plan"),
        ])
        await session.commit()

    org = str(ids["org"])
    other_org = str(ids["other_org"])
    return Directory(
        org_id=org,
        other_org_id=other_org,
        creator=ActorContext(user_id=str(ids["u1"]), organization_id=org, person_id=str(ids["p1"])),
        owner=ActorContext(user_id=str(ids["u2"]), organization_id=org, person_id=str(ids["p2"])),
        participant=ActorContext(user_id=str(ids["u3"]), organization_id=org, person_id=str(ids["p3"])),
        outsider=ActorContext(user_id=str(ids["u4"]), organization_id=org),
        beta_member=ActorContext(
            user_id=str(ids["u5"]), organization_id=other_org, person_id=str(ids["p5"])
        ),
        no_org=ActorContext(user_id=str(ids["u6"])),
        p1=str(ids["p1"]),
        p2=str(ids["p2"]),
        p3=str(ids["p3"]),
        p4=str(ids["p4"]),
        p5=str(ids["p5"]),
        team_id=str(ids["team"]),
        initiative_id=str(ids["initiative"]),
        other_team_id=str(ids["other_team"]),
        other_initiative_id=str(ids["other_initiative"]),
    )


@pytest_asyncio.fixture
async def repository(session_factory) -> MeetingRepository:
    return MeetingRepository(session_factory=session_factory)


@pytest_asyncio.fixture
async def revalidator() -> RecordingRevalidator:
    return RecordingRevalidator()


@pytest_asyncio.fixture
async def service(repository, revalidator) -> MeetingService:
    return MeetingService(repository=repository, revalidator=revalidator)
