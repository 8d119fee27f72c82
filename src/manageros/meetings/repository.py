"""Meeting repository -- async CRUD for meetings, instances, and participants.

Provides MeetingRepository with the session_factory callable pattern: each
public method opens one AsyncSession, performs its reads and writes, and
commits once, so multi-row writes (meeting plus participants, participant
replacement, cascading deletes) are single transactions.

Responses are composed by DTO builder helpers from narrow, batched queries
instead of ORM relationship loading. All organization-owned lookups take
organization_id as first argument and filter on it.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable, Iterable, Sequence
from enum import Enum
from typing import Any

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.manageros.core.context import ActorContext
from src.manageros.core.database import parse_uuid
from src.manageros.core.errors import ParticipantConflictError
from src.manageros.meetings.access import instance_visibility, meeting_visibility
from src.manageros.meetings.models import (
    MeetingInstanceModel,
    MeetingInstanceParticipantModel,
    MeetingModel,
    MeetingParticipantModel,
)
from src.manageros.meetings.schemas import (
    InitiativeRef,
    Meeting,
    MeetingCreate,
    MeetingDetail,
    MeetingInstance,
    MeetingInstanceCreate,
    MeetingInstanceDetail,
    MeetingInstanceParticipant,
    MeetingParticipant,
    ParticipantInput,
    ParticipantStatus,
    PersonRef,
    RecurrenceType,
    TeamRef,
    UserRef,
)
from src.manageros.models.shared import User
from src.manageros.models.tenant import Initiative, Person, Team

logger = structlog.get_logger(__name__)

# Columns that hold references to other records and arrive as string ids
_REFERENCE_COLUMNS = frozenset({"team_id", "initiative_id", "owner_id"})


# ── Serialization Helpers ───────────────────────────────────────────────────


def _column_value(column: str, value: Any) -> Any:
    """Convert a schema value into what the ORM column stores."""
    if column in _REFERENCE_COLUMNS:
        return parse_uuid(value)
    if isinstance(value, Enum):
        return value.value
    return value


def _person_to_ref(person: Person) -> PersonRef:
    return PersonRef(id=str(person.id), name=person.name, email=person.email)


def _missing_person(person_id: uuid.UUID) -> PersonRef:
    # Person rows are deleted with ON DELETE CASCADE, so this only shows up
    # inside a concurrent delete window.
    return PersonRef(id=str(person_id), name="Unknown")


def _model_to_meeting(
    model: MeetingModel,
    teams: dict[uuid.UUID, TeamRef],
    initiatives: dict[uuid.UUID, InitiativeRef],
    people: dict[uuid.UUID, PersonRef],
    users: dict[uuid.UUID, UserRef],
) -> Meeting:
    """Convert MeetingModel plus preloaded references to a Meeting DTO."""
    return Meeting(
        id=str(model.id),
        organization_id=str(model.organization_id),
        title=model.title,
        description=model.description,
        scheduled_at=model.scheduled_at,
        duration=model.duration,
        location=model.location,
        notes=model.notes,
        is_recurring=model.is_recurring,
        recurrence_type=RecurrenceType(model.recurrence_type) if model.recurrence_type else None,
        is_private=model.is_private,
        team_id=str(model.team_id) if model.team_id else None,
        initiative_id=str(model.initiative_id) if model.initiative_id else None,
        owner_id=str(model.owner_id) if model.owner_id else None,
        created_by_id=str(model.created_by_id),
        team=teams.get(model.team_id) if model.team_id else None,
        initiative=initiatives.get(model.initiative_id) if model.initiative_id else None,
        owner=people.get(model.owner_id) if model.owner_id else None,
        created_by=users.get(model.created_by_id),
        created_at=model.created_at,
        updated_at=model.updated_at or model.created_at,
    )


def _model_to_meeting_participant(
    model: MeetingParticipantModel, person: PersonRef
) -> MeetingParticipant:
    return MeetingParticipant(
        id=str(model.id),
        meeting_id=str(model.meeting_id),
        person_id=str(model.person_id),
        status=ParticipantStatus(model.status),
        person=person,
    )


def _model_to_instance_participant(
    model: MeetingInstanceParticipantModel, person: PersonRef
) -> MeetingInstanceParticipant:
    return MeetingInstanceParticipant(
        id=str(model.id),
        meeting_instance_id=str(model.meeting_instance_id),
        person_id=str(model.person_id),
        status=ParticipantStatus(model.status),
        person=person,
    )


def _unique(values: Iterable[uuid.UUID | None]) -> list[uuid.UUID]:
    return list({v for v in values if v is not None})


# ── Repository ──────────────────────────────────────────────────────────────


class MeetingRepository:
    """Async persistence for the meetings domain.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    # ── Directory Lookups ────────────────────────────────────────────────

    async def get_team(self, organization_id: str, team_id: str) -> TeamRef | None:
        """Get a team of the organization, or None."""
        tid = parse_uuid(team_id)
        if tid is None:
            return None
        async for session in self._session_factory():
            stmt = select(Team).where(
                Team.organization_id == uuid.UUID(organization_id),
                Team.id == tid,
            )
            team = (await session.execute(stmt)).scalar_one_or_none()
            return TeamRef(id=str(team.id), name=team.name) if team else None

    async def get_initiative(
        self, organization_id: str, initiative_id: str
    ) -> InitiativeRef | None:
        """Get an initiative of the organization, or None."""
        iid = parse_uuid(initiative_id)
        if iid is None:
            return None
        async for session in self._session_factory():
            stmt = select(Initiative).where(
                Initiative.organization_id == uuid.UUID(organization_id),
                Initiative.id == iid,
            )
            initiative = (await session.execute(stmt)).scalar_one_or_none()
            if initiative is None:
                return None
            return InitiativeRef(id=str(initiative.id), title=initiative.title)

    async def get_person(self, organization_id: str, person_id: str) -> PersonRef | None:
        """Get a person of the organization, or None."""
        pid = parse_uuid(person_id)
        if pid is None:
            return None
        async for session in self._session_factory():
            stmt = select(Person).where(
                Person.organization_id == uuid.UUID(organization_id),
                Person.id == pid,
            )
            person = (await session.execute(stmt)).scalar_one_or_none()
            return _person_to_ref(person) if person else None

    async def find_missing_people(
        self, organization_id: str, person_ids: Sequence[str]
    ) -> list[str]:
        """Return the ids from person_ids that are not people of the organization."""
        parsed = {pid: parse_uuid(pid) for pid in person_ids}
        candidates = _unique(parsed.values())
        found: set[uuid.UUID] = set()
        if candidates:
            async for session in self._session_factory():
                stmt = select(Person.id).where(
                    Person.organization_id == uuid.UUID(organization_id),
                    Person.id.in_(candidates),
                )
                found = set((await session.execute(stmt)).scalars().all())
        return [pid for pid, value in parsed.items() if value is None or value not in found]

    async def list_active_people(self, organization_id: str) -> list[PersonRef]:
        """List active people of the organization (ICS attendee matching)."""
        async for session in self._session_factory():
            stmt = (
                select(Person)
                .where(
                    Person.organization_id == uuid.UUID(organization_id),
                    Person.status == "active",
                )
                .order_by(Person.name)
            )
            people = (await session.execute(stmt)).scalars().all()
            return [_person_to_ref(p) for p in people]

    # ── Meetings ─────────────────────────────────────────────────────────

    async def create_meeting(
        self, organization_id: str, created_by_id: str, data: MeetingCreate
    ) -> MeetingDetail:
        """Create a meeting and its initial participant rows in one transaction.

        Args:
            organization_id: Organization UUID string.
            created_by_id: UUID string of the creating user.
            data: Validated MeetingCreate. References must already be
                authorized by the caller.

        Returns:
            MeetingDetail with relations expanded.
        """
        async for session in self._session_factory():
            model = MeetingModel(
                organization_id=uuid.UUID(organization_id),
                title=data.title,
                description=data.description,
                scheduled_at=data.scheduled_at,
                duration=data.duration,
                location=data.location,
                notes=data.notes,
                is_recurring=data.is_recurring,
                recurrence_type=_column_value("recurrence_type", data.recurrence_type),
                is_private=data.is_private,
                team_id=parse_uuid(data.team_id),
                initiative_id=parse_uuid(data.initiative_id),
                owner_id=parse_uuid(data.owner_id),
                created_by_id=uuid.UUID(created_by_id),
            )
            session.add(model)
            await session.flush()
            for participant in data.participants:
                session.add(
                    MeetingParticipantModel(
                        meeting_id=model.id,
                        person_id=uuid.UUID(participant.person_id),
                        status=participant.status.value,
                    )
                )
            await session.commit()
            logger.info(
                "meetings.meeting_created",
                organization_id=organization_id,
                meeting_id=str(model.id),
                participant_count=len(data.participants),
            )
            details = await self._build_meeting_details(session, [model])
            return details[0]

    async def get_meeting(
        self,
        organization_id: str,
        meeting_id: str,
        visible_to: ActorContext | None = None,
    ) -> Meeting | None:
        """Get a meeting of the organization without participants or instances.

        Visibility is only enforced when visible_to is given.
        """
        mid = parse_uuid(meeting_id)
        if mid is None:
            return None
        async for session in self._session_factory():
            stmt = select(MeetingModel).where(
                MeetingModel.organization_id == uuid.UUID(organization_id),
                MeetingModel.id == mid,
            )
            if visible_to is not None:
                stmt = stmt.where(meeting_visibility(visible_to))
            model = (await session.execute(stmt)).scalar_one_or_none()
            if model is None:
                return None
            meetings = await self._build_meetings(session, [model])
            return meetings[0]

    async def get_meeting_detail(
        self,
        organization_id: str,
        meeting_id: str,
        visible_to: ActorContext | None = None,
    ) -> MeetingDetail | None:
        """Get a meeting with participants and instances.

        Args:
            organization_id: Organization UUID string.
            meeting_id: Meeting UUID string.
            visible_to: When given, the meeting must also satisfy the
                visibility predicate for this actor.

        Returns:
            MeetingDetail if found (and visible), None otherwise.
        """
        mid = parse_uuid(meeting_id)
        if mid is None:
            return None
        async for session in self._session_factory():
            stmt = select(MeetingModel).where(
                MeetingModel.organization_id == uuid.UUID(organization_id),
                MeetingModel.id == mid,
            )
            if visible_to is not None:
                stmt = stmt.where(meeting_visibility(visible_to))
            model = (await session.execute(stmt)).scalar_one_or_none()
            if model is None:
                return None
            details = await self._build_meeting_details(session, [model])
            return details[0]

    async def list_meetings(
        self, organization_id: str, visible_to: ActorContext
    ) -> list[MeetingDetail]:
        """List the organization's meetings visible to an actor, by scheduled_at."""
        async for session in self._session_factory():
            stmt = (
                select(MeetingModel)
                .where(
                    MeetingModel.organization_id == uuid.UUID(organization_id),
                    meeting_visibility(visible_to),
                )
                .order_by(MeetingModel.scheduled_at, MeetingModel.created_at)
            )
            models = (await session.execute(stmt)).scalars().all()
            return await self._build_meeting_details(session, models)

    async def update_meeting(
        self, organization_id: str, meeting_id: str, changes: dict[str, Any]
    ) -> MeetingDetail | None:
        """Apply a partial update to a meeting.

        Args:
            organization_id: Organization UUID string.
            meeting_id: Meeting UUID string.
            changes: Column name to new value. Reference ids are strings.

        Returns:
            Updated MeetingDetail, or None if the meeting was not found.
        """
        mid = parse_uuid(meeting_id)
        if mid is None:
            return None
        async for session in self._session_factory():
            model = await self._load_meeting(session, organization_id, mid)
            if model is None:
                return None
            for column, value in changes.items():
                setattr(model, column, _column_value(column, value))
            await session.commit()
            logger.info(
                "meetings.meeting_updated",
                organization_id=organization_id,
                meeting_id=meeting_id,
                fields=sorted(changes),
            )
            details = await self._build_meeting_details(session, [model])
            return details[0]

    async def delete_meeting(self, organization_id: str, meeting_id: str) -> bool:
        """Delete a meeting with its instances and all participant rows.

        Returns:
            True if a meeting was deleted, False if it was not found.
        """
        mid = parse_uuid(meeting_id)
        if mid is None:
            return False
        async for session in self._session_factory():
            model = await self._load_meeting(session, organization_id, mid)
            if model is None:
                return False
            instance_ids = select(MeetingInstanceModel.id).where(
                MeetingInstanceModel.meeting_id == mid
            )
            await session.execute(
                delete(MeetingInstanceParticipantModel).where(
                    MeetingInstanceParticipantModel.meeting_instance_id.in_(instance_ids)
                )
            )
            await session.execute(
                delete(MeetingInstanceModel).where(MeetingInstanceModel.meeting_id == mid)
            )
            await session.execute(
                delete(MeetingParticipantModel).where(MeetingParticipantModel.meeting_id == mid)
            )
            await session.delete(model)
            await session.commit()
            logger.info(
                "meetings.meeting_deleted",
                organization_id=organization_id,
                meeting_id=meeting_id,
            )
            return True

    # ── Meeting Participants ─────────────────────────────────────────────

    async def get_meeting_participant(
        self, meeting_id: str, person_id: str
    ) -> MeetingParticipant | None:
        """Get the participant row for a (meeting, person) pair."""
        mid, pid = parse_uuid(meeting_id), parse_uuid(person_id)
        if mid is None or pid is None:
            return None
        async for session in self._session_factory():
            model = await self._load_meeting_participant(session, mid, pid)
            if model is None:
                return None
            people = await self._load_people(session, [model.person_id])
            return _model_to_meeting_participant(model, people[model.person_id])

    async def add_meeting_participant(
        self, meeting_id: str, person_id: str, status: ParticipantStatus
    ) -> MeetingParticipant:
        """Insert a participant row on a meeting.

        Raises:
            ParticipantConflictError: If the pair already exists.
        """
        async for session in self._session_factory():
            model = MeetingParticipantModel(
                meeting_id=uuid.UUID(meeting_id),
                person_id=uuid.UUID(person_id),
                status=status.value,
            )
            session.add(model)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise ParticipantConflictError("meeting") from None
            people = await self._load_people(session, [model.person_id])
            return _model_to_meeting_participant(model, people[model.person_id])

    async def update_meeting_participant_status(
        self, meeting_id: str, person_id: str, status: ParticipantStatus
    ) -> MeetingParticipant | None:
        """Set the status of a meeting participant. None if the pair is missing."""
        mid, pid = parse_uuid(meeting_id), parse_uuid(person_id)
        if mid is None or pid is None:
            return None
        async for session in self._session_factory():
            model = await self._load_meeting_participant(session, mid, pid)
            if model is None:
                return None
            model.status = status.value
            await session.commit()
            people = await self._load_people(session, [model.person_id])
            return _model_to_meeting_participant(model, people[model.person_id])

    async def remove_meeting_participant(self, meeting_id: str, person_id: str) -> bool:
        """Delete a meeting participant. False if the pair is missing."""
        mid, pid = parse_uuid(meeting_id), parse_uuid(person_id)
        if mid is None or pid is None:
            return False
        async for session in self._session_factory():
            model = await self._load_meeting_participant(session, mid, pid)
            if model is None:
                return False
            await session.delete(model)
            await session.commit()
            return True

    # ── Meeting Instances ────────────────────────────────────────────────

    async def create_instance(
        self,
        organization_id: str,
        data: MeetingInstanceCreate,
        is_private: bool,
    ) -> MeetingInstanceDetail:
        """Create a meeting instance and its participant rows in one transaction.

        Args:
            organization_id: Organization UUID string.
            data: Validated MeetingInstanceCreate whose meeting and
                participants were already authorized by the caller.
            is_private: Privacy snapshot taken from the parent meeting.
        """
        async for session in self._session_factory():
            model = MeetingInstanceModel(
                meeting_id=uuid.UUID(data.meeting_id),
                organization_id=uuid.UUID(organization_id),
                scheduled_at=data.scheduled_at,
                notes=data.notes,
                is_private=is_private,
            )
            session.add(model)
            await session.flush()
            self._add_instance_participants(session, model.id, data.participants)
            await session.commit()
            logger.info(
                "meetings.instance_created",
                organization_id=organization_id,
                meeting_id=data.meeting_id,
                instance_id=str(model.id),
                participant_count=len(data.participants),
            )
            details = await self._build_instance_details(session, [model])
            return details[0]

    async def get_instance(
        self, organization_id: str, instance_id: str
    ) -> MeetingInstance | None:
        """Get an instance of the organization without visibility filtering."""
        iid = parse_uuid(instance_id)
        if iid is None:
            return None
        async for session in self._session_factory():
            model = await self._load_instance(session, organization_id, iid)
            if model is None:
                return None
            instances = await self._build_instances(session, [model])
            return instances[0]

    async def get_instance_detail(
        self,
        organization_id: str,
        instance_id: str,
        visible_to: ActorContext | None = None,
    ) -> MeetingInstanceDetail | None:
        """Get an instance with participants and its parent meeting.

        When visible_to is given the instance must satisfy the instance
        visibility predicate for that actor.
        """
        iid = parse_uuid(instance_id)
        if iid is None:
            return None
        async for session in self._session_factory():
            stmt = select(MeetingInstanceModel).where(
                MeetingInstanceModel.organization_id == uuid.UUID(organization_id),
                MeetingInstanceModel.id == iid,
            )
            if visible_to is not None:
                stmt = stmt.where(instance_visibility(visible_to))
            model = (await session.execute(stmt)).scalar_one_or_none()
            if model is None:
                return None
            details = await self._build_instance_details(session, [model])
            return details[0]

    async def list_instances(
        self, organization_id: str, meeting_id: str
    ) -> list[MeetingInstance]:
        """List all instances of a meeting ordered by scheduled_at ascending."""
        mid = parse_uuid(meeting_id)
        if mid is None:
            return []
        async for session in self._session_factory():
            stmt = (
                select(MeetingInstanceModel)
                .where(
                    MeetingInstanceModel.organization_id == uuid.UUID(organization_id),
                    MeetingInstanceModel.meeting_id == mid,
                )
                .order_by(MeetingInstanceModel.scheduled_at, MeetingInstanceModel.created_at)
            )
            models = (await session.execute(stmt)).scalars().all()
            return await self._build_instances(session, models)

    async def update_instance(
        self,
        organization_id: str,
        instance_id: str,
        changes: dict[str, Any],
        participants: list[ParticipantInput] | None = None,
    ) -> MeetingInstanceDetail | None:
        """Apply a partial update to an instance.

        When participants is not None the existing participant rows are
        deleted and replaced by the given set in the same transaction.

        Returns:
            Updated MeetingInstanceDetail, or None if not found.
        """
        iid = parse_uuid(instance_id)
        if iid is None:
            return None
        async for session in self._session_factory():
            model = await self._load_instance(session, organization_id, iid)
            if model is None:
                return None
            for column, value in changes.items():
                setattr(model, column, value)
            if participants is not None:
                await session.execute(
                    delete(MeetingInstanceParticipantModel).where(
                        MeetingInstanceParticipantModel.meeting_instance_id == iid
                    )
                )
                self._add_instance_participants(session, iid, participants)
            await session.commit()
            logger.info(
                "meetings.instance_updated",
                organization_id=organization_id,
                instance_id=instance_id,
                fields=sorted(changes),
                participants_replaced=participants is not None,
            )
            details = await self._build_instance_details(session, [model])
            return details[0]

    async def delete_instance(self, organization_id: str, instance_id: str) -> bool:
        """Delete an instance and its participant rows. False if not found."""
        iid = parse_uuid(instance_id)
        if iid is None:
            return False
        async for session in self._session_factory():
            model = await self._load_instance(session, organization_id, iid)
            if model is None:
                return False
            await session.execute(
                delete(MeetingInstanceParticipantModel).where(
                    MeetingInstanceParticipantModel.meeting_instance_id == iid
                )
            )
            await session.delete(model)
            await session.commit()
            logger.info(
                "meetings.instance_deleted",
                organization_id=organization_id,
                instance_id=instance_id,
            )
            return True

    # ── Instance Participants ────────────────────────────────────────────

    async def get_instance_participant(
        self, instance_id: str, person_id: str
    ) -> MeetingInstanceParticipant | None:
        """Get the participant row for an (instance, person) pair."""
        iid, pid = parse_uuid(instance_id), parse_uuid(person_id)
        if iid is None or pid is None:
            return None
        async for session in self._session_factory():
            model = await self._load_instance_participant(session, iid, pid)
            if model is None:
                return None
            people = await self._load_people(session, [model.person_id])
            return _model_to_instance_participant(model, people[model.person_id])

    async def add_instance_participant(
        self, instance_id: str, person_id: str, status: ParticipantStatus
    ) -> MeetingInstanceParticipant:
        """Insert a participant row on an instance.

        Raises:
            ParticipantConflictError: If the pair already exists.
        """
        async for session in self._session_factory():
            model = MeetingInstanceParticipantModel(
                meeting_instance_id=uuid.UUID(instance_id),
                person_id=uuid.UUID(person_id),
                status=status.value,
            )
            session.add(model)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise ParticipantConflictError("meeting instance") from None
            people = await self._load_people(session, [model.person_id])
            return _model_to_instance_participant(model, people[model.person_id])

    async def update_instance_participant_status(
        self, instance_id: str, person_id: str, status: ParticipantStatus
    ) -> MeetingInstanceParticipant | None:
        """Set the status of an instance participant. None if the pair is missing."""
        iid, pid = parse_uuid(instance_id), parse_uuid(person_id)
        if iid is None or pid is None:
            return None
        async for session in self._session_factory():
            model = await self._load_instance_participant(session, iid, pid)
            if model is None:
                return None
            model.status = status.value
            await session.commit()
            people = await self._load_people(session, [model.person_id])
            return _model_to_instance_participant(model, people[model.person_id])

    async def remove_instance_participant(self, instance_id: str, person_id: str) -> bool:
        """Delete an instance participant. False if the pair is missing."""
        iid, pid = parse_uuid(instance_id), parse_uuid(person_id)
        if iid is None or pid is None:
            return False
        async for session in self._session_factory():
            model = await self._load_instance_participant(session, iid, pid)
            if model is None:
                return False
            await session.delete(model)
            await session.commit()
            return True

    # ── Row Loaders ──────────────────────────────────────────────────────

    async def _load_meeting(
        self, session: AsyncSession, organization_id: str, meeting_id: uuid.UUID
    ) -> MeetingModel | None:
        stmt = select(MeetingModel).where(
            MeetingModel.organization_id == uuid.UUID(organization_id),
            MeetingModel.id == meeting_id,
        )
        return (await session.execute(stmt)).scalar_one_or_none()

    async def _load_instance(
        self, session: AsyncSession, organization_id: str, instance_id: uuid.UUID
    ) -> MeetingInstanceModel | None:
        stmt = select(MeetingInstanceModel).where(
            MeetingInstanceModel.organization_id == uuid.UUID(organization_id),
            MeetingInstanceModel.id == instance_id,
        )
        return (await session.execute(stmt)).scalar_one_or_none()

    async def _load_meeting_participant(
        self, session: AsyncSession, meeting_id: uuid.UUID, person_id: uuid.UUID
    ) -> MeetingParticipantModel | None:
        stmt = select(MeetingParticipantModel).where(
            MeetingParticipantModel.meeting_id == meeting_id,
            MeetingParticipantModel.person_id == person_id,
        )
        return (await session.execute(stmt)).scalar_one_or_none()

    async def _load_instance_participant(
        self, session: AsyncSession, instance_id: uuid.UUID, person_id: uuid.UUID
    ) -> MeetingInstanceParticipantModel | None:
        stmt = select(MeetingInstanceParticipantModel).where(
            MeetingInstanceParticipantModel.meeting_instance_id == instance_id,
            MeetingInstanceParticipantModel.person_id == person_id,
        )
        return (await session.execute(stmt)).scalar_one_or_none()

    async def _load_people(
        self, session: AsyncSession, person_ids: Iterable[uuid.UUID | None]
    ) -> dict[uuid.UUID, PersonRef]:
        ids = _unique(person_ids)
        people = {pid: _missing_person(pid) for pid in ids}
        if ids:
            rows = (await session.execute(select(Person).where(Person.id.in_(ids)))).scalars()
            people.update({p.id: _person_to_ref(p) for p in rows})
        return people

    @staticmethod
    def _add_instance_participants(
        session: AsyncSession,
        instance_id: uuid.UUID,
        participants: Sequence[ParticipantInput],
    ) -> None:
        for participant in participants:
            session.add(
                MeetingInstanceParticipantModel(
                    meeting_instance_id=instance_id,
                    person_id=uuid.UUID(participant.person_id),
                    status=participant.status.value,
                )
            )

    # ── DTO Builders ─────────────────────────────────────────────────────

    async def _build_meetings(
        self, session: AsyncSession, models: Sequence[MeetingModel]
    ) -> list[Meeting]:
        """Expand team, initiative, owner, and created_by for each meeting."""
        team_ids = _unique(m.team_id for m in models)
        initiative_ids = _unique(m.initiative_id for m in models)
        user_ids = _unique(m.created_by_id for m in models)

        teams: dict[uuid.UUID, TeamRef] = {}
        if team_ids:
            rows = (await session.execute(select(Team).where(Team.id.in_(team_ids)))).scalars()
            teams = {t.id: TeamRef(id=str(t.id), name=t.name) for t in rows}

        initiatives: dict[uuid.UUID, InitiativeRef] = {}
        if initiative_ids:
            stmt = select(Initiative).where(Initiative.id.in_(initiative_ids))
            rows = (await session.execute(stmt)).scalars()
            initiatives = {i.id: InitiativeRef(id=str(i.id), title=i.title) for i in rows}

        users: dict[uuid.UUID, UserRef] = {}
        if user_ids:
            rows = (await session.execute(select(User).where(User.id.in_(user_ids)))).scalars()
            users = {u.id: UserRef(id=str(u.id), name=u.name, email=u.email) for u in rows}

        people = await self._load_people(session, (m.owner_id for m in models))
        return [_model_to_meeting(m, teams, initiatives, people, users) for m in models]

    async def _build_instances(
        self, session: AsyncSession, models: Sequence[MeetingInstanceModel]
    ) -> list[MeetingInstance]:
        """Expand participants (with person) for each instance."""
        participants_by_instance: dict[uuid.UUID, list[MeetingInstanceParticipantModel]] = {
            m.id: [] for m in models
        }
        if models:
            stmt = (
                select(MeetingInstanceParticipantModel)
                .where(
                    MeetingInstanceParticipantModel.meeting_instance_id.in_(
                        list(participants_by_instance)
                    )
                )
                .order_by(MeetingInstanceParticipantModel.created_at)
            )
            for row in (await session.execute(stmt)).scalars():
                participants_by_instance[row.meeting_instance_id].append(row)

        people = await self._load_people(
            session,
            (p.person_id for rows in participants_by_instance.values() for p in rows),
        )
        return [
            MeetingInstance(
                id=str(m.id),
                meeting_id=str(m.meeting_id),
                organization_id=str(m.organization_id),
                scheduled_at=m.scheduled_at,
                notes=m.notes,
                is_private=m.is_private,
                participants=[
                    _model_to_instance_participant(p, people[p.person_id])
                    for p in participants_by_instance[m.id]
                ],
                created_at=m.created_at,
                updated_at=m.updated_at or m.created_at,
            )
            for m in models
        ]

    async def _build_meeting_details(
        self, session: AsyncSession, models: Sequence[MeetingModel]
    ) -> list[MeetingDetail]:
        """Expand meetings with participants and instances ordered by scheduled_at."""
        meetings = await self._build_meetings(session, models)
        meeting_ids = [m.id for m in models]

        participants: dict[uuid.UUID, list[MeetingParticipantModel]] = {
            mid: [] for mid in meeting_ids
        }
        instances: dict[uuid.UUID, list[MeetingInstanceModel]] = {mid: [] for mid in meeting_ids}
        if meeting_ids:
            stmt = (
                select(MeetingParticipantModel)
                .where(MeetingParticipantModel.meeting_id.in_(meeting_ids))
                .order_by(MeetingParticipantModel.created_at)
            )
            for row in (await session.execute(stmt)).scalars():
                participants[row.meeting_id].append(row)

            stmt = (
                select(MeetingInstanceModel)
                .where(MeetingInstanceModel.meeting_id.in_(meeting_ids))
                .order_by(MeetingInstanceModel.scheduled_at, MeetingInstanceModel.created_at)
            )
            for row in (await session.execute(stmt)).scalars():
                instances[row.meeting_id].append(row)

        people = await self._load_people(
            session, (p.person_id for rows in participants.values() for p in rows)
        )
        built_instances = await self._build_instances(
            session, [i for rows in instances.values() for i in rows]
        )
        instances_by_meeting: dict[str, list[MeetingInstance]] = {}
        for instance in built_instances:
            instances_by_meeting.setdefault(instance.meeting_id, []).append(instance)

        return [
            MeetingDetail(
                **meeting.model_dump(),
                participants=[
                    _model_to_meeting_participant(p, people[p.person_id])
                    for p in participants[model.id]
                ],
                instances=instances_by_meeting.get(meeting.id, []),
            )
            for meeting, model in zip(meetings, models)
        ]

    async def _build_instance_details(
        self, session: AsyncSession, models: Sequence[MeetingInstanceModel]
    ) -> list[MeetingInstanceDetail]:
        """Expand instances with participants and their parent meeting."""
        instances = await self._build_instances(session, models)
        meeting_ids = _unique(m.meeting_id for m in models)
        meeting_models = []
        if meeting_ids:
            stmt = select(MeetingModel).where(MeetingModel.id.in_(meeting_ids))
            meeting_models = list((await session.execute(stmt)).scalars().all())
        meetings = {m.id: m for m in await self._build_meetings(session, meeting_models)}
        return [
            MeetingInstanceDetail(**instance.model_dump(), meeting=meetings[instance.meeting_id])
            for instance in instances
        ]
