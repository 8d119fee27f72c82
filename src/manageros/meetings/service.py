"""Meeting actions -- the in-process operations behind the meetings API.

MeetingService methods take an explicit ActorContext and a raw payload
(mapping or already-validated schema), and:

1. Require the actor to belong to an organization (checked first).
2. Validate the payload with the pydantic schemas.
3. Authorize every referenced record inside the actor's organization before
   mutating anything.
4. Delegate persistence to MeetingRepository.
5. Mark /meetings and /meetings/{meeting_id} stale via PathRevalidator.

Missing, cross-organization and invisible records all raise NotFoundError
with the same message. Errors are never retried here. A revalidation failure
after a committed write is logged and does not fail the action.

Exports:
    MeetingService: Meeting, instance and participant actions.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel, ValidationError
from pydantic_core import InitErrorDetails, PydanticCustomError
from redis.exceptions import RedisError

from src.manageros.core.context import ActorContext
from src.manageros.core.database import parse_uuid
from src.manageros.core.errors import NotFoundError, ParticipantConflictError
from src.manageros.core.monitoring import track_meeting_action
from src.manageros.core.revalidation import PathRevalidator
from src.manageros.meetings.ics import match_attendees, parse_ics
from src.manageros.meetings.repository import MeetingRepository
from src.manageros.meetings.schemas import (
    AddParticipantRequest,
    ImportedMeeting,
    ImportedMeetingInstance,
    IcsImportRequest,
    MatchedAttendees,
    Meeting,
    MeetingCreate,
    MeetingDetail,
    MeetingInstance,
    MeetingInstanceCreate,
    MeetingInstanceDetail,
    MeetingInstanceParticipant,
    MeetingInstanceUpdate,
    MeetingParticipant,
    MeetingUpdate,
    ParsedIcsEvent,
    ParticipantInput,
    ParticipantStatus,
    ParticipantStatusUpdate,
    RecurrenceType,
    check_recurrence,
)

logger = structlog.get_logger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

Payload = Mapping[str, Any]

# Columns that cannot be cleared by an explicit null in an update payload
_NON_NULLABLE_MEETING_FIELDS = frozenset({"title", "scheduled_at", "is_recurring", "is_private"})


def _validate(schema: type[SchemaT], data: SchemaT | Payload) -> SchemaT:
    """Validate a raw payload; already-validated schemas pass through."""
    if isinstance(data, schema):
        return data
    return schema.model_validate(data)


def _check_merged_recurrence(
    is_recurring: bool, recurrence_type: RecurrenceType | None
) -> None:
    """Apply the recurrence pairing rule to the effective post-update state.

    Raises pydantic.ValidationError located at recurrence_type, the same
    shape the schema produces for the payload alone.
    """
    try:
        check_recurrence(is_recurring, recurrence_type)
    except PydanticCustomError as exc:
        field = MeetingUpdate.model_fields["recurrence_type"]
        raise ValidationError.from_exception_data(
            MeetingUpdate.__name__,
            [
                InitErrorDetails(
                    type=exc,
                    loc=(field.alias or "recurrence_type",),
                    input=recurrence_type.value if recurrence_type else None,
                )
            ],
        ) from None


class MeetingService:
    """Meeting, meeting-instance and participant actions.

    Args:
        repository: MeetingRepository for persistence.
        revalidator: PathRevalidator notified after every successful write.
    """

    def __init__(
        self,
        repository: MeetingRepository,
        revalidator: PathRevalidator,
    ) -> None:
        self._repo = repository
        self._revalidator = revalidator

    # ── Meetings ─────────────────────────────────────────────────────────

    async def create_meeting(
        self, actor: ActorContext, data: MeetingCreate | Payload
    ) -> MeetingDetail:
        """Create a meeting with its initial participants.

        Raises:
            OrganizationRequiredError: Actor has no organization.
            ValidationError: Payload is invalid.
            NotFoundError: Team, initiative, owner or a participant is not in
                the actor's organization.
            ParticipantConflictError: A person is listed twice.
        """
        async with track_meeting_action("create_meeting", actor.organization_id):
            organization_id = actor.require_organization("create meetings")
            payload = _validate(MeetingCreate, data)

            await self._authorize_references(
                organization_id,
                team_id=payload.team_id,
                initiative_id=payload.initiative_id,
                owner_id=payload.owner_id,
            )
            await self._authorize_participants(organization_id, payload.participants, "meeting")

            meeting = await self._repo.create_meeting(organization_id, actor.user_id, payload)
            await self._revalidate(organization_id, meeting.id)
            return meeting

    async def update_meeting(
        self, actor: ActorContext, meeting_id: str, data: MeetingUpdate | Payload
    ) -> MeetingDetail:
        """Apply a partial update to a meeting.

        The recurrence rule is checked against the merged state: setting
        is_recurring to false without naming recurrence_type clears it.

        Raises:
            OrganizationRequiredError: Actor has no organization.
            ValidationError: Payload or merged recurrence state is invalid.
            NotFoundError: Meeting or a newly referenced record is not in the
                actor's organization.
        """
        async with track_meeting_action("update_meeting", actor.organization_id):
            organization_id = actor.require_organization("update meetings")
            payload = _validate(MeetingUpdate, data)

            existing = await self._repo.get_meeting(organization_id, meeting_id)
            if existing is None:
                raise NotFoundError("Meeting")

            changes = {
                field: value
                for field, value in payload.model_dump(exclude_unset=True).items()
                if not (value is None and field in _NON_NULLABLE_MEETING_FIELDS)
            }

            is_recurring = changes.get("is_recurring", existing.is_recurring)
            if "recurrence_type" in changes:
                recurrence_type = changes["recurrence_type"]
            elif not is_recurring:
                recurrence_type = None
                if existing.recurrence_type is not None:
                    changes["recurrence_type"] = None
            else:
                recurrence_type = existing.recurrence_type
            _check_merged_recurrence(is_recurring, recurrence_type)

            await self._authorize_references(
                organization_id,
                team_id=changes.get("team_id"),
                initiative_id=changes.get("initiative_id"),
                owner_id=changes.get("owner_id"),
            )

            meeting = await self._repo.update_meeting(organization_id, existing.id, changes)
            if meeting is None:
                raise NotFoundError("Meeting")
            await self._revalidate(organization_id, existing.id)
            return meeting

    async def get_meeting(self, actor: ActorContext, meeting_id: str) -> MeetingDetail:
        """Get a meeting visible to the actor, with participants and instances."""
        async with track_meeting_action("get_meeting", actor.organization_id):
            organization_id = actor.require_organization("view meetings")
            meeting = await self._repo.get_meeting_detail(
                organization_id, meeting_id, visible_to=actor
            )
            if meeting is None:
                raise NotFoundError("Meeting")
            return meeting

    async def get_meetings(self, actor: ActorContext) -> list[MeetingDetail]:
        """List the organization's meetings visible to the actor by scheduled_at."""
        async with track_meeting_action("get_meetings", actor.organization_id):
            organization_id = actor.require_organization("view meetings")
            return await self._repo.list_meetings(organization_id, visible_to=actor)

    async def delete_meeting(self, actor: ActorContext, meeting_id: str) -> None:
        """Delete a meeting together with its instances and participants."""
        async with track_meeting_action("delete_meeting", actor.organization_id):
            organization_id = actor.require_organization("delete meetings")
            existing = await self._repo.get_meeting(organization_id, meeting_id)
            if existing is None:
                raise NotFoundError("Meeting")

            if not await self._repo.delete_meeting(organization_id, existing.id):
                raise NotFoundError("Meeting")
            await self._revalidate(organization_id, existing.id)

    # ── Meeting Participants ─────────────────────────────────────────────

    async def add_meeting_participant(
        self,
        actor: ActorContext,
        meeting_id: str,
        person_id: str,
        status: ParticipantStatus | str = ParticipantStatus.INVITED,
    ) -> MeetingParticipant:
        """Add a person to a meeting.

        Raises:
            NotFoundError: Meeting or person is not in the actor's organization.
            ParticipantConflictError: The person already participates.
        """
        async with track_meeting_action("add_meeting_participant", actor.organization_id):
            organization_id = actor.require_organization("manage meeting participants")
            request = AddParticipantRequest.model_validate(
                {"person_id": person_id, "status": status}
            )

            meeting = await self._require_meeting(organization_id, meeting_id)
            person = await self._repo.get_person(organization_id, request.person_id)
            if person is None:
                raise NotFoundError("Person")

            if await self._repo.get_meeting_participant(meeting.id, person.id):
                raise ParticipantConflictError("meeting")

            participant = await self._repo.add_meeting_participant(
                meeting.id, person.id, request.status
            )
            await self._revalidate(organization_id, meeting.id)
            return participant

    async def update_meeting_participant_status(
        self,
        actor: ActorContext,
        meeting_id: str,
        person_id: str,
        status: ParticipantStatus | str,
    ) -> MeetingParticipant:
        """Change a meeting participant's status. Any transition is allowed."""
        async with track_meeting_action(
            "update_meeting_participant_status", actor.organization_id
        ):
            organization_id = actor.require_organization("manage meeting participants")
            request = ParticipantStatusUpdate.model_validate({"status": status})

            meeting = await self._require_meeting(organization_id, meeting_id)
            participant = await self._repo.update_meeting_participant_status(
                meeting.id, person_id, request.status
            )
            if participant is None:
                raise NotFoundError("Participant")
            await self._revalidate(organization_id, meeting.id)
            return participant

    async def remove_meeting_participant(
        self, actor: ActorContext, meeting_id: str, person_id: str
    ) -> None:
        """Remove a person from a meeting."""
        async with track_meeting_action("remove_meeting_participant", actor.organization_id):
            organization_id = actor.require_organization("manage meeting participants")
            meeting = await self._require_meeting(organization_id, meeting_id)
            if not await self._repo.remove_meeting_participant(meeting.id, person_id):
                raise NotFoundError("Participant")
            await self._revalidate(organization_id, meeting.id)

    # ── Meeting Instances ────────────────────────────────────────────────

    async def create_meeting_instance(
        self, actor: ActorContext, data: MeetingInstanceCreate | Payload
    ) -> MeetingInstanceDetail:
        """Create a dated occurrence of a meeting.

        The instance copies is_private from its parent meeting at this point;
        later privacy changes on the meeting are not propagated.

        Raises:
            OrganizationRequiredError: Actor has no organization.
            ValidationError: Payload is invalid.
            NotFoundError: Meeting or any participant is not in the actor's
                organization. Nothing is written in that case.
        """
        async with track_meeting_action("create_meeting_instance", actor.organization_id):
            organization_id = actor.require_organization("create meeting instances")
            payload = _validate(MeetingInstanceCreate, data)

            meeting = await self._require_meeting(organization_id, payload.meeting_id)
            await self._authorize_participants(
                organization_id, payload.participants, "meeting instance"
            )

            instance = await self._repo.create_instance(
                organization_id,
                payload.model_copy(update={"meeting_id": meeting.id}),
                is_private=meeting.is_private,
            )
            await self._revalidate(organization_id, meeting.id)
            return instance

    async def update_meeting_instance(
        self,
        actor: ActorContext,
        instance_id: str,
        data: MeetingInstanceUpdate | Payload,
    ) -> MeetingInstanceDetail:
        """Update an instance; supplied participants replace the whole set."""
        async with track_meeting_action("update_meeting_instance", actor.organization_id):
            organization_id = actor.require_organization("edit meeting instances")
            payload = _validate(MeetingInstanceUpdate, data)

            existing = await self._require_instance(organization_id, instance_id)
            if payload.participants is not None:
                await self._authorize_participants(
                    organization_id, payload.participants, "meeting instance"
                )

            changes = {
                field: value
                for field, value in payload.model_dump(
                    exclude_unset=True, exclude={"participants"}
                ).items()
                if not (value is None and field == "scheduled_at")
            }
            instance = await self._repo.update_instance(
                organization_id, existing.id, changes, payload.participants
            )
            if instance is None:
                raise NotFoundError("Meeting instance")
            await self._revalidate(organization_id, existing.meeting_id)
            return instance

    async def delete_meeting_instance(self, actor: ActorContext, instance_id: str) -> None:
        """Delete an instance and its participants; sibling instances are untouched."""
        async with track_meeting_action("delete_meeting_instance", actor.organization_id):
            organization_id = actor.require_organization("delete meeting instances")
            existing = await self._require_instance(organization_id, instance_id)
            if not await self._repo.delete_instance(organization_id, existing.id):
                raise NotFoundError("Meeting instance")
            await self._revalidate(organization_id, existing.meeting_id)

    async def get_meeting_instance(
        self, actor: ActorContext, instance_id: str
    ) -> MeetingInstanceDetail:
        """Get an instance visible to the actor, with its parent meeting."""
        async with track_meeting_action("get_meeting_instance", actor.organization_id):
            organization_id = actor.require_organization("view meeting instances")
            instance = await self._repo.get_instance_detail(
                organization_id, instance_id, visible_to=actor
            )
            if instance is None:
                raise NotFoundError("Meeting instance")
            return instance

    async def get_meeting_instances(
        self, actor: ActorContext, meeting_id: str
    ) -> list[MeetingInstance]:
        """List all instances of a visible meeting by scheduled_at ascending.

        Visibility is decided once on the parent meeting; the instances are
        not filtered individually.
        """
        async with track_meeting_action("get_meeting_instances", actor.organization_id):
            organization_id = actor.require_organization("view meeting instances")
            meeting = await self._repo.get_meeting(organization_id, meeting_id, visible_to=actor)
            if meeting is None:
                raise NotFoundError("Meeting")
            return await self._repo.list_instances(organization_id, meeting.id)

    # ── Instance Participants ────────────────────────────────────────────

    async def add_meeting_instance_participant(
        self,
        actor: ActorContext,
        instance_id: str,
        person_id: str,
        status: ParticipantStatus | str = ParticipantStatus.INVITED,
    ) -> MeetingInstanceParticipant:
        """Add a person to an instance.

        Raises:
            NotFoundError: Instance or person is not in the actor's organization.
            ParticipantConflictError: The person already participates.
        """
        async with track_meeting_action(
            "add_meeting_instance_participant", actor.organization_id
        ):
            organization_id = actor.require_organization(
                "manage meeting instance participants"
            )
            request = AddParticipantRequest.model_validate(
                {"person_id": person_id, "status": status}
            )

            instance = await self._require_instance(organization_id, instance_id)
            person = await self._repo.get_person(organization_id, request.person_id)
            if person is None:
                raise NotFoundError("Person")

            if await self._repo.get_instance_participant(instance.id, person.id):
                raise ParticipantConflictError("meeting instance")

            participant = await self._repo.add_instance_participant(
                instance.id, person.id, request.status
            )
            await self._revalidate(organization_id, instance.meeting_id)
            return participant

    async def update_meeting_instance_participant_status(
        self,
        actor: ActorContext,
        instance_id: str,
        person_id: str,
        status: ParticipantStatus | str,
    ) -> MeetingInstanceParticipant:
        """Change an instance participant's status. Any transition is allowed."""
        async with track_meeting_action(
            "update_meeting_instance_participant_status", actor.organization_id
        ):
            organization_id = actor.require_organization(
                "manage meeting instance participants"
            )
            request = ParticipantStatusUpdate.model_validate({"status": status})

            instance = await self._require_instance(organization_id, instance_id)
            participant = await self._repo.update_instance_participant_status(
                instance.id, person_id, request.status
            )
            if participant is None:
                raise NotFoundError("Participant")
            await self._revalidate(organization_id, instance.meeting_id)
            return participant

    async def remove_meeting_instance_participant(
        self, actor: ActorContext, instance_id: str, person_id: str
    ) -> None:
        """Remove a person from an instance."""
        async with track_meeting_action(
            "remove_meeting_instance_participant", actor.organization_id
        ):
            organization_id = actor.require_organization(
                "manage meeting instance participants"
            )
            instance = await self._require_instance(organization_id, instance_id)
            if not await self._repo.remove_instance_participant(instance.id, person_id):
                raise NotFoundError("Participant")
            await self._revalidate(organization_id, instance.meeting_id)

    # ── ICS Import ───────────────────────────────────────────────────────

    async def import_meeting_from_ics(
        self, actor: ActorContext, file_content: str
    ) -> ImportedMeeting:
        """Turn an ICS file into a meeting form prefill. Nothing is persisted.

        Raises:
            OrganizationRequiredError: Actor has no organization.
            IcsParseError: The file cannot be parsed.
        """
        async with track_meeting_action("import_meeting_from_ics", actor.organization_id):
            organization_id = actor.require_organization("import meetings")
            event, matched = await self._import_ics(organization_id, file_content)
            return ImportedMeeting(
                title=event.title,
                description=event.description,
                scheduled_at=event.scheduled_at,
                duration=event.duration,
                location=event.location,
                participants=matched.participants,
                owner_id=matched.owner_id,
            )

    async def import_meeting_instance_from_ics(
        self, actor: ActorContext, file_content: str
    ) -> ImportedMeetingInstance:
        """Turn an ICS file into an instance form prefill. Nothing is persisted."""
        async with track_meeting_action(
            "import_meeting_instance_from_ics", actor.organization_id
        ):
            organization_id = actor.require_organization("import meeting instances")
            event, matched = await self._import_ics(organization_id, file_content)
            return ImportedMeetingInstance(
                scheduled_at=event.scheduled_at,
                notes=event.description,
                participants=matched.participants,
            )

    # ── Helpers ──────────────────────────────────────────────────────────

    async def _import_ics(
        self, organization_id: str, file_content: str
    ) -> tuple[ParsedIcsEvent, MatchedAttendees]:
        request = IcsImportRequest.model_validate({"file_content": file_content})
        event = parse_ics(request.file_content)
        people = await self._repo.list_active_people(organization_id)
        matched = match_attendees(people, event.attendee_emails, event.organizer_email)
        logger.info(
            "meetings.ics_imported",
            organization_id=organization_id,
            attendee_count=len(event.attendee_emails),
            matched_count=len(matched.participants),
            owner_matched=matched.owner_id is not None,
        )
        return event, matched

    async def _require_meeting(self, organization_id: str, meeting_id: str) -> Meeting:
        meeting = await self._repo.get_meeting(organization_id, meeting_id)
        if meeting is None:
            raise NotFoundError("Meeting")
        return meeting

    async def _require_instance(
        self, organization_id: str, instance_id: str
    ) -> MeetingInstance:
        instance = await self._repo.get_instance(organization_id, instance_id)
        if instance is None:
            raise NotFoundError("Meeting instance")
        return instance

    async def _authorize_references(
        self,
        organization_id: str,
        *,
        team_id: str | None = None,
        initiative_id: str | None = None,
        owner_id: str | None = None,
    ) -> None:
        """Check that each given reference belongs to the organization."""
        if team_id and await self._repo.get_team(organization_id, team_id) is None:
            raise NotFoundError("Team")
        if initiative_id and await self._repo.get_initiative(organization_id, initiative_id) is None:
            raise NotFoundError("Initiative")
        if owner_id and await self._repo.get_person(organization_id, owner_id) is None:
            raise NotFoundError("Owner")

    async def _authorize_participants(
        self,
        organization_id: str,
        participants: Sequence[ParticipantInput],
        target: str,
    ) -> None:
        """All-or-nothing check that every participant is a person of the organization."""
        if not participants:
            return
        person_ids = [p.person_id for p in participants]
        # Compare parsed UUIDs so "{id}" and unhyphenated spellings collide
        keys = {parse_uuid(pid) or pid for pid in person_ids}
        if len(keys) != len(person_ids):
            raise ParticipantConflictError(target)
        missing = await self._repo.find_missing_people(organization_id, person_ids)
        if missing:
            raise NotFoundError("One or more participants")

    async def _revalidate(self, organization_id: str, meeting_id: str) -> None:
        # The write is already committed; a stale page must not turn it into an error
        try:
            await self._revalidator.revalidate(
                organization_id, "/meetings", f"/meetings/{meeting_id}"
            )
        except (RedisError, OSError) as exc:
            logger.warning(
                "revalidation.failed",
                organization_id=organization_id,
                meeting_id=meeting_id,
                error=str(exc),
            )
