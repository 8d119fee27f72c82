"""Pydantic v2 schemas for the meetings domain.

Defines the validation layer for incoming payloads (MeetingCreate,
MeetingUpdate, MeetingInstanceCreate, MeetingInstanceUpdate,
ParticipantInput) and the response DTOs returned by MeetingService.

Input schemas accept both snake_case field names and the camelCase keys sent
by form clients (scheduledAt, isRecurring, personId, ...). Validation
failures raise pydantic.ValidationError with field-level locations.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    ValidationInfo,
    field_validator,
)
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError


# ── Enums ────────────────────────────────────────────────────────────────────


class RecurrenceType(str, Enum):
    """How often a recurring meeting repeats. Informational only."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    BI_MONTHLY = "bi-monthly"
    SEMI_ANNUALLY = "semi-annually"


class ParticipantStatus(str, Enum):
    """Attendance status of a participant.

    invited/accepted/declined/tentative describe the time before the meeting,
    attended/absent the time after. Any status may move to any other.
    """

    INVITED = "invited"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    TENTATIVE = "tentative"
    ATTENDED = "attended"
    ABSENT = "absent"


# ── Validation Layer ─────────────────────────────────────────────────────────

MeetingTitle = Annotated[
    str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)
]
Duration = Annotated[int, Field(ge=1, le=480)]

RECURRENCE_REQUIRED_MESSAGE = "Recurrence type is required for recurring meetings"
RECURRENCE_FORBIDDEN_MESSAGE = "Recurrence type can only be set for recurring meetings"


class FormSchema(BaseModel):
    """Base for payload schemas: camelCase aliases, snake_case names allowed."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class ParticipantInput(FormSchema):
    """A person invited to a meeting or instance."""

    person_id: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
    status: ParticipantStatus = ParticipantStatus.INVITED


def check_recurrence(
    is_recurring: bool | None, recurrence_type: RecurrenceType | None
) -> None:
    """Enforce the is_recurring / recurrence_type pairing.

    Raises PydanticCustomError, which pydantic attaches to the
    recurrence_type field when called from a field validator. No check is
    made when is_recurring is None (absent from an update payload).
    """
    if is_recurring is True and recurrence_type is None:
        raise PydanticCustomError("recurrence_required", RECURRENCE_REQUIRED_MESSAGE)
    if is_recurring is False and recurrence_type is not None:
        raise PydanticCustomError("recurrence_forbidden", RECURRENCE_FORBIDDEN_MESSAGE)


class MeetingCreate(FormSchema):
    """Payload for creating a meeting."""

    title: MeetingTitle
    description: str | None = None
    scheduled_at: datetime
    duration: Duration | None = None
    location: str | None = None
    notes: str | None = None
    is_recurring: bool = False
    recurrence_type: RecurrenceType | None = Field(default=None, validate_default=True)
    is_private: bool = True
    team_id: str | None = None
    initiative_id: str | None = None
    owner_id: str | None = None
    participants: list[ParticipantInput] = Field(default_factory=list)

    @field_validator("recurrence_type")
    @classmethod
    def _recurrence_matches_flag(
        cls, value: RecurrenceType | None, info: ValidationInfo
    ) -> RecurrenceType | None:
        # is_recurring is absent from info.data when it failed its own validation
        if "is_recurring" in info.data:
            check_recurrence(info.data["is_recurring"], value)
        return value

    @field_validator("team_id", "initiative_id", "owner_id", mode="before")
    @classmethod
    def _blank_reference_is_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class MeetingUpdate(FormSchema):
    """Partial payload for updating a meeting.

    Only fields present in the payload are applied (see model_fields_set).
    The recurrence pairing is checked here when is_recurring is present and
    against the merged meeting state by the service.
    """

    title: MeetingTitle | None = None
    description: str | None = None
    scheduled_at: datetime | None = None
    duration: Duration | None = None
    location: str | None = None
    notes: str | None = None
    is_recurring: bool | None = None
    recurrence_type: RecurrenceType | None = Field(default=None, validate_default=True)
    is_private: bool | None = None
    team_id: str | None = None
    initiative_id: str | None = None
    owner_id: str | None = None

    @field_validator("recurrence_type")
    @classmethod
    def _recurrence_matches_flag(
        cls, value: RecurrenceType | None, info: ValidationInfo
    ) -> RecurrenceType | None:
        check_recurrence(info.data.get("is_recurring"), value)
        return value

    @field_validator("team_id", "initiative_id", "owner_id", mode="before")
    @classmethod
    def _blank_reference_is_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class MeetingInstanceCreate(FormSchema):
    """Payload for creating a meeting instance."""

    meeting_id: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
    scheduled_at: datetime
    notes: str | None = None
    participants: list[ParticipantInput] = Field(default_factory=list)


class MeetingInstanceUpdate(FormSchema):
    """Partial payload for updating a meeting instance.

    When participants is present it replaces the whole participant set.
    """

    scheduled_at: datetime | None = None
    notes: str | None = None
    participants: list[ParticipantInput] | None = None


class ParticipantStatusUpdate(FormSchema):
    """Payload for changing a participant's status."""

    status: ParticipantStatus


class AddParticipantRequest(FormSchema):
    """Payload for adding a single participant."""

    person_id: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
    status: ParticipantStatus = ParticipantStatus.INVITED


class IcsImportRequest(FormSchema):
    """Raw ICS file content uploaded by a client."""

    file_content: Annotated[str, StringConstraints(min_length=1)]


# ── Reference DTOs ───────────────────────────────────────────────────────────


class PersonRef(BaseModel):
    """Person expanded inside a meeting response."""

    id: str
    name: str
    email: str | None = None


class UserRef(BaseModel):
    """User expanded as the creator of a meeting."""

    id: str
    name: str | None = None
    email: str


class TeamRef(BaseModel):
    id: str
    name: str


class InitiativeRef(BaseModel):
    id: str
    title: str


# ── Participant DTOs ─────────────────────────────────────────────────────────


class MeetingParticipant(BaseModel):
    """Participant row on a meeting, with the person expanded."""

    id: str
    meeting_id: str
    person_id: str
    status: ParticipantStatus
    person: PersonRef


class MeetingInstanceParticipant(BaseModel):
    """Participant row on a meeting instance, with the person expanded."""

    id: str
    meeting_instance_id: str
    person_id: str
    status: ParticipantStatus
    person: PersonRef


# ── Meeting DTOs ─────────────────────────────────────────────────────────────


class Meeting(BaseModel):
    """Meeting with its single-valued relations expanded."""

    id: str
    organization_id: str
    title: str
    description: str | None = None
    scheduled_at: datetime
    duration: int | None = None
    location: str | None = None
    notes: str | None = None
    is_recurring: bool = False
    recurrence_type: RecurrenceType | None = None
    is_private: bool = True
    team_id: str | None = None
    initiative_id: str | None = None
    owner_id: str | None = None
    created_by_id: str
    team: TeamRef | None = None
    initiative: InitiativeRef | None = None
    owner: PersonRef | None = None
    created_by: UserRef | None = None
    created_at: datetime
    updated_at: datetime


class MeetingInstance(BaseModel):
    """Meeting instance with its participants expanded."""

    id: str
    meeting_id: str
    organization_id: str
    scheduled_at: datetime
    notes: str | None = None
    is_private: bool = True
    participants: list[MeetingInstanceParticipant] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class MeetingDetail(Meeting):
    """Meeting with participants and instances (ordered by scheduled_at)."""

    participants: list[MeetingParticipant] = Field(default_factory=list)
    instances: list[MeetingInstance] = Field(default_factory=list)


class MeetingInstanceDetail(MeetingInstance):
    """Meeting instance with its parent meeting expanded."""

    meeting: Meeting


# ── ICS Import DTOs ──────────────────────────────────────────────────────────


class ParsedIcsEvent(BaseModel):
    """First VEVENT of an ICS file, reduced to the fields meetings use."""

    title: str
    description: str | None = None
    scheduled_at: datetime
    duration: int | None = None
    location: str | None = None
    attendee_emails: list[str] = Field(default_factory=list)
    organizer_email: str | None = None


class ImportedParticipant(BaseModel):
    """A matched attendee, always imported as invited."""

    person_id: str
    status: ParticipantStatus = ParticipantStatus.INVITED


class MatchedAttendees(BaseModel):
    """ICS attendees resolved to people of the actor's organization."""

    participants: list[ImportedParticipant] = Field(default_factory=list)
    owner_id: str | None = None


class ImportedMeeting(BaseModel):
    """Meeting form prefill produced from an ICS file."""

    title: str
    description: str | None = None
    scheduled_at: datetime
    duration: int | None = None
    location: str | None = None
    participants: list[ImportedParticipant] = Field(default_factory=list)
    owner_id: str | None = None


class ImportedMeetingInstance(BaseModel):
    """Instance form prefill produced from an ICS file.

    Ready to be completed with a meeting_id and passed to
    MeetingService.create_meeting_instance.
    """

    scheduled_at: datetime
    notes: str | None = None
    participants: list[ImportedParticipant] = Field(default_factory=list)
