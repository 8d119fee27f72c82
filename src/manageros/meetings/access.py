"""Read-visibility predicates for meetings and meeting instances.

A meeting is visible to an actor if ANY of the following holds:
1. the meeting is not private
2. the actor created it
3. the actor's linked person owns it
4. the actor's linked person is a meeting participant

An instance is visible if its parent meeting is visible, or if
5. the actor's linked person is a participant of the instance itself.

Alternatives 3-5 are only added when the actor has a linked person; without
one they contribute nothing rather than failing the whole condition.

The predicates are SQLAlchemy boolean expressions so the same rule filters
single-record lookups and collection queries. Organization scoping is a
separate clause applied by the repository.
"""

from __future__ import annotations

from sqlalchemy import ColumnElement, or_, select

from src.manageros.core.context import ActorContext
from src.manageros.core.database import parse_uuid
from src.manageros.meetings.models import (
    MeetingInstanceModel,
    MeetingInstanceParticipantModel,
    MeetingModel,
    MeetingParticipantModel,
)


def meeting_visibility(actor: ActorContext) -> ColumnElement[bool]:
    """Build the visibility condition over MeetingModel for an actor."""
    clauses: list[ColumnElement[bool]] = [
        MeetingModel.is_private == False,  # noqa: E712
    ]

    user_id = parse_uuid(actor.user_id)
    if user_id is not None:
        clauses.append(MeetingModel.created_by_id == user_id)

    person_id = parse_uuid(actor.person_id)
    if person_id is not None:
        clauses.append(MeetingModel.owner_id == person_id)
        clauses.append(
            MeetingModel.id.in_(
                select(MeetingParticipantModel.meeting_id).where(
                    MeetingParticipantModel.person_id == person_id
                )
            )
        )

    return or_(*clauses)


def instance_visibility(actor: ActorContext) -> ColumnElement[bool]:
    """Build the visibility condition over MeetingInstanceModel for an actor.

    Traverses to the parent meeting for alternatives 1-4 and adds the
    instance's own participant list as alternative 5.
    """
    clauses: list[ColumnElement[bool]] = [
        MeetingInstanceModel.meeting_id.in_(
            select(MeetingModel.id).where(meeting_visibility(actor))
        ),
    ]

    person_id = parse_uuid(actor.person_id)
    if person_id is not None:
        clauses.append(
            MeetingInstanceModel.id.in_(
                select(MeetingInstanceParticipantModel.meeting_instance_id).where(
                    MeetingInstanceParticipantModel.person_id == person_id
                )
            )
        )

    return or_(*clauses)
