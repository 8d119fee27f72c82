"""Tests for meeting instance actions.

Tests cover:
- Privacy snapshot copied from the parent meeting at creation
- Cascading deletes for meetings and instances
- Participant set replacement on update
- All-or-nothing participant authorization
- Ordering of instance lists
- The standup lifecycle: create, instance, attend, delete
- Cross-organization isolation for every instance and instance participant action
"""

from __future__ import annotations

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.manageros.core.errors import (
    NotFoundError,
    OrganizationRequiredError,
    ParticipantConflictError,
)
from src.manageros.meetings.models import (
    MeetingInstanceModel,
    MeetingInstanceParticipantModel,
    MeetingParticipantModel,
)
from src.manageros.meetings.schemas import ParticipantStatus


async def _count(engine, model) -> int:
    async with AsyncSession(engine) as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


async def _meeting(service, actor, **overrides):
    payload = {"title": "Weekly Standup", "scheduledAt": "2024-12-01T10:00"}
    payload.update(overrides)
    return await service.create_meeting(actor, payload)


async def _instance(service, actor, meeting_id, scheduled_at="2024-12-08T10:00", **extra):
    payload = {"meetingId": meeting_id, "scheduledAt": scheduled_at}
    payload.update(extra)
    return await service.create_meeting_instance(actor, payload)


# ── Creation ─────────────────────────────────────────────────────────────────


class TestCreateInstance:
    """create_meeting_instance."""

    @pytest.mark.asyncio
    async def test_instance_copies_privacy(self, service, directory):
        private = await _meeting(service, directory.creator)
        public = await _meeting(service, directory.creator, isPrivate=False)

        private_instance = await _instance(service, directory.creator, private.id)
        public_instance = await _instance(service, directory.creator, public.id)

        assert private_instance.is_private is True
        assert public_instance.is_private is False

    @pytest.mark.asyncio
    async def test_privacy_not_propagated_after_creation(self, service, directory):
        meeting = await _meeting(service, directory.creator)
        instance = await _instance(service, directory.creator, meeting.id)

        await service.update_meeting(directory.creator, meeting.id, {"isPrivate": False})

        fetched = await service.get_meeting_instance(directory.creator, instance.id)
        assert fetched.is_private is True
        assert fetched.meeting.is_private is False

    @pytest.mark.asyncio
    async def test_instance_includes_parent_meeting(self, service, directory):
        meeting = await _meeting(service, directory.creator, teamId=directory.team_id)

        instance = await _instance(service, directory.creator, meeting.id, notes="Agenda")

        assert instance.meeting_id == meeting.id
        assert instance.organization_id == directory.org_id
        assert instance.notes == "Agenda"
        assert instance.meeting.title == "Weekly Standup"
        assert instance.meeting.team.name == "Platform"

    @pytest.mark.asyncio
    async def test_unknown_meeting_rejected(self, service, directory):
        with pytest.raises(NotFoundError) as exc_info:
            await _instance(service, directory.creator, "00000000-0000-0000-0000-000000000000")
        assert exc_info.value.entity == "Meeting"

    @pytest.mark.asyncio
    async def test_other_organization_meeting_rejected(self, service, directory):
        meeting = await _meeting(service, directory.beta_member, isPrivate=False)

        with pytest.raises(NotFoundError):
            await _instance(service, directory.creator, meeting.id)

    @pytest.mark.asyncio
    async def test_actor_without_organization_rejected(self, service, directory):
        with pytest.raises(OrganizationRequiredError) as exc_info:
            await _instance(service, directory.no_org, "anything")
        assert "create meeting instances" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_foreign_participant_writes_nothing(self, service, directory, engine):
        meeting = await _meeting(service, directory.creator)

        with pytest.raises(NotFoundError):
            await _instance(
                service,
                directory.creator,
                meeting.id,
                participants=[{"personId": directory.p3}, {"personId": directory.p5}],
            )

        assert await _count(engine, MeetingInstanceModel) == 0
        assert await _count(engine, MeetingInstanceParticipantModel) == 0

    @pytest.mark.asyncio
    async def test_duplicate_participant_in_payload_conflicts(self, service, directory, engine):
        meeting = await _meeting(service, directory.creator)

        with pytest.raises(ParticipantConflictError):
            await _instance(
                service,
                directory.creator,
                meeting.id,
                participants=[{"personId": directory.p3}, {"personId": directory.p3}],
            )

        assert await _count(engine, MeetingInstanceModel) == 0

    @pytest.mark.asyncio
    async def test_braced_duplicate_participant_conflicts(self, service, directory, engine):
        meeting = await _meeting(service, directory.creator)

        with pytest.raises(ParticipantConflictError):
            await _instance(
                service,
                directory.creator,
                meeting.id,
                participants=[{"personId": directory.p3}, {"personId": "{" + directory.p3 + "}"}],
            )

        assert await _count(engine, MeetingInstanceModel) == 0
        assert await _count(engine, MeetingInstanceParticipantModel) == 0


# ── Update ───────────────────────────────────────────────────────────────────


class TestUpdateInstance:
    """update_meeting_instance."""

    @pytest.mark.asyncio
    async def test_participants_replace_existing_set(self, service, directory):
        meeting = await _meeting(service, directory.creator)
        instance = await _instance(
            service,
            directory.creator,
            meeting.id,
            participants=[{"personId": directory.p2}, {"personId": directory.p3}],
        )

        updated = await service.update_meeting_instance(
            directory.creator,
            instance.id,
            {"participants": [{"personId": directory.p3, "status": "attended"}, {"personId": directory.p4}]},
        )

        statuses = {p.person_id: p.status for p in updated.participants}
        assert statuses == {
            directory.p3: ParticipantStatus.ATTENDED,
            directory.p4: ParticipantStatus.INVITED,
        }

    @pytest.mark.asyncio
    async def test_absent_participants_left_alone(self, service, directory):
        meeting = await _meeting(service, directory.creator)
        instance = await _instance(
            service, directory.creator, meeting.id, participants=[{"personId": directory.p2}]
        )

        updated = await service.update_meeting_instance(
            directory.creator,
            instance.id,
            {"notes": "Moved to Thursday", "scheduledAt": "2024-12-12T10:00"},
        )

        assert updated.notes == "Moved to Thursday"
        assert updated.scheduled_at.day == 12
        assert [p.person_id for p in updated.participants] == [directory.p2]

    @pytest.mark.asyncio
    async def test_empty_list_clears_participants(self, service, directory):
        meeting = await _meeting(service, directory.creator)
        instance = await _instance(
            service, directory.creator, meeting.id, participants=[{"personId": directory.p2}]
        )

        updated = await service.update_meeting_instance(
            directory.creator, instance.id, {"participants": []}
        )
        assert updated.participants == []

    @pytest.mark.asyncio
    async def test_invalid_replacement_keeps_old_set(self, service, directory):
        meeting = await _meeting(service, directory.creator)
        instance = await _instance(
            service, directory.creator, meeting.id, participants=[{"personId": directory.p2}]
        )

        with pytest.raises(NotFoundError):
            await service.update_meeting_instance(
                directory.creator,
                instance.id,
                {"participants": [{"personId": directory.p5}]},
            )

        fetched = await service.get_meeting_instance(directory.creator, instance.id)
        assert [p.person_id for p in fetched.participants] == [directory.p2]

    @pytest.mark.asyncio
    async def test_respelled_duplicate_replacement_keeps_old_set(self, service, directory):
        meeting = await _meeting(service, directory.creator)
        instance = await _instance(
            service, directory.creator, meeting.id, participants=[{"personId": directory.p2}]
        )

        with pytest.raises(ParticipantConflictError):
            await service.update_meeting_instance(
                directory.creator,
                instance.id,
                {
                    "participants": [
                        {"personId": directory.p3},
                        {"personId": directory.p3.replace("-", "")},
                    ]
                },
            )

        fetched = await service.get_meeting_instance(directory.creator, instance.id)
        assert [p.person_id for p in fetched.participants] == [directory.p2]

    @pytest.mark.asyncio
    async def test_update_revalidates_parent_paths(self, service, directory, revalidator):
        meeting = await _meeting(service, directory.creator)
        instance = await _instance(service, directory.creator, meeting.id)
        revalidator.calls.clear()

        await service.update_meeting_instance(directory.creator, instance.id, {"notes": "x"})

        assert revalidator.paths == ["/meetings", f"/meetings/{meeting.id}"]


# ── Delete ───────────────────────────────────────────────────────────────────


class TestDeleteCascade:
    """Deleting meetings and instances removes dependent rows."""

    @pytest.mark.asyncio
    async def test_delete_meeting_removes_instances_and_participants(
        self, service, directory, engine
    ):
        meeting = await _meeting(
            service, directory.creator, participants=[{"personId": directory.p2}]
        )
        first = await _instance(
            service, directory.creator, meeting.id, participants=[{"personId": directory.p3}]
        )
        await _instance(
            service,
            directory.creator,
            meeting.id,
            scheduled_at="2024-12-15T10:00",
            participants=[{"personId": directory.p3}, {"personId": directory.p4}],
        )
        other = await _meeting(service, directory.creator, title="Other")
        await _instance(
            service, directory.creator, other.id, participants=[{"personId": directory.p4}]
        )

        await service.delete_meeting(directory.creator, meeting.id)

        assert await _count(engine, MeetingInstanceModel) == 1
        assert await _count(engine, MeetingInstanceParticipantModel) == 1
        assert await _count(engine, MeetingParticipantModel) == 0
        with pytest.raises(NotFoundError):
            await service.get_meeting_instance(directory.creator, first.id)

    @pytest.mark.asyncio
    async def test_delete_instance_leaves_siblings(self, service, directory, engine):
        meeting = await _meeting(service, directory.creator)
        doomed = await _instance(
            service, directory.creator, meeting.id, participants=[{"personId": directory.p2}]
        )
        sibling = await _instance(
            service,
            directory.creator,
            meeting.id,
            scheduled_at="2024-12-15T10:00",
            participants=[{"personId": directory.p3}],
        )

        await service.delete_meeting_instance(directory.creator, doomed.id)

        remaining = await service.get_meeting_instances(directory.creator, meeting.id)
        assert [i.id for i in remaining] == [sibling.id]
        assert [p.person_id for p in remaining[0].participants] == [directory.p3]
        assert await _count(engine, MeetingInstanceParticipantModel) == 1

    @pytest.mark.asyncio
    async def test_delete_missing_instance(self, service, directory):
        with pytest.raises(NotFoundError) as exc_info:
            await service.delete_meeting_instance(
                directory.creator, "00000000-0000-0000-0000-000000000000"
            )
        assert str(exc_info.value) == "Meeting instance not found or access denied"


# ── Listing and Lifecycle ────────────────────────────────────────────────────


class TestInstanceLists:
    """Instance ordering and the end-to-end lifecycle."""

    @pytest.mark.asyncio
    async def test_instances_ordered_by_scheduled_at(self, service, directory):
        meeting = await _meeting(service, directory.creator)
        third = await _instance(service, directory.creator, meeting.id, "2024-12-22T10:00")
        first = await _instance(service, directory.creator, meeting.id, "2024-12-08T10:00")
        second = await _instance(service, directory.creator, meeting.id, "2024-12-15T10:00")

        listed = await service.get_meeting_instances(directory.creator, meeting.id)
        detail = await service.get_meeting(directory.creator, meeting.id)

        expected = [first.id, second.id, third.id]
        assert [i.id for i in listed] == expected
        assert [i.id for i in detail.instances] == expected

    @pytest.mark.asyncio
    async def test_other_organization_cannot_list_instances(self, service, directory):
        meeting = await _meeting(service, directory.creator, isPrivate=False)
        await _instance(service, directory.creator, meeting.id)

        with pytest.raises(NotFoundError):
            await service.get_meeting_instances(directory.beta_member, meeting.id)

    @pytest.mark.asyncio
    async def test_standup_lifecycle(self, service, directory):
        meeting = await _meeting(
            service,
            directory.creator,
            isRecurring=True,
            recurrenceType="weekly",
            isPrivate=True,
        )
        instance = await _instance(
            service,
            directory.creator,
            meeting.id,
            participants=[{"personId": directory.p1, "status": "invited"}],
        )
        assert instance.is_private is True
        assert len(instance.participants) == 1

        participant = await service.update_meeting_instance_participant_status(
            directory.creator, instance.id, directory.p1, "attended"
        )
        assert participant.status is ParticipantStatus.ATTENDED

        await service.delete_meeting(directory.creator, meeting.id)

        with pytest.raises(NotFoundError):
            await service.get_meeting_instance(directory.creator, instance.id)


# ── Tenancy ──────────────────────────────────────────────────────────────────


class TestInstanceTenancy:
    """Instances of another organization behave as if they do not exist."""

    @pytest_asyncio.fixture
    async def alpha_instance(self, service, directory):
        meeting = await _meeting(service, directory.creator, isPrivate=False)
        return await _instance(
            service,
            directory.creator,
            meeting.id,
            notes="Alpha notes",
            participants=[{"personId": directory.p2, "status": "accepted"}],
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "action",
        [
            lambda s, d, iid: s.get_meeting_instance(d.beta_member, iid),
            lambda s, d, iid: s.update_meeting_instance(
                d.beta_member, iid, {"notes": "Beta notes", "participants": []}
            ),
            lambda s, d, iid: s.delete_meeting_instance(d.beta_member, iid),
            lambda s, d, iid: s.add_meeting_instance_participant(d.beta_member, iid, d.p5),
            lambda s, d, iid: s.update_meeting_instance_participant_status(
                d.beta_member, iid, d.p2, "declined"
            ),
            lambda s, d, iid: s.remove_meeting_instance_participant(d.beta_member, iid, d.p2),
        ],
        ids=["get", "update", "delete", "add_participant", "update_status", "remove_participant"],
    )
    async def test_other_organization_gets_not_found(
        self, service, directory, revalidator, alpha_instance, action
    ):
        revalidator.calls.clear()

        with pytest.raises(NotFoundError) as exc_info:
            await action(service, directory, alpha_instance.id)

        assert exc_info.value.entity == "Meeting instance"
        assert revalidator.calls == []

        fetched = await service.get_meeting_instance(directory.creator, alpha_instance.id)
        assert fetched.notes == "Alpha notes"
        assert [(p.person_id, p.status) for p in fetched.participants] == [
            (directory.p2, ParticipantStatus.ACCEPTED)
        ]
