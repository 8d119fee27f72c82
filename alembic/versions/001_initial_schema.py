"""Initial schema: organizations, directory records, and meetings.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

Creates the row-level tenancy schema:
- organizations, users: cross-organization records
- people, teams, initiatives: organization-owned directory
- meetings, meeting_participants: meeting definitions and rosters
- meeting_instances, meeting_instance_participants: dated occurrences

Foreign keys cascade Organization -> Meeting -> MeetingInstance ->
MeetingInstanceParticipant and Meeting -> MeetingParticipant.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def _organization_fk() -> sa.Column:
    return sa.Column(
        "organization_id",
        sa.Uuid(),
        sa.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


def upgrade() -> None:
    # ── Organizations and users ──────────────────────────────────────────

    op.create_table(
        "organizations",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False, unique=True),
        *_timestamps(),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("name", sa.String(200), nullable=True),
        sa.Column(
            "organization_id",
            sa.Uuid(),
            sa.ForeignKey("organizations.id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        ),
        sa.Column("role", sa.String(50), server_default=sa.text("'member'"), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        *_timestamps(),
    )

    # ── Directory ────────────────────────────────────────────────────────

    op.create_table(
        "people",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _organization_fk(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("role", sa.String(200), nullable=True),
        sa.Column("status", sa.String(50), server_default=sa.text("'active'"), nullable=False),
        sa.Column(
            "user_id",
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
            unique=True,
        ),
        *_timestamps(),
    )

    op.create_table(
        "teams",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _organization_fk(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "initiatives",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _organization_fk(),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("summary", sa.Text(), nullable=True),
        *_timestamps(),
    )

    # ── Meetings ─────────────────────────────────────────────────────────

    op.create_table(
        "meetings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _organization_fk(),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=True),
        sa.Column("location", sa.String(500), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_recurring", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("recurrence_type", sa.String(50), nullable=True),
        sa.Column("is_private", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column(
            "team_id",
            sa.Uuid(),
            sa.ForeignKey("teams.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "initiative_id",
            sa.Uuid(),
            sa.ForeignKey("initiatives.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "owner_id",
            sa.Uuid(),
            sa.ForeignKey("people.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_by_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            "(is_recurring AND recurrence_type IS NOT NULL)"
            " OR (NOT is_recurring AND recurrence_type IS NULL)",
            name="ck_meetings_recurrence_type",
        ),
    )
    op.create_index("ix_meetings_org_scheduled", "meetings", ["organization_id", "scheduled_at"])

    op.create_table(
        "meeting_participants",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "meeting_id",
            sa.Uuid(),
            sa.ForeignKey("meetings.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "person_id",
            sa.Uuid(),
            sa.ForeignKey("people.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("status", sa.String(20), server_default=sa.text("'invited'"), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("meeting_id", "person_id", name="uq_meeting_participant"),
    )

    # ── Meeting instances ────────────────────────────────────────────────

    op.create_table(
        "meeting_instances",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "meeting_id",
            sa.Uuid(),
            sa.ForeignKey("meetings.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        _organization_fk(),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_private", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        *_timestamps(),
    )
    op.create_index(
        "ix_meeting_instances_meeting_scheduled",
        "meeting_instances",
        ["meeting_id", "scheduled_at"],
    )

    op.create_table(
        "meeting_instance_participants",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "meeting_instance_id",
            sa.Uuid(),
            sa.ForeignKey("meeting_instances.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "person_id",
            sa.Uuid(),
            sa.ForeignKey("people.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("status", sa.String(20), server_default=sa.text("'invited'"), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint(
            "meeting_instance_id", "person_id", name="uq_meeting_instance_participant"
        ),
    )


def downgrade() -> None:
    op.drop_table("meeting_instance_participants")
    op.drop_index("ix_meeting_instances_meeting_scheduled", table_name="meeting_instances")
    op.drop_table("meeting_instances")
    op.drop_table("meeting_participants")
    op.drop_index("ix_meetings_org_scheduled", table_name="meetings")
    op.drop_table("meetings")
    op.drop_table("initiatives")
    op.drop_table("teams")
    op.drop_table("people")
    op.drop_table("users")
    op.drop_table("organizations")
