"""Initial schema — conferences, tracks, talks, ratings, labels, schedule slots, outbox.

Revision ID: 001_cfp_initial
Revises: None
Create Date: 2026-10-16

Storage-level backstops for the engine's invariants:
    - ratings: UNIQUE(talk_id, reviewer_id), CHECK score in 1..5
    - schedule_slots: CHECK start_time < end_time, partial UNIQUE(talk_id) where not null,
      EXCLUDE USING gist over (track_id =, [date+start, date+end) &&)
The exclusion constraint needs the btree_gist extension for the uuid equality operand.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_cfp_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(*names: str) -> list[sa.Column]:
    return [
        sa.Column(name, sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())
        for name in names
    ]


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")

    op.create_table(
        "conferences",
        sa.Column("id", UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("start_date", sa.Date, nullable=False),
        sa.Column("end_date", sa.Date, nullable=False),
        sa.Column("location", sa.String(500), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps("created_at", "updated_at"),
        sa.PrimaryKeyConstraint("id", name="pk_conferences"),
    )

    op.create_table(
        "tracks",
        sa.Column("id", UUID(as_uuid=True), nullable=False),
        sa.Column("conference_id", UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("capacity", sa.Integer, nullable=True),
        *_timestamps("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_tracks"),
        sa.ForeignKeyConstraint(
            ["conference_id"], ["conferences.id"],
            name="fk_tracks_conference_id_conferences", ondelete="CASCADE",
        ),
    )
    op.create_index("ix_tracks_conference_id", "tracks", ["conference_id"])

    op.create_table(
        "talks",
        sa.Column("id", UUID(as_uuid=True), nullable=False),
        sa.Column("speaker_id", UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("short_summary", sa.Text, nullable=False),
        sa.Column("long_description", sa.Text, nullable=True),
        sa.Column("slides_url", sa.String(1000), nullable=True),
        sa.Column("state", sa.String(20), nullable=False, server_default="submitted"),
        *_timestamps("submitted_at", "updated_at"),
        sa.PrimaryKeyConstraint("id", name="pk_talks"),
    )
    op.create_index("ix_talks_speaker_id", "talks", ["speaker_id"])
    op.create_index("ix_talks_state", "talks", ["state"])

    op.create_table(
        "ratings",
        sa.Column("id", UUID(as_uuid=True), nullable=False),
        sa.Column("talk_id", UUID(as_uuid=True), nullable=False),
        sa.Column("reviewer_id", UUID(as_uuid=True), nullable=False),
        sa.Column("score", sa.Integer, nullable=False),
        sa.Column("notes", sa.Text, nullable=True),
        *_timestamps("created_at", "updated_at"),
        sa.PrimaryKeyConstraint("id", name="pk_ratings"),
        sa.ForeignKeyConstraint(
            ["talk_id"], ["talks.id"],
            name="fk_ratings_talk_id_talks", ondelete="CASCADE",
        ),
        sa.UniqueConstraint("talk_id", "reviewer_id", name="uq_ratings_talk_reviewer"),
        sa.CheckConstraint("score >= 1 AND score <= 5", name="ck_ratings_score_range"),
    )
    op.create_index("ix_ratings_talk_id", "ratings", ["talk_id"])
    op.create_index("ix_ratings_reviewer_id", "ratings", ["reviewer_id"])

    op.create_table(
        "labels",
        sa.Column("id", UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("color", sa.String(7), nullable=True),
        sa.Column("is_ai_generated", sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_labels"),
        sa.UniqueConstraint("name", name="uq_labels_name"),
    )

    op.create_table(
        "talk_labels",
        sa.Column("talk_id", UUID(as_uuid=True), nullable=False),
        sa.Column("label_id", UUID(as_uuid=True), nullable=False),
        sa.Column("added_by", UUID(as_uuid=True), nullable=True),
        *_timestamps("added_at"),
        sa.PrimaryKeyConstraint("talk_id", "label_id", name="pk_talk_labels"),
        sa.ForeignKeyConstraint(
            ["talk_id"], ["talks.id"],
            name="fk_talk_labels_talk_id_talks", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["label_id"], ["labels.id"],
            name="fk_talk_labels_label_id_labels", ondelete="CASCADE",
        ),
    )
    op.create_index("ix_talk_labels_label_id", "talk_labels", ["label_id"])

    op.create_table(
        "schedule_slots",
        sa.Column("id", UUID(as_uuid=True), nullable=False),
        sa.Column("conference_id", UUID(as_uuid=True), nullable=False),
        sa.Column("track_id", UUID(as_uuid=True), nullable=False),
        sa.Column("talk_id", UUID(as_uuid=True), nullable=True),
        sa.Column("slot_date", sa.Date, nullable=False),
        sa.Column("start_time", sa.Time, nullable=False),
        sa.Column("end_time", sa.Time, nullable=False),
        *_timestamps("created_at", "updated_at"),
        sa.PrimaryKeyConstraint("id", name="pk_schedule_slots"),
        sa.ForeignKeyConstraint(
            ["conference_id"], ["conferences.id"],
            name="fk_schedule_slots_conference_id_conferences", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["track_id"], ["tracks.id"],
            name="fk_schedule_slots_track_id_tracks", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["talk_id"], ["talks.id"],
            name="fk_schedule_slots_talk_id_talks", ondelete="SET NULL",
        ),
        sa.CheckConstraint("start_time < end_time", name="ck_schedule_slots_time_order"),
    )
    op.create_index("ix_schedule_slots_conference_id", "schedule_slots", ["conference_id"])
    op.create_index("ix_schedule_slots_track_id", "schedule_slots", ["track_id"])
    op.create_index(
        "ix_schedule_slots_track_date", "schedule_slots",
        ["track_id", "slot_date", "start_time"],
    )
    op.create_index(
        "uq_schedule_slots_talk_id", "schedule_slots", ["talk_id"],
        unique=True, postgresql_where=sa.text("talk_id IS NOT NULL"),
    )
    op.execute(
        "ALTER TABLE schedule_slots ADD CONSTRAINT excl_schedule_slots_track_overlap "
        "EXCLUDE USING gist ("
        "track_id WITH =, "
        "tsrange(slot_date + start_time, slot_date + end_time, '[)') WITH &&"
        ")"
    )

    op.create_table(
        "transition_events",
        sa.Column("id", UUID(as_uuid=True), nullable=False),
        sa.Column("talk_id", UUID(as_uuid=True), nullable=False),
        sa.Column("old_state", sa.String(20), nullable=False),
        sa.Column("new_state", sa.String(20), nullable=False),
        sa.Column("actor_id", UUID(as_uuid=True), nullable=True),
        sa.Column(
            "occurred_at", sa.DateTime(timezone=True),
            nullable=False, server_default=sa.func.now(),
        ),
        sa.Column("dispatched_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_transition_events"),
    )
    op.create_index("ix_transition_events_talk_id", "transition_events", ["talk_id"])
    op.create_index(
        "ix_transition_events_pending", "transition_events", ["occurred_at"],
        postgresql_where=sa.text("dispatched_at IS NULL"),
    )


def downgrade() -> None:
    op.drop_table("transition_events")
    op.drop_table("schedule_slots")
    op.drop_table("talk_labels")
    op.drop_table("labels")
    op.drop_table("ratings")
    op.drop_table("talks")
    op.drop_table("tracks")
    op.drop_table("conferences")
