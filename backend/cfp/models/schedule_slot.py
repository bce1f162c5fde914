"""ScheduleSlot ORM — a [start_time, end_time) interval on a date in one track.

Invariants:
    - start_time < end_time (CHECK constraint)
    - At most one slot references a given talk (partial unique index on talk_id)
    - No two slots in the same track/date overlap — enforced by ScheduleGrid and, on
      PostgreSQL, by the gist exclusion constraint created in the initial migration
    - talk_id only ever references an accepted talk (ScheduleAssigner + StateMachine)

Design Decisions:
    - conference_id denormalized from the track: schedule reads filter by conference
      without joining tracks
    - Exclusion constraint lives in the migration, not __table_args__: SQLite test
      databases cannot create it
"""

import uuid
from datetime import date, datetime, time, timezone

from sqlalchemy import (
    CheckConstraint, Date, DateTime, ForeignKey, Index, Time, text,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from cfp.db.base import Base


class ScheduleSlot(Base):
    """Slot in the schedule grid, optionally holding one talk."""
    __tablename__ = "schedule_slots"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    conference_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("conferences.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    track_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tracks.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    talk_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("talks.id", ondelete="SET NULL"),
        nullable=True,
    )
    slot_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="time_order"),
        Index(
            "uq_schedule_slots_talk_id", "talk_id", unique=True,
            postgresql_where=text("talk_id IS NOT NULL"),
            sqlite_where=text("talk_id IS NOT NULL"),
        ),
        Index("ix_schedule_slots_track_date", "track_id", "slot_date", "start_time"),
    )
