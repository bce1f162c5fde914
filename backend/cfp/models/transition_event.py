"""TransitionEvent ORM — outbox of lifecycle changes for the notification dispatcher.

Invariants:
    - Written in the same transaction as the talk state change (never without it)
    - old_state/new_state are TalkState values
    - dispatched_at is NULL until the external dispatcher acknowledges the event
    - Events outlive their talk: deleting a talk leaves its events (talk_id included) in place

Design Decisions:
    - Outbox table over in-process callbacks: the dispatcher consumes asynchronously and a
      rolled-back transition leaves no event behind
    - talk_id carries no foreign key, so a pending event for a deleted talk still names it
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from cfp.db.base import Base


class TransitionEvent(Base):
    """Event record {talk_id, old_state, new_state, timestamp}."""
    __tablename__ = "transition_events"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    talk_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True,
    )
    old_state: Mapped[str] = mapped_column(String(20), nullable=False)
    new_state: Mapped[str] = mapped_column(String(20), nullable=False)
    actor_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True,
    )
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    dispatched_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    __table_args__ = (
        Index(
            "ix_transition_events_pending", "occurred_at",
            postgresql_where=text("dispatched_at IS NULL"),
        ),
    )
