"""Talk ORM — persists a speaker's submission and its lifecycle state.

Invariants:
    - id is UUID primary key
    - speaker_id is an opaque identity reference (users live outside this engine)
    - state is one of TalkState values and changes only through StateMachine
    - submitted_at set once at creation; updated_at bumped on every write

Design Decisions:
    - state stored as String(20) holding the enum value: portable across Postgres and
      SQLite test databases, no native enum migration churn
    - No ORM relationships to ratings/labels/slots: deletes are explicit statements in
      services, so async sessions never trigger lazy loads
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from cfp.core.domain_types import TalkState
from cfp.db.base import Base


class Talk(Base):
    """Talk submission — aggregate root for ratings and labels."""
    __tablename__ = "talks"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    speaker_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True,
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    short_summary: Mapped[str] = mapped_column(Text, nullable=False)
    long_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    slides_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    state: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TalkState.SUBMITTED.value, index=True,
    )
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    @property
    def talk_state(self) -> TalkState:
        return TalkState(self.state)
