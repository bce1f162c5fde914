"""Transition Event Schemas — outbox records served to the notification dispatcher."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from cfp.core.domain_types import TalkState


class TransitionEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    talk_id: UUID
    old_state: TalkState
    new_state: TalkState
    actor_id: UUID | None = None
    occurred_at: datetime
    dispatched_at: datetime | None = None
