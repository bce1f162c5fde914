"""Transition Event Routes — outbox feed for the notification dispatcher.

Invariants:
    - ?pending=true returns only events not yet acknowledged
    - POST /{id}/ack is idempotent
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from cfp.api.deps import get_actor
from cfp.core.domain_types import Actor
from cfp.infrastructure.database import get_db
from cfp.schemas.event import TransitionEventResponse
from cfp.services.transition_events import TransitionEventOutbox

router = APIRouter(prefix="/api/v1/transition-events", tags=["transition-events"])


@router.get("", response_model=list[TransitionEventResponse])
async def list_transition_events(
    pending: bool = Query(False),
    talk_id: UUID | None = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await TransitionEventOutbox(db).list_events(
        actor, pending_only=pending, talk_id=talk_id, limit=limit,
    )


@router.post("/{event_id}/ack", response_model=TransitionEventResponse)
async def acknowledge_transition_event(
    event_id: UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await TransitionEventOutbox(db).acknowledge(actor, event_id)
