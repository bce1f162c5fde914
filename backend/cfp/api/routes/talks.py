"""Talk Routes — submissions, edits, lifecycle transitions.

Invariants:
    - Speakers see and edit only their own talks; organizers see all
    - State changes go through StateMachine only (POST /state, POST /respond)
    - PATCH distinguishes omitted long_description (unchanged) from null (cleared)
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from cfp.api.deps import get_actor
from cfp.core.domain_types import Actor, TalkState
from cfp.core.transitions import allowed_targets
from cfp.infrastructure.database import get_db
from cfp.schemas.talk import (
    RespondRequest, SlidesUpdate, TalkCreate, TalkDetailResponse,
    TalkResponse, TalkUpdate, TransitionRequest,
)
from cfp.services.state_machine import StateMachine
from cfp.services.talk_store import TalkStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/talks", tags=["talks"])


def _detail(talk, actor: Actor) -> TalkDetailResponse:
    response = TalkDetailResponse.model_validate(talk)
    response.allowed_transitions = allowed_targets(
        actor, talk.speaker_id, talk.talk_state,
    )
    return response


@router.post("", response_model=TalkDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_talk(
    body: TalkCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Submit a new talk owned by the caller."""
    talk = await TalkStore(db).create_talk(
        actor,
        title=body.title,
        short_summary=body.short_summary,
        long_description=body.long_description,
        label_ids=body.label_ids,
    )
    return _detail(talk, actor)


@router.get("", response_model=list[TalkResponse])
async def list_talks(
    state: TalkState | None = Query(None),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Organizers list every talk; speakers list their own."""
    store = TalkStore(db)
    if actor.is_organizer:
        return await store.list_talks(actor, state)
    talks = await store.list_talks_for_speaker(actor.id)
    if state is not None:
        talks = [t for t in talks if t.state == state.value]
    return talks


@router.get("/{talk_id}", response_model=TalkDetailResponse)
async def get_talk(
    talk_id: UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    talk = await TalkStore(db).get_talk(talk_id, actor)
    return _detail(talk, actor)


@router.patch("/{talk_id}", response_model=TalkDetailResponse)
async def update_talk(
    talk_id: UUID,
    body: TalkUpdate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    fields = body.model_dump(exclude_unset=True)
    talk = await TalkStore(db).update_talk(talk_id, actor, **fields)
    return _detail(talk, actor)


@router.put("/{talk_id}/slides", response_model=TalkDetailResponse)
async def set_slides(
    talk_id: UUID,
    body: SlidesUpdate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    talk = await TalkStore(db).set_slides(talk_id, actor, body.slides_url)
    return _detail(talk, actor)


@router.delete("/{talk_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_talk(
    talk_id: UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    await TalkStore(db).delete_talk(talk_id, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{talk_id}/state", response_model=TalkDetailResponse)
async def transition_talk(
    talk_id: UUID,
    body: TransitionRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Move a talk along one edge of the lifecycle."""
    talk = await StateMachine(db).apply_transition(talk_id, body.target_state, actor)
    return _detail(talk, actor)


@router.post("/{talk_id}/respond", response_model=TalkDetailResponse)
async def respond_to_invitation(
    talk_id: UUID,
    body: RespondRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Speaker accepts or declines a pending talk."""
    talk = await StateMachine(db).respond(talk_id, body.accept, actor)
    return _detail(talk, actor)
