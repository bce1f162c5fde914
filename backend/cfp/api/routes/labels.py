"""Label Routes — catalog management and talk tagging."""

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from cfp.api.deps import get_actor
from cfp.core.domain_types import Actor
from cfp.infrastructure.database import get_db
from cfp.schemas.label import LabelCreate, LabelResponse, LabelUpdate, TalkLabelsRequest
from cfp.services.label_set import LabelSet
from cfp.services.talk_store import TalkStore

router = APIRouter(prefix="/api/v1", tags=["labels"])


# ─── Catalog ─────────────────────────────────────────────────────

@router.get("/labels", response_model=list[LabelResponse])
async def list_labels(
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await LabelSet(db).list_labels()


@router.post("/labels", response_model=LabelResponse, status_code=status.HTTP_201_CREATED)
async def create_label(
    body: LabelCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await LabelSet(db).create_label(
        actor, body.name, body.description, body.color, body.is_ai_generated,
    )


@router.get("/labels/{label_id}", response_model=LabelResponse)
async def get_label(
    label_id: UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await LabelSet(db).get_label(label_id)


@router.patch("/labels/{label_id}", response_model=LabelResponse)
async def update_label(
    label_id: UUID,
    body: LabelUpdate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await LabelSet(db).update_label(
        actor, label_id, body.name, body.description, body.color,
    )


@router.delete("/labels/{label_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_label(
    label_id: UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    await LabelSet(db).delete_label(actor, label_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ─── Tagging ─────────────────────────────────────────────────────

@router.get("/talks/{talk_id}/labels", response_model=list[LabelResponse])
async def talk_labels(
    talk_id: UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    talk = await TalkStore(db).get_talk(talk_id, actor)
    return await LabelSet(db).labels_for_talk(talk.id)


@router.post("/talks/{talk_id}/labels", response_model=list[LabelResponse])
async def add_talk_labels(
    talk_id: UUID,
    body: TalkLabelsRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await LabelSet(db).add_labels(talk_id, body.label_ids, actor)


@router.delete("/talks/{talk_id}/labels/{label_id}")
async def remove_talk_label(
    talk_id: UUID,
    label_id: UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    removed = await LabelSet(db).remove_label(talk_id, label_id, actor)
    return {"removed": removed}
