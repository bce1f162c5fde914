"""Rating Routes — per-reviewer scores and aggregates (organizers only).

Invariants:
    - PUT /talks/{id}/rating is an upsert of the caller's own rating
    - DELETE /talks/{id}/rating is idempotent and reports whether a row was removed
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from cfp.api.deps import get_actor
from cfp.core.domain_types import Actor
from cfp.core.errors import ErrorContext, NotFoundError
from cfp.core.permissions import require_organizer
from cfp.infrastructure.database import get_db
from cfp.schemas.rating import (
    RatingCreate, RatingResponse, RatingStatisticsResponse, RatingSummaryResponse,
)
from cfp.services.rating_aggregator import RatingAggregator

router = APIRouter(prefix="/api/v1", tags=["ratings"])


@router.put("/talks/{talk_id}/rating", response_model=RatingResponse)
async def rate_talk(
    talk_id: UUID,
    body: RatingCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await RatingAggregator(db).rate(talk_id, actor, body.score, body.notes)


@router.get("/talks/{talk_id}/rating", response_model=RatingResponse)
async def get_my_rating(
    talk_id: UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    require_organizer(actor, "rate talks")
    rating = await RatingAggregator(db).get_rating(talk_id, actor.id)
    if rating is None:
        raise NotFoundError(
            "Rating", f"{talk_id}/{actor.id}", ErrorContext(talk_id=str(talk_id)),
        )
    return rating


@router.delete("/talks/{talk_id}/rating")
async def delete_my_rating(
    talk_id: UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    deleted = await RatingAggregator(db).delete_rating(talk_id, actor)
    return {"deleted": deleted}


@router.get("/talks/{talk_id}/ratings", response_model=list[RatingResponse])
async def list_talk_ratings(
    talk_id: UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    require_organizer(actor, "view ratings")
    return await RatingAggregator(db).list_ratings(talk_id)


@router.get("/talks/{talk_id}/ratings/summary", response_model=RatingSummaryResponse)
async def talk_rating_summary(
    talk_id: UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    require_organizer(actor, "view ratings")
    return await RatingAggregator(db).average(talk_id)


@router.get("/ratings/statistics", response_model=RatingStatisticsResponse)
async def rating_statistics(
    top_n: int | None = Query(None, ge=0, le=100),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    require_organizer(actor, "view rating statistics")
    return await RatingAggregator(db).statistics(top_n)
