"""RatingAggregator — one score per (talk, reviewer), aggregated on read.

Invariants:
    - Only organizers rate; score is an integer in [1, 5]
    - rate() is an upsert on UNIQUE(talk_id, reviewer_id): repeating it never adds a row
    - delete_rating is idempotent
    - average() returns RatingSummary(None, 0) for an unrated talk
    - statistics() recomputed from the store on every call

Design Decisions:
    - Dialect-native INSERT ... ON CONFLICT DO UPDATE over read-then-write: concurrent
      reviewers of the same talk cannot race into a duplicate
    - Aggregation in SQL (sum/count per talk), division and ranking in core/rating_stats.py
"""

import logging
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cfp.config import get_settings
from cfp.core.domain_types import Actor
from cfp.core.errors import ErrorContext
from cfp.core.permissions import require_organizer
from cfp.core.rating_stats import (
    RatingStatistics, RatingSummary, TalkRatingRow,
    compute_statistics, summarize, validate_score,
)
from cfp.core.validate_fields import optional_text
from cfp.infrastructure.sql_dialect import dialect_insert
from cfp.models.rating import Rating
from cfp.models.talk import Talk
from cfp.services.service_base import TransactionalService

logger = logging.getLogger(__name__)


class RatingAggregator(TransactionalService):
    """Reviewer scores and their aggregates."""

    async def rate(
        self, talk_id: UUID, actor: Actor, score: int, notes: str | None = None,
    ) -> Rating:
        """Create or replace the actor's rating of a talk."""
        ctx = ErrorContext(talk_id=str(talk_id), actor_id=str(actor.id))
        require_organizer(actor, "rate talks")
        validate_score(score, ctx)
        notes = optional_text(notes)

        async def _op(db: AsyncSession) -> Rating:
            await self._load_talk(talk_id)
            now = self.clock.now()
            stmt = dialect_insert(db, Rating.__table__).values(
                talk_id=talk_id,
                reviewer_id=actor.id,
                score=score,
                notes=notes,
                created_at=now,
                updated_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["talk_id", "reviewer_id"],
                set_={"score": score, "notes": notes, "updated_at": now},
            )
            await db.execute(stmt)
            result = await db.execute(
                select(Rating)
                .where(Rating.talk_id == talk_id)
                .where(Rating.reviewer_id == actor.id)
                .execution_options(populate_existing=True),
            )
            return result.scalar_one()

        rating = await self._transaction(_op, ctx)
        logger.info(
            f"Talk rated {score}", extra={"talk_id": talk_id, "actor_id": actor.id},
        )
        return rating

    async def delete_rating(self, talk_id: UUID, actor: Actor) -> bool:
        """Remove the actor's rating; False when there was none."""
        require_organizer(actor, "rate talks")

        async def _op(db: AsyncSession) -> bool:
            result = await db.execute(
                delete(Rating)
                .where(Rating.talk_id == talk_id)
                .where(Rating.reviewer_id == actor.id),
            )
            return bool(result.rowcount)

        return await self._transaction(_op, ErrorContext(talk_id=str(talk_id)))

    async def get_rating(self, talk_id: UUID, reviewer_id: UUID) -> Rating | None:
        result = await self.db.execute(
            select(Rating)
            .where(Rating.talk_id == talk_id)
            .where(Rating.reviewer_id == reviewer_id),
        )
        return result.scalar_one_or_none()

    async def list_ratings(self, talk_id: UUID) -> list[Rating]:
        await self._load_talk(talk_id)
        result = await self.db.execute(
            select(Rating)
            .where(Rating.talk_id == talk_id)
            .order_by(Rating.created_at),
        )
        return list(result.scalars().all())

    async def average(self, talk_id: UUID) -> RatingSummary:
        await self._load_talk(talk_id)
        total, count = (await self.db.execute(
            select(func.sum(Rating.score), func.count(Rating.id))
            .where(Rating.talk_id == talk_id),
        )).one()
        return summarize(total, count)

    async def statistics(self, top_n: int | None = None) -> RatingStatistics:
        if top_n is None:
            top_n = get_settings().statistics_top_n
        per_talk = await self.db.execute(
            select(
                Talk.id, Talk.title, Talk.state, Talk.submitted_at,
                func.count(Rating.id), func.coalesce(func.sum(Rating.score), 0),
            )
            .outerjoin(Rating, Rating.talk_id == Talk.id)
            .group_by(Talk.id, Talk.title, Talk.state, Talk.submitted_at),
        )
        rows = [
            TalkRatingRow(
                talk_id=talk_id, title=title, state=state, submitted_at=submitted_at,
                rating_count=count, rating_sum=int(total),
            )
            for talk_id, title, state, submitted_at, count, total in per_talk.all()
        ]
        histogram = await self.db.execute(
            select(Rating.score, func.count(Rating.id)).group_by(Rating.score),
        )
        return compute_statistics(rows, histogram.all(), top_n)
