"""TalkStore — transactional persistence of talk submissions.

Invariants:
    - New talks start in state submitted, owned by the creating actor
    - Only the owner edits fields; rejected talks are frozen (StateError)
    - Delete only while submitted or rejected; ratings and tags go in the same transaction
    - Delete leaves transition events alone; undispatched ones still reach the dispatcher
    - state is never written here (StateMachine owns it)
    - count_by_state always reports all four states

Design Decisions:
    - export_rows is a read-only projection (talk + label names + rating summary) consumed
      by export and tagging collaborators; formatting (CSV etc.) is theirs
    - Ratings and tags deleted explicitly before the talk: no lazy loads in async context
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cfp.core.domain_types import Actor, TalkState
from cfp.core.errors import ErrorContext
from cfp.core.permissions import require_delete, require_edit, require_organizer, require_view
from cfp.core.rating_stats import summarize
from cfp.core.validate_fields import normalize_summary, normalize_title, optional_text
from cfp.models.label import Label, TalkLabel
from cfp.models.rating import Rating
from cfp.models.schedule_slot import ScheduleSlot
from cfp.models.talk import Talk
from cfp.services.label_set import attach_labels
from cfp.services.service_base import TransactionalService

logger = logging.getLogger(__name__)

_UNSET = object()


@dataclass
class TalkExportRow:
    """One talk as handed to export collaborators."""
    id: UUID
    speaker_id: UUID
    title: str
    short_summary: str
    long_description: str | None
    slides_url: str | None
    state: str
    submitted_at: datetime
    labels: list[str] = field(default_factory=list)
    average_rating: float | None = None
    rating_count: int = 0


class TalkStore(TransactionalService):
    """Create, read, update and delete talk submissions."""

    async def create_talk(
        self,
        actor: Actor,
        title: str,
        short_summary: str,
        long_description: str | None = None,
        label_ids: list[UUID] | None = None,
    ) -> Talk:
        title = normalize_title(title)
        short_summary = normalize_summary(short_summary)

        async def _op(db: AsyncSession) -> Talk:
            now = self.clock.now()
            talk = Talk(
                speaker_id=actor.id,
                title=title,
                short_summary=short_summary,
                long_description=optional_text(long_description),
                state=TalkState.SUBMITTED.value,
                submitted_at=now,
                updated_at=now,
            )
            db.add(talk)
            await db.flush()
            if label_ids:
                await attach_labels(db, talk.id, label_ids, actor.id, now)
            return talk

        talk = await self._transaction(_op, ErrorContext(actor_id=str(actor.id)))
        logger.info(
            "Talk submitted", extra={"talk_id": talk.id, "actor_id": actor.id},
        )
        return talk

    async def get_talk(self, talk_id: UUID, actor: Actor) -> Talk:
        talk = await self._load_talk(talk_id)
        require_view(actor, talk.speaker_id, talk.id)
        return talk

    async def list_talks(self, actor: Actor, state: TalkState | None = None) -> list[Talk]:
        """All talks, newest first (organizer view)."""
        require_organizer(actor, "list all talks")
        query = select(Talk).order_by(Talk.submitted_at.desc())
        if state is not None:
            query = query.where(Talk.state == state.value)
        return list((await self.db.execute(query)).scalars().all())

    async def list_talks_for_speaker(self, speaker_id: UUID) -> list[Talk]:
        result = await self.db.execute(
            select(Talk)
            .where(Talk.speaker_id == speaker_id)
            .order_by(Talk.submitted_at.desc()),
        )
        return list(result.scalars().all())

    async def update_talk(
        self,
        talk_id: UUID,
        actor: Actor,
        title: str | None = None,
        short_summary: str | None = None,
        long_description=_UNSET,
    ) -> Talk:
        """Owner edits; long_description=None clears it, omitted leaves it."""
        new_title = normalize_title(title) if title is not None else None
        new_summary = normalize_summary(short_summary) if short_summary is not None else None

        async def _op(db: AsyncSession) -> Talk:
            talk = await self._load_talk(talk_id, for_update=True)
            require_edit(actor, talk.speaker_id, talk.id, talk.talk_state)
            if new_title is not None:
                talk.title = new_title
            if new_summary is not None:
                talk.short_summary = new_summary
            if long_description is not _UNSET:
                talk.long_description = optional_text(long_description)
            talk.updated_at = self.clock.now()
            await db.flush()
            return talk

        return await self._transaction(_op, ErrorContext(talk_id=str(talk_id)))

    async def set_slides(self, talk_id: UUID, actor: Actor, slides_url: str | None) -> Talk:
        """Record (or clear) the reference to externally stored slides."""

        async def _op(db: AsyncSession) -> Talk:
            talk = await self._load_talk(talk_id, for_update=True)
            require_edit(actor, talk.speaker_id, talk.id, talk.talk_state)
            talk.slides_url = optional_text(slides_url)
            talk.updated_at = self.clock.now()
            await db.flush()
            return talk

        return await self._transaction(_op, ErrorContext(talk_id=str(talk_id)))

    async def delete_talk(self, talk_id: UUID, actor: Actor) -> None:

        async def _op(db: AsyncSession) -> None:
            talk = await self._load_talk(talk_id, for_update=True)
            require_delete(actor, talk.speaker_id, talk.id, talk.talk_state)
            await db.execute(delete(Rating).where(Rating.talk_id == talk.id))
            await db.execute(delete(TalkLabel).where(TalkLabel.talk_id == talk.id))
            await db.execute(
                update(ScheduleSlot)
                .where(ScheduleSlot.talk_id == talk.id)
                .values(talk_id=None),
            )
            await db.delete(talk)
            await db.flush()

        await self._transaction(_op, ErrorContext(talk_id=str(talk_id)))
        logger.info("Talk deleted", extra={"talk_id": talk_id, "actor_id": actor.id})

    # ─── Read projections ───────────────────────────────────────

    async def count_by_state(self) -> dict[str, int]:
        counts = {state.value: 0 for state in TalkState}
        result = await self.db.execute(
            select(Talk.state, func.count(Talk.id)).group_by(Talk.state),
        )
        for state, count in result.all():
            counts[state] = count
        return counts

    async def export_rows(self, state: TalkState | None = None) -> list[TalkExportRow]:
        query = select(Talk).order_by(Talk.submitted_at)
        if state is not None:
            query = query.where(Talk.state == state.value)
        talks = list((await self.db.execute(query)).scalars().all())

        label_rows = await self.db.execute(
            select(TalkLabel.talk_id, Label.name)
            .join(Label, Label.id == TalkLabel.label_id)
            .order_by(Label.name),
        )
        labels: dict[UUID, list[str]] = {}
        for talk_id, name in label_rows.all():
            labels.setdefault(talk_id, []).append(name)

        rating_rows = await self.db.execute(
            select(Rating.talk_id, func.sum(Rating.score), func.count(Rating.id))
            .group_by(Rating.talk_id),
        )
        ratings = {talk_id: (total, count) for talk_id, total, count in rating_rows.all()}

        rows = []
        for talk in talks:
            summary = summarize(*ratings.get(talk.id, (None, 0)))
            rows.append(TalkExportRow(
                id=talk.id,
                speaker_id=talk.speaker_id,
                title=talk.title,
                short_summary=talk.short_summary,
                long_description=talk.long_description,
                slides_url=talk.slides_url,
                state=talk.state,
                submitted_at=talk.submitted_at,
                labels=labels.get(talk.id, []),
                average_rating=summary.average,
                rating_count=summary.count,
            ))
        return rows
