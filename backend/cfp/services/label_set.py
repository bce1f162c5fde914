"""LabelSet — label catalog and many-to-many tagging of talks.

Invariants:
    - Label names are unique (application check gives DUPLICATE_LABEL_NAME, the unique
      index catches races)
    - add_labels: empty list -> ValidationError; unknown talk or label -> NotFoundError;
      a label already on the talk is skipped, not duplicated
    - remove_label is idempotent
    - delete_label removes every (*, label) junction row before the label itself
    - labels_for_talk ordered by label name

Design Decisions:
    - Junction rows deleted with an explicit statement: no reliance on ON DELETE CASCADE
      (SQLite test databases run without foreign key enforcement)
    - is_ai_generated carried as provenance only; automated taggers act with the organizer role
"""

import logging
from datetime import datetime
from typing import Iterable
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from cfp.core.domain_types import Actor
from cfp.core.errors import (
    ConflictError, ErrorContext, NotFoundError, ValidationError, DUPLICATE_LABEL_NAME,
)
from cfp.core.permissions import require_label, require_organizer
from cfp.core.validate_fields import normalize_label_name, optional_text, validate_color
from cfp.models.label import Label, TalkLabel
from cfp.services.service_base import TransactionalService

logger = logging.getLogger(__name__)


def _unique(ids: Iterable[UUID]) -> list[UUID]:
    seen: dict[UUID, None] = {}
    for label_id in ids:
        seen.setdefault(label_id, None)
    return list(seen)


async def attach_labels(
    db: AsyncSession, talk_id: UUID, label_ids: Iterable[UUID],
    added_by: UUID | None, added_at: datetime,
) -> int:
    """Insert missing junction rows inside the caller's transaction. Returns rows added."""
    wanted = _unique(label_ids)
    found = set((await db.execute(
        select(Label.id).where(Label.id.in_(wanted)),
    )).scalars())
    for label_id in wanted:
        if label_id not in found:
            raise NotFoundError("Label", str(label_id), ErrorContext(talk_id=str(talk_id)))
    present = set((await db.execute(
        select(TalkLabel.label_id).where(TalkLabel.talk_id == talk_id),
    )).scalars())
    added = 0
    for label_id in wanted:
        if label_id in present:
            continue
        db.add(TalkLabel(
            talk_id=talk_id, label_id=label_id,
            added_by=added_by, added_at=added_at,
        ))
        added += 1
    await db.flush()
    return added


class LabelSet(TransactionalService):
    """Label catalog CRUD and talk tagging."""

    # ─── Catalog ────────────────────────────────────────────────

    async def _ensure_name_free(self, name: str, exclude_id: UUID | None = None) -> None:
        query = select(Label.id).where(Label.name == name)
        if exclude_id is not None:
            query = query.where(Label.id != exclude_id)
        if (await self.db.execute(query)).first() is not None:
            raise ConflictError(
                f"Label '{name}' already exists", DUPLICATE_LABEL_NAME,
            )

    async def create_label(
        self,
        actor: Actor,
        name: str,
        description: str | None = None,
        color: str | None = None,
        is_ai_generated: bool = False,
    ) -> Label:
        require_organizer(actor, "manage labels")
        name = normalize_label_name(name)
        color = validate_color(color)

        async def _op(db: AsyncSession) -> Label:
            await self._ensure_name_free(name)
            label = Label(
                name=name,
                description=optional_text(description),
                color=color,
                is_ai_generated=is_ai_generated,
                created_at=self.clock.now(),
            )
            db.add(label)
            await db.flush()
            return label

        label = await self._transaction(_op)
        logger.info(f"Label created: {label.name}", extra={"actor_id": actor.id})
        return label

    async def update_label(
        self,
        actor: Actor,
        label_id: UUID,
        name: str | None = None,
        description: str | None = None,
        color: str | None = None,
    ) -> Label:
        """Partial update; None leaves a field unchanged."""
        require_organizer(actor, "manage labels")
        new_name = normalize_label_name(name) if name is not None else None
        new_color = validate_color(color)

        async def _op(db: AsyncSession) -> Label:
            label = await self._load_label(label_id)
            if new_name is not None and new_name != label.name:
                await self._ensure_name_free(new_name, exclude_id=label.id)
                label.name = new_name
            if description is not None:
                label.description = optional_text(description)
            if new_color is not None:
                label.color = new_color
            await db.flush()
            return label

        return await self._transaction(_op)

    async def list_labels(self) -> list[Label]:
        result = await self.db.execute(select(Label).order_by(Label.name))
        return list(result.scalars().all())

    async def get_label(self, label_id: UUID) -> Label:
        return await self._load_label(label_id)

    async def delete_label(self, actor: Actor, label_id: UUID) -> None:
        require_organizer(actor, "manage labels")

        async def _op(db: AsyncSession) -> int:
            label = await self._load_label(label_id)
            removed = await db.execute(
                delete(TalkLabel).where(TalkLabel.label_id == label.id),
            )
            await db.delete(label)
            await db.flush()
            return removed.rowcount or 0

        removed = await self._transaction(_op)
        logger.info(f"Label {label_id} deleted, {removed} talk tags removed")

    # ─── Tagging ────────────────────────────────────────────────

    async def add_labels(
        self, talk_id: UUID, label_ids: list[UUID], actor: Actor,
    ) -> list[Label]:
        """Attach labels to a talk; returns the talk's labels afterwards."""
        ctx = ErrorContext(talk_id=str(talk_id), actor_id=str(actor.id))
        if not label_ids:
            raise ValidationError("At least one label is required", "label_ids", ctx)

        async def _op(db: AsyncSession) -> int:
            talk = await self._load_talk(talk_id)
            require_label(actor, talk.speaker_id, talk.id)
            return await attach_labels(db, talk.id, label_ids, actor.id, self.clock.now())

        added = await self._transaction(_op, ctx)
        logger.info(
            f"{added} label(s) added to talk", extra={"talk_id": talk_id, "actor_id": actor.id},
        )
        return await self.labels_for_talk(talk_id)

    async def remove_label(self, talk_id: UUID, label_id: UUID, actor: Actor) -> bool:
        """Detach a label; False when it was not attached."""

        async def _op(db: AsyncSession) -> bool:
            talk = await self._load_talk(talk_id)
            require_label(actor, talk.speaker_id, talk.id)
            result = await db.execute(
                delete(TalkLabel)
                .where(TalkLabel.talk_id == talk.id)
                .where(TalkLabel.label_id == label_id),
            )
            return bool(result.rowcount)

        return await self._transaction(_op, ErrorContext(talk_id=str(talk_id)))

    async def labels_for_talk(self, talk_id: UUID) -> list[Label]:
        result = await self.db.execute(
            select(Label)
            .join(TalkLabel, TalkLabel.label_id == Label.id)
            .where(TalkLabel.talk_id == talk_id)
            .order_by(Label.name),
        )
        return list(result.scalars().all())
