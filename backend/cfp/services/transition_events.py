"""Transition Event Outbox — read and acknowledge lifecycle events.

Invariants:
    - Events are listed oldest first
    - acknowledge() sets dispatched_at once; repeating it keeps the first timestamp
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cfp.core.domain_types import Actor
from cfp.core.errors import NotFoundError
from cfp.core.permissions import require_organizer
from cfp.models.transition_event import TransitionEvent
from cfp.services.service_base import TransactionalService


class TransitionEventOutbox(TransactionalService):
    """Consumer side of the outbox written by StateMachine."""

    async def list_events(
        self,
        actor: Actor,
        pending_only: bool = False,
        talk_id: UUID | None = None,
        limit: int = 100,
    ) -> list[TransitionEvent]:
        require_organizer(actor, "read transition events")
        query = select(TransitionEvent).order_by(TransitionEvent.occurred_at)
        if pending_only:
            query = query.where(TransitionEvent.dispatched_at.is_(None))
        if talk_id is not None:
            query = query.where(TransitionEvent.talk_id == talk_id)
        result = await self.db.execute(query.limit(limit))
        return list(result.scalars().all())

    async def acknowledge(self, actor: Actor, event_id: UUID) -> TransitionEvent:
        require_organizer(actor, "acknowledge transition events")

        async def _op(db: AsyncSession) -> TransitionEvent:
            event = await db.get(TransitionEvent, event_id)
            if event is None:
                raise NotFoundError("TransitionEvent", str(event_id))
            if event.dispatched_at is None:
                event.dispatched_at = self.clock.now()
                await db.flush()
            return event

        return await self._transaction(_op)
