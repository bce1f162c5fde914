"""StateMachine — applies talk lifecycle transitions under a row lock.

Invariants:
    - Edge and permission checks come from core/transitions.py; nothing here decides legality
    - The talk row is locked (SELECT ... FOR UPDATE) before the current state is read
    - accepted -> rejected clears the talk's slot in the same transaction
    - Each applied transition writes exactly one TransitionEvent (outbox)
    - A failed transition leaves the stored state, slot and outbox untouched

Design Decisions:
    - Slot cleared by UPDATE ... WHERE talk_id: covers any stale reference, not only the
      one a reader last saw
    - No notification sent here: the dispatcher consumes the outbox
"""

import logging
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from cfp.core.domain_types import Actor, TalkState
from cfp.core.errors import ErrorContext
from cfp.core.transitions import check_transition, clears_schedule
from cfp.models.schedule_slot import ScheduleSlot
from cfp.models.talk import Talk
from cfp.models.transition_event import TransitionEvent
from cfp.services.service_base import TransactionalService

logger = logging.getLogger(__name__)


class StateMachine(TransactionalService):
    """Validated, atomic talk state changes."""

    async def apply_transition(
        self, talk_id: UUID, target: TalkState, actor: Actor,
    ) -> Talk:
        ctx = ErrorContext(talk_id=str(talk_id), actor_id=str(actor.id))

        async def _op(db: AsyncSession) -> tuple[Talk, TalkState, int]:
            talk = await self._load_talk(talk_id, for_update=True)
            current = talk.talk_state
            check_transition(actor, talk.speaker_id, current, target, ctx)

            now = self.clock.now()
            cleared = 0
            if clears_schedule(current, target):
                result = await db.execute(
                    update(ScheduleSlot)
                    .where(ScheduleSlot.talk_id == talk.id)
                    .values(talk_id=None, updated_at=now),
                )
                cleared = result.rowcount or 0
            talk.state = target.value
            talk.updated_at = now
            db.add(TransitionEvent(
                talk_id=talk.id,
                old_state=current.value,
                new_state=target.value,
                actor_id=actor.id,
                occurred_at=now,
            ))
            await db.flush()
            return talk, current, cleared

        talk, previous, cleared = await self._transaction(_op, ctx)
        logger.info(
            f"Talk transitioned {previous.value} -> {target.value}",
            extra={
                "talk_id": talk.id, "actor_id": actor.id,
                "old_state": previous.value, "new_state": target.value,
            },
        )
        if cleared:
            logger.info("Schedule slot released by cancellation", extra={"talk_id": talk.id})
        return talk

    async def respond(self, talk_id: UUID, accept: bool, actor: Actor) -> Talk:
        """Speaker's answer to a pending invitation."""
        target = TalkState.ACCEPTED if accept else TalkState.REJECTED
        return await self.apply_transition(talk_id, target, actor)
