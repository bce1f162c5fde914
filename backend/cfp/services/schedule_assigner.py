"""ScheduleAssigner — binds accepted talks to slots.

Invariants:
    - Check order: NotFound (slot, then talk) -> StateError (talk not accepted)
      -> Conflict SLOT_OCCUPIED -> Conflict TALK_ALREADY_SCHEDULED
    - Assigning the same (slot, talk) pair again is a no-op returning the slot
    - The talk row is locked for the whole assignment, so a concurrent cancellation
      either runs first (assign sees rejected) or after (and clears the slot)
    - The slot row is locked too: two assignments racing for one empty slot serialize,
      and the loser sees SLOT_OCCUPIED at any isolation level
    - Locks taken talk first, then slot (same order as StateMachine)
    - unassign is idempotent

Design Decisions:
    - Partial unique index on schedule_slots.talk_id backs TALK_ALREADY_SCHEDULED against
      races; IntegrityError surfaces as Conflict via the transaction runner
"""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cfp.core.domain_types import Actor, TalkState
from cfp.core.errors import (
    ConflictError, ErrorContext, NotFoundError, StateError,
    SLOT_OCCUPIED, TALK_ALREADY_SCHEDULED,
)
from cfp.core.permissions import require_organizer
from cfp.models.schedule_slot import ScheduleSlot
from cfp.services.service_base import TransactionalService

logger = logging.getLogger(__name__)


class ScheduleAssigner(TransactionalService):
    """Talk <-> slot assignment."""

    async def assign(self, actor: Actor, slot_id: UUID, talk_id: UUID) -> ScheduleSlot:
        require_organizer(actor, "manage the schedule")
        ctx = ErrorContext(talk_id=str(talk_id), slot_id=str(slot_id), actor_id=str(actor.id))

        async def _op(db: AsyncSession) -> ScheduleSlot:
            talk = await self._find_talk(talk_id, for_update=True)
            slot = await self._load_slot(slot_id, for_update=True)
            if talk is None:
                raise NotFoundError("Talk", str(talk_id), ctx)
            if talk.talk_state != TalkState.ACCEPTED:
                raise StateError(
                    f"Only accepted talks can be scheduled (talk is {talk.state})",
                    talk.state, ctx,
                )
            if slot.talk_id == talk.id:
                return slot
            if slot.talk_id is not None:
                raise ConflictError("Slot already holds another talk", SLOT_OCCUPIED, ctx)
            other = (await db.execute(
                select(ScheduleSlot.id)
                .where(ScheduleSlot.talk_id == talk.id)
                .where(ScheduleSlot.id != slot.id),
            )).first()
            if other is not None:
                raise ConflictError(
                    "Talk is already scheduled in another slot",
                    TALK_ALREADY_SCHEDULED, ctx,
                )
            slot.talk_id = talk.id
            slot.updated_at = self.clock.now()
            await db.flush()
            return slot

        slot = await self._transaction(_op, ctx)
        logger.info(
            "Talk assigned to slot",
            extra={"talk_id": talk_id, "slot_id": slot_id, "actor_id": actor.id},
        )
        return slot

    async def unassign(self, actor: Actor, slot_id: UUID) -> ScheduleSlot:
        require_organizer(actor, "manage the schedule")

        async def _op(db: AsyncSession) -> ScheduleSlot:
            slot = await self._load_slot(slot_id, for_update=True)
            if slot.talk_id is not None:
                slot.talk_id = None
                slot.updated_at = self.clock.now()
                await db.flush()
            return slot

        return await self._transaction(_op, ErrorContext(slot_id=str(slot_id)))
