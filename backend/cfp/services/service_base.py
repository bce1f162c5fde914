"""Service Base — session, clock and retry policy shared by every service, plus row lookups.

Invariants:
    - _load_* helpers raise NotFoundError, never return None
    - for_update=True issues SELECT ... FOR UPDATE (no-op on SQLite) and refreshes the
      identity-map copy from the locked row
    - _transaction delegates to run_in_transaction; no service commits on its own
    - A failed _transaction rolls the shared session back, which expires every entity
      loaded through it; callers holding such an entity must refresh it (or keep only its id)
      before reading attributes again
    - Talks are locked before slots, matching StateMachine (talk, then the slots it releases)
"""

from typing import Awaitable, Callable, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cfp.core.errors import ErrorContext, NotFoundError
from cfp.core.repository_protocols import Clock
from cfp.infrastructure.clock import SystemClock
from cfp.infrastructure.transactions import RetryPolicy, run_in_transaction
from cfp.models.label import Label
from cfp.models.schedule_slot import ScheduleSlot
from cfp.models.talk import Talk
from cfp.models.track import Track

T = TypeVar("T")


class TransactionalService:
    """Holds the session and collaborators for one request."""

    def __init__(
        self,
        db: AsyncSession,
        clock: Clock | None = None,
        policy: RetryPolicy | None = None,
    ):
        self.db = db
        self.clock = clock or SystemClock()
        self.policy = policy

    async def _transaction(
        self,
        operation: Callable[[AsyncSession], Awaitable[T]],
        context: ErrorContext | None = None,
    ) -> T:
        return await run_in_transaction(
            self.db, operation, policy=self.policy, context=context,
        )

    # ─── Lookups ────────────────────────────────────────────────

    async def _find_talk(self, talk_id: UUID, for_update: bool = False) -> Talk | None:
        query = select(Talk).where(Talk.id == talk_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        return (await self.db.execute(query)).scalar_one_or_none()

    async def _load_talk(self, talk_id: UUID, for_update: bool = False) -> Talk:
        talk = await self._find_talk(talk_id, for_update)
        if talk is None:
            raise NotFoundError("Talk", str(talk_id), ErrorContext(talk_id=str(talk_id)))
        return talk

    async def _load_slot(self, slot_id: UUID, for_update: bool = False) -> ScheduleSlot:
        query = (
            select(ScheduleSlot)
            .where(ScheduleSlot.id == slot_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()
        slot = (await self.db.execute(query)).scalar_one_or_none()
        if slot is None:
            raise NotFoundError(
                "ScheduleSlot", str(slot_id), ErrorContext(slot_id=str(slot_id)),
            )
        return slot

    async def _load_track(self, track_id: UUID, for_update: bool = False) -> Track:
        query = select(Track).where(Track.id == track_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        track = (await self.db.execute(query)).scalar_one_or_none()
        if track is None:
            raise NotFoundError("Track", str(track_id))
        return track

    async def _load_label(self, label_id: UUID) -> Label:
        label = await self.db.get(Label, label_id)
        if label is None:
            raise NotFoundError("Label", str(label_id))
        return label
