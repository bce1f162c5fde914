"""ScheduleGrid — conferences, tracks and non-overlapping time slots.

Invariants:
    - Slots are half-open [start, end) with start < end (ValidationError otherwise)
    - No two slots of one track overlap on the same date (Conflict SLOT_OVERLAP)
    - Slot creation and moves lock the target track row, so concurrent writers to one
      track serialize on the overlap check
    - update_slot never changes the talk reference (ScheduleAssigner owns it)
    - delete_track refuses while any of its slots holds a talk (TRACK_HAS_ASSIGNED_SLOTS)
    - public_schedule ordered by date, start time, track name

Design Decisions:
    - Overlap decided in core/slot_overlap.py against the track's slots for that date;
      the PostgreSQL exclusion constraint backs it for writers that bypass the lock
    - conference_id of a slot always copied from its track
"""

import logging
from dataclasses import dataclass
from datetime import date, time
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from cfp.core.domain_types import Actor
from cfp.core.errors import (
    ConflictError, ErrorContext, NotFoundError,
    SLOT_OVERLAP, TRACK_HAS_ASSIGNED_SLOTS,
)
from cfp.core.permissions import require_organizer
from cfp.core.slot_overlap import find_overlap, validate_interval
from cfp.core.validate_fields import (
    optional_text, require_text, validate_capacity, validate_date_range,
)
from cfp.models.conference import Conference
from cfp.models.schedule_slot import ScheduleSlot
from cfp.models.talk import Talk
from cfp.models.track import Track
from cfp.services.service_base import TransactionalService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduleEntry:
    """One row of the public schedule."""
    slot_id: UUID
    conference_id: UUID
    slot_date: date
    start_time: time
    end_time: time
    track_id: UUID
    track_name: str
    talk_id: UUID | None = None
    talk_title: str | None = None
    talk_summary: str | None = None
    speaker_id: UUID | None = None


class ScheduleGrid(TransactionalService):
    """Conference catalog and slot definitions."""

    # ─── Conferences ────────────────────────────────────────────

    async def create_conference(
        self,
        actor: Actor,
        name: str,
        start_date: date,
        end_date: date,
        description: str | None = None,
        location: str | None = None,
        is_active: bool = True,
    ) -> Conference:
        require_organizer(actor, "manage conferences")
        name = require_text(name, "name", 255)
        validate_date_range(start_date, end_date)

        async def _op(db: AsyncSession) -> Conference:
            now = self.clock.now()
            conference = Conference(
                name=name,
                description=optional_text(description),
                start_date=start_date,
                end_date=end_date,
                location=optional_text(location),
                is_active=is_active,
                created_at=now,
                updated_at=now,
            )
            db.add(conference)
            await db.flush()
            return conference

        conference = await self._transaction(_op)
        logger.info(f"Conference created: {conference.name}", extra={"actor_id": actor.id})
        return conference

    async def list_conferences(self) -> list[Conference]:
        result = await self.db.execute(
            select(Conference).order_by(Conference.start_date.desc()),
        )
        return list(result.scalars().all())

    async def get_active_conference(self) -> Conference | None:
        """Most recent active conference, if any."""
        result = await self.db.execute(
            select(Conference)
            .where(Conference.is_active.is_(True))
            .order_by(Conference.start_date.desc())
            .limit(1),
        )
        return result.scalar_one_or_none()

    # ─── Tracks ─────────────────────────────────────────────────

    async def create_track(
        self,
        actor: Actor,
        conference_id: UUID,
        name: str,
        description: str | None = None,
        capacity: int | None = None,
    ) -> Track:
        require_organizer(actor, "manage tracks")
        name = require_text(name, "name", 255)
        capacity = validate_capacity(capacity)

        async def _op(db: AsyncSession) -> Track:
            if await db.get(Conference, conference_id) is None:
                raise NotFoundError("Conference", str(conference_id))
            track = Track(
                conference_id=conference_id,
                name=name,
                description=optional_text(description),
                capacity=capacity,
                created_at=self.clock.now(),
            )
            db.add(track)
            await db.flush()
            return track

        return await self._transaction(_op)

    async def update_track(
        self,
        actor: Actor,
        track_id: UUID,
        name: str | None = None,
        description: str | None = None,
        capacity: int | None = None,
    ) -> Track:
        require_organizer(actor, "manage tracks")
        new_name = require_text(name, "name", 255) if name is not None else None
        capacity = validate_capacity(capacity)

        async def _op(db: AsyncSession) -> Track:
            track = await self._load_track(track_id, for_update=True)
            if new_name is not None:
                track.name = new_name
            if description is not None:
                track.description = optional_text(description)
            if capacity is not None:
                track.capacity = capacity
            await db.flush()
            return track

        return await self._transaction(_op)

    async def list_tracks(self, conference_id: UUID | None = None) -> list[Track]:
        query = select(Track).order_by(Track.name)
        if conference_id is not None:
            query = query.where(Track.conference_id == conference_id)
        return list((await self.db.execute(query)).scalars().all())

    async def delete_track(self, actor: Actor, track_id: UUID) -> None:
        require_organizer(actor, "manage tracks")

        async def _op(db: AsyncSession) -> None:
            track = await self._load_track(track_id, for_update=True)
            occupied = (await db.execute(
                select(ScheduleSlot.id)
                .where(ScheduleSlot.track_id == track.id)
                .where(ScheduleSlot.talk_id.is_not(None))
                .limit(1),
            )).first()
            if occupied is not None:
                raise ConflictError(
                    "Track has slots with assigned talks", TRACK_HAS_ASSIGNED_SLOTS,
                    ErrorContext(slot_id=str(occupied[0])),
                )
            await db.execute(delete(ScheduleSlot).where(ScheduleSlot.track_id == track.id))
            await db.delete(track)
            await db.flush()

        await self._transaction(_op)
        logger.info(f"Track {track_id} deleted", extra={"actor_id": actor.id})

    # ─── Slots ──────────────────────────────────────────────────

    async def _ensure_no_overlap(
        self, track_id: UUID, slot_date: date, start: time, end: time,
        exclude_id: UUID | None = None,
    ) -> None:
        result = await self.db.execute(
            select(ScheduleSlot)
            .where(ScheduleSlot.track_id == track_id)
            .where(ScheduleSlot.slot_date == slot_date),
        )
        clash = find_overlap(start, end, result.scalars().all(), exclude_id)
        if clash is not None:
            raise ConflictError(
                f"Slot overlaps {clash.start_time:%H:%M}-{clash.end_time:%H:%M} "
                f"on this track",
                SLOT_OVERLAP,
                ErrorContext(slot_id=str(clash.id)),
            )

    async def create_slot(
        self, actor: Actor, track_id: UUID, slot_date: date, start: time, end: time,
    ) -> ScheduleSlot:
        require_organizer(actor, "manage the schedule")
        validate_interval(start, end)

        async def _op(db: AsyncSession) -> ScheduleSlot:
            track = await self._load_track(track_id, for_update=True)
            await self._ensure_no_overlap(track.id, slot_date, start, end)
            now = self.clock.now()
            slot = ScheduleSlot(
                conference_id=track.conference_id,
                track_id=track.id,
                slot_date=slot_date,
                start_time=start,
                end_time=end,
                created_at=now,
                updated_at=now,
            )
            db.add(slot)
            await db.flush()
            return slot

        slot = await self._transaction(_op)
        logger.info(
            f"Slot created {slot_date} {start:%H:%M}-{end:%H:%M}",
            extra={"slot_id": slot.id, "actor_id": actor.id},
        )
        return slot

    async def update_slot(
        self,
        actor: Actor,
        slot_id: UUID,
        track_id: UUID | None = None,
        slot_date: date | None = None,
        start: time | None = None,
        end: time | None = None,
    ) -> ScheduleSlot:
        """Move or resize a slot; omitted fields keep their value."""
        require_organizer(actor, "manage the schedule")
        ctx = ErrorContext(slot_id=str(slot_id))

        async def _op(db: AsyncSession) -> ScheduleSlot:
            slot = await self._load_slot(slot_id, for_update=True)
            track = await self._load_track(
                track_id if track_id is not None else slot.track_id, for_update=True,
            )
            new_date = slot_date if slot_date is not None else slot.slot_date
            new_start = start if start is not None else slot.start_time
            new_end = end if end is not None else slot.end_time
            validate_interval(new_start, new_end, ctx)
            await self._ensure_no_overlap(
                track.id, new_date, new_start, new_end, exclude_id=slot.id,
            )
            slot.track_id = track.id
            slot.conference_id = track.conference_id
            slot.slot_date = new_date
            slot.start_time = new_start
            slot.end_time = new_end
            slot.updated_at = self.clock.now()
            await db.flush()
            return slot

        return await self._transaction(_op, ctx)

    async def delete_slot(self, actor: Actor, slot_id: UUID) -> None:
        """Delete a slot; a talk it held simply becomes unscheduled."""
        require_organizer(actor, "manage the schedule")

        async def _op(db: AsyncSession) -> None:
            slot = await self._load_slot(slot_id, for_update=True)
            await db.delete(slot)
            await db.flush()

        await self._transaction(_op, ErrorContext(slot_id=str(slot_id)))
        logger.info("Slot deleted", extra={"slot_id": slot_id, "actor_id": actor.id})

    async def get_slot(self, slot_id: UUID) -> ScheduleSlot:
        return await self._load_slot(slot_id)

    async def list_slots(
        self,
        conference_id: UUID | None = None,
        track_id: UUID | None = None,
        slot_date: date | None = None,
    ) -> list[ScheduleSlot]:
        query = select(ScheduleSlot).order_by(
            ScheduleSlot.slot_date, ScheduleSlot.start_time,
        )
        if conference_id is not None:
            query = query.where(ScheduleSlot.conference_id == conference_id)
        if track_id is not None:
            query = query.where(ScheduleSlot.track_id == track_id)
        if slot_date is not None:
            query = query.where(ScheduleSlot.slot_date == slot_date)
        return list((await self.db.execute(query)).scalars().all())

    async def public_schedule(self, conference_id: UUID | None = None) -> list[ScheduleEntry]:
        query = (
            select(ScheduleSlot, Track.name, Talk)
            .join(Track, Track.id == ScheduleSlot.track_id)
            .outerjoin(Talk, Talk.id == ScheduleSlot.talk_id)
            .order_by(ScheduleSlot.slot_date, ScheduleSlot.start_time, Track.name)
        )
        if conference_id is not None:
            query = query.where(ScheduleSlot.conference_id == conference_id)
        entries = []
        for slot, track_name, talk in (await self.db.execute(query)).all():
            entries.append(ScheduleEntry(
                slot_id=slot.id,
                conference_id=slot.conference_id,
                slot_date=slot.slot_date,
                start_time=slot.start_time,
                end_time=slot.end_time,
                track_id=slot.track_id,
                track_name=track_name,
                talk_id=talk.id if talk else None,
                talk_title=talk.title if talk else None,
                talk_summary=talk.short_summary if talk else None,
                speaker_id=talk.speaker_id if talk else None,
            ))
        return entries
