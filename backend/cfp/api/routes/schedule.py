"""Schedule Routes — conferences, tracks, slots, assignment and the public schedule.

Invariants:
    - Mutations require the organizer role (enforced in the services)
    - GET /schedule is public: no identity headers needed
    - The talk in a slot changes only through PUT/DELETE /schedule-slots/{id}/assignment
"""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from cfp.api.deps import get_actor
from cfp.core.domain_types import Actor
from cfp.core.errors import NotFoundError
from cfp.infrastructure.database import get_db
from cfp.schemas.schedule import (
    ConferenceCreate, ConferenceResponse, ScheduleEntryResponse, SlotAssignment,
    SlotCreate, SlotResponse, SlotUpdate, TrackCreate, TrackResponse, TrackUpdate,
)
from cfp.services.schedule_assigner import ScheduleAssigner
from cfp.services.schedule_grid import ScheduleGrid

router = APIRouter(prefix="/api/v1", tags=["schedule"])


# ─── Conferences ─────────────────────────────────────────────────

@router.post(
    "/conferences", response_model=ConferenceResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_conference(
    body: ConferenceCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await ScheduleGrid(db).create_conference(
        actor, body.name, body.start_date, body.end_date,
        description=body.description, location=body.location, is_active=body.is_active,
    )


@router.get("/conferences", response_model=list[ConferenceResponse])
async def list_conferences(db: AsyncSession = Depends(get_db)):
    return await ScheduleGrid(db).list_conferences()


@router.get("/conferences/active", response_model=ConferenceResponse)
async def active_conference(db: AsyncSession = Depends(get_db)):
    conference = await ScheduleGrid(db).get_active_conference()
    if conference is None:
        raise NotFoundError("Conference", "active")
    return conference


# ─── Tracks ──────────────────────────────────────────────────────

@router.post("/tracks", response_model=TrackResponse, status_code=status.HTTP_201_CREATED)
async def create_track(
    body: TrackCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await ScheduleGrid(db).create_track(
        actor, body.conference_id, body.name, body.description, body.capacity,
    )


@router.get("/tracks", response_model=list[TrackResponse])
async def list_tracks(
    conference_id: UUID | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await ScheduleGrid(db).list_tracks(conference_id)


@router.patch("/tracks/{track_id}", response_model=TrackResponse)
async def update_track(
    track_id: UUID,
    body: TrackUpdate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await ScheduleGrid(db).update_track(
        actor, track_id, body.name, body.description, body.capacity,
    )


@router.delete("/tracks/{track_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_track(
    track_id: UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    await ScheduleGrid(db).delete_track(actor, track_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ─── Slots ───────────────────────────────────────────────────────

@router.post(
    "/schedule-slots", response_model=SlotResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_slot(
    body: SlotCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await ScheduleGrid(db).create_slot(
        actor, body.track_id, body.slot_date, body.start_time, body.end_time,
    )


@router.get("/schedule-slots", response_model=list[SlotResponse])
async def list_slots(
    conference_id: UUID | None = Query(None),
    track_id: UUID | None = Query(None),
    slot_date: date | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await ScheduleGrid(db).list_slots(conference_id, track_id, slot_date)


@router.get("/schedule-slots/{slot_id}", response_model=SlotResponse)
async def get_slot(slot_id: UUID, db: AsyncSession = Depends(get_db)):
    return await ScheduleGrid(db).get_slot(slot_id)


@router.patch("/schedule-slots/{slot_id}", response_model=SlotResponse)
async def update_slot(
    slot_id: UUID,
    body: SlotUpdate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await ScheduleGrid(db).update_slot(
        actor, slot_id, body.track_id, body.slot_date, body.start_time, body.end_time,
    )


@router.delete("/schedule-slots/{slot_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_slot(
    slot_id: UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    await ScheduleGrid(db).delete_slot(actor, slot_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/schedule-slots/{slot_id}/assignment", response_model=SlotResponse)
async def assign_talk(
    slot_id: UUID,
    body: SlotAssignment,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await ScheduleAssigner(db).assign(actor, slot_id, body.talk_id)


@router.delete("/schedule-slots/{slot_id}/assignment", response_model=SlotResponse)
async def unassign_talk(
    slot_id: UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await ScheduleAssigner(db).unassign(actor, slot_id)


# ─── Public schedule ─────────────────────────────────────────────

@router.get("/schedule", response_model=list[ScheduleEntryResponse])
async def public_schedule(
    conference_id: UUID | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Every slot with its track and (if assigned) talk, in programme order."""
    return await ScheduleGrid(db).public_schedule(conference_id)
