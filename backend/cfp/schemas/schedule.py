"""Schedule Schemas — conferences, tracks, slots and the public schedule.

Invariants:
    - ConferenceCreate: end_date >= start_date
    - SlotCreate: start_time < end_time (checked again by the service for direct callers)
    - TrackCreate.capacity >= 1 when given
"""

from datetime import date, datetime, time
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ─── Conferences ─────────────────────────────────────────────────

class ConferenceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    start_date: date
    end_date: date
    location: str | None = Field(None, max_length=500)
    is_active: bool = True

    @model_validator(mode="after")
    def check_dates(self) -> "ConferenceCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class ConferenceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None = None
    start_date: date
    end_date: date
    location: str | None = None
    is_active: bool
    created_at: datetime


# ─── Tracks ──────────────────────────────────────────────────────

class TrackCreate(BaseModel):
    conference_id: UUID
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    capacity: int | None = Field(None, ge=1)


class TrackUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    capacity: int | None = Field(None, ge=1)


class TrackResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    conference_id: UUID
    name: str
    description: str | None = None
    capacity: int | None = None
    created_at: datetime


# ─── Slots ───────────────────────────────────────────────────────

class SlotCreate(BaseModel):
    track_id: UUID
    slot_date: date
    start_time: time
    end_time: time


class SlotUpdate(BaseModel):
    """Move or resize; the talk reference is changed only via /assignment."""
    track_id: UUID | None = None
    slot_date: date | None = None
    start_time: time | None = None
    end_time: time | None = None


class SlotAssignment(BaseModel):
    talk_id: UUID


class SlotResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    conference_id: UUID
    track_id: UUID
    talk_id: UUID | None = None
    slot_date: date
    start_time: time
    end_time: time
    updated_at: datetime


class ScheduleEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

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
