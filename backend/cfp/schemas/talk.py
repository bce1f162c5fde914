"""Talk Schemas — submission, edit, transition and export payloads.

Invariants:
    - TalkCreate.title: 1-500 chars, stripped; short_summary non-empty after strip
    - TransitionRequest.target_state must be a TalkState value
    - Responses read ORM objects directly (from_attributes)
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cfp.core.domain_types import TalkState


class TalkCreate(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    short_summary: str = Field(min_length=1)
    long_description: str | None = None
    label_ids: list[UUID] = Field(default_factory=list)

    @field_validator("title", "short_summary")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty or whitespace")
        return v


class TalkUpdate(BaseModel):
    """Partial edit; fields left out are unchanged."""
    title: str | None = Field(None, min_length=1, max_length=500)
    short_summary: str | None = Field(None, min_length=1)
    long_description: str | None = None


class SlidesUpdate(BaseModel):
    slides_url: str | None = Field(None, max_length=1000)


class TransitionRequest(BaseModel):
    target_state: TalkState


class RespondRequest(BaseModel):
    """Speaker's answer to a pending invitation."""
    accept: bool


class TalkResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    speaker_id: UUID
    title: str
    short_summary: str
    long_description: str | None = None
    slides_url: str | None = None
    state: TalkState
    submitted_at: datetime
    updated_at: datetime


class TalkDetailResponse(TalkResponse):
    """Talk plus the targets the caller may move it to."""
    allowed_transitions: list[TalkState] = Field(default_factory=list)


class TalkExportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    speaker_id: UUID
    title: str
    short_summary: str
    long_description: str | None = None
    slides_url: str | None = None
    state: TalkState
    submitted_at: datetime
    labels: list[str]
    average_rating: float | None = None
    rating_count: int


class DashboardStats(BaseModel):
    total_talks: int
    by_state: dict[str, int]
