"""Rating Schemas — score input and aggregate outputs.

Invariants:
    - RatingCreate.score is a strict integer in [1, 5] (JSON true or "4" rejected)
    - RatingSummaryResponse.average is null when count == 0
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StrictInt


class RatingCreate(BaseModel):
    score: StrictInt = Field(ge=1, le=5)
    notes: str | None = Field(None, max_length=5000)


class RatingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    talk_id: UUID
    reviewer_id: UUID
    score: int
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class RatingSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    average: float | None
    count: int


class RankedTalkResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    talk_id: UUID
    title: str
    state: str
    average: float
    rating_count: int


class RatingStatisticsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_talks: int
    total_ratings: int
    talks_with_ratings: int
    talks_without_ratings: int
    overall_average: float | None
    histogram: dict[int, int]
    top_talks: list[RankedTalkResponse]
