"""Rating Statistics — pure aggregation of reviewer scores.

Invariants:
    - All inputs are plain rows already read from the store (no IO, no DB)
    - average is None (the "no rating" sentinel) when count == 0, never 0.0
    - Histogram always carries all five score keys
    - Ranking: average desc, rating count desc, submitted_at asc; unrated talks excluded

Design Decisions:
    - Recomputed per read from store rows: no cached aggregate can drift from storage
    - Sum + count per talk instead of score lists: the store aggregates, core divides
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable
from uuid import UUID

from cfp.core.domain_types import MAX_SCORE, MIN_SCORE
from cfp.core.errors import ErrorContext, ValidationError


@dataclass(frozen=True)
class RatingSummary:
    """Mean and count of the current scores for one talk."""
    average: float | None
    count: int

    @property
    def has_rating(self) -> bool:
        return self.count > 0


@dataclass(frozen=True)
class TalkRatingRow:
    """Per-talk aggregate as read from the store."""
    talk_id: UUID
    title: str
    state: str
    submitted_at: datetime
    rating_count: int
    rating_sum: int


@dataclass(frozen=True)
class RankedTalk:
    talk_id: UUID
    title: str
    state: str
    average: float
    rating_count: int


@dataclass
class RatingStatistics:
    total_talks: int = 0
    total_ratings: int = 0
    talks_with_ratings: int = 0
    talks_without_ratings: int = 0
    overall_average: float | None = None
    histogram: dict[int, int] = field(default_factory=dict)
    top_talks: list[RankedTalk] = field(default_factory=list)


def validate_score(score: int, context: ErrorContext | None = None) -> None:
    # bool is an int subclass; a JSON `true` must not become a 1-star rating
    if isinstance(score, bool) or not isinstance(score, int):
        raise ValidationError("Rating must be an integer", "score", context)
    if score < MIN_SCORE or score > MAX_SCORE:
        raise ValidationError(
            f"Rating must be between {MIN_SCORE} and {MAX_SCORE}", "score", context,
        )


def summarize(total: int | None, count: int) -> RatingSummary:
    if not count:
        return RatingSummary(average=None, count=0)
    return RatingSummary(average=(total or 0) / count, count=count)


def build_histogram(counts: Iterable[tuple[int, int]]) -> dict[int, int]:
    """(score, count) pairs -> {1: n1, ..., 5: n5}."""
    histogram = {score: 0 for score in range(MIN_SCORE, MAX_SCORE + 1)}
    for score, count in counts:
        if score in histogram:
            histogram[score] = count
    return histogram


def rank_talks(rows: Iterable[TalkRatingRow], top_n: int) -> list[RankedTalk]:
    rated = [r for r in rows if r.rating_count > 0]
    rated.sort(key=lambda r: (
        -(r.rating_sum / r.rating_count), -r.rating_count, r.submitted_at,
    ))
    return [
        RankedTalk(
            talk_id=r.talk_id,
            title=r.title,
            state=r.state,
            average=r.rating_sum / r.rating_count,
            rating_count=r.rating_count,
        )
        for r in rated[:max(top_n, 0)]
    ]


def compute_statistics(
    rows: list[TalkRatingRow], histogram_counts: Iterable[tuple[int, int]],
    top_n: int = 10,
) -> RatingStatistics:
    """Build the cross-talk statistics from per-talk aggregates."""
    total_ratings = sum(r.rating_count for r in rows)
    total_sum = sum(r.rating_sum for r in rows)
    rated = sum(1 for r in rows if r.rating_count > 0)
    return RatingStatistics(
        total_talks=len(rows),
        total_ratings=total_ratings,
        talks_with_ratings=rated,
        talks_without_ratings=len(rows) - rated,
        overall_average=summarize(total_sum, total_ratings).average,
        histogram=build_histogram(histogram_counts),
        top_talks=rank_talks(rows, top_n),
    )
