"""Slot Interval Rules — half-open time intervals and their overlap test.

Invariants:
    - Intervals are half-open [start, end): back-to-back slots never overlap
    - validate_interval raises ValidationError when start >= end
    - Overlap is only meaningful within one track and one date; callers scope the candidates

Design Decisions:
    - Same predicate as the storage exclusion constraint (tsrange '[)' &&), so the
      application check and the database agree on every boundary case
"""

from datetime import time
from typing import Iterable, Protocol
from uuid import UUID

from cfp.core.errors import ErrorContext, ValidationError


class IntervalLike(Protocol):
    id: UUID
    start_time: time
    end_time: time


def validate_interval(
    start: time, end: time, context: ErrorContext | None = None,
) -> None:
    if start >= end:
        raise ValidationError(
            "Start time must be before end time", "start_time", context,
        )


def intervals_overlap(
    start_a: time, end_a: time, start_b: time, end_b: time,
) -> bool:
    """a.start < b.end AND b.start < a.end."""
    return start_a < end_b and start_b < end_a


def find_overlap(
    start: time, end: time, existing: Iterable[IntervalLike],
    exclude_id: UUID | None = None,
) -> IntervalLike | None:
    """First existing interval overlapping [start, end), skipping exclude_id."""
    for slot in existing:
        if exclude_id is not None and slot.id == exclude_id:
            continue
        if intervals_overlap(start, end, slot.start_time, slot.end_time):
            return slot
    return None
