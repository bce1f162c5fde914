"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - TalkId, SlotId, TrackId, LabelId wrap UUIDs — never use bare UUID in domain logic
    - All valid states and roles encoded as Enums — no raw string matching
    - Actor is immutable once built from the identity context

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON and persist to String columns without custom encoders
"""

from dataclasses import dataclass
from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

TalkId = NewType("TalkId", UUID)
UserId = NewType("UserId", UUID)
LabelId = NewType("LabelId", UUID)
TrackId = NewType("TrackId", UUID)
SlotId = NewType("SlotId", UUID)
ConferenceId = NewType("ConferenceId", UUID)


# ─── Value Types ─────────────────────────────────────────────────

Score = NewType("Score", int)   # 1–5

MIN_SCORE: int = 1
MAX_SCORE: int = 5


# ─── Enums ───────────────────────────────────────────────────────

class TalkState(str, Enum):
    """Talk lifecycle states — maps to DB `state` column."""
    SUBMITTED = "submitted"
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ActorRole(str, Enum):
    """Caller roles supplied by the identity context."""
    SPEAKER = "speaker"
    ORGANIZER = "organizer"


class ActorKind(str, Enum):
    """Who a transition edge admits — ownership is part of the kind."""
    ORGANIZER = "organizer"
    OWNER = "owner"


# ─── Actor ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class Actor:
    """Caller identity and role for one operation."""
    id: UUID
    role: ActorRole

    @property
    def is_organizer(self) -> bool:
        return self.role == ActorRole.ORGANIZER

    def owns(self, speaker_id: UUID) -> bool:
        return self.id == speaker_id
