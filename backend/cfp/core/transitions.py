"""Talk Lifecycle Transitions — the transition table as data plus its pure checks.

Invariants:
    - TRANSITIONS is the single source of truth for legal (from, to, actor) edges
    - check_transition is PURE: raises, never mutates
    - Table membership is checked before permission (InvalidTransition wins over PermissionDenied)
    - Self-pairs (x -> x) are not edges

Design Decisions:
    - Enumerable frozenset over per-state dispatch: exhaustive edge tests and
      permission audits iterate the table directly
    - Ownership is an actor kind (OWNER), so "speaker (own talk)" is one row, not a special case
"""

from typing import NamedTuple
from uuid import UUID

from cfp.core.domain_types import Actor, ActorKind, TalkState
from cfp.core.errors import ErrorContext, InvalidTransitionError, PermissionDeniedError


class Transition(NamedTuple):
    """One legal edge of the lifecycle graph."""
    source: TalkState
    target: TalkState
    actor: ActorKind


TRANSITIONS: frozenset[Transition] = frozenset({
    Transition(TalkState.SUBMITTED, TalkState.PENDING, ActorKind.ORGANIZER),
    Transition(TalkState.SUBMITTED, TalkState.REJECTED, ActorKind.ORGANIZER),
    Transition(TalkState.PENDING, TalkState.ACCEPTED, ActorKind.OWNER),
    Transition(TalkState.PENDING, TalkState.REJECTED, ActorKind.OWNER),
    Transition(TalkState.PENDING, TalkState.REJECTED, ActorKind.ORGANIZER),
    Transition(TalkState.ACCEPTED, TalkState.REJECTED, ActorKind.ORGANIZER),
})


def is_edge(source: TalkState, target: TalkState) -> bool:
    """True when (source, target) appears in the table for any actor."""
    return any(t.source == source and t.target == target for t in TRANSITIONS)


def allowed_actor_kinds(source: TalkState, target: TalkState) -> frozenset[ActorKind]:
    return frozenset(
        t.actor for t in TRANSITIONS if t.source == source and t.target == target
    )


def actor_kinds(actor: Actor, speaker_id: UUID) -> frozenset[ActorKind]:
    """Kinds an actor holds relative to a talk owned by speaker_id."""
    kinds = set()
    if actor.is_organizer:
        kinds.add(ActorKind.ORGANIZER)
    if actor.owns(speaker_id):
        kinds.add(ActorKind.OWNER)
    return frozenset(kinds)


def can_transition(
    actor: Actor, speaker_id: UUID, source: TalkState, target: TalkState,
) -> bool:
    """Capability predicate: edge exists and the actor matches one of its kinds."""
    return bool(allowed_actor_kinds(source, target) & actor_kinds(actor, speaker_id))


def check_transition(
    actor: Actor, speaker_id: UUID, source: TalkState, target: TalkState,
    context: ErrorContext | None = None,
) -> None:
    """Raise InvalidTransitionError or PermissionDeniedError; None when allowed."""
    if not is_edge(source, target):
        raise InvalidTransitionError(source.value, target.value, context)
    if not can_transition(actor, speaker_id, source, target):
        raise PermissionDeniedError(
            f"{actor.role.value} may not move this talk from "
            f"{source.value} to {target.value}",
            context,
        )


def allowed_targets(
    actor: Actor, speaker_id: UUID, source: TalkState,
) -> list[TalkState]:
    """Targets the actor may request from source, in enum order."""
    return [
        target for target in TalkState
        if can_transition(actor, speaker_id, source, target)
    ]


def clears_schedule(source: TalkState, target: TalkState) -> bool:
    """Cancelling an accepted talk must release its slot in the same transaction."""
    return source == TalkState.ACCEPTED and target != TalkState.ACCEPTED
