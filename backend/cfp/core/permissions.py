"""Capability Predicates — who may do what to a talk, outside of state transitions.

Invariants:
    - Predicates are PURE: role, ownership and state in, bool out
    - require_* helpers raise PermissionDeniedError / StateError, return None on success
    - Transition permissions live in core/transitions.py, not here

Design Decisions:
    - Predicate per operation over speaker/organizer subclasses: one place to audit
    - Rejected is the only state that freezes speaker edits; accepted talks still
      need slide updates
"""

from uuid import UUID

from cfp.core.domain_types import Actor, TalkState
from cfp.core.errors import ErrorContext, PermissionDeniedError, StateError


EDITABLE_STATES = frozenset({
    TalkState.SUBMITTED, TalkState.PENDING, TalkState.ACCEPTED,
})
DELETABLE_STATES = frozenset({TalkState.SUBMITTED, TalkState.REJECTED})


def can_view_talk(actor: Actor, speaker_id: UUID) -> bool:
    return actor.is_organizer or actor.owns(speaker_id)


def can_edit_talk(actor: Actor, speaker_id: UUID) -> bool:
    return actor.owns(speaker_id)


def can_delete_talk(actor: Actor, speaker_id: UUID) -> bool:
    return actor.is_organizer or actor.owns(speaker_id)


def can_label_talk(actor: Actor, speaker_id: UUID) -> bool:
    return actor.is_organizer or actor.owns(speaker_id)


def require_organizer(actor: Actor, action: str) -> None:
    """Organizer-only operations: rating, label catalog, schedule management."""
    if not actor.is_organizer:
        raise PermissionDeniedError(
            f"Only organizers may {action}",
            ErrorContext(actor_id=str(actor.id)),
        )


def require_view(actor: Actor, speaker_id: UUID, talk_id: UUID) -> None:
    if not can_view_talk(actor, speaker_id):
        raise PermissionDeniedError(
            "You don't have permission to view this talk",
            ErrorContext(talk_id=str(talk_id), actor_id=str(actor.id)),
        )


def require_edit(
    actor: Actor, speaker_id: UUID, talk_id: UUID, state: TalkState,
) -> None:
    """Owner only, and only while the talk is not rejected."""
    ctx = ErrorContext(talk_id=str(talk_id), actor_id=str(actor.id))
    if not can_edit_talk(actor, speaker_id):
        raise PermissionDeniedError(
            "You can only update your own talk submissions", ctx,
        )
    if state not in EDITABLE_STATES:
        raise StateError(
            f"Talk in state {state.value} can no longer be edited",
            state.value, ctx,
        )


def require_delete(
    actor: Actor, speaker_id: UUID, talk_id: UUID, state: TalkState,
) -> None:
    """Owner or organizer, and only while submitted or rejected."""
    ctx = ErrorContext(talk_id=str(talk_id), actor_id=str(actor.id))
    if not can_delete_talk(actor, speaker_id):
        raise PermissionDeniedError(
            "You can only delete your own talk submissions", ctx,
        )
    if state not in DELETABLE_STATES:
        raise StateError(
            f"Talk in state {state.value} cannot be deleted",
            state.value, ctx,
        )


def require_label(actor: Actor, speaker_id: UUID, talk_id: UUID) -> None:
    if not can_label_talk(actor, speaker_id):
        raise PermissionDeniedError(
            "You can only label your own talk submissions",
            ErrorContext(talk_id=str(talk_id), actor_id=str(actor.id)),
        )
