"""ScheduleAssigner — binding accepted talks to slots.

Tests:
    - Only accepted talks can be assigned (StateError otherwise)
    - Slot holding another talk -> Conflict SLOT_OCCUPIED
    - Talk already in another slot -> Conflict TALK_ALREADY_SCHEDULED
    - Same pair twice is idempotent; unassign is idempotent
    - Unknown slot or talk -> NotFound (slot reported first)
    - Talk and slot rows are locked, talk first; unassign locks the slot
"""

from datetime import time
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from cfp.core.domain_types import TalkState
from cfp.core.errors import (
    ConflictError, NotFoundError, PermissionDeniedError, StateError,
    SLOT_OCCUPIED, TALK_ALREADY_SCHEDULED,
)
from cfp.models.schedule_slot import ScheduleSlot

from tests.services.factories import seed_slot, seed_talk, seed_track


@pytest.fixture
async def track(test_db):
    return await seed_track(test_db)


async def _slot_talk(db, slot_id):
    result = await db.execute(
        select(ScheduleSlot.talk_id)
        .where(ScheduleSlot.id == slot_id)
        .execution_options(populate_existing=True),
    )
    return result.scalar_one()


async def test_assign_accepted_talk(assigner, test_db, org, owner, track):
    talk = await seed_talk(test_db, owner.id, TalkState.ACCEPTED)
    slot = await seed_slot(test_db, track)

    assigned = await assigner.assign(org, slot.id, talk.id)

    assert assigned.talk_id == talk.id


@pytest.mark.parametrize("state", [
    TalkState.SUBMITTED, TalkState.PENDING, TalkState.REJECTED,
])
async def test_assign_requires_accepted(assigner, test_db, org, owner, track, state):
    talk_id = (await seed_talk(test_db, owner.id, state)).id
    slot_id = (await seed_slot(test_db, track)).id

    with pytest.raises(StateError) as exc:
        await assigner.assign(org, slot_id, talk_id)

    assert exc.value.state == state.value
    assert await _slot_talk(test_db, slot_id) is None


async def test_occupied_slot_is_conflict(assigner, test_db, org, owner, track):
    first_id = (await seed_talk(test_db, owner.id, TalkState.ACCEPTED, title="First")).id
    second_id = (await seed_talk(test_db, owner.id, TalkState.ACCEPTED, title="Second")).id
    slot_id = (await seed_slot(test_db, track, talk_id=first_id)).id

    with pytest.raises(ConflictError) as exc:
        await assigner.assign(org, slot_id, second_id)

    assert exc.value.reason == SLOT_OCCUPIED
    assert await _slot_talk(test_db, slot_id) == first_id


async def test_talk_in_another_slot_is_conflict(assigner, test_db, org, owner, track):
    talk_id = (await seed_talk(test_db, owner.id, TalkState.ACCEPTED)).id
    await seed_slot(test_db, track, time(9), time(10), talk_id=talk_id)
    free_id = (await seed_slot(test_db, track, time(11), time(12))).id

    with pytest.raises(ConflictError) as exc:
        await assigner.assign(org, free_id, talk_id)

    assert exc.value.reason == TALK_ALREADY_SCHEDULED
    slots = (await test_db.execute(
        select(ScheduleSlot.id).where(ScheduleSlot.talk_id == talk_id),
    )).scalars().all()
    assert len(slots) == 1
    assert await _slot_talk(test_db, free_id) is None


async def test_assign_same_pair_twice_is_noop(assigner, test_db, org, owner, track):
    talk = await seed_talk(test_db, owner.id, TalkState.ACCEPTED)
    slot = await seed_slot(test_db, track)

    await assigner.assign(org, slot.id, talk.id)
    again = await assigner.assign(org, slot.id, talk.id)

    assert again.talk_id == talk.id


async def test_state_checked_before_occupancy(assigner, test_db, org, owner, track):
    accepted_id = (await seed_talk(test_db, owner.id, TalkState.ACCEPTED)).id
    pending_id = (await seed_talk(test_db, owner.id, TalkState.PENDING)).id
    slot_id = (await seed_slot(test_db, track, talk_id=accepted_id)).id

    with pytest.raises(StateError):
        await assigner.assign(org, slot_id, pending_id)


async def test_unknown_slot_or_talk(assigner, test_db, org, owner, track):
    talk_id = (await seed_talk(test_db, owner.id, TalkState.ACCEPTED)).id
    slot_id = (await seed_slot(test_db, track)).id
    with pytest.raises(NotFoundError):
        await assigner.assign(org, uuid4(), talk_id)
    with pytest.raises(NotFoundError):
        await assigner.assign(org, slot_id, uuid4())
    assert await _slot_talk(test_db, slot_id) is None


async def test_unknown_slot_reported_before_unknown_talk(assigner, org):
    with pytest.raises(NotFoundError) as exc:
        await assigner.assign(org, uuid4(), uuid4())
    assert exc.value.resource_type == "ScheduleSlot"


async def test_speaker_cannot_assign(assigner, test_db, owner, track):
    talk_id = (await seed_talk(test_db, owner.id, TalkState.ACCEPTED)).id
    slot_id = (await seed_slot(test_db, track)).id
    with pytest.raises(PermissionDeniedError):
        await assigner.assign(owner, slot_id, talk_id)


async def test_unassign_is_idempotent(assigner, test_db, org, owner, track):
    talk = await seed_talk(test_db, owner.id, TalkState.ACCEPTED)
    slot = await seed_slot(test_db, track, talk_id=talk.id)

    assert (await assigner.unassign(org, slot.id)).talk_id is None
    assert (await assigner.unassign(org, slot.id)).talk_id is None


async def test_unique_index_backs_double_booking(test_db, owner, track):
    """Bypassing the service, storage still refuses a talk in two slots."""
    talk_id = (await seed_talk(test_db, owner.id, TalkState.ACCEPTED)).id
    await seed_slot(test_db, track, time(9), time(10), talk_id=talk_id)
    with pytest.raises(IntegrityError):
        await seed_slot(test_db, track, time(11), time(12), talk_id=talk_id)
    await test_db.rollback()


# ─── Row locks ──────────────────────────────────────────────────

async def test_assign_locks_talk_then_slot(assigner, test_db, org, owner, track, row_locks):
    talk_id = (await seed_talk(test_db, owner.id, TalkState.ACCEPTED)).id
    slot_id = (await seed_slot(test_db, track)).id

    await assigner.assign(org, slot_id, talk_id)

    assert row_locks == ["talks", "schedule_slots"]


async def test_competing_assign_waits_on_slot_and_sees_occupied(
    assigner, test_db, org, owner, track, row_locks,
):
    """Second writer for the same empty slot queues on its row lock, then loses."""
    first_id = (await seed_talk(test_db, owner.id, TalkState.ACCEPTED)).id
    second_id = (await seed_talk(test_db, owner.id, TalkState.ACCEPTED, title="Other")).id
    slot_id = (await seed_slot(test_db, track)).id

    await assigner.assign(org, slot_id, first_id)
    with pytest.raises(ConflictError) as exc:
        await assigner.assign(org, slot_id, second_id)

    assert exc.value.reason == SLOT_OCCUPIED
    assert row_locks.count("schedule_slots") == 2
    assert await _slot_talk(test_db, slot_id) == first_id


async def test_unassign_locks_slot(assigner, test_db, org, owner, track, row_locks):
    talk_id = (await seed_talk(test_db, owner.id, TalkState.ACCEPTED)).id
    slot_id = (await seed_slot(test_db, track, talk_id=talk_id)).id

    await assigner.unassign(org, slot_id)

    assert row_locks == ["schedule_slots"]
