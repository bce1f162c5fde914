"""LabelSet — catalog CRUD and tagging talks.

Tests:
    - Duplicate label names -> Conflict DUPLICATE_LABEL_NAME
    - add_labels: empty -> ValidationError, unknown label -> NotFound, re-add is a no-op
    - Owner and organizer may tag; strangers may not
    - delete_label removes every (*, L) junction row and leaves other labels alone
"""

from uuid import uuid4

import pytest
from sqlalchemy import select

from cfp.core.errors import (
    ConflictError, NotFoundError, PermissionDeniedError, ValidationError,
    DUPLICATE_LABEL_NAME,
)
from cfp.models.label import TalkLabel

from tests.services.factories import seed_label, seed_talk


async def _junction_rows(db) -> set[tuple]:
    result = await db.execute(select(TalkLabel.talk_id, TalkLabel.label_id))
    return set(result.all())


# ─── Catalog ────────────────────────────────────────────────────

async def test_create_label(label_set, org):
    label = await label_set.create_label(org, "  python ", "Python talks", "#3776AB")
    assert label.name == "python"
    assert label.color == "#3776AB"
    assert label.is_ai_generated is False


async def test_create_ai_generated_label(label_set, org):
    label = await label_set.create_label(org, "ml", is_ai_generated=True)
    assert label.is_ai_generated is True


async def test_duplicate_name_is_conflict(label_set, org):
    await label_set.create_label(org, "python")
    with pytest.raises(ConflictError) as exc:
        await label_set.create_label(org, "python")
    assert exc.value.reason == DUPLICATE_LABEL_NAME


async def test_invalid_color_rejected(label_set, org):
    with pytest.raises(ValidationError):
        await label_set.create_label(org, "python", color="blue")


async def test_speaker_cannot_manage_catalog(label_set, owner):
    with pytest.raises(PermissionDeniedError):
        await label_set.create_label(owner, "python")


async def test_update_label_rename_conflict(label_set, org):
    await label_set.create_label(org, "python")
    web = await label_set.create_label(org, "web")
    with pytest.raises(ConflictError):
        await label_set.update_label(org, web.id, name="python")


async def test_update_label_fields(label_set, org):
    label = await label_set.create_label(org, "web")
    updated = await label_set.update_label(org, label.id, name="frontend", color="#fff")
    assert updated.name == "frontend"
    assert updated.color == "#fff"


async def test_list_labels_sorted_by_name(label_set, org):
    await label_set.create_label(org, "web")
    await label_set.create_label(org, "async")
    assert [l.name for l in await label_set.list_labels()] == ["async", "web"]


async def test_get_unknown_label(label_set):
    with pytest.raises(NotFoundError):
        await label_set.get_label(uuid4())


# ─── Tagging ────────────────────────────────────────────────────

async def test_owner_adds_labels(label_set, test_db, owner):
    talk = await seed_talk(test_db, owner.id)
    web = await seed_label(test_db, "web")
    async_label = await seed_label(test_db, "async")

    labels = await label_set.add_labels(talk.id, [web.id, async_label.id], owner)

    assert [l.name for l in labels] == ["async", "web"]
    row = (await test_db.execute(select(TalkLabel).where(TalkLabel.label_id == web.id))).scalar_one()
    assert row.added_by == owner.id


async def test_re_adding_label_is_noop(label_set, test_db, org, owner):
    talk = await seed_talk(test_db, owner.id)
    web = await seed_label(test_db, "web")
    await label_set.add_labels(talk.id, [web.id], owner)

    labels = await label_set.add_labels(talk.id, [web.id, web.id], org)

    assert len(labels) == 1
    assert len(await _junction_rows(test_db)) == 1


async def test_empty_label_list_rejected(label_set, test_db, owner):
    talk = await seed_talk(test_db, owner.id)
    with pytest.raises(ValidationError):
        await label_set.add_labels(talk.id, [], owner)


async def test_unknown_label_rejected_atomically(label_set, test_db, owner):
    talk = await seed_talk(test_db, owner.id)
    web = await seed_label(test_db, "web")
    with pytest.raises(NotFoundError):
        await label_set.add_labels(talk.id, [web.id, uuid4()], owner)
    assert await _junction_rows(test_db) == set()


async def test_unknown_talk_rejected(label_set, test_db, org):
    web = await seed_label(test_db, "web")
    with pytest.raises(NotFoundError):
        await label_set.add_labels(uuid4(), [web.id], org)


async def test_stranger_cannot_tag(label_set, test_db, owner, stranger):
    talk = await seed_talk(test_db, owner.id)
    web = await seed_label(test_db, "web")
    with pytest.raises(PermissionDeniedError):
        await label_set.add_labels(talk.id, [web.id], stranger)


async def test_remove_label_is_idempotent(label_set, test_db, owner):
    talk = await seed_talk(test_db, owner.id)
    web = await seed_label(test_db, "web")
    await label_set.add_labels(talk.id, [web.id], owner)

    assert await label_set.remove_label(talk.id, web.id, owner) is True
    assert await label_set.remove_label(talk.id, web.id, owner) is False
    assert await label_set.labels_for_talk(talk.id) == []


async def test_delete_label_removes_only_its_rows(label_set, test_db, org, owner):
    first = await seed_talk(test_db, owner.id, title="First")
    second = await seed_talk(test_db, owner.id, title="Second")
    doomed = await seed_label(test_db, "doomed")
    kept = await seed_label(test_db, "kept")
    await label_set.add_labels(first.id, [doomed.id, kept.id], org)
    await label_set.add_labels(second.id, [doomed.id], org)

    await label_set.delete_label(org, doomed.id)

    assert await _junction_rows(test_db) == {(first.id, kept.id)}
    with pytest.raises(NotFoundError):
        await label_set.get_label(doomed.id)


async def test_delete_unknown_label(label_set, org):
    with pytest.raises(NotFoundError):
        await label_set.delete_label(org, uuid4())
