"""HTTP surface — full submission-to-schedule flow plus the error envelope.

Tests:
    - Submit → invite → accept → schedule appears on the public programme
    - Cancelling an accepted talk removes it from the programme
    - 401 without identity headers, 400 on schema violations, typed CfpError envelopes
    - Liveness and readiness checks
"""

from uuid import uuid4

from fastapi.exceptions import RequestValidationError

from cfp.api.error_handlers import internal_error, request_validation_error

from tests.services.factories import headers, organizer, speaker

ORG = organizer()
SPEAKER = speaker()


async def _submit(client, title="Scaling Postgres"):
    resp = await client.post(
        "/api/v1/talks",
        json={"title": title, "short_summary": "Partitioning in practice"},
        headers=headers(SPEAKER),
    )
    assert resp.status_code == 201
    return resp.json()


async def _slot(client):
    conf = await client.post(
        "/api/v1/conferences",
        json={"name": "PyConf", "start_date": "2026-11-05", "end_date": "2026-11-06"},
        headers=headers(ORG),
    )
    assert conf.status_code == 201
    track = await client.post(
        "/api/v1/tracks",
        json={"conference_id": conf.json()["id"], "name": "Main Hall"},
        headers=headers(ORG),
    )
    assert track.status_code == 201
    slot = await client.post(
        "/api/v1/schedule-slots",
        json={
            "track_id": track.json()["id"], "slot_date": "2026-11-05",
            "start_time": "09:00:00", "end_time": "10:00:00",
        },
        headers=headers(ORG),
    )
    assert slot.status_code == 201
    return slot.json()


async def _accepted_talk(client):
    talk = await _submit(client)
    resp = await client.post(
        f"/api/v1/talks/{talk['id']}/state",
        json={"target_state": "pending"}, headers=headers(ORG),
    )
    assert resp.status_code == 200
    resp = await client.post(
        f"/api/v1/talks/{talk['id']}/respond",
        json={"accept": True}, headers=headers(SPEAKER),
    )
    assert resp.status_code == 200
    assert resp.json()["state"] == "accepted"
    return resp.json()


# ─── Happy path ─────────────────────────────────────────────────

async def test_submit_accept_and_schedule(client):
    talk = await _submit(client)
    assert talk["state"] == "submitted"
    assert talk["allowed_transitions"] == []

    org_view = await client.get(f"/api/v1/talks/{talk['id']}", headers=headers(ORG))
    assert set(org_view.json()["allowed_transitions"]) == {"pending", "rejected"}

    accepted = await _accepted_talk(client)
    slot = await _slot(client)
    assigned = await client.put(
        f"/api/v1/schedule-slots/{slot['id']}/assignment",
        json={"talk_id": accepted["id"]}, headers=headers(ORG),
    )
    assert assigned.status_code == 200
    assert assigned.json()["talk_id"] == accepted["id"]

    schedule = (await client.get("/api/v1/schedule")).json()
    assert len(schedule) == 1
    entry = schedule[0]
    assert entry["track_name"] == "Main Hall"
    assert entry["talk_id"] == accepted["id"]
    assert entry["talk_title"] == "Scaling Postgres"
    assert entry["start_time"] == "09:00:00"


async def test_cancel_releases_slot(client):
    accepted = await _accepted_talk(client)
    slot = await _slot(client)
    await client.put(
        f"/api/v1/schedule-slots/{slot['id']}/assignment",
        json={"talk_id": accepted["id"]}, headers=headers(ORG),
    )

    resp = await client.post(
        f"/api/v1/talks/{accepted['id']}/state",
        json={"target_state": "rejected"}, headers=headers(ORG),
    )
    assert resp.status_code == 200

    [entry] = (await client.get("/api/v1/schedule")).json()
    assert entry["talk_id"] is None

    events = await client.get(
        "/api/v1/transition-events", params={"talk_id": accepted["id"]},
        headers=headers(ORG),
    )
    assert [e["new_state"] for e in events.json()] == ["pending", "accepted", "rejected"]


async def test_rating_flow(client):
    talk = await _submit(client)
    resp = await client.put(
        f"/api/v1/talks/{talk['id']}/rating", json={"score": 4}, headers=headers(ORG),
    )
    assert resp.status_code == 200
    summary = await client.get(
        f"/api/v1/talks/{talk['id']}/ratings/summary", headers=headers(ORG),
    )
    assert summary.json()["average"] == 4.0
    assert summary.json()["count"] == 1


# ─── Errors ─────────────────────────────────────────────────────

async def test_missing_identity_is_401(client):
    resp = await client.post(
        "/api/v1/talks", json={"title": "T", "short_summary": "S"},
    )
    assert resp.status_code == 401


async def test_schema_violation_is_400(client):
    talk = await _submit(client)
    resp = await client.put(
        f"/api/v1/talks/{talk['id']}/rating", json={"score": 6}, headers=headers(ORG),
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_schema_violation_lists_offending_fields(client):
    talk = await _submit(client)
    resp = await client.put(
        f"/api/v1/talks/{talk['id']}/rating", json={"score": 6}, headers=headers(ORG),
    )
    error = resp.json()["error"]
    assert error["category"] == "validation"
    assert error["context"]["talk_id"] is None
    [violation] = error["context"]["details"]["fields"]
    assert (violation["location"], violation["field"]) == ("body", "score")
    assert violation["type"] == "less_than_equal"


async def test_malformed_path_id_is_400(client):
    resp = await client.get("/api/v1/talks/not-a-uuid", headers=headers(ORG))
    assert resp.status_code == 400
    [violation] = resp.json()["error"]["context"]["details"]["fields"]
    assert (violation["location"], violation["field"]) == ("path", "talk_id")


def test_nested_and_unlocated_violations():
    error = request_validation_error(RequestValidationError([
        {"loc": ("body", "labels", 0), "msg": "Input should be a valid UUID", "type": "uuid_parsing"},
        {"loc": (), "msg": "Field required", "type": "missing"},
    ]))
    assert error.http_status == 400
    assert error.field == "labels.0"
    assert [(v["location"], v["field"]) for v in error.context.details["fields"]] == [
        ("body", "labels.0"), (None, None),
    ]


def test_internal_error_envelope():
    body = internal_error().to_response()["error"]
    assert (body["code"], body["category"], body["severity"]) == (
        "INTERNAL_ERROR", "internal", "critical",
    )
    assert body["context"] == {"talk_id": None, "slot_id": None, "details": None}


async def test_invalid_transition_envelope(client):
    talk = await _submit(client)
    resp = await client.post(
        f"/api/v1/talks/{talk['id']}/state",
        json={"target_state": "accepted"}, headers=headers(ORG),
    )
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "INVALID_TRANSITION"


async def test_speaker_cannot_rate(client):
    talk = await _submit(client)
    resp = await client.put(
        f"/api/v1/talks/{talk['id']}/rating", json={"score": 3}, headers=headers(SPEAKER),
    )
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "PERMISSION_DENIED"


async def test_unknown_talk_is_404(client):
    resp = await client.get(f"/api/v1/talks/{uuid4()}", headers=headers(ORG))
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"


async def test_assigning_unaccepted_talk_is_422(client):
    talk = await _submit(client)
    slot = await _slot(client)
    resp = await client.put(
        f"/api/v1/schedule-slots/{slot['id']}/assignment",
        json={"talk_id": talk["id"]}, headers=headers(ORG),
    )
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "STATE_ERROR"


async def test_occupied_slot_conflict_reason(client):
    first = await _accepted_talk(client)
    second = await _accepted_talk(client)
    slot = await _slot(client)
    url = f"/api/v1/schedule-slots/{slot['id']}/assignment"
    await client.put(url, json={"talk_id": first["id"]}, headers=headers(ORG))
    resp = await client.put(url, json={"talk_id": second["id"]}, headers=headers(ORG))
    assert resp.status_code == 409
    assert resp.json()["error"]["reason"] == "SLOT_OCCUPIED"


# ─── Health ─────────────────────────────────────────────────────

async def test_health(client):
    resp = await client.get("/api/v1/health/")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


async def test_ready(client):
    resp = await client.get("/api/v1/health/ready")
    assert resp.status_code == 200
    assert resp.json()["checks"]["database"] == "healthy"
