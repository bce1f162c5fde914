"""Transaction runner — commit/rollback, retry on serialization failure, error mapping.

Invariants:
    - Success commits exactly once
    - 40001/40P01 retried up to max_attempts, then StorageError
    - IntegrityError becomes ConflictError with a stable reason, never retried
    - CfpError raised by the operation passes through after rollback

Design Decisions:
    - A recording fake session stands in for AsyncSession: Postgres SQLSTATEs can't be
      produced on SQLite, so driver errors are constructed directly
"""

import pytest
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

import cfp.infrastructure.transactions as transactions
from cfp.core.errors import (
    ConflictError, NotFoundError, StorageError,
    CONSTRAINT_VIOLATION, DUPLICATE_LABEL_NAME, SLOT_OVERLAP, TALK_ALREADY_SCHEDULED,
)
from cfp.infrastructure.transactions import (
    RetryPolicy, conflict_reason, is_serialization_failure, run_in_transaction,
)


# -- Helpers -------------------------------------------------------------------

class _DriverError(Exception):
    def __init__(self, message: str, sqlstate: str | None = None):
        super().__init__(message)
        self.sqlstate = sqlstate


class RecordingSession:
    def __init__(self):
        self.commits = 0
        self.rollbacks = 0

    async def commit(self):
        self.commits += 1

    async def rollback(self):
        self.rollbacks += 1


def _dbapi(sqlstate: str, message: str = "could not serialize access") -> DBAPIError:
    return DBAPIError("UPDATE talks", {}, _DriverError(message, sqlstate))


def _integrity(message: str, sqlstate: str | None = "23505") -> IntegrityError:
    return IntegrityError("INSERT", {}, _DriverError(message, sqlstate))


def _failing(*errors, result="done"):
    """Operation that raises each error in turn, then returns result."""
    pending = list(errors)
    calls = []

    async def _op(db):
        calls.append(db)
        if pending:
            raise pending.pop(0)
        return result

    return _op, calls


@pytest.fixture
def sleeps(monkeypatch):
    delays = []

    async def _fake_sleep(seconds):
        delays.append(seconds)

    monkeypatch.setattr(transactions.asyncio, "sleep", _fake_sleep)
    return delays


POLICY = RetryPolicy(max_attempts=3, base_delay_ms=10, max_delay_ms=100)


# ==============================================================================
# Retry
# ==============================================================================


async def test_success_commits_once(sleeps):
    db = RecordingSession()
    op, calls = _failing()
    assert await run_in_transaction(db, op, policy=POLICY) == "done"
    assert (db.commits, db.rollbacks, len(calls)) == (1, 0, 1)
    assert sleeps == []


@pytest.mark.parametrize("sqlstate", ["40001", "40P01"])
async def test_serialization_failure_is_retried(sleeps, sqlstate):
    db = RecordingSession()
    op, calls = _failing(_dbapi(sqlstate), _dbapi(sqlstate))
    assert await run_in_transaction(db, op, policy=POLICY) == "done"
    assert len(calls) == 3
    assert db.rollbacks == 2
    assert db.commits == 1
    assert len(sleeps) == 2


async def test_retries_exhausted_raise_storage_error(sleeps):
    db = RecordingSession()
    op, calls = _failing(*[_dbapi("40001") for _ in range(5)])
    with pytest.raises(StorageError):
        await run_in_transaction(db, op, policy=POLICY)
    assert len(calls) == POLICY.max_attempts
    assert db.commits == 0


async def test_other_driver_error_not_retried(sleeps):
    db = RecordingSession()
    op, calls = _failing(OperationalError("SELECT", {}, _DriverError("connection reset")))
    with pytest.raises(StorageError):
        await run_in_transaction(db, op, policy=POLICY)
    assert len(calls) == 1
    assert sleeps == []


def test_backoff_grows_and_is_capped():
    policy = RetryPolicy(max_attempts=5, base_delay_ms=100, max_delay_ms=300)
    assert 75 <= policy.backoff(0) <= 125
    assert 150 <= policy.backoff(1) <= 250
    assert 225 <= policy.backoff(4) <= 375


def test_sqlstate_detection():
    assert is_serialization_failure(_dbapi("40001"))
    assert not is_serialization_failure(_dbapi("23505"))
    assert not is_serialization_failure(ValueError("nope"))


# ==============================================================================
# Error mapping
# ==============================================================================


async def test_integrity_error_becomes_conflict(sleeps):
    db = RecordingSession()
    op, calls = _failing(_integrity(
        'duplicate key value violates unique constraint "uq_schedule_slots_talk_id"',
    ))
    with pytest.raises(ConflictError) as exc_info:
        await run_in_transaction(db, op, policy=POLICY)
    assert exc_info.value.reason == TALK_ALREADY_SCHEDULED
    assert exc_info.value.http_status == 409
    assert len(calls) == 1
    assert db.rollbacks == 1


async def test_domain_error_passes_through(sleeps):
    db = RecordingSession()
    op, _ = _failing(NotFoundError("Talk", "t-1"))
    with pytest.raises(NotFoundError):
        await run_in_transaction(db, op, policy=POLICY)
    assert db.rollbacks == 1
    assert db.commits == 0


@pytest.mark.parametrize("message,sqlstate,reason", [
    ("conflicting key value violates exclusion constraint", "23P01", SLOT_OVERLAP),
    ('violates "excl_schedule_slots_track_overlap"', None, SLOT_OVERLAP),
    ('duplicate key value violates unique constraint "uq_labels_name"', "23505",
     DUPLICATE_LABEL_NAME),
    ("UNIQUE constraint failed: schedule_slots.talk_id", None, TALK_ALREADY_SCHEDULED),
    ("UNIQUE constraint failed: labels.name", None, DUPLICATE_LABEL_NAME),
    ("NOT NULL constraint failed: talks.title", None, CONSTRAINT_VIOLATION),
])
def test_conflict_reason(message, sqlstate, reason):
    assert conflict_reason(_integrity(message, sqlstate)) == reason
