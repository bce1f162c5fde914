"""Service test fixtures — async DB, services under test and FastAPI test client.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - get_db dependency overridden to use the test DB session
    - Services share one session and a FakeClock, so timestamps are deterministic

Design Decisions:
    - SQLite in-memory: fast, no external dependency; FOR UPDATE is a no-op and the
      exclusion constraint is absent, so these tests exercise the application checks
    - StaticPool: every connection sees the same in-memory database
"""

import pytest
from sqlalchemy import event
from sqlalchemy.dialects import postgresql
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from sqlalchemy.pool import StaticPool
from httpx import ASGITransport, AsyncClient

from cfp.db.base import Base
import cfp.models  # noqa: F401
from cfp.infrastructure.database import get_db, DatabaseSessionManager
from cfp.infrastructure.transactions import RetryPolicy
import cfp.infrastructure.database as db_module
from cfp.main import app
from cfp.services.label_set import LabelSet
from cfp.services.rating_aggregator import RatingAggregator
from cfp.services.schedule_assigner import ScheduleAssigner
from cfp.services.schedule_grid import ScheduleGrid
from cfp.services.state_machine import StateMachine
from cfp.services.talk_store import TalkStore
from cfp.services.transition_events import TransitionEventOutbox

from tests.services.factories import FakeClock, organizer, speaker


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
async def client(test_engine, test_session_factory):
    """FastAPI test client with DB dependency overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    original_manager = db_module.db_manager
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._session_factory = test_session_factory
    db_module.db_manager = fake_manager

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager


# ─── Actors & collaborators ─────────────────────────────────────

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def policy():
    return RetryPolicy(max_attempts=3, base_delay_ms=1, max_delay_ms=2)


@pytest.fixture
def org():
    return organizer()


@pytest.fixture
def owner():
    return speaker()


@pytest.fixture
def stranger():
    return speaker()


# ─── Services ───────────────────────────────────────────────────

@pytest.fixture
def talk_store(test_db, clock, policy):
    return TalkStore(test_db, clock, policy)


@pytest.fixture
def state_machine(test_db, clock, policy):
    return StateMachine(test_db, clock, policy)


@pytest.fixture
def ratings(test_db, clock, policy):
    return RatingAggregator(test_db, clock, policy)


@pytest.fixture
def label_set(test_db, clock, policy):
    return LabelSet(test_db, clock, policy)


@pytest.fixture
def grid(test_db, clock, policy):
    return ScheduleGrid(test_db, clock, policy)


@pytest.fixture
def assigner(test_db, clock, policy):
    return ScheduleAssigner(test_db, clock, policy)


@pytest.fixture
def outbox(test_db, clock, policy):
    return TransitionEventOutbox(test_db, clock, policy)


@pytest.fixture
def row_locks(test_db):
    """Tables read with SELECT ... FOR UPDATE, in order, as Postgres would render them.

    SQLite drops the locking clause, so the statements are compiled against the
    postgres dialect instead.
    """
    locked: list[str] = []

    def _record(state):
        if not state.is_select:
            return
        sql = str(state.statement.compile(dialect=postgresql.dialect()))
        if "FOR UPDATE" in sql:
            locked.append(sql.split("\nFROM ", 1)[1].split()[0])

    event.listen(test_db.sync_session, "do_orm_execute", _record)
    yield locked
    event.remove(test_db.sync_session, "do_orm_execute", _record)
