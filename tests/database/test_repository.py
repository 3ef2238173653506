"""
Tests for the SQLAlchemy persistence store.

Runs against in-memory SQLite.
"""

import uuid

import pytest

from core.exceptions import PersistenceError
from database.engine import (
    create_database_engine,
    get_session_factory,
    initialize_database,
    transaction_scope,
)
from database.models import ParticipantProgress
from database.repository import SqlAlchemyPersistenceStore
from participant_store.models import ParticipantRecord


@pytest.fixture
def engine():
    engine = create_database_engine("sqlite://")
    initialize_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sql_store(engine):
    return SqlAlchemyPersistenceStore(get_session_factory(engine))


def _record(participant_id, score=25.0, **kwargs):
    return ParticipantRecord(
        participant_id=participant_id,
        current_progress=score,
        previous_progress=1.0,
        first_seen_ts=100.0,
        last_seen_ts=200.0,
        last_update_ts=300.0,
        **kwargs,
    )


# =============================================================
# TEST: Records
# =============================================================

class TestRecords:
    @pytest.mark.asyncio
    async def test_missing_record(self, sql_store):
        assert await sql_store.load(uuid.uuid4()) is None

    @pytest.mark.asyncio
    async def test_save_and_load(self, sql_store, participant_id):
        record = _record(
            participant_id,
            completed_milestones={"first_shop", "town_founder"},
            total_loss_events=3,
            last_known_equipment_value=42.5,
        )
        await sql_store.save(record)

        loaded = await sql_store.load(participant_id)
        assert loaded.current_progress == 25.0
        assert loaded.completed_milestones == {"first_shop", "town_founder"}
        assert loaded.total_loss_events == 3
        assert loaded.last_known_equipment_value == 42.5
        assert loaded.dirty is False

    @pytest.mark.asyncio
    async def test_save_is_upsert(self, sql_store, engine, participant_id):
        await sql_store.save(_record(participant_id, score=25.0))
        await sql_store.save(_record(participant_id, score=60.0))

        assert (await sql_store.load(participant_id)).current_progress == 60.0
        with transaction_scope(get_session_factory(engine)) as session:
            assert session.query(ParticipantProgress).count() == 1

    @pytest.mark.asyncio
    async def test_top_n(self, sql_store):
        ids = [uuid.uuid4() for _ in range(4)]
        for pid, score in zip(ids, (10.0, 70.0, 40.0, 90.0)):
            await sql_store.save(_record(pid, score=score))

        top = await sql_store.top_n(2)
        assert top == [(ids[3], 90.0), (ids[1], 70.0)]


# =============================================================
# TEST: History
# =============================================================

class TestHistory:
    @pytest.mark.asyncio
    async def test_newest_first_with_limit(self, sql_store, participant_id):
        for ts, score in ((1.0, 10.0), (2.0, 20.0), (3.0, 30.0)):
            await sql_store.append_history(participant_id, score, ts)
        await sql_store.append_history(uuid.uuid4(), 99.0, 4.0)

        entries = await sql_store.get_history(participant_id, limit=2)
        assert [e.score for e in entries] == [30.0, 20.0]
        assert all(e.participant_id == participant_id for e in entries)

    @pytest.mark.asyncio
    async def test_cleanup(self, sql_store, participant_id):
        for ts in (1.0, 2.0, 10.0):
            await sql_store.append_history(participant_id, ts, ts)
        assert await sql_store.cleanup_history(older_than_ts=5.0) == 2
        assert [e.recorded_at for e in await sql_store.get_history(participant_id)] == [10.0]


# =============================================================
# TEST: Failures
# =============================================================

class TestFailures:
    @pytest.mark.asyncio
    async def test_missing_tables_raise_persistence_error(self, participant_id):
        engine = create_database_engine("sqlite://")
        store = SqlAlchemyPersistenceStore(get_session_factory(engine))
        with pytest.raises(PersistenceError):
            await store.load(participant_id)
        with pytest.raises(PersistenceError):
            await store.save(_record(participant_id))
        engine.dispose()
