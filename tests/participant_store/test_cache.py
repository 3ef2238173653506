"""
Tests for ParticipantCache and the in-memory store.

Tests cover:
- Load on miss, default record on load failure
- Dirty tracking across flush, failed saves stay dirty
- Idle detection and unload
"""

import pytest

from participant_store.cache import ParticipantCache
from participant_store.config import CacheConfig
from participant_store.models import ParticipantRecord


@pytest.fixture
def cache(store, clock):
    return ParticipantCache(store, CacheConfig(ttl_seconds=600), clock=clock)


# =============================================================
# TEST: Loading
# =============================================================

class TestLoading:
    @pytest.mark.asyncio
    async def test_miss_creates_default_record(self, cache, participant_id, clock):
        record = await cache.get_or_load(participant_id)
        assert record.current_progress == 1.0
        assert record.first_seen_ts == clock.timestamp()
        assert participant_id in cache

    @pytest.mark.asyncio
    async def test_loads_stored_record(self, cache, store, participant_id):
        stored = ParticipantRecord(participant_id=participant_id, current_progress=42.0,
                                   completed_milestones={"first_shop"})
        await store.save(stored)

        record = await cache.get_or_load(participant_id)
        assert record.current_progress == 42.0
        assert record.completed_milestones == {"first_shop"}
        assert record is not store.stored(participant_id)

    @pytest.mark.asyncio
    async def test_load_failure_falls_back_to_default(self, cache, store, participant_id):
        store.fail_load = True
        record = await cache.get_or_load(participant_id)
        assert record.current_progress == 1.0
        assert len(cache) == 1


# =============================================================
# TEST: Flushing
# =============================================================

class TestFlushing:
    @pytest.mark.asyncio
    async def test_flush_clears_dirty(self, cache, store, participant_id, clock):
        record = await cache.get_or_load(participant_id)
        record.apply_score(30.0, clock.timestamp())
        assert cache.dirty_ids() == [participant_id]

        assert await cache.flush(participant_id) is True
        assert record.dirty is False
        assert store.stored(participant_id).current_progress == 30.0

    @pytest.mark.asyncio
    async def test_clean_record_is_not_saved(self, cache, store, participant_id):
        await cache.get_or_load(participant_id)
        assert await cache.flush(participant_id) is True
        assert store.save_count == 0

    @pytest.mark.asyncio
    async def test_failed_save_stays_dirty(self, cache, store, participant_id, clock):
        record = await cache.get_or_load(participant_id)
        record.apply_score(30.0, clock.timestamp())
        store.fail_save = True

        assert await cache.flush(participant_id) is False
        assert record.dirty is True
        assert await cache.unload(participant_id) is False
        assert participant_id in cache

        store.fail_save = False
        assert await cache.unload(participant_id) is True
        assert participant_id not in cache


# =============================================================
# TEST: Idle detection
# =============================================================

class TestIdle:
    @pytest.mark.asyncio
    async def test_idle_after_ttl(self, cache, participant_id, clock):
        await cache.get_or_load(participant_id)
        clock.advance(599)
        assert cache.idle_ids() == []
        clock.advance(2)
        assert cache.idle_ids() == [participant_id]

    @pytest.mark.asyncio
    async def test_access_resets_idle_time(self, cache, participant_id, clock):
        await cache.get_or_load(participant_id)
        clock.advance(500)
        cache.get(participant_id)
        clock.advance(500)
        assert cache.idle_ids() == []

    @pytest.mark.asyncio
    async def test_disabled_cache_is_always_idle(self, store, clock, participant_id):
        cache = ParticipantCache(store, CacheConfig(enabled=False), clock=clock)
        await cache.get_or_load(participant_id)
        assert cache.idle_ids() == [participant_id]


# =============================================================
# TEST: In-memory store
# =============================================================

class TestInMemoryStore:
    @pytest.mark.asyncio
    async def test_history_newest_first(self, store, participant_id):
        for ts, score in ((1.0, 10.0), (3.0, 30.0), (2.0, 20.0)):
            await store.append_history(participant_id, score, ts)
        entries = await store.get_history(participant_id, limit=2)
        assert [e.score for e in entries] == [30.0, 20.0]

    @pytest.mark.asyncio
    async def test_cleanup(self, store, participant_id):
        await store.append_history(participant_id, 10.0, 1.0)
        await store.append_history(participant_id, 20.0, 5.0)
        assert await store.cleanup_history(older_than_ts=3.0) == 1
        assert [e.score for e in await store.get_history(participant_id)] == [20.0]
