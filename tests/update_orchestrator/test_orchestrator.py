"""
Tests for UpdateOrchestrator.

============================================================
PURPOSE
============================================================
Timing behavior of debounced recomputes, driven entirely by
ManualScheduler so no test sleeps for real.

TEST PRINCIPLES:
- A burst of triggers yields one recompute
- Spaced triggers yield one recompute each
- Never two concurrent recomputes for one participant
- Triggers during a run coalesce into one follow-up

============================================================
"""

import asyncio
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.exceptions import ProgressEngineError
from update_orchestrator.config import ProgressSystemConfig, UpdateConfig
from update_orchestrator.orchestrator import ParticipantState


# =============================================================
# TEST: Debounce
# =============================================================

class TestDebounce:
    @pytest.mark.asyncio
    async def test_burst_coalesces(self, service, scheduler, snapshot_provider, participant_id):
        orchestrator = service.orchestrator
        for _ in range(10):
            orchestrator.request_update(participant_id, trigger="inventory")
            scheduler.advance(0.1)
        assert orchestrator.state_of(participant_id) == ParticipantState.PENDING
        assert snapshot_provider.total_calls == 0

        scheduler.advance(0.5)
        await orchestrator.drain()

        assert orchestrator.recompute_count(participant_id) == 1
        assert snapshot_provider.calls[participant_id] == 1
        assert orchestrator.state_of(participant_id) == ParticipantState.IDLE

    @pytest.mark.asyncio
    async def test_spaced_requests_each_recompute(self, service, scheduler, participant_id):
        orchestrator = service.orchestrator
        for _ in range(3):
            orchestrator.request_update(participant_id, trigger="level_up")
            scheduler.advance(1.0)
            await orchestrator.drain()
        assert orchestrator.recompute_count(participant_id) == 3

    @pytest.mark.asyncio
    async def test_trigger_selects_delay(self, service, scheduler, participant_id):
        orchestrator = service.orchestrator
        orchestrator.request_update(participant_id, trigger="statistics")
        scheduler.advance(4.9)
        await orchestrator.drain()
        assert orchestrator.recompute_count(participant_id) == 0
        scheduler.advance(0.2)
        await orchestrator.drain()
        assert orchestrator.recompute_count(participant_id) == 1

    @pytest.mark.asyncio
    async def test_immediate_skips_debounce(self, service, participant_id):
        service.request_update(participant_id, immediate=True)
        await service.orchestrator.drain()
        assert service.orchestrator.recompute_count(participant_id) == 1

    @pytest.mark.asyncio
    async def test_participants_are_independent(self, service, scheduler):
        first, second = uuid.uuid4(), uuid.uuid4()
        service.request_update(first, trigger="join")
        service.request_update(second, trigger="join")
        scheduler.advance(1.0)
        await service.orchestrator.drain()
        assert service.orchestrator.recompute_count(first) == 1
        assert service.orchestrator.recompute_count(second) == 1


# =============================================================
# TEST: Mutual exclusion
# =============================================================

class TestMutualExclusion:
    @pytest.mark.asyncio
    async def test_requests_during_run_become_one_follow_up(
        self, service, scheduler, snapshot_provider, participant_id
    ):
        orchestrator = service.orchestrator
        snapshot_provider.blocker = asyncio.Event()
        snapshot_provider.entered = asyncio.Event()

        orchestrator.request_update(participant_id, immediate=True)
        await asyncio.wait_for(snapshot_provider.entered.wait(), timeout=1.0)
        assert orchestrator.state_of(participant_id) == ParticipantState.RUNNING

        for _ in range(5):
            orchestrator.request_update(participant_id, trigger="inventory")
        assert orchestrator.state_of(participant_id) == ParticipantState.RUNNING

        snapshot_provider.blocker.set()
        await orchestrator.drain()
        assert orchestrator.recompute_count(participant_id) == 1
        assert orchestrator.state_of(participant_id) == ParticipantState.PENDING

        scheduler.advance(0.5)
        await orchestrator.drain()
        assert orchestrator.recompute_count(participant_id) == 2
        assert snapshot_provider.max_active[participant_id] == 1
        assert orchestrator.state_of(participant_id) == ParticipantState.IDLE

    @pytest.mark.asyncio
    async def test_force_waits_for_running_recompute(self, service, snapshot_provider, participant_id):
        orchestrator = service.orchestrator
        snapshot_provider.blocker = asyncio.Event()
        snapshot_provider.entered = asyncio.Event()

        orchestrator.request_update(participant_id, immediate=True)
        await asyncio.wait_for(snapshot_provider.entered.wait(), timeout=1.0)

        forced = asyncio.create_task(orchestrator.force_recalculate(participant_id))
        await asyncio.sleep(0)
        assert not forced.done()

        snapshot_provider.blocker.set()
        score = await asyncio.wait_for(forced, timeout=1.0)

        assert score == pytest.approx(11.16, abs=0.01)
        assert orchestrator.recompute_count(participant_id) == 2
        assert snapshot_provider.max_active[participant_id] == 1

    @pytest.mark.asyncio
    async def test_force_cancels_pending_timer(self, service, scheduler, participant_id):
        orchestrator = service.orchestrator
        orchestrator.request_update(participant_id, trigger="statistics")
        await orchestrator.force_recalculate(participant_id)

        scheduler.advance(10.0)
        await orchestrator.drain()
        assert orchestrator.recompute_count(participant_id) == 1

    @pytest.mark.asyncio
    async def test_gate_blocks_recompute(self, service, participant_id):
        orchestrator = service.orchestrator
        async with orchestrator.gate(participant_id):
            orchestrator.request_update(participant_id, immediate=True)
            await asyncio.sleep(0)
            assert orchestrator.recompute_count(participant_id) == 0
        await orchestrator.drain()
        assert orchestrator.recompute_count(participant_id) == 1

    @pytest.mark.asyncio
    async def test_queued_waiter_pins_the_gate(self, service, participant_id):
        orchestrator = service.orchestrator
        entered = []

        async def enter_gate():
            async with orchestrator.gate(participant_id):
                entered.append(orchestrator.gate_held(participant_id))

        async with orchestrator.gate(participant_id):
            waiter = asyncio.create_task(enter_gate())
            await asyncio.sleep(0)

        # Lock released, waiter not yet resumed
        assert orchestrator.is_busy(participant_id)
        assert orchestrator.forget(participant_id) is False

        await waiter
        assert entered == [True]
        assert orchestrator.forget(participant_id) is True


# =============================================================
# TEST: Concurrency cap
# =============================================================

class TestConcurrencyCap:
    @pytest.mark.asyncio
    async def test_semaphore_limits_parallel_recomputes(self, make_service, snapshot_provider):
        config = ProgressSystemConfig(updates=UpdateConfig(max_concurrent_recomputes=2))
        service = make_service(config)
        snapshot_provider.blocker = asyncio.Event()

        ids = [uuid.uuid4() for _ in range(5)]
        for pid in ids:
            service.request_update(pid, immediate=True)
        for _ in range(20):
            await asyncio.sleep(0)

        assert sum(snapshot_provider.active.values()) == 2

        snapshot_provider.blocker.set()
        await service.orchestrator.drain()
        assert service.orchestrator.total_recomputes == 5


# =============================================================
# TEST: Collaborator failures
# =============================================================

class TestCollaborators:
    @pytest.mark.asyncio
    async def test_snapshot_timeout_fails_snapshot_categories(
        self, make_service, snapshot_provider, participant_id
    ):
        config = ProgressSystemConfig(updates=UpdateConfig(collaborator_timeout_seconds=0.05))
        service = make_service(config)
        snapshot_provider.delay = 1.0

        result = await service.force_recalculate(participant_id)

        assert result.success
        assert result.score == 1.0
        breakdown = service.get_result(participant_id)
        assert "timed out" in breakdown.category_scores[breakdown.failed_categories[0]].error

    @pytest.mark.asyncio
    async def test_snapshot_error_is_not_fatal(self, service, snapshot_provider, participant_id):
        snapshot_provider.error = RuntimeError("host busy")
        result = await service.force_recalculate(participant_id)
        assert result.success
        assert len(service.get_result(participant_id).failed_categories) == 4

    @pytest.mark.asyncio
    async def test_notifier_receives_significant_change(self, make_service, participant_id):
        notifier = AsyncMock()
        service = make_service(notifier=notifier)

        await service.force_recalculate(participant_id)
        await service.orchestrator.drain()

        notifier.emit.assert_awaited_once()
        args = notifier.emit.await_args.args
        assert args[0] == participant_id
        assert args[1] == 1.0
        assert args[2] == pytest.approx(11.16, abs=0.01)

    @pytest.mark.asyncio
    async def test_small_change_is_not_notified(self, make_service, participant_id):
        notifier = AsyncMock()
        service = make_service(notifier=notifier)

        await service.force_recalculate(participant_id)
        await service.force_recalculate(participant_id)
        await service.orchestrator.drain()

        assert notifier.emit.await_count == 1
        assert len(await service.get_history(participant_id)) == 1

    @pytest.mark.asyncio
    async def test_failed_recompute_raises_on_force(self, service, participant_id):
        service.orchestrator.aggregator.evaluate = MagicMock(side_effect=ValueError("broken"))
        with pytest.raises(ProgressEngineError):
            await service.orchestrator.force_recalculate(participant_id)
        assert service.orchestrator.state_of(participant_id) == ParticipantState.IDLE


# =============================================================
# TEST: Thread-safe entry and shutdown
# =============================================================

class TestLifecycle:
    @pytest.mark.asyncio
    async def test_threadsafe_request(self, service, participant_id, until):
        orchestrator = service.orchestrator
        orchestrator.bind_loop(asyncio.get_running_loop())

        await asyncio.to_thread(orchestrator.request_update_threadsafe, participant_id)
        assert await until(lambda: orchestrator.state_of(participant_id) == ParticipantState.PENDING)

    def test_threadsafe_requires_loop(self, service, participant_id):
        with pytest.raises(RuntimeError):
            service.orchestrator.request_update_threadsafe(participant_id)

    @pytest.mark.asyncio
    async def test_close_drops_pending_and_rejects_new(self, service, scheduler, participant_id):
        orchestrator = service.orchestrator
        orchestrator.request_update(participant_id)
        await orchestrator.close()
        assert orchestrator.state_of(participant_id) == ParticipantState.IDLE

        orchestrator.request_update(participant_id)
        scheduler.advance(5.0)
        await orchestrator.drain()
        assert orchestrator.recompute_count(participant_id) == 0
