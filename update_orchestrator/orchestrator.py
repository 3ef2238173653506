"""
Update Orchestrator - Orchestrator.

============================================================
RESPONSIBILITY
============================================================
Decides WHEN a participant's score is recomputed and runs the
recompute.

- Debounces bursts of triggers into a single recompute
- Never runs two recomputes for the same participant at once
- Coalesces triggers that arrive mid-run into one follow-up
- Caps total concurrent recomputes

============================================================
STATE MACHINE (per participant)
============================================================
    IDLE    --request-->          PENDING (timer started)
    PENDING --request-->          PENDING (timer restarted)
    PENDING --timer/immediate-->  RUNNING
    RUNNING --request-->          RUNNING (follow-up flagged)
    RUNNING --done, no follow-up--> IDLE
    RUNNING --done, follow-up-->    PENDING (timer started)

============================================================
RECOMPUTE STEPS
============================================================
1. Load record (cache, persistence on miss)
2. Pull snapshot and balance (time-bounded)
3. Query current penalty
4. Score categories and combine
5. Write record; notify and append history on significant change
6. Save record

============================================================
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncContextManager, AsyncIterator, Dict, Optional, Set, Tuple
import asyncio
import logging
import uuid

from core.clock import ClockProtocol, SystemClock, from_timestamp
from core.exceptions import ProgressEngineError
from core.scheduler import LoopScheduler, ScheduledHandle, Scheduler
from participant_store.cache import ParticipantCache
from participant_store.interfaces import ChangeNotifier, SnapshotProvider, WealthProvider
from participant_store.models import ParticipantRecord
from penalty_tracker.tracker import PenaltyDecayTracker
from progress_scoring.aggregator import ScoreAggregator, ScoringInputs
from progress_scoring.types import Category, ProgressResult

from .config import UpdateConfig


logger = logging.getLogger(__name__)


# ============================================================
# PARTICIPANT STATE
# ============================================================


class ParticipantState(Enum):
    """Recompute lifecycle of one participant."""

    IDLE = "idle"
    """No recompute scheduled or running."""

    PENDING = "pending"
    """Debounce timer running (or immediate start imminent)."""

    RUNNING = "running"
    """Recompute in flight."""


VALID_TRANSITIONS: Dict[ParticipantState, Set[ParticipantState]] = {
    ParticipantState.IDLE: {ParticipantState.PENDING, ParticipantState.RUNNING},
    ParticipantState.PENDING: {ParticipantState.PENDING, ParticipantState.RUNNING},
    ParticipantState.RUNNING: {ParticipantState.IDLE, ParticipantState.PENDING},
}


TRIGGER_FORCE = "force"


@dataclass
class _ParticipantSlot:
    """Orchestration bookkeeping for one participant."""

    state: ParticipantState = ParticipantState.IDLE
    timer: Optional[ScheduledHandle] = None
    task: Optional[asyncio.Task] = None
    follow_up: bool = False
    follow_up_immediate: bool = False
    follow_up_trigger: str = "default"
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    recompute_count: int = 0
    users: int = 0


# ============================================================
# ORCHESTRATOR
# ============================================================


class UpdateOrchestrator:
    """
    Debounced, deduplicated recompute scheduling.

    request_update() is fire-and-forget and must be called from
    the event loop thread; other threads use
    request_update_threadsafe().
    """

    def __init__(
        self,
        cache: ParticipantCache,
        aggregator: ScoreAggregator,
        tracker: PenaltyDecayTracker,
        snapshot_provider: SnapshotProvider,
        wealth_provider: Optional[WealthProvider] = None,
        notifier: Optional[ChangeNotifier] = None,
        config: Optional[UpdateConfig] = None,
        scheduler: Optional[Scheduler] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        self.cache = cache
        self.aggregator = aggregator
        self.tracker = tracker
        self.snapshot_provider = snapshot_provider
        self.wealth_provider = wealth_provider
        self.notifier = notifier
        self.config = config or UpdateConfig()
        self._scheduler = scheduler or LoopScheduler()
        self._clock = clock or SystemClock()

        self._slots: Dict[uuid.UUID, _ParticipantSlot] = {}
        self._semaphore = asyncio.Semaphore(self.config.max_concurrent_recomputes)
        self._background: Set[asyncio.Task] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._closed = False

        self.total_recomputes = 0

    # ----------------------------------------------------------
    # Slots & state
    # ----------------------------------------------------------

    def _slot(self, participant_id: uuid.UUID) -> _ParticipantSlot:
        slot = self._slots.get(participant_id)
        if slot is None:
            slot = _ParticipantSlot()
            self._slots[participant_id] = slot
        return slot

    def _transition(self, participant_id: uuid.UUID, slot: _ParticipantSlot, to: ParticipantState) -> None:
        if to not in VALID_TRANSITIONS[slot.state]:
            logger.warning(
                f"Unexpected state transition | participant={participant_id} | "
                f"{slot.state.value} -> {to.value}"
            )
        slot.state = to

    def state_of(self, participant_id: uuid.UUID) -> ParticipantState:
        slot = self._slots.get(participant_id)
        return slot.state if slot else ParticipantState.IDLE

    def recompute_count(self, participant_id: uuid.UUID) -> int:
        slot = self._slots.get(participant_id)
        return slot.recompute_count if slot else 0

    @asynccontextmanager
    async def _hold(self, slot: _ParticipantSlot) -> AsyncIterator[None]:
        # users counts holders and queued waiters; a slot with users is never dropped
        slot.users += 1
        try:
            async with slot.lock:
                yield
        finally:
            slot.users -= 1

    def gate(self, participant_id: uuid.UUID) -> AsyncContextManager[None]:
        """
        The participant's mutual-exclusion gate.

        Hold it for any mutation of the participant's record. Never
        call force_recalculate() while holding it.
        """
        return self._hold(self._slot(participant_id))

    def gate_held(self, participant_id: uuid.UUID) -> bool:
        slot = self._slots.get(participant_id)
        return slot is not None and slot.lock.locked()

    def is_busy(self, participant_id: uuid.UUID) -> bool:
        slot = self._slots.get(participant_id)
        if slot is None:
            return False
        return slot.state != ParticipantState.IDLE or slot.users > 0 or slot.lock.locked()

    def forget(self, participant_id: uuid.UUID) -> bool:
        """Drop bookkeeping for an idle participant."""
        if self.is_busy(participant_id):
            return False
        self._slots.pop(participant_id, None)
        return True

    # ----------------------------------------------------------
    # Triggers
    # ----------------------------------------------------------

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def request_update(
        self,
        participant_id: uuid.UUID,
        immediate: bool = False,
        trigger: str = "default",
    ) -> None:
        """
        Ask for a recompute. Returns immediately.

        Args:
            participant_id: Participant to recompute
            immediate: Skip the debounce delay
            trigger: Trigger name, selects the debounce delay
        """
        if self._closed:
            return

        slot = self._slot(participant_id)

        if slot.state == ParticipantState.RUNNING:
            slot.follow_up = True
            slot.follow_up_immediate = slot.follow_up_immediate or immediate
            slot.follow_up_trigger = trigger
            return

        self._cancel_timer(slot)
        self._transition(participant_id, slot, ParticipantState.PENDING)

        if immediate:
            self._start(participant_id, slot, trigger)
        else:
            slot.timer = self._scheduler.call_later(
                self.config.delay_for(trigger),
                lambda: self._on_timer(participant_id, trigger),
            )

    def request_update_threadsafe(
        self,
        participant_id: uuid.UUID,
        immediate: bool = False,
        trigger: str = "default",
    ) -> None:
        """request_update() for callers outside the event loop thread."""
        if self._loop is None:
            raise RuntimeError("Orchestrator is not bound to an event loop")
        self._loop.call_soon_threadsafe(self.request_update, participant_id, immediate, trigger)

    def request_decay_update(self, participant_id: uuid.UUID) -> None:
        """Decay-step hook for PenaltyDecayTracker."""
        self.request_update(participant_id, immediate=False, trigger="decay")

    def _cancel_timer(self, slot: _ParticipantSlot) -> None:
        if slot.timer is not None:
            slot.timer.cancel()
            slot.timer = None

    def _on_timer(self, participant_id: uuid.UUID, trigger: str) -> None:
        slot = self._slots.get(participant_id)
        if slot is None or slot.state != ParticipantState.PENDING:
            return
        slot.timer = None
        self._start(participant_id, slot, trigger)

    def _start(self, participant_id: uuid.UUID, slot: _ParticipantSlot, trigger: str) -> asyncio.Task:
        self._transition(participant_id, slot, ParticipantState.RUNNING)
        task = asyncio.get_running_loop().create_task(self._run(participant_id, slot, trigger))
        slot.task = task
        return task

    def _finish(self, participant_id: uuid.UUID, slot: _ParticipantSlot) -> None:
        slot.task = None

        if slot.follow_up and not self._closed:
            immediate = slot.follow_up_immediate
            trigger = slot.follow_up_trigger
            slot.follow_up = False
            slot.follow_up_immediate = False
            self._transition(participant_id, slot, ParticipantState.PENDING)
            if immediate:
                self._start(participant_id, slot, trigger)
            else:
                slot.timer = self._scheduler.call_later(
                    self.config.delay_for(trigger),
                    lambda: self._on_timer(participant_id, trigger),
                )
            return

        slot.follow_up = False
        slot.follow_up_immediate = False
        self._transition(participant_id, slot, ParticipantState.IDLE)

    # ----------------------------------------------------------
    # Execution
    # ----------------------------------------------------------

    async def _run(
        self,
        participant_id: uuid.UUID,
        slot: _ParticipantSlot,
        trigger: str,
    ) -> Optional[ProgressResult]:
        try:
            async with self._hold(slot):
                async with self._semaphore:
                    return await self._recompute(participant_id, slot, trigger)
        except Exception as e:
            logger.error(
                f"Recompute failed | participant={participant_id} | trigger={trigger} | error={e}",
                exc_info=True,
            )
            return None
        finally:
            self._finish(participant_id, slot)

    async def force_recalculate(self, participant_id: uuid.UUID) -> float:
        """
        Recompute now, bypassing debounce.

        Cancels any pending timer and waits for an in-flight run
        before starting.

        Returns:
            The final score of the forced recompute

        Raises:
            ProgressEngineError: if the recompute failed
        """
        while True:
            # Re-read each pass; the slot may have been forgotten while waiting
            slot = self._slot(participant_id)
            self._cancel_timer(slot)
            task = slot.task
            if task is None:
                break
            await asyncio.wait({task})

        slot.follow_up = False
        slot.follow_up_immediate = False
        if slot.state == ParticipantState.IDLE:
            self._transition(participant_id, slot, ParticipantState.PENDING)

        result = await self._start(participant_id, slot, TRIGGER_FORCE)
        if result is None:
            raise ProgressEngineError(
                "Forced recompute failed",
                context={"participant_id": str(participant_id)},
            )
        return result.final_score

    async def settle(self, participant_id: uuid.UUID) -> None:
        """Drop a pending recompute and wait for any in-flight one."""
        slot = self._slots.get(participant_id)
        if slot is None:
            return

        while True:
            self._cancel_timer(slot)
            slot.follow_up = False
            task = slot.task
            if task is None:
                break
            await asyncio.wait({task})

        if slot.state == ParticipantState.PENDING:
            slot.state = ParticipantState.IDLE

    async def _recompute(
        self,
        participant_id: uuid.UUID,
        slot: _ParticipantSlot,
        trigger: str,
    ) -> ProgressResult:
        slot.recompute_count += 1
        self.total_recomputes += 1

        # --------------------------------------------------
        # Step 1: Load record
        # --------------------------------------------------
        record = await self.cache.get_or_load(participant_id)

        # --------------------------------------------------
        # Step 2: Gather inputs
        # --------------------------------------------------
        inputs = await self._gather_inputs(participant_id, record)

        # --------------------------------------------------
        # Step 3: Current penalty
        # --------------------------------------------------
        penalty = self.tracker.penalty_for(participant_id, record.total_loss_events)

        # --------------------------------------------------
        # Step 4: Score and combine
        # --------------------------------------------------
        now = self._clock.timestamp()
        result = self.aggregator.evaluate(inputs, penalty=penalty, now=from_timestamp(now))

        # --------------------------------------------------
        # Step 5: Write record
        # --------------------------------------------------
        previous = record.apply_score(result.final_score, now)
        record.last_result = result
        if inputs.snapshot is not None:
            record.last_known_equipment_value = result.score_for(Category.EQUIPMENT)

        delta = result.final_score - previous
        logger.debug(
            f"Recomputed | participant={participant_id} | trigger={trigger} | "
            f"score={result.final_score:.2f} | delta={delta:+.2f} | penalty={penalty:.4f}"
        )

        if abs(delta) >= self.config.event_threshold:
            await self.append_history(participant_id, result.final_score, now)
            if self.config.emit_events:
                self._emit(participant_id, previous, result.final_score, result)

        # --------------------------------------------------
        # Step 6: Save
        # --------------------------------------------------
        if self.config.save_on_recompute:
            await self.cache.flush(participant_id)

        return result

    async def _call_collaborator(self, coro, source: str) -> Tuple[Optional[object], Optional[str]]:
        try:
            value = await asyncio.wait_for(coro, timeout=self.config.collaborator_timeout_seconds)
            return value, None
        except asyncio.TimeoutError:
            return None, f"{source} timed out"
        except Exception as e:
            return None, f"{source} failed: {e}"

    async def _gather_inputs(self, participant_id: uuid.UUID, record: ParticipantRecord) -> ScoringInputs:
        snapshot_call = self._call_collaborator(
            self.snapshot_provider.get_snapshot(participant_id), "snapshot"
        )
        if self.wealth_provider is not None:
            balance_call = self._call_collaborator(
                self.wealth_provider.get_balance(participant_id), "balance"
            )
            (snapshot, snapshot_error), (balance, balance_error) = await asyncio.gather(
                snapshot_call, balance_call
            )
        else:
            snapshot, snapshot_error = await snapshot_call
            balance, balance_error = None, None

        if snapshot_error:
            logger.warning(f"Snapshot unavailable | participant={participant_id} | {snapshot_error}")
        if balance_error:
            logger.warning(f"Balance unavailable | participant={participant_id} | {balance_error}")

        return ScoringInputs(
            snapshot=snapshot,
            snapshot_error=snapshot_error,
            balance=balance,
            wealth_available=self.wealth_provider is not None,
            balance_error=balance_error,
            custom_milestones=frozenset(record.completed_milestones),
        )

    async def append_history(self, participant_id: uuid.UUID, score: float, ts: float) -> None:
        try:
            await self.cache.store.append_history(participant_id, score, ts)
        except Exception as e:
            logger.error(f"Failed to append history | participant={participant_id} | error={e}")

    def _emit(
        self,
        participant_id: uuid.UUID,
        old_score: float,
        new_score: float,
        result: Optional[ProgressResult],
    ) -> None:
        if self.notifier is None:
            return
        task = asyncio.get_running_loop().create_task(
            self._safe_emit(participant_id, old_score, new_score, result)
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _safe_emit(self, participant_id, old_score, new_score, result) -> None:
        try:
            await self.notifier.emit(participant_id, old_score, new_score, result)
        except Exception as e:
            logger.error(f"Change notification failed | participant={participant_id} | error={e}", exc_info=True)

    def notify_change(
        self,
        participant_id: uuid.UUID,
        old_score: float,
        new_score: float,
        result: Optional[ProgressResult] = None,
    ) -> None:
        """Emit a change event outside a recompute (admin overrides)."""
        if self.config.emit_events and abs(new_score - old_score) >= self.config.event_threshold:
            self._emit(participant_id, old_score, new_score, result)

    # ----------------------------------------------------------
    # Lifecycle
    # ----------------------------------------------------------

    def _outstanding(self) -> Set[asyncio.Task]:
        tasks = {s.task for s in self._slots.values() if s.task is not None}
        return tasks | set(self._background)

    async def drain(self) -> None:
        """Wait until no recompute or notification task is outstanding."""
        while True:
            tasks = {t for t in self._outstanding() if not t.done()}
            if not tasks:
                # Let done-callbacks and finally blocks settle
                await asyncio.sleep(0)
                if not {t for t in self._outstanding() if not t.done()}:
                    return
                continue
            await asyncio.wait(tasks)

    async def close(self) -> None:
        """Stop accepting triggers, cancel timers, wait for in-flight runs."""
        self._closed = True
        for slot in self._slots.values():
            self._cancel_timer(slot)
            if slot.state == ParticipantState.PENDING and slot.task is None:
                slot.state = ParticipantState.IDLE
        await self.drain()
