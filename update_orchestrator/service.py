"""
Update Orchestrator - Progress Service.

============================================================
RESPONSIBILITY
============================================================
The engine's public surface. Wires cache, scoring, penalties
and the orchestrator together and exposes:

- Triggers: request_update, touch
- Queries: get_score, get_result, top_participants, get_history
- Admin: force_recalculate, set_score, reset_participant,
  grant_milestone, revoke_milestone, register_loss,
  register_item_loss, unload
- Maintenance loops: autosave, periodic recompute, idle
  eviction, history cleanup

============================================================
SEMANTICS
============================================================
Admin operations return an OperationResult synchronously.
Everything else is fire-and-forget: a trigger does not imply the
score is already updated when the call returns.

============================================================
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple, Union
import asyncio
import logging
import uuid

from core.clock import ClockProtocol, SystemClock
from core.exceptions import ProgressEngineError, UnknownParticipantError
from core.scheduler import LoopScheduler, Scheduler
from participant_store.cache import ParticipantCache
from participant_store.interfaces import (
    ChangeNotifier,
    PersistenceStore,
    SnapshotProvider,
    WealthProvider,
)
from participant_store.models import HistoryEntry, ParticipantRecord
from penalty_tracker.config import PENALTY_MODE_FLAT
from penalty_tracker.tracker import PenaltyDecayTracker
from penalty_tracker.valuation import LostItem, value_lost_items
from progress_scoring.aggregator import ScoreAggregator
from progress_scoring.types import ProgressResult

from .config import ProgressSystemConfig, get_default_config
from .orchestrator import UpdateOrchestrator


logger = logging.getLogger(__name__)


ParticipantKey = Union[uuid.UUID, str]


def to_participant_id(value: ParticipantKey) -> uuid.UUID:
    """Normalize a participant id. Raises ValueError for malformed strings."""
    if isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


# ============================================================
# RESULTS
# ============================================================


@dataclass(frozen=True)
class OperationResult:
    """Outcome of an administrative operation."""

    success: bool
    participant_id: uuid.UUID
    score: Optional[float] = None
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "participant_id": str(self.participant_id),
            "score": self.score,
            "message": self.message,
        }


@dataclass(frozen=True)
class LossResult:
    """Outcome of an item loss: what the items were worth and the record created."""

    record_id: Optional[str]
    total_value: float


# ============================================================
# SERVICE
# ============================================================


class ProgressService:
    """
    Progress engine facade.

    Example:
        service = ProgressService(snapshots, store, config)
        await service.start()
        service.request_update(pid, trigger="level_up")
        result = await service.force_recalculate(pid)
        await service.stop()
    """

    def __init__(
        self,
        snapshot_provider: SnapshotProvider,
        store: PersistenceStore,
        config: Optional[ProgressSystemConfig] = None,
        wealth_provider: Optional[WealthProvider] = None,
        notifier: Optional[ChangeNotifier] = None,
        scheduler: Optional[Scheduler] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        self.config = config or get_default_config()
        self._clock = clock or SystemClock()
        self._scheduler = scheduler or LoopScheduler()

        scoring = self.config.scoring
        self.cache = ParticipantCache(
            store,
            config=self.config.cache,
            clock=self._clock,
            min_score=scoring.min_score,
        )
        self.aggregator = ScoreAggregator(scoring)
        self.tracker = PenaltyDecayTracker(
            self.config.penalty,
            scheduler=self._scheduler,
            clock=self._clock,
        )
        self.orchestrator = UpdateOrchestrator(
            cache=self.cache,
            aggregator=self.aggregator,
            tracker=self.tracker,
            snapshot_provider=snapshot_provider,
            wealth_provider=wealth_provider,
            notifier=notifier,
            config=self.config.updates,
            scheduler=self._scheduler,
            clock=self._clock,
        )
        self.tracker.set_decay_callback(self.orchestrator.request_decay_update)

        self._running = False
        self._tasks: List[asyncio.Task] = []

    @property
    def store(self) -> PersistenceStore:
        return self.cache.store

    def _clamp(self, value: float) -> float:
        scoring = self.config.scoring
        return max(scoring.min_score, min(scoring.max_score, value))

    # =========================================================
    # LIFECYCLE
    # =========================================================

    async def start(self) -> None:
        """Bind to the running loop and start maintenance loops."""
        if self._running:
            return

        self._running = True
        self.orchestrator.bind_loop(asyncio.get_running_loop())

        cache_config = self.config.cache
        loops: List[Tuple[str, float, Callable[[], Awaitable[Any]]]] = [
            ("autosave", cache_config.autosave_interval_seconds, self.save_all),
            ("recalculation", self.config.updates.recalculation_interval_seconds, self.recalculate_active),
            ("eviction", max(1.0, cache_config.effective_ttl / 2), self.evict_idle),
            ("history-cleanup", 3600.0, self.cleanup_history),
        ]
        for name, interval, action in loops:
            if interval and interval > 0:
                self._tasks.append(asyncio.create_task(self._maintenance_loop(name, interval, action)))

        logger.info(f"Progress service started | loops={len(self._tasks)}")

    async def stop(self) -> None:
        """Cancel loops, let in-flight recomputes finish, flush everything."""
        self._running = False
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks.clear()

        await self.orchestrator.close()
        self.tracker.clear_all()
        saved = await self.save_all()
        logger.info(f"Progress service stopped | flushed={saved}")

    async def _maintenance_loop(
        self,
        name: str,
        interval: float,
        action: Callable[[], Awaitable[Any]],
    ) -> None:
        while self._running:
            try:
                await asyncio.sleep(interval)
                await action()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Maintenance loop error | loop={name} | error={e}", exc_info=True)

    # =========================================================
    # TRIGGERS
    # =========================================================

    def request_update(
        self,
        participant_id: ParticipantKey,
        immediate: bool = False,
        trigger: str = "default",
    ) -> None:
        """Fire-and-forget recompute request."""
        self.orchestrator.request_update(to_participant_id(participant_id), immediate, trigger)

    async def touch(self, participant_id: ParticipantKey) -> ParticipantRecord:
        """Participant seen (join): load, stamp last_seen, schedule a recompute."""
        pid = to_participant_id(participant_id)
        async with self.orchestrator.gate(pid):
            record = await self.cache.get_or_load(pid)
            record.last_seen_ts = self._clock.timestamp()
            record.dirty = True
        self.orchestrator.request_update(pid, trigger="join")
        return record

    # =========================================================
    # QUERIES
    # =========================================================

    async def get_score(self, participant_id: ParticipantKey) -> float:
        """Last computed score (minimum score for unseen participants)."""
        pid = to_participant_id(participant_id)
        record = self.cache.get(pid)
        if record is None:
            async with self.orchestrator.gate(pid):
                record = await self.cache.get_or_load(pid)
        return record.current_progress

    def get_result(self, participant_id: ParticipantKey) -> Optional[ProgressResult]:
        """Breakdown of the last recompute, if one ran this session."""
        record = self.cache.get(to_participant_id(participant_id))
        return record.last_result if record else None

    async def top_participants(self, limit: int = 10) -> List[Tuple[uuid.UUID, float]]:
        """Highest scores across stored and cached participants."""
        stored = await self.store.top_n(limit + len(self.cache))
        scores = dict(stored)
        for record in self.cache:
            scores[record.participant_id] = record.current_progress
        ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
        return ranked[:limit]

    async def get_history(
        self,
        participant_id: ParticipantKey,
        limit: Optional[int] = None,
    ) -> List[HistoryEntry]:
        pid = to_participant_id(participant_id)
        return await self.store.get_history(pid, limit or self.config.cache.history_limit_default)

    # =========================================================
    # ADMINISTRATION
    # =========================================================

    async def force_recalculate(self, participant_id: ParticipantKey) -> OperationResult:
        pid = to_participant_id(participant_id)
        try:
            score = await self.orchestrator.force_recalculate(pid)
        except ProgressEngineError as e:
            logger.error(e.to_log_format())
            return OperationResult(False, pid, message=e.message)
        return OperationResult(True, pid, score=score, message="recalculated")

    async def set_score(self, participant_id: ParticipantKey, value: float) -> OperationResult:
        """Override the score, clamped to bounds. The next recompute replaces it."""
        pid = to_participant_id(participant_id)
        score = self._clamp(float(value))

        async with self.orchestrator.gate(pid):
            record = await self.cache.get_or_load(pid)
            now = self._clock.timestamp()
            previous = record.apply_score(score, now)
            record.last_result = None
            saved = await self.cache.flush(pid)
            if abs(score - previous) >= self.config.updates.event_threshold:
                await self.orchestrator.append_history(pid, score, now)

        self.orchestrator.notify_change(pid, previous, score)
        logger.info(f"Score set | participant={pid} | score={score:.2f} | previous={previous:.2f}")
        return OperationResult(
            True, pid, score=score,
            message="score set" if saved else "score set; save pending",
        )

    async def reset_participant(self, participant_id: ParticipantKey) -> OperationResult:
        """Clear progress, milestones and penalties."""
        pid = to_participant_id(participant_id)
        await self.orchestrator.settle(pid)

        async with self.orchestrator.gate(pid):
            try:
                record = await self._require_record(pid)
            except UnknownParticipantError as e:
                logger.info(e.to_log_format())
                return OperationResult(False, pid, message=e.message)
            previous = record.current_progress
            record.reset(self._clock.timestamp(), self.config.scoring.min_score)
            dropped = self.tracker.clear(pid)
            await self.cache.flush(pid)

        self.orchestrator.notify_change(pid, previous, record.current_progress)
        logger.info(f"Participant reset | participant={pid} | loss_records_dropped={dropped}")
        return OperationResult(True, pid, score=record.current_progress, message="reset")

    async def _require_record(self, pid: uuid.UUID) -> ParticipantRecord:
        """Cached or stored record, never a fresh default. Caller holds the gate."""
        record = self.cache.get(pid)
        if record is not None:
            return record
        try:
            stored = await self.store.load(pid)
        except Exception as e:
            logger.warning(f"Existence check failed | participant={pid} | error={e}")
            return await self.cache.get_or_load(pid)
        if stored is None:
            raise UnknownParticipantError(pid)
        self.cache.put(stored)
        return stored

    async def grant_milestone(self, participant_id: ParticipantKey, key: str) -> OperationResult:
        return await self._change_milestone(participant_id, key, grant=True)

    async def revoke_milestone(self, participant_id: ParticipantKey, key: str) -> OperationResult:
        return await self._change_milestone(participant_id, key, grant=False)

    async def _change_milestone(self, participant_id: ParticipantKey, key: str, grant: bool) -> OperationResult:
        pid = to_participant_id(participant_id)

        async with self.orchestrator.gate(pid):
            record = await self.cache.get_or_load(pid)
            has = key in record.completed_milestones
            if grant == has:
                return OperationResult(
                    False, pid, score=record.current_progress,
                    message="already granted" if grant else "not granted",
                )
            if grant:
                record.completed_milestones.add(key)
            else:
                record.completed_milestones.discard(key)
            record.dirty = True

        self.orchestrator.request_update(pid, immediate=False, trigger="milestone")

        message = "granted" if grant else "revoked"
        if key not in self.config.scoring.custom.milestones:
            message += " (unknown milestone, worth 0 points)"
        return OperationResult(True, pid, score=record.current_progress, message=message)

    async def register_loss(self, participant_id: ParticipantKey, total_value: float) -> Optional[str]:
        """
        Record a loss event.

        Decay mode: a non-positive value is a no-op. Flat mode: the
        event is counted regardless of value.

        Returns:
            The loss record id, or None if no record was created
        """
        pid = to_participant_id(participant_id)
        flat = self.config.penalty.mode == PENALTY_MODE_FLAT

        if total_value <= 0 and not flat:
            return None

        async with self.orchestrator.gate(pid):
            record = await self.cache.get_or_load(pid)
            record.total_loss_events += 1
            record.dirty = True
            milestone = self.config.penalty.first_loss_milestone
            if milestone and record.total_loss_events == 1 and milestone not in record.completed_milestones:
                record.completed_milestones.add(milestone)
                logger.info(f"First-loss milestone granted | participant={pid} | milestone={milestone}")
            record_id = self.tracker.register_loss(pid, total_value)

        self.orchestrator.request_update(pid, trigger="loss")
        return record_id

    async def register_item_loss(self, participant_id: ParticipantKey, items: Iterable[LostItem]) -> LossResult:
        """Value the dropped items and register the loss."""
        value = value_lost_items(items, self.config.penalty.valuation)
        record_id = await self.register_loss(participant_id, value)
        return LossResult(record_id=record_id, total_value=value)

    async def unload(self, participant_id: ParticipantKey) -> bool:
        """
        Participant left: final flush, then evict.

        Returns:
            True if evicted; False if the final save failed (the
            record stays cached for autosave to retry)
        """
        pid = to_participant_id(participant_id)
        await self.orchestrator.settle(pid)

        async with self.orchestrator.gate(pid):
            evicted = await self.cache.unload(pid)
            if evicted:
                self.tracker.clear(pid)

        if evicted:
            self.orchestrator.forget(pid)
        return evicted

    # =========================================================
    # MAINTENANCE
    # =========================================================

    async def save_all(self) -> int:
        """Flush every dirty record. Returns how many were saved."""
        saved = 0
        for pid in self.cache.dirty_ids():
            async with self.orchestrator.gate(pid):
                if await self.cache.flush(pid):
                    saved += 1
        if saved:
            logger.debug(f"Autosave | saved={saved}")
        return saved

    async def recalculate_active(self) -> int:
        """Schedule a periodic recompute for every cached participant."""
        ids = self.cache.participant_ids()
        for pid in ids:
            self.orchestrator.request_update(pid, trigger="periodic")
        return len(ids)

    async def evict_idle(self) -> int:
        """Flush and evict participants idle past the cache TTL."""
        evicted = 0
        for pid in self.cache.idle_ids():
            if self.orchestrator.is_busy(pid):
                continue
            async with self.orchestrator.gate(pid):
                if await self.cache.unload(pid):
                    evicted += 1
            self.orchestrator.forget(pid)
        if evicted:
            logger.debug(f"Evicted idle participants | count={evicted}")
        return evicted

    async def cleanup_history(self) -> int:
        cutoff = self._clock.timestamp() - self.config.cache.history_retention_seconds
        try:
            removed = await self.store.cleanup_history(cutoff)
        except Exception as e:
            logger.error(f"History cleanup failed: {e}")
            return 0
        if removed:
            logger.info(f"History cleanup | removed={removed}")
        return removed
