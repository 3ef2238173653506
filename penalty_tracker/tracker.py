"""
Penalty Tracker - Decay Tracker.

============================================================
RESPONSIBILITY
============================================================
Owns every participant's active loss records and turns them
into a penalty that converges to zero.

- register_loss() creates a record and schedules decay steps
- each decay step recovers a fraction of the loss and asks
  for a (debounced) score recompute
- current_penalty() evicts expired records, then sums

============================================================
DECAY MODEL
============================================================
    penalty(record) = total / scale * (1 - recovered / total)

Default schedule: +60s 30%, +180s 30%, +300s 40%.
A record older than hard_expiry_seconds counts as 0 no matter
how much was recovered.

============================================================
THREADING
============================================================
Confined to the event loop thread. Decay callbacks fire on the
same loop via the injected Scheduler.

============================================================
"""

from typing import Callable, Dict, List, Optional
import logging
import uuid

from core.clock import ClockProtocol, SystemClock
from core.exceptions import InvariantViolationError
from core.scheduler import LoopScheduler, Scheduler

from .config import PENALTY_MODE_FLAT, PenaltyConfig
from .models import LossRecord


logger = logging.getLogger(__name__)


# Called with (participant_id) after each decay step
DecayCallback = Callable[[uuid.UUID], None]


class PenaltyDecayTracker:
    """
    Per-participant loss records with scheduled decay.

    Example:
        tracker = PenaltyDecayTracker(config, scheduler, clock)
        tracker.set_decay_callback(orchestrator.request_decay_update)
        tracker.register_loss(pid, 100.0)
        tracker.current_penalty(pid)   # 0.1
    """

    def __init__(
        self,
        config: Optional[PenaltyConfig] = None,
        scheduler: Optional[Scheduler] = None,
        clock: Optional[ClockProtocol] = None,
        on_decay: Optional[DecayCallback] = None,
    ):
        self.config = config or PenaltyConfig()
        self._scheduler = scheduler or LoopScheduler()
        self._clock = clock or SystemClock()
        self._on_decay = on_decay
        self._records: Dict[uuid.UUID, Dict[str, LossRecord]] = {}

    def set_decay_callback(self, callback: Optional[DecayCallback]) -> None:
        self._on_decay = callback

    # ----------------------------------------------------------
    # Registration
    # ----------------------------------------------------------

    def register_loss(self, participant_id: uuid.UUID, total_value: float) -> Optional[str]:
        """
        Record a loss and schedule its decay steps.

        Args:
            participant_id: Participant who lost items
            total_value: Value of the lost items

        Returns:
            record_id, or None when nothing was recorded
            (non-positive value, tracking disabled or flat mode)
        """
        if total_value <= 0:
            return None
        if not self.config.enabled or self.config.mode == PENALTY_MODE_FLAT:
            return None

        record = LossRecord(
            participant_id=participant_id,
            total_value=float(total_value),
            created_at=self._clock.timestamp(),
        )
        self._records.setdefault(participant_id, {})[record.record_id] = record

        for offset, fraction in self.config.decay_schedule:
            handle = self._scheduler.call_later(
                offset,
                lambda rid=record.record_id, frac=fraction: self._apply_decay_step(
                    participant_id, rid, frac
                ),
            )
            record.handles.append(handle)

        logger.info(
            f"Loss registered | participant={participant_id} | "
            f"value={total_value:.2f} | penalty={record.penalty(self.config.scale_constant):.4f}"
        )
        return record.record_id

    # ----------------------------------------------------------
    # Decay
    # ----------------------------------------------------------

    def _apply_decay_step(self, participant_id: uuid.UUID, record_id: str, fraction: float) -> None:
        records = self._records.get(participant_id)
        record = records.get(record_id) if records else None
        if record is None:
            # Expired or cleared before this step fired
            return

        if record.recover(record.total_value * fraction):
            error = InvariantViolationError(
                "Recovered value exceeded total; clamped",
                context={"participant_id": str(participant_id), "record_id": record_id},
            )
            logger.warning(error.to_log_format())

        if record.is_recovered:
            self._remove(participant_id, record_id)
            logger.debug(f"Loss fully recovered | participant={participant_id} | record={record_id}")

        if self._on_decay is not None:
            try:
                self._on_decay(participant_id)
            except Exception as e:
                logger.error(f"Decay update request failed: {e}", exc_info=True)

    def _remove(self, participant_id: uuid.UUID, record_id: str) -> None:
        records = self._records.get(participant_id)
        if not records:
            return
        record = records.pop(record_id, None)
        if record is not None:
            record.cancel_pending()
        if not records:
            del self._records[participant_id]

    def _evict_expired(self, participant_id: uuid.UUID) -> None:
        records = self._records.get(participant_id)
        if not records:
            return
        now = self._clock.timestamp()
        expired = [
            rid for rid, r in records.items()
            if r.age(now) > self.config.hard_expiry_seconds
        ]
        for rid in expired:
            self._remove(participant_id, rid)
        if expired:
            logger.debug(f"Expired loss records evicted | participant={participant_id} | count={len(expired)}")

    # ----------------------------------------------------------
    # Queries
    # ----------------------------------------------------------

    def current_penalty(self, participant_id: uuid.UUID) -> float:
        """Sum of live record penalties after evicting expired ones."""
        self._evict_expired(participant_id)
        records = self._records.get(participant_id)
        if not records:
            return 0.0
        return sum(r.penalty(self.config.scale_constant) for r in records.values())

    def flat_penalty(self, loss_events: int) -> float:
        """Per-event penalty used when mode is flat."""
        return min(
            self.config.max_flat_penalty,
            max(0, loss_events) * self.config.penalty_per_loss_event,
        )

    def penalty_for(self, participant_id: uuid.UUID, loss_events: int = 0) -> float:
        """Penalty to subtract for a participant under the configured mode."""
        if not self.config.enabled:
            return 0.0
        if self.config.mode == PENALTY_MODE_FLAT:
            return self.flat_penalty(loss_events)
        return self.current_penalty(participant_id)

    def active_records(self, participant_id: uuid.UUID) -> List[LossRecord]:
        self._evict_expired(participant_id)
        return list(self._records.get(participant_id, {}).values())

    def clear(self, participant_id: uuid.UUID) -> int:
        """Drop all records for a participant. Returns the count dropped."""
        records = self._records.pop(participant_id, {})
        for record in records.values():
            record.cancel_pending()
        return len(records)

    def clear_all(self) -> None:
        for participant_id in list(self._records):
            self.clear(participant_id)

    @property
    def tracked_participants(self) -> int:
        return len(self._records)
