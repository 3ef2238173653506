"""
Penalty Tracker - Models.

In-memory loss records. Records are never persisted: they expire
within an hour and a restart simply forgives them.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List
import uuid

from core.scheduler import ScheduledHandle


@dataclass
class LossRecord:
    """
    A single loss event awaiting recovery.

    0 <= recovered_value <= total_value always holds after
    recover(); the record is removed once fully recovered.
    """

    participant_id: uuid.UUID
    total_value: float
    created_at: float
    recovered_value: float = 0.0
    record_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    steps_applied: int = 0
    handles: List[ScheduledHandle] = field(default_factory=list, repr=False, compare=False)

    @property
    def remaining_fraction(self) -> float:
        if self.total_value <= 0:
            return 0.0
        return max(0.0, 1.0 - self.recovered_value / self.total_value)

    @property
    def is_recovered(self) -> bool:
        # Tolerance absorbs float error from 0.3 + 0.3 + 0.4
        return self.recovered_value >= self.total_value - 1e-9

    def penalty(self, scale_constant: float) -> float:
        return self.total_value / scale_constant * self.remaining_fraction

    def age(self, now: float) -> float:
        return now - self.created_at

    def recover(self, amount: float) -> bool:
        """
        Add recovered value, clamping to total_value.

        Returns:
            True if clamping was needed
        """
        self.recovered_value += amount
        self.steps_applied += 1
        if self.recovered_value > self.total_value:
            overshoot = self.recovered_value - self.total_value > 1e-9
            self.recovered_value = self.total_value
            return overshoot
        return False

    def cancel_pending(self) -> None:
        for handle in self.handles:
            handle.cancel()
        self.handles.clear()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "record_id": self.record_id,
            "participant_id": str(self.participant_id),
            "total_value": self.total_value,
            "recovered_value": self.recovered_value,
            "created_at": self.created_at,
            "steps_applied": self.steps_applied,
        }
