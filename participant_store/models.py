"""
Participant Store - Models.

============================================================
PURPOSE
============================================================
The per-participant record held in the cache and persisted by
the PersistenceStore, plus progress history entries.

============================================================
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Set
import uuid

from core.constants import DEFAULT_MIN_SCORE
from progress_scoring.types import ProgressResult


@dataclass
class ParticipantRecord:
    """
    Mutable state for one participant.

    current_progress defaults to the minimum score. dirty marks
    changes not yet written to the PersistenceStore. last_result
    and last_access_ts are runtime-only and never persisted.
    """

    participant_id: uuid.UUID
    current_progress: float = DEFAULT_MIN_SCORE
    previous_progress: float = DEFAULT_MIN_SCORE
    first_seen_ts: float = 0.0
    last_seen_ts: float = 0.0
    last_update_ts: float = 0.0
    completed_milestones: Set[str] = field(default_factory=set)
    last_known_equipment_value: float = 0.0
    total_loss_events: int = 0

    dirty: bool = False
    last_result: Optional[ProgressResult] = field(default=None, repr=False, compare=False)
    last_access_ts: float = field(default=0.0, compare=False)

    @classmethod
    def new(
        cls,
        participant_id: uuid.UUID,
        now: float,
        min_score: float = DEFAULT_MIN_SCORE,
    ) -> "ParticipantRecord":
        return cls(
            participant_id=participant_id,
            current_progress=min_score,
            previous_progress=min_score,
            first_seen_ts=now,
            last_seen_ts=now,
            last_access_ts=now,
        )

    def apply_score(self, score: float, now: float) -> float:
        """
        Shift current into previous and store the new score.

        Returns:
            The previous score
        """
        self.previous_progress = self.current_progress
        self.current_progress = score
        self.last_update_ts = now
        self.dirty = True
        return self.previous_progress

    def reset(self, now: float, min_score: float = DEFAULT_MIN_SCORE) -> None:
        """Back to a fresh record, keeping identity and first_seen."""
        self.previous_progress = self.current_progress
        self.current_progress = min_score
        self.completed_milestones = set()
        self.last_known_equipment_value = 0.0
        self.total_loss_events = 0
        self.last_update_ts = now
        self.last_result = None
        self.dirty = True

    def copy(self) -> "ParticipantRecord":
        return replace(self, completed_milestones=set(self.completed_milestones))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "participant_id": str(self.participant_id),
            "current_progress": self.current_progress,
            "previous_progress": self.previous_progress,
            "first_seen_ts": self.first_seen_ts,
            "last_seen_ts": self.last_seen_ts,
            "last_update_ts": self.last_update_ts,
            "completed_milestones": sorted(self.completed_milestones),
            "last_known_equipment_value": self.last_known_equipment_value,
            "total_loss_events": self.total_loss_events,
        }


@dataclass(frozen=True)
class HistoryEntry:
    """One significant score change."""

    participant_id: uuid.UUID
    score: float
    recorded_at: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "participant_id": str(self.participant_id),
            "score": self.score,
            "recorded_at": self.recorded_at,
        }
