"""
Participant Store - In-Memory Persistence.

PersistenceStore kept entirely in process memory. Used by tests
and by hosts that embed the engine without a database.
"""

from typing import Dict, List, Optional, Tuple
import uuid

from .interfaces import PersistenceStore
from .models import HistoryEntry, ParticipantRecord


class InMemoryPersistenceStore(PersistenceStore):
    """Dictionary-backed store. Stores copies, never live records."""

    def __init__(self):
        self._records: Dict[uuid.UUID, ParticipantRecord] = {}
        self._history: Dict[uuid.UUID, List[HistoryEntry]] = {}
        self.save_count = 0

    async def load(self, participant_id: uuid.UUID) -> Optional[ParticipantRecord]:
        record = self._records.get(participant_id)
        return record.copy() if record else None

    async def save(self, record: ParticipantRecord) -> None:
        stored = record.copy()
        stored.dirty = False
        stored.last_result = None
        self._records[record.participant_id] = stored
        self.save_count += 1

    async def append_history(self, participant_id: uuid.UUID, score: float, ts: float) -> None:
        self._history.setdefault(participant_id, []).append(
            HistoryEntry(participant_id=participant_id, score=score, recorded_at=ts)
        )

    async def top_n(self, limit: int) -> List[Tuple[uuid.UUID, float]]:
        ranked = sorted(
            self._records.values(),
            key=lambda r: r.current_progress,
            reverse=True,
        )
        return [(r.participant_id, r.current_progress) for r in ranked[:limit]]

    async def get_history(self, participant_id: uuid.UUID, limit: int = 10) -> List[HistoryEntry]:
        entries = self._history.get(participant_id, [])
        return sorted(entries, key=lambda e: e.recorded_at, reverse=True)[:limit]

    async def cleanup_history(self, older_than_ts: float) -> int:
        removed = 0
        for participant_id, entries in self._history.items():
            kept = [e for e in entries if e.recorded_at >= older_than_ts]
            removed += len(entries) - len(kept)
            self._history[participant_id] = kept
        return removed

    def stored(self, participant_id: uuid.UUID) -> Optional[ParticipantRecord]:
        """Direct access for inspection."""
        return self._records.get(participant_id)
