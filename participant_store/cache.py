"""
Participant Store - Cache.

============================================================
RESPONSIBILITY
============================================================
In-memory map of participant id -> ParticipantRecord, backed by
a PersistenceStore.

- Loads on miss; a failed load yields a default record
- Flushes dirty records; a failed save keeps the record dirty
- Evicts idle records after flushing them

============================================================
LOCKING
============================================================
The cache does not lock. Callers mutate a participant's record
only while holding that participant's gate (see
update_orchestrator.orchestrator.UpdateOrchestrator.gate).

============================================================
"""

from typing import Dict, Iterator, List, Optional
import logging
import uuid

from core.clock import ClockProtocol, SystemClock
from core.constants import DEFAULT_MIN_SCORE
from core.exceptions import PersistenceError

from .config import CacheConfig
from .interfaces import PersistenceStore
from .models import ParticipantRecord


logger = logging.getLogger(__name__)


class ParticipantCache:
    """Record cache with load-on-miss and flush-on-evict."""

    def __init__(
        self,
        store: PersistenceStore,
        config: Optional[CacheConfig] = None,
        clock: Optional[ClockProtocol] = None,
        min_score: float = DEFAULT_MIN_SCORE,
    ):
        self.store = store
        self.config = config or CacheConfig()
        self._clock = clock or SystemClock()
        self._min_score = min_score
        self._records: Dict[uuid.UUID, ParticipantRecord] = {}

    # ----------------------------------------------------------
    # Access
    # ----------------------------------------------------------

    def get(self, participant_id: uuid.UUID) -> Optional[ParticipantRecord]:
        """Cached record or None. Never touches persistence."""
        record = self._records.get(participant_id)
        if record is not None:
            record.last_access_ts = self._clock.timestamp()
        return record

    async def get_or_load(self, participant_id: uuid.UUID) -> ParticipantRecord:
        """
        Return the cached record, loading it on a miss.

        A persistence failure falls back to a fresh default record
        so scoring can proceed.
        """
        record = self.get(participant_id)
        if record is not None:
            return record

        now = self._clock.timestamp()
        try:
            record = await self.store.load(participant_id)
        except Exception as e:
            error = e if isinstance(e, PersistenceError) else PersistenceError(
                "Failed to load participant record",
                operation="load",
                participant_id=participant_id,
                cause=e,
            )
            logger.warning(f"{error.to_log_format()} | falling back to default record")
            record = None

        if record is None:
            record = ParticipantRecord.new(participant_id, now, self._min_score)

        record.last_access_ts = now
        self._records[participant_id] = record
        return record

    def put(self, record: ParticipantRecord) -> None:
        record.last_access_ts = self._clock.timestamp()
        self._records[record.participant_id] = record

    def __contains__(self, participant_id: uuid.UUID) -> bool:
        return participant_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ParticipantRecord]:
        return iter(list(self._records.values()))

    def participant_ids(self) -> List[uuid.UUID]:
        return list(self._records)

    def dirty_ids(self) -> List[uuid.UUID]:
        return [pid for pid, r in self._records.items() if r.dirty]

    def idle_ids(self) -> List[uuid.UUID]:
        """Participants idle for longer than the effective TTL."""
        now = self._clock.timestamp()
        ttl = self.config.effective_ttl
        return [
            pid for pid, r in self._records.items()
            if now - r.last_access_ts >= ttl
        ]

    # ----------------------------------------------------------
    # Persistence
    # ----------------------------------------------------------

    async def flush(self, participant_id: uuid.UUID) -> bool:
        """
        Save the record if dirty.

        Returns:
            True if the record is clean afterwards
        """
        record = self._records.get(participant_id)
        if record is None or not record.dirty:
            return True

        try:
            await self.store.save(record)
        except Exception as e:
            logger.error(
                f"Failed to save participant record | participant={participant_id} | "
                f"error={e} | will retry",
            )
            return False

        record.dirty = False
        return True

    def evict(self, participant_id: uuid.UUID) -> Optional[ParticipantRecord]:
        return self._records.pop(participant_id, None)

    async def unload(self, participant_id: uuid.UUID) -> bool:
        """
        Flush then evict.

        A record whose final save fails stays cached so the next
        autosave can retry.

        Returns:
            True if the record was evicted
        """
        if not await self.flush(participant_id):
            return False
        self.evict(participant_id)
        return True
