"""
Participant Store - Collaborator Interfaces.

============================================================
PURPOSE
============================================================
Contracts for everything the engine pulls from or pushes to
the host process.

- SnapshotProvider: reads live participant state
- WealthProvider: optional balance lookup
- PersistenceStore: durable records and history
- ChangeNotifier: significant score change events

All methods are coroutines. Implementations wrapping blocking
host APIs should offload them (asyncio.to_thread).

============================================================
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple
import uuid

from progress_scoring.types import ParticipantSnapshot, ProgressResult

from .models import HistoryEntry, ParticipantRecord


class SnapshotProvider(ABC):
    """Reads the host's current view of a participant."""

    @abstractmethod
    async def get_snapshot(self, participant_id: uuid.UUID) -> ParticipantSnapshot:
        """
        Pull the current snapshot.

        Raises:
            SnapshotUnavailableError: participant not reachable
        """
        pass


class WealthProvider(ABC):
    """Optional balance source. Absent provider disables wealth."""

    @abstractmethod
    async def get_balance(self, participant_id: uuid.UUID) -> float:
        pass


class PersistenceStore(ABC):
    """Durable storage for participant records and score history."""

    @abstractmethod
    async def load(self, participant_id: uuid.UUID) -> Optional[ParticipantRecord]:
        """Return the stored record, or None if never saved."""
        pass

    @abstractmethod
    async def save(self, record: ParticipantRecord) -> None:
        pass

    @abstractmethod
    async def append_history(self, participant_id: uuid.UUID, score: float, ts: float) -> None:
        pass

    @abstractmethod
    async def top_n(self, limit: int) -> List[Tuple[uuid.UUID, float]]:
        """Highest current scores, best first."""
        pass

    @abstractmethod
    async def get_history(self, participant_id: uuid.UUID, limit: int = 10) -> List[HistoryEntry]:
        """Most recent history entries, newest first."""
        pass

    @abstractmethod
    async def cleanup_history(self, older_than_ts: float) -> int:
        """Delete history entries recorded before older_than_ts. Returns count."""
        pass


class ChangeNotifier(ABC):
    """Receives significant score changes. Fire-and-forget."""

    @abstractmethod
    async def emit(
        self,
        participant_id: uuid.UUID,
        old_score: float,
        new_score: float,
        result: Optional[ProgressResult],
    ) -> None:
        pass
