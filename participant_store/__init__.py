"""
Participant Store - Package.

Participant records, their cache, and the collaborator
interfaces the engine talks to.
"""

from .cache import ParticipantCache
from .config import CacheConfig
from .interfaces import ChangeNotifier, PersistenceStore, SnapshotProvider, WealthProvider
from .memory import InMemoryPersistenceStore
from .models import HistoryEntry, ParticipantRecord


__all__ = [
    "ParticipantCache",
    "CacheConfig",
    "ChangeNotifier",
    "PersistenceStore",
    "SnapshotProvider",
    "WealthProvider",
    "InMemoryPersistenceStore",
    "HistoryEntry",
    "ParticipantRecord",
]
