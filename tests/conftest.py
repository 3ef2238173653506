"""
Shared fixtures for progress engine tests.

============================================================
PURPOSE
============================================================
Deterministic building blocks:

- MockClock + ManualScheduler: timers fire only on advance()
- RecordingSnapshotProvider: counts calls, can block or fail
- FlakyPersistenceStore: in-memory store with switchable failures

============================================================
"""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Dict, Optional

import pytest

from core.clock import MockClock
from core.scheduler import ManualScheduler
from participant_store.interfaces import SnapshotProvider, WealthProvider
from participant_store.memory import InMemoryPersistenceStore
from participant_store.models import ParticipantRecord
from progress_scoring.types import ExperienceSnapshot, ParticipantSnapshot
from update_orchestrator.config import ProgressSystemConfig
from update_orchestrator.service import ProgressService


START_TIME = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


# ============================================================
# TEST DOUBLES
# ============================================================

class RecordingSnapshotProvider(SnapshotProvider):
    """
    Snapshot provider that records how it is used.

    - blocker: when set to an Event, every call waits on it
    - error: when set, every call raises it
    - active / max_active: concurrent calls per participant
    """

    def __init__(self, snapshot: Optional[ParticipantSnapshot] = None):
        self.default = snapshot or ParticipantSnapshot()
        self.snapshots: Dict[uuid.UUID, ParticipantSnapshot] = {}
        self.calls: Dict[uuid.UUID, int] = {}
        self.active: Dict[uuid.UUID, int] = {}
        self.max_active: Dict[uuid.UUID, int] = {}
        self.blocker: Optional[asyncio.Event] = None
        self.entered: Optional[asyncio.Event] = None
        self.error: Optional[Exception] = None
        self.delay: float = 0.0

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())

    async def get_snapshot(self, participant_id: uuid.UUID) -> ParticipantSnapshot:
        self.calls[participant_id] = self.calls.get(participant_id, 0) + 1
        self.active[participant_id] = self.active.get(participant_id, 0) + 1
        self.max_active[participant_id] = max(
            self.max_active.get(participant_id, 0), self.active[participant_id]
        )
        try:
            if self.entered is not None:
                self.entered.set()
            if self.blocker is not None:
                await self.blocker.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            return self.snapshots.get(participant_id, self.default)
        finally:
            self.active[participant_id] -= 1


class FixedWealthProvider(WealthProvider):
    def __init__(self, balance: float):
        self.balance = balance

    async def get_balance(self, participant_id: uuid.UUID) -> float:
        return self.balance


class FlakyPersistenceStore(InMemoryPersistenceStore):
    """In-memory store whose load/save can be made to fail or block."""

    def __init__(self):
        super().__init__()
        self.fail_load = False
        self.fail_save = False
        self.save_blocker: Optional[asyncio.Event] = None
        self.save_entered: Optional[asyncio.Event] = None

    async def load(self, participant_id: uuid.UUID) -> Optional[ParticipantRecord]:
        if self.fail_load:
            raise ConnectionError("store offline")
        return await super().load(participant_id)

    async def save(self, record: ParticipantRecord) -> None:
        if self.save_entered is not None:
            self.save_entered.set()
        if self.save_blocker is not None:
            await self.save_blocker.wait()
        if self.fail_save:
            raise ConnectionError("store offline")
        await super().save(record)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def participant_id():
    return uuid.uuid4()


@pytest.fixture
def clock():
    return MockClock(START_TIME)


@pytest.fixture
def scheduler(clock):
    return ManualScheduler(clock)


@pytest.fixture
def store():
    return FlakyPersistenceStore()


@pytest.fixture
def level_30_snapshot():
    """Only experience contributes: level 30 of 100."""
    return ParticipantSnapshot(experience=ExperienceSnapshot(level=30))


@pytest.fixture
def snapshot_provider(level_30_snapshot):
    return RecordingSnapshotProvider(level_30_snapshot)


@pytest.fixture
def make_service(snapshot_provider, store, scheduler, clock):
    """Factory for a ProgressService on manual time."""

    def _make(config: Optional[ProgressSystemConfig] = None, **kwargs) -> ProgressService:
        return ProgressService(
            snapshot_provider=kwargs.pop("snapshot_provider", snapshot_provider),
            store=kwargs.pop("store", store),
            config=config or ProgressSystemConfig(),
            scheduler=scheduler,
            clock=clock,
            **kwargs,
        )

    return _make


@pytest.fixture
def service(make_service):
    return make_service()


async def wait_until(predicate, attempts: int = 100) -> bool:
    """Yield to the loop until predicate() holds."""
    for _ in range(attempts):
        if predicate():
            return True
        await asyncio.sleep(0)
    return predicate()


@pytest.fixture
def until():
    return wait_until
