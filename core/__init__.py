"""
Core Module Package.

This package contains the infrastructure components that all
other modules depend on.

Components:
- clock: Unified time abstraction
- scheduler: Cancellable delayed calls (loop-backed or manual)
- exceptions: Custom exception hierarchy
- constants: Engine-wide defaults
"""

from core.clock import ClockProtocol, MockClock, SystemClock
from core.scheduler import LoopScheduler, ManualScheduler, ScheduledHandle, Scheduler
from core.exceptions import (
    ConfigurationError,
    InvalidConfigError,
    InvariantViolationError,
    MissingConfigError,
    PersistenceError,
    ProgressEngineError,
    SnapshotUnavailableError,
    UnknownParticipantError,
)


__all__ = [
    "ClockProtocol",
    "MockClock",
    "SystemClock",
    "LoopScheduler",
    "ManualScheduler",
    "ScheduledHandle",
    "Scheduler",
    "ConfigurationError",
    "InvalidConfigError",
    "InvariantViolationError",
    "MissingConfigError",
    "PersistenceError",
    "ProgressEngineError",
    "SnapshotUnavailableError",
    "UnknownParticipantError",
]
