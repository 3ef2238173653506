"""
Core Module - Scheduler.

============================================================
RESPONSIBILITY
============================================================
Abstracts "call this after D seconds" for debounce timers and
penalty decay steps.

- LoopScheduler: production, backed by the asyncio event loop
- ManualScheduler: tests/replay, fires callbacks when its
  MockClock is advanced

============================================================
DESIGN PRINCIPLES
============================================================
- Callbacks are plain synchronous callables; async work is
  spawned by the callback itself
- Every scheduled call returns a cancellable handle
- No tick granularity: callbacks fire at their due time

============================================================
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, List, Optional
import asyncio
import heapq
import itertools
import logging

from core.clock import MockClock


logger = logging.getLogger(__name__)


# ============================================================
# HANDLES
# ============================================================

class ScheduledHandle(ABC):
    """Cancellable reference to a scheduled callback."""

    @abstractmethod
    def cancel(self) -> None:
        pass

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        pass


class _LoopHandle(ScheduledHandle):
    def __init__(self, handle: asyncio.TimerHandle):
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()

    @property
    def cancelled(self) -> bool:
        return self._handle.cancelled()


@dataclass(order=True)
class _ManualEntry:
    due: float
    seq: int
    callback: Callable[[], None] = field(compare=False)
    is_cancelled: bool = field(default=False, compare=False)


class _ManualHandle(ScheduledHandle):
    def __init__(self, entry: _ManualEntry):
        self._entry = entry

    def cancel(self) -> None:
        self._entry.is_cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._entry.is_cancelled

    @property
    def due(self) -> float:
        return self._entry.due


# ============================================================
# SCHEDULER PROTOCOL
# ============================================================

class Scheduler(ABC):
    """Abstract delayed-call scheduler."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledHandle:
        """
        Schedule callback to run after delay seconds.

        Args:
            delay: Seconds to wait (negative values are treated as 0)
            callback: Zero-argument callable

        Returns:
            Handle that can cancel the call
        """
        pass


# ============================================================
# LOOP SCHEDULER (PRODUCTION)
# ============================================================

class LoopScheduler(Scheduler):
    """Scheduler backed by asyncio's loop.call_later."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledHandle:
        handle = self._get_loop().call_later(max(0.0, delay), callback)
        return _LoopHandle(handle)


# ============================================================
# MANUAL SCHEDULER (TESTING)
# ============================================================

class ManualScheduler(Scheduler):
    """
    Deterministic scheduler driven by a MockClock.

    Nothing fires until advance() is called. Callbacks scheduled
    by other callbacks during an advance() fire in the same pass
    if they fall due before the target time.
    """

    def __init__(self, clock: Optional[MockClock] = None):
        self.clock = clock or MockClock()
        self._queue: List[_ManualEntry] = []
        self._seq = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledHandle:
        entry = _ManualEntry(
            due=self.clock.timestamp() + max(0.0, delay),
            seq=next(self._seq),
            callback=callback,
        )
        heapq.heappush(self._queue, entry)
        return _ManualHandle(entry)

    @property
    def pending_count(self) -> int:
        """Number of scheduled, not cancelled callbacks."""
        return sum(1 for e in self._queue if not e.is_cancelled)

    def next_due(self) -> Optional[float]:
        """Timestamp of the earliest live callback, if any."""
        live = [e.due for e in self._queue if not e.is_cancelled]
        return min(live) if live else None

    def advance(self, seconds: float) -> int:
        """
        Advance the clock and fire every callback that falls due.

        Callbacks fire in due-time order with the clock set to
        their due time.

        Returns:
            Number of callbacks fired
        """
        target = self.clock.timestamp() + seconds
        fired = 0

        while self._queue and self._queue[0].due <= target:
            entry = heapq.heappop(self._queue)
            if entry.is_cancelled:
                continue
            if entry.due > self.clock.timestamp():
                self.clock.advance(entry.due - self.clock.timestamp())
            entry.is_cancelled = True
            fired += 1
            try:
                entry.callback()
            except Exception as e:
                logger.error(f"Scheduled callback failed: {e}", exc_info=True)

        remaining = target - self.clock.timestamp()
        if remaining > 0:
            self.clock.advance(remaining)

        return fired


__all__ = [
    "ScheduledHandle",
    "Scheduler",
    "LoopScheduler",
    "ManualScheduler",
]
