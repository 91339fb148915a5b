"""Timer capabilities injected into the engine.

The engine never sleeps or spawns threads. Deferred work (image effect waits,
exit animations) is handed to a scheduler, which calls back on the same thread
that drives the engine. ``ManualScheduler`` keeps a simulated clock so tests
and the terminal player can decide when time passes; ``AsyncioScheduler``
delegates to a running event loop.
"""
from __future__ import annotations

import asyncio
import heapq
import itertools
import time
from typing import Callable, List, Protocol, Tuple

TimerCallback = Callable[[], None]


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Port used by the engine to defer work."""

    def call_later(self, delay_ms: float, callback: TimerCallback) -> TimerHandle:
        ...

    def now(self) -> float:
        ...


def wall_clock_ms() -> float:
    """Return the current wall-clock time in milliseconds."""
    return time.time() * 1000.0


class ManualTimer:
    """Handle returned by ManualScheduler.call_later."""

    __slots__ = ("due", "callback", "cancelled")

    def __init__(self, due: float, callback: TimerCallback) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Deterministic scheduler driven by an explicit simulated clock."""

    def __init__(self, start_ms: float = 0.0) -> None:
        self._now = float(start_ms)
        self._queue: List[Tuple[float, int, ManualTimer]] = []
        self._sequence = itertools.count()

    def now(self) -> float:
        """Return the simulated time in milliseconds."""
        return self._now

    def call_later(self, delay_ms: float, callback: TimerCallback) -> ManualTimer:
        """Queue ``callback`` to run once ``delay_ms`` of simulated time passes."""
        timer = ManualTimer(self._now + max(0.0, float(delay_ms)), callback)
        heapq.heappush(self._queue, (timer.due, next(self._sequence), timer))
        return timer

    @property
    def pending_count(self) -> int:
        """Return the number of timers that have not fired or been cancelled."""
        return sum(1 for _, _, timer in self._queue if not timer.cancelled)

    def advance(self, delay_ms: float) -> int:
        """Move the clock forward, firing due timers in order. Returns the count fired."""
        if delay_ms < 0:
            raise ValueError("Cannot move the simulated clock backwards.")
        target = self._now + delay_ms
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self._now = due
            timer.callback()
            fired += 1
        self._now = target
        return fired

    def flush(self, max_callbacks: int = 10_000) -> int:
        """Fire every queued timer, jumping the clock to each due time."""
        fired = 0
        while self._queue:
            if fired >= max_callbacks:
                raise RuntimeError("Timer queue did not drain; a callback keeps rescheduling itself.")
            due, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self._now = max(self._now, due)
            timer.callback()
            fired += 1
        return fired


class AsyncioScheduler:
    """Scheduler backed by an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay_ms: float, callback: TimerCallback) -> asyncio.TimerHandle:
        return self._get_loop().call_later(max(0.0, delay_ms) / 1000.0, callback)

    def now(self) -> float:
        return wall_clock_ms()
