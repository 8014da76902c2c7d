"""Cancellable timers for the teaching core."""

from __future__ import annotations

import asyncio
import heapq
import itertools
import time
from collections.abc import Callable
from typing import Protocol

Callback = Callable[[], None]


class TimerHandle(Protocol):
    """A scheduled callback that can be cancelled before it fires."""

    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Clock plus one-shot timers."""

    def now_ms(self) -> int: ...

    def call_later(self, delay_ms: int, callback: Callback) -> TimerHandle: ...


class ManualTimer:
    """Timer owned by a `ManualScheduler`."""

    def __init__(self, due_ms: int, callback: Callback) -> None:
        self.due_ms = due_ms
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Virtual-time scheduler; time only moves when `advance` is called."""

    def __init__(self, start_ms: int = 0) -> None:
        self._now = start_ms
        self._queue: list[tuple[int, int, ManualTimer]] = []
        self._sequence = itertools.count()

    def now_ms(self) -> int:
        return self._now

    def call_later(self, delay_ms: int, callback: Callback) -> ManualTimer:
        timer = ManualTimer(self._now + max(0, delay_ms), callback)
        heapq.heappush(self._queue, (timer.due_ms, next(self._sequence), timer))
        return timer

    def advance(self, delta_ms: int) -> None:
        """Move the clock forward, firing due callbacks in due-time order."""
        target = self._now + max(0, delta_ms)
        while self._queue and self._queue[0][0] <= target:
            due_ms, _, timer = heapq.heappop(self._queue)
            self._now = max(self._now, due_ms)
            if not timer.cancelled:
                timer.callback()
        self._now = target

    def pending(self) -> int:
        """Return how many uncancelled timers are waiting."""
        return sum(1 for _, _, timer in self._queue if not timer.cancelled)


class AsyncioScheduler:
    """Scheduler backed by an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop if loop is not None else asyncio.get_running_loop()

    def now_ms(self) -> int:
        return int(self._loop.time() * 1000)

    def call_later(self, delay_ms: int, callback: Callback) -> asyncio.TimerHandle:
        return self._loop.call_later(max(0, delay_ms) / 1000.0, callback)


class WallClockScheduler(ManualScheduler):
    """Virtual scheduler that catches up with real time on `pump`."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._origin = clock()
        super().__init__(0)

    def pump(self) -> None:
        """Fire every callback that became due in real time."""
        elapsed = int((self._clock() - self._origin) * 1000)
        self.advance(elapsed - self.now_ms())
