"""Time-windowed counter of consecutive identical operations."""

from __future__ import annotations

from .config import REPEAT_WINDOW_MS
from .scheduler import Scheduler, TimerHandle


class RepeatTracker:
    """Count how many times the same operation arrived in quick succession."""

    def __init__(self, scheduler: Scheduler, window_ms: int = REPEAT_WINDOW_MS) -> None:
        self._scheduler = scheduler
        self.window_ms = window_ms
        self._last_operation: str | None = None
        self._last_ms: int | None = None
        self._count = 0
        self._decay: TimerHandle | None = None
        self._decay_token = 0

    @property
    def count(self) -> int:
        return self._count

    def track(self, operation_type: str, now_ms: int | None = None) -> int:
        """Record one operation and return the live repeat count."""
        now = self._scheduler.now_ms() if now_ms is None else now_ms
        if (
            self._last_operation == operation_type
            and self._last_ms is not None
            and now - self._last_ms < self.window_ms
        ):
            self._count += 1
        else:
            self._count = 1
        self._last_operation = operation_type
        self._last_ms = now
        self._schedule_decay(now)
        return self._count

    def reset(self) -> None:
        """Forget all repeat state."""
        self._cancel_decay()
        self._count = 0
        self._last_operation = None
        self._last_ms = None

    def _schedule_decay(self, now: int) -> None:
        self._cancel_decay()
        self._decay_token += 1
        token = self._decay_token
        delay = max(0, now + self.window_ms - self._scheduler.now_ms())
        self._decay = self._scheduler.call_later(delay, lambda: self._on_decay(token))

    def _cancel_decay(self) -> None:
        if self._decay is not None:
            self._decay.cancel()
            self._decay = None

    def _on_decay(self, token: int) -> None:
        if token != self._decay_token:
            return
        self._decay = None
        self._count = 0
        self._last_operation = None
        self._last_ms = None
