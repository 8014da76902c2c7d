"""Background write dispatcher in front of the progress store."""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections import deque
from collections.abc import Callable
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass

from .models import LearningProfile
from .progress import ProgressStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingWrite:
    """One queued write, applied in arrival order."""

    description: str
    apply: Callable[[], None]


class PersistenceDispatcher:
    """Queue progress writes on a single worker so the event path never waits.

    A write that fails stays at the head of the queue and is retried the next
    time anything is saved or `flush` is called.
    """

    def __init__(self, store: ProgressStore, profile_id: int, executor: Executor | None = None) -> None:
        self._store = store
        self._profile_id = profile_id
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="vimmentor-persist")
        self._pending: deque[PendingWrite] = deque()
        self._lock = threading.Lock()
        self.failures = 0

    @property
    def profile_id(self) -> int:
        return self._profile_id

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def load(self, default: LearningProfile | None = None) -> LearningProfile:
        """Read the stored profile synchronously; used once at startup."""
        try:
            return self._store.load_profile(self._profile_id, default)
        except sqlite3.Error as exc:
            logger.warning("Failed to load learning profile %s: %s", self._profile_id, exc)
            return default or LearningProfile()

    def save(self, profile: LearningProfile) -> Future[None]:
        return self._enqueue(
            PendingWrite("save profile", lambda: self._store.save_profile(self._profile_id, profile)),
        )

    def record_outcome(self, command: str, correct: bool) -> Future[None]:
        return self._enqueue(
            PendingWrite(
                f"record outcome for {command}",
                lambda: self._store.record_outcome(self._profile_id, command, correct),
            ),
        )

    def record_session(self) -> Future[None]:
        return self._enqueue(PendingWrite("record session", lambda: self._store.record_session(self._profile_id)))

    def flush(self, timeout: float | None = None) -> bool:
        """Retry everything pending and wait; return whether the queue drained."""
        self._executor.submit(self._drain).result(timeout=timeout)
        return self.pending_count == 0

    def close(self) -> None:
        """Flush pending writes and stop the worker."""
        try:
            self.flush()
        finally:
            if self._owns_executor:
                self._executor.shutdown(wait=True)

    def _enqueue(self, write: PendingWrite) -> Future[None]:
        with self._lock:
            self._pending.append(write)
        return self._executor.submit(self._drain)

    def _drain(self) -> None:
        while True:
            with self._lock:
                if not self._pending:
                    return
                write = self._pending[0]
            try:
                write.apply()
            except (sqlite3.Error, OSError) as exc:
                self.failures += 1
                logger.warning("Failed to %s, will retry: %s", write.description, exc)
                return
            with self._lock:
                self._pending.popleft()
