from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any, Protocol

from .session_store import SessionStore

"""Debounced session autosave.

Each schedule() replaces the pending snapshot and restarts the delay, so a
burst of edits produces a single write. The timer lives behind the Scheduler
port; tests drive it by hand.
"""

__all__ = [
    "Scheduler",
    "ThreadingScheduler",
    "DebouncedSaver",
]

logger = logging.getLogger(__name__)


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> Any: ...

    def cancel(self, handle: Any) -> None: ...


class ThreadingScheduler:
    def call_later(self, delay: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer

    def cancel(self, handle: threading.Timer) -> None:
        handle.cancel()


class DebouncedSaver:
    def __init__(self, store: SessionStore, scheduler: Scheduler, delay: float = 1.0) -> None:
        self.store = store
        self.scheduler = scheduler
        self.delay = delay
        self._lock = threading.Lock()
        self._pending: dict[str, Any] | None = None
        self._handle: Any = None

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def schedule(self, snapshot: dict[str, Any]) -> None:
        with self._lock:
            self._pending = snapshot
            if self._handle is not None:
                self.scheduler.cancel(self._handle)
            self._handle = self.scheduler.call_later(self.delay, self.flush)

    def flush(self) -> None:
        """Write the pending snapshot now, if any."""
        with self._lock:
            snapshot, self._pending = self._pending, None
            if self._handle is not None:
                self.scheduler.cancel(self._handle)
                self._handle = None
        if snapshot is not None:
            logger.debug("autosave step=%s", snapshot.get("step"))
            self.store.save(snapshot)

    def cancel(self) -> None:
        """Drop the pending snapshot without writing it."""
        with self._lock:
            self._pending = None
            if self._handle is not None:
                self.scheduler.cancel(self._handle)
                self._handle = None
