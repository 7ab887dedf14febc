"""In-process blocking work queues.

add() never blocks. take() blocks the calling thread until a job arrives or
the cancel event is set. FIFO, unbounded, no peek and no de-duplication:
callers keep the same exercise from being enqueued twice.
"""

from __future__ import annotations

import queue
import threading
from typing import Generic, TypeVar

from loguru import logger

from exercise_sync.workers.errors import QueueCancelledError
from exercise_sync.workers.jobs import AddApplicationJob, IntegrationJob, JoinJob, LaunchJob

T = TypeVar("T")

DEFAULT_POLL_INTERVAL_SECONDS = 1.0


class WorkQueue(Generic[T]):
    def __init__(self, name: str, *, poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS):
        self.name = name
        self._poll_interval = poll_interval
        self._items: queue.Queue[T] = queue.Queue()

    def add(self, item: T) -> None:
        self._items.put_nowait(item)
        logger.debug(f"[QUEUE] Enqueued job on '{self.name}'", job=repr(item), depth=self._items.qsize())

    def take(self, cancel: threading.Event | None = None) -> T:
        """Remove and return the oldest job, blocking until one is available.

        Args:
            cancel: Event that aborts the wait when set. The event is checked
                every poll interval, so cancellation is noticed within one
                interval.

        Raises:
            QueueCancelledError: If cancel is set before a job arrives
        """
        if cancel is None:
            return self._items.get()

        while not cancel.is_set():
            try:
                return self._items.get(timeout=self._poll_interval)
            except queue.Empty:
                continue
        raise QueueCancelledError(self.name)

    def __len__(self) -> int:
        return self._items.qsize()


class IntegrationQueue(WorkQueue[IntegrationJob]):
    def __init__(self, *, poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS):
        super().__init__("integration", poll_interval=poll_interval)


class JoinQueue(WorkQueue[JoinJob]):
    def __init__(self, *, poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS):
        super().__init__("join", poll_interval=poll_interval)


class LaunchQueue(WorkQueue[LaunchJob]):
    def __init__(self, *, poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS):
        super().__init__("launch", poll_interval=poll_interval)


class AddApplicationQueue(WorkQueue[AddApplicationJob]):
    def __init__(self, *, poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS):
        super().__init__("add-application", poll_interval=poll_interval)
