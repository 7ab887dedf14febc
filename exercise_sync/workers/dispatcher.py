"""Background dispatcher: one supervisor thread per queue, bounded workers.

The loop reserves a worker slot, blocks on the queue, and hands the job to
the pool so dequeuing continues at once. When every slot is busy the loop
stops taking jobs and they wait in the queue.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Generic, TypeVar

from loguru import logger

from exercise_sync.workers.errors import QueueCancelledError
from exercise_sync.workers.queue import WorkQueue

T = TypeVar("T")

SLOT_WAIT_SECONDS = 1.0


class BackgroundDispatcher(Generic[T]):
    def __init__(
        self,
        name: str,
        queue: WorkQueue[T],
        handler: Callable[[T], None],
        *,
        max_workers: int = 8,
    ):
        self.name = name
        self._queue = queue
        self._handler = handler
        self._max_workers = max_workers
        self._slots = threading.BoundedSemaphore(max_workers)
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._executor: ThreadPoolExecutor | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._executor = ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix=f"{self.name}-worker")
        self._thread = threading.Thread(target=self._run, name=f"{self.name}-dispatcher", daemon=True)
        self._thread.start()
        logger.info(f"[DISPATCHER] Started '{self.name}' dispatcher (max_workers={self._max_workers})")

    def stop(self, timeout: float | None = None) -> None:
        """Stop taking jobs. In-flight workers are not waited for."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
        if self._executor is not None:
            self._executor.shutdown(wait=False)
        logger.info(f"[DISPATCHER] Stopped '{self.name}' dispatcher")

    def _run(self) -> None:
        while not self._stop.is_set():
            if not self._slots.acquire(timeout=SLOT_WAIT_SECONDS):
                continue

            try:
                logger.debug(f"[DISPATCHER] '{self.name}' is ready to process jobs")
                job = self._queue.take(self._stop)
            except QueueCancelledError:
                self._slots.release()
                break
            except Exception as e:
                self._slots.release()
                logger.opt(exception=e).error(f"[DISPATCHER] Exception encountered in '{self.name}' run loop")
                continue

            try:
                self._executor.submit(self._process, job)
            except Exception as e:
                self._slots.release()
                logger.opt(exception=e).error(f"[DISPATCHER] Could not hand job to a '{self.name}' worker", job=repr(job))

    def _process(self, job: T) -> None:
        try:
            self._handler(job)
        except Exception as e:
            logger.opt(exception=e).error(f"[DISPATCHER] Unhandled error in '{self.name}' worker", job=repr(job))
        finally:
            self._slots.release()
