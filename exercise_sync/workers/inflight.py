"""Per-exercise "job in flight" markers.

An exercise is marked when a push, pull, resume or launch is accepted and
unmarked by the worker once the job ends, whatever its outcome. A second
request for a marked exercise is rejected before it reaches a queue.
"""

import threading

from loguru import logger


class InFlightRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._msel_ids: set[str] = set()

    def acquire(self, msel_id: str) -> bool:
        """Mark the exercise. Returns False if it already has a job in flight."""
        with self._lock:
            if msel_id in self._msel_ids:
                return False
            self._msel_ids.add(msel_id)
            return True

    def release(self, msel_id: str) -> None:
        with self._lock:
            self._msel_ids.discard(msel_id)
        logger.debug(f"[INFLIGHT] Released msel_id={msel_id}")

    def __contains__(self, msel_id: str) -> bool:
        with self._lock:
            return msel_id in self._msel_ids
