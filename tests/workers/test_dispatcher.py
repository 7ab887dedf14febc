import threading
import time

from exercise_sync.workers.dispatcher import BackgroundDispatcher
from exercise_sync.workers.queue import WorkQueue


def test_dispatcher_keeps_running_after_a_failing_job():
    queue = WorkQueue[str]("test", poll_interval=0.01)
    processed = []
    done = threading.Event()

    def handler(job: str) -> None:
        if job == "bad":
            raise RuntimeError("boom")
        processed.append(job)
        done.set()

    dispatcher = BackgroundDispatcher("test", queue, handler, max_workers=1)
    dispatcher.start()
    try:
        queue.add("bad")
        queue.add("good")
        assert done.wait(timeout=5)
    finally:
        dispatcher.stop(timeout=2)

    assert processed == ["good"]


def test_dispatcher_stops_dequeuing_when_all_workers_are_busy():
    queue = WorkQueue[str]("test", poll_interval=0.01)
    started = threading.Event()
    release = threading.Event()
    finished = []

    def handler(job: str) -> None:
        started.set()
        release.wait(timeout=5)
        finished.append(job)

    dispatcher = BackgroundDispatcher("test", queue, handler, max_workers=1)
    dispatcher.start()
    try:
        queue.add("first")
        queue.add("second")
        assert started.wait(timeout=5)
        time.sleep(0.2)
        assert len(queue) == 1

        release.set()
        deadline = time.monotonic() + 5
        while len(finished) < 2 and time.monotonic() < deadline:
            time.sleep(0.01)
    finally:
        dispatcher.stop(timeout=2)

    assert finished == ["first", "second"]


def test_stop_ends_the_dispatcher_loop():
    queue = WorkQueue[str]("test", poll_interval=0.01)
    dispatcher = BackgroundDispatcher("test", queue, lambda job: None, max_workers=2)

    dispatcher.start()
    assert dispatcher.is_running

    dispatcher.stop(timeout=2)
    assert not dispatcher.is_running


class FlakyQueue(WorkQueue[str]):
    """Queue whose first take fails before any job is dequeued."""

    def __init__(self):
        super().__init__("flaky", poll_interval=0.01)
        self.failed = False

    def take(self, cancel=None):
        if not self.failed:
            self.failed = True
            raise RuntimeError("queue unavailable")
        return super().take(cancel)


def test_dispatcher_survives_a_failing_take():
    queue = FlakyQueue()
    handled = []
    done = threading.Event()

    def handler(job: str) -> None:
        handled.append(job)
        done.set()

    dispatcher = BackgroundDispatcher("test", queue, handler, max_workers=1)
    queue.add("after-error")
    dispatcher.start()
    try:
        assert done.wait(timeout=5)
    finally:
        dispatcher.stop(timeout=2)

    assert queue.failed
    assert handled == ["after-error"]
