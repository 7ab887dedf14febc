"""Error types for the background workers.

Queue cancellation is not a failure; it only ends a dispatcher's wait.
"""


class QueueCancelledError(Exception):
    """Raised by WorkQueue.take() when the cancel event is set while waiting."""

    def __init__(self, queue_name: str):
        self.queue_name = queue_name
        super().__init__(f"Wait on queue '{queue_name}' was cancelled")


class StepFailedError(Exception):
    """Raised when a workflow step fails under the abort-on-error policy.

    The original exception is chained as __cause__.
    """

    def __init__(self, step: str, msel_id: str, message: str | None = None):
        self.step = step
        self.msel_id = msel_id
        self.message = message or f"Step '{step}' failed for msel {msel_id}"
        super().__init__(self.message)
