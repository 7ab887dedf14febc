"""Step runner with the two failure policies used by the workflows.

ABORT_ON_ERROR: log, then raise StepFailedError so the rest of the job is
skipped (push: stop at the first structural failure).
CONTINUE_ON_ERROR: log, then return None so sibling steps still run
(pull: withdrawal is best-effort across independent systems).
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TypeVar

from loguru import logger

from exercise_sync.workers.errors import StepFailedError
from exercise_sync.workers.progress import StatusPublisher

R = TypeVar("R")


class StepPolicy(StrEnum):
    ABORT_ON_ERROR = "abort_on_error"
    CONTINUE_ON_ERROR = "continue_on_error"


@dataclass
class StepRunner:
    msel_id: str
    msel_name: str
    publisher: StatusPublisher
    policy: StepPolicy

    def run(self, label: str, action: Callable[[], R], *, status: str | None = None) -> R | None:
        """Publish the step's status (if any), then run it under this runner's policy.

        Args:
            label: Step name used in logs and in StepFailedError
            action: Zero-argument callable doing the work
            status: Text published to the exercise's status topic first

        Returns:
            The action's result, or None if it failed under CONTINUE_ON_ERROR

        Raises:
            StepFailedError: If the action fails under ABORT_ON_ERROR
        """
        if status is not None:
            self.publisher.publish(self.msel_id, status)

        try:
            return action()
        except Exception as e:
            logger.opt(exception=e).error(
                f"{label} {self.msel_name} ({self.msel_id})",
                step=label,
                policy=self.policy.value,
                error_type=type(e).__name__,
            )
            if self.policy is StepPolicy.ABORT_ON_ERROR:
                raise StepFailedError(label, self.msel_id) from e
            return None
