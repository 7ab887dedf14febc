"""Launch: push an exercise into a view id chosen by the caller.

The job is turned into an IntegrationJob and run inline on the launch
worker, so the exercise's in-flight marker is released by the
integration workflow.
"""

from loguru import logger

from exercise_sync.db.models import Msel
from exercise_sync.db.session import get_session
from exercise_sync.workers.context import WorkerContext
from exercise_sync.workers.integration import IntegrationWorkflow
from exercise_sync.workers.jobs import IntegrationJob, LaunchJob


class LaunchWorkflow:
    def __init__(self, context: WorkerContext, integration: IntegrationWorkflow | None = None):
        self._context = context
        self._integration = integration or IntegrationWorkflow(context)

    def __call__(self, job: LaunchJob) -> None:
        self.run(job)

    def run(self, job: LaunchJob) -> None:
        with get_session(self._context.session_factory) as session:
            msel = session.get(Msel, job.msel_id)
            if msel is None:
                logger.warning(f"[LAUNCH] Msel not found, abandoning launch: msel_id={job.msel_id}")
                self._context.in_flight.release(job.msel_id)
                return
            if msel.is_pushed:
                # A launch never turns into a pull
                logger.warning(f"[LAUNCH] Msel {msel.name} ({msel.id}) is already pushed, ignoring launch")
                self._context.in_flight.release(job.msel_id)
                return

        logger.info(f"[LAUNCH] Launching msel_id={job.msel_id} into view {job.player_view_id}")
        self._integration.run(IntegrationJob(msel_id=job.msel_id, player_view_id=job.player_view_id))
