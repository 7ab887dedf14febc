from loguru import logger

from exercise_sync.integrations.player import sync as player_sync
from exercise_sync.workers.context import WorkerContext
from exercise_sync.workers.jobs import AddApplicationJob


class AddApplicationWorkflow:
    def __init__(self, context: WorkerContext):
        self._context = context

    def __call__(self, job: AddApplicationJob) -> None:
        self.run(job)

    def run(self, job: AddApplicationJob) -> None:
        name = job.application.get("name")
        clients = self._context.clients
        try:
            token = clients.get_token()
            with clients.player(token) as player:
                player_sync.add_application(job.application, job.player_team_id, job.display_order, player)
        except Exception as e:
            logger.opt(exception=e).error(f"Adding application {name} to team {job.player_team_id}")
            return

        logger.info(f"[ADD_APPLICATION] Added application {name} to Player team {job.player_team_id}")
