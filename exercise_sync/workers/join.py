from loguru import logger

from exercise_sync.integrations.player import sync as player_sync
from exercise_sync.workers.context import WorkerContext
from exercise_sync.workers.jobs import JoinJob


class JoinWorkflow:
    """Adds a user to a Player team of an exercise that is already live."""

    def __init__(self, context: WorkerContext):
        self._context = context

    def __call__(self, job: JoinJob) -> None:
        self.run(job)

    def run(self, job: JoinJob) -> None:
        clients = self._context.clients
        try:
            token = clients.get_token()
            with clients.player(token) as player:
                player_sync.add_user_to_team(job.user_id, job.player_team_id, player)
        except Exception as e:
            logger.opt(exception=e).error(
                f"Joining user {job.user_id} to team {job.player_team_id}",
                player_view_id=job.player_view_id,
            )
            return

        logger.info(
            f"[JOIN] Added user {job.user_id} to Player team {job.player_team_id}",
            player_view_id=job.player_view_id,
        )
