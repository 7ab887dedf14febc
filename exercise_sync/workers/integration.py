"""Integration workflow: push an exercise to Player, Gallery and CITE, or pull it back.

A job is a push when the exercise has no external reference yet (or the
job asks to resume a failed push) and a pull otherwise.

Push order:
    token -> Player view -> Player teams -> status=deployed
    -> [Gallery: collection, exhibit, teams, cards, articles]
    -> [CITE: evaluation, moves, teams, roles, actions, advance]
    -> Player applications -> completion message

Push steps run under ABORT_ON_ERROR. Nothing already created upstream is
rolled back; the references committed so far stay on the exercise. Each step
is recorded in msel.integration_started_step before it runs and in
msel.integration_step once it completes. A resumed push skips completed
steps and re-runs the interrupted one only if it is repeatable.

Pull steps (CITE, Gallery, Player) run under CONTINUE_ON_ERROR, then the
exercise's references are cleared and its status set to the job's
final_status.
"""

from __future__ import annotations

from collections.abc import Callable
from contextlib import ExitStack
from dataclasses import dataclass

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from exercise_sync.db.models import Card, IntegrationStep, ItemStatus, Msel, ScenarioEvent, Team
from exercise_sync.db.session import get_session
from exercise_sync.integrations.cite import sync as cite_sync
from exercise_sync.integrations.gallery import sync as gallery_sync
from exercise_sync.integrations.identity import TokenResponse
from exercise_sync.integrations.player import sync as player_sync
from exercise_sync.workers.context import WorkerContext
from exercise_sync.workers.errors import StepFailedError
from exercise_sync.workers.jobs import IntegrationJob
from exercise_sync.workers.steps import StepPolicy, StepRunner

PUSHING = "Pushing Integrations"
PULLING = "Pulling Integrations"

TOKEN_STEP = "Acquire access token"

PUSH_STATUS = {
    IntegrationStep.PLAYER_VIEW: "Pushing View to Player",
    IntegrationStep.PLAYER_TEAMS: "Pushing Teams to Player",
    IntegrationStep.GALLERY_COLLECTION: "Pushing Collection to Gallery",
    IntegrationStep.GALLERY_EXHIBIT: "Pushing Exhibit to Gallery",
    IntegrationStep.GALLERY_TEAMS: "Pushing Teams to Gallery",
    IntegrationStep.GALLERY_CARDS: "Pushing Cards to Gallery",
    IntegrationStep.GALLERY_ARTICLES: "Pushing Articles to Gallery",
    IntegrationStep.CITE_EVALUATION: "Pushing Evaluation to CITE",
    IntegrationStep.CITE_MOVES: "Pushing Moves to CITE",
    IntegrationStep.CITE_TEAMS: "Pushing Teams to CITE",
    IntegrationStep.CITE_ROLES: "Pushing Roles to CITE",
    IntegrationStep.CITE_ACTIONS: "Pushing Actions to CITE",
    IntegrationStep.CITE_ADVANCE: "Advancing Evaluation in CITE",
    IntegrationStep.PLAYER_APPLICATIONS: "Pushing Applications to Player",
}

GALLERY_STEPS = (
    (IntegrationStep.GALLERY_COLLECTION, gallery_sync.create_collection),
    (IntegrationStep.GALLERY_EXHIBIT, gallery_sync.create_exhibit),
    (IntegrationStep.GALLERY_TEAMS, gallery_sync.create_teams),
    (IntegrationStep.GALLERY_CARDS, gallery_sync.create_cards),
    (IntegrationStep.GALLERY_ARTICLES, gallery_sync.create_articles),
)

CITE_STEPS = (
    (IntegrationStep.CITE_EVALUATION, cite_sync.create_evaluation),
    (IntegrationStep.CITE_MOVES, cite_sync.create_moves),
    (IntegrationStep.CITE_TEAMS, cite_sync.create_teams),
    (IntegrationStep.CITE_ROLES, cite_sync.create_roles),
    (IntegrationStep.CITE_ACTIONS, cite_sync.create_actions),
    (IntegrationStep.CITE_ADVANCE, cite_sync.advance_evaluation),
)


@dataclass(frozen=True)
class ResumePoint:
    """Where a resumed push picks up.

    Attributes:
        completed: Last step that finished
        interrupted: Step that began after it and did not finish
    """

    completed: IntegrationStep | None = None
    interrupted: IntegrationStep | None = None

    @classmethod
    def of(cls, msel: Msel) -> ResumePoint:
        completed = IntegrationStep(msel.integration_step) if msel.integration_step else None
        started = IntegrationStep(msel.integration_started_step) if msel.integration_started_step else None
        if started is not None and completed is not None and started.order <= completed.order:
            started = None
        return cls(completed=completed, interrupted=started)

    def is_done(self, step: IntegrationStep) -> bool:
        return self.completed is not None and step.order <= self.completed.order

    def is_unsafe_to_repeat(self, step: IntegrationStep) -> bool:
        return step is self.interrupted and not step.repeatable


class IntegrationWorkflow:
    def __init__(self, context: WorkerContext):
        self._context = context

    def __call__(self, job: IntegrationJob) -> None:
        self.run(job)

    def run(self, job: IntegrationJob) -> None:
        """Process one integration job in a fresh database session."""
        logger.debug(f"[INTEGRATION] Begin processing msel_id={job.msel_id}")
        try:
            with get_session(self._context.session_factory) as session:
                msel = session.get(Msel, job.msel_id)
                if msel is None:
                    logger.warning(f"[INTEGRATION] Msel not found, abandoning job: msel_id={job.msel_id}")
                    return

                try:
                    if msel.is_pushed and not job.resume:
                        self._pull(session, msel, job)
                    else:
                        self._push(session, msel, job)
                except StepFailedError as e:
                    session.rollback()
                    logger.warning(
                        f"[INTEGRATION] Push aborted at step '{e.step}' for {msel.name} ({msel.id}); "
                        f"last completed step: {msel.integration_step}"
                    )
        finally:
            self._context.in_flight.release(job.msel_id)

    # Push

    def _push(self, session: Session, msel: Msel, job: IntegrationJob) -> None:
        publisher = self._context.publisher
        clients = self._context.clients
        runner = StepRunner(msel.id, msel.name, publisher, StepPolicy.ABORT_ON_ERROR)
        resume = ResumePoint.of(msel) if job.resume else ResumePoint()

        logger.info(
            f"[INTEGRATION] Pushing {msel.name} ({msel.id})",
            use_gallery=msel.use_gallery,
            use_cite=msel.use_cite,
            resume_after=resume.completed,
            interrupted=resume.interrupted,
        )
        publisher.publish(msel.id, PUSHING)
        token: TokenResponse = runner.run(TOKEN_STEP, clients.get_token)

        with ExitStack() as stack:
            player = stack.enter_context(clients.player(token))

            self._step(
                session, msel, runner, resume, IntegrationStep.PLAYER_VIEW,
                lambda: player_sync.create_view(session, msel, job.player_view_id, player),
            )
            self._step(
                session, msel, runner, resume, IntegrationStep.PLAYER_TEAMS,
                lambda: player_sync.create_teams(session, msel, player),
            )

            # Live once the view and its teams exist
            msel.status = ItemStatus.DEPLOYED
            session.commit()

            if msel.use_gallery:
                msel = self._reload(session, msel.id, _gallery_graph())
                if msel is None:
                    return
                gallery = stack.enter_context(clients.gallery(token))
                for step, create in GALLERY_STEPS:
                    self._step(session, msel, runner, resume, step, _bind(create, session, msel, gallery))

            if msel.use_cite:
                msel = self._reload(session, msel.id, _cite_graph())
                if msel is None:
                    return
                cite = stack.enter_context(clients.cite(token))
                for step, create in CITE_STEPS:
                    self._step(session, msel, runner, resume, step, _bind(create, session, msel, cite))

            msel = self._reload(session, msel.id, _applications_graph())
            if msel is None:
                return
            self._step(
                session, msel, runner, resume, IntegrationStep.PLAYER_APPLICATIONS,
                lambda: player_sync.create_applications(session, msel, player),
            )

        publisher.complete(msel.id)
        logger.info(f"[INTEGRATION] Push complete for {msel.name} ({msel.id})")

    def _step(
        self,
        session: Session,
        msel: Msel,
        runner: StepRunner,
        resume: ResumePoint,
        step: IntegrationStep,
        action: Callable[[], None],
    ) -> None:
        if resume.is_done(step):
            logger.debug(f"[INTEGRATION] Skipping completed step {step} for msel_id={msel.id}")
            return

        if resume.is_unsafe_to_repeat(step):
            # Part of it may already exist upstream with nothing recorded locally
            logger.warning(
                f"[INTEGRATION] Step {step} was interrupted and cannot be repeated, "
                f"skipping it for {msel.name} ({msel.id})"
            )
        else:
            msel.integration_started_step = step.value
            session.commit()
            runner.run(step.value, action, status=PUSH_STATUS[step])

        msel.integration_step = step.value
        session.commit()

    def _reload(self, session: Session, msel_id: str, options: list) -> Msel | None:
        msel = session.execute(
            select(Msel).where(Msel.id == msel_id).options(*options).execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if msel is None:
            logger.warning(f"[INTEGRATION] Msel disappeared during push, abandoning job: msel_id={msel_id}")
        return msel

    # Pull

    def _pull(self, session: Session, msel: Msel, job: IntegrationJob) -> None:
        publisher = self._context.publisher
        clients = self._context.clients
        runner = StepRunner(msel.id, msel.name, publisher, StepPolicy.CONTINUE_ON_ERROR)

        logger.info(f"[INTEGRATION] Pulling {msel.name} ({msel.id})", final_status=job.final_status)
        publisher.publish(msel.id, PULLING)
        token = runner.run(TOKEN_STEP, clients.get_token)

        if token is None:
            logger.warning(f"[INTEGRATION] No access token, external resources of {msel.id} are left in place")
        else:
            if msel.cite_evaluation_id is not None:
                runner.run("CITE - pull evaluation", lambda: _pull_with(clients.cite, token, cite_sync.pull_evaluation, msel))
            if msel.gallery_collection_id is not None:
                runner.run(
                    "Gallery - pull collection",
                    lambda: _pull_with(clients.gallery, token, gallery_sync.pull_collection, msel),
                )
            if msel.player_view_id is not None:
                runner.run("Player - pull view", lambda: _pull_with(clients.player, token, player_sync.pull_view, msel))

        msel_id = msel.id
        msel = session.get(Msel, msel_id, populate_existing=True)
        if msel is None:
            logger.debug(f"[INTEGRATION] Msel {msel_id} was deleted during pull, nothing to reset")
        else:
            _clear_external_references(msel)
            msel.status = job.final_status
            session.commit()

        publisher.complete(msel_id)
        logger.info(f"[INTEGRATION] Pull complete for msel_id={msel_id}")


def _bind(create, session: Session, msel: Msel, client) -> Callable[[], None]:
    return lambda: create(session, msel, client)


def _pull_with(client_factory, token: TokenResponse, pull, msel: Msel) -> None:
    with client_factory(token) as client:
        pull(msel, client)


def _clear_external_references(msel: Msel) -> None:
    msel.player_view_id = None
    msel.gallery_collection_id = None
    msel.gallery_exhibit_id = None
    msel.cite_evaluation_id = None
    msel.integration_started_step = None
    msel.integration_step = None
    for team in msel.teams:
        team.player_team_id = None
        team.gallery_team_id = None
        team.cite_team_id = None
    for card in msel.cards:
        card.gallery_id = None


def _gallery_graph() -> list:
    return [
        selectinload(Msel.teams).selectinload(Team.team_users),
        selectinload(Msel.cards).selectinload(Card.card_teams),
        selectinload(Msel.data_fields),
        selectinload(Msel.scenario_events).selectinload(ScenarioEvent.data_values),
    ]


def _cite_graph() -> list:
    return [
        selectinload(Msel.teams).selectinload(Team.team_users),
        selectinload(Msel.moves),
        selectinload(Msel.cite_roles),
        selectinload(Msel.cite_actions),
    ]


def _applications_graph() -> list:
    return [selectinload(Msel.player_applications)]
