"""Validates integration requests and puts them on the worker queues.

Callers get an answer as soon as the job is queued; the outcome is only
visible on the exercise's status topic.

The exercise is marked in flight before its state is checked, so no job
can finish and change that state between the check and the enqueue.
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from loguru import logger
from sqlalchemy.orm import Session, sessionmaker

from exercise_sync.db.models import ItemStatus, Msel
from exercise_sync.db.session import get_session
from exercise_sync.services.errors import ExerciseBusyError, IntegrationConflictError, MselNotFoundError
from exercise_sync.workers.inflight import InFlightRegistry
from exercise_sync.workers.jobs import AddApplicationJob, IntegrationJob, JoinJob, LaunchJob
from exercise_sync.workers.runtime import IntegrationRuntime


class IntegrationRequestService:
    def __init__(self, runtime: IntegrationRuntime, session_factory: sessionmaker[Session] | None = None):
        self._runtime = runtime
        self._session_factory = session_factory or runtime.context.session_factory

    @property
    def _in_flight(self) -> InFlightRegistry:
        return self._runtime.context.in_flight

    def push(self, msel_id: str, player_view_id: str | None = None) -> IntegrationJob:
        """Queue a push of an exercise that has no external reference yet.

        Raises:
            MselNotFoundError: If the exercise does not exist
            IntegrationConflictError: If the exercise is already pushed
            ExerciseBusyError: If a job for the exercise is still in flight
        """
        with self._claim(msel_id) as msel:
            if msel.is_pushed:
                raise IntegrationConflictError(msel_id, f"Msel {msel_id} is already pushed; pull it first")
            job = IntegrationJob(msel_id=msel_id, player_view_id=player_view_id)
            self._enqueue_integration(job)
        return job

    def pull(self, msel_id: str, final_status: ItemStatus = ItemStatus.PENDING) -> IntegrationJob:
        with self._claim(msel_id) as msel:
            if not msel.is_pushed:
                raise IntegrationConflictError(msel_id, f"Msel {msel_id} has not been pushed")
            job = IntegrationJob(msel_id=msel_id, final_status=final_status)
            self._enqueue_integration(job)
        return job

    def resume(self, msel_id: str) -> IntegrationJob:
        """Queue a push that continues after the last completed step."""
        with self._claim(msel_id) as msel:
            if msel.integration_step is None and msel.integration_started_step is None:
                raise IntegrationConflictError(msel_id, f"Msel {msel_id} has no interrupted push to resume")
            job = IntegrationJob(msel_id=msel_id, resume=True)
            self._enqueue_integration(job)
        return job

    def launch(self, msel_id: str, player_view_id: str) -> LaunchJob:
        with self._claim(msel_id) as msel:
            if msel.is_pushed:
                raise IntegrationConflictError(msel_id, f"Msel {msel_id} is already pushed")
            job = LaunchJob(msel_id=msel_id, player_view_id=player_view_id)
            self._runtime.launch_queue.add(job)
        logger.info(f"[REQUESTS] Queued launch for msel_id={msel_id}", player_view_id=player_view_id)
        return job

    def join(self, user_id: str, player_view_id: str, player_team_id: str) -> JoinJob:
        job = JoinJob(user_id=user_id, player_view_id=player_view_id, player_team_id=player_team_id)
        self._runtime.join_queue.add(job)
        return job

    def add_application(
        self, application: dict[str, Any], player_team_id: str, display_order: int = 0
    ) -> AddApplicationJob:
        job = AddApplicationJob(application=application, player_team_id=player_team_id, display_order=display_order)
        self._runtime.add_application_queue.add(job)
        return job

    @contextmanager
    def _claim(self, msel_id: str) -> Generator[Msel, None, None]:
        """Mark the exercise in flight, then load it for validation.

        The marker is released if the block raises; otherwise the queued
        job's worker releases it.

        Raises:
            ExerciseBusyError: If a job for the exercise is still in flight
            MselNotFoundError: If the exercise does not exist
        """
        if not self._in_flight.acquire(msel_id):
            logger.warning(f"[REQUESTS] Rejected request, job already in flight for msel_id={msel_id}")
            raise ExerciseBusyError(msel_id)

        try:
            yield self._load(msel_id)
        except Exception:
            self._in_flight.release(msel_id)
            raise

    def _load(self, msel_id: str) -> Msel:
        with get_session(self._session_factory) as session:
            msel = session.get(Msel, msel_id)
            if msel is None:
                raise MselNotFoundError(msel_id)
            return msel

    def _enqueue_integration(self, job: IntegrationJob) -> None:
        self._runtime.integration_queue.add(job)
        logger.info(
            f"[REQUESTS] Queued integration job for msel_id={job.msel_id}",
            resume=job.resume,
            final_status=job.final_status,
        )
