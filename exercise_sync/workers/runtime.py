"""Wires the four queues to their workflows and dispatchers."""

from __future__ import annotations

from loguru import logger

from exercise_sync.config.settings import Settings, settings
from exercise_sync.workers.add_application import AddApplicationWorkflow
from exercise_sync.workers.context import WorkerContext
from exercise_sync.workers.dispatcher import BackgroundDispatcher
from exercise_sync.workers.integration import IntegrationWorkflow
from exercise_sync.workers.join import JoinWorkflow
from exercise_sync.workers.launch import LaunchWorkflow
from exercise_sync.workers.queue import AddApplicationQueue, IntegrationQueue, JoinQueue, LaunchQueue


class IntegrationRuntime:
    def __init__(self, context: WorkerContext, config: Settings | None = None):
        config = config or settings
        poll_interval = config.queue_poll_interval_seconds
        max_workers = config.integration_max_workers

        self.context = context
        self.integration_queue = IntegrationQueue(poll_interval=poll_interval)
        self.join_queue = JoinQueue(poll_interval=poll_interval)
        self.launch_queue = LaunchQueue(poll_interval=poll_interval)
        self.add_application_queue = AddApplicationQueue(poll_interval=poll_interval)

        integration = IntegrationWorkflow(context)
        self.dispatchers = [
            BackgroundDispatcher("integration", self.integration_queue, integration, max_workers=max_workers),
            BackgroundDispatcher("join", self.join_queue, JoinWorkflow(context), max_workers=max_workers),
            BackgroundDispatcher(
                "launch", self.launch_queue, LaunchWorkflow(context, integration), max_workers=max_workers
            ),
            BackgroundDispatcher(
                "add-application",
                self.add_application_queue,
                AddApplicationWorkflow(context),
                max_workers=max_workers,
            ),
        ]

    def start(self) -> None:
        for dispatcher in self.dispatchers:
            dispatcher.start()
        logger.info(f"[RUNTIME] Started {len(self.dispatchers)} dispatchers")

    def stop(self, timeout: float | None = 5.0) -> None:
        for dispatcher in self.dispatchers:
            dispatcher.stop(timeout)
        logger.info("[RUNTIME] Stopped dispatchers")
