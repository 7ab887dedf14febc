import asyncio
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from loguru import logger

from exercise_sync.api.routes import router
from exercise_sync.config.settings import settings
from exercise_sync.core.logger import setup_logger
from exercise_sync.db.models import Base
from exercise_sync.db.session import get_engine, get_session_factory
from exercise_sync.integrations.factory import IntegrationClients
from exercise_sync.services.integration_requests import IntegrationRequestService
from exercise_sync.workers.context import WorkerContext
from exercise_sync.workers.progress import StatusHub, build_status_publisher
from exercise_sync.workers.runtime import IntegrationRuntime


def build_worker_context(hub: StatusHub) -> WorkerContext:
    """Worker dependencies built from settings."""
    redis_url = settings.redis_url if settings.status_redis_enabled else None
    return WorkerContext(
        session_factory=get_session_factory(),
        clients=IntegrationClients.from_settings(),
        publisher=build_status_publisher(hub, redis_url=redis_url),
    )


def create_app(
    context: WorkerContext | None = None,
    hub: StatusHub | None = None,
    *,
    start_workers: bool = True,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        context: Worker dependencies. Built from settings when omitted.
        hub: Hub the WebSocket endpoint subscribes to. Must be the hub the
            context's publisher writes to.
        start_workers: Start the dispatchers during the application lifespan
    """
    hub = hub or StatusHub()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        worker_context = context
        if worker_context is None:
            logger.info("Ensuring database tables exist")
            Base.metadata.create_all(bind=get_engine())
            worker_context = build_worker_context(hub)

        runtime = IntegrationRuntime(worker_context)
        app.state.status_hub = hub
        app.state.runtime = runtime
        app.state.integration_requests = IntegrationRequestService(runtime)

        if start_workers:
            runtime.start()
            logger.info("[RUNTIME] Integration workers started")

        await asyncio.sleep(0)
        yield

        if start_workers:
            runtime.stop()
            logger.info("[RUNTIME] Integration workers stopped")

    app = FastAPI(title="Exercise Sync", lifespan=lifespan)
    app.include_router(router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.debug(f"Request: {request.method} {request.url.path}")
        response = await call_next(request)
        logger.debug(f"Response: {response.status_code} for {request.method} {request.url.path}")
        return response

    return app


def main() -> FastAPI:
    setup_logger(level=settings.log_level, log_file=settings.log_file, json_file=settings.log_json)
    application = create_app()
    logger.info("FastAPI application initialized")
    return application


def run() -> None:
    uvicorn.run("exercise_sync.api.app:main", factory=True, host="0.0.0.0", port=8000)
