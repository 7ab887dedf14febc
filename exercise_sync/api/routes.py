"""Integration endpoints and the per-exercise status stream."""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, HTTPException, Request, WebSocket, WebSocketDisconnect, status
from loguru import logger
from pydantic import BaseModel

from exercise_sync.db.models import ItemStatus
from exercise_sync.services.errors import (
    ExerciseBusyError,
    IntegrationConflictError,
    IntegrationRequestError,
    MselNotFoundError,
)
from exercise_sync.services.integration_requests import IntegrationRequestService
from exercise_sync.workers.jobs import IntegrationJob
from exercise_sync.workers.progress import StatusHub

router = APIRouter(prefix="/msels", tags=["integrations"])


class PushRequest(BaseModel):
    player_view_id: str | None = None


class PullRequest(BaseModel):
    final_status: ItemStatus = ItemStatus.PENDING


def get_integration_requests(request: Request) -> IntegrationRequestService:
    return request.app.state.integration_requests


def _to_http_error(e: IntegrationRequestError) -> HTTPException:
    if isinstance(e, MselNotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(e, (IntegrationConflictError, ExerciseBusyError)):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=e.message)


def _accepted(job: IntegrationJob, operation: str) -> dict[str, str]:
    return {"status": "enqueued", "operation": operation, "msel_id": job.msel_id}


@router.post("/{msel_id}/push", status_code=status.HTTP_202_ACCEPTED)
def push_msel(
    msel_id: str,
    payload: PushRequest | None = None,
    requests: IntegrationRequestService = Depends(get_integration_requests),
) -> dict[str, str]:
    """Queue a push of the exercise to Player, Gallery and CITE.

    Raises:
        HTTPException: 404 if the exercise does not exist
        HTTPException: 409 if it is already pushed or has a job in flight
    """
    player_view_id = payload.player_view_id if payload else None
    try:
        job = requests.push(msel_id, player_view_id)
    except IntegrationRequestError as e:
        raise _to_http_error(e) from e
    return _accepted(job, "push")


@router.post("/{msel_id}/pull", status_code=status.HTTP_202_ACCEPTED)
def pull_msel(
    msel_id: str,
    payload: PullRequest | None = None,
    requests: IntegrationRequestService = Depends(get_integration_requests),
) -> dict[str, str]:
    final_status = payload.final_status if payload else ItemStatus.PENDING
    try:
        job = requests.pull(msel_id, final_status)
    except IntegrationRequestError as e:
        raise _to_http_error(e) from e
    return _accepted(job, "pull")


@router.post("/{msel_id}/resume", status_code=status.HTTP_202_ACCEPTED)
def resume_msel(
    msel_id: str,
    requests: IntegrationRequestService = Depends(get_integration_requests),
) -> dict[str, str]:
    try:
        job = requests.resume(msel_id)
    except IntegrationRequestError as e:
        raise _to_http_error(e) from e
    return _accepted(job, "resume")


@router.websocket("/{msel_id}/status")
async def msel_status(websocket: WebSocket, msel_id: str):
    """Forward the exercise's status messages as they are published.

    Messages published before the client connected are not replayed.
    """
    hub: StatusHub = websocket.app.state.status_hub
    loop = asyncio.get_running_loop()
    messages: asyncio.Queue[str] = asyncio.Queue()

    def on_message(message: str) -> None:
        # Called from worker threads
        loop.call_soon_threadsafe(messages.put_nowait, message)

    async def forward() -> None:
        while True:
            await websocket.send_text(await messages.get())

    sender: asyncio.Task | None = None
    try:
        hub.subscribe(msel_id, on_message)
        await websocket.accept()
        sender = asyncio.create_task(forward())
        logger.debug(f"[STATUS] Client subscribed to msel_id={msel_id}")
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug(f"[STATUS] Client disconnected from msel_id={msel_id}")
    finally:
        hub.unsubscribe(msel_id, on_message)
        if sender is not None:
            sender.cancel()
            (result,) = await asyncio.gather(sender, return_exceptions=True)
            if isinstance(result, Exception):
                logger.debug(f"[STATUS] Forwarding to msel_id={msel_id} stopped: {result!r}")
