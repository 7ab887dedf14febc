"""Push/pull status messages for connected clients.

Message shape on the topic named after the exercise id:
- "<msel_id>,<step description>" while a workflow is running
- "<msel_id>" once it has finished

Delivery is best-effort and at-most-once. Nothing is buffered, so a
subscriber that connects late misses the steps already published.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from collections.abc import Callable, Iterable
from typing import Protocol

import redis
from loguru import logger

REDIS_CHANNEL_PREFIX = "msel-status:"

StatusCallback = Callable[[str], None]


class StatusChannel(Protocol):
    def send(self, topic: str, message: str) -> None: ...


class StatusHub:
    """In-process topic fan-out used by the WebSocket endpoint.

    Callbacks run on the publishing worker thread and must not block.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: dict[str, list[StatusCallback]] = defaultdict(list)

    def subscribe(self, topic: str, callback: StatusCallback) -> None:
        with self._lock:
            self._subscribers[topic].append(callback)

    def unsubscribe(self, topic: str, callback: StatusCallback) -> None:
        with self._lock:
            callbacks = self._subscribers.get(topic)
            if not callbacks:
                return
            if callback in callbacks:
                callbacks.remove(callback)
            if not callbacks:
                del self._subscribers[topic]

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._subscribers.get(topic, ()))

    def send(self, topic: str, message: str) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(topic, ()))
        for callback in callbacks:
            try:
                callback(message)
            except Exception as e:
                logger.warning(f"[STATUS] Subscriber callback failed on topic {topic}: {e}")


class RedisStatusChannel:
    """Redis pub/sub fan-out so every API replica can reach its own clients."""

    def __init__(self, redis_client):
        self._redis = redis_client

    def send(self, topic: str, message: str) -> None:
        self._redis.publish(f"{REDIS_CHANNEL_PREFIX}{topic}", message)


class StatusPublisher:
    def __init__(self, channels: Iterable[StatusChannel]):
        self._channels = list(channels)

    def _send(self, topic: str, message: str) -> None:
        for channel in self._channels:
            try:
                channel.send(topic, message)
            except Exception as e:
                logger.bind(topic=topic, error=str(e)).warning(
                    f"[STATUS] Failed to publish status via {type(channel).__name__}"
                )

    def publish(self, msel_id: str, step: str) -> None:
        logger.debug(f"[STATUS] {msel_id}: {step}")
        self._send(msel_id, f"{msel_id},{step}")

    def complete(self, msel_id: str) -> None:
        logger.debug(f"[STATUS] {msel_id}: complete")
        self._send(msel_id, msel_id)


def parse_status_message(message: str) -> tuple[str, str | None]:
    """Split a status message into (msel_id, step). step is None once finished."""
    msel_id, sep, step = message.partition(",")
    return msel_id, step if sep else None


def build_status_publisher(hub: StatusHub, *, redis_url: str | None = None) -> StatusPublisher:
    """Publisher writing to the in-process hub and, if configured, to Redis."""
    channels: list[StatusChannel] = [hub]
    if redis_url:
        try:
            channels.append(RedisStatusChannel(redis.from_url(redis_url, decode_responses=True)))
        except Exception as e:
            logger.bind(error=str(e)).warning("Failed to connect to Redis for status fan-out")
    return StatusPublisher(channels)
