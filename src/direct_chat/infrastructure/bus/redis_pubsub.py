"""Redis Pub/Sub relay so room events reach connections on every instance."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine
from uuid import UUID

import redis.asyncio as aioredis

from direct_chat.infrastructure.bus.serializer import (
    FanoutEnvelope,
    deserialize_event,
    serialize_event,
)

logger = logging.getLogger(__name__)


class RedisFanoutPublisher:
    """Implements application.ports.bus.Broadcaster by publishing to a channel."""

    def __init__(self, redis: aioredis.Redis, channel: str) -> None:
        self._redis = redis
        self._channel = channel

    async def broadcast(
        self,
        chat_id: UUID,
        event_type: str,
        data: dict[str, Any],
        *,
        exclude: str | None = None,
    ) -> None:
        raw = serialize_event(
            FanoutEnvelope(event_type=event_type, chat_id=chat_id, data=data, exclude=exclude)
        )
        await self._redis.publish(self._channel, raw)


OnEventCallback = Callable[[FanoutEnvelope], Coroutine[Any, Any, None]]

RECONNECT_DELAY_SECONDS = 1.0
MAX_RECONNECT_DELAY_SECONDS = 30.0


class RedisPubSubSubscriber:
    """Relays envelopes from the fan-out channel into the local rooms.

    A lost Redis connection is retried with capped exponential backoff;
    events published while disconnected are not replayed.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        channel: str,
        callback: OnEventCallback,
    ) -> None:
        self._redis = redis
        self._channel = channel
        self._callback = callback
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        self._task = asyncio.create_task(self._run(), name="fanout-subscriber")
        logger.info("Fan-out subscriber started on channel=%s", self._channel)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Fan-out subscriber stopped")

    async def _run(self) -> None:
        delay = RECONNECT_DELAY_SECONDS
        while True:
            try:
                await self._listen()
            except (aioredis.ConnectionError, aioredis.TimeoutError) as exc:
                logger.warning(
                    "Fan-out channel %s lost (%s), retrying in %.1fs",
                    self._channel, exc, delay,
                )
                await asyncio.sleep(delay)
                delay = min(delay * 2, MAX_RECONNECT_DELAY_SECONDS)
            else:
                delay = RECONNECT_DELAY_SECONDS

    async def _listen(self) -> None:
        pubsub = self._redis.pubsub(ignore_subscribe_messages=True)
        await pubsub.subscribe(self._channel)
        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                await self.dispatch(message["data"])
        finally:
            await pubsub.aclose()

    async def dispatch(self, raw: str | bytes) -> None:
        """Hand one published envelope to the callback. Bad payloads are skipped."""
        try:
            envelope = deserialize_event(raw)
        except (ValueError, KeyError, TypeError):
            logger.warning("Skipping malformed fan-out payload: %r", raw[:200])
            return
        try:
            await self._callback(envelope)
        except Exception:
            logger.exception(
                "Relaying %s for chat %s failed", envelope.event_type, envelope.chat_id,
            )
