# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
Redis Room Bus — Pub/Sub carrier for fan-out events.

Every room (org:<tenant>, user:<id>) is its own Redis channel, so a
subscriber only ever receives events for rooms it explicitly joined.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Iterable, List, Optional

import redis.asyncio as aioredis

from flowdesk.kernel.namespace import get_channel
from flowdesk.protocols.schema import FanOutEvent

logger = logging.getLogger("flowdesk.bus")

EventHandler = Callable[[FanOutEvent], Any]


class RoomBus:
    """
    Room-addressed Redis Pub/Sub bus.

    Publishing targets the event's own room. Subscribing joins a fixed set of
    rooms for the lifetime of the bus instance (one instance per connection).
    """

    def __init__(self, redis: aioredis.Redis) -> None:
        self._redis = redis
        self._subscribers: List[asyncio.Task] = []
        self._pubsub: Optional[aioredis.client.PubSub] = None
        self._channels: List[str] = []

    @property
    def channels(self) -> List[str]:
        return list(self._channels)

    # ── Publish ─────────────────────────────────────────────────

    async def publish(self, event: FanOutEvent) -> int:
        """
        Publish a FanOutEvent to its room's channel.

        Returns the number of subscribers that received the message.
        """
        channel = get_channel(event.room)
        count = await self._redis.publish(channel, event.to_json())
        logger.debug(
            "Published %s to %s (%d receivers)",
            event.event_type, channel, count,
        )
        return count

    # ── Subscribe ───────────────────────────────────────────────

    async def subscribe(
        self,
        rooms: Iterable[str],
        handler: EventHandler,
        event_filter: Optional[str] = None,
    ) -> aioredis.client.PubSub:
        """
        Join `rooms` and dispatch every received event to `handler`.

        `handler` may be a plain function or a coroutine function. Handler
        errors are logged and do not stop the listener.
        """
        channels = [get_channel(room) for room in rooms]
        if not channels:
            raise ValueError("subscribe() needs at least one room")

        pubsub = self._redis.pubsub()
        await pubsub.subscribe(*channels)
        self._pubsub = pubsub
        self._channels = channels

        async def _listener():
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                try:
                    event = FanOutEvent.from_json(message["data"])
                    if event_filter and event.event_type != event_filter:
                        continue
                    result = handler(event)
                    if inspect.isawaitable(result):
                        await result
                except Exception as exc:
                    logger.error("Bus handler error: %s", exc)

        task = asyncio.create_task(_listener())
        self._subscribers.append(task)
        return pubsub

    # ── Cleanup ─────────────────────────────────────────────────

    async def close(self) -> None:
        """Unsubscribe and cancel all listener tasks."""
        for task in self._subscribers:
            task.cancel()
        self._subscribers.clear()
        if self._pubsub:
            await self._pubsub.unsubscribe(*self._channels)
            await self._pubsub.aclose()
            self._pubsub = None
        self._channels = []
