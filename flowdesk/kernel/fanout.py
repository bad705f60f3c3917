# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.

"""
Fan-out — Best-effort broadcast of mutation events to connected clients.

The publisher hands each event to a transport inside its own asyncio task.
Callers never await delivery: a slow or failing transport cannot delay or
fail the mutation that produced the event. Delivery failures are logged,
counted and dropped.

Request handlers do not publish directly: they collect events in a
FanOutOutbox that is flushed only once the request transaction commits, so
a rolled-back write never reaches a board.

Transports:
  - RedisFanOutTransport   publish on the room's Redis channel (same cluster)
  - HttpFanOutTransport    POST {event, data, room} to a broadcast endpoint
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import List, Optional, Protocol, Set

import httpx

from flowdesk.core.metrics import Metrics, service_metrics
from flowdesk.kernel.bus import RoomBus
from flowdesk.protocols.schema import FanOutEvent

logger = logging.getLogger("flowdesk.fanout")

BROADCAST_TOKEN_HEADER = "X-Broadcast-Token"


class FanOutDeliveryFailed(Exception):
    """A transport could not hand an event to its room."""

    def __init__(self, event: FanOutEvent, reason: str):
        self.event = event
        self.reason = reason
        super().__init__(f"Delivery of {event.event_type} to {event.room} failed: {reason}")


class FanOutTransport(Protocol):
    async def deliver(self, event: FanOutEvent) -> None: ...


class RedisFanOutTransport:
    """Deliver through the Redis room bus."""

    def __init__(self, bus: RoomBus) -> None:
        self._bus = bus

    async def deliver(self, event: FanOutEvent) -> None:
        try:
            await self._bus.publish(event)
        except Exception as exc:
            raise FanOutDeliveryFailed(event, str(exc)) from exc


class HttpFanOutTransport:
    """Deliver by POSTing to a broadcast endpoint (e.g. a separate socket server)."""

    def __init__(
        self,
        url: str,
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
        token: str = "",
    ) -> None:
        self._url = url
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = {BROADCAST_TOKEN_HEADER: token} if token else {}

    async def deliver(self, event: FanOutEvent) -> None:
        try:
            resp = await self._client.post(
                self._url,
                json={"event": event.event_type, "data": event.payload, "room": event.room},
                headers=self._headers,
            )
        except httpx.HTTPError as exc:
            raise FanOutDeliveryFailed(event, str(exc)) from exc
        if resp.status_code >= 400:
            raise FanOutDeliveryFailed(event, f"HTTP {resp.status_code}")

    async def close(self) -> None:
        await self._client.aclose()


class FanOutPublisher:
    """Fire-and-forget publisher with isolated error handling."""

    def __init__(
        self,
        transport: FanOutTransport,
        timeout: float = 5.0,
        metrics: Optional[Metrics] = None,
    ) -> None:
        self._transport = transport
        self._timeout = timeout
        self._metrics = metrics or service_metrics
        self._pending: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def publish(self, event: FanOutEvent) -> asyncio.Task:
        """
        Schedule delivery of `event` and return immediately.

        Must be called from inside a running event loop. The returned task
        never raises.
        """
        task = asyncio.get_running_loop().create_task(self._deliver(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _deliver(self, event: FanOutEvent) -> None:
        start = time.time()
        try:
            await asyncio.wait_for(self._transport.deliver(event), timeout=self._timeout)
        except asyncio.TimeoutError:
            self._failed(FanOutDeliveryFailed(event, f"timed out after {self._timeout}s"))
        except FanOutDeliveryFailed as exc:
            self._failed(exc)
        except Exception as exc:
            self._failed(FanOutDeliveryFailed(event, repr(exc)))
        else:
            self._metrics.inc("fanout_published")
            self._metrics.observe("fanout_latency_ms", (time.time() - start) * 1000)

    def _failed(self, exc: FanOutDeliveryFailed) -> None:
        self._metrics.inc("fanout_failed")
        logger.warning("Fan-out dropped: %s", exc, extra={"room": exc.event.room})

    async def drain(self) -> None:
        """Wait for every in-flight delivery to finish (shutdown / tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def cancel_all(self) -> None:
        for task in list(self._pending):
            task.cancel()
        await self.drain()


class FanOutOutbox:
    """
    Events produced by one unit of work, held until it commits.

    Writers `add` events while the transaction is open. The owner of the
    transaction calls `flush` after a successful commit, which hands every
    event to the publisher in order, or `discard` after a rollback, which
    drops them.
    """

    def __init__(self, publisher: FanOutPublisher) -> None:
        self._publisher = publisher
        self._events: List[FanOutEvent] = []

    def __len__(self) -> int:
        return len(self._events)

    @property
    def events(self) -> List[FanOutEvent]:
        return list(self._events)

    def add(self, event: FanOutEvent) -> None:
        self._events.append(event)

    def flush(self) -> List[asyncio.Task]:
        events, self._events = self._events, []
        return [self._publisher.publish(event) for event in events]

    def discard(self) -> int:
        dropped = len(self._events)
        if dropped:
            logger.info("Fan-out discarded %d event(s) after rollback", dropped)
        self._events = []
        return dropped
