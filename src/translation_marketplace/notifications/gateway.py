"""Notification gateway: fan-out of committed workflow events.

The workflow services hand every committed batch of DomainEvents to
`NotificationGateway.publish()`. Publishing never blocks and never fails the
operation that produced the events:

    - Each subscriber owns a FIFO queue, so events for one entity arrive in
      the order they were produced.
    - A subscriber whose backlog reaches `notification_queue_size` is closed
      (a None sentinel is queued) and must re-sync by re-fetching state.
    - With Redis enabled, the batch is also queued for relay to the other
      worker processes. One sender task drains the queue, so batches reach
      Redis in the order they were published.

Subscriptions filter by request id (everything about one request the
subscriber may see) or by actor id (everything the actor has a stake in).
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import uuid
from typing import TYPE_CHECKING

from translation_marketplace.config import get_settings
from translation_marketplace.domain.enums import EntityType, RequestStatus
from translation_marketplace.domain.events import DomainEvent
from translation_marketplace.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

    from translation_marketplace.domain.permissions import Actor

logger = get_logger(__name__)


class Subscription:
    """One subscriber's ordered event stream.

    Iterate with `async for event in subscription`; iteration ends when the
    subscription is closed (unsubscribed, or dropped for falling behind).
    """

    def __init__(
        self,
        actor: Actor,
        request_id: str | None = None,
        max_backlog: int = 1000,
    ) -> None:
        self.id = uuid.uuid4().hex
        self.actor = actor
        self.request_id = request_id
        self.max_backlog = max_backlog
        self.closed = False
        self.overflowed = False
        self._queue: asyncio.Queue[DomainEvent | None] = asyncio.Queue()

    def matches(self, event: DomainEvent) -> bool:
        if self.request_id is not None and event.request_id != self.request_id:
            return False
        if self.actor.is_system or self.actor.id in event.audience:
            return True
        # Published requests are public; nothing else is.
        return (
            event.entity_type == EntityType.REQUEST
            and event.to_status != RequestStatus.DRAFT
            and self.request_id is not None
        )

    def offer(self, event: DomainEvent) -> None:
        if self.closed:
            return
        if self._queue.qsize() >= self.max_backlog:
            self.overflowed = True
            self.close()
            return
        self._queue.put_nowait(event)

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._queue.put_nowait(None)

    @property
    def backlog(self) -> int:
        return self._queue.qsize()

    async def get(self) -> DomainEvent | None:
        """Next event, or None once the subscription has been closed."""
        return await self._queue.get()

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> DomainEvent:
        event = await self._queue.get()
        if event is None:
            raise StopAsyncIteration
        return event


class NotificationGateway:
    """In-process pub/sub for workflow events with an optional Redis relay."""

    def __init__(self, max_backlog: int | None = None) -> None:
        self.origin = uuid.uuid4().hex
        self._max_backlog = max_backlog or get_settings().notification_queue_size
        self._subscriptions: dict[str, Subscription] = {}
        self._relay_enabled = False
        self._relay_task: asyncio.Task | None = None
        self._sender_task: asyncio.Task | None = None
        self._outbox: asyncio.Queue[list[DomainEvent] | None] = asyncio.Queue()

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------

    def subscribe(self, actor: Actor, request_id: str | None = None) -> Subscription:
        """Open a subscription for one actor, optionally scoped to one request."""
        sub = Subscription(actor, request_id=request_id, max_backlog=self._max_backlog)
        self._subscriptions[sub.id] = sub
        logger.debug(
            "notifications.subscribed",
            subscription_id=sub.id,
            actor_id=actor.id,
            request_id=request_id,
        )
        return sub

    def unsubscribe(self, subscription: Subscription) -> None:
        self._subscriptions.pop(subscription.id, None)
        subscription.close()
        logger.debug("notifications.unsubscribed", subscription_id=subscription.id)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def publish(self, events: Iterable[DomainEvent]) -> None:
        """Deliver committed events locally and relay them to other processes."""
        batch = list(events)
        if not batch:
            return
        self._deliver(batch)
        if self._relay_enabled:
            self._outbox.put_nowait(batch)

    def _deliver(self, events: list[DomainEvent]) -> None:
        for sub in list(self._subscriptions.values()):
            for event in events:
                if sub.matches(event):
                    sub.offer(event)
            if sub.overflowed:
                self._subscriptions.pop(sub.id, None)
                logger.warning(
                    "notifications.subscriber_dropped",
                    subscription_id=sub.id,
                    actor_id=sub.actor.id,
                    backlog=sub.max_backlog,
                )

    # ------------------------------------------------------------------
    # Redis relay
    # ------------------------------------------------------------------

    async def start_relay(self) -> None:
        """Start relaying events through Redis. Requires init_redis() first."""
        from translation_marketplace.infrastructure.redis_client import (
            iter_event_payloads,
        )

        async def listen() -> None:
            async for payload in iter_event_payloads():
                self._relay_in(payload)

        self._outbox = asyncio.Queue()
        self._relay_enabled = True
        self._sender_task = asyncio.create_task(self._send_outbox())
        self._relay_task = asyncio.create_task(listen())
        logger.info("notifications.relay_started", origin=self.origin)

    async def stop_relay(self) -> None:
        """Flush queued batches to Redis, then stop listening."""
        self._relay_enabled = False
        if self._sender_task is not None:
            self._outbox.put_nowait(None)
            await self._sender_task
            self._sender_task = None
        if self._relay_task is not None:
            self._relay_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._relay_task
            self._relay_task = None
            logger.info("notifications.relay_stopped", origin=self.origin)

    async def _send_outbox(self) -> None:
        while True:
            batch = await self._outbox.get()
            if batch is None:
                return
            await self._relay_out(batch)

    async def _relay_out(self, events: list[DomainEvent]) -> None:
        from redis.exceptions import RedisError

        from translation_marketplace.infrastructure.redis_client import (
            publish_event_payload,
        )

        for event in events:
            payload = {
                "origin": self.origin,
                "event": {**event.to_dict(), "audience": sorted(event.audience)},
            }
            try:
                await publish_event_payload(json.dumps(payload))
            except RedisError as exc:
                # Local subscribers already have the event.
                logger.warning(
                    "notifications.relay_publish_failed",
                    entity_id=event.entity_id,
                    error=str(exc),
                )
                return

    def _relay_in(self, payload: str) -> None:
        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            logger.warning("notifications.relay_bad_payload")
            return
        if data.get("origin") == self.origin:
            return
        self._deliver([DomainEvent.from_dict(data["event"])])


_gateway: NotificationGateway | None = None


def get_notification_gateway() -> NotificationGateway:
    """Return the process-wide gateway (lazy singleton)."""
    global _gateway
    if _gateway is None:
        _gateway = NotificationGateway()
    return _gateway
