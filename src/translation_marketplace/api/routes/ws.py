"""WebSocket push channel for workflow events.

Routes:
    WS /ws/requests/{request_id}   - Events under one request the caller may see
    WS /ws/notifications           - Events on every entity the caller is party to

Each message is one event as JSON:
    {"entity_type", "entity_id", "from_status", "to_status", "actor_id",
     "timestamp", "action", "request_id", "version"}

There is no replay. A client that reconnects, or is disconnected for falling
behind (close code 4000), re-fetches the entities it cares about.
"""

from __future__ import annotations

import asyncio
import uuid

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from sqlalchemy.ext.asyncio import AsyncSession

from translation_marketplace.api.deps import get_db_session, get_gateway, get_ws_actor
from translation_marketplace.domain.exceptions import NotFoundError
from translation_marketplace.domain.permissions import Actor
from translation_marketplace.logging_config import get_logger
from translation_marketplace.notifications.gateway import (
    NotificationGateway,
    Subscription,
)
from translation_marketplace.services.workflow_engine import WorkflowEngine

router = APIRouter(tags=["Notifications"])
logger = get_logger(__name__)

CLOSE_RESYNC = 4000
CLOSE_NOT_FOUND = 4404


async def _stream(websocket: WebSocket, subscription: Subscription) -> None:
    """Forward events until the client leaves or the subscription is dropped."""

    async def send() -> None:
        async for event in subscription:
            await websocket.send_json(event.to_dict())

    async def receive() -> None:
        while True:
            await websocket.receive_text()

    sender = asyncio.create_task(send())
    receiver = asyncio.create_task(receive())
    done, pending = await asyncio.wait({sender, receiver}, return_when=asyncio.FIRST_COMPLETED)
    for task in pending:
        task.cancel()
    await asyncio.gather(*pending, return_exceptions=True)

    if sender in done and sender.exception() is None:
        # Subscription closed under us: the client fell behind.
        logger.info("ws.resync_required", subscription_id=subscription.id)
        await websocket.close(code=CLOSE_RESYNC, reason="Backlog exceeded, re-fetch state")
        return
    for task in done:
        exc = task.exception()
        if exc is not None and not isinstance(exc, WebSocketDisconnect):
            raise exc


@router.websocket("/ws/requests/{request_id}")
async def request_events(
    websocket: WebSocket,
    request_id: uuid.UUID,
    actor: Actor = Depends(get_ws_actor),
    session: AsyncSession = Depends(get_db_session),
    gateway: NotificationGateway = Depends(get_gateway),
) -> None:
    engine = WorkflowEngine(session, gateway=gateway)
    try:
        await engine.requests.get_request(actor, request_id)
    except NotFoundError as exc:
        await websocket.close(code=CLOSE_NOT_FOUND, reason=exc.message)
        return

    await websocket.accept()
    subscription = gateway.subscribe(actor, request_id=str(request_id))
    logger.info("ws.connected", channel="request", request_id=str(request_id))
    try:
        await _stream(websocket, subscription)
    finally:
        gateway.unsubscribe(subscription)
        logger.info("ws.disconnected", channel="request", request_id=str(request_id))


@router.websocket("/ws/notifications")
async def actor_notifications(
    websocket: WebSocket,
    actor: Actor = Depends(get_ws_actor),
    gateway: NotificationGateway = Depends(get_gateway),
) -> None:
    await websocket.accept()
    subscription = gateway.subscribe(actor)
    logger.info("ws.connected", channel="notifications")
    try:
        await _stream(websocket, subscription)
    finally:
        gateway.unsubscribe(subscription)
        logger.info("ws.disconnected", channel="notifications")
