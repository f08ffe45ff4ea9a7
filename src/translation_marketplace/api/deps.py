"""FastAPI dependency injection providers.

These are used with Depends() in route handlers to inject database sessions,
the workflow engine, the calling actor, and configuration.

The actor normally comes from the upstream authentication layer; here it is
read from the X-Actor-Id / X-Actor-Role headers (query parameters on
WebSockets, where browsers cannot set headers).
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

from fastapi import (
    Depends,
    Header,
    HTTPException,
    Query,
    WebSocketException,
    status,
)
from sqlalchemy.ext.asyncio import AsyncSession

from translation_marketplace.config import Settings, get_settings
from translation_marketplace.domain.enums import ActorRole
from translation_marketplace.domain.permissions import Actor
from translation_marketplace.infrastructure.database.engine import get_async_session
from translation_marketplace.logging_config import bind_actor
from translation_marketplace.notifications.gateway import (
    NotificationGateway,
    get_notification_gateway,
)
from translation_marketplace.services.workflow_engine import WorkflowEngine


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for a request."""
    async for session in get_async_session():
        yield session


def get_gateway() -> NotificationGateway:
    """Provide the process-wide notification gateway."""
    return get_notification_gateway()


def get_app_settings() -> Settings:
    """Provide the application settings."""
    return get_settings()


def _resolve_actor(actor_id: str | None, role: str | None) -> Actor:
    """Build the actor; raises ValueError when the identity is missing or malformed."""
    if not actor_id:
        raise ValueError("Missing actor id")
    try:
        actor_role = ActorRole(role or ActorRole.READER)
    except ValueError as err:
        raise ValueError(f"Unknown actor role: {role}") from err
    actor = Actor(id=actor_id, role=actor_role)
    bind_actor(actor)
    return actor


async def get_actor(
    x_actor_id: str | None = Header(default=None),
    x_actor_role: str | None = Header(default=None),
) -> Actor:
    """The actor making this HTTP call. Defaults to the read-only role."""
    try:
        return _resolve_actor(x_actor_id, x_actor_role)
    except ValueError as err:
        raise HTTPException(status_code=401, detail=str(err)) from err


async def get_ws_actor(
    actor_id: str | None = Query(default=None),
    role: str | None = Query(default=None),
) -> Actor:
    """The actor opening a WebSocket, from query parameters."""
    try:
        return _resolve_actor(actor_id, role)
    except ValueError as err:
        raise WebSocketException(
            code=status.WS_1008_POLICY_VIOLATION, reason=str(err)
        ) from err


async def get_workflow_engine(
    session: AsyncSession = Depends(get_db_session),
    gateway: NotificationGateway = Depends(get_gateway),
) -> WorkflowEngine:
    """Provide a WorkflowEngine bound to the current session."""
    return WorkflowEngine(session, gateway=gateway)
