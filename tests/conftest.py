"""Shared test fixtures for the translation marketplace test suite.

Provides:
    - A file-backed SQLite database per test (aiosqlite), schema created fresh
    - A WorkflowEngine wired to an isolated gateway and lock registry
    - The usual cast of actors: requester U1, translators U2/U3, a reader, system
    - An httpx client driving the FastAPI app in-process
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from translation_marketplace.config import Settings
from translation_marketplace.domain.enums import ActorRole
from translation_marketplace.domain.permissions import Actor
from translation_marketplace.infrastructure.database.orm_models import Base
from translation_marketplace.infrastructure.locks import KeyedLockRegistry
from translation_marketplace.notifications.gateway import NotificationGateway
from translation_marketplace.services.workflow_engine import WorkflowEngine

# ---------------------------------------------------------------------------
# Actors
# ---------------------------------------------------------------------------


@pytest.fixture
def requester() -> Actor:
    return Actor(id="U1", role=ActorRole.REQUESTER)


@pytest.fixture
def translator() -> Actor:
    return Actor(id="U2", role=ActorRole.TRANSLATOR)


@pytest.fixture
def other_translator() -> Actor:
    return Actor(id="U3", role=ActorRole.TRANSLATOR)


@pytest.fixture
def reader() -> Actor:
    return Actor(id="U9", role=ActorRole.READER)


@pytest.fixture
def system() -> Actor:
    return Actor(id="payments", role=ActorRole.SYSTEM)


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'marketplace.db'}",
        redis_events_enabled=False,
        notification_queue_size=100,
        store_timeout_seconds=5.0,
    )


@pytest_asyncio.fixture
async def db_engine(test_settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(test_settings.database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway() -> NotificationGateway:
    return NotificationGateway(max_backlog=100)


@pytest.fixture
def locks() -> KeyedLockRegistry:
    return KeyedLockRegistry()


@pytest.fixture
def make_engine(gateway, locks, test_settings):
    """Build a WorkflowEngine on any session, sharing gateway and locks."""

    def factory(session: AsyncSession) -> WorkflowEngine:
        return WorkflowEngine(
            session, gateway=gateway, locks=locks, settings=test_settings
        )

    return factory


@pytest.fixture
def workflow(session: AsyncSession, make_engine) -> WorkflowEngine:
    return make_engine(session)


# ---------------------------------------------------------------------------
# Workflow builders
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_request_data() -> dict:
    """Return valid create_request keyword arguments."""
    return {
        "book_id": "book-42",
        "source_language": "en",
        "target_language": "fr",
        "budget_cents": 90_000,
        "title": "The Lighthouse Keeper",
    }


@pytest.fixture
def open_request(workflow, requester, sample_request_data):
    async def build(**overrides):
        return await workflow.requests.create_request(
            requester, **{**sample_request_data, **overrides}
        )

    return build


@pytest.fixture
def signed_contract(workflow, requester, translator, open_request):
    """Request with an accepted application whose contract both parties signed."""

    async def build(**request_overrides):
        request = await open_request(**request_overrides)
        application = await workflow.applications.create_application(
            translator, request.id, proposed_rate_cents=60_000
        )
        _, contract = await workflow.applications.accept_application(
            requester, application.id
        )
        await workflow.contracts.sign_contract(requester, contract.id)
        contract = await workflow.contracts.sign_contract(translator, contract.id)
        return request, contract

    return build


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    gateway: NotificationGateway,
) -> AsyncGenerator[AsyncClient, None]:
    from translation_marketplace.api.deps import get_db_session, get_gateway
    from translation_marketplace.main import create_app

    async def override_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app = create_app()
    app.dependency_overrides[get_db_session] = override_session
    app.dependency_overrides[get_gateway] = lambda: gateway

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth():
    """Headers identifying an actor to the API."""

    def headers(actor: Actor) -> dict[str, str]:
        return {"X-Actor-Id": actor.id, "X-Actor-Role": str(actor.role)}

    return headers
