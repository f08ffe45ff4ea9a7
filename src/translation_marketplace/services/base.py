"""Shared transactional machinery for the workflow services.

Every mutating operation runs through `WorkflowServiceBase._execute()`:

    1. Resolve the lock scope (normally the owning request id) in a short
       read-only transaction.
    2. Take the in-process lock for that scope.
    3. Run the operation in one transaction under `store_timeout_seconds`:
       load rows (parents FOR UPDATE), check permissions, evaluate guards,
       mutate, append WorkflowEvent rows.
    4. Commit, then hand the collected DomainEvents to the notification
       gateway while still holding the lock, so subscribers see events in
       commit order.

Each operation runs inside a SAVEPOINT. A rejected operation discards only
its own changes; the session is not rolled back, so previously returned
entities remain usable. Connectivity failures and timeouts roll the whole
session back. A version conflict is retried `workflow_conflict_retries`
times on a fresh read.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Hashable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, TypeVar

from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
)
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm.exc import StaleDataError
from statemachine.exceptions import TransitionNotAllowed

from translation_marketplace.config import Settings, get_settings
from translation_marketplace.domain.enums import (
    Action,
    ContractStatus,
    EntityType,
    RequestStatus,
)
from translation_marketplace.domain.events import DomainEvent
from translation_marketplace.domain.exceptions import (
    ConcurrentUpdateError,
    DuplicateEntityError,
    InvalidTransitionError,
    MarketplaceError,
    NotFoundError,
    StoreUnavailableError,
)
from translation_marketplace.domain.permissions import (
    Actor,
    Ownership,
    PermissionEvaluator,
)
from translation_marketplace.domain.state_machine import (
    REQUEST_PROGRESSION,
    REQUEST_PROGRESSION_EVENTS,
    machine_for,
)
from translation_marketplace.infrastructure.database.orm_models import (
    Contract,
    Escrow,
    TranslationRequest,
    WorkflowEvent,
)
from translation_marketplace.infrastructure.database.repositories import (
    ApplicationRepository,
    ContractRepository,
    EscrowRepository,
    EventRepository,
    MilestoneRepository,
    RequestRepository,
)
from translation_marketplace.infrastructure.locks import (
    KeyedLockRegistry,
    get_lock_registry,
)
from translation_marketplace.logging_config import get_logger
from translation_marketplace.notifications.gateway import (
    NotificationGateway,
    get_notification_gateway,
)

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from translation_marketplace.infrastructure.database.orm_models import Base

logger = get_logger(__name__)

T = TypeVar("T")

Scope = Hashable | Callable[[], Awaitable[Hashable]]


def utcnow() -> datetime:
    return datetime.now(UTC)


class WorkflowServiceBase:
    """Base class for the per-entity workflow services."""

    entity_type: EntityType

    def __init__(
        self,
        session: AsyncSession,
        *,
        gateway: NotificationGateway | None = None,
        evaluator: PermissionEvaluator | None = None,
        locks: KeyedLockRegistry | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._session = session
        self._gateway = gateway or get_notification_gateway()
        self._evaluator = evaluator or PermissionEvaluator()
        self._locks = locks or get_lock_registry()
        self._settings = settings or get_settings()

        self._request_repo = RequestRepository(session)
        self._application_repo = ApplicationRepository(session)
        self._contract_repo = ContractRepository(session)
        self._milestone_repo = MilestoneRepository(session)
        self._escrow_repo = EscrowRepository(session)
        self._event_repo = EventRepository(session)

        self._pending_events: list[DomainEvent] = []

    # ------------------------------------------------------------------
    # Transaction template
    # ------------------------------------------------------------------

    async def _execute(self, scope: Scope, operation: Callable[[], Awaitable[T]]) -> T:
        """Run a mutating operation serialized on `scope`, then publish its events."""
        if callable(scope):
            key = await self._transaction(scope)
        else:
            key = scope

        retries = self._settings.workflow_conflict_retries
        attempt = 0
        async with self._locks.hold(key):
            while True:
                attempt += 1
                self._pending_events = []
                try:
                    result = await self._transaction(operation)
                except ConcurrentUpdateError:
                    if attempt > retries:
                        raise
                    logger.warning(
                        "workflow.conflict_retry",
                        entity_type=str(self.entity_type),
                        attempt=attempt,
                    )
                    continue

                events, self._pending_events = self._pending_events, []
                self._gateway.publish(events)
                return result

    async def _read(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run a read-only operation with the same timeout and error handling."""
        return await self._transaction(operation)

    async def _transaction(self, operation: Callable[[], Awaitable[T]]) -> T:
        try:
            async with asyncio.timeout(self._settings.store_timeout_seconds):
                async with self._session.begin_nested():
                    result = await operation()
                await self._session.commit()
            return result
        except MarketplaceError:
            await self._end_transaction()
            raise
        except StaleDataError as err:
            await self._end_transaction()
            raise ConcurrentUpdateError(str(err)) from err
        except IntegrityError as err:
            await self._end_transaction()
            raise DuplicateEntityError(str(self.entity_type), str(err.orig)) from err
        except (OperationalError, InterfaceError, PoolTimeoutError, TimeoutError) as err:
            await self._session.rollback()
            logger.error("workflow.store_unavailable", error=str(err))
            raise StoreUnavailableError(str(err) or type(err).__name__) from err
        except DBAPIError as err:
            await self._session.rollback()
            if err.connection_invalidated:
                raise StoreUnavailableError(str(err)) from err
            raise

    async def _end_transaction(self) -> None:
        """Close the outer transaction once the operation's savepoint is rolled back.

        Only rows touched inside the savepoint are expired, so entities the
        caller got from earlier operations stay loaded.
        """
        await self._session.commit()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def _get_or_raise(
        self,
        repo: Any,
        entity_type: EntityType,
        entity_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> Any:
        entity = await repo.get_by_id(entity_id, for_update=for_update)
        if entity is None:
            raise NotFoundError(str(entity_type), str(entity_id))
        return entity

    async def _get_request(
        self, request_id: uuid.UUID, *, for_update: bool = False
    ) -> TranslationRequest:
        return await self._get_or_raise(
            self._request_repo, EntityType.REQUEST, request_id, for_update=for_update
        )

    async def _get_contract(
        self, contract_id: uuid.UUID, *, for_update: bool = False
    ) -> Contract:
        return await self._get_or_raise(
            self._contract_repo, EntityType.CONTRACT, contract_id, for_update=for_update
        )

    def _require_visible(
        self, actor: Actor, entity_type: EntityType, entity_id: uuid.UUID, ownership: Ownership
    ) -> None:
        # Entities the actor cannot see are reported as missing.
        if not self._evaluator.can_view(actor, ownership):
            raise NotFoundError(str(entity_type), str(entity_id))

    # ------------------------------------------------------------------
    # Ownership
    # ------------------------------------------------------------------

    @staticmethod
    def _request_ownership(request: TranslationRequest) -> Ownership:
        return Ownership(
            requester_id=request.requester_id,
            public=request.status != RequestStatus.DRAFT,
        )

    @staticmethod
    def _contract_ownership(contract: Contract) -> Ownership:
        return Ownership(contract.requester_id, contract.translator_id)

    @staticmethod
    def _escrow_ownership(escrow: Escrow, contract: Contract | None) -> Ownership:
        return Ownership(
            escrow.requester_id,
            contract.translator_id if contract is not None else None,
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _next_status(
        self,
        entity_type: EntityType,
        current_status: str,
        event_name: str,
        action: Action | str,
        invariant: str = "legal_transition",
    ) -> str:
        """Consult the entity's state machine; raise InvalidTransitionError if illegal."""
        sm = machine_for(entity_type, current_status)
        try:
            getattr(sm, event_name)()
        except TransitionNotAllowed as err:
            raise InvalidTransitionError(
                str(entity_type), current_status, str(action), invariant
            ) from err
        return sm.status

    async def _advance(
        self,
        entity: Base,
        entity_type: EntityType,
        event_name: str,
        *,
        actor: Actor,
        action: Action | str,
        request_id: uuid.UUID | None,
        audience: set[str],
        metadata: dict | None = None,
        changes: dict[str, Any] | None = None,
    ) -> str:
        """Fire a state machine event on a loaded row, persist it, and record it.

        `changes` are applied to the row only once the transition is legal.
        """
        old_status = entity.status
        new_status = self._next_status(entity_type, old_status, event_name, action)
        for field, value in (changes or {}).items():
            setattr(entity, field, value)
        entity.status = new_status
        await self._session.flush()
        await self._record(
            entity,
            entity_type,
            action=action,
            from_status=old_status,
            actor=actor,
            request_id=request_id,
            audience=audience,
            metadata=metadata,
        )
        return entity.status

    async def _record(
        self,
        entity: Base,
        entity_type: EntityType,
        *,
        action: Action | str,
        from_status: str | None,
        actor: Actor,
        request_id: uuid.UUID | None,
        audience: set[str],
        metadata: dict | None = None,
        to_status: str | None = None,
    ) -> WorkflowEvent:
        """Append the audit row and queue the domain event for publication."""
        to_status = to_status or entity.status
        evt = await self._event_repo.record(
            WorkflowEvent(
                entity_type=str(entity_type),
                entity_id=entity.id,
                request_id=request_id,
                action=str(action),
                from_status=from_status,
                to_status=to_status,
                actor_id=actor.id,
                entity_version=entity.version,
                metadata_json=metadata,
            )
        )
        self._pending_events.append(
            DomainEvent(
                entity_type=str(entity_type),
                entity_id=str(entity.id),
                from_status=from_status,
                to_status=to_status,
                actor_id=actor.id,
                timestamp=evt.created_at,
                action=str(action),
                request_id=str(request_id) if request_id else None,
                version=entity.version,
                audience=frozenset(a for a in audience if a),
            )
        )
        logger.info(
            f"workflow.{entity_type}_{action}",
            entity_id=str(entity.id),
            from_status=from_status,
            to_status=to_status,
            request_id=str(request_id) if request_id else None,
        )
        return evt

    def _allowed_actions(
        self,
        actor: Actor,
        entity_type: EntityType,
        status: str,
        ownership: Ownership,
        event_actions: dict[str, Action],
    ) -> list[str]:
        """State-machine events from `status` the actor is permitted to fire."""
        actions: list[str] = []
        for event_name in machine_for(entity_type, status).get_allowed_events():
            action = event_actions.get(event_name)
            if action is None or str(action) in actions:
                continue
            if self._evaluator.can(actor, action, ownership):
                actions.append(str(action))
        return actions

    # ------------------------------------------------------------------
    # Request status derivation
    # ------------------------------------------------------------------

    async def _derive_request_status(self, request: TranslationRequest) -> RequestStatus:
        current = RequestStatus(request.status)
        if current in (RequestStatus.DRAFT, RequestStatus.CANCELLED, RequestStatus.COMPLETED):
            return current

        contracts = [
            c
            for c in await self._contract_repo.list_by_request(request.id)
            if c.status != ContractStatus.TERMINATED
        ]
        if contracts and all(c.status == ContractStatus.COMPLETED for c in contracts):
            return RequestStatus.COMPLETED
        if contracts and all(c.fully_signed for c in contracts):
            return RequestStatus.IN_PROGRESS
        if any(c.status != ContractStatus.DRAFT for c in contracts):
            return RequestStatus.CONTRACTED
        if await self._application_repo.count_accepted(request.id) > 0:
            return RequestStatus.REVIEWING
        return RequestStatus.OPEN

    async def _sync_request_status(self, request: TranslationRequest, actor: Actor) -> None:
        """Advance a request to its derived status, one recorded step at a time.

        Derived statuses never move backwards.
        """
        target = await self._derive_request_status(request)
        position = REQUEST_PROGRESSION.index
        if request.status == RequestStatus.CANCELLED:
            return
        while position(RequestStatus(request.status)) < position(target):
            next_status = REQUEST_PROGRESSION[position(RequestStatus(request.status)) + 1]
            await self._advance(
                request,
                EntityType.REQUEST,
                REQUEST_PROGRESSION_EVENTS[next_status],
                actor=actor,
                action=REQUEST_PROGRESSION_EVENTS[next_status],
                request_id=request.id,
                audience={request.requester_id},
            )
