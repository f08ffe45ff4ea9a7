"""Request Service: creating, publishing, cancelling and reading translation requests.

Statuses past `open` are never set directly; they are derived from the
request's applications and contracts by the other services.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from translation_marketplace.domain.enums import (
    Action,
    ApplicationStatus,
    ContractStatus,
    EntityType,
    RequestStatus,
)
from translation_marketplace.domain.exceptions import (
    DuplicateEntityError,
    InvalidInputError,
    InvalidTransitionError,
)
from translation_marketplace.domain.permissions import Ownership
from translation_marketplace.infrastructure.database.orm_models import (
    TranslationRequest,
    WorkflowEvent,
)
from translation_marketplace.logging_config import get_logger
from translation_marketplace.services.base import WorkflowServiceBase

if TYPE_CHECKING:
    import uuid
    from datetime import date

    from translation_marketplace.domain.permissions import Actor

logger = get_logger(__name__)

_REQUEST_EVENT_ACTIONS = {
    "publish": Action.PUBLISH_REQUEST,
    "cancel": Action.CANCEL_REQUEST,
}


class RequestService(WorkflowServiceBase):
    """Manages the translation request lifecycle."""

    entity_type = EntityType.REQUEST

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_request(
        self,
        actor: Actor,
        *,
        book_id: str,
        source_language: str,
        target_language: str,
        budget_cents: int,
        deadline: date | None = None,
        title: str | None = None,
        description: str | None = None,
        publish: bool = True,
    ) -> TranslationRequest:
        """Create a request in DRAFT, published to OPEN unless publish=False."""
        self._evaluator.require(
            actor, Action.CREATE_REQUEST, Ownership(actor.id), "request"
        )
        if budget_cents <= 0:
            raise InvalidInputError("budget_cents", "must be greater than zero")

        async def operation() -> TranslationRequest:
            existing = await self._request_repo.get_active_for_book(actor.id, book_id)
            if existing is not None:
                raise DuplicateEntityError(
                    "request",
                    f"requester {actor.id} already has request {existing.id} "
                    f"for book {book_id}",
                )
            request = await self._request_repo.add(
                TranslationRequest(
                    requester_id=actor.id,
                    book_id=book_id,
                    title=title,
                    description=description,
                    source_language=source_language,
                    target_language=target_language,
                    budget_cents=budget_cents,
                    deadline=deadline,
                    status=RequestStatus.DRAFT.value,
                )
            )
            await self._record(
                request,
                EntityType.REQUEST,
                action=Action.CREATE_REQUEST,
                from_status=None,
                actor=actor,
                request_id=request.id,
                audience={actor.id},
                metadata={"book_id": book_id, "budget_cents": budget_cents},
            )
            if publish:
                await self._advance(
                    request,
                    EntityType.REQUEST,
                    "publish",
                    actor=actor,
                    action=Action.PUBLISH_REQUEST,
                    request_id=request.id,
                    audience={actor.id},
                )
            return request

        return await self._execute(("book", actor.id, book_id), operation)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def publish_request(self, actor: Actor, request_id: uuid.UUID) -> TranslationRequest:
        """Move a draft request to OPEN so translators can apply."""

        async def operation() -> TranslationRequest:
            request = await self._get_request(request_id, for_update=True)
            self._evaluator.require(
                actor, Action.PUBLISH_REQUEST, self._request_ownership(request), "request"
            )
            await self._advance(
                request,
                EntityType.REQUEST,
                "publish",
                actor=actor,
                action=Action.PUBLISH_REQUEST,
                request_id=request.id,
                audience={request.requester_id},
            )
            return request

        return await self._execute(request_id, operation)

    async def cancel_request(
        self, actor: Actor, request_id: uuid.UUID, reason: str | None = None
    ) -> TranslationRequest:
        """Cancel a request that has no signed contract yet.

        Pending applications are rejected and unsigned contracts terminated
        in the same transaction.
        """

        async def operation() -> TranslationRequest:
            request = await self._get_request(request_id, for_update=True)
            self._evaluator.require(
                actor, Action.CANCEL_REQUEST, self._request_ownership(request), "request"
            )
            contracts = await self._contract_repo.list_by_request(request.id)
            if any(
                c.status in (ContractStatus.SIGNED, ContractStatus.COMPLETED)
                for c in contracts
            ):
                raise InvalidTransitionError(
                    "request",
                    request.status,
                    str(Action.CANCEL_REQUEST),
                    invariant="no_signed_contract",
                    detail="Cannot cancel a request with a signed contract",
                )
            # Status first: a terminal request fails here before any cascade.
            self._next_status(
                EntityType.REQUEST, request.status, "cancel", Action.CANCEL_REQUEST
            )

            pending = await self._application_repo.list_by_request(
                request.id, ApplicationStatus.PENDING
            )
            for application in pending:
                await self._advance(
                    application,
                    EntityType.APPLICATION,
                    "reject",
                    actor=actor,
                    action=Action.REJECT_APPLICATION,
                    request_id=request.id,
                    audience={request.requester_id, application.translator_id},
                    metadata={"reason": "request_cancelled"},
                )
            for contract in contracts:
                if contract.status == ContractStatus.TERMINATED:
                    continue
                await self._advance(
                    contract,
                    EntityType.CONTRACT,
                    "terminate",
                    actor=actor,
                    action=Action.TERMINATE_CONTRACT,
                    request_id=request.id,
                    audience={contract.requester_id, contract.translator_id},
                    metadata={"reason": "request_cancelled"},
                )
            await self._advance(
                request,
                EntityType.REQUEST,
                "cancel",
                actor=actor,
                action=Action.CANCEL_REQUEST,
                request_id=request.id,
                audience={request.requester_id}
                | {a.translator_id for a in pending}
                | {c.translator_id for c in contracts},
                metadata={"reason": reason} if reason else None,
            )
            return request

        return await self._execute(request_id, operation)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_request(self, actor: Actor, request_id: uuid.UUID) -> TranslationRequest:
        async def operation() -> TranslationRequest:
            request = await self._get_request(request_id)
            self._require_visible(
                actor, EntityType.REQUEST, request_id, self._request_ownership(request)
            )
            return request

        return await self._read(operation)

    async def list_requests(
        self, actor: Actor, status: RequestStatus | None = None
    ) -> list[TranslationRequest]:
        """Published requests plus the actor's own drafts."""
        return await self._read(lambda: self._request_repo.list_visible(actor.id, status))

    async def get_events(self, actor: Actor, request_id: uuid.UUID) -> list[WorkflowEvent]:
        """Audit trail of the request and every entity under it.

        Requesters and system see everything; anyone else sees the events of
        the request itself and of the entities they are a party to.
        """

        async def operation() -> list[WorkflowEvent]:
            request = await self._get_request(request_id)
            self._require_visible(
                actor, EntityType.REQUEST, request_id, self._request_ownership(request)
            )
            events = await self._event_repo.list_by_request(request_id)
            if actor.is_system or actor.id == request.requester_id:
                return events
            applications = await self._application_repo.list_by_request(request_id)
            mine = {a.id for a in applications if a.translator_id == actor.id}
            for contract in await self._contract_repo.list_by_request(request_id):
                if contract.translator_id == actor.id:
                    mine.add(contract.id)
                    mine.update(
                        m.id for m in await self._milestone_repo.list_by_contract(contract.id)
                    )
                    escrow = await self._escrow_repo.get_by_contract(contract.id)
                    if escrow is not None:
                        mine.add(escrow.id)
            return [
                e
                for e in events
                if e.entity_type == EntityType.REQUEST or e.entity_id in mine
            ]

        return await self._read(operation)

    async def available_actions(self, actor: Actor, request: TranslationRequest) -> list[str]:
        async def operation() -> list[str]:
            actions = self._allowed_actions(
                actor,
                EntityType.REQUEST,
                request.status,
                self._request_ownership(request),
                _REQUEST_EVENT_ACTIONS,
            )
            if str(Action.CANCEL_REQUEST) in actions:
                contracts = await self._contract_repo.list_by_request(request.id)
                if any(c.fully_signed for c in contracts):
                    actions.remove(str(Action.CANCEL_REQUEST))
            if request.status == RequestStatus.OPEN and self._evaluator.can(
                actor, Action.CREATE_APPLICATION, self._request_ownership(request)
            ):
                existing = await self._application_repo.get_active(request.id, actor.id)
                if existing is None:
                    actions.append(str(Action.CREATE_APPLICATION))
            return actions

        return await self._read(operation)
