"""Application Service: translator bids and their acceptance into contracts."""

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
    NotFoundError,
)
from translation_marketplace.domain.permissions import Ownership
from translation_marketplace.infrastructure.database.orm_models import (
    Application,
    Contract,
    TranslationRequest,
)
from translation_marketplace.logging_config import get_logger
from translation_marketplace.services.base import WorkflowServiceBase

if TYPE_CHECKING:
    import uuid

    from translation_marketplace.domain.permissions import Actor

logger = get_logger(__name__)

_ACCEPTING_STATUSES = (RequestStatus.OPEN, RequestStatus.REVIEWING)

_APPLICATION_EVENT_ACTIONS = {
    "accept": Action.ACCEPT_APPLICATION,
    "reject": Action.REJECT_APPLICATION,
    "withdraw": Action.WITHDRAW_APPLICATION,
}


class ApplicationService(WorkflowServiceBase):
    """Manages applications from submission to acceptance."""

    entity_type = EntityType.APPLICATION

    @staticmethod
    def _ownership(application: Application, request: TranslationRequest) -> Ownership:
        return Ownership(request.requester_id, application.translator_id)

    async def _scope(self, application_id: uuid.UUID) -> uuid.UUID:
        application = await self._get_or_raise(
            self._application_repo, EntityType.APPLICATION, application_id
        )
        return application.request_id

    async def _load_for_update(
        self, application_id: uuid.UUID
    ) -> tuple[Application, TranslationRequest]:
        # Parent row first, so every operation takes row locks in the same order.
        application = await self._get_or_raise(
            self._application_repo, EntityType.APPLICATION, application_id
        )
        request = await self._get_request(application.request_id, for_update=True)
        application = await self._application_repo.get_by_id(application_id, for_update=True)
        return application, request

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def create_application(
        self,
        actor: Actor,
        request_id: uuid.UUID,
        *,
        motivation: str | None = None,
        proposed_rate_cents: int | None = None,
    ) -> Application:
        """Submit a PENDING application on an OPEN request."""
        if proposed_rate_cents is not None and proposed_rate_cents <= 0:
            raise InvalidInputError("proposed_rate_cents", "must be greater than zero")

        async def operation() -> Application:
            request = await self._get_request(request_id, for_update=True)
            ownership = self._request_ownership(request)
            self._require_visible(actor, EntityType.REQUEST, request_id, ownership)
            self._evaluator.require(actor, Action.CREATE_APPLICATION, ownership, "request")

            if request.status != RequestStatus.OPEN:
                raise InvalidTransitionError(
                    "request",
                    request.status,
                    str(Action.CREATE_APPLICATION),
                    invariant="request_open",
                    detail=f"Request is {request.status}, applications need an open request",
                )
            existing = await self._application_repo.get_active(request.id, actor.id)
            if existing is not None:
                raise DuplicateEntityError(
                    "application",
                    f"translator {actor.id} already applied to request {request.id}",
                )

            application = await self._application_repo.add(
                Application(
                    request_id=request.id,
                    translator_id=actor.id,
                    motivation=motivation,
                    proposed_rate_cents=proposed_rate_cents,
                    status=ApplicationStatus.PENDING.value,
                )
            )
            await self._record(
                application,
                EntityType.APPLICATION,
                action=Action.CREATE_APPLICATION,
                from_status=None,
                actor=actor,
                request_id=request.id,
                audience={request.requester_id, actor.id},
                metadata={"proposed_rate_cents": proposed_rate_cents},
            )
            return application

        return await self._execute(request_id, operation)

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    async def accept_application(
        self,
        actor: Actor,
        application_id: uuid.UUID,
        *,
        total_amount_cents: int | None = None,
        assigned_pages: list[int] | None = None,
    ) -> tuple[Application, Contract]:
        """Accept a pending application and open a DRAFT contract for it.

        Other applications on the request are left untouched; every accepted
        application gets its own contract.
        """
        if total_amount_cents is not None and total_amount_cents <= 0:
            raise InvalidInputError("total_amount_cents", "must be greater than zero")

        async def operation() -> tuple[Application, Contract]:
            application, request = await self._load_for_update(application_id)
            self._evaluator.require(
                actor,
                Action.ACCEPT_APPLICATION,
                self._ownership(application, request),
                "application",
            )
            if request.status not in _ACCEPTING_STATUSES:
                raise InvalidTransitionError(
                    "application",
                    application.status,
                    str(Action.ACCEPT_APPLICATION),
                    invariant="request_accepting_applications",
                    detail=f"Request is {request.status}, cannot accept applications",
                )
            audience = {request.requester_id, application.translator_id}
            await self._advance(
                application,
                EntityType.APPLICATION,
                "accept",
                actor=actor,
                action=Action.ACCEPT_APPLICATION,
                request_id=request.id,
                audience=audience,
            )

            amount = (
                total_amount_cents
                or application.proposed_rate_cents
                or request.budget_cents
            )
            contract = await self._contract_repo.add(
                Contract(
                    request_id=request.id,
                    application_id=application.id,
                    requester_id=request.requester_id,
                    translator_id=application.translator_id,
                    total_amount_cents=amount,
                    assigned_pages=assigned_pages,
                    requester_signed=False,
                    translator_signed=False,
                    status=ContractStatus.DRAFT.value,
                )
            )
            await self._record(
                contract,
                EntityType.CONTRACT,
                action="create",
                from_status=None,
                actor=actor,
                request_id=request.id,
                audience=audience,
                metadata={
                    "application_id": str(application.id),
                    "total_amount_cents": amount,
                },
            )
            await self._sync_request_status(request, actor)
            return application, contract

        return await self._execute(lambda: self._scope(application_id), operation)

    async def reject_application(self, actor: Actor, application_id: uuid.UUID) -> Application:
        return await self._decide(
            actor, application_id, "reject", Action.REJECT_APPLICATION
        )

    async def withdraw_application(self, actor: Actor, application_id: uuid.UUID) -> Application:
        """The applicant pulls a pending application."""
        return await self._decide(
            actor, application_id, "withdraw", Action.WITHDRAW_APPLICATION
        )

    async def _decide(
        self,
        actor: Actor,
        application_id: uuid.UUID,
        event_name: str,
        action: Action,
    ) -> Application:
        async def operation() -> Application:
            application, request = await self._load_for_update(application_id)
            self._evaluator.require(
                actor, action, self._ownership(application, request), "application"
            )
            await self._advance(
                application,
                EntityType.APPLICATION,
                event_name,
                actor=actor,
                action=action,
                request_id=request.id,
                audience={request.requester_id, application.translator_id},
            )
            return application

        return await self._execute(lambda: self._scope(application_id), operation)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_application(self, actor: Actor, application_id: uuid.UUID) -> Application:
        async def operation() -> Application:
            application = await self._get_or_raise(
                self._application_repo, EntityType.APPLICATION, application_id
            )
            request = await self._get_request(application.request_id)
            self._require_visible(
                actor,
                EntityType.APPLICATION,
                application_id,
                self._ownership(application, request),
            )
            return application

        return await self._read(operation)

    async def list_applications(
        self,
        actor: Actor,
        request_id: uuid.UUID,
        status: ApplicationStatus | None = None,
    ) -> list[Application]:
        """All applications for the request owner; only their own for a translator."""

        async def operation() -> list[Application]:
            request = await self._get_request(request_id)
            self._require_visible(
                actor, EntityType.REQUEST, request_id, self._request_ownership(request)
            )
            applications = await self._application_repo.list_by_request(request_id, status)
            return [
                a
                for a in applications
                if self._evaluator.can_view(actor, self._ownership(a, request))
            ]

        return await self._read(operation)

    async def get_contract_for(self, actor: Actor, application_id: uuid.UUID) -> Contract:
        async def operation() -> Contract:
            contract = await self._contract_repo.get_by_application(application_id)
            if contract is None or not self._evaluator.can_view(
                actor, self._contract_ownership(contract)
            ):
                raise NotFoundError("contract", f"application={application_id}")
            return contract

        return await self._read(operation)

    async def available_actions(self, actor: Actor, application: Application) -> list[str]:
        async def operation() -> list[str]:
            request = await self._get_request(application.request_id)
            actions = self._allowed_actions(
                actor,
                EntityType.APPLICATION,
                application.status,
                self._ownership(application, request),
                _APPLICATION_EVENT_ACTIONS,
            )
            if request.status not in _ACCEPTING_STATUSES and "accept" in actions:
                actions.remove("accept")
            return actions

        return await self._read(operation)
