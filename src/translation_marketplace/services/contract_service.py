"""Contract Service: signatures, termination and contract reads.

Signing is order-independent. The first signature moves the contract to
`pending_<other party>`, the second to `signed`; a signed contract gets an
unfunded escrow for its total amount.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from translation_marketplace.domain.enums import (
    Action,
    ActorRole,
    ContractStatus,
    EntityType,
    EscrowStatus,
)
from translation_marketplace.domain.exceptions import InvalidTransitionError
from translation_marketplace.infrastructure.database.orm_models import (
    Contract,
    Escrow,
    TranslationRequest,
)
from translation_marketplace.logging_config import get_logger
from translation_marketplace.services.base import WorkflowServiceBase, utcnow

if TYPE_CHECKING:
    import uuid

    from translation_marketplace.domain.permissions import Actor

logger = get_logger(__name__)

_CONTRACT_EVENT_ACTIONS = {
    "terminate": Action.TERMINATE_CONTRACT,
}


class ContractService(WorkflowServiceBase):
    """Manages contracts from draft to completion."""

    entity_type = EntityType.CONTRACT

    async def _scope(self, contract_id: uuid.UUID) -> uuid.UUID:
        contract = await self._get_contract(contract_id)
        return contract.request_id

    async def _load_for_update(
        self, contract_id: uuid.UUID
    ) -> tuple[Contract, TranslationRequest]:
        contract = await self._get_contract(contract_id)
        request = await self._get_request(contract.request_id, for_update=True)
        contract = await self._get_contract(contract_id, for_update=True)
        return contract, request

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------

    async def sign_contract(self, actor: Actor, contract_id: uuid.UUID) -> Contract:
        """Record the caller's signature in their own slot.

        Signing twice fails with InvalidTransitionError and changes nothing.
        """

        async def operation() -> Contract:
            contract, request = await self._load_for_update(contract_id)
            self._evaluator.require(
                actor, Action.SIGN_CONTRACT, self._contract_ownership(contract), "contract"
            )

            as_requester = actor.role == ActorRole.REQUESTER
            already_signed = (
                contract.requester_signed if as_requester else contract.translator_signed
            )
            if already_signed:
                raise InvalidTransitionError(
                    "contract",
                    contract.status,
                    str(Action.SIGN_CONTRACT),
                    invariant="not_already_signed",
                    detail=f"Contract already signed by the {actor.role}",
                )

            slot = "requester" if as_requester else "translator"
            await self._advance(
                contract,
                EntityType.CONTRACT,
                "sign_by_requester" if as_requester else "sign_by_translator",
                actor=actor,
                action=Action.SIGN_CONTRACT,
                request_id=request.id,
                audience={contract.requester_id, contract.translator_id},
                metadata={"slot": str(actor.role)},
                changes={f"{slot}_signed": True, f"{slot}_signature_date": utcnow()},
            )
            if contract.status == ContractStatus.SIGNED:
                await self._open_escrow(contract, actor)
            await self._sync_request_status(request, actor)
            return contract

        return await self._execute(lambda: self._scope(contract_id), operation)

    async def _open_escrow(self, contract: Contract, actor: Actor) -> Escrow | None:
        if await self._escrow_repo.get_by_contract(contract.id) is not None:
            return None
        escrow = await self._escrow_repo.add(
            Escrow(
                contract_id=contract.id,
                requester_id=contract.requester_id,
                amount_cents=contract.total_amount_cents,
                status=EscrowStatus.UNFUNDED.value,
            )
        )
        await self._record(
            escrow,
            EntityType.ESCROW,
            action=Action.CREATE_ESCROW,
            from_status=None,
            actor=actor,
            request_id=contract.request_id,
            audience={contract.requester_id, contract.translator_id},
            metadata={"amount_cents": escrow.amount_cents},
        )
        return escrow

    # ------------------------------------------------------------------
    # Termination
    # ------------------------------------------------------------------

    async def terminate_contract(
        self, actor: Actor, contract_id: uuid.UUID, reason: str | None = None
    ) -> Contract:
        """The requester abandons a contract before it is fully signed."""

        async def operation() -> Contract:
            contract, request = await self._load_for_update(contract_id)
            self._evaluator.require(
                actor,
                Action.TERMINATE_CONTRACT,
                self._contract_ownership(contract),
                "contract",
            )
            await self._advance(
                contract,
                EntityType.CONTRACT,
                "terminate",
                actor=actor,
                action=Action.TERMINATE_CONTRACT,
                request_id=request.id,
                audience={contract.requester_id, contract.translator_id},
                metadata={"reason": reason} if reason else None,
            )
            await self._sync_request_status(request, actor)
            return contract

        return await self._execute(lambda: self._scope(contract_id), operation)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_contract(self, actor: Actor, contract_id: uuid.UUID) -> Contract:
        async def operation() -> Contract:
            contract = await self._get_contract(contract_id)
            self._require_visible(
                actor, EntityType.CONTRACT, contract_id, self._contract_ownership(contract)
            )
            return contract

        return await self._read(operation)

    async def list_contracts(self, actor: Actor) -> list[Contract]:
        """Contracts the actor is a party to."""
        return await self._read(lambda: self._contract_repo.list_for_party(actor.id))

    async def list_request_contracts(
        self, actor: Actor, request_id: uuid.UUID
    ) -> list[Contract]:
        async def operation() -> list[Contract]:
            request = await self._get_request(request_id)
            self._require_visible(
                actor, EntityType.REQUEST, request_id, self._request_ownership(request)
            )
            contracts = await self._contract_repo.list_by_request(request_id)
            return [
                c
                for c in contracts
                if self._evaluator.can_view(actor, self._contract_ownership(c))
            ]

        return await self._read(operation)

    async def available_actions(self, actor: Actor, contract: Contract) -> list[str]:
        ownership = self._contract_ownership(contract)
        actions = self._allowed_actions(
            actor,
            EntityType.CONTRACT,
            contract.status,
            ownership,
            _CONTRACT_EVENT_ACTIONS,
        )
        if self._evaluator.can(actor, Action.SIGN_CONTRACT, ownership):
            as_requester = actor.role == ActorRole.REQUESTER
            event_name = "sign_by_requester" if as_requester else "sign_by_translator"
            signed = contract.requester_signed if as_requester else contract.translator_signed
            allowed = self._allowed_actions(
                actor,
                EntityType.CONTRACT,
                contract.status,
                ownership,
                {event_name: Action.SIGN_CONTRACT},
            )
            if allowed and not signed:
                actions.insert(0, str(Action.SIGN_CONTRACT))
        if contract.status == ContractStatus.SIGNED and self._evaluator.can(
            actor, Action.CREATE_MILESTONE, ownership
        ):
            actions.append(str(Action.CREATE_MILESTONE))
        return actions
