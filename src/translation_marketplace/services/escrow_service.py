"""Escrow Service: funds held against contracts.

A contract's escrow is opened automatically (unfunded, for the contract
total) when the contract becomes signed. Requesters may also open standalone
escrows. Funding and release are explicit actions; release may also be
triggered by the payment system actor.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from translation_marketplace.domain.enums import (
    Action,
    EntityType,
    EscrowStatus,
)
from translation_marketplace.domain.exceptions import (
    DuplicateEntityError,
    InvalidInputError,
    NotFoundError,
)
from translation_marketplace.domain.permissions import Ownership
from translation_marketplace.infrastructure.database.orm_models import (
    Contract,
    Escrow,
)
from translation_marketplace.logging_config import get_logger
from translation_marketplace.services.base import WorkflowServiceBase, utcnow

if TYPE_CHECKING:
    import uuid
    from collections.abc import Hashable

    from translation_marketplace.domain.permissions import Actor

logger = get_logger(__name__)

_ESCROW_EVENT_ACTIONS = {
    "fund": Action.FUND_ESCROW,
    "release": Action.RELEASE_ESCROW,
}


class EscrowService(WorkflowServiceBase):
    """Manages escrow accounts."""

    entity_type = EntityType.ESCROW

    @staticmethod
    def _audience(escrow: Escrow, contract: Contract | None) -> set[str]:
        audience = {escrow.requester_id}
        if contract is not None:
            audience.add(contract.translator_id)
        return audience

    async def _scope(self, escrow_id: uuid.UUID) -> Hashable:
        escrow = await self._get_escrow(escrow_id)
        if escrow.contract_id is None:
            return escrow.id
        contract = await self._get_contract(escrow.contract_id)
        return contract.request_id

    async def _get_escrow(self, escrow_id: uuid.UUID, *, for_update: bool = False) -> Escrow:
        return await self._get_or_raise(
            self._escrow_repo, EntityType.ESCROW, escrow_id, for_update=for_update
        )

    async def _load_for_update(self, escrow_id: uuid.UUID) -> tuple[Escrow, Contract | None]:
        escrow = await self._get_escrow(escrow_id)
        contract = None
        if escrow.contract_id is not None:
            contract = await self._get_contract(escrow.contract_id)
            await self._get_request(contract.request_id, for_update=True)
        escrow = await self._get_escrow(escrow_id, for_update=True)
        return escrow, contract

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_escrow(
        self,
        actor: Actor,
        *,
        amount_cents: int,
        contract_id: uuid.UUID | None = None,
    ) -> Escrow:
        """Open an UNFUNDED escrow, standalone or for a contract without one."""
        if amount_cents <= 0:
            raise InvalidInputError("amount_cents", "must be greater than zero")

        async def scope() -> Hashable:
            if contract_id is None:
                return ("escrow", actor.id)
            contract = await self._get_contract(contract_id)
            return contract.request_id

        async def operation() -> Escrow:
            contract = None
            request_id = None
            ownership = Ownership(actor.id)
            if contract_id is not None:
                contract = await self._get_contract(contract_id)
                await self._get_request(contract.request_id, for_update=True)
                request_id = contract.request_id
                ownership = self._contract_ownership(contract)
            self._evaluator.require(actor, Action.CREATE_ESCROW, ownership, "escrow")

            if contract is not None:
                existing = await self._escrow_repo.get_by_contract(contract.id)
                if existing is not None:
                    raise DuplicateEntityError(
                        "escrow", f"contract {contract.id} already has escrow {existing.id}"
                    )
            escrow = await self._escrow_repo.add(
                Escrow(
                    contract_id=contract_id,
                    requester_id=actor.id,
                    amount_cents=amount_cents,
                    status=EscrowStatus.UNFUNDED.value,
                )
            )
            await self._record(
                escrow,
                EntityType.ESCROW,
                action=Action.CREATE_ESCROW,
                from_status=None,
                actor=actor,
                request_id=request_id,
                audience=self._audience(escrow, contract),
                metadata={"amount_cents": amount_cents},
            )
            return escrow

        return await self._execute(scope, operation)

    # ------------------------------------------------------------------
    # Funding and release
    # ------------------------------------------------------------------

    async def fund_escrow(self, actor: Actor, escrow_id: uuid.UUID) -> Escrow:
        """UNFUNDED -> FUNDED. Funding twice fails and changes nothing."""
        return await self._transition(actor, escrow_id, "fund", Action.FUND_ESCROW)

    async def release_escrow(self, actor: Actor, escrow_id: uuid.UUID) -> Escrow:
        """FUNDED -> RELEASED, by the owning requester or the system actor."""
        return await self._transition(actor, escrow_id, "release", Action.RELEASE_ESCROW)

    async def _transition(
        self,
        actor: Actor,
        escrow_id: uuid.UUID,
        event_name: str,
        action: Action,
    ) -> Escrow:
        async def operation() -> Escrow:
            escrow, contract = await self._load_for_update(escrow_id)
            self._evaluator.require(
                actor, action, self._escrow_ownership(escrow, contract), "escrow"
            )
            stamp = "funded_at" if action == Action.FUND_ESCROW else "released_at"
            await self._advance(
                escrow,
                EntityType.ESCROW,
                event_name,
                actor=actor,
                action=action,
                request_id=contract.request_id if contract is not None else None,
                audience=self._audience(escrow, contract),
                metadata={"amount_cents": escrow.amount_cents},
                changes={stamp: utcnow()},
            )
            return escrow

        return await self._execute(lambda: self._scope(escrow_id), operation)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _contract_of(self, escrow: Escrow) -> Contract | None:
        if escrow.contract_id is None:
            return None
        return await self._get_contract(escrow.contract_id)

    async def get_escrow(self, actor: Actor, escrow_id: uuid.UUID) -> Escrow:
        async def operation() -> Escrow:
            escrow = await self._get_escrow(escrow_id)
            contract = await self._contract_of(escrow)
            self._require_visible(
                actor, EntityType.ESCROW, escrow_id, self._escrow_ownership(escrow, contract)
            )
            return escrow

        return await self._read(operation)

    async def get_contract_escrow(self, actor: Actor, contract_id: uuid.UUID) -> Escrow:
        async def operation() -> Escrow:
            contract = await self._get_contract(contract_id)
            self._require_visible(
                actor, EntityType.CONTRACT, contract_id, self._contract_ownership(contract)
            )
            escrow = await self._escrow_repo.get_by_contract(contract_id)
            if escrow is None:
                raise NotFoundError("escrow", f"contract={contract_id}")
            return escrow

        return await self._read(operation)

    async def list_escrows(self, actor: Actor) -> list[Escrow]:
        """Escrows the actor owns, plus those of contracts they translate."""

        async def operation() -> list[Escrow]:
            escrows = await self._escrow_repo.list_by_requester(actor.id)
            seen = {e.id for e in escrows}
            for contract in await self._contract_repo.list_for_party(actor.id):
                if contract.translator_id != actor.id:
                    continue
                escrow = await self._escrow_repo.get_by_contract(contract.id)
                if escrow is not None and escrow.id not in seen:
                    escrows.append(escrow)
                    seen.add(escrow.id)
            return escrows

        return await self._read(operation)

    async def available_actions(self, actor: Actor, escrow: Escrow) -> list[str]:
        async def operation() -> list[str]:
            contract = await self._contract_of(escrow)
            return self._allowed_actions(
                actor,
                EntityType.ESCROW,
                escrow.status,
                self._escrow_ownership(escrow, contract),
                _ESCROW_EVENT_ACTIONS,
            )

        return await self._read(operation)
