"""Milestone Service: defining, working and paying milestones of a signed contract.

Milestones of one contract are worked strictly in ordinal order: a milestone
may only be started once its predecessor (the highest lower ordinal still
present) has been paid. Paying the last milestone completes the contract,
and completing the last live contract completes the request.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from translation_marketplace.domain.enums import (
    Action,
    ContractStatus,
    EntityType,
    MilestoneStatus,
)
from translation_marketplace.domain.exceptions import (
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
)
from translation_marketplace.domain.permissions import Ownership
from translation_marketplace.infrastructure.database.orm_models import (
    Contract,
    Milestone,
    TranslationRequest,
)
from translation_marketplace.logging_config import get_logger
from translation_marketplace.services.base import WorkflowServiceBase, utcnow

if TYPE_CHECKING:
    import uuid

    from translation_marketplace.domain.permissions import Actor

logger = get_logger(__name__)

_MILESTONE_EVENT_ACTIONS = {
    "assign": Action.ASSIGN_MILESTONE,
    "start": Action.START_MILESTONE,
    "submit": Action.SUBMIT_MILESTONE,
    "request_changes": Action.REQUEST_CHANGES,
    "approve": Action.APPROVE_MILESTONE,
    "mark_paid": Action.MARK_MILESTONE_PAID,
}


class MilestoneService(WorkflowServiceBase):
    """Manages milestones from definition to payment."""

    entity_type = EntityType.MILESTONE

    @staticmethod
    def _ownership(milestone: Milestone, contract: Contract) -> Ownership:
        # Only the assigned translator acts on a milestone.
        return Ownership(contract.requester_id, milestone.translator_id)

    @staticmethod
    def _audience(contract: Contract) -> set[str]:
        return {contract.requester_id, contract.translator_id}

    async def _scope(self, milestone_id: uuid.UUID) -> uuid.UUID:
        request_id = await self._milestone_repo.get_request_id(milestone_id)
        if request_id is None:
            raise NotFoundError("milestone", str(milestone_id))
        return request_id

    async def _contract_scope(self, contract_id: uuid.UUID) -> uuid.UUID:
        contract = await self._get_contract(contract_id)
        return contract.request_id

    async def _get_milestone(
        self, milestone_id: uuid.UUID, *, for_update: bool = False
    ) -> Milestone:
        return await self._get_or_raise(
            self._milestone_repo, EntityType.MILESTONE, milestone_id, for_update=for_update
        )

    async def _load_for_update(
        self, milestone_id: uuid.UUID
    ) -> tuple[Milestone, Contract, TranslationRequest]:
        milestone = await self._get_milestone(milestone_id)
        contract = await self._get_contract(milestone.contract_id)
        request = await self._get_request(contract.request_id, for_update=True)
        contract = await self._get_contract(contract.id, for_update=True)
        milestone = await self._get_milestone(milestone_id, for_update=True)
        return milestone, contract, request

    def _require_pending(self, milestone: Milestone, action: Action) -> None:
        if milestone.status != MilestoneStatus.PENDING:
            raise InvalidTransitionError(
                "milestone",
                milestone.status,
                str(action),
                invariant="milestone_pending",
                detail=f"Only pending milestones can be changed (status: {milestone.status})",
            )

    # ------------------------------------------------------------------
    # Definition
    # ------------------------------------------------------------------

    async def create_milestone(
        self,
        actor: Actor,
        contract_id: uuid.UUID,
        *,
        title: str,
        amount_cents: int,
        description: str | None = None,
    ) -> Milestone:
        """Append a PENDING milestone with the next ordinal to a signed contract."""
        if amount_cents <= 0:
            raise InvalidInputError("amount_cents", "must be greater than zero")

        async def operation() -> Milestone:
            contract = await self._get_contract(contract_id)
            await self._get_request(contract.request_id, for_update=True)
            contract = await self._get_contract(contract_id, for_update=True)
            self._evaluator.require(
                actor,
                Action.CREATE_MILESTONE,
                self._contract_ownership(contract),
                "contract",
            )
            if contract.status != ContractStatus.SIGNED:
                raise InvalidTransitionError(
                    "contract",
                    contract.status,
                    str(Action.CREATE_MILESTONE),
                    invariant="contract_signed",
                    detail="Milestones can only be added to a signed contract",
                )
            ordinal = await self._milestone_repo.max_ordinal(contract.id) + 1
            milestone = await self._milestone_repo.add(
                Milestone(
                    contract_id=contract.id,
                    ordinal=ordinal,
                    title=title,
                    description=description,
                    amount_cents=amount_cents,
                    status=MilestoneStatus.PENDING.value,
                )
            )
            await self._record(
                milestone,
                EntityType.MILESTONE,
                action=Action.CREATE_MILESTONE,
                from_status=None,
                actor=actor,
                request_id=contract.request_id,
                audience=self._audience(contract),
                metadata={"ordinal": ordinal, "amount_cents": amount_cents},
            )
            return milestone

        return await self._execute(lambda: self._contract_scope(contract_id), operation)

    async def update_milestone(
        self,
        actor: Actor,
        milestone_id: uuid.UUID,
        *,
        title: str | None = None,
        description: str | None = None,
        amount_cents: int | None = None,
    ) -> Milestone:
        """Edit a milestone that has not been assigned yet."""
        if amount_cents is not None and amount_cents <= 0:
            raise InvalidInputError("amount_cents", "must be greater than zero")

        async def operation() -> Milestone:
            milestone, contract, request = await self._load_for_update(milestone_id)
            self._evaluator.require(
                actor,
                Action.UPDATE_MILESTONE,
                self._ownership(milestone, contract),
                "milestone",
            )
            self._require_pending(milestone, Action.UPDATE_MILESTONE)

            changes = {
                key: value
                for key, value in (
                    ("title", title),
                    ("description", description),
                    ("amount_cents", amount_cents),
                )
                if value is not None
            }
            for key, value in changes.items():
                setattr(milestone, key, value)
            await self._milestone_repo.save(milestone)
            await self._record(
                milestone,
                EntityType.MILESTONE,
                action=Action.UPDATE_MILESTONE,
                from_status=milestone.status,
                actor=actor,
                request_id=request.id,
                audience=self._audience(contract),
                metadata=changes,
            )
            return milestone

        return await self._execute(lambda: self._scope(milestone_id), operation)

    async def delete_milestone(self, actor: Actor, milestone_id: uuid.UUID) -> None:
        """Remove a pending milestone. Remaining ordinals are not renumbered."""

        async def operation() -> None:
            milestone, contract, request = await self._load_for_update(milestone_id)
            self._evaluator.require(
                actor,
                Action.DELETE_MILESTONE,
                self._ownership(milestone, contract),
                "milestone",
            )
            self._require_pending(milestone, Action.DELETE_MILESTONE)

            await self._record(
                milestone,
                EntityType.MILESTONE,
                action=Action.DELETE_MILESTONE,
                from_status=milestone.status,
                actor=actor,
                request_id=request.id,
                audience=self._audience(contract),
                metadata={"ordinal": milestone.ordinal},
            )
            await self._milestone_repo.delete(milestone)
            await self._complete_contract_if_paid(contract, request, actor)

        await self._execute(lambda: self._scope(milestone_id), operation)

    # ------------------------------------------------------------------
    # Work
    # ------------------------------------------------------------------

    async def assign_milestone(
        self,
        actor: Actor,
        milestone_id: uuid.UUID,
        translator_id: str | None = None,
    ) -> Milestone:
        """Assign a pending milestone to the contract's translator."""

        async def operation() -> Milestone:
            milestone, contract, request = await self._load_for_update(milestone_id)
            self._evaluator.require(
                actor,
                Action.ASSIGN_MILESTONE,
                self._ownership(milestone, contract),
                "milestone",
            )
            assignee = translator_id or contract.translator_id
            if assignee != contract.translator_id:
                raise InvalidTransitionError(
                    "milestone",
                    milestone.status,
                    str(Action.ASSIGN_MILESTONE),
                    invariant="assignee_is_contract_translator",
                    detail="Milestones can only be assigned to the contract's translator",
                )
            if milestone.translator_id is not None:
                raise InvalidTransitionError(
                    "milestone",
                    milestone.status,
                    str(Action.ASSIGN_MILESTONE),
                    invariant="milestone_unassigned",
                    detail="Milestone is already assigned",
                )
            await self._advance(
                milestone,
                EntityType.MILESTONE,
                "assign",
                actor=actor,
                action=Action.ASSIGN_MILESTONE,
                request_id=request.id,
                audience=self._audience(contract),
                metadata={"translator_id": assignee},
                changes={"translator_id": assignee},
            )
            return milestone

        return await self._execute(lambda: self._scope(milestone_id), operation)

    async def start_milestone(self, actor: Actor, milestone_id: uuid.UUID) -> Milestone:
        """The assigned translator starts work once the previous milestone is paid."""

        async def operation() -> Milestone:
            milestone, contract, request = await self._load_for_update(milestone_id)
            self._evaluator.require(
                actor,
                Action.START_MILESTONE,
                self._ownership(milestone, contract),
                "milestone",
            )
            self._next_status(
                EntityType.MILESTONE, milestone.status, "start", Action.START_MILESTONE
            )
            if not await self._predecessor_paid(milestone):
                raise InvalidTransitionError(
                    "milestone",
                    milestone.status,
                    str(Action.START_MILESTONE),
                    invariant="previous_milestone_paid",
                    detail="The previous milestone must be completed first",
                )
            await self._advance(
                milestone,
                EntityType.MILESTONE,
                "start",
                actor=actor,
                action=Action.START_MILESTONE,
                request_id=request.id,
                audience=self._audience(contract),
            )
            return milestone

        return await self._execute(lambda: self._scope(milestone_id), operation)

    async def submit_milestone(
        self, actor: Actor, milestone_id: uuid.UUID, notes: str | None = None
    ) -> Milestone:
        async def operation() -> Milestone:
            milestone, contract, request = await self._load_for_update(milestone_id)
            self._evaluator.require(
                actor,
                Action.SUBMIT_MILESTONE,
                self._ownership(milestone, contract),
                "milestone",
            )
            await self._advance(
                milestone,
                EntityType.MILESTONE,
                "submit",
                actor=actor,
                action=Action.SUBMIT_MILESTONE,
                request_id=request.id,
                audience=self._audience(contract),
                changes={"submission_notes": notes, "submitted_at": utcnow()},
            )
            return milestone

        return await self._execute(lambda: self._scope(milestone_id), operation)

    async def request_changes(
        self, actor: Actor, milestone_id: uuid.UUID, feedback: str | None = None
    ) -> Milestone:
        """Send a submitted milestone back to the translator."""

        async def operation() -> Milestone:
            milestone, contract, request = await self._load_for_update(milestone_id)
            self._evaluator.require(
                actor,
                Action.REQUEST_CHANGES,
                self._ownership(milestone, contract),
                "milestone",
            )
            await self._advance(
                milestone,
                EntityType.MILESTONE,
                "request_changes",
                actor=actor,
                action=Action.REQUEST_CHANGES,
                request_id=request.id,
                audience=self._audience(contract),
                metadata={"feedback": feedback} if feedback else None,
            )
            return milestone

        return await self._execute(lambda: self._scope(milestone_id), operation)

    async def approve_milestone(self, actor: Actor, milestone_id: uuid.UUID) -> Milestone:
        async def operation() -> Milestone:
            milestone, contract, request = await self._load_for_update(milestone_id)
            self._evaluator.require(
                actor,
                Action.APPROVE_MILESTONE,
                self._ownership(milestone, contract),
                "milestone",
            )
            await self._advance(
                milestone,
                EntityType.MILESTONE,
                "approve",
                actor=actor,
                action=Action.APPROVE_MILESTONE,
                request_id=request.id,
                audience=self._audience(contract),
                changes={"approved_at": utcnow(), "approved_by": actor.id},
            )
            return milestone

        return await self._execute(lambda: self._scope(milestone_id), operation)

    async def mark_milestone_paid(self, actor: Actor, milestone_id: uuid.UUID) -> Milestone:
        """Record payment; cascades to contract and request completion."""

        async def operation() -> Milestone:
            milestone, contract, request = await self._load_for_update(milestone_id)
            self._evaluator.require(
                actor,
                Action.MARK_MILESTONE_PAID,
                self._ownership(milestone, contract),
                "milestone",
            )
            await self._advance(
                milestone,
                EntityType.MILESTONE,
                "mark_paid",
                actor=actor,
                action=Action.MARK_MILESTONE_PAID,
                request_id=request.id,
                audience=self._audience(contract),
                metadata={"amount_cents": milestone.amount_cents},
                changes={"paid_at": utcnow()},
            )
            await self._complete_contract_if_paid(contract, request, actor)
            return milestone

        return await self._execute(lambda: self._scope(milestone_id), operation)

    # ------------------------------------------------------------------
    # Cascades and guards
    # ------------------------------------------------------------------

    async def _predecessor_paid(self, milestone: Milestone) -> bool:
        previous = await self._milestone_repo.get_predecessor(milestone)
        return previous is None or previous.status == MilestoneStatus.PAID

    async def _complete_contract_if_paid(
        self, contract: Contract, request: TranslationRequest, actor: Actor
    ) -> None:
        if contract.status != ContractStatus.SIGNED:
            return
        milestones = await self._milestone_repo.list_by_contract(contract.id)
        if not milestones or any(m.status != MilestoneStatus.PAID for m in milestones):
            return
        await self._advance(
            contract,
            EntityType.CONTRACT,
            "complete",
            actor=actor,
            action="complete",
            request_id=request.id,
            audience=self._audience(contract),
            metadata={"milestones": len(milestones)},
        )
        await self._sync_request_status(request, actor)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_milestone(self, actor: Actor, milestone_id: uuid.UUID) -> Milestone:
        async def operation() -> Milestone:
            milestone = await self._get_milestone(milestone_id)
            contract = await self._get_contract(milestone.contract_id)
            self._require_visible(
                actor,
                EntityType.MILESTONE,
                milestone_id,
                self._contract_ownership(contract),
            )
            return milestone

        return await self._read(operation)

    async def list_milestones(self, actor: Actor, contract_id: uuid.UUID) -> list[Milestone]:
        """Milestones of a contract in ordinal order."""

        async def operation() -> list[Milestone]:
            contract = await self._get_contract(contract_id)
            self._require_visible(
                actor, EntityType.CONTRACT, contract_id, self._contract_ownership(contract)
            )
            return await self._milestone_repo.list_by_contract(contract_id)

        return await self._read(operation)

    async def available_actions(self, actor: Actor, milestone: Milestone) -> list[str]:
        async def operation() -> list[str]:
            contract = await self._get_contract(milestone.contract_id)
            ownership = self._ownership(milestone, contract)
            actions = self._allowed_actions(
                actor,
                EntityType.MILESTONE,
                milestone.status,
                ownership,
                _MILESTONE_EVENT_ACTIONS,
            )
            if "start" in actions and not await self._predecessor_paid(milestone):
                actions.remove("start")
            if milestone.status == MilestoneStatus.PENDING:
                for action in (Action.UPDATE_MILESTONE, Action.DELETE_MILESTONE):
                    if self._evaluator.can(actor, action, ownership):
                        actions.append(str(action))
            return actions

        return await self._read(operation)
