"""Contract REST API routes.

Routes:
    GET    /api/v1/contracts                     - Contracts the caller is party to
    GET    /api/v1/contracts/{id}                - Get contract details
    POST   /api/v1/contracts/{id}/sign           - Sign in the caller's own slot
    POST   /api/v1/contracts/{id}/terminate      - Terminate before fully signed
    GET    /api/v1/contracts/{id}/milestones     - List milestones in ordinal order
    POST   /api/v1/contracts/{id}/milestones     - Add a milestone
    GET    /api/v1/contracts/{id}/escrow         - The contract's escrow
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from translation_marketplace.api.deps import get_actor, get_workflow_engine
from translation_marketplace.domain.permissions import Actor
from translation_marketplace.schemas.contracts import (
    ContractResponse,
    TerminateContractRequest,
)
from translation_marketplace.schemas.escrows import EscrowResponse
from translation_marketplace.schemas.milestones import (
    CreateMilestoneRequest,
    MilestoneResponse,
)
from translation_marketplace.services.workflow_engine import WorkflowEngine

router = APIRouter(prefix="/api/v1/contracts", tags=["Contracts"])


@router.get("", response_model=list[ContractResponse])
async def list_contracts(
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> list[ContractResponse]:
    contracts = await engine.contracts.list_contracts(actor)
    return [
        ContractResponse.build(c, await engine.available_actions(actor, c))
        for c in contracts
    ]


@router.get("/{contract_id}", response_model=ContractResponse)
async def get_contract(
    contract_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> ContractResponse:
    contract = await engine.contracts.get_contract(actor, contract_id)
    return ContractResponse.build(contract, await engine.available_actions(actor, contract))


@router.post(
    "/{contract_id}/sign",
    response_model=ContractResponse,
    summary="Sign a contract",
)
async def sign_contract(
    contract_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> ContractResponse:
    """Record the caller's signature. The slot follows from the caller's role."""
    contract = await engine.contracts.sign_contract(actor, contract_id)
    return ContractResponse.build(contract, await engine.available_actions(actor, contract))


@router.post("/{contract_id}/terminate", response_model=ContractResponse)
async def terminate_contract(
    contract_id: uuid.UUID,
    body: TerminateContractRequest | None = None,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> ContractResponse:
    contract = await engine.contracts.terminate_contract(
        actor, contract_id, reason=body.reason if body else None
    )
    return ContractResponse.build(contract, await engine.available_actions(actor, contract))


@router.get("/{contract_id}/milestones", response_model=list[MilestoneResponse])
async def list_milestones(
    contract_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> list[MilestoneResponse]:
    milestones = await engine.milestones.list_milestones(actor, contract_id)
    return [
        MilestoneResponse.build(m, await engine.available_actions(actor, m))
        for m in milestones
    ]


@router.post(
    "/{contract_id}/milestones",
    response_model=MilestoneResponse,
    status_code=201,
    summary="Add a milestone to a signed contract",
)
async def create_milestone(
    contract_id: uuid.UUID,
    body: CreateMilestoneRequest,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> MilestoneResponse:
    milestone = await engine.milestones.create_milestone(
        actor,
        contract_id,
        title=body.title,
        amount_cents=body.amount_cents,
        description=body.description,
    )
    return MilestoneResponse.build(
        milestone, await engine.available_actions(actor, milestone)
    )


@router.get("/{contract_id}/escrow", response_model=EscrowResponse)
async def get_contract_escrow(
    contract_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> EscrowResponse:
    escrow = await engine.escrows.get_contract_escrow(actor, contract_id)
    return EscrowResponse.build(escrow, await engine.available_actions(actor, escrow))
