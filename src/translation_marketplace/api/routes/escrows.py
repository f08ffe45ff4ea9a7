"""Escrow REST API routes.

Routes:
    POST   /api/v1/escrows                - Open an escrow (standalone or for a contract)
    GET    /api/v1/escrows                - Escrows the caller owns or is paid from
    GET    /api/v1/escrows/{id}           - Get escrow details
    POST   /api/v1/escrows/{id}/fund      - Record funding
    POST   /api/v1/escrows/{id}/release   - Release funds
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from translation_marketplace.api.deps import get_actor, get_workflow_engine
from translation_marketplace.domain.permissions import Actor
from translation_marketplace.schemas.escrows import CreateEscrowRequest, EscrowResponse
from translation_marketplace.services.workflow_engine import WorkflowEngine

router = APIRouter(prefix="/api/v1/escrows", tags=["Escrows"])


@router.post("", response_model=EscrowResponse, status_code=201)
async def create_escrow(
    body: CreateEscrowRequest,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> EscrowResponse:
    escrow = await engine.escrows.create_escrow(
        actor, amount_cents=body.amount_cents, contract_id=body.contract_id
    )
    return EscrowResponse.build(escrow, await engine.available_actions(actor, escrow))


@router.get("", response_model=list[EscrowResponse])
async def list_escrows(
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> list[EscrowResponse]:
    escrows = await engine.escrows.list_escrows(actor)
    return [
        EscrowResponse.build(e, await engine.available_actions(actor, e)) for e in escrows
    ]


@router.get("/{escrow_id}", response_model=EscrowResponse)
async def get_escrow(
    escrow_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> EscrowResponse:
    escrow = await engine.escrows.get_escrow(actor, escrow_id)
    return EscrowResponse.build(escrow, await engine.available_actions(actor, escrow))


@router.post("/{escrow_id}/fund", response_model=EscrowResponse)
async def fund_escrow(
    escrow_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> EscrowResponse:
    escrow = await engine.escrows.fund_escrow(actor, escrow_id)
    return EscrowResponse.build(escrow, await engine.available_actions(actor, escrow))


@router.post("/{escrow_id}/release", response_model=EscrowResponse)
async def release_escrow(
    escrow_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> EscrowResponse:
    escrow = await engine.escrows.release_escrow(actor, escrow_id)
    return EscrowResponse.build(escrow, await engine.available_actions(actor, escrow))
