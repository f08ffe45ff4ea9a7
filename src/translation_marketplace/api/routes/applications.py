"""Application REST API routes.

Routes:
    GET    /api/v1/applications/{id}            - Get application details
    POST   /api/v1/applications/{id}/accept     - Accept and create a draft contract
    POST   /api/v1/applications/{id}/reject     - Reject
    POST   /api/v1/applications/{id}/withdraw   - Withdraw (applicant only)
    GET    /api/v1/applications/{id}/contract   - Contract created from the application
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from translation_marketplace.api.deps import get_actor, get_workflow_engine
from translation_marketplace.domain.permissions import Actor
from translation_marketplace.schemas.applications import (
    AcceptApplicationRequest,
    AcceptApplicationResponse,
    ApplicationResponse,
)
from translation_marketplace.schemas.contracts import ContractResponse
from translation_marketplace.services.workflow_engine import WorkflowEngine

router = APIRouter(prefix="/api/v1/applications", tags=["Applications"])


@router.get("/{application_id}", response_model=ApplicationResponse)
async def get_application(
    application_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> ApplicationResponse:
    application = await engine.applications.get_application(actor, application_id)
    return ApplicationResponse.build(
        application, await engine.available_actions(actor, application)
    )


@router.post(
    "/{application_id}/accept",
    response_model=AcceptApplicationResponse,
    summary="Accept an application",
)
async def accept_application(
    application_id: uuid.UUID,
    body: AcceptApplicationRequest | None = None,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> AcceptApplicationResponse:
    """Accept a pending application; the response carries the new draft contract."""
    body = body or AcceptApplicationRequest()
    application, contract = await engine.applications.accept_application(
        actor,
        application_id,
        total_amount_cents=body.total_amount_cents,
        assigned_pages=body.assigned_pages,
    )
    return AcceptApplicationResponse(
        application=ApplicationResponse.build(
            application, await engine.available_actions(actor, application)
        ),
        contract=ContractResponse.build(
            contract, await engine.available_actions(actor, contract)
        ),
    )


@router.post("/{application_id}/reject", response_model=ApplicationResponse)
async def reject_application(
    application_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> ApplicationResponse:
    application = await engine.applications.reject_application(actor, application_id)
    return ApplicationResponse.build(
        application, await engine.available_actions(actor, application)
    )


@router.post("/{application_id}/withdraw", response_model=ApplicationResponse)
async def withdraw_application(
    application_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> ApplicationResponse:
    application = await engine.applications.withdraw_application(actor, application_id)
    return ApplicationResponse.build(
        application, await engine.available_actions(actor, application)
    )


@router.get("/{application_id}/contract", response_model=ContractResponse)
async def get_application_contract(
    application_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> ContractResponse:
    contract = await engine.applications.get_contract_for(actor, application_id)
    return ContractResponse.build(contract, await engine.available_actions(actor, contract))
