"""Milestone REST API routes.

Routes:
    GET    /api/v1/milestones/{id}                   - Get milestone details
    PATCH  /api/v1/milestones/{id}                   - Edit a pending milestone
    DELETE /api/v1/milestones/{id}                   - Remove a pending milestone
    POST   /api/v1/milestones/{id}/assign            - Assign to the contract's translator
    POST   /api/v1/milestones/{id}/start             - Start work (previous milestone paid)
    POST   /api/v1/milestones/{id}/submit            - Submit work
    POST   /api/v1/milestones/{id}/request-changes   - Send back for rework
    POST   /api/v1/milestones/{id}/approve           - Approve submitted work
    POST   /api/v1/milestones/{id}/mark-paid         - Record payment
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Response

from translation_marketplace.api.deps import get_actor, get_workflow_engine
from translation_marketplace.domain.permissions import Actor
from translation_marketplace.schemas.milestones import (
    AssignMilestoneRequest,
    MilestoneResponse,
    RequestChangesRequest,
    SubmitMilestoneRequest,
    UpdateMilestoneRequest,
)
from translation_marketplace.services.workflow_engine import WorkflowEngine

router = APIRouter(prefix="/api/v1/milestones", tags=["Milestones"])


@router.get("/{milestone_id}", response_model=MilestoneResponse)
async def get_milestone(
    milestone_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> MilestoneResponse:
    milestone = await engine.milestones.get_milestone(actor, milestone_id)
    return MilestoneResponse.build(milestone, await engine.available_actions(actor, milestone))


@router.patch("/{milestone_id}", response_model=MilestoneResponse)
async def update_milestone(
    milestone_id: uuid.UUID,
    body: UpdateMilestoneRequest,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> MilestoneResponse:
    milestone = await engine.milestones.update_milestone(
        actor,
        milestone_id,
        title=body.title,
        description=body.description,
        amount_cents=body.amount_cents,
    )
    return MilestoneResponse.build(milestone, await engine.available_actions(actor, milestone))


@router.delete("/{milestone_id}", status_code=204)
async def delete_milestone(
    milestone_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> Response:
    await engine.milestones.delete_milestone(actor, milestone_id)
    return Response(status_code=204)


@router.post("/{milestone_id}/assign", response_model=MilestoneResponse)
async def assign_milestone(
    milestone_id: uuid.UUID,
    body: AssignMilestoneRequest | None = None,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> MilestoneResponse:
    milestone = await engine.milestones.assign_milestone(
        actor, milestone_id, translator_id=body.translator_id if body else None
    )
    return MilestoneResponse.build(milestone, await engine.available_actions(actor, milestone))


@router.post(
    "/{milestone_id}/start",
    response_model=MilestoneResponse,
    summary="Start work on a milestone",
)
async def start_milestone(
    milestone_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> MilestoneResponse:
    """Only the assigned translator, and only once the previous milestone is paid."""
    milestone = await engine.milestones.start_milestone(actor, milestone_id)
    return MilestoneResponse.build(milestone, await engine.available_actions(actor, milestone))


@router.post("/{milestone_id}/submit", response_model=MilestoneResponse)
async def submit_milestone(
    milestone_id: uuid.UUID,
    body: SubmitMilestoneRequest | None = None,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> MilestoneResponse:
    milestone = await engine.milestones.submit_milestone(
        actor, milestone_id, notes=body.notes if body else None
    )
    return MilestoneResponse.build(milestone, await engine.available_actions(actor, milestone))


@router.post("/{milestone_id}/request-changes", response_model=MilestoneResponse)
async def request_changes(
    milestone_id: uuid.UUID,
    body: RequestChangesRequest | None = None,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> MilestoneResponse:
    milestone = await engine.milestones.request_changes(
        actor, milestone_id, feedback=body.feedback if body else None
    )
    return MilestoneResponse.build(milestone, await engine.available_actions(actor, milestone))


@router.post("/{milestone_id}/approve", response_model=MilestoneResponse)
async def approve_milestone(
    milestone_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> MilestoneResponse:
    milestone = await engine.milestones.approve_milestone(actor, milestone_id)
    return MilestoneResponse.build(milestone, await engine.available_actions(actor, milestone))


@router.post(
    "/{milestone_id}/mark-paid",
    response_model=MilestoneResponse,
    summary="Mark a milestone as paid",
)
async def mark_milestone_paid(
    milestone_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> MilestoneResponse:
    """Paying the last milestone completes the contract (and possibly the request)."""
    milestone = await engine.milestones.mark_milestone_paid(actor, milestone_id)
    return MilestoneResponse.build(milestone, await engine.available_actions(actor, milestone))
