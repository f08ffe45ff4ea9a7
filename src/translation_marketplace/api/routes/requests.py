"""Translation request REST API routes.

Routes:
    POST   /api/v1/requests                        - Create (and by default publish) a request
    GET    /api/v1/requests                        - List published requests and own drafts
    GET    /api/v1/requests/{id}                   - Get request details
    POST   /api/v1/requests/{id}/publish           - Publish a draft
    POST   /api/v1/requests/{id}/cancel            - Cancel a request
    GET    /api/v1/requests/{id}/applications      - List applications
    POST   /api/v1/requests/{id}/applications      - Apply as a translator
    GET    /api/v1/requests/{id}/contracts         - List contracts under the request
    GET    /api/v1/requests/{id}/events            - Audit trail
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from translation_marketplace.api.deps import get_actor, get_workflow_engine
from translation_marketplace.domain.enums import ApplicationStatus, RequestStatus
from translation_marketplace.domain.permissions import Actor
from translation_marketplace.logging_config import get_logger
from translation_marketplace.schemas.applications import (
    ApplicationResponse,
    CreateApplicationRequest,
)
from translation_marketplace.schemas.common import WorkflowEventResponse
from translation_marketplace.schemas.contracts import ContractResponse
from translation_marketplace.schemas.requests import (
    CancelRequest,
    CreateTranslationRequest,
    TranslationRequestResponse,
)
from translation_marketplace.services.workflow_engine import WorkflowEngine

router = APIRouter(prefix="/api/v1/requests", tags=["Requests"])
logger = get_logger(__name__)


@router.post(
    "",
    response_model=TranslationRequestResponse,
    status_code=201,
    summary="Create a translation request",
)
async def create_request(
    body: CreateTranslationRequest,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> TranslationRequestResponse:
    """Create a request; it is published (status open) unless publish=false."""
    request = await engine.requests.create_request(actor, **body.model_dump())
    return TranslationRequestResponse.build(
        request, await engine.available_actions(actor, request)
    )


@router.get(
    "",
    response_model=list[TranslationRequestResponse],
    summary="List visible requests",
)
async def list_requests(
    status: RequestStatus | None = None,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> list[TranslationRequestResponse]:
    requests = await engine.requests.list_requests(actor, status)
    return [
        TranslationRequestResponse.build(r, await engine.available_actions(actor, r))
        for r in requests
    ]


@router.get(
    "/{request_id}",
    response_model=TranslationRequestResponse,
    summary="Get request details",
)
async def get_request(
    request_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> TranslationRequestResponse:
    request = await engine.requests.get_request(actor, request_id)
    return TranslationRequestResponse.build(
        request, await engine.available_actions(actor, request)
    )


@router.post(
    "/{request_id}/publish",
    response_model=TranslationRequestResponse,
    summary="Publish a draft request",
)
async def publish_request(
    request_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> TranslationRequestResponse:
    request = await engine.requests.publish_request(actor, request_id)
    return TranslationRequestResponse.build(
        request, await engine.available_actions(actor, request)
    )


@router.post(
    "/{request_id}/cancel",
    response_model=TranslationRequestResponse,
    summary="Cancel a request",
)
async def cancel_request(
    request_id: uuid.UUID,
    body: CancelRequest | None = None,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> TranslationRequestResponse:
    """Cancel a request with no signed contract; rejects pending applications."""
    request = await engine.requests.cancel_request(
        actor, request_id, reason=body.reason if body else None
    )
    return TranslationRequestResponse.build(
        request, await engine.available_actions(actor, request)
    )


# ---------------------------------------------------------------------------
# Children
# ---------------------------------------------------------------------------


@router.get(
    "/{request_id}/applications",
    response_model=list[ApplicationResponse],
    summary="List applications on a request",
)
async def list_applications(
    request_id: uuid.UUID,
    status: ApplicationStatus | None = None,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> list[ApplicationResponse]:
    applications = await engine.applications.list_applications(actor, request_id, status)
    return [
        ApplicationResponse.build(a, await engine.available_actions(actor, a))
        for a in applications
    ]


@router.post(
    "/{request_id}/applications",
    response_model=ApplicationResponse,
    status_code=201,
    summary="Apply to a request",
)
async def create_application(
    request_id: uuid.UUID,
    body: CreateApplicationRequest,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> ApplicationResponse:
    application = await engine.applications.create_application(
        actor,
        request_id,
        motivation=body.motivation,
        proposed_rate_cents=body.proposed_rate_cents,
    )
    return ApplicationResponse.build(
        application, await engine.available_actions(actor, application)
    )


@router.get(
    "/{request_id}/contracts",
    response_model=list[ContractResponse],
    summary="List contracts under a request",
)
async def list_request_contracts(
    request_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> list[ContractResponse]:
    contracts = await engine.contracts.list_request_contracts(actor, request_id)
    return [
        ContractResponse.build(c, await engine.available_actions(actor, c))
        for c in contracts
    ]


@router.get(
    "/{request_id}/events",
    response_model=list[WorkflowEventResponse],
    summary="Get the audit trail of a request",
)
async def get_request_events(
    request_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> list[WorkflowEventResponse]:
    """Every recorded transition under the request, oldest first."""
    events = await engine.requests.get_events(actor, request_id)
    return [WorkflowEventResponse.model_validate(e) for e in events]
