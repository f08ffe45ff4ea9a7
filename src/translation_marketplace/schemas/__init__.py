"""Pydantic API schemas."""

from translation_marketplace.schemas.applications import (
    AcceptApplicationRequest,
    AcceptApplicationResponse,
    ApplicationResponse,
    CreateApplicationRequest,
)
from translation_marketplace.schemas.common import (
    EntityResponse,
    ErrorResponse,
    HealthResponse,
    WorkflowEventResponse,
)
from translation_marketplace.schemas.contracts import (
    ContractResponse,
    TerminateContractRequest,
)
from translation_marketplace.schemas.escrows import CreateEscrowRequest, EscrowResponse
from translation_marketplace.schemas.milestones import (
    AssignMilestoneRequest,
    CreateMilestoneRequest,
    MilestoneResponse,
    RequestChangesRequest,
    SubmitMilestoneRequest,
    UpdateMilestoneRequest,
)
from translation_marketplace.schemas.requests import (
    CancelRequest,
    CreateTranslationRequest,
    TranslationRequestResponse,
)

__all__ = [
    "AcceptApplicationRequest",
    "AcceptApplicationResponse",
    "ApplicationResponse",
    "AssignMilestoneRequest",
    "CancelRequest",
    "ContractResponse",
    "CreateApplicationRequest",
    "CreateEscrowRequest",
    "CreateMilestoneRequest",
    "CreateTranslationRequest",
    "EntityResponse",
    "ErrorResponse",
    "EscrowResponse",
    "HealthResponse",
    "MilestoneResponse",
    "RequestChangesRequest",
    "SubmitMilestoneRequest",
    "TerminateContractRequest",
    "TranslationRequestResponse",
    "UpdateMilestoneRequest",
    "WorkflowEventResponse",
]
