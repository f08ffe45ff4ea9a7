"""Application services: workflow orchestration over the entity store."""

from translation_marketplace.services.application_service import ApplicationService
from translation_marketplace.services.contract_service import ContractService
from translation_marketplace.services.escrow_service import EscrowService
from translation_marketplace.services.milestone_service import MilestoneService
from translation_marketplace.services.request_service import RequestService
from translation_marketplace.services.workflow_engine import WorkflowEngine

__all__ = [
    "ApplicationService",
    "ContractService",
    "EscrowService",
    "MilestoneService",
    "RequestService",
    "WorkflowEngine",
]
