"""Database infrastructure: engine, ORM models, and repositories."""

from translation_marketplace.infrastructure.database.engine import (
    close_db,
    get_async_session,
    init_db,
)
from translation_marketplace.infrastructure.database.orm_models import (
    Application,
    Base,
    Contract,
    Escrow,
    Milestone,
    TranslationRequest,
    WorkflowEvent,
)
from translation_marketplace.infrastructure.database.repositories import (
    ApplicationRepository,
    ContractRepository,
    EscrowRepository,
    EventRepository,
    MilestoneRepository,
    RequestRepository,
)

__all__ = [
    "Base",
    "TranslationRequest",
    "Application",
    "Contract",
    "Escrow",
    "Milestone",
    "WorkflowEvent",
    "RequestRepository",
    "ApplicationRepository",
    "ContractRepository",
    "EscrowRepository",
    "MilestoneRepository",
    "EventRepository",
    "get_async_session",
    "init_db",
    "close_db",
]
