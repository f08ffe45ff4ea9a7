"""Domain layer: pure business logic with zero framework dependencies."""

from translation_marketplace.domain.enums import (
    Action,
    ActorRole,
    ApplicationStatus,
    ContractStatus,
    EntityType,
    EscrowStatus,
    MilestoneStatus,
    RequestStatus,
)
from translation_marketplace.domain.events import DomainEvent
from translation_marketplace.domain.exceptions import (
    ConcurrentUpdateError,
    ConflictError,
    DuplicateEntityError,
    InvalidInputError,
    InvalidTransitionError,
    MarketplaceError,
    NotFoundError,
    PermissionDeniedError,
    StoreUnavailableError,
)
from translation_marketplace.domain.permissions import (
    Actor,
    Ownership,
    PermissionEvaluator,
)
from translation_marketplace.domain.state_machine import (
    machine_for,
    validate_transition,
)

__all__ = [
    "Action",
    "ActorRole",
    "ApplicationStatus",
    "ContractStatus",
    "EntityType",
    "EscrowStatus",
    "MilestoneStatus",
    "RequestStatus",
    "DomainEvent",
    "ConcurrentUpdateError",
    "ConflictError",
    "DuplicateEntityError",
    "InvalidInputError",
    "InvalidTransitionError",
    "MarketplaceError",
    "NotFoundError",
    "PermissionDeniedError",
    "StoreUnavailableError",
    "Actor",
    "Ownership",
    "PermissionEvaluator",
    "machine_for",
    "validate_transition",
]
