"""Domain enumerations for the translation marketplace.

These enums define the canonical states, roles and actions used throughout
the system. They are framework-agnostic (no SQLAlchemy, no FastAPI imports).
"""

import enum


class RequestStatus(enum.StrEnum):
    """Lifecycle states of a translation request.

    Everything past OPEN is derived from the request's applications and
    contracts; see WorkflowServiceBase._sync_request_status.
    """

    DRAFT = "draft"
    OPEN = "open"
    REVIEWING = "reviewing"
    CONTRACTED = "contracted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ApplicationStatus(enum.StrEnum):
    """Lifecycle states of a translator's application."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class ContractStatus(enum.StrEnum):
    """Lifecycle states of a contract.

    SIGNED and COMPLETED are the only states in which both signature
    flags are set.
    """

    DRAFT = "draft"
    PENDING_REQUESTER = "pending_requester"
    PENDING_TRANSLATOR = "pending_translator"
    SIGNED = "signed"
    COMPLETED = "completed"
    TERMINATED = "terminated"


class EscrowStatus(enum.StrEnum):
    UNFUNDED = "unfunded"
    FUNDED = "funded"
    RELEASED = "released"


class MilestoneStatus(enum.StrEnum):
    """Lifecycle states of a milestone, worked in strict ordinal order."""

    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    PAID = "paid"


class EntityType(enum.StrEnum):
    """The five workflow entities. Used as the `entity_type` of events."""

    REQUEST = "request"
    APPLICATION = "application"
    CONTRACT = "contract"
    ESCROW = "escrow"
    MILESTONE = "milestone"


class ActorRole(enum.StrEnum):
    """Role an actor is acting in for a single call.

    SYSTEM is the payment subsystem acting on a requester's behalf.
    """

    REQUESTER = "requester"
    TRANSLATOR = "translator"
    READER = "reader"
    SYSTEM = "system"


class Action(enum.StrEnum):
    """Every operation the permission evaluator knows about.

    Values that double as state machine event names (accept, sign, start...)
    are what clients see in `available_actions`.
    """

    VIEW = "view"

    # Request
    CREATE_REQUEST = "create_request"
    PUBLISH_REQUEST = "publish"
    CANCEL_REQUEST = "cancel"

    # Application
    CREATE_APPLICATION = "apply"
    ACCEPT_APPLICATION = "accept"
    REJECT_APPLICATION = "reject"
    WITHDRAW_APPLICATION = "withdraw"

    # Contract
    SIGN_CONTRACT = "sign"
    TERMINATE_CONTRACT = "terminate"

    # Milestone
    CREATE_MILESTONE = "create_milestone"
    UPDATE_MILESTONE = "update"
    DELETE_MILESTONE = "delete"
    ASSIGN_MILESTONE = "assign"
    START_MILESTONE = "start"
    SUBMIT_MILESTONE = "submit"
    REQUEST_CHANGES = "request_changes"
    APPROVE_MILESTONE = "approve"
    MARK_MILESTONE_PAID = "mark_paid"

    # Escrow
    CREATE_ESCROW = "create_escrow"
    FUND_ESCROW = "fund"
    RELEASE_ESCROW = "release"
