"""Domain exceptions for the translation marketplace.

These exceptions are framework-agnostic and represent business rule violations.
They are caught and translated to HTTP responses by the API layer's middleware.
"""


class MarketplaceError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, code: str = "MARKETPLACE_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


# --- Authorization ---


class PermissionDeniedError(MarketplaceError):
    """Raised when the actor lacks the role or ownership an action requires."""

    def __init__(self, actor_id: str, action: str, entity: str) -> None:
        super().__init__(
            message=f"Actor {actor_id} is not allowed to {action} {entity}",
            code="PERMISSION_DENIED",
        )
        self.actor_id = actor_id
        self.action = action


class NotFoundError(MarketplaceError):
    """Raised when an entity does not exist or the actor cannot see it."""

    def __init__(self, entity_type: str, entity_id: str) -> None:
        super().__init__(
            message=f"{entity_type.capitalize()} not found: {entity_id}",
            code="NOT_FOUND",
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class InvalidInputError(MarketplaceError):
    """Raised when an operation's arguments break a value rule (e.g. amount <= 0)."""

    def __init__(self, field: str, detail: str) -> None:
        super().__init__(message=f"Invalid {field}: {detail}", code="INVALID_INPUT")
        self.field = field


# --- State Machine Errors ---


class InvalidTransitionError(MarketplaceError):
    """Raised when a transition guard fails.

    `invariant` names the violated rule so callers can render an actionable
    message, e.g. "previous_milestone_paid".

    Example: starting milestone 2 while milestone 1 is still in progress.
    """

    def __init__(
        self,
        entity_type: str,
        current_status: str,
        action: str,
        invariant: str,
        detail: str | None = None,
    ) -> None:
        message = detail or (
            f"Cannot {action} {entity_type} in status '{current_status}'"
        )
        super().__init__(message=message, code="INVALID_TRANSITION")
        self.entity_type = entity_type
        self.current_status = current_status
        self.action = action
        self.invariant = invariant


# --- Store Errors ---


class ConflictError(MarketplaceError):
    """Base class for writes that collide with another write."""

    def __init__(self, message: str, code: str = "CONFLICT") -> None:
        super().__init__(message=message, code=code)


class ConcurrentUpdateError(ConflictError):
    """Raised on an optimistic version mismatch. Safe to reload and retry."""

    def __init__(self, detail: str = "") -> None:
        super().__init__(
            message="The entity was modified concurrently, please retry"
            + (f" ({detail})" if detail else ""),
            code="CONCURRENT_UPDATE",
        )


class DuplicateEntityError(ConflictError):
    """Raised when a uniqueness rule would be violated.

    Example: a second non-cancelled request for the same (requester, book).
    """

    def __init__(self, entity_type: str, detail: str) -> None:
        super().__init__(
            message=f"Duplicate {entity_type}: {detail}",
            code="DUPLICATE_ENTITY",
        )
        self.entity_type = entity_type


class StoreUnavailableError(MarketplaceError):
    """Raised on transient store failures (timeouts, lost connections).

    The transaction has been rolled back; the caller may retry with backoff.
    """

    def __init__(self, detail: str) -> None:
        super().__init__(
            message=f"Store unavailable: {detail}",
            code="STORE_UNAVAILABLE",
        )
