"""Workflow State Machine Guards.

Uses python-statemachine to enforce legal state transitions at the domain level.
One machine per entity type; no matter what the API does, an illegal
transition (e.g., a milestone going pending -> paid) raises TransitionNotAllowed.

The machines only know about status-to-status legality. Cross-entity guards
(ownership, "previous milestone must be paid", "both signatures present") live
in the workflow services, which consult a machine before touching the ORM row.

Transition tables:

    Request
        draft       -> open          (publish)
        open        -> reviewing     (start_review)       derived
        reviewing   -> contracted    (mark_contracted)    derived
        contracted  -> in_progress   (start_work)         derived
        in_progress -> completed     (complete_project)   derived
        draft|open|reviewing|contracted -> cancelled (cancel)

    Application
        pending -> accepted | rejected | withdrawn

    Contract
        draft              -> pending_translator (sign_by_requester)
        draft              -> pending_requester  (sign_by_translator)
        pending_requester  -> signed             (sign_by_requester)
        pending_translator -> signed             (sign_by_translator)
        signed             -> completed          (complete)
        draft|pending_*    -> terminated         (terminate)

    Escrow
        unfunded -> funded -> released

    Milestone
        pending -> assigned -> in_progress -> submitted -> approved -> paid
        submitted -> in_progress (request_changes)
"""

from __future__ import annotations

from functools import cache

from statemachine import State, StateMachine

from translation_marketplace.domain.enums import (
    ApplicationStatus,
    ContractStatus,
    EntityType,
    EscrowStatus,
    MilestoneStatus,
    RequestStatus,
)


class _StatusMachineMixin:
    """Shared construction and introspection for the entity machines.

    Usage:
        sm = ContractStateMachine(current_status="pending_translator")
        sm.sign_by_translator()  # transitions to signed
        sm.status                # "signed"
    """

    entity_type: EntityType

    def __init__(self, current_status: str | None = None) -> None:
        """Initialize the state machine at a given status.

        Args:
            current_status: The entity's current status value. Defaults to the
                           machine's initial state.
        """
        if current_status is None:
            super().__init__()
            return
        valid_values = {s.value for s in self.states}
        if current_status not in valid_values:
            valid = ", ".join(sorted(valid_values))
            raise ValueError(
                f"Unknown {self.entity_type} status '{current_status}'. "
                f"Valid states: {valid}"
            )
        super().__init__(start_value=current_status)

    @property
    def status(self) -> str:
        """Return the current state value as a string."""
        return str(self.current_state.value)

    def get_allowed_events(self) -> list[str]:
        """Return a list of event names that can fire from the current state."""
        return [event.id for event in self.allowed_events]


class RequestStateMachine(_StatusMachineMixin, StateMachine):
    entity_type = EntityType.REQUEST

    DRAFT = State("Draft", value=RequestStatus.DRAFT.value, initial=True)
    OPEN = State("Open", value=RequestStatus.OPEN.value)
    REVIEWING = State("Reviewing", value=RequestStatus.REVIEWING.value)
    CONTRACTED = State("Contracted", value=RequestStatus.CONTRACTED.value)
    IN_PROGRESS = State("In progress", value=RequestStatus.IN_PROGRESS.value)
    COMPLETED = State("Completed", value=RequestStatus.COMPLETED.value, final=True)
    CANCELLED = State("Cancelled", value=RequestStatus.CANCELLED.value, final=True)

    publish = DRAFT.to(OPEN)
    start_review = OPEN.to(REVIEWING)
    mark_contracted = REVIEWING.to(CONTRACTED)
    start_work = CONTRACTED.to(IN_PROGRESS)
    complete_project = IN_PROGRESS.to(COMPLETED)

    cancel = (
        DRAFT.to(CANCELLED)
        | OPEN.to(CANCELLED)
        | REVIEWING.to(CANCELLED)
        | CONTRACTED.to(CANCELLED)
    )


class ApplicationStateMachine(_StatusMachineMixin, StateMachine):
    entity_type = EntityType.APPLICATION

    PENDING = State("Pending", value=ApplicationStatus.PENDING.value, initial=True)
    ACCEPTED = State("Accepted", value=ApplicationStatus.ACCEPTED.value, final=True)
    REJECTED = State("Rejected", value=ApplicationStatus.REJECTED.value, final=True)
    WITHDRAWN = State("Withdrawn", value=ApplicationStatus.WITHDRAWN.value, final=True)

    accept = PENDING.to(ACCEPTED)
    reject = PENDING.to(REJECTED)
    withdraw = PENDING.to(WITHDRAWN)


class ContractStateMachine(_StatusMachineMixin, StateMachine):
    entity_type = EntityType.CONTRACT

    DRAFT = State("Draft", value=ContractStatus.DRAFT.value, initial=True)
    PENDING_REQUESTER = State(
        "Awaiting requester", value=ContractStatus.PENDING_REQUESTER.value
    )
    PENDING_TRANSLATOR = State(
        "Awaiting translator", value=ContractStatus.PENDING_TRANSLATOR.value
    )
    SIGNED = State("Signed", value=ContractStatus.SIGNED.value)
    COMPLETED = State("Completed", value=ContractStatus.COMPLETED.value, final=True)
    TERMINATED = State("Terminated", value=ContractStatus.TERMINATED.value, final=True)

    sign_by_requester = DRAFT.to(PENDING_TRANSLATOR) | PENDING_REQUESTER.to(SIGNED)
    sign_by_translator = DRAFT.to(PENDING_REQUESTER) | PENDING_TRANSLATOR.to(SIGNED)
    complete = SIGNED.to(COMPLETED)
    terminate = (
        DRAFT.to(TERMINATED)
        | PENDING_REQUESTER.to(TERMINATED)
        | PENDING_TRANSLATOR.to(TERMINATED)
    )


class EscrowStateMachine(_StatusMachineMixin, StateMachine):
    entity_type = EntityType.ESCROW

    UNFUNDED = State("Unfunded", value=EscrowStatus.UNFUNDED.value, initial=True)
    FUNDED = State("Funded", value=EscrowStatus.FUNDED.value)
    RELEASED = State("Released", value=EscrowStatus.RELEASED.value, final=True)

    fund = UNFUNDED.to(FUNDED)
    release = FUNDED.to(RELEASED)


class MilestoneStateMachine(_StatusMachineMixin, StateMachine):
    entity_type = EntityType.MILESTONE

    PENDING = State("Pending", value=MilestoneStatus.PENDING.value, initial=True)
    ASSIGNED = State("Assigned", value=MilestoneStatus.ASSIGNED.value)
    IN_PROGRESS = State("In progress", value=MilestoneStatus.IN_PROGRESS.value)
    SUBMITTED = State("Submitted", value=MilestoneStatus.SUBMITTED.value)
    APPROVED = State("Approved", value=MilestoneStatus.APPROVED.value)
    PAID = State("Paid", value=MilestoneStatus.PAID.value, final=True)

    assign = PENDING.to(ASSIGNED)
    start = ASSIGNED.to(IN_PROGRESS)
    submit = IN_PROGRESS.to(SUBMITTED)
    request_changes = SUBMITTED.to(IN_PROGRESS)
    approve = SUBMITTED.to(APPROVED)
    mark_paid = APPROVED.to(PAID)


STATE_MACHINES: dict[EntityType, type[StateMachine]] = {
    EntityType.REQUEST: RequestStateMachine,
    EntityType.APPLICATION: ApplicationStateMachine,
    EntityType.CONTRACT: ContractStateMachine,
    EntityType.ESCROW: EscrowStateMachine,
    EntityType.MILESTONE: MilestoneStateMachine,
}

# Derived request statuses advance one step at a time along this path.
REQUEST_PROGRESSION: list[RequestStatus] = [
    RequestStatus.DRAFT,
    RequestStatus.OPEN,
    RequestStatus.REVIEWING,
    RequestStatus.CONTRACTED,
    RequestStatus.IN_PROGRESS,
    RequestStatus.COMPLETED,
]

REQUEST_PROGRESSION_EVENTS: dict[RequestStatus, str] = {
    RequestStatus.OPEN: "publish",
    RequestStatus.REVIEWING: "start_review",
    RequestStatus.CONTRACTED: "mark_contracted",
    RequestStatus.IN_PROGRESS: "start_work",
    RequestStatus.COMPLETED: "complete_project",
}


def machine_for(entity_type: EntityType, current_status: str) -> StateMachine:
    """Instantiate the state machine for an entity at its current status."""
    return STATE_MACHINES[entity_type](current_status=current_status)


@cache
def event_names(entity_type: EntityType) -> frozenset[str]:
    """Every event name defined on an entity's machine, from any state."""
    machine_cls = STATE_MACHINES[entity_type]
    names: set[str] = set()
    for state in machine_cls.states:
        names.update(machine_cls(current_status=state.value).get_allowed_events())
    return frozenset(names)


def validate_transition(
    entity_type: EntityType, current_status: str, event_name: str
) -> str:
    """Validate a state transition and return the new status.

    This is a convenience function that creates a temporary state machine,
    fires the named event, and returns the resulting status string.

    Args:
        entity_type: Which entity's transition table to use.
        current_status: Current status value.
        event_name: The event to fire (e.g., "sign_by_requester").

    Returns:
        The new status string after the transition.

    Raises:
        TransitionNotAllowed: If the transition is illegal.
        ValueError: If the status or event name is invalid.
    """
    sm = machine_for(entity_type, current_status)

    if event_name not in event_names(entity_type):
        raise ValueError(
            f"Unknown event '{event_name}'. "
            f"Allowed events from {current_status}: {sm.get_allowed_events()}"
        )

    getattr(sm, event_name)()
    return sm.status
