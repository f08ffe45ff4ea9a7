"""Permission Evaluator.

Answers "may this actor perform this action on this entity?" from three
inputs: the actor (id + role for this call), the action, and the entity's
ownership (which requester and which translator it belongs to).

The evaluator is pure: services build the Ownership from loaded rows and call
`require()` before evaluating any transition guard, so cross-tenant isolation
never depends on the client.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from translation_marketplace.domain.enums import Action, ActorRole
from translation_marketplace.domain.exceptions import PermissionDeniedError

Party = Literal["requester", "translator", "signatory", "not_requester", "anyone"]


@dataclass(frozen=True)
class Actor:
    """The authenticated party invoking a workflow operation.

    Attributes:
        id: Opaque user id from the authentication layer.
        role: The role the actor is acting in for this call.
    """

    id: str
    role: ActorRole

    @property
    def is_system(self) -> bool:
        return self.role == ActorRole.SYSTEM


@dataclass(frozen=True)
class Ownership:
    """The parties an entity belongs to.

    Attributes:
        requester_id: The requester owning the entity (or its parent request).
        translator_id: The translator bound to the entity, if any.
        public: Whether any actor may read the entity (published requests).
    """

    requester_id: str | None
    translator_id: str | None = None
    public: bool = False


@dataclass(frozen=True)
class Rule:
    role: ActorRole | None
    party: Party


# role x action. role=None means "requester or translator" (checked per party).
RULES: dict[Action, Rule] = {
    Action.CREATE_REQUEST: Rule(ActorRole.REQUESTER, "anyone"),
    Action.PUBLISH_REQUEST: Rule(ActorRole.REQUESTER, "requester"),
    Action.CANCEL_REQUEST: Rule(ActorRole.REQUESTER, "requester"),
    Action.CREATE_APPLICATION: Rule(ActorRole.TRANSLATOR, "not_requester"),
    Action.ACCEPT_APPLICATION: Rule(ActorRole.REQUESTER, "requester"),
    Action.REJECT_APPLICATION: Rule(ActorRole.REQUESTER, "requester"),
    Action.WITHDRAW_APPLICATION: Rule(ActorRole.TRANSLATOR, "translator"),
    Action.SIGN_CONTRACT: Rule(None, "signatory"),
    Action.TERMINATE_CONTRACT: Rule(ActorRole.REQUESTER, "requester"),
    Action.CREATE_MILESTONE: Rule(ActorRole.REQUESTER, "requester"),
    Action.UPDATE_MILESTONE: Rule(ActorRole.REQUESTER, "requester"),
    Action.DELETE_MILESTONE: Rule(ActorRole.REQUESTER, "requester"),
    Action.ASSIGN_MILESTONE: Rule(ActorRole.REQUESTER, "requester"),
    Action.START_MILESTONE: Rule(ActorRole.TRANSLATOR, "translator"),
    Action.SUBMIT_MILESTONE: Rule(ActorRole.TRANSLATOR, "translator"),
    Action.REQUEST_CHANGES: Rule(ActorRole.REQUESTER, "requester"),
    Action.APPROVE_MILESTONE: Rule(ActorRole.REQUESTER, "requester"),
    Action.MARK_MILESTONE_PAID: Rule(ActorRole.REQUESTER, "requester"),
    Action.CREATE_ESCROW: Rule(ActorRole.REQUESTER, "requester"),
    Action.FUND_ESCROW: Rule(ActorRole.REQUESTER, "requester"),
    Action.RELEASE_ESCROW: Rule(ActorRole.REQUESTER, "requester"),
}

# The payment subsystem may act on a requester's behalf for these only.
SYSTEM_ACTIONS: frozenset[Action] = frozenset(
    {Action.MARK_MILESTONE_PAID, Action.RELEASE_ESCROW}
)


class PermissionEvaluator:
    """Role x ownership rules for every workflow action."""

    def can(self, actor: Actor, action: Action, ownership: Ownership) -> bool:
        if action == Action.VIEW:
            return self.can_view(actor, ownership)
        if actor.role == ActorRole.READER:
            return False
        if actor.is_system:
            return action in SYSTEM_ACTIONS

        rule = RULES.get(action)
        if rule is None:
            return False
        if rule.role is not None and actor.role != rule.role:
            return False

        match rule.party:
            case "anyone":
                return True
            case "requester":
                return actor.id == ownership.requester_id
            case "translator":
                return (
                    ownership.translator_id is not None
                    and actor.id == ownership.translator_id
                )
            case "not_requester":
                return actor.id != ownership.requester_id
            case "signatory":
                if actor.role == ActorRole.REQUESTER:
                    return actor.id == ownership.requester_id
                if actor.role == ActorRole.TRANSLATOR:
                    return actor.id == ownership.translator_id
                return False
        return False

    def can_view(self, actor: Actor, ownership: Ownership) -> bool:
        if actor.is_system or ownership.public:
            return True
        return actor.id in (ownership.requester_id, ownership.translator_id)

    def require(
        self, actor: Actor, action: Action, ownership: Ownership, entity: str
    ) -> None:
        """Raise PermissionDeniedError unless `can()` allows the action."""
        if not self.can(actor, action, ownership):
            raise PermissionDeniedError(actor.id, str(action), entity)
