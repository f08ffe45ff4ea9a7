"""Tests for the PermissionEvaluator role x ownership rules."""

from __future__ import annotations

import pytest

from translation_marketplace.domain.enums import Action, ActorRole
from translation_marketplace.domain.exceptions import PermissionDeniedError
from translation_marketplace.domain.permissions import Actor, Ownership, PermissionEvaluator

U1 = Actor("U1", ActorRole.REQUESTER)
U2 = Actor("U2", ActorRole.TRANSLATOR)
U3 = Actor("U3", ActorRole.TRANSLATOR)
OTHER_REQUESTER = Actor("U7", ActorRole.REQUESTER)
READER = Actor("U9", ActorRole.READER)
SYSTEM = Actor("payments", ActorRole.SYSTEM)

CONTRACT = Ownership("U1", "U2")


@pytest.fixture
def evaluator() -> PermissionEvaluator:
    return PermissionEvaluator()


class TestRequesterActions:
    def test_owner_may_accept(self, evaluator: PermissionEvaluator) -> None:
        assert evaluator.can(U1, Action.ACCEPT_APPLICATION, CONTRACT)

    def test_other_requester_may_not_accept(self, evaluator: PermissionEvaluator) -> None:
        assert not evaluator.can(OTHER_REQUESTER, Action.ACCEPT_APPLICATION, CONTRACT)

    def test_translator_may_not_cancel(self, evaluator: PermissionEvaluator) -> None:
        assert not evaluator.can(U2, Action.CANCEL_REQUEST, Ownership("U1"))

    def test_any_requester_may_create_request(self, evaluator: PermissionEvaluator) -> None:
        assert evaluator.can(OTHER_REQUESTER, Action.CREATE_REQUEST, Ownership("U7"))


class TestTranslatorActions:
    def test_assigned_translator_may_start(self, evaluator: PermissionEvaluator) -> None:
        assert evaluator.can(U2, Action.START_MILESTONE, CONTRACT)

    def test_other_translator_may_not_start(self, evaluator: PermissionEvaluator) -> None:
        assert not evaluator.can(U3, Action.START_MILESTONE, CONTRACT)

    def test_unassigned_milestone_has_no_translator(self, evaluator: PermissionEvaluator) -> None:
        assert not evaluator.can(U2, Action.START_MILESTONE, Ownership("U1", None))

    def test_translator_may_apply_to_others_request(self, evaluator: PermissionEvaluator) -> None:
        assert evaluator.can(U2, Action.CREATE_APPLICATION, Ownership("U1", public=True))

    def test_requester_role_may_not_apply(self, evaluator: PermissionEvaluator) -> None:
        assert not evaluator.can(OTHER_REQUESTER, Action.CREATE_APPLICATION, Ownership("U1"))


class TestSigning:
    def test_both_parties_may_sign(self, evaluator: PermissionEvaluator) -> None:
        assert evaluator.can(U1, Action.SIGN_CONTRACT, CONTRACT)
        assert evaluator.can(U2, Action.SIGN_CONTRACT, CONTRACT)

    def test_outsider_may_not_sign(self, evaluator: PermissionEvaluator) -> None:
        assert not evaluator.can(U3, Action.SIGN_CONTRACT, CONTRACT)
        assert not evaluator.can(OTHER_REQUESTER, Action.SIGN_CONTRACT, CONTRACT)


class TestReaderAndSystem:
    @pytest.mark.parametrize("action", [a for a in Action if a != Action.VIEW])
    def test_reader_may_not_mutate(
        self, evaluator: PermissionEvaluator, action: Action
    ) -> None:
        assert not evaluator.can(READER, action, Ownership("U9", "U9"))

    def test_system_may_mark_paid_and_release(self, evaluator: PermissionEvaluator) -> None:
        assert evaluator.can(SYSTEM, Action.MARK_MILESTONE_PAID, CONTRACT)
        assert evaluator.can(SYSTEM, Action.RELEASE_ESCROW, CONTRACT)

    def test_system_may_not_approve(self, evaluator: PermissionEvaluator) -> None:
        assert not evaluator.can(SYSTEM, Action.APPROVE_MILESTONE, CONTRACT)


class TestVisibility:
    def test_public_entities_visible_to_readers(self, evaluator: PermissionEvaluator) -> None:
        assert evaluator.can_view(READER, Ownership("U1", public=True))

    def test_parties_see_private_entities(self, evaluator: PermissionEvaluator) -> None:
        assert evaluator.can_view(U1, CONTRACT)
        assert evaluator.can_view(U2, CONTRACT)
        assert not evaluator.can_view(U3, CONTRACT)

    def test_system_sees_everything(self, evaluator: PermissionEvaluator) -> None:
        assert evaluator.can_view(SYSTEM, CONTRACT)


class TestRequire:
    def test_raises_permission_denied(self, evaluator: PermissionEvaluator) -> None:
        with pytest.raises(PermissionDeniedError) as exc_info:
            evaluator.require(U3, Action.START_MILESTONE, CONTRACT, "milestone")
        assert exc_info.value.code == "PERMISSION_DENIED"
        assert exc_info.value.action == "start"

    def test_passes_silently_when_allowed(self, evaluator: PermissionEvaluator) -> None:
        evaluator.require(U1, Action.APPROVE_MILESTONE, CONTRACT, "milestone")
