"""Tests for the per-entity workflow state machines.

These tests verify that:
    1. Every happy-path lifecycle is allowed.
    2. Illegal transitions are blocked.
    3. The convenience function validate_transition works.
    4. Edge cases (signature order, rework loop, terminal states) behave correctly.
"""

from __future__ import annotations

import pytest
from statemachine.exceptions import TransitionNotAllowed

from translation_marketplace.domain.enums import EntityType
from translation_marketplace.domain.state_machine import (
    REQUEST_PROGRESSION,
    REQUEST_PROGRESSION_EVENTS,
    ApplicationStateMachine,
    ContractStateMachine,
    EscrowStateMachine,
    MilestoneStateMachine,
    RequestStateMachine,
    event_names,
    machine_for,
    validate_transition,
)


class TestRequestMachine:
    def test_full_lifecycle(self) -> None:
        sm = RequestStateMachine()
        assert sm.status == "draft"

        sm.publish()
        sm.start_review()
        sm.mark_contracted()
        sm.start_work()
        sm.complete_project()
        assert sm.status == "completed"

    @pytest.mark.parametrize("status", ["draft", "open", "reviewing", "contracted"])
    def test_cancel_allowed_before_work(self, status: str) -> None:
        sm = RequestStateMachine(status)
        sm.cancel()
        assert sm.status == "cancelled"

    @pytest.mark.parametrize("status", ["in_progress", "completed", "cancelled"])
    def test_cancel_blocked_once_work_started(self, status: str) -> None:
        sm = RequestStateMachine(status)
        with pytest.raises(TransitionNotAllowed):
            sm.cancel()

    def test_cannot_skip_review(self) -> None:
        sm = RequestStateMachine("open")
        with pytest.raises(TransitionNotAllowed):
            sm.mark_contracted()

    def test_progression_events_cover_every_step(self) -> None:
        for status in REQUEST_PROGRESSION[1:]:
            assert status in REQUEST_PROGRESSION_EVENTS


class TestApplicationMachine:
    @pytest.mark.parametrize("event", ["accept", "reject", "withdraw"])
    def test_decisions_are_final(self, event: str) -> None:
        sm = ApplicationStateMachine("pending")
        getattr(sm, event)()
        assert sm.get_allowed_events() == []

    def test_cannot_accept_twice(self) -> None:
        sm = ApplicationStateMachine("accepted")
        with pytest.raises(TransitionNotAllowed):
            sm.accept()


class TestContractMachine:
    def test_requester_signs_first(self) -> None:
        sm = ContractStateMachine()
        sm.sign_by_requester()
        assert sm.status == "pending_translator"
        sm.sign_by_translator()
        assert sm.status == "signed"

    def test_translator_signs_first(self) -> None:
        sm = ContractStateMachine()
        sm.sign_by_translator()
        assert sm.status == "pending_requester"
        sm.sign_by_requester()
        assert sm.status == "signed"

    def test_same_slot_twice_blocked(self) -> None:
        sm = ContractStateMachine("pending_translator")
        with pytest.raises(TransitionNotAllowed):
            sm.sign_by_requester()

    def test_signed_contract_cannot_be_terminated(self) -> None:
        sm = ContractStateMachine("signed")
        with pytest.raises(TransitionNotAllowed):
            sm.terminate()

    def test_complete_only_from_signed(self) -> None:
        sm = ContractStateMachine("pending_requester")
        with pytest.raises(TransitionNotAllowed):
            sm.complete()


class TestEscrowMachine:
    def test_fund_then_release(self) -> None:
        sm = EscrowStateMachine()
        sm.fund()
        sm.release()
        assert sm.status == "released"

    def test_release_requires_funding(self) -> None:
        sm = EscrowStateMachine("unfunded")
        with pytest.raises(TransitionNotAllowed):
            sm.release()


class TestMilestoneMachine:
    def test_full_lifecycle(self) -> None:
        sm = MilestoneStateMachine()
        for event in ("assign", "start", "submit", "approve", "mark_paid"):
            getattr(sm, event)()
        assert sm.status == "paid"

    def test_rework_loop(self) -> None:
        sm = MilestoneStateMachine("submitted")
        sm.request_changes()
        assert sm.status == "in_progress"
        sm.submit()
        assert sm.status == "submitted"

    def test_pending_cannot_be_paid(self) -> None:
        sm = MilestoneStateMachine("pending")
        with pytest.raises(TransitionNotAllowed):
            sm.mark_paid()


class TestValidateTransition:
    def test_valid_transition(self) -> None:
        assert validate_transition(EntityType.MILESTONE, "assigned", "start") == "in_progress"

    def test_invalid_transition_raises(self) -> None:
        with pytest.raises(TransitionNotAllowed):
            validate_transition(EntityType.ESCROW, "released", "fund")

    def test_unknown_event_raises_value_error(self) -> None:
        with pytest.raises(ValueError, match="Unknown event"):
            validate_transition(EntityType.CONTRACT, "draft", "teleport")

    def test_unknown_status_raises_value_error(self) -> None:
        with pytest.raises(ValueError, match="Unknown contract status"):
            machine_for(EntityType.CONTRACT, "archived")


class TestEventNames:
    def test_collects_events_from_every_state(self) -> None:
        assert event_names(EntityType.CONTRACT) == {
            "sign_by_requester", "sign_by_translator", "complete", "terminate",
        }
