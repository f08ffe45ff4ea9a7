"""Tests for MilestoneService definition, assignment and rework guards."""

from __future__ import annotations

import pytest

from translation_marketplace.domain.exceptions import (
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
)


async def _pay(workflow, requester, translator, milestone_id) -> None:
    await workflow.milestones.start_milestone(translator, milestone_id)
    await workflow.milestones.submit_milestone(translator, milestone_id)
    await workflow.milestones.approve_milestone(requester, milestone_id)
    await workflow.milestones.mark_milestone_paid(requester, milestone_id)


class TestCreateMilestone:
    @pytest.mark.asyncio
    async def test_ordinals_increase(self, workflow, requester, signed_contract) -> None:
        _, contract = await signed_contract()
        ordinals = []
        for title in ("Part 1", "Part 2", "Part 3"):
            milestone = await workflow.milestones.create_milestone(
                requester, contract.id, title=title, amount_cents=10_000
            )
            ordinals.append(milestone.ordinal)
        assert ordinals == [1, 2, 3]

        listed = await workflow.milestones.list_milestones(requester, contract.id)
        assert [m.title for m in listed] == ["Part 1", "Part 2", "Part 3"]

    @pytest.mark.asyncio
    async def test_requires_signed_contract(
        self, workflow, requester, translator, open_request
    ) -> None:
        request = await open_request()
        application = await workflow.applications.create_application(
            translator, request.id
        )
        _, contract = await workflow.applications.accept_application(
            requester, application.id
        )
        with pytest.raises(InvalidTransitionError) as exc_info:
            await workflow.milestones.create_milestone(
                requester, contract.id, title="Too early", amount_cents=10_000
            )
        assert exc_info.value.invariant == "contract_signed"

    @pytest.mark.asyncio
    async def test_amount_must_be_positive(
        self, workflow, requester, signed_contract
    ) -> None:
        _, contract = await signed_contract()
        with pytest.raises(InvalidInputError):
            await workflow.milestones.create_milestone(
                requester, contract.id, title="Free", amount_cents=0
            )

    @pytest.mark.asyncio
    async def test_translator_cannot_create(
        self, workflow, translator, signed_contract
    ) -> None:
        _, contract = await signed_contract()
        with pytest.raises(PermissionDeniedError):
            await workflow.milestones.create_milestone(
                translator, contract.id, title="Mine", amount_cents=10_000
            )


class TestEditMilestone:
    @pytest.mark.asyncio
    async def test_update_pending(self, workflow, requester, signed_contract) -> None:
        _, contract = await signed_contract()
        milestone = await workflow.milestones.create_milestone(
            requester, contract.id, title="Draft title", amount_cents=10_000
        )
        milestone = await workflow.milestones.update_milestone(
            requester, milestone.id, title="Chapters 1-3", amount_cents=12_000
        )
        assert milestone.title == "Chapters 1-3"
        assert milestone.amount_cents == 12_000
        assert milestone.status == "pending"

    @pytest.mark.asyncio
    async def test_update_after_assign_fails(
        self, workflow, requester, signed_contract
    ) -> None:
        _, contract = await signed_contract()
        milestone = await workflow.milestones.create_milestone(
            requester, contract.id, title="Part 1", amount_cents=10_000
        )
        await workflow.milestones.assign_milestone(requester, milestone.id)
        with pytest.raises(InvalidTransitionError) as exc_info:
            await workflow.milestones.update_milestone(
                requester, milestone.id, amount_cents=1
            )
        assert exc_info.value.invariant == "milestone_pending"

    @pytest.mark.asyncio
    async def test_delete_keeps_remaining_ordinals(
        self, workflow, requester, translator, signed_contract
    ) -> None:
        _, contract = await signed_contract()
        m1 = await workflow.milestones.create_milestone(
            requester, contract.id, title="Part 1", amount_cents=10_000
        )
        m2 = await workflow.milestones.create_milestone(
            requester, contract.id, title="Part 2", amount_cents=10_000
        )
        m3 = await workflow.milestones.create_milestone(
            requester, contract.id, title="Part 3", amount_cents=10_000
        )
        m2_id = m2.id

        await workflow.milestones.delete_milestone(requester, m2_id)

        listed = await workflow.milestones.list_milestones(requester, contract.id)
        assert [m.ordinal for m in listed] == [1, 3]
        with pytest.raises(NotFoundError):
            await workflow.milestones.get_milestone(requester, m2_id)

        # Milestone 3 now follows milestone 1.
        await workflow.milestones.assign_milestone(requester, m1.id)
        await workflow.milestones.assign_milestone(requester, m3.id)
        await _pay(workflow, requester, translator, m1.id)
        m3 = await workflow.milestones.start_milestone(translator, m3.id)
        assert m3.status == "in_progress"

    @pytest.mark.asyncio
    async def test_deleting_last_unpaid_milestone_completes_contract(
        self, workflow, requester, translator, signed_contract
    ) -> None:
        request, contract = await signed_contract()
        m1 = await workflow.milestones.create_milestone(
            requester, contract.id, title="Part 1", amount_cents=10_000
        )
        m2 = await workflow.milestones.create_milestone(
            requester, contract.id, title="Part 2", amount_cents=10_000
        )
        await workflow.milestones.assign_milestone(requester, m1.id)
        await _pay(workflow, requester, translator, m1.id)

        await workflow.milestones.delete_milestone(requester, m2.id)

        contract = await workflow.contracts.get_contract(requester, contract.id)
        assert contract.status == "completed"
        request = await workflow.requests.get_request(requester, request.id)
        assert request.status == "completed"


class TestAssignMilestone:
    @pytest.mark.asyncio
    async def test_assignee_must_be_contract_translator(
        self, workflow, requester, other_translator, signed_contract
    ) -> None:
        _, contract = await signed_contract()
        milestone = await workflow.milestones.create_milestone(
            requester, contract.id, title="Part 1", amount_cents=10_000
        )
        with pytest.raises(InvalidTransitionError) as exc_info:
            await workflow.milestones.assign_milestone(
                requester, milestone.id, translator_id=other_translator.id
            )
        assert exc_info.value.invariant == "assignee_is_contract_translator"

    @pytest.mark.asyncio
    async def test_assign_twice_fails(self, workflow, requester, signed_contract) -> None:
        _, contract = await signed_contract()
        milestone = await workflow.milestones.create_milestone(
            requester, contract.id, title="Part 1", amount_cents=10_000
        )
        await workflow.milestones.assign_milestone(requester, milestone.id)
        with pytest.raises(InvalidTransitionError) as exc_info:
            await workflow.milestones.assign_milestone(requester, milestone.id)
        assert exc_info.value.invariant == "milestone_unassigned"


class TestWorkingMilestone:
    @pytest.mark.asyncio
    async def test_request_changes_loop(
        self, workflow, requester, translator, signed_contract
    ) -> None:
        _, contract = await signed_contract()
        milestone = await workflow.milestones.create_milestone(
            requester, contract.id, title="Part 1", amount_cents=10_000
        )
        await workflow.milestones.assign_milestone(requester, milestone.id)
        await workflow.milestones.start_milestone(translator, milestone.id)
        await workflow.milestones.submit_milestone(translator, milestone.id, notes="v1")

        milestone = await workflow.milestones.request_changes(
            requester, milestone.id, feedback="Tone is off in chapter 2"
        )
        assert milestone.status == "in_progress"

        milestone = await workflow.milestones.submit_milestone(
            translator, milestone.id, notes="v2"
        )
        assert milestone.status == "submitted"
        assert milestone.submission_notes == "v2"

    @pytest.mark.asyncio
    async def test_cannot_pay_unapproved(
        self, workflow, requester, translator, signed_contract
    ) -> None:
        _, contract = await signed_contract()
        milestone = await workflow.milestones.create_milestone(
            requester, contract.id, title="Part 1", amount_cents=10_000
        )
        await workflow.milestones.assign_milestone(requester, milestone.id)
        await workflow.milestones.start_milestone(translator, milestone.id)
        with pytest.raises(InvalidTransitionError) as exc_info:
            await workflow.milestones.mark_milestone_paid(requester, milestone.id)
        assert exc_info.value.current_status == "in_progress"
        assert milestone.paid_at is None
        assert milestone.status == "in_progress"

    @pytest.mark.asyncio
    async def test_approval_records_approver(
        self, workflow, requester, translator, signed_contract
    ) -> None:
        _, contract = await signed_contract()
        milestone = await workflow.milestones.create_milestone(
            requester, contract.id, title="Part 1", amount_cents=10_000
        )
        await workflow.milestones.assign_milestone(requester, milestone.id)
        await workflow.milestones.start_milestone(translator, milestone.id)

        with pytest.raises(InvalidTransitionError):
            await workflow.milestones.approve_milestone(requester, milestone.id)
        assert milestone.approved_by is None
        assert milestone.approved_at is None

        await workflow.milestones.submit_milestone(translator, milestone.id)
        milestone = await workflow.milestones.approve_milestone(requester, milestone.id)
        assert milestone.approved_by == "U1"
        assert milestone.approved_at is not None

    @pytest.mark.asyncio
    async def test_translator_cannot_approve_own_work(
        self, workflow, requester, translator, signed_contract
    ) -> None:
        _, contract = await signed_contract()
        milestone = await workflow.milestones.create_milestone(
            requester, contract.id, title="Part 1", amount_cents=10_000
        )
        await workflow.milestones.assign_milestone(requester, milestone.id)
        await workflow.milestones.start_milestone(translator, milestone.id)
        await workflow.milestones.submit_milestone(translator, milestone.id)
        with pytest.raises(PermissionDeniedError):
            await workflow.milestones.approve_milestone(translator, milestone.id)


class TestMilestoneActions:
    @pytest.mark.asyncio
    async def test_pending_actions_for_requester(
        self, workflow, requester, translator, signed_contract
    ) -> None:
        _, contract = await signed_contract()
        milestone = await workflow.milestones.create_milestone(
            requester, contract.id, title="Part 1", amount_cents=10_000
        )
        assert set(await workflow.available_actions(requester, milestone)) == {
            "assign",
            "update",
            "delete",
        }
        assert await workflow.available_actions(translator, milestone) == []

    @pytest.mark.asyncio
    async def test_start_hidden_until_predecessor_paid(
        self, workflow, requester, translator, signed_contract
    ) -> None:
        _, contract = await signed_contract()
        m1 = await workflow.milestones.create_milestone(
            requester, contract.id, title="Part 1", amount_cents=10_000
        )
        m2 = await workflow.milestones.create_milestone(
            requester, contract.id, title="Part 2", amount_cents=10_000
        )
        m1 = await workflow.milestones.assign_milestone(requester, m1.id)
        m2 = await workflow.milestones.assign_milestone(requester, m2.id)

        assert await workflow.available_actions(translator, m1) == ["start"]
        assert await workflow.available_actions(translator, m2) == []
