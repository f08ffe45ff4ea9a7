"""Tests for RequestService and ApplicationService guards.

Covers uniqueness, cancellation policy and cascade, visibility of drafts,
the audit trail, and available_actions hints.
"""

from __future__ import annotations

import pytest

from translation_marketplace.domain.enums import ActorRole, RequestStatus
from translation_marketplace.domain.exceptions import (
    DuplicateEntityError,
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
)
from translation_marketplace.domain.permissions import Actor


class TestCreateRequest:
    @pytest.mark.asyncio
    async def test_created_open_by_default(self, open_request, requester) -> None:
        request = await open_request()
        assert request.status == "open"
        assert request.requester_id == requester.id
        assert request.version >= 2

    @pytest.mark.asyncio
    async def test_draft_when_not_published(self, open_request) -> None:
        request = await open_request(publish=False)
        assert request.status == "draft"

    @pytest.mark.asyncio
    async def test_one_active_request_per_book(self, open_request) -> None:
        await open_request()
        with pytest.raises(DuplicateEntityError):
            await open_request()

    @pytest.mark.asyncio
    async def test_book_reusable_after_cancel(self, workflow, requester, open_request) -> None:
        first = await open_request()
        await workflow.requests.cancel_request(requester, first.id)
        second = await open_request()
        assert second.id != first.id

    @pytest.mark.asyncio
    async def test_translator_cannot_create(
        self, workflow, translator, sample_request_data
    ) -> None:
        with pytest.raises(PermissionDeniedError):
            await workflow.requests.create_request(translator, **sample_request_data)

    @pytest.mark.asyncio
    async def test_budget_must_be_positive(self, open_request) -> None:
        with pytest.raises(InvalidInputError):
            await open_request(budget_cents=0)


class TestPublish:
    @pytest.mark.asyncio
    async def test_publish_draft(self, workflow, requester, open_request) -> None:
        draft = await open_request(publish=False)
        request = await workflow.requests.publish_request(requester, draft.id)
        assert request.status == "open"

    @pytest.mark.asyncio
    async def test_publish_twice_fails(self, workflow, requester, open_request) -> None:
        request = await open_request()
        with pytest.raises(InvalidTransitionError) as exc_info:
            await workflow.requests.publish_request(requester, request.id)
        assert exc_info.value.current_status == "open"


class TestCancel:
    @pytest.mark.asyncio
    async def test_cascades_to_applications_and_unsigned_contracts(
        self, workflow, requester, translator, other_translator, open_request
    ) -> None:
        request = await open_request()
        accepted = await workflow.applications.create_application(translator, request.id)
        pending = await workflow.applications.create_application(
            other_translator, request.id
        )
        _, contract = await workflow.applications.accept_application(
            requester, accepted.id
        )
        await workflow.contracts.sign_contract(requester, contract.id)

        request = await workflow.requests.cancel_request(
            requester, request.id, reason="Project shelved"
        )
        assert request.status == "cancelled"

        pending = await workflow.applications.get_application(requester, pending.id)
        assert pending.status == "rejected"
        contract = await workflow.contracts.get_contract(requester, contract.id)
        assert contract.status == "terminated"

    @pytest.mark.asyncio
    async def test_blocked_once_a_contract_is_signed(
        self, workflow, requester, signed_contract
    ) -> None:
        request, _ = await signed_contract()
        request_id = request.id
        with pytest.raises(InvalidTransitionError) as exc_info:
            await workflow.requests.cancel_request(requester, request_id)
        assert exc_info.value.invariant == "no_signed_contract"

        request = await workflow.requests.get_request(requester, request_id)
        assert request.status == "in_progress"

    @pytest.mark.asyncio
    async def test_cancel_twice_fails(self, workflow, requester, open_request) -> None:
        request = await open_request()
        await workflow.requests.cancel_request(requester, request.id)
        with pytest.raises(InvalidTransitionError):
            await workflow.requests.cancel_request(requester, request.id)

    @pytest.mark.asyncio
    async def test_other_requester_denied(self, workflow, open_request) -> None:
        request = await open_request()
        stranger = Actor("U7", ActorRole.REQUESTER)
        with pytest.raises(PermissionDeniedError):
            await workflow.requests.cancel_request(stranger, request.id)


class TestApplications:
    @pytest.mark.asyncio
    async def test_one_application_per_translator(
        self, workflow, translator, open_request
    ) -> None:
        request = await open_request()
        await workflow.applications.create_application(translator, request.id)
        with pytest.raises(DuplicateEntityError):
            await workflow.applications.create_application(translator, request.id)

    @pytest.mark.asyncio
    async def test_reapply_after_withdraw(self, workflow, translator, open_request) -> None:
        request = await open_request()
        first = await workflow.applications.create_application(translator, request.id)
        first = await workflow.applications.withdraw_application(translator, first.id)
        assert first.status == "withdrawn"

        second = await workflow.applications.create_application(translator, request.id)
        assert second.status == "pending"

    @pytest.mark.asyncio
    async def test_draft_request_is_invisible_to_translators(
        self, workflow, translator, open_request
    ) -> None:
        draft = await open_request(publish=False)
        with pytest.raises(NotFoundError):
            await workflow.applications.create_application(translator, draft.id)

    @pytest.mark.asyncio
    async def test_applications_need_an_open_request(
        self, workflow, requester, translator, other_translator, open_request
    ) -> None:
        request = await open_request()
        application = await workflow.applications.create_application(
            translator, request.id
        )
        await workflow.applications.accept_application(requester, application.id)

        with pytest.raises(InvalidTransitionError) as exc_info:
            await workflow.applications.create_application(other_translator, request.id)
        assert exc_info.value.invariant == "request_open"

    @pytest.mark.asyncio
    async def test_requester_cannot_apply_to_own_request(
        self, workflow, requester, open_request
    ) -> None:
        request = await open_request()
        as_translator = Actor(requester.id, ActorRole.TRANSLATOR)
        with pytest.raises(PermissionDeniedError):
            await workflow.applications.create_application(as_translator, request.id)

    @pytest.mark.asyncio
    async def test_reject_is_final(self, workflow, requester, translator, open_request) -> None:
        request = await open_request()
        application = await workflow.applications.create_application(
            translator, request.id
        )
        await workflow.applications.reject_application(requester, application.id)
        with pytest.raises(InvalidTransitionError):
            await workflow.applications.accept_application(requester, application.id)

    @pytest.mark.asyncio
    async def test_accept_blocked_once_request_is_contracted(
        self, workflow, requester, translator, other_translator, open_request
    ) -> None:
        request = await open_request()
        first = await workflow.applications.create_application(translator, request.id)
        second = await workflow.applications.create_application(
            other_translator, request.id
        )
        _, contract = await workflow.applications.accept_application(requester, first.id)
        await workflow.contracts.sign_contract(requester, contract.id)
        assert request.status == "contracted"

        with pytest.raises(InvalidTransitionError) as exc_info:
            await workflow.applications.accept_application(requester, second.id)
        assert exc_info.value.invariant == "request_accepting_applications"
        assert second.status == "pending"

    @pytest.mark.asyncio
    async def test_accept_blocked_on_cancelled_request(
        self, workflow, requester, translator, open_request
    ) -> None:
        request = await open_request()
        application = await workflow.applications.create_application(
            translator, request.id
        )
        await workflow.requests.cancel_request(requester, request.id)

        with pytest.raises(InvalidTransitionError) as exc_info:
            await workflow.applications.accept_application(requester, application.id)
        assert exc_info.value.invariant == "request_accepting_applications"

    @pytest.mark.asyncio
    async def test_only_applicant_may_withdraw(
        self, workflow, translator, other_translator, open_request
    ) -> None:
        request = await open_request()
        application = await workflow.applications.create_application(
            translator, request.id
        )
        with pytest.raises(PermissionDeniedError):
            await workflow.applications.withdraw_application(
                other_translator, application.id
            )
        assert application.status == "pending"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("decision", ["accept_application", "reject_application"])
    async def test_decided_application_cannot_be_withdrawn(
        self, workflow, requester, translator, open_request, decision
    ) -> None:
        request = await open_request()
        application = await workflow.applications.create_application(
            translator, request.id
        )
        await getattr(workflow.applications, decision)(requester, application.id)
        status = application.status

        with pytest.raises(InvalidTransitionError):
            await workflow.applications.withdraw_application(translator, application.id)
        assert application.status == status

    @pytest.mark.asyncio
    async def test_translator_only_sees_own_applications(
        self, workflow, requester, translator, other_translator, open_request
    ) -> None:
        request = await open_request()
        await workflow.applications.create_application(translator, request.id)
        await workflow.applications.create_application(other_translator, request.id)

        mine = await workflow.applications.list_applications(translator, request.id)
        assert [a.translator_id for a in mine] == ["U2"]
        everyone = await workflow.applications.list_applications(requester, request.id)
        assert len(everyone) == 2


class TestVisibility:
    @pytest.mark.asyncio
    async def test_draft_hidden_from_reader(self, workflow, reader, open_request) -> None:
        draft = await open_request(publish=False)
        with pytest.raises(NotFoundError):
            await workflow.requests.get_request(reader, draft.id)

    @pytest.mark.asyncio
    async def test_list_skips_other_peoples_drafts(
        self, workflow, requester, reader, open_request
    ) -> None:
        await open_request(book_id="b-draft", publish=False)
        await open_request(book_id="b-open")

        assert {r.book_id for r in await workflow.requests.list_requests(reader)} == {
            "b-open"
        }
        assert {r.book_id for r in await workflow.requests.list_requests(requester)} == {
            "b-draft",
            "b-open",
        }

    @pytest.mark.asyncio
    async def test_list_filters_by_status(self, workflow, reader, open_request) -> None:
        await open_request(book_id="b-1")
        requests = await workflow.requests.list_requests(reader, RequestStatus.COMPLETED)
        assert requests == []

    @pytest.mark.asyncio
    async def test_contract_hidden_from_outsiders(
        self, workflow, other_translator, signed_contract
    ) -> None:
        _, contract = await signed_contract()
        with pytest.raises(NotFoundError):
            await workflow.contracts.get_contract(other_translator, contract.id)


class TestAuditTrail:
    @pytest.mark.asyncio
    async def test_every_transition_recorded_in_order(
        self, workflow, requester, signed_contract
    ) -> None:
        request, _ = await signed_contract()
        events = await workflow.requests.get_events(requester, request.id)

        request_steps = [e.to_status for e in events if e.entity_type == "request"]
        assert request_steps == ["draft", "open", "reviewing", "contracted", "in_progress"]
        contract_steps = [e.to_status for e in events if e.entity_type == "contract"]
        assert contract_steps == ["draft", "pending_translator", "signed"]
        assert [e.entity_type for e in events].count("escrow") == 1

    @pytest.mark.asyncio
    async def test_outsider_sees_only_request_events(
        self, workflow, other_translator, signed_contract
    ) -> None:
        request, _ = await signed_contract()
        events = await workflow.requests.get_events(other_translator, request.id)
        assert events
        assert {e.entity_type for e in events} == {"request"}


class TestAvailableActions:
    @pytest.mark.asyncio
    async def test_request_actions(
        self, workflow, requester, translator, reader, open_request
    ) -> None:
        request = await open_request()
        assert await workflow.available_actions(requester, request) == ["cancel"]
        assert await workflow.available_actions(translator, request) == ["apply"]
        assert await workflow.available_actions(reader, request) == []

        await workflow.applications.create_application(translator, request.id)
        assert await workflow.available_actions(translator, request) == []

    @pytest.mark.asyncio
    async def test_draft_request_actions(self, workflow, requester, open_request) -> None:
        draft = await open_request(publish=False)
        assert set(await workflow.available_actions(requester, draft)) == {
            "publish",
            "cancel",
        }

    @pytest.mark.asyncio
    async def test_cancel_hidden_once_signed(
        self, workflow, requester, signed_contract
    ) -> None:
        request, _ = await signed_contract()
        assert "cancel" not in await workflow.available_actions(requester, request)

    @pytest.mark.asyncio
    async def test_application_actions(
        self, workflow, requester, translator, open_request
    ) -> None:
        request = await open_request()
        application = await workflow.applications.create_application(
            translator, request.id
        )
        assert set(await workflow.available_actions(requester, application)) == {
            "accept",
            "reject",
        }
        assert await workflow.available_actions(translator, application) == ["withdraw"]
