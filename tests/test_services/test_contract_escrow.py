"""Tests for ContractService signatures and termination, and EscrowService."""

from __future__ import annotations

import pytest

from translation_marketplace.domain.exceptions import (
    DuplicateEntityError,
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
)


@pytest.fixture
def draft_contract(workflow, requester, translator, open_request):
    async def build():
        request = await open_request()
        application = await workflow.applications.create_application(
            translator, request.id, proposed_rate_cents=50_000
        )
        _, contract = await workflow.applications.accept_application(
            requester, application.id
        )
        return request, contract

    return build


class TestSignContract:
    @pytest.mark.asyncio
    async def test_double_sign_changes_nothing(
        self, workflow, requester, draft_contract
    ) -> None:
        _, contract = await draft_contract()
        contract = await workflow.contracts.sign_contract(requester, contract.id)
        contract_id, version = contract.id, contract.version

        with pytest.raises(InvalidTransitionError) as exc_info:
            await workflow.contracts.sign_contract(requester, contract_id)
        assert exc_info.value.invariant == "not_already_signed"

        contract = await workflow.contracts.get_contract(requester, contract_id)
        assert contract.status == "pending_translator"
        assert contract.version == version

    @pytest.mark.asyncio
    async def test_rejected_sign_leaves_held_contract_readable(
        self, workflow, requester, draft_contract
    ) -> None:
        request, contract = await draft_contract()
        contract = await workflow.contracts.sign_contract(requester, contract.id)

        with pytest.raises(InvalidTransitionError):
            await workflow.contracts.sign_contract(requester, contract.id)

        assert contract.status == "pending_translator"
        assert contract.requester_signed is True
        assert request.status == "contracted"

    @pytest.mark.asyncio
    async def test_outsider_cannot_sign(
        self, workflow, other_translator, draft_contract
    ) -> None:
        _, contract = await draft_contract()
        with pytest.raises(PermissionDeniedError):
            await workflow.contracts.sign_contract(other_translator, contract.id)

    @pytest.mark.asyncio
    async def test_reader_cannot_sign(self, workflow, reader, draft_contract) -> None:
        _, contract = await draft_contract()
        with pytest.raises(PermissionDeniedError):
            await workflow.contracts.sign_contract(reader, contract.id)

    @pytest.mark.asyncio
    async def test_signing_terminated_contract_fails(
        self, workflow, requester, translator, draft_contract
    ) -> None:
        _, contract = await draft_contract()
        await workflow.contracts.terminate_contract(requester, contract.id, reason="No budget")
        with pytest.raises(InvalidTransitionError):
            await workflow.contracts.sign_contract(translator, contract.id)

    @pytest.mark.asyncio
    async def test_contract_for_application(
        self, workflow, requester, translator, draft_contract
    ) -> None:
        _, contract = await draft_contract()
        found = await workflow.applications.get_contract_for(
            translator, contract.application_id
        )
        assert found.id == contract.id


class TestTerminateContract:
    @pytest.mark.asyncio
    async def test_signed_contract_cannot_be_terminated(
        self, workflow, requester, signed_contract
    ) -> None:
        _, contract = await signed_contract()
        with pytest.raises(InvalidTransitionError):
            await workflow.contracts.terminate_contract(requester, contract.id)

    @pytest.mark.asyncio
    async def test_translator_cannot_terminate(
        self, workflow, translator, draft_contract
    ) -> None:
        _, contract = await draft_contract()
        with pytest.raises(PermissionDeniedError):
            await workflow.contracts.terminate_contract(translator, contract.id)


class TestContractActions:
    @pytest.mark.asyncio
    async def test_actions_follow_signature_slots(
        self, workflow, requester, translator, draft_contract
    ) -> None:
        _, contract = await draft_contract()
        assert set(await workflow.available_actions(requester, contract)) == {
            "sign",
            "terminate",
        }
        assert await workflow.available_actions(translator, contract) == ["sign"]

        contract = await workflow.contracts.sign_contract(requester, contract.id)
        assert await workflow.available_actions(requester, contract) == ["terminate"]
        assert await workflow.available_actions(translator, contract) == ["sign"]

        contract = await workflow.contracts.sign_contract(translator, contract.id)
        assert await workflow.available_actions(requester, contract) == ["create_milestone"]
        assert await workflow.available_actions(translator, contract) == []


class TestAutoOpenedEscrow:
    @pytest.mark.asyncio
    async def test_signed_contract_gets_unfunded_escrow(
        self, workflow, requester, translator, signed_contract
    ) -> None:
        _, contract = await signed_contract()
        escrow = await workflow.escrows.get_contract_escrow(translator, contract.id)
        assert escrow.status == "unfunded"
        assert escrow.amount_cents == contract.total_amount_cents
        assert escrow.requester_id == requester.id

    @pytest.mark.asyncio
    async def test_unsigned_contract_has_no_escrow(
        self, workflow, requester, draft_contract
    ) -> None:
        _, contract = await draft_contract()
        with pytest.raises(NotFoundError):
            await workflow.escrows.get_contract_escrow(requester, contract.id)

    @pytest.mark.asyncio
    async def test_second_escrow_for_contract_rejected(
        self, workflow, requester, signed_contract
    ) -> None:
        _, contract = await signed_contract()
        with pytest.raises(DuplicateEntityError):
            await workflow.escrows.create_escrow(
                requester, amount_cents=1_000, contract_id=contract.id
            )


class TestEscrowLifecycle:
    @pytest.mark.asyncio
    async def test_fund_then_release_by_system(
        self, workflow, requester, system, signed_contract
    ) -> None:
        _, contract = await signed_contract()
        escrow = await workflow.escrows.get_contract_escrow(requester, contract.id)

        escrow = await workflow.escrows.fund_escrow(requester, escrow.id)
        assert escrow.status == "funded"
        assert escrow.funded_at is not None

        escrow = await workflow.escrows.release_escrow(system, escrow.id)
        assert escrow.status == "released"
        assert escrow.released_at is not None

    @pytest.mark.asyncio
    async def test_double_fund_fails(self, workflow, requester) -> None:
        escrow = await workflow.escrows.create_escrow(requester, amount_cents=25_000)
        await workflow.escrows.fund_escrow(requester, escrow.id)
        with pytest.raises(InvalidTransitionError) as exc_info:
            await workflow.escrows.fund_escrow(requester, escrow.id)
        assert exc_info.value.current_status == "funded"
        assert escrow.status == "funded"
        assert escrow.released_at is None

    @pytest.mark.asyncio
    async def test_release_requires_funding(self, workflow, requester) -> None:
        escrow = await workflow.escrows.create_escrow(requester, amount_cents=25_000)
        with pytest.raises(InvalidTransitionError):
            await workflow.escrows.release_escrow(requester, escrow.id)

    @pytest.mark.asyncio
    async def test_translator_cannot_fund(
        self, workflow, requester, translator, signed_contract
    ) -> None:
        _, contract = await signed_contract()
        escrow = await workflow.escrows.get_contract_escrow(requester, contract.id)
        with pytest.raises(PermissionDeniedError):
            await workflow.escrows.fund_escrow(translator, escrow.id)

    @pytest.mark.asyncio
    async def test_standalone_escrow_is_private(
        self, workflow, requester, translator
    ) -> None:
        escrow = await workflow.escrows.create_escrow(requester, amount_cents=5_000)
        assert escrow.contract_id is None
        with pytest.raises(NotFoundError):
            await workflow.escrows.get_escrow(translator, escrow.id)

    @pytest.mark.asyncio
    async def test_amount_must_be_positive(self, workflow, requester) -> None:
        with pytest.raises(InvalidInputError):
            await workflow.escrows.create_escrow(requester, amount_cents=0)

    @pytest.mark.asyncio
    async def test_translator_lists_escrows_they_are_paid_from(
        self, workflow, requester, translator, signed_contract
    ) -> None:
        _, contract = await signed_contract()
        await workflow.escrows.create_escrow(requester, amount_cents=5_000)

        mine = await workflow.escrows.list_escrows(translator)
        assert [e.contract_id for e in mine] == [contract.id]
        assert len(await workflow.escrows.list_escrows(requester)) == 2

    @pytest.mark.asyncio
    async def test_escrow_actions(self, workflow, requester, system) -> None:
        escrow = await workflow.escrows.create_escrow(requester, amount_cents=5_000)
        assert await workflow.available_actions(requester, escrow) == ["fund"]
        escrow = await workflow.escrows.fund_escrow(requester, escrow.id)
        assert await workflow.available_actions(system, escrow) == ["release"]
