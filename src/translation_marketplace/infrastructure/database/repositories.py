"""Repository classes for database access.

Repositories encapsulate all SQL queries and provide a clean interface
to the service layer. They accept an AsyncSession and never manage
their own transactions (that's the caller's responsibility).

Every write flushes immediately so that unique-constraint and version
conflicts surface inside the service operation that caused them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Generic, TypeVar

from sqlalchemy import func, or_, select

from translation_marketplace.domain.enums import (
    ApplicationStatus,
    RequestStatus,
)
from translation_marketplace.infrastructure.database.orm_models import (
    Application,
    Base,
    Contract,
    Escrow,
    Milestone,
    TranslationRequest,
    WorkflowEvent,
)

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

ModelT = TypeVar("ModelT", bound=Base)


class _Repository(Generic[ModelT]):
    """CRUD shared by the five entity repositories."""

    model: type[ModelT]

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, entity: ModelT) -> ModelT:
        """Insert a new row."""
        self._session.add(entity)
        await self._session.flush()
        return entity

    async def get_by_id(
        self, entity_id: uuid.UUID, *, for_update: bool = False
    ) -> ModelT | None:
        """Fetch a row by its UUID.

        With for_update=True the row is locked until the transaction ends
        (SELECT ... FOR UPDATE; a no-op on SQLite) and re-read from the database.
        """
        stmt = select(self.model).where(self.model.id == entity_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def save(self, entity: ModelT) -> ModelT:
        """Flush pending changes on a loaded row (bumps its version)."""
        await self._session.flush()
        return entity

    async def delete(self, entity: ModelT) -> None:
        await self._session.delete(entity)
        await self._session.flush()


class RequestRepository(_Repository[TranslationRequest]):
    """Data access for translation requests."""

    model = TranslationRequest

    async def get_active_for_book(
        self, requester_id: str, book_id: str
    ) -> TranslationRequest | None:
        """The requester's non-cancelled request for a book, if any."""
        result = await self._session.execute(
            select(TranslationRequest).where(
                TranslationRequest.requester_id == requester_id,
                TranslationRequest.book_id == book_id,
                TranslationRequest.status != RequestStatus.CANCELLED.value,
            )
        )
        return result.scalar_one_or_none()

    async def list_visible(
        self,
        actor_id: str,
        status: RequestStatus | None = None,
    ) -> list[TranslationRequest]:
        """Published requests plus the actor's own drafts, newest first."""
        stmt = select(TranslationRequest).where(
            or_(
                TranslationRequest.status != RequestStatus.DRAFT.value,
                TranslationRequest.requester_id == actor_id,
            )
        )
        if status is not None:
            stmt = stmt.where(TranslationRequest.status == status.value)
        result = await self._session.execute(
            stmt.order_by(TranslationRequest.created_at.desc())
        )
        return list(result.scalars().all())


class ApplicationRepository(_Repository[Application]):
    """Data access for applications."""

    model = Application

    async def get_active(
        self, request_id: uuid.UUID, translator_id: str
    ) -> Application | None:
        """The translator's non-withdrawn application on a request, if any."""
        result = await self._session.execute(
            select(Application).where(
                Application.request_id == request_id,
                Application.translator_id == translator_id,
                Application.status != ApplicationStatus.WITHDRAWN.value,
            )
        )
        return result.scalar_one_or_none()

    async def list_by_request(
        self,
        request_id: uuid.UUID,
        status: ApplicationStatus | None = None,
    ) -> list[Application]:
        """Applications on a request, oldest first."""
        stmt = select(Application).where(Application.request_id == request_id)
        if status is not None:
            stmt = stmt.where(Application.status == status.value)
        result = await self._session.execute(stmt.order_by(Application.created_at.asc()))
        return list(result.scalars().all())

    async def count_accepted(self, request_id: uuid.UUID) -> int:
        result = await self._session.execute(
            select(func.count())
            .select_from(Application)
            .where(
                Application.request_id == request_id,
                Application.status == ApplicationStatus.ACCEPTED.value,
            )
        )
        return int(result.scalar_one())


class ContractRepository(_Repository[Contract]):
    """Data access for contracts."""

    model = Contract

    async def get_by_application(self, application_id: uuid.UUID) -> Contract | None:
        result = await self._session.execute(
            select(Contract).where(Contract.application_id == application_id)
        )
        return result.scalar_one_or_none()

    async def list_by_request(self, request_id: uuid.UUID) -> list[Contract]:
        result = await self._session.execute(
            select(Contract)
            .where(Contract.request_id == request_id)
            .order_by(Contract.created_at.asc())
        )
        return list(result.scalars().all())

    async def list_for_party(self, actor_id: str) -> list[Contract]:
        """Contracts where the actor is requester or translator, newest first."""
        result = await self._session.execute(
            select(Contract)
            .where(
                or_(
                    Contract.requester_id == actor_id,
                    Contract.translator_id == actor_id,
                )
            )
            .order_by(Contract.created_at.desc())
        )
        return list(result.scalars().all())


class MilestoneRepository(_Repository[Milestone]):
    """Data access for milestones."""

    model = Milestone

    async def list_by_contract(self, contract_id: uuid.UUID) -> list[Milestone]:
        """Milestones of a contract in ordinal order."""
        result = await self._session.execute(
            select(Milestone)
            .where(Milestone.contract_id == contract_id)
            .order_by(Milestone.ordinal.asc())
        )
        return list(result.scalars().all())

    async def get_predecessor(self, milestone: Milestone) -> Milestone | None:
        """The milestone with the highest ordinal below this one, if any."""
        result = await self._session.execute(
            select(Milestone)
            .where(
                Milestone.contract_id == milestone.contract_id,
                Milestone.ordinal < milestone.ordinal,
            )
            .order_by(Milestone.ordinal.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_request_id(self, milestone_id: uuid.UUID) -> uuid.UUID | None:
        """The request a milestone ultimately belongs to."""
        result = await self._session.execute(
            select(Contract.request_id)
            .join(Milestone, Milestone.contract_id == Contract.id)
            .where(Milestone.id == milestone_id)
        )
        return result.scalar_one_or_none()

    async def max_ordinal(self, contract_id: uuid.UUID) -> int:
        """Highest ordinal used in a contract (0 when it has none)."""
        result = await self._session.execute(
            select(func.max(Milestone.ordinal)).where(Milestone.contract_id == contract_id)
        )
        return int(result.scalar_one() or 0)


class EscrowRepository(_Repository[Escrow]):
    """Data access for escrows."""

    model = Escrow

    async def get_by_contract(self, contract_id: uuid.UUID) -> Escrow | None:
        result = await self._session.execute(
            select(Escrow).where(Escrow.contract_id == contract_id)
        )
        return result.scalar_one_or_none()

    async def list_by_requester(self, requester_id: str) -> list[Escrow]:
        result = await self._session.execute(
            select(Escrow)
            .where(Escrow.requester_id == requester_id)
            .order_by(Escrow.created_at.desc())
        )
        return list(result.scalars().all())


class EventRepository:
    """Data access for the append-only audit event log."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record(self, evt: WorkflowEvent) -> WorkflowEvent:
        """Append a new audit event. This is the ONLY write operation allowed."""
        self._session.add(evt)
        await self._session.flush()
        return evt

    async def list_by_request(self, request_id: uuid.UUID) -> list[WorkflowEvent]:
        """All events of a request's entities in chronological order."""
        result = await self._session.execute(
            select(WorkflowEvent)
            .where(WorkflowEvent.request_id == request_id)
            .order_by(WorkflowEvent.created_at.asc())
        )
        return list(result.scalars().all())
