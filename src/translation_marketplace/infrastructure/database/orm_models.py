"""SQLAlchemy 2.0 ORM models for the translation marketplace.

Six tables:
    1. translation_requests     - A requester's published need for a translation.
    2. applications             - A translator's bid against a request.
    3. contracts                - Agreement formed from exactly one accepted application.
    4. escrows                  - Funds held against a contract (or standalone).
    5. milestones               - Ordinal, payable units of work under a contract.
    6. workflow_events          - Append-only audit log of every status change.

Design decisions:
    - Flat tables keyed by UUID with explicit foreign keys; no relationships,
      so the services always read one authoritative row per entity.
    - Integer cents for every amount.
    - `version` is a SQLAlchemy version_id_col: a concurrent write to the same
      row raises StaleDataError at flush time.
    - Partial unique indexes for "one active request per (requester, book)"
      and "one non-withdrawn application per (request, translator)".
    - CHECK constraints on statuses, positive amounts and signature consistency.
    - workflow_events is append-only: no UPDATE or DELETE at the application level.
"""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    event,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from translation_marketplace.domain.enums import (
    ApplicationStatus,
    ContractStatus,
    EscrowStatus,
    MilestoneStatus,
    RequestStatus,
)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _status_check(name: str, enum_cls: type) -> CheckConstraint:
    values = ", ".join(f"'{member.value}'" for member in enum_cls)
    return CheckConstraint(f"status IN ({values})", name=name)


def _set_updated_at(mapper, connection, target):  # noqa: ANN001
    """SQLAlchemy event listener that updates `updated_at` before flush."""
    target.updated_at = _utcnow()


# ---------------------------------------------------------------------------
# 1. translation_requests
# ---------------------------------------------------------------------------
class TranslationRequest(Base):
    """A requester's need to translate one book into a target language."""

    __tablename__ = "translation_requests"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    requester_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="User id of the requester who owns the request",
    )
    book_id: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_language: Mapped[str] = mapped_column(String(16), nullable=False)
    target_language: Mapped[str] = mapped_column(String(16), nullable=False)
    budget_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    deadline: Mapped[date | None] = mapped_column(Date, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=RequestStatus.DRAFT.value,
        comment="Guarded by RequestStateMachine; derived past 'open'",
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        _status_check("ck_request_valid_status", RequestStatus),
        CheckConstraint("budget_cents > 0", name="ck_request_positive_budget"),
        Index(
            "uq_request_active_book",
            "requester_id",
            "book_id",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
        Index("idx_request_status", "status"),
        Index("idx_request_requester", "requester_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<TranslationRequest id={self.id} book={self.book_id} "
            f"status={self.status}>"
        )


# ---------------------------------------------------------------------------
# 2. applications
# ---------------------------------------------------------------------------
class Application(Base):
    """A translator's bid against an open request."""

    __tablename__ = "applications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    request_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("translation_requests.id", ondelete="CASCADE"),
        nullable=False,
    )
    translator_id: Mapped[str] = mapped_column(String(64), nullable=False)
    motivation: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Cover letter shown to the requester",
    )
    proposed_rate_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ApplicationStatus.PENDING.value
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        _status_check("ck_application_valid_status", ApplicationStatus),
        CheckConstraint(
            "proposed_rate_cents IS NULL OR proposed_rate_cents > 0",
            name="ck_application_positive_rate",
        ),
        Index(
            "uq_application_active_translator",
            "request_id",
            "translator_id",
            unique=True,
            postgresql_where=text("status <> 'withdrawn'"),
            sqlite_where=text("status <> 'withdrawn'"),
        ),
        Index("idx_application_request", "request_id"),
        Index("idx_application_translator", "translator_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Application id={self.id} request={self.request_id} "
            f"translator={self.translator_id} status={self.status}>"
        )


# ---------------------------------------------------------------------------
# 3. contracts
# ---------------------------------------------------------------------------
class Contract(Base):
    """Binding agreement created from one accepted application."""

    __tablename__ = "contracts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    request_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("translation_requests.id", ondelete="CASCADE"),
        nullable=False,
    )
    application_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        comment="One contract per application",
    )
    requester_id: Mapped[str] = mapped_column(String(64), nullable=False)
    translator_id: Mapped[str] = mapped_column(String(64), nullable=False)

    total_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    assigned_pages: Mapped[list | None] = mapped_column(JSON, nullable=True)

    # --- Signatures ---
    requester_signed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    translator_signed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    requester_signature_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    translator_signature_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ContractStatus.DRAFT.value
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        _status_check("ck_contract_valid_status", ContractStatus),
        CheckConstraint("total_amount_cents > 0", name="ck_contract_positive_amount"),
        # Both flags set <=> signed or completed.
        CheckConstraint(
            "(status NOT IN ('signed', 'completed') "
            "OR (requester_signed AND translator_signed)) "
            "AND (status IN ('signed', 'completed') "
            "OR NOT (requester_signed AND translator_signed))",
            name="ck_contract_signatures_match_status",
        ),
        Index("idx_contract_request", "request_id"),
        Index("idx_contract_requester", "requester_id"),
        Index("idx_contract_translator", "translator_id"),
    )

    @property
    def fully_signed(self) -> bool:
        return bool(self.requester_signed and self.translator_signed)

    def __repr__(self) -> str:
        return (
            f"<Contract id={self.id} status={self.status} "
            f"signed={self.requester_signed}/{self.translator_signed}>"
        )


# ---------------------------------------------------------------------------
# 4. escrows
# ---------------------------------------------------------------------------
class Escrow(Base):
    """Funds held against a contract, or standalone when contract_id is null."""

    __tablename__ = "escrows"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    contract_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=True,
        unique=True,
    )
    requester_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Requester who funds and releases the escrow",
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=EscrowStatus.UNFUNDED.value
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    funded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    released_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        _status_check("ck_escrow_valid_status", EscrowStatus),
        CheckConstraint("amount_cents > 0", name="ck_escrow_positive_amount"),
        Index("idx_escrow_requester", "requester_id"),
    )

    def __repr__(self) -> str:
        return f"<Escrow id={self.id} contract={self.contract_id} status={self.status}>"


# ---------------------------------------------------------------------------
# 5. milestones
# ---------------------------------------------------------------------------
class Milestone(Base):
    """A payable unit of work, worked in ordinal order within its contract."""

    __tablename__ = "milestones"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    contract_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
    )
    ordinal: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    translator_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        default=None,
        comment="Set on assignment; must equal the contract's translator",
    )
    submission_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=MilestoneStatus.PENDING.value
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    submitted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    approved_by: Mapped[str | None] = mapped_column(
        String(64), nullable=True, comment="Actor id of the requester who approved"
    )
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        _status_check("ck_milestone_valid_status", MilestoneStatus),
        UniqueConstraint("contract_id", "ordinal", name="uq_milestone_ordinal"),
        CheckConstraint("amount_cents > 0", name="ck_milestone_positive_amount"),
        CheckConstraint("ordinal > 0", name="ck_milestone_positive_ordinal"),
        Index("idx_milestone_contract", "contract_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Milestone id={self.id} contract={self.contract_id} "
            f"#{self.ordinal} status={self.status}>"
        )


# ---------------------------------------------------------------------------
# 6. workflow_events (Append-Only Audit Log)
# ---------------------------------------------------------------------------
class WorkflowEvent(Base):
    """Immutable record of one status change on one entity.

    This table is APPEND-ONLY. No UPDATE or DELETE operations are permitted
    at the application level.
    """

    __tablename__ = "workflow_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)
    entity_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    request_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        nullable=True,
        comment="Owning request (null for standalone escrows)",
    )
    action: Mapped[str] = mapped_column(String(40), nullable=False)
    from_status: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
        comment="Status before this event (null for creation)",
    )
    to_status: Mapped[str] = mapped_column(String(20), nullable=False)
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_version: Mapped[int | None] = mapped_column(Integer, nullable=True)
    metadata_json: Mapped[dict | None] = mapped_column(
        "metadata",
        JSON,
        nullable=True,
        default=None,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        Index("idx_event_entity", "entity_type", "entity_id"),
        Index("idx_event_request", "request_id"),
        Index("idx_event_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<WorkflowEvent {self.entity_type}:{self.entity_id} "
            f"{self.from_status}->{self.to_status}>"
        )


for _model in (TranslationRequest, Application, Contract, Escrow, Milestone):
    event.listen(_model, "before_update", _set_updated_at)
