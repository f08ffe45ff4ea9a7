"""Pydantic schemas for milestones."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from translation_marketplace.schemas.common import EntityResponse


class CreateMilestoneRequest(BaseModel):
    """Request body for adding a milestone to a signed contract."""

    title: str = Field(..., min_length=1, max_length=200, examples=["Chapters 1-5"])
    amount_cents: int = Field(..., gt=0, examples=[30_000])
    description: str | None = Field(default=None, max_length=10_000)


class UpdateMilestoneRequest(BaseModel):
    """Partial update of a pending milestone."""

    title: str | None = Field(default=None, min_length=1, max_length=200)
    amount_cents: int | None = Field(default=None, gt=0)
    description: str | None = Field(default=None, max_length=10_000)


class AssignMilestoneRequest(BaseModel):
    translator_id: str | None = Field(
        default=None,
        description="Defaults to the contract's translator",
    )


class SubmitMilestoneRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=10_000)


class RequestChangesRequest(BaseModel):
    feedback: str | None = Field(default=None, max_length=10_000)


class MilestoneResponse(EntityResponse):
    """Response schema for a milestone."""

    contract_id: uuid.UUID
    ordinal: int
    title: str
    description: str | None
    amount_cents: int
    translator_id: str | None
    submission_notes: str | None
    submitted_at: datetime | None
    approved_at: datetime | None
    approved_by: str | None
    paid_at: datetime | None
