"""Pydantic schemas for applications."""

from __future__ import annotations

import uuid

from pydantic import BaseModel, Field

from translation_marketplace.schemas.common import EntityResponse
from translation_marketplace.schemas.contracts import ContractResponse


class CreateApplicationRequest(BaseModel):
    """Request body for a translator applying to a request."""

    motivation: str | None = Field(
        default=None,
        max_length=10_000,
        description="Cover letter shown to the requester",
    )
    proposed_rate_cents: int | None = Field(default=None, gt=0)


class AcceptApplicationRequest(BaseModel):
    """Optional terms for the contract created on acceptance."""

    total_amount_cents: int | None = Field(
        default=None,
        gt=0,
        description="Contract total; defaults to the proposed rate, then the request budget",
    )
    assigned_pages: list[int] | None = Field(
        default=None,
        description="Pages of the book this translator is contracted for",
    )


class ApplicationResponse(EntityResponse):
    """Response schema for an application."""

    request_id: uuid.UUID
    translator_id: str
    motivation: str | None
    proposed_rate_cents: int | None


class AcceptApplicationResponse(BaseModel):
    """The accepted application and the draft contract created for it."""

    application: ApplicationResponse
    contract: ContractResponse
