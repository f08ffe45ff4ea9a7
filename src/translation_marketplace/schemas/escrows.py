"""Pydantic schemas for escrows."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from translation_marketplace.schemas.common import EntityResponse


class CreateEscrowRequest(BaseModel):
    """Request body for opening an escrow by hand."""

    amount_cents: int = Field(..., gt=0, examples=[120_000])
    contract_id: uuid.UUID | None = Field(
        default=None,
        description="Contract to secure; omit for a standalone escrow",
    )


class EscrowResponse(EntityResponse):
    """Response schema for an escrow."""

    contract_id: uuid.UUID | None
    requester_id: str
    amount_cents: int
    funded_at: datetime | None
    released_at: datetime | None
