"""Pydantic schemas for contracts."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from translation_marketplace.schemas.common import EntityResponse


class TerminateContractRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=2000)


class ContractResponse(EntityResponse):
    """Response schema for a contract."""

    request_id: uuid.UUID
    application_id: uuid.UUID
    requester_id: str
    translator_id: str
    total_amount_cents: int
    assigned_pages: list[int] | None
    requester_signed: bool
    translator_signed: bool
    requester_signature_date: datetime | None
    translator_signature_date: datetime | None
