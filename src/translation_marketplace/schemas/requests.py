"""Pydantic schemas for translation requests."""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field

from translation_marketplace.schemas.common import EntityResponse


class CreateTranslationRequest(BaseModel):
    """Request body for creating a translation request."""

    book_id: str = Field(..., min_length=1, max_length=64, examples=["book-42"])
    source_language: str = Field(..., min_length=2, max_length=16, examples=["en"])
    target_language: str = Field(..., min_length=2, max_length=16, examples=["fr"])
    budget_cents: int = Field(
        ...,
        gt=0,
        description="Total budget in minor currency units",
        examples=[120_000],
    )
    deadline: date | None = None
    title: str | None = Field(default=None, max_length=200)
    description: str | None = Field(default=None, max_length=10_000)
    publish: bool = Field(
        default=True,
        description="Publish immediately (status open) instead of keeping a draft",
    )


class CancelRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=2000)


class TranslationRequestResponse(EntityResponse):
    """Response schema for a translation request."""

    requester_id: str
    book_id: str
    title: str | None
    description: str | None
    source_language: str
    target_language: str
    budget_cents: int
    deadline: date | None
