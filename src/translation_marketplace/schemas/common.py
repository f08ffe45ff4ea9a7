"""Shared response shapes: entity base, audit events, errors, health."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field


class EntityResponse(BaseModel):
    """Fields every workflow entity response carries.

    `available_actions` lists what the calling actor may do next, so clients
    never re-derive transition legality.
    """

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    status: str
    version: int
    created_at: datetime
    updated_at: datetime
    available_actions: list[str] = Field(default_factory=list)

    @classmethod
    def build(cls, entity: Any, available_actions: list[str]) -> Self:
        response = cls.model_validate(entity)
        response.available_actions = available_actions
        return response


class WorkflowEventResponse(BaseModel):
    """Response schema for an audit event."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: uuid.UUID
    entity_type: str
    entity_id: uuid.UUID
    request_id: uuid.UUID | None
    action: str
    from_status: str | None
    to_status: str
    actor_id: str
    entity_version: int | None
    metadata: dict | None = Field(default=None, validation_alias="metadata_json")
    created_at: datetime


class ErrorResponse(BaseModel):
    """Body of every domain error response."""

    error: str = Field(..., examples=["INVALID_TRANSITION"])
    message: str
    invariant: str | None = Field(
        default=None,
        description="Name of the violated workflow rule, for INVALID_TRANSITION",
        examples=["previous_milestone_paid"],
    )
    current_status: str | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., examples=["ok"])
    version: str = Field(..., examples=["0.1.0"])
    database: str = Field(..., examples=["healthy"])
    redis: str = Field(..., examples=["healthy"])
    subscribers: int = Field(default=0, description="Open push-channel subscriptions")
