"""Workflow Engine: one entry point bundling the per-entity services.

Both the REST routes and the simulation drive the marketplace through this
object, so every caller goes through the same guards, cascades and event
publication.

Usage:
    engine = WorkflowEngine(session)
    request = await engine.requests.create_request(actor, book_id="b-1", ...)
    application = await engine.applications.create_application(translator, request.id)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from translation_marketplace.domain.permissions import PermissionEvaluator
from translation_marketplace.infrastructure.locks import get_lock_registry
from translation_marketplace.notifications.gateway import get_notification_gateway
from translation_marketplace.services.application_service import ApplicationService
from translation_marketplace.services.contract_service import ContractService
from translation_marketplace.services.escrow_service import EscrowService
from translation_marketplace.services.milestone_service import MilestoneService
from translation_marketplace.services.request_service import RequestService

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from translation_marketplace.config import Settings
    from translation_marketplace.domain.permissions import Actor
    from translation_marketplace.infrastructure.database.orm_models import Base
    from translation_marketplace.infrastructure.locks import KeyedLockRegistry
    from translation_marketplace.notifications.gateway import NotificationGateway


class WorkflowEngine:
    """Per-session facade over the five workflow services."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        gateway: NotificationGateway | None = None,
        evaluator: PermissionEvaluator | None = None,
        locks: KeyedLockRegistry | None = None,
        settings: Settings | None = None,
    ) -> None:
        shared = {
            "gateway": gateway or get_notification_gateway(),
            "evaluator": evaluator or PermissionEvaluator(),
            "locks": locks or get_lock_registry(),
            "settings": settings,
        }
        self.requests = RequestService(session, **shared)
        self.applications = ApplicationService(session, **shared)
        self.contracts = ContractService(session, **shared)
        self.milestones = MilestoneService(session, **shared)
        self.escrows = EscrowService(session, **shared)

    async def available_actions(self, actor: Actor, entity: Base) -> list[str]:
        """Actions the actor may take on any workflow entity right now."""
        from translation_marketplace.infrastructure.database.orm_models import (
            Application,
            Contract,
            Escrow,
            Milestone,
            TranslationRequest,
        )

        match entity:
            case TranslationRequest():
                return await self.requests.available_actions(actor, entity)
            case Application():
                return await self.applications.available_actions(actor, entity)
            case Contract():
                return await self.contracts.available_actions(actor, entity)
            case Milestone():
                return await self.milestones.available_actions(actor, entity)
            case Escrow():
                return await self.escrows.available_actions(actor, entity)
        raise TypeError(f"Not a workflow entity: {type(entity).__name__}")
