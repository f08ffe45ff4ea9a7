"""Domain events emitted by the workflow services.

One DomainEvent per successful transition. The services persist a matching
WorkflowEvent row for the audit trail and hand the DomainEvent to the
notification gateway once the transaction has committed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(frozen=True)
class DomainEvent:
    """A single entity status change.

    Attributes:
        entity_type: EntityType value of the changed entity.
        entity_id: UUID string of the changed entity.
        from_status: Status before the change (None on creation).
        to_status: Status after the change.
        actor_id: Who triggered the change.
        timestamp: When the change was applied.
        action: The workflow action that caused it (e.g. "sign").
        request_id: The request the entity belongs to, for subscriber filtering.
        version: The entity's version after the change.
        audience: Actor ids with a stake in the entity.
    """

    entity_type: str
    entity_id: str
    from_status: str | None
    to_status: str
    actor_id: str
    timestamp: datetime
    action: str
    request_id: str | None = None
    version: int | None = None
    audience: frozenset[str] = field(default_factory=frozenset)

    def to_dict(self) -> dict:
        """Serialize for the push channel."""
        return {
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "actor_id": self.actor_id,
            "timestamp": self.timestamp.isoformat(),
            "action": self.action,
            "request_id": self.request_id,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict) -> DomainEvent:
        """Rebuild an event relayed from another process."""
        from datetime import datetime

        return cls(
            entity_type=data["entity_type"],
            entity_id=data["entity_id"],
            from_status=data.get("from_status"),
            to_status=data["to_status"],
            actor_id=data["actor_id"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            action=data["action"],
            request_id=data.get("request_id"),
            version=data.get("version"),
            audience=frozenset(data.get("audience") or ()),
        )
