"""Customer domain events.

Mutating operations on the Customer aggregate return the events they produce
instead of accumulating them on the entity. Services pass them to an
EventRecorderPort, which writes them to the audit-log outbox inside the same
transaction as the change.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DomainEvent:
    """Base event. `action` is the audit-log action name."""
    customer_id: Optional[int]
    tenant_id: Optional[str]
    occurred_at: datetime = field(default_factory=utcnow, kw_only=True)

    action = "event"

    @property
    def event_type(self) -> str:
        return f"customer.{self.action}"

    def old_values(self) -> Optional[dict[str, Any]]:
        return None

    def new_values(self) -> Optional[dict[str, Any]]:
        return None

    def reason(self) -> Optional[str]:
        return None

    def metadata(self) -> Optional[dict[str, Any]]:
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type,
            "customer_id": self.customer_id,
            "tenant_id": self.tenant_id,
            "old_values": self.old_values(),
            "new_values": self.new_values(),
            "reason": self.reason(),
            "metadata": self.metadata(),
            "occurred_at": self.occurred_at.isoformat(),
        }


@dataclass(frozen=True)
class CustomerCreated(DomainEvent):
    data: dict[str, Any] = field(default_factory=dict)

    action = "created"

    def new_values(self) -> dict[str, Any]:
        return self.data


@dataclass(frozen=True)
class CustomerUpdated(DomainEvent):
    old: dict[str, Any] = field(default_factory=dict)
    new: dict[str, Any] = field(default_factory=dict)

    action = "updated"

    def old_values(self) -> dict[str, Any]:
        return self.old

    def new_values(self) -> dict[str, Any]:
        return self.new

    def changed_fields(self) -> list[str]:
        return sorted(k for k in self.new if self.old.get(k) != self.new.get(k))


@dataclass(frozen=True)
class CustomerStatusChanged(DomainEvent):
    old_status: str = ""
    new_status: str = ""
    status_reason: Optional[str] = None

    action = "status_changed"

    def old_values(self) -> dict[str, Any]:
        return {"status": self.old_status}

    def new_values(self) -> dict[str, Any]:
        return {"status": self.new_status}

    def reason(self) -> Optional[str]:
        return self.status_reason


@dataclass(frozen=True)
class CustomerBlacklisted(DomainEvent):
    blacklist_reason: str = ""
    previous_status: str = ""

    action = "blacklisted"

    def old_values(self) -> dict[str, Any]:
        return {"status": self.previous_status}

    def new_values(self) -> dict[str, Any]:
        return {"status": "blacklisted", "blacklist_reason": self.blacklist_reason}

    def reason(self) -> str:
        return self.blacklist_reason


@dataclass(frozen=True)
class CustomerDeleted(DomainEvent):
    delete_reason: Optional[str] = None

    action = "deleted"

    def reason(self) -> Optional[str]:
        return self.delete_reason


@dataclass(frozen=True)
class CustomerMerged(DomainEvent):
    """Emitted on the destination customer once a merge is committed."""
    merge_id: str = ""
    source_customer_id: Optional[int] = None
    merge_reason: Optional[str] = None
    source_data: dict[str, Any] = field(default_factory=dict)
    destination_data: dict[str, Any] = field(default_factory=dict)

    action = "merged"

    def old_values(self) -> dict[str, Any]:
        return self.source_data

    def new_values(self) -> dict[str, Any]:
        return self.destination_data

    def reason(self) -> Optional[str]:
        return self.merge_reason

    def metadata(self) -> dict[str, Any]:
        return {"merge_id": self.merge_id, "source_customer_id": self.source_customer_id}
