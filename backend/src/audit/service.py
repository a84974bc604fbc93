"""Audit logging service for customer domain events.

Every committed change to a customer leaves one immutable row per domain event
in customer_audit_logs. Entries are written with the same session as the
change, so they commit or roll back together with it.

Actions:
- created, updated, status_changed, blacklisted, deleted, merged
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from models.customer_audit_log import CustomerAuditLog
from domain.customers.events import DomainEvent
from domain.customers.ports import EventRecorderPort
from observability.request_id import request_id_var

logger = logging.getLogger(__name__)


def log_audit_event(
    db: Session,
    tenant_id: Optional[str],
    customer_id: Optional[int],
    action: str,
    actor_id: Optional[str] = None,
    reason: Optional[str] = None,
    old_values: Optional[Dict[str, Any]] = None,
    new_values: Optional[Dict[str, Any]] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> CustomerAuditLog:
    """Create an audit log entry.

    All parameters are stored as-is.

    Args:
        db: Database session
        tenant_id: Tenant of the customer (None for tenant-less customers)
        customer_id: Customer the event belongs to
        action: Event action (e.g., "created", "merged")
        actor_id: User who performed the action (None for system events)
        reason: Free-text reason given for the change
        old_values: Values before the change
        new_values: Values after the change
        metadata: Additional context as JSON (e.g., {"merge_id": "..."})

    Returns:
        CustomerAuditLog: The created audit log entry

    Example:
        log_audit_event(
            db=db,
            tenant_id="tenant-a",
            customer_id=42,
            action="blacklisted",
            actor_id="user-7",
            reason="Chargeback fraud",
            old_values={"status": "active"},
            new_values={"status": "blacklisted"},
        )
    """
    audit_entry = CustomerAuditLog(
        tenant_id=tenant_id,
        customer_id=customer_id,
        action=action,
        actor_id=actor_id,
        reason=reason,
        old_values=old_values,
        new_values=new_values,
        metadata_json=metadata,
    )

    db.add(audit_entry)
    db.flush()  # Get ID without committing transaction

    return audit_entry


class AuditEventRecorder(EventRecorderPort):
    """EventRecorderPort writing domain events to customer_audit_logs."""

    def __init__(self, db: Session):
        self.db = db

    def record(self, events: List[DomainEvent], actor_id: Optional[str] = None) -> None:
        request_id = request_id_var.get()
        for event in events:
            metadata = event.metadata()
            if request_id:
                metadata = {**(metadata or {}), "request_id": request_id}
            log_audit_event(
                db=self.db,
                tenant_id=event.tenant_id,
                customer_id=event.customer_id,
                action=event.action,
                actor_id=actor_id,
                reason=event.reason(),
                old_values=event.old_values(),
                new_values=event.new_values(),
                metadata=metadata,
            )

            logger.info(
                f"Audit event recorded: {event.event_type}",
                extra={"tenant_id": event.tenant_id, "customer_id": event.customer_id}
            )
