"""CustomerAuditLog SQLAlchemy model"""

from sqlalchemy import Column, DateTime, Index, Integer, String, Text
from sqlalchemy.sql import func

from .base import Base, PortableJSONB


class CustomerAuditLog(Base):
    """Append-only record of customer domain events.

    Written in the same transaction as the change that produced the event.
    customer_id has no foreign key so entries survive hard deletes.
    """
    __tablename__ = "customer_audit_logs"
    __table_args__ = (
        Index("ix_customer_audit_logs_customer_id", "customer_id"),
        Index("ix_customer_audit_logs_tenant_created_at", "tenant_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(64), nullable=True)
    customer_id = Column(Integer, nullable=True)
    action = Column(String(50), nullable=False)
    actor_id = Column(String(64), nullable=True)
    reason = Column(Text, nullable=True)
    old_values = Column(PortableJSONB, nullable=True)
    new_values = Column(PortableJSONB, nullable=True)
    metadata_json = Column(PortableJSONB, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def to_dict(self):
        """Convert audit log entry to dictionary representation"""
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "customer_id": self.customer_id,
            "action": self.action,
            "actor_id": self.actor_id,
            "reason": self.reason,
            "old_values": self.old_values,
            "new_values": self.new_values,
            "metadata": self.metadata_json,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
