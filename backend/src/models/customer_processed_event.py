"""CustomerProcessedEvent SQLAlchemy model"""

from sqlalchemy import Column, DateTime, Index, Integer, String

from .base import Base, PortableJSONB


class CustomerProcessedEvent(Base):
    """Idempotency record: one row per processed idempotency key.

    The unique constraint on idempotency_key resolves concurrent requests
    carrying the same key; rows past expires_at are treated as absent.
    """
    __tablename__ = "customer_processed_events"
    __table_args__ = (
        Index("ix_customer_processed_events_expires_at", "expires_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    idempotency_key = Column(String(255), nullable=False, unique=True)
    event_type = Column(String(100), nullable=False)
    payload = Column(PortableJSONB, nullable=False)
    result = Column(PortableJSONB, nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
