"""Customer SQLAlchemy model"""

from sqlalchemy import Column, DateTime, Index, Integer, String, Text, text
from sqlalchemy.orm import relationship

from .base import Base, TimestampMixin

UNIQUE_LIVE_DOCUMENT_INDEX = "uq_customers_tenant_document_live"


class Customer(TimestampMixin, Base):
    """Customer row of the customer back-office.

    Customers are partitioned by tenant_id (NULL is its own partition). E-mail,
    phone and document number are stored as entered plus a normalized column
    used for duplicate lookups. Rows are soft-deleted through deleted_at.
    """
    __tablename__ = "customers"
    __table_args__ = (
        Index("ix_customers_tenant_id", "tenant_id"),
        # One live customer per document and tenant; soft-deleted rows do not count
        Index(
            UNIQUE_LIVE_DOCUMENT_INDEX, "tenant_id", "document_type", "document_normalized",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
        Index("ix_customers_tenant_email", "tenant_id", "email_normalized"),
        Index("ix_customers_tenant_phone", "tenant_id", "phone_normalized"),
        Index("ix_customers_tenant_status", "tenant_id", "status"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(64), nullable=True)
    type = Column(String(20), nullable=False)
    document_type = Column(String(10), nullable=False)
    document_number = Column(String(30), nullable=False)
    document_normalized = Column(String(20), nullable=False)
    business_name = Column(String(255), nullable=False, default="")
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True)
    email_normalized = Column(String(255), nullable=True)
    phone = Column(String(30), nullable=True)
    phone_normalized = Column(String(20), nullable=True)
    status = Column(String(20), nullable=False, default="prospect")
    segment = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    blacklist_reason = Column(Text, nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    contacts = relationship(
        "CustomerContact", back_populates="customer", cascade="all, delete-orphan",
        order_by="CustomerContact.id",
    )
    addresses = relationship(
        "CustomerAddress", back_populates="customer", cascade="all, delete-orphan",
        order_by="CustomerAddress.id",
    )
    tax_profile = relationship(
        "CustomerTaxProfile", back_populates="customer", cascade="all, delete-orphan",
        uselist=False,
    )
