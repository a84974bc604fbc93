"""CustomerTaxProfile SQLAlchemy model"""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from .base import Base, PortableJSONB, TimestampMixin


class CustomerTaxProfile(TimestampMixin, Base):
    """Tax profile of a customer (at most one per customer)."""
    __tablename__ = "customer_tax_profiles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(
        Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    tax_regime = Column(String(30), nullable=False)
    tax_responsibilities = Column(PortableJSONB, nullable=False, default=list)
    activity_codes = Column(PortableJSONB, nullable=False, default=list)
    tax_address = Column(Text, nullable=True)
    is_retention_agent = Column(Boolean, nullable=False, default=False)
    is_self_retainer = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)

    # Relationships
    customer = relationship("Customer", back_populates="tax_profile")
