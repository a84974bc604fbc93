"""SQLAlchemy Models for the customer back-office"""

from .base import Base, PortableJSONB
from .customer import Customer
from .customer_contact import CustomerContact
from .customer_address import CustomerAddress
from .customer_tax_profile import CustomerTaxProfile
from .customer_processed_event import CustomerProcessedEvent
from .customer_audit_log import CustomerAuditLog

__all__ = [
    "Base",
    "PortableJSONB",
    "Customer",
    "CustomerContact",
    "CustomerAddress",
    "CustomerTaxProfile",
    "CustomerProcessedEvent",
    "CustomerAuditLog",
]
