"""Customers domain module - value objects, Customer aggregate, dedup and merge

Storage-agnostic: services talk to persistence only through the ports in
`ports.py`.
"""

from .errors import (
    CustomerError,
    ValidationError,
    DomainRuleViolation,
    NotFoundError,
    InfrastructureError,
    MergeFailedError,
    IdempotencyKeyConflict,
)
from .value_objects import DocumentType, DocumentId, Email, Phone, CountryCode
from .enums import (
    CustomerType,
    CustomerStatus,
    AddressType,
    TaxRegime,
    ALLOWED_TRANSITIONS,
    can_transition,
)
from .entities import Customer, Contact, Address, TaxProfile
from .ports import (
    CustomerFilters,
    CustomerPage,
    CustomerRepositoryPort,
    IdempotencyRepositoryPort,
    CustomerReadModelPort,
    EventRecorderPort,
    TransactionManagerPort,
)
from .dedup_service import DedupService, DuplicateMatch
from .merge_service import MergeService
from .customer_service import CustomerService

__all__ = [
    "CustomerError",
    "ValidationError",
    "DomainRuleViolation",
    "NotFoundError",
    "InfrastructureError",
    "MergeFailedError",
    "IdempotencyKeyConflict",
    "DocumentType",
    "DocumentId",
    "Email",
    "Phone",
    "CountryCode",
    "CustomerType",
    "CustomerStatus",
    "AddressType",
    "TaxRegime",
    "ALLOWED_TRANSITIONS",
    "can_transition",
    "Customer",
    "Contact",
    "Address",
    "TaxProfile",
    "CustomerFilters",
    "CustomerPage",
    "CustomerRepositoryPort",
    "IdempotencyRepositoryPort",
    "CustomerReadModelPort",
    "EventRecorderPort",
    "TransactionManagerPort",
    "DedupService",
    "DuplicateMatch",
    "MergeService",
    "CustomerService",
]
