"""Closed enumerations for the customer domain and the status state machine.

Status flow:
    PROSPECT / ACTIVE / INACTIVE / SUSPENDED move freely between each other.
    Any of them can enter BLACKLISTED (a reason is recorded).
    BLACKLISTED is left only through Customer.lift_blacklist().
"""

from enum import Enum
from typing import Dict, List

from .value_objects import DocumentType


class CustomerType(str, Enum):
    """Legal nature of a customer."""
    NATURAL = "natural"
    JURIDICAL = "juridical"

    def is_natural(self) -> bool:
        return self is CustomerType.NATURAL

    def is_juridical(self) -> bool:
        return self is CustomerType.JURIDICAL

    def description(self) -> str:
        return _TYPE_DESCRIPTIONS[self]

    def valid_document_types(self) -> List[DocumentType]:
        return list(_TYPE_DOCUMENTS[self])


_TYPE_DESCRIPTIONS = {
    CustomerType.NATURAL: "Natural person",
    CustomerType.JURIDICAL: "Juridical person",
}

_TYPE_DOCUMENTS = {
    CustomerType.NATURAL: (
        DocumentType.CC, DocumentType.CE, DocumentType.PA, DocumentType.TI, DocumentType.RC,
    ),
    CustomerType.JURIDICAL: (DocumentType.NIT,),
}


class CustomerStatus(str, Enum):
    """Customer lifecycle status."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    BLACKLISTED = "blacklisted"
    PROSPECT = "prospect"

    def is_active(self) -> bool:
        return self is CustomerStatus.ACTIVE

    def can_be_updated(self) -> bool:
        return _STATUS_RULES[self][0]

    def can_be_deleted(self) -> bool:
        return _STATUS_RULES[self][1]

    def description(self) -> str:
        return _STATUS_RULES[self][2]


# status -> (can_be_updated, can_be_deleted, description)
_STATUS_RULES = {
    CustomerStatus.ACTIVE: (True, True, "Active customer"),
    CustomerStatus.INACTIVE: (True, True, "Inactive customer"),
    CustomerStatus.SUSPENDED: (True, True, "Suspended customer"),
    CustomerStatus.BLACKLISTED: (False, False, "Blacklisted customer"),
    CustomerStatus.PROSPECT: (True, True, "Prospect customer"),
}

_OPEN_STATUSES = [
    CustomerStatus.PROSPECT,
    CustomerStatus.ACTIVE,
    CustomerStatus.INACTIVE,
    CustomerStatus.SUSPENDED,
]

# Transitions reachable through Customer.change_status()
ALLOWED_TRANSITIONS: Dict[CustomerStatus, List[CustomerStatus]] = {
    status: [s for s in _OPEN_STATUSES if s is not status] + [CustomerStatus.BLACKLISTED]
    for status in _OPEN_STATUSES
}
ALLOWED_TRANSITIONS[CustomerStatus.BLACKLISTED] = []


def can_transition(from_status: CustomerStatus, to_status: CustomerStatus) -> bool:
    """Check whether change_status() may move a customer between two statuses.

    Example:
        >>> can_transition(CustomerStatus.PROSPECT, CustomerStatus.ACTIVE)
        True
        >>> can_transition(CustomerStatus.BLACKLISTED, CustomerStatus.ACTIVE)
        False
    """
    return to_status in ALLOWED_TRANSITIONS.get(from_status, [])


class AddressType(str, Enum):
    BILLING = "billing"
    SHIPPING = "shipping"
    LEGAL = "legal"
    OFFICE = "office"
    HOME = "home"


class TaxRegime(str, Enum):
    """Tax regime of a customer's tax profile."""
    SIMPLIFIED = "simplified"
    COMMON = "common"
    SPECIAL = "special"
    NO_RESPONSIBLE = "no_responsible"
    GREAT_CONTRIBUTOR = "great_contributor"
