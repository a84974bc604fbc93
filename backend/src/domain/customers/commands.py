"""Input data for CustomerService commands.

Plain values as received from the outer layer; the service turns them into
value objects, so malformed input surfaces as ValidationError.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class CreateCustomerCommand:
    type: str
    document_type: str
    document_number: str
    business_name: str = ""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    status: str = "prospect"
    segment: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class UpdateCustomerCommand:
    """Descriptive fields to change. None keeps the current value."""
    business_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    segment: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class ContactData:
    role: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    is_primary: bool = False
    notes: Optional[str] = None


@dataclass
class AddressData:
    type: str
    line1: str
    city: str
    state: str
    postal_code: str
    country_code: str
    line2: Optional[str] = None
    is_default: bool = False
    notes: Optional[str] = None


@dataclass
class TaxProfileData:
    tax_regime: str
    tax_responsibilities: list[str] = field(default_factory=list)
    activity_codes: list[str] = field(default_factory=list)
    tax_address: Optional[str] = None
    is_retention_agent: bool = False
    is_self_retainer: bool = False
    notes: Optional[str] = None
