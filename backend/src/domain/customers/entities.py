"""Customer aggregate and its owned entities.

The Customer is the aggregate root; Contact, Address and TaxProfile are only
reachable through it. Mutating methods return the domain events they produce.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from .enums import AddressType, CustomerStatus, CustomerType, TaxRegime, can_transition
from .errors import DomainRuleViolation, ValidationError
from .events import (
    CustomerBlacklisted,
    CustomerCreated,
    CustomerDeleted,
    CustomerStatusChanged,
    CustomerUpdated,
    DomainEvent,
    utcnow,
)
from .value_objects import CountryCode, DocumentId, Email, Phone


DEFAULT_BLACKLIST_REASON = "No reason specified"


def _clean(value: Optional[str]) -> Optional[str]:
    """Trim a free-text value; blank becomes None."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class Contact:
    """Contact person attached to a customer."""
    id: Optional[int]
    customer_id: Optional[int]
    role: str
    name: str
    email: Optional[Email] = None
    phone: Optional[Phone] = None
    is_primary: bool = False
    notes: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def create(
        cls,
        role: str,
        name: str,
        email: Optional[Email] = None,
        phone: Optional[Phone] = None,
        is_primary: bool = False,
        notes: Optional[str] = None,
        customer_id: Optional[int] = None,
    ) -> "Contact":
        if not _clean(name):
            raise ValidationError("Contact name cannot be empty", field="name")

        return cls(
            id=None,
            customer_id=customer_id,
            role=(role or "").strip(),
            name=name.strip(),
            email=email,
            phone=phone,
            is_primary=is_primary,
            notes=notes,
        )

    def set_primary(self, is_primary: bool) -> None:
        self.is_primary = is_primary
        self.updated_at = utcnow()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "role": self.role,
            "name": self.name,
            "email": self.email.value if self.email else None,
            "phone": self.phone.value if self.phone else None,
            "is_primary": self.is_primary,
            "notes": self.notes,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass
class Address:
    """Postal address attached to a customer."""
    id: Optional[int]
    customer_id: Optional[int]
    type: AddressType
    line1: str
    city: str
    state: str
    postal_code: str
    country_code: CountryCode
    line2: Optional[str] = None
    is_default: bool = False
    notes: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        try:
            self.type = AddressType(self.type)
        except ValueError:
            valid = ", ".join(t.value for t in AddressType)
            raise ValidationError(
                f"Invalid address type '{self.type}'. Valid types: {valid}", field="type"
            )

    @classmethod
    def create(
        cls,
        type: str,
        line1: str,
        city: str,
        state: str,
        postal_code: str,
        country_code: CountryCode,
        line2: Optional[str] = None,
        is_default: bool = False,
        notes: Optional[str] = None,
        customer_id: Optional[int] = None,
    ) -> "Address":
        if not _clean(line1):
            raise ValidationError("Address line 1 cannot be empty", field="line1")

        return cls(
            id=None,
            customer_id=customer_id,
            type=type,
            line1=line1.strip(),
            line2=_clean(line2),
            city=(city or "").strip(),
            state=(state or "").strip(),
            postal_code=(postal_code or "").strip(),
            country_code=country_code,
            is_default=is_default,
            notes=notes,
        )

    def set_default(self, is_default: bool) -> None:
        self.is_default = is_default
        self.updated_at = utcnow()

    def full_address(self) -> str:
        parts = [
            self.line1,
            self.line2,
            self.city,
            self.state,
            self.postal_code,
            self.country_code.value,
        ]
        return ", ".join(p for p in parts if p)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "type": self.type.value,
            "line1": self.line1,
            "line2": self.line2,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country_code": self.country_code.value,
            "is_default": self.is_default,
            "notes": self.notes,
            "full_address": self.full_address(),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass
class TaxProfile:
    """Tax profile of a customer (at most one per customer)."""
    id: Optional[int]
    customer_id: Optional[int]
    tax_regime: TaxRegime
    tax_responsibilities: list[str] = field(default_factory=list)
    activity_codes: list[str] = field(default_factory=list)
    tax_address: Optional[str] = None
    is_retention_agent: bool = False
    is_self_retainer: bool = False
    notes: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        try:
            self.tax_regime = TaxRegime(self.tax_regime)
        except ValueError:
            valid = ", ".join(r.value for r in TaxRegime)
            raise ValidationError(
                f"Invalid tax regime '{self.tax_regime}'. Valid regimes: {valid}",
                field="tax_regime",
            )

    @classmethod
    def create(
        cls,
        tax_regime: str,
        tax_responsibilities: Optional[list[str]] = None,
        activity_codes: Optional[list[str]] = None,
        tax_address: Optional[str] = None,
        is_retention_agent: bool = False,
        is_self_retainer: bool = False,
        notes: Optional[str] = None,
        customer_id: Optional[int] = None,
    ) -> "TaxProfile":
        return cls(
            id=None,
            customer_id=customer_id,
            tax_regime=tax_regime,
            tax_responsibilities=list(dict.fromkeys(tax_responsibilities or [])),
            activity_codes=list(dict.fromkeys(activity_codes or [])),
            tax_address=_clean(tax_address),
            is_retention_agent=is_retention_agent,
            is_self_retainer=is_self_retainer,
            notes=notes,
        )

    def add_tax_responsibility(self, responsibility: str) -> None:
        if responsibility not in self.tax_responsibilities:
            self.tax_responsibilities.append(responsibility)
            self.updated_at = utcnow()

    def remove_tax_responsibility(self, responsibility: str) -> None:
        self.tax_responsibilities = [r for r in self.tax_responsibilities if r != responsibility]
        self.updated_at = utcnow()

    def add_activity_code(self, code: str) -> None:
        if code not in self.activity_codes:
            self.activity_codes.append(code)
            self.updated_at = utcnow()

    def remove_activity_code(self, code: str) -> None:
        self.activity_codes = [c for c in self.activity_codes if c != code]
        self.updated_at = utcnow()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "tax_regime": self.tax_regime.value,
            "tax_responsibilities": list(self.tax_responsibilities),
            "activity_codes": list(self.activity_codes),
            "tax_address": self.tax_address,
            "is_retention_agent": self.is_retention_agent,
            "is_self_retainer": self.is_self_retainer,
            "notes": self.notes,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


def business_rule_violations(
    type: CustomerType,
    business_name: Optional[str],
    first_name: Optional[str],
    last_name: Optional[str],
    email: Optional[Email],
    phone: Optional[Phone],
) -> list[str]:
    """Return the customer business rules broken by the given field values."""
    violations = []

    if type.is_natural() and not (first_name or last_name):
        violations.append("A natural person must have a first name or a last name")

    if type.is_juridical() and not business_name:
        violations.append("A juridical person must have a business name")

    if email is None and phone is None:
        violations.append("A customer must have at least an email or a phone")

    return violations


@dataclass
class Customer:
    """Customer aggregate root.

    Reconstitution from storage uses the plain constructor; new customers go
    through Customer.create(), which enforces the business rules.
    """
    id: Optional[int]
    tenant_id: Optional[str]
    type: CustomerType
    document_id: DocumentId
    business_name: str = ""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[Email] = None
    phone: Optional[Phone] = None
    status: CustomerStatus = CustomerStatus.PROSPECT
    segment: Optional[str] = None
    notes: Optional[str] = None
    blacklist_reason: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    deleted_at: Optional[datetime] = None
    contacts: list[Contact] = field(default_factory=list)
    addresses: list[Address] = field(default_factory=list)
    tax_profile: Optional[TaxProfile] = None

    @classmethod
    def create(
        cls,
        tenant_id: Optional[str],
        type: CustomerType,
        document_id: DocumentId,
        business_name: str = "",
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        email: Optional[Email] = None,
        phone: Optional[Phone] = None,
        status: CustomerStatus = CustomerStatus.PROSPECT,
        segment: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> tuple["Customer", list[DomainEvent]]:
        """Create a new customer and its CustomerCreated event.

        Raises:
            DomainRuleViolation: If the business rules are not satisfied
        """
        type = CustomerType(type)
        business_name = (business_name or "").strip()
        first_name = _clean(first_name)
        last_name = _clean(last_name)

        violations = business_rule_violations(
            type, business_name, first_name, last_name, email, phone
        )
        if violations:
            raise DomainRuleViolation("; ".join(violations), rule="customer.business_rules")

        customer = cls(
            id=None,
            tenant_id=tenant_id,
            type=type,
            document_id=document_id,
            business_name=business_name,
            first_name=first_name,
            last_name=last_name,
            email=email,
            phone=phone,
            status=CustomerStatus(status),
            segment=_clean(segment),
            notes=notes,
        )
        event = CustomerCreated(customer_id=None, tenant_id=tenant_id, data=customer.to_dict())
        return customer, [event]

    def update(
        self,
        business_name: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        email: Optional[Email] = None,
        phone: Optional[Phone] = None,
        segment: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> list[DomainEvent]:
        """Replace the customer's descriptive fields.

        Raises:
            DomainRuleViolation: If the customer is blacklisted or the new
                values break the business rules
        """
        self._ensure_can_be_updated()

        business_name = (business_name or "").strip()
        first_name = _clean(first_name)
        last_name = _clean(last_name)

        violations = business_rule_violations(
            self.type, business_name, first_name, last_name, email, phone
        )
        if violations:
            raise DomainRuleViolation("; ".join(violations), rule="customer.business_rules")

        old = self._descriptive_fields()

        self.business_name = business_name
        self.first_name = first_name
        self.last_name = last_name
        self.email = email
        self.phone = phone
        self.segment = _clean(segment)
        self.notes = notes
        self.updated_at = utcnow()

        new = self._descriptive_fields()
        if old == new:
            return []

        return [CustomerUpdated(customer_id=self.id, tenant_id=self.tenant_id, old=old, new=new)]

    def change_status(
        self,
        new_status: CustomerStatus,
        reason: Optional[str] = None,
    ) -> list[DomainEvent]:
        """Move the customer to another status.

        Entering BLACKLISTED records the reason. Leaving BLACKLISTED is only
        possible through lift_blacklist().
        """
        new_status = CustomerStatus(new_status)
        if new_status is self.status:
            return []

        if not can_transition(self.status, new_status):
            raise DomainRuleViolation(
                f"Cannot change status from {self.status.value} to {new_status.value}",
                rule="customer.invalid_transition",
            )

        old_status = self.status
        self.status = new_status
        self.updated_at = utcnow()

        if new_status is CustomerStatus.BLACKLISTED:
            self.blacklist_reason = _clean(reason) or DEFAULT_BLACKLIST_REASON
            return [CustomerBlacklisted(
                customer_id=self.id,
                tenant_id=self.tenant_id,
                blacklist_reason=self.blacklist_reason,
                previous_status=old_status.value,
            )]

        return [CustomerStatusChanged(
            customer_id=self.id,
            tenant_id=self.tenant_id,
            old_status=old_status.value,
            new_status=new_status.value,
            status_reason=reason,
        )]

    def lift_blacklist(
        self,
        new_status: CustomerStatus = CustomerStatus.ACTIVE,
        reason: Optional[str] = None,
    ) -> list[DomainEvent]:
        """Take the customer off the blacklist."""
        new_status = CustomerStatus(new_status)

        if self.status is not CustomerStatus.BLACKLISTED:
            raise DomainRuleViolation(
                "Customer is not blacklisted", rule="customer.not_blacklisted"
            )

        if new_status is CustomerStatus.BLACKLISTED:
            raise DomainRuleViolation(
                "Target status must not be blacklisted", rule="customer.invalid_status"
            )

        self.status = new_status
        self.blacklist_reason = None
        self.updated_at = utcnow()

        return [CustomerStatusChanged(
            customer_id=self.id,
            tenant_id=self.tenant_id,
            old_status=CustomerStatus.BLACKLISTED.value,
            new_status=new_status.value,
            status_reason=reason,
        )]

    def add_contact(self, contact: Contact) -> list[DomainEvent]:
        before = len(self.contacts)
        if self.id is not None:
            contact.customer_id = self.id
        self.contacts.append(contact)
        self.updated_at = utcnow()
        return [self._collection_changed("contacts_count", before, len(self.contacts))]

    def add_address(self, address: Address) -> list[DomainEvent]:
        before = len(self.addresses)
        if self.id is not None:
            address.customer_id = self.id
        self.addresses.append(address)
        self.updated_at = utcnow()
        return [self._collection_changed("addresses_count", before, len(self.addresses))]

    def set_tax_profile(self, tax_profile: TaxProfile) -> list[DomainEvent]:
        old_regime = self.tax_profile.tax_regime.value if self.tax_profile else None
        if self.id is not None:
            tax_profile.customer_id = self.id
        if self.tax_profile is not None and tax_profile.id is None:
            # Replacing keeps the stored row; at most one profile per customer
            tax_profile.id = self.tax_profile.id
        self.tax_profile = tax_profile
        self.updated_at = utcnow()
        return [CustomerUpdated(
            customer_id=self.id,
            tenant_id=self.tenant_id,
            old={"tax_regime": old_regime},
            new={"tax_regime": tax_profile.tax_regime.value},
        )]

    def soft_delete(self, reason: Optional[str] = None) -> list[DomainEvent]:
        """Mark the customer as deleted.

        Raises:
            DomainRuleViolation: If the customer is blacklisted
        """
        if not self.status.can_be_deleted():
            raise DomainRuleViolation(
                f"A blacklisted customer cannot be deleted. Current reason: {self.blacklist_reason}",
                rule="customer.blacklisted",
            )

        if self.is_deleted():
            return []

        now = utcnow()
        self.deleted_at = now
        self.updated_at = now
        return [CustomerDeleted(customer_id=self.id, tenant_id=self.tenant_id, delete_reason=reason)]

    def full_name(self) -> str:
        if self.type.is_natural():
            return " ".join(p for p in (self.first_name, self.last_name) if p)
        return self.business_name

    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def validate_business_rules(self) -> list[str]:
        return business_rule_violations(
            self.type, self.business_name, self.first_name, self.last_name, self.email, self.phone
        )

    def _ensure_can_be_updated(self) -> None:
        if not self.status.can_be_updated():
            raise DomainRuleViolation(
                f"Cannot update a customer with status: {self.status.value}",
                rule="customer.blacklisted",
            )

    def _descriptive_fields(self) -> dict[str, Any]:
        return {
            "business_name": self.business_name,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email.value if self.email else None,
            "phone": self.phone.value if self.phone else None,
            "segment": self.segment,
            "notes": self.notes,
        }

    def _collection_changed(self, key: str, before: int, after: int) -> CustomerUpdated:
        return CustomerUpdated(
            customer_id=self.id, tenant_id=self.tenant_id, old={key: before}, new={key: after}
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "type": self.type.value,
            "document_type": self.document_id.type.value,
            "document_number": self.document_id.number,
            "document_formatted": self.document_id.formatted(),
            "business_name": self.business_name,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name(),
            "email": self.email.value if self.email else None,
            "phone": self.phone.value if self.phone else None,
            "phone_normalized": self.phone.normalized() if self.phone else None,
            "status": self.status.value,
            "segment": self.segment,
            "notes": self.notes,
            "blacklist_reason": self.blacklist_reason,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "deleted_at": _iso(self.deleted_at),
        }
