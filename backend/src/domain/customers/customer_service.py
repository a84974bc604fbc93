"""Customer application service.

Runs customer commands and queries against the ports. Every mutating command
executes inside one transaction and writes the produced events to the audit
outbox before committing.
"""

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Optional

from .commands import (
    AddressData,
    ContactData,
    CreateCustomerCommand,
    TaxProfileData,
    UpdateCustomerCommand,
)
from .entities import Address, Contact, Customer, TaxProfile
from .enums import CustomerStatus, CustomerType
from .errors import DomainRuleViolation, NotFoundError, ValidationError
from .events import CustomerCreated, DomainEvent, utcnow
from .ports import (
    CustomerFilters,
    CustomerPage,
    CustomerRepositoryPort,
    EventRecorderPort,
    TransactionManagerPort,
)
from .value_objects import CountryCode, DocumentId, Email, Phone

logger = logging.getLogger(__name__)


def _email(value: Optional[str]) -> Optional[Email]:
    return Email(value) if value and value.strip() else None


def _phone(value: Optional[str]) -> Optional[Phone]:
    return Phone(value) if value and value.strip() else None


def _customer_type(value: str) -> CustomerType:
    try:
        return CustomerType(value)
    except ValueError:
        valid = ", ".join(t.value for t in CustomerType)
        raise ValidationError(f"Invalid customer type '{value}'. Valid types: {valid}", field="type")


def _customer_status(value: str) -> CustomerStatus:
    try:
        return CustomerStatus(value)
    except ValueError:
        valid = ", ".join(s.value for s in CustomerStatus)
        raise ValidationError(f"Invalid status '{value}'. Valid statuses: {valid}", field="status")


def _days_since(value: Optional[datetime]) -> int:
    if value is None:
        return 0
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return max(0, (utcnow() - value).days)


class CustomerService:
    """Use cases of the customer back-office."""

    def __init__(
        self,
        repository: CustomerRepositoryPort,
        transactions: TransactionManagerPort,
        events: EventRecorderPort,
        default_page_size: int = 15,
        max_page_size: int = 100,
    ):
        self.repository = repository
        self.transactions = transactions
        self.events = events
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    # Commands

    def create_customer(
        self,
        tenant_id: Optional[str],
        command: CreateCustomerCommand,
        actor_id: Optional[str] = None,
    ) -> Customer:
        """Register a new customer.

        Raises:
            ValidationError: If a field cannot be turned into a value object
            DomainRuleViolation: If the document does not fit the customer
                type, already exists in the tenant, or business rules fail
        """
        customer_type = _customer_type(command.type)
        document_id = DocumentId(command.document_type, command.document_number)

        if document_id.type not in customer_type.valid_document_types():
            valid = ", ".join(t.value for t in customer_type.valid_document_types())
            raise DomainRuleViolation(
                f"Document type {document_id.type.value} is not valid for a "
                f"{customer_type.description().lower()}. Valid types: {valid}",
                rule="customer.document_type",
            )

        if self.repository.exists(tenant_id, document_id):
            raise DomainRuleViolation(
                f"A customer with document {document_id} already exists",
                rule="customer.duplicate_document",
            )

        customer, events = Customer.create(
            tenant_id=tenant_id,
            type=customer_type,
            document_id=document_id,
            business_name=command.business_name,
            first_name=command.first_name,
            last_name=command.last_name,
            email=_email(command.email),
            phone=_phone(command.phone),
            status=_customer_status(command.status),
            segment=command.segment,
            notes=command.notes,
        )

        with self.transactions.transaction():
            customer = self.repository.save(customer)
            self.events.record(self._stamp(events, customer), actor_id=actor_id)

        logger.info(
            f"Customer created: {document_id}",
            extra={"tenant_id": tenant_id, "customer_id": customer.id}
        )
        return customer

    def update_customer(
        self,
        tenant_id: Optional[str],
        customer_id: int,
        command: UpdateCustomerCommand,
        actor_id: Optional[str] = None,
    ) -> Customer:
        customer = self.get_customer(tenant_id, customer_id)

        def pick(new, current):
            return current if new is None else new

        events = customer.update(
            business_name=pick(command.business_name, customer.business_name),
            first_name=pick(command.first_name, customer.first_name),
            last_name=pick(command.last_name, customer.last_name),
            email=customer.email if command.email is None else _email(command.email),
            phone=customer.phone if command.phone is None else _phone(command.phone),
            segment=pick(command.segment, customer.segment),
            notes=pick(command.notes, customer.notes),
        )
        return self._commit(customer, events, actor_id, "Customer updated")

    def change_status(
        self,
        tenant_id: Optional[str],
        customer_id: int,
        new_status: str,
        reason: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> Customer:
        customer = self.get_customer(tenant_id, customer_id)
        events = customer.change_status(_customer_status(new_status), reason)
        return self._commit(customer, events, actor_id, f"Customer status changed to {new_status}")

    def blacklist_customer(
        self,
        tenant_id: Optional[str],
        customer_id: int,
        reason: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> Customer:
        customer = self.get_customer(tenant_id, customer_id)

        if customer.status is CustomerStatus.BLACKLISTED:
            logger.warning(
                "Customer is already blacklisted",
                extra={"tenant_id": tenant_id, "customer_id": customer_id}
            )
            return customer

        events = customer.change_status(CustomerStatus.BLACKLISTED, reason)
        return self._commit(customer, events, actor_id, "Customer blacklisted")

    def lift_blacklist(
        self,
        tenant_id: Optional[str],
        customer_id: int,
        new_status: str = CustomerStatus.ACTIVE.value,
        reason: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> Customer:
        customer = self.get_customer(tenant_id, customer_id)
        events = customer.lift_blacklist(_customer_status(new_status), reason)
        return self._commit(customer, events, actor_id, "Customer removed from blacklist")

    def delete_customer(
        self,
        tenant_id: Optional[str],
        customer_id: int,
        actor_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        customer = self.get_customer(tenant_id, customer_id)
        events = customer.soft_delete(reason)
        self._commit(customer, events, actor_id, "Customer deleted")

    def add_contact(
        self,
        tenant_id: Optional[str],
        customer_id: int,
        data: ContactData,
        actor_id: Optional[str] = None,
    ) -> Customer:
        customer = self.get_customer(tenant_id, customer_id)
        contact = Contact.create(
            role=data.role,
            name=data.name,
            email=_email(data.email),
            phone=_phone(data.phone),
            is_primary=data.is_primary,
            notes=data.notes,
        )

        if contact.is_primary:
            for existing in customer.contacts:
                existing.set_primary(False)

        events = customer.add_contact(contact)
        return self._commit(customer, events, actor_id, "Contact added")

    def add_address(
        self,
        tenant_id: Optional[str],
        customer_id: int,
        data: AddressData,
        actor_id: Optional[str] = None,
    ) -> Customer:
        customer = self.get_customer(tenant_id, customer_id)
        address = Address.create(
            type=data.type,
            line1=data.line1,
            line2=data.line2,
            city=data.city,
            state=data.state,
            postal_code=data.postal_code,
            country_code=CountryCode(data.country_code),
            is_default=data.is_default,
            notes=data.notes,
        )

        # One default address per address type
        if address.is_default:
            for existing in customer.addresses:
                if existing.type is address.type:
                    existing.set_default(False)

        events = customer.add_address(address)
        return self._commit(customer, events, actor_id, "Address added")

    def set_tax_profile(
        self,
        tenant_id: Optional[str],
        customer_id: int,
        data: TaxProfileData,
        actor_id: Optional[str] = None,
    ) -> Customer:
        customer = self.get_customer(tenant_id, customer_id)
        profile = TaxProfile.create(
            tax_regime=data.tax_regime,
            tax_responsibilities=data.tax_responsibilities,
            activity_codes=data.activity_codes,
            tax_address=data.tax_address,
            is_retention_agent=data.is_retention_agent,
            is_self_retainer=data.is_self_retainer,
            notes=data.notes,
        )
        events = customer.set_tax_profile(profile)
        return self._commit(customer, events, actor_id, "Tax profile set")

    # Queries

    def get_customer(self, tenant_id: Optional[str], customer_id: int) -> Customer:
        """Load a customer of the tenant.

        Raises:
            NotFoundError: If it does not exist, is deleted or belongs to
                another tenant
        """
        customer = self.repository.find_by_id(customer_id)
        if customer is None or customer.tenant_id != tenant_id:
            raise NotFoundError("Customer", customer_id)
        return customer

    def list_customers(
        self,
        tenant_id: Optional[str],
        filters: Optional[CustomerFilters] = None,
        page: int = 1,
        per_page: Optional[int] = None,
    ) -> CustomerPage:
        per_page = min(max(1, per_page or self.default_page_size), self.max_page_size)
        return self.repository.list(tenant_id, filters, max(1, page), per_page)

    def search_customers(
        self,
        tenant_id: Optional[str],
        query: str,
        filters: Optional[CustomerFilters] = None,
        limit: int = 20,
    ) -> list[Customer]:
        query = (query or "").strip()
        if not query:
            return []
        return self.repository.search(tenant_id, query, filters, min(max(1, limit), self.max_page_size))

    def get_metrics(
        self, tenant_id: Optional[str], filters: Optional[CustomerFilters] = None
    ) -> dict[str, int]:
        return self.repository.get_metrics(tenant_id, filters)

    def get_customer_metrics(self, customer: Customer) -> dict[str, Any]:
        return {
            "contacts_count": len(customer.contacts),
            "addresses_count": len(customer.addresses),
            "has_tax_profile": customer.tax_profile is not None,
            "days_since_creation": _days_since(customer.created_at),
            "days_since_update": _days_since(customer.updated_at),
            "is_complete": self.is_customer_data_complete(customer),
        }

    def is_customer_data_complete(self, customer: Customer) -> bool:
        """Complete means a way to reach the customer plus at least one address."""
        has_contact = customer.email is not None or customer.phone is not None or bool(customer.contacts)
        return has_contact and bool(customer.addresses)

    def _commit(
        self,
        customer: Customer,
        events: list[DomainEvent],
        actor_id: Optional[str],
        message: str,
    ) -> Customer:
        with self.transactions.transaction():
            customer = self.repository.save(customer)
            if events:
                self.events.record(self._stamp(events, customer), actor_id=actor_id)

        logger.info(message, extra={"tenant_id": customer.tenant_id, "customer_id": customer.id})
        return customer

    @staticmethod
    def _stamp(events: list[DomainEvent], customer: Customer) -> list[DomainEvent]:
        """Fill in the customer id on events raised before the first save."""
        stamped = []
        for event in events:
            if isinstance(event, CustomerCreated):
                event = replace(event, data=customer.to_dict())
            stamped.append(replace(event, customer_id=customer.id))
        return stamped
