"""Customer repository for database operations"""

from typing import List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from models.customer import UNIQUE_LIVE_DOCUMENT_INDEX, Customer as CustomerModel
from models.customer_address import CustomerAddress as CustomerAddressModel
from models.customer_contact import CustomerContact as CustomerContactModel
from models.customer_tax_profile import CustomerTaxProfile as CustomerTaxProfileModel
from domain.customers.entities import Address, Contact, Customer, TaxProfile
from domain.customers.enums import CustomerStatus, CustomerType
from domain.customers.errors import DomainRuleViolation
from domain.customers.ports import CustomerFilters, CustomerPage, CustomerRepositoryPort
from domain.customers.value_objects import CountryCode, DocumentId, Email, Phone


def tenant_clause(column, tenant_id: Optional[str]):
    """Strict tenant partition: None only matches rows without a tenant."""
    if tenant_id is None:
        return column.is_(None)
    return column == tenant_id


def _like(value: str) -> str:
    return f"%{value.strip()}%"


def _is_duplicate_document(error: IntegrityError) -> bool:
    # SQLite names the columns, PostgreSQL names the index
    message = str(error.orig)
    return UNIQUE_LIVE_DOCUMENT_INDEX in message or "customers.document_normalized" in message


class SqlAlchemyCustomerRepository(CustomerRepositoryPort):
    """Repository for the customers table and its child tables.

    Maps between ORM rows and the Customer aggregate. Writes are flushed, not
    committed; the transaction manager owns the commit.
    """

    def __init__(self, db: Session):
        """Initialize repository with database session.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    # Writes

    def save(self, customer: Customer) -> Customer:
        if customer.id is None:
            model = CustomerModel()
            self.db.add(model)
        else:
            model = self.db.get(CustomerModel, customer.id)
            if model is None:
                model = CustomerModel(id=customer.id)
                self.db.add(model)

        self._apply_customer(model, customer)
        contact_rows = self._sync_contacts(model, customer.contacts)
        address_rows = self._sync_addresses(model, customer.addresses)
        tax_row = self._sync_tax_profile(model, customer.tax_profile)

        try:
            self.db.flush()
        except IntegrityError as e:
            if not _is_duplicate_document(e):
                raise
            raise DomainRuleViolation(
                f"A customer with document {customer.document_id} already exists",
                rule="customer.duplicate_document",
            ) from e

        customer.id = model.id
        for contact, row in zip(customer.contacts, contact_rows):
            contact.id = row.id
            contact.customer_id = model.id
        for address, row in zip(customer.addresses, address_rows):
            address.id = row.id
            address.customer_id = model.id
        if customer.tax_profile is not None and tax_row is not None:
            customer.tax_profile.id = tax_row.id
            customer.tax_profile.customer_id = model.id

        return customer

    def delete(self, customer_id: int) -> bool:
        model = self.db.get(CustomerModel, customer_id)
        if model is None:
            return False

        self.db.delete(model)
        self.db.flush()
        return True

    # Reads

    def find_by_id(self, customer_id: int) -> Optional[Customer]:
        model = self.db.execute(
            self._base_query().where(CustomerModel.id == customer_id)
        ).scalar_one_or_none()
        return to_entity(model) if model else None

    def find_by_document_id(self, tenant_id: Optional[str], document_id: DocumentId) -> List[Customer]:
        query = self._scoped_query(tenant_id).where(
            CustomerModel.document_type == document_id.type.value,
            CustomerModel.document_normalized == document_id.normalized(),
        )
        return self._fetch(query)

    def find_by_email(self, tenant_id: Optional[str], email: str) -> List[Customer]:
        query = self._scoped_query(tenant_id).where(
            CustomerModel.email_normalized == email.strip().lower()
        )
        return self._fetch(query)

    def find_by_phone(self, tenant_id: Optional[str], phone: str) -> List[Customer]:
        query = self._scoped_query(tenant_id).where(CustomerModel.phone_normalized == phone)
        return self._fetch(query)

    def find_by_similar_names(
        self, tenant_id: Optional[str], search_terms: List[str], limit: int = 50
    ) -> List[Customer]:
        terms = [t for t in search_terms if t and t.strip()]
        if not terms:
            return []

        conditions = []
        for term in terms:
            pattern = _like(term)
            conditions.extend([
                CustomerModel.first_name.ilike(pattern),
                CustomerModel.last_name.ilike(pattern),
                CustomerModel.business_name.ilike(pattern),
            ])

        query = self._scoped_query(tenant_id).where(or_(*conditions)).order_by(CustomerModel.id).limit(limit)
        return self._fetch(query)

    def list(
        self,
        tenant_id: Optional[str],
        filters: Optional[CustomerFilters] = None,
        page: int = 1,
        per_page: int = 15,
    ) -> CustomerPage:
        conditions = self._filter_conditions(filters)

        total = self.db.execute(
            select(func.count(CustomerModel.id)).where(
                CustomerModel.deleted_at.is_(None),
                tenant_clause(CustomerModel.tenant_id, tenant_id),
                *conditions,
            )
        ).scalar_one()

        query = (
            self._scoped_query(tenant_id)
            .where(*conditions)
            .order_by(CustomerModel.created_at.desc(), CustomerModel.id.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        return CustomerPage(items=self._fetch(query), total=total, page=page, per_page=per_page)

    def search(
        self,
        tenant_id: Optional[str],
        query: str,
        filters: Optional[CustomerFilters] = None,
        limit: int = 20,
    ) -> List[Customer]:
        statement = (
            self._scoped_query(tenant_id)
            .where(search_clause(query), *self._filter_conditions(filters))
            .order_by(CustomerModel.business_name, CustomerModel.last_name, CustomerModel.id)
            .limit(limit)
        )
        return self._fetch(statement)

    def exists(self, tenant_id: Optional[str], document_id: DocumentId) -> bool:
        count = self.db.execute(
            select(func.count(CustomerModel.id)).where(
                CustomerModel.deleted_at.is_(None),
                tenant_clause(CustomerModel.tenant_id, tenant_id),
                CustomerModel.document_type == document_id.type.value,
                CustomerModel.document_normalized == document_id.normalized(),
            )
        ).scalar_one()
        return count > 0

    def get_metrics(
        self, tenant_id: Optional[str], filters: Optional[CustomerFilters] = None
    ) -> dict[str, int]:
        scope = [tenant_clause(CustomerModel.tenant_id, tenant_id)]
        if filters is not None and filters.created_from:
            scope.append(CustomerModel.created_at >= filters.created_from)
        if filters is not None and filters.created_to:
            scope.append(CustomerModel.created_at <= filters.created_to)

        def count(*conditions) -> int:
            return self.db.execute(
                select(func.count(CustomerModel.id)).where(*scope, *conditions)
            ).scalar_one()

        live = CustomerModel.deleted_at.is_(None)
        return {
            "total_customers": count(live),
            "active_customers": count(live, CustomerModel.status == CustomerStatus.ACTIVE.value),
            "inactive_customers": count(live, CustomerModel.status == CustomerStatus.INACTIVE.value),
            "suspended_customers": count(live, CustomerModel.status == CustomerStatus.SUSPENDED.value),
            "blacklisted_customers": count(live, CustomerModel.status == CustomerStatus.BLACKLISTED.value),
            "prospect_customers": count(live, CustomerModel.status == CustomerStatus.PROSPECT.value),
            "natural_persons": count(live, CustomerModel.type == CustomerType.NATURAL.value),
            "juridical_persons": count(live, CustomerModel.type == CustomerType.JURIDICAL.value),
            "customers_with_email": count(live, CustomerModel.email.is_not(None)),
            "customers_with_phone": count(live, CustomerModel.phone.is_not(None)),
            "deleted_customers": count(CustomerModel.deleted_at.is_not(None)),
        }

    # Helpers

    def _base_query(self):
        return (
            select(CustomerModel)
            .where(CustomerModel.deleted_at.is_(None))
            .options(
                selectinload(CustomerModel.contacts),
                selectinload(CustomerModel.addresses),
                selectinload(CustomerModel.tax_profile),
            )
        )

    def _scoped_query(self, tenant_id: Optional[str]):
        return self._base_query().where(tenant_clause(CustomerModel.tenant_id, tenant_id))

    def _fetch(self, query) -> List[Customer]:
        return [to_entity(model) for model in self.db.execute(query).scalars().all()]

    @staticmethod
    def _filter_conditions(filters: Optional[CustomerFilters]) -> List:
        if filters is None:
            return []

        conditions = []
        if filters.status:
            conditions.append(CustomerModel.status == filters.status)
        if filters.type:
            conditions.append(CustomerModel.type == filters.type)
        if filters.segment:
            conditions.append(CustomerModel.segment == filters.segment)
        if filters.document_type:
            conditions.append(CustomerModel.document_type == filters.document_type)
        if filters.search:
            conditions.append(search_clause(filters.search))
        if filters.created_from:
            conditions.append(CustomerModel.created_at >= filters.created_from)
        if filters.created_to:
            conditions.append(CustomerModel.created_at <= filters.created_to)
        return conditions

    @staticmethod
    def _apply_customer(model: CustomerModel, customer: Customer) -> None:
        model.tenant_id = customer.tenant_id
        model.type = customer.type.value
        model.document_type = customer.document_id.type.value
        model.document_number = customer.document_id.number
        model.document_normalized = customer.document_id.normalized()
        model.business_name = customer.business_name or ""
        model.first_name = customer.first_name
        model.last_name = customer.last_name
        model.email = customer.email.value if customer.email else None
        model.email_normalized = customer.email.normalized() if customer.email else None
        model.phone = customer.phone.value if customer.phone else None
        model.phone_normalized = customer.phone.normalized() if customer.phone else None
        model.status = customer.status.value
        model.segment = customer.segment
        model.notes = customer.notes
        model.blacklist_reason = customer.blacklist_reason
        model.created_at = customer.created_at
        model.updated_at = customer.updated_at
        model.deleted_at = customer.deleted_at

    def _child_row(self, model_class, entity_id: Optional[int]):
        if entity_id is not None:
            row = self.db.get(model_class, entity_id)
            if row is not None:
                return row
        return model_class()

    def _sync_contacts(self, model: CustomerModel, contacts: List[Contact]) -> List[CustomerContactModel]:
        rows = []
        for contact in contacts:
            row = self._child_row(CustomerContactModel, contact.id)
            row.role = contact.role
            row.name = contact.name
            row.email = contact.email.value if contact.email else None
            row.phone = contact.phone.value if contact.phone else None
            row.is_primary = contact.is_primary
            row.notes = contact.notes
            row.created_at = contact.created_at
            row.updated_at = contact.updated_at
            rows.append(row)

        # Rows left out of the collection are deleted (delete-orphan); rows
        # coming from another customer are re-parented.
        model.contacts = rows
        return rows

    def _sync_addresses(self, model: CustomerModel, addresses: List[Address]) -> List[CustomerAddressModel]:
        rows = []
        for address in addresses:
            row = self._child_row(CustomerAddressModel, address.id)
            row.type = address.type.value
            row.line1 = address.line1
            row.line2 = address.line2
            row.city = address.city
            row.state = address.state
            row.postal_code = address.postal_code
            row.country_code = address.country_code.value
            row.is_default = address.is_default
            row.notes = address.notes
            row.created_at = address.created_at
            row.updated_at = address.updated_at
            rows.append(row)

        model.addresses = rows
        return rows

    def _sync_tax_profile(
        self, model: CustomerModel, profile: Optional[TaxProfile]
    ) -> Optional[CustomerTaxProfileModel]:
        if profile is None:
            model.tax_profile = None
            return None

        row = self._child_row(CustomerTaxProfileModel, profile.id)
        row.tax_regime = profile.tax_regime.value
        row.tax_responsibilities = list(profile.tax_responsibilities)
        row.activity_codes = list(profile.activity_codes)
        row.tax_address = profile.tax_address
        row.is_retention_agent = profile.is_retention_agent
        row.is_self_retainer = profile.is_self_retainer
        row.notes = profile.notes
        row.created_at = profile.created_at
        row.updated_at = profile.updated_at

        model.tax_profile = row
        return row


def search_clause(query: str):
    pattern = _like(query)
    return or_(
        CustomerModel.business_name.ilike(pattern),
        CustomerModel.first_name.ilike(pattern),
        CustomerModel.last_name.ilike(pattern),
        CustomerModel.email.ilike(pattern),
        CustomerModel.document_number.ilike(pattern),
        CustomerModel.phone.ilike(pattern),
    )


def to_entity(model: CustomerModel) -> Customer:
    """Rebuild the Customer aggregate from its rows."""
    return Customer(
        id=model.id,
        tenant_id=model.tenant_id,
        type=CustomerType(model.type),
        document_id=DocumentId(model.document_type, model.document_number),
        business_name=model.business_name or "",
        first_name=model.first_name,
        last_name=model.last_name,
        email=Email(model.email) if model.email else None,
        phone=Phone(model.phone) if model.phone else None,
        status=CustomerStatus(model.status),
        segment=model.segment,
        notes=model.notes,
        blacklist_reason=model.blacklist_reason,
        created_at=model.created_at,
        updated_at=model.updated_at,
        deleted_at=model.deleted_at,
        contacts=[
            Contact(
                id=row.id,
                customer_id=row.customer_id,
                role=row.role,
                name=row.name,
                email=Email(row.email) if row.email else None,
                phone=Phone(row.phone) if row.phone else None,
                is_primary=row.is_primary,
                notes=row.notes,
                created_at=row.created_at,
                updated_at=row.updated_at,
            )
            for row in model.contacts
        ],
        addresses=[
            Address(
                id=row.id,
                customer_id=row.customer_id,
                type=row.type,
                line1=row.line1,
                line2=row.line2,
                city=row.city,
                state=row.state,
                postal_code=row.postal_code,
                country_code=CountryCode(row.country_code),
                is_default=row.is_default,
                notes=row.notes,
                created_at=row.created_at,
                updated_at=row.updated_at,
            )
            for row in model.addresses
        ],
        tax_profile=TaxProfile(
            id=model.tax_profile.id,
            customer_id=model.tax_profile.customer_id,
            tax_regime=model.tax_profile.tax_regime,
            tax_responsibilities=list(model.tax_profile.tax_responsibilities or []),
            activity_codes=list(model.tax_profile.activity_codes or []),
            tax_address=model.tax_profile.tax_address,
            is_retention_agent=model.tax_profile.is_retention_agent,
            is_self_retainer=model.tax_profile.is_self_retainer,
            notes=model.tax_profile.notes,
            created_at=model.tax_profile.created_at,
            updated_at=model.tax_profile.updated_at,
        ) if model.tax_profile else None,
    )
