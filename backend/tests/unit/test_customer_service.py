"""Unit tests for CustomerService use cases"""

from datetime import timedelta

import pytest

from domain.customers.commands import (
    AddressData,
    ContactData,
    TaxProfileData,
    UpdateCustomerCommand,
)
from domain.customers.customer_service import CustomerService
from domain.customers.enums import CustomerStatus
from domain.customers.errors import DomainRuleViolation, NotFoundError, ValidationError
from domain.customers.events import CustomerCreated, utcnow
from domain.customers.ports import CustomerFilters
from domain.customers.value_objects import Email
from fixtures.in_memory import (
    InMemoryCustomerRepository,
    InMemoryTransactionManager,
    RecordingEventRecorder,
    juridical_command,
    natural_command,
)


TENANT = "tenant-a"


@pytest.fixture
def repository():
    return InMemoryCustomerRepository()


@pytest.fixture
def recorder():
    return RecordingEventRecorder()


@pytest.fixture
def transactions(repository, recorder):
    return InMemoryTransactionManager(repository, recorder)


@pytest.fixture
def service(repository, transactions, recorder):
    return CustomerService(repository, transactions, recorder, default_page_size=2, max_page_size=5)


@pytest.fixture
def customer(service):
    return service.create_customer(TENANT, natural_command(), actor_id="user-1")


class TestCreateCustomer:

    def test_create_customer(self, service, repository, recorder, transactions):
        created = service.create_customer(TENANT, natural_command(), actor_id="user-1")

        assert created.id is not None
        assert created.tenant_id == TENANT
        assert repository.find_by_id(created.id).full_name() == "Juan Perez"
        assert transactions.commits == 1

        event = recorder.events[0]
        assert isinstance(event, CustomerCreated)
        assert event.customer_id == created.id
        assert event.new_values()["id"] == created.id
        assert recorder.actors == ["user-1"]

    def test_blank_email_is_ignored(self, service):
        created = service.create_customer(TENANT, natural_command(email="  "))
        assert created.email is None

    def test_document_type_must_fit_customer_type(self, service):
        with pytest.raises(DomainRuleViolation) as exc:
            service.create_customer(TENANT, natural_command(document_type="NIT", document_number="9001234568"))
        assert exc.value.rule == "customer.document_type"

    def test_duplicate_document_in_same_tenant(self, service, customer):
        with pytest.raises(DomainRuleViolation) as exc:
            service.create_customer(TENANT, natural_command(document_number="12.345.678"))
        assert exc.value.rule == "customer.duplicate_document"

    def test_same_document_in_another_tenant_is_allowed(self, service, customer):
        other = service.create_customer("tenant-b", natural_command())
        assert other.id != customer.id

    def test_invalid_values_raise_validation_error(self, service):
        with pytest.raises(ValidationError):
            service.create_customer(TENANT, natural_command(type="robot"))
        with pytest.raises(ValidationError):
            service.create_customer(TENANT, natural_command(email="not-an-email"))
        with pytest.raises(ValidationError):
            service.create_customer(TENANT, juridical_command(document_number="9001234567"))

    def test_business_rules_are_checked(self, service, recorder):
        with pytest.raises(DomainRuleViolation):
            service.create_customer(TENANT, natural_command(email=None, phone=None))
        assert recorder.events == []


class TestUpdateAndStatus:

    def test_update_keeps_omitted_fields(self, service, customer, recorder):
        updated = service.update_customer(
            TENANT, customer.id, UpdateCustomerCommand(segment="wholesale"), actor_id="user-2"
        )

        assert updated.segment == "wholesale"
        assert updated.email == Email("juan.perez@example.com")
        assert updated.first_name == "Juan"
        assert recorder.events[-1].changed_fields() == ["segment"]

    def test_update_with_blank_email_clears_it(self, service, customer):
        updated = service.update_customer(TENANT, customer.id, UpdateCustomerCommand(email=""))
        assert updated.email is None
        assert updated.phone is not None

    def test_update_without_changes_records_nothing(self, service, customer, recorder):
        service.update_customer(TENANT, customer.id, UpdateCustomerCommand(first_name="Juan"))
        assert recorder.actions() == ["created"]

    def test_change_status(self, service, customer, repository):
        service.change_status(TENANT, customer.id, "active", reason="first order")
        assert repository.find_by_id(customer.id).status is CustomerStatus.ACTIVE

    def test_change_status_rejects_unknown_status(self, service, customer):
        with pytest.raises(ValidationError):
            service.change_status(TENANT, customer.id, "archived")

    def test_blacklist_and_lift(self, service, customer, recorder):
        blacklisted = service.blacklist_customer(TENANT, customer.id, "fraud")
        assert blacklisted.status is CustomerStatus.BLACKLISTED

        with pytest.raises(DomainRuleViolation):
            service.change_status(TENANT, customer.id, "active")

        lifted = service.lift_blacklist(TENANT, customer.id, "inactive", "cleared")
        assert lifted.status is CustomerStatus.INACTIVE
        assert recorder.actions() == ["created", "blacklisted", "status_changed"]

    def test_blacklisting_twice_is_a_no_op(self, service, customer, recorder):
        service.blacklist_customer(TENANT, customer.id, "fraud")
        again = service.blacklist_customer(TENANT, customer.id, "other reason")

        assert again.blacklist_reason == "fraud"
        assert recorder.actions().count("blacklisted") == 1

    def test_delete_customer(self, service, customer, repository, recorder):
        service.delete_customer(TENANT, customer.id, actor_id="user-1", reason="test data")

        assert repository.find_by_id(customer.id) is None
        assert recorder.events[-1].reason() == "test data"
        with pytest.raises(NotFoundError):
            service.get_customer(TENANT, customer.id)

    def test_failed_save_rolls_back(self, service, customer, repository, recorder, transactions):
        repository.fail_on_save = True
        with pytest.raises(RuntimeError):
            service.change_status(TENANT, customer.id, "active")

        repository.fail_on_save = False
        assert transactions.rollbacks == 1
        assert repository.find_by_id(customer.id).status is CustomerStatus.PROSPECT
        assert recorder.actions() == ["created"]


class TestChildren:

    def test_primary_contact_is_unique(self, service, customer):
        service.add_contact(TENANT, customer.id, ContactData(role="Buyer", name="Ana", is_primary=True))
        updated = service.add_contact(
            TENANT, customer.id, ContactData(role="Manager", name="Luis", email="luis@example.com", is_primary=True)
        )

        primaries = [c.name for c in updated.contacts if c.is_primary]
        assert primaries == ["Luis"]
        assert all(c.id is not None for c in updated.contacts)

    def test_default_address_is_unique_per_type(self, service, customer):
        def data(line1, type="billing"):
            return AddressData(
                type=type, line1=line1, city="Bogota", state="Cundinamarca",
                postal_code="110111", country_code="co", is_default=True,
            )

        service.add_address(TENANT, customer.id, data("Calle 1"))
        service.add_address(TENANT, customer.id, data("Calle 2", type="shipping"))
        updated = service.add_address(TENANT, customer.id, data("Calle 3"))

        defaults = sorted(a.line1 for a in updated.addresses if a.is_default)
        assert defaults == ["Calle 2", "Calle 3"]
        assert updated.addresses[0].country_code.value == "CO"

    def test_address_with_unsupported_country(self, service, customer):
        with pytest.raises(ValidationError):
            service.add_address(TENANT, customer.id, AddressData(
                type="billing", line1="Calle 1", city="X", state="Y",
                postal_code="1", country_code="ZZ",
            ))

    def test_set_tax_profile_replaces_existing(self, service, customer):
        first = service.set_tax_profile(TENANT, customer.id, TaxProfileData(tax_regime="simplified"))
        profile_id = first.tax_profile.id

        second = service.set_tax_profile(
            TENANT, customer.id, TaxProfileData(tax_regime="common", activity_codes=["4711"])
        )

        assert second.tax_profile.id == profile_id
        assert second.tax_profile.activity_codes == ["4711"]

    def test_children_of_blacklisted_customer_are_not_blocked(self, service, customer):
        service.blacklist_customer(TENANT, customer.id, "fraud")
        updated = service.add_contact(TENANT, customer.id, ContactData(role="Legal", name="Abogado"))
        assert len(updated.contacts) == 1


class TestQueries:

    def test_get_customer_is_tenant_scoped(self, service, customer):
        assert service.get_customer(TENANT, customer.id).id == customer.id
        with pytest.raises(NotFoundError):
            service.get_customer("tenant-b", customer.id)
        with pytest.raises(NotFoundError):
            service.get_customer(None, customer.id)

    def test_list_customers_clamps_page_size(self, service):
        for number in ("11111111", "22222222", "33333333"):
            service.create_customer(TENANT, natural_command(document_number=number))

        page = service.list_customers(TENANT)
        assert page.per_page == 2
        assert page.total == 3
        assert page.last_page == 2

        assert service.list_customers(TENANT, per_page=50).per_page == 5
        assert len(service.list_customers(TENANT, page=2).items) == 1

    def test_list_customers_filters(self, service, customer):
        service.create_customer(TENANT, juridical_command())

        page = service.list_customers(TENANT, CustomerFilters(type="juridical"))
        assert [c.business_name for c in page.items] == ["Acme Distribuciones SAS"]

    def test_search_customers(self, service, customer):
        assert [c.id for c in service.search_customers(TENANT, "perez")] == [customer.id]
        assert service.search_customers(TENANT, "   ") == []
        assert service.search_customers("tenant-b", "perez") == []

    def test_customer_metrics(self, service, customer):
        metrics = service.get_customer_metrics(customer)

        assert metrics["contacts_count"] == 0
        assert metrics["has_tax_profile"] is False
        assert metrics["days_since_creation"] == 0
        assert metrics["is_complete"] is False

        customer.created_at = utcnow() - timedelta(days=3, hours=1)
        customer.created_at = customer.created_at.replace(tzinfo=None)
        assert service.get_customer_metrics(customer)["days_since_creation"] == 3

    def test_data_is_complete_with_contact_and_address(self, service, customer):
        updated = service.add_address(TENANT, customer.id, AddressData(
            type="billing", line1="Calle 1", city="Bogota", state="DC",
            postal_code="110111", country_code="CO",
        ))
        assert service.is_customer_data_complete(updated) is True

    def test_tenant_metrics(self, service, customer):
        service.delete_customer(TENANT, customer.id)
        service.create_customer(TENANT, juridical_command())

        metrics = service.get_metrics(TENANT)
        assert metrics["total_customers"] == 1
        assert metrics["deleted_customers"] == 1
