"""In-memory implementations of the customer ports for unit tests.

The repository stores deep copies, so a test only sees changes that went
through save(). The transaction manager snapshots every registered store and
restores it when the block raises.
"""

from contextlib import contextmanager
from copy import deepcopy
from datetime import timedelta
from typing import Any, Dict, List, Optional

from domain.customers.commands import CreateCustomerCommand
from domain.customers.entities import Customer
from domain.customers.errors import IdempotencyKeyConflict
from domain.customers.events import DomainEvent, utcnow
from domain.customers.ports import (
    CustomerFilters,
    CustomerPage,
    CustomerRepositoryPort,
    EventRecorderPort,
    IdempotencyRepositoryPort,
    TransactionManagerPort,
)
from domain.customers.value_objects import DocumentId


def _contains(value: Optional[str], term: str) -> bool:
    return bool(value) and term.lower() in value.lower()


class InMemoryCustomerRepository(CustomerRepositoryPort):

    def __init__(self):
        self.customers: Dict[int, Customer] = {}
        self._next_id = 1
        self._next_child_id = 1
        self.fail_on_save = False

    def save(self, customer: Customer) -> Customer:
        if self.fail_on_save:
            raise RuntimeError("storage unavailable")

        if customer.id is None:
            customer.id = self._next_id
            self._next_id += 1

        for child in [*customer.contacts, *customer.addresses, customer.tax_profile]:
            if child is None:
                continue
            if child.id is None:
                child.id = self._next_child_id
                self._next_child_id += 1
            child.customer_id = customer.id

        self.customers[customer.id] = deepcopy(customer)
        return customer

    def find_by_id(self, customer_id: int) -> Optional[Customer]:
        customer = self.customers.get(customer_id)
        if customer is None or customer.is_deleted():
            return None
        return deepcopy(customer)

    def find_by_document_id(self, tenant_id: Optional[str], document_id: DocumentId) -> List[Customer]:
        return [c for c in self._live(tenant_id) if c.document_id == document_id]

    def find_by_email(self, tenant_id: Optional[str], email: str) -> List[Customer]:
        return [c for c in self._live(tenant_id) if c.email and c.email.normalized() == email.lower()]

    def find_by_phone(self, tenant_id: Optional[str], phone: str) -> List[Customer]:
        return [c for c in self._live(tenant_id) if c.phone and c.phone.normalized() == phone]

    def find_by_similar_names(
        self, tenant_id: Optional[str], search_terms: List[str], limit: int = 50
    ) -> List[Customer]:
        matches = [
            c for c in self._live(tenant_id)
            if any(
                _contains(c.first_name, t) or _contains(c.last_name, t) or _contains(c.business_name, t)
                for t in search_terms
            )
        ]
        return matches[:limit]

    def list(
        self,
        tenant_id: Optional[str],
        filters: Optional[CustomerFilters] = None,
        page: int = 1,
        per_page: int = 15,
    ) -> CustomerPage:
        items = [c for c in self._live(tenant_id) if self._matches(c, filters)]
        start = (page - 1) * per_page
        return CustomerPage(items=items[start:start + per_page], total=len(items), page=page, per_page=per_page)

    def search(
        self,
        tenant_id: Optional[str],
        query: str,
        filters: Optional[CustomerFilters] = None,
        limit: int = 20,
    ) -> List[Customer]:
        found = [
            c for c in self._live(tenant_id)
            if self._matches(c, filters) and self._matches_text(c, query)
        ]
        return found[:limit]

    def delete(self, customer_id: int) -> bool:
        return self.customers.pop(customer_id, None) is not None

    def exists(self, tenant_id: Optional[str], document_id: DocumentId) -> bool:
        return bool(self.find_by_document_id(tenant_id, document_id))

    def get_metrics(
        self, tenant_id: Optional[str], filters: Optional[CustomerFilters] = None
    ) -> Dict[str, int]:
        live = self._live(tenant_id)
        return {
            "total_customers": len(live),
            "active_customers": sum(1 for c in live if c.status.value == "active"),
            "blacklisted_customers": sum(1 for c in live if c.status.value == "blacklisted"),
            "deleted_customers": sum(
                1 for c in self.customers.values() if c.tenant_id == tenant_id and c.is_deleted()
            ),
        }

    def _live(self, tenant_id: Optional[str]) -> List[Customer]:
        return [
            deepcopy(c) for _, c in sorted(self.customers.items())
            if c.tenant_id == tenant_id and not c.is_deleted()
        ]

    @staticmethod
    def _matches_text(customer: Customer, query: str) -> bool:
        return any(
            _contains(value, query)
            for value in (
                customer.business_name,
                customer.first_name,
                customer.last_name,
                customer.email.value if customer.email else None,
                customer.document_id.number,
            )
        )

    def _matches(self, customer: Customer, filters: Optional[CustomerFilters]) -> bool:
        if filters is None:
            return True
        if filters.status and customer.status.value != filters.status:
            return False
        if filters.type and customer.type.value != filters.type:
            return False
        if filters.segment and customer.segment != filters.segment:
            return False
        if filters.search and not self._matches_text(customer, filters.search):
            return False
        return True


class InMemoryIdempotencyRepository(IdempotencyRepositoryPort):

    def __init__(self):
        self.records: Dict[str, Dict[str, Any]] = {}

    def exists(self, key: str) -> bool:
        return self.get(key) is not None

    def store(self, key: str, data: Dict[str, Any], ttl_seconds: int = 3600) -> None:
        if self.exists(key):
            raise IdempotencyKeyConflict(key)

        now = utcnow()
        self.records[key] = {
            "event_type": data.get("event_type", "unknown"),
            "payload": dict(data),
            "result": None,
            "processed_at": now,
            "expires_at": now + timedelta(seconds=ttl_seconds),
        }

    def store_result(self, key: str, result: Dict[str, Any]) -> None:
        if self.exists(key):
            self.records[key]["result"] = result

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        record = self.records.get(key)
        if record is None or record["expires_at"] <= utcnow():
            return None
        return dict(record)

    def delete(self, key: str) -> bool:
        return self.records.pop(key, None) is not None

    def cleanup(self) -> int:
        expired = [k for k, r in self.records.items() if r["expires_at"] <= utcnow()]
        for key in expired:
            del self.records[key]
        return len(expired)


class RecordingEventRecorder(EventRecorderPort):

    def __init__(self):
        self.events: List[DomainEvent] = []
        self.actors: List[Optional[str]] = []

    def record(self, events: List[DomainEvent], actor_id: Optional[str] = None) -> None:
        for event in events:
            self.events.append(event)
            self.actors.append(actor_id)

    def actions(self) -> List[str]:
        return [e.action for e in self.events]


class InMemoryTransactionManager(TransactionManagerPort):
    """Restores the registered stores when the block raises."""

    def __init__(self, *stores):
        self.stores = stores
        self.commits = 0
        self.rollbacks = 0

    @contextmanager
    def transaction(self):
        snapshots = [deepcopy(store.__dict__) for store in self.stores]
        try:
            yield self
            self.commits += 1
        except Exception:
            for store, snapshot in zip(self.stores, snapshots):
                store.__dict__.clear()
                store.__dict__.update(snapshot)
            self.rollbacks += 1
            raise


def natural_command(**overrides) -> CreateCustomerCommand:
    values = dict(
        type="natural",
        document_type="CC",
        document_number="12345678",
        first_name="Juan",
        last_name="Perez",
        email="juan.perez@example.com",
        phone="3001234567",
    )
    values.update(overrides)
    return CreateCustomerCommand(**values)


def juridical_command(**overrides) -> CreateCustomerCommand:
    values = dict(
        type="juridical",
        document_type="NIT",
        document_number="9001234568",
        business_name="Acme Distribuciones SAS",
        email="ventas@acme.example.com",
        phone="6014567890",
    )
    values.update(overrides)
    return CreateCustomerCommand(**values)
