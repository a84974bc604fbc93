"""Customer domain ports.

Hexagonal Architecture: services depend on these interfaces; SQLAlchemy
adapters in infrastructure.repositories and the in-memory fakes used by the unit
tests implement them.

Every customer lookup is tenant-scoped: a `tenant_id` of None only matches
customers without a tenant.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import datetime
from math import ceil
from typing import Any, List, Optional

from .entities import Customer
from .events import DomainEvent
from .value_objects import DocumentId


@dataclass
class CustomerFilters:
    """Optional filters for list / search / metrics queries."""
    status: Optional[str] = None
    type: Optional[str] = None
    segment: Optional[str] = None
    document_type: Optional[str] = None
    search: Optional[str] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None


@dataclass
class CustomerPage:
    """One page of customers plus pagination metadata."""
    items: List[Customer]
    total: int
    page: int
    per_page: int

    @property
    def last_page(self) -> int:
        return max(1, ceil(self.total / self.per_page)) if self.per_page else 1


class CustomerRepositoryPort(ABC):
    """Persistence of the Customer aggregate (with contacts, addresses and
    tax profile). Soft-deleted customers are never returned."""

    @abstractmethod
    def save(self, customer: Customer) -> Customer:
        """Insert or update the aggregate; returns it with ids assigned."""
        pass

    @abstractmethod
    def find_by_id(self, customer_id: int) -> Optional[Customer]:
        pass

    @abstractmethod
    def find_by_document_id(
        self, tenant_id: Optional[str], document_id: DocumentId
    ) -> List[Customer]:
        pass

    @abstractmethod
    def find_by_email(self, tenant_id: Optional[str], email: str) -> List[Customer]:
        """Match on the normalized (lower-cased) e-mail."""
        pass

    @abstractmethod
    def find_by_phone(self, tenant_id: Optional[str], phone: str) -> List[Customer]:
        """Match on the normalized phone (+<country><number>)."""
        pass

    @abstractmethod
    def find_by_similar_names(
        self, tenant_id: Optional[str], search_terms: List[str], limit: int = 50
    ) -> List[Customer]:
        """Customers whose first, last or business name contains any term."""
        pass

    @abstractmethod
    def list(
        self,
        tenant_id: Optional[str],
        filters: Optional[CustomerFilters] = None,
        page: int = 1,
        per_page: int = 15,
    ) -> CustomerPage:
        pass

    @abstractmethod
    def search(
        self,
        tenant_id: Optional[str],
        query: str,
        filters: Optional[CustomerFilters] = None,
        limit: int = 20,
    ) -> List[Customer]:
        pass

    @abstractmethod
    def delete(self, customer_id: int) -> bool:
        """Hard delete. Returns False when nothing was deleted."""
        pass

    @abstractmethod
    def exists(self, tenant_id: Optional[str], document_id: DocumentId) -> bool:
        pass

    @abstractmethod
    def get_metrics(
        self, tenant_id: Optional[str], filters: Optional[CustomerFilters] = None
    ) -> dict[str, int]:
        pass


class IdempotencyRepositoryPort(ABC):
    """Processed-event records keyed by idempotency key.

    Expired records behave as absent.
    """

    @abstractmethod
    def exists(self, key: str) -> bool:
        pass

    @abstractmethod
    def store(self, key: str, data: dict[str, Any], ttl_seconds: int = 3600) -> None:
        """Record a key. `data["event_type"]` names the operation.

        Raises:
            IdempotencyKeyConflict: If a live record already holds the key
        """
        pass

    @abstractmethod
    def store_result(self, key: str, result: dict[str, Any]) -> None:
        pass

    @abstractmethod
    def get(self, key: str) -> Optional[dict[str, Any]]:
        """Return {event_type, payload, result, processed_at, expires_at} or None."""
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        pass

    @abstractmethod
    def cleanup(self) -> int:
        """Delete expired records; returns how many were removed."""
        pass


class CustomerReadModelPort(ABC):
    """Read-only projections of customers for other modules."""

    @abstractmethod
    def get_customer_by_id(self, customer_id: int) -> Optional[dict[str, Any]]:
        pass

    @abstractmethod
    def get_customer_by_document(
        self, document_type: str, document_number: str, tenant_id: Optional[str] = None
    ) -> Optional[dict[str, Any]]:
        pass

    @abstractmethod
    def get_customer_basic_info(self, customer_id: int) -> Optional[dict[str, Any]]:
        pass

    @abstractmethod
    def get_customers_by_ids(self, customer_ids: List[int]) -> List[dict[str, Any]]:
        pass

    @abstractmethod
    def search_customers(
        self, query: str, tenant_id: Optional[str] = None, limit: int = 10
    ) -> List[dict[str, Any]]:
        pass

    @abstractmethod
    def get_customer_contact_info(self, customer_id: int) -> Optional[dict[str, Any]]:
        pass

    @abstractmethod
    def is_customer_active(self, customer_id: int) -> bool:
        pass

    @abstractmethod
    def get_customer_tax_info(self, customer_id: int) -> Optional[dict[str, Any]]:
        pass


class EventRecorderPort(ABC):
    """Writes domain events to the audit-log outbox."""

    @abstractmethod
    def record(self, events: List[DomainEvent], actor_id: Optional[str] = None) -> None:
        pass


class TransactionManagerPort(ABC):
    """Unit of work. Commits when the block exits cleanly, rolls back and
    re-raises otherwise."""

    @abstractmethod
    def transaction(self) -> AbstractContextManager:
        pass
