"""Global FastAPI dependencies for tenant scoping and service wiring.

This module provides:
- get_tenant_id: Tenant of the request, from the X-Tenant-ID header
- get_actor_id: User performing the request, from the X-Actor-ID header
- get_*_service: Customer services bound to the request's database session

All customer endpoints must use get_tenant_id so every lookup is scoped to
the caller's tenant. A request without the header works on the partition of
customers that have no tenant.
"""

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from audit.service import AuditEventRecorder
from config import Settings, get_settings
from database import SessionTransactionManager, get_db
from domain.customers.customer_service import CustomerService
from domain.customers.dedup_service import DedupService
from domain.customers.merge_service import MergeService
from infrastructure.repositories.customer_repository import SqlAlchemyCustomerRepository
from infrastructure.repositories.idempotency_repository import SqlAlchemyIdempotencyRepository


def get_tenant_id(x_tenant_id: Optional[str] = Header(None, alias="X-Tenant-ID")) -> Optional[str]:
    """Extract the tenant from the request headers.

    Example:
        @router.get("/customers")
        def list_customers(tenant_id: Optional[str] = Depends(get_tenant_id)):
            ...
    """
    if x_tenant_id is None:
        return None
    return x_tenant_id.strip() or None


def get_actor_id(x_actor_id: Optional[str] = Header(None, alias="X-Actor-ID")) -> Optional[str]:
    if x_actor_id is None:
        return None
    return x_actor_id.strip() or None


def get_customer_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> CustomerService:
    return CustomerService(
        repository=SqlAlchemyCustomerRepository(db),
        transactions=SessionTransactionManager(db),
        events=AuditEventRecorder(db),
        default_page_size=settings.DEFAULT_PAGE_SIZE,
        max_page_size=settings.MAX_PAGE_SIZE,
    )


def get_dedup_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> DedupService:
    return DedupService(
        repository=SqlAlchemyCustomerRepository(db),
        threshold=settings.DUPLICATE_THRESHOLD,
        similar_names_limit=settings.SIMILAR_NAMES_LIMIT,
    )


def get_merge_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> MergeService:
    return MergeService(
        repository=SqlAlchemyCustomerRepository(db),
        idempotency=SqlAlchemyIdempotencyRepository(db),
        transactions=SessionTransactionManager(db),
        events=AuditEventRecorder(db),
        idempotency_ttl_seconds=settings.IDEMPOTENCY_TTL_SECONDS,
    )
