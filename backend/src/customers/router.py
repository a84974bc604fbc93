"""Customer management API endpoints

Every response uses the {success, data | message} envelope. Domain errors are
mapped to status codes by the exception handlers registered in main.py.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, status

from dependencies import (
    get_actor_id,
    get_customer_service,
    get_dedup_service,
    get_merge_service,
    get_tenant_id,
)
from domain.customers.commands import (
    AddressData,
    ContactData,
    CreateCustomerCommand,
    TaxProfileData,
    UpdateCustomerCommand,
)
from domain.customers.customer_service import CustomerService
from domain.customers.dedup_service import DedupService
from domain.customers.entities import Customer
from domain.customers.errors import ValidationError
from domain.customers.merge_service import MergeService
from domain.customers.ports import CustomerFilters
from .schemas import (
    ApiResponse,
    BlacklistRequest,
    CustomerAddressCreate,
    CustomerContactCreate,
    CustomerCreate,
    CustomerResponse,
    CustomerUpdate,
    LiftBlacklistRequest,
    MergePair,
    MergeRequest,
    PaginationMeta,
    StatusChangeRequest,
    TaxProfileUpsert,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/customers", tags=["customers"])


def customer_payload(customer: Customer, metrics: Optional[dict] = None) -> dict:
    """Serialize a customer with its contacts, addresses and tax profile."""
    data = customer.to_dict()
    data["contacts"] = [c.to_dict() for c in customer.contacts]
    data["addresses"] = [a.to_dict() for a in customer.addresses]
    data["tax_profile"] = customer.tax_profile.to_dict() if customer.tax_profile else None
    if metrics is not None:
        data["metrics"] = metrics
    return CustomerResponse.model_validate(data).model_dump(mode="json")


# ============================================================================
# Collection Endpoints
# ============================================================================

@router.get("", response_model=ApiResponse)
def list_customers(
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status"),
    type_filter: Optional[str] = Query(None, alias="type", description="Filter by customer type"),
    segment: Optional[str] = Query(None, description="Filter by segment"),
    document_type: Optional[str] = Query(None, description="Filter by document type"),
    search: Optional[str] = Query(None, description="Search in names, email and document number"),
    created_from: Optional[datetime] = Query(None),
    created_to: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1, description="Page number"),
    per_page: Optional[int] = Query(None, ge=1, description="Items per page"),
    tenant_id: Optional[str] = Depends(get_tenant_id),
    service: CustomerService = Depends(get_customer_service),
):
    """List customers of the tenant with filters and pagination."""
    filters = CustomerFilters(
        status=status_filter,
        type=type_filter,
        segment=segment,
        document_type=document_type,
        search=search,
        created_from=created_from,
        created_to=created_to,
    )
    result = service.list_customers(tenant_id, filters, page, per_page)

    return ApiResponse(
        data=[customer_payload(c) for c in result.items],
        meta=PaginationMeta(
            total=result.total,
            page=result.page,
            per_page=result.per_page,
            last_page=result.last_page,
        ),
    )


@router.post("", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
def create_customer(
    customer_data: CustomerCreate,
    tenant_id: Optional[str] = Depends(get_tenant_id),
    actor_id: Optional[str] = Depends(get_actor_id),
    service: CustomerService = Depends(get_customer_service),
):
    """
    Create a new customer.

    Raises:
        422: If the document is invalid, already registered in the tenant,
            does not fit the customer type, or business rules fail
    """
    command = CreateCustomerCommand(
        type=customer_data.type.value,
        document_type=customer_data.document_type.value,
        document_number=customer_data.document_number,
        business_name=customer_data.business_name,
        first_name=customer_data.first_name,
        last_name=customer_data.last_name,
        email=customer_data.email,
        phone=customer_data.phone,
        status=customer_data.status.value,
        segment=customer_data.segment,
        notes=customer_data.notes,
    )
    customer = service.create_customer(tenant_id, command, actor_id)
    return ApiResponse(data=customer_payload(customer), message="Customer created")


@router.get("/search", response_model=ApiResponse)
def search_customers(
    q: str = Query(..., min_length=1, description="Search query"),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    type_filter: Optional[str] = Query(None, alias="type"),
    tenant_id: Optional[str] = Depends(get_tenant_id),
    service: CustomerService = Depends(get_customer_service),
):
    filters = CustomerFilters(status=status_filter, type=type_filter)
    customers = service.search_customers(tenant_id, q, filters, limit)
    return ApiResponse(data=[customer_payload(c) for c in customers])


@router.get("/metrics", response_model=ApiResponse)
def customer_metrics(
    created_from: Optional[datetime] = Query(None),
    created_to: Optional[datetime] = Query(None),
    tenant_id: Optional[str] = Depends(get_tenant_id),
    service: CustomerService = Depends(get_customer_service),
):
    filters = CustomerFilters(created_from=created_from, created_to=created_to)
    return ApiResponse(data=service.get_metrics(tenant_id, filters))


# ============================================================================
# Merge Endpoints
# ============================================================================

@router.post("/merge", response_model=ApiResponse)
def merge_customers(
    request: MergeRequest,
    idempotency_key_header: Optional[str] = Header(None, alias="Idempotency-Key"),
    tenant_id: Optional[str] = Depends(get_tenant_id),
    actor_id: Optional[str] = Depends(get_actor_id),
    customers: CustomerService = Depends(get_customer_service),
    merges: MergeService = Depends(get_merge_service),
):
    """
    Merge the source customer into the destination customer.

    Replaying the same idempotency key returns the current destination
    without merging again.
    """
    idempotency_key = (idempotency_key_header or request.idempotency_key or "").strip()
    if not idempotency_key:
        raise ValidationError(
            "An idempotency key is required (Idempotency-Key header or idempotency_key field)",
            field="idempotency_key",
        )

    # The destination survives a merge, so it is always visible to its tenant
    customers.get_customer(tenant_id, request.destination_customer_id)

    merged = merges.merge_customers(
        source_id=request.source_customer_id,
        destination_id=request.destination_customer_id,
        idempotency_key=idempotency_key,
        actor_id=actor_id,
        reason=request.reason,
    )
    return ApiResponse(data=customer_payload(merged), message="Customers merged")


@router.post("/merge/preview", response_model=ApiResponse)
def preview_merge(
    request: MergePair,
    tenant_id: Optional[str] = Depends(get_tenant_id),
    customers: CustomerService = Depends(get_customer_service),
    merges: MergeService = Depends(get_merge_service),
):
    customers.get_customer(tenant_id, request.destination_customer_id)
    preview = merges.preview_merge_by_ids(
        request.source_customer_id, request.destination_customer_id
    )
    return ApiResponse(data=preview)


@router.post("/merge/validate", response_model=ApiResponse)
def validate_merge(
    request: MergePair,
    tenant_id: Optional[str] = Depends(get_tenant_id),
    customers: CustomerService = Depends(get_customer_service),
    merges: MergeService = Depends(get_merge_service),
):
    customers.get_customer(tenant_id, request.destination_customer_id)
    violations = merges.validate_merge_by_ids(
        request.source_customer_id, request.destination_customer_id
    )
    return ApiResponse(data={"valid": not violations, "errors": violations})


# ============================================================================
# Single Customer Endpoints
# ============================================================================

@router.get("/{customer_id}", response_model=ApiResponse)
def get_customer(
    customer_id: int,
    tenant_id: Optional[str] = Depends(get_tenant_id),
    service: CustomerService = Depends(get_customer_service),
):
    customer = service.get_customer(tenant_id, customer_id)
    return ApiResponse(data=customer_payload(customer, service.get_customer_metrics(customer)))


@router.put("/{customer_id}", response_model=ApiResponse)
def update_customer(
    customer_id: int,
    update_data: CustomerUpdate,
    tenant_id: Optional[str] = Depends(get_tenant_id),
    actor_id: Optional[str] = Depends(get_actor_id),
    service: CustomerService = Depends(get_customer_service),
):
    """Update descriptive fields; omitted fields keep their value."""
    command = UpdateCustomerCommand(**update_data.model_dump())
    customer = service.update_customer(tenant_id, customer_id, command, actor_id)
    return ApiResponse(data=customer_payload(customer), message="Customer updated")


@router.delete("/{customer_id}", response_model=ApiResponse)
def delete_customer(
    customer_id: int,
    reason: Optional[str] = Query(None, max_length=1000),
    tenant_id: Optional[str] = Depends(get_tenant_id),
    actor_id: Optional[str] = Depends(get_actor_id),
    service: CustomerService = Depends(get_customer_service),
):
    """Soft-delete a customer. Blacklisted customers cannot be deleted."""
    service.delete_customer(tenant_id, customer_id, actor_id=actor_id, reason=reason)
    return ApiResponse(message="Customer deleted")


@router.post("/{customer_id}/status", response_model=ApiResponse)
def change_status(
    customer_id: int,
    request: StatusChangeRequest,
    tenant_id: Optional[str] = Depends(get_tenant_id),
    actor_id: Optional[str] = Depends(get_actor_id),
    service: CustomerService = Depends(get_customer_service),
):
    customer = service.change_status(
        tenant_id, customer_id, request.status.value, request.reason, actor_id
    )
    return ApiResponse(data=customer_payload(customer), message="Customer status changed")


@router.post("/{customer_id}/blacklist", response_model=ApiResponse)
def blacklist_customer(
    customer_id: int,
    request: BlacklistRequest,
    tenant_id: Optional[str] = Depends(get_tenant_id),
    actor_id: Optional[str] = Depends(get_actor_id),
    service: CustomerService = Depends(get_customer_service),
):
    customer = service.blacklist_customer(tenant_id, customer_id, request.reason, actor_id)
    return ApiResponse(data=customer_payload(customer), message="Customer blacklisted")


@router.post("/{customer_id}/lift-blacklist", response_model=ApiResponse)
def lift_blacklist(
    customer_id: int,
    request: LiftBlacklistRequest,
    tenant_id: Optional[str] = Depends(get_tenant_id),
    actor_id: Optional[str] = Depends(get_actor_id),
    service: CustomerService = Depends(get_customer_service),
):
    customer = service.lift_blacklist(
        tenant_id, customer_id, request.status.value, request.reason, actor_id
    )
    return ApiResponse(data=customer_payload(customer), message="Customer removed from blacklist")


@router.post("/{customer_id}/contacts", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
def add_contact(
    customer_id: int,
    contact_data: CustomerContactCreate,
    tenant_id: Optional[str] = Depends(get_tenant_id),
    actor_id: Optional[str] = Depends(get_actor_id),
    service: CustomerService = Depends(get_customer_service),
):
    customer = service.add_contact(
        tenant_id, customer_id, ContactData(**contact_data.model_dump()), actor_id
    )
    return ApiResponse(data=customer_payload(customer), message="Contact added")


@router.post("/{customer_id}/addresses", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
def add_address(
    customer_id: int,
    address_data: CustomerAddressCreate,
    tenant_id: Optional[str] = Depends(get_tenant_id),
    actor_id: Optional[str] = Depends(get_actor_id),
    service: CustomerService = Depends(get_customer_service),
):
    data = address_data.model_dump()
    data["type"] = address_data.type.value
    customer = service.add_address(tenant_id, customer_id, AddressData(**data), actor_id)
    return ApiResponse(data=customer_payload(customer), message="Address added")


@router.put("/{customer_id}/tax-profile", response_model=ApiResponse)
def set_tax_profile(
    customer_id: int,
    profile_data: TaxProfileUpsert,
    tenant_id: Optional[str] = Depends(get_tenant_id),
    actor_id: Optional[str] = Depends(get_actor_id),
    service: CustomerService = Depends(get_customer_service),
):
    data = profile_data.model_dump()
    data["tax_regime"] = profile_data.tax_regime.value
    customer = service.set_tax_profile(tenant_id, customer_id, TaxProfileData(**data), actor_id)
    return ApiResponse(data=customer_payload(customer), message="Tax profile updated")


@router.get("/{customer_id}/duplicates", response_model=ApiResponse)
def find_duplicates(
    customer_id: int,
    tenant_id: Optional[str] = Depends(get_tenant_id),
    service: CustomerService = Depends(get_customer_service),
    dedup: DedupService = Depends(get_dedup_service),
):
    """Potential duplicates of a customer, most similar first."""
    customer = service.get_customer(tenant_id, customer_id)
    report = dedup.generate_duplicate_report(tenant_id, customer)
    return ApiResponse(data=[match.to_dict() for match in report])
