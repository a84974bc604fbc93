"""Pydantic schemas for customer management"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field, EmailStr, field_validator

from domain.customers.enums import AddressType, CustomerStatus, CustomerType, TaxRegime
from domain.customers.value_objects import DocumentType


def _strip(v: Optional[str]) -> Optional[str]:
    return v.strip() if isinstance(v, str) else v


# ============================================================================
# Requests
# ============================================================================

class CustomerCreate(BaseModel):
    """Schema for creating a new customer"""
    type: CustomerType
    document_type: DocumentType
    document_number: str = Field(..., min_length=1, max_length=30)
    business_name: str = Field("", max_length=255)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=30)
    status: CustomerStatus = CustomerStatus.PROSPECT
    segment: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None

    @field_validator('business_name', 'first_name', 'last_name', 'phone', 'segment')
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return _strip(v)

    class Config:
        from_attributes = True


class CustomerUpdate(BaseModel):
    """Schema for updating an existing customer (partial updates)"""
    business_name: Optional[str] = Field(None, max_length=255)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=30)
    segment: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None

    @field_validator('business_name', 'first_name', 'last_name', 'phone', 'segment')
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return _strip(v)


class StatusChangeRequest(BaseModel):
    status: CustomerStatus
    reason: Optional[str] = Field(None, max_length=1000)


class BlacklistRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class LiftBlacklistRequest(BaseModel):
    status: CustomerStatus = CustomerStatus.ACTIVE
    reason: Optional[str] = Field(None, max_length=1000)


class CustomerContactCreate(BaseModel):
    """Schema for creating a new customer contact"""
    role: str = Field("", max_length=100)
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=30)
    is_primary: bool = False
    notes: Optional[str] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate name is not empty after stripping whitespace"""
        if not v.strip():
            raise ValueError("Contact name cannot be empty")
        return v.strip()


class CustomerAddressCreate(BaseModel):
    """Schema for adding an address to a customer"""
    type: AddressType
    line1: str = Field(..., min_length=1, max_length=255)
    line2: Optional[str] = Field(None, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    postal_code: str = Field(..., min_length=1, max_length=20)
    country_code: str = Field(..., min_length=2, max_length=2, description="ISO 3166-1 alpha-2 country code")
    is_default: bool = False
    notes: Optional[str] = None


class TaxProfileUpsert(BaseModel):
    tax_regime: TaxRegime
    tax_responsibilities: List[str] = Field(default_factory=list)
    activity_codes: List[str] = Field(default_factory=list)
    tax_address: Optional[str] = Field(None, max_length=500)
    is_retention_agent: bool = False
    is_self_retainer: bool = False
    notes: Optional[str] = None


class MergePair(BaseModel):
    source_customer_id: int = Field(..., gt=0)
    destination_customer_id: int = Field(..., gt=0)


class MergeRequest(MergePair):
    """Merge request. The idempotency key may also come from the Idempotency-Key header."""
    reason: Optional[str] = Field(None, max_length=1000)
    idempotency_key: Optional[str] = Field(None, min_length=1, max_length=255)


# ============================================================================
# Responses
# ============================================================================

class CustomerContactResponse(BaseModel):
    id: Optional[int]
    customer_id: Optional[int]
    role: str
    name: str
    email: Optional[str]
    phone: Optional[str]
    is_primary: bool
    notes: Optional[str]


class CustomerAddressResponse(BaseModel):
    id: Optional[int]
    customer_id: Optional[int]
    type: str
    line1: str
    line2: Optional[str]
    city: str
    state: str
    postal_code: str
    country_code: str
    is_default: bool
    notes: Optional[str]
    full_address: str


class TaxProfileResponse(BaseModel):
    id: Optional[int]
    customer_id: Optional[int]
    tax_regime: str
    tax_responsibilities: List[str]
    activity_codes: List[str]
    tax_address: Optional[str]
    is_retention_agent: bool
    is_self_retainer: bool
    notes: Optional[str]


class CustomerResponse(BaseModel):
    """Schema for customer response"""
    id: int
    tenant_id: Optional[str]
    type: str
    document_type: str
    document_number: str
    document_formatted: str
    business_name: str
    first_name: Optional[str]
    last_name: Optional[str]
    full_name: str
    email: Optional[str]
    phone: Optional[str]
    phone_normalized: Optional[str]
    status: str
    segment: Optional[str]
    notes: Optional[str]
    blacklist_reason: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    contacts: List[CustomerContactResponse] = Field(default_factory=list)
    addresses: List[CustomerAddressResponse] = Field(default_factory=list)
    tax_profile: Optional[TaxProfileResponse] = None
    metrics: Optional[dict] = None


class PaginationMeta(BaseModel):
    total: int
    page: int
    per_page: int
    last_page: int


class ApiResponse(BaseModel):
    """Response envelope shared by every customer endpoint"""
    success: bool = True
    data: Optional[Any] = None
    message: Optional[str] = None
    meta: Optional[PaginationMeta] = None
