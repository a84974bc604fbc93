"""Customer management HTTP module"""

from .schemas import (
    ApiResponse,
    CustomerCreate,
    CustomerUpdate,
    CustomerResponse,
    CustomerContactCreate,
    CustomerAddressCreate,
    MergeRequest,
)
from .router import router

__all__ = [
    "ApiResponse",
    "CustomerCreate",
    "CustomerUpdate",
    "CustomerResponse",
    "CustomerContactCreate",
    "CustomerAddressCreate",
    "MergeRequest",
    "router",
]
