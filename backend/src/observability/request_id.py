"""Request-scoped context for log correlation.

Holds the request ID and the tenant of the current request in context
variables, so every log line emitted while serving a request can carry them.
"""

import uuid
from contextvars import ContextVar
from typing import Optional

# Context variables (async-safe)
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
tenant_id_var: ContextVar[Optional[str]] = ContextVar("tenant_id", default=None)


def generate_request_id() -> str:
    """Generate a new unique request ID.

    Returns:
        str: UUID v4 request ID
    """
    return str(uuid.uuid4())


def get_request_id() -> str:
    """Get current request ID from context.

    Returns:
        str: Current request ID or "no-request-id" if not set
    """
    return request_id_var.get() or "no-request-id"


def set_request_id(request_id: str) -> None:
    request_id_var.set(request_id)


def get_tenant_id() -> Optional[str]:
    return tenant_id_var.get()


def set_tenant_id(tenant_id: Optional[str]) -> None:
    tenant_id_var.set(tenant_id)
