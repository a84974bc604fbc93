"""Observability module: structured logging, request correlation and health checks."""

from .logging_config import configure_logging, JSONFormatter, RequestIDFilter
from .request_id import (
    request_id_var,
    tenant_id_var,
    get_request_id,
    set_request_id,
    get_tenant_id,
    set_tenant_id,
    generate_request_id,
)
from .health import HealthStatus, ComponentHealth
from .middleware import RequestIDMiddleware

__all__ = [
    # Logging
    "configure_logging",
    "JSONFormatter",
    "RequestIDFilter",
    # Request context
    "request_id_var",
    "tenant_id_var",
    "get_request_id",
    "set_request_id",
    "get_tenant_id",
    "set_tenant_id",
    "generate_request_id",
    # Health
    "HealthStatus",
    "ComponentHealth",
    # Middleware
    "RequestIDMiddleware",
]
