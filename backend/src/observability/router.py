"""Observability API endpoints.

Provides health checks and readiness probes for monitoring.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from database import get_db
from .health import (
    check_database_health,
    check_schema_health,
    get_overall_health,
    HealthStatus,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Observability"])


@router.get(
    "/health",
    summary="Health check endpoint",
    description="Returns health status of system components (database, customer schema)",
    status_code=200,
)
def health_check(db: Session = Depends(get_db)):
    """Check health of all system components.

    Returns 200 OK if all components are healthy or degraded, 503 if any
    is unhealthy.
    """
    components = {
        "database": check_database_health(db),
        "schema": check_schema_health(db),
    }

    overall_status = get_overall_health(components)

    response_data = {
        "status": overall_status.value,
        "components": {
            name: {
                "status": comp.status.value,
                "message": comp.message,
                "latency_ms": comp.latency_ms,
            }
            for name, comp in components.items()
        }
    }

    status_code = 200 if overall_status != HealthStatus.UNHEALTHY else 503

    return JSONResponse(content=response_data, status_code=status_code)


@router.get(
    "/ready",
    summary="Readiness check endpoint",
    description="Returns readiness status (for Kubernetes readiness probes)",
    status_code=200,
)
def readiness_check(db: Session = Depends(get_db)):
    """Check if application is ready to serve traffic."""
    db_health = check_database_health(db)

    if db_health.status == HealthStatus.HEALTHY:
        return {
            "status": "ready",
            "message": "Application is ready to serve traffic"
        }

    return JSONResponse(
        content={"status": "not_ready", "message": db_health.message},
        status_code=503
    )
