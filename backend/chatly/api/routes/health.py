"""Health & Readiness Probes — liveness and readiness endpoints for container orchestration.

Invariants:
    - GET /health/ always returns 200 if process is up (liveness)
    - GET /health/ready returns 503 if the database is unreachable (readiness)
    - Readiness also reports whether the host configured the external collaborators

Design Decisions:
    - Separate liveness/readiness: Kubernetes best practice — liveness restarts,
      readiness removes from load balancer (ADR: production readiness)
    - db_manager read through the module at request time: it is assigned in lifespan
"""

import logging
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from chatly.core.errors import CollaboratorNotConfiguredError
from chatly.infrastructure import collaborators
import chatly.infrastructure.database as db_module

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    """Basic liveness probe. Returns 200 if the process is up."""
    return {
        "status": "healthy",
        "service": "chatly-api",
        "version": "1.0.0",
    }


def _renderer_configured() -> bool:
    try:
        collaborators.notification_renderer()
    except CollaboratorNotConfiguredError:
        return False
    return True


@router.get("/ready")
async def readiness_check():
    """Readiness probe — includes database connectivity."""
    manager = db_module.db_manager
    db_ok = await manager.health_check() if manager else False
    if not db_ok:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "reason": "database_unavailable",
            },
        )
    return {
        "status": "ready",
        "checks": {
            "database": "healthy",
            "notification_renderer": (
                "configured" if _renderer_configured() else "missing"
            ),
        },
    }
