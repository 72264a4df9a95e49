"""Health & Readiness Probes — liveness and readiness endpoints for container orchestration.

Invariants:
    - GET /api/health/ always returns 200 if process is up (liveness)
    - GET /api/health/ready returns 503 until services are initialized (readiness)
"""

import logging
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from cardbox.services import container

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    """Basic liveness probe. Returns 200 if the process is up."""
    return {
        "status": "healthy",
        "service": "cardbox-api",
        "version": "1.0.0",
    }


@router.get("/ready")
async def readiness_check():
    """Readiness probe — services wired and store available."""
    services = container.services
    if services is None:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "reason": "services_uninitialized",
            },
        )
    return {
        "status": "ready",
        "checks": {"store": "healthy", "cards": len(services.engine.list_cards())},
    }
