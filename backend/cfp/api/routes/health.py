"""Health & Readiness Probes.

Invariants:
    - GET /api/v1/health/ answers 200 while the process is up, without touching storage
    - GET /api/v1/health/ready answers 503 until the database accepts a query
"""

import logging
import time

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from cfp.infrastructure import database

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])

SERVICE_NAME = "cfp-api"
SERVICE_VERSION = "1.0.0"


@router.get("/", status_code=status.HTTP_200_OK)
async def liveness():
    return {"status": "healthy", "service": SERVICE_NAME, "version": SERVICE_VERSION}


@router.get("/ready")
async def readiness():
    """Round-trips SELECT 1 through the session manager."""
    manager = database.db_manager
    if manager is None:
        logger.warning("Readiness probe before database initialisation")
        return _not_ready("database_not_initialized")

    started = time.perf_counter()
    if not await manager.health_check():
        return _not_ready("database_unavailable")
    latency_ms = round((time.perf_counter() - started) * 1000, 1)
    return {
        "status": "ready",
        "checks": {"database": "healthy"},
        "database_latency_ms": latency_ms,
    }


def _not_ready(reason: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "not_ready", "reason": reason},
    )
