"""Health Probes — process liveness and database readiness for the orchestrator.

Invariants:
    - Liveness never touches the database
    - Readiness answers 503 until the lifespan has built db_manager and SELECT 1 succeeds
    - Service name and version come from the FastAPI app, so they cannot drift
"""

import logging
import time

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

import cosnap.infrastructure.database as database

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])


def _identity(request: Request) -> dict:
    return {"service": request.app.title, "version": request.app.version}


@router.get("/", status_code=status.HTTP_200_OK)
async def liveness(request: Request):
    return {"status": "healthy", **_identity(request)}


@router.get("/ready")
async def readiness(request: Request):
    """503 while the database is unreachable, so traffic is held back."""
    manager = database.db_manager
    started = time.perf_counter()
    reachable = manager is not None and await manager.health_check()
    elapsed_ms = round((time.perf_counter() - started) * 1000, 1)

    if not reachable:
        logger.warning(
            "Not ready: database unreachable",
            extra={"path": request.url.path},
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "checks": {"database": "unavailable"},
                **_identity(request),
            },
        )
    return {
        "status": "ready",
        "checks": {"database": "healthy"},
        "latency_ms": {"database": elapsed_ms},
        **_identity(request),
    }
