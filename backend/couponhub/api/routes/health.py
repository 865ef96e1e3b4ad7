"""Health & Readiness Probes — liveness, readiness, and write-pipeline status.

Invariants:
    - GET /health/ always returns 200 if process is up (liveness)
    - GET /health/ready returns 503 if the database is unreachable; an unreachable
      cache only degrades (writes still succeed without it)
    - GET /health/pipeline reports orchestrator counters, breaker states, subscribers

Design Decisions:
    - Separate liveness/readiness: liveness restarts, readiness removes from load balancer
"""

import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    """Basic liveness probe. Returns 200 if the process is up."""
    return {
        "status": "healthy",
        "service": "couponhub-api",
        "version": "1.0.0",
    }


@router.get("/ready")
async def readiness_check(request: Request):
    """Readiness probe — database required, cache reported."""
    state = request.app.state
    db = getattr(state, "db", None)
    db_ok = await db.health_check() if db else False
    cache_ok = await state.cache.ping()
    checks = {
        "database": "healthy" if db_ok else "unavailable",
        "cache": "healthy" if cache_ok else "unavailable",
    }
    if not db_ok:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "reason": "database_unavailable",
                "checks": checks,
            },
        )
    return {"status": "ready" if cache_ok else "degraded", "checks": checks}


@router.get("/pipeline")
async def pipeline_status(request: Request):
    """Write-pipeline counters, circuit breakers, and subscriber stats."""
    state = request.app.state
    return {
        "status": "success",
        "data": {
            "orchestrator": state.orchestrator.status(),
            "subscribers": state.registry.stats(),
            "revalidationEnabled": state.revalidation.enabled,
        },
    }
