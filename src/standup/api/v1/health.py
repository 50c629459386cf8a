"""Health check endpoints.

Provides liveness (/health) and readiness (/health/ready) checks.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from src.standup.config import get_settings
from src.standup.core.redis import get_redis_pool

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check. No external dependencies are checked."""
    settings = get_settings()
    return {"status": "ok", "environment": settings.ENVIRONMENT.value}


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness check: Redis connectivity and a started standup runtime.

    Returns 200 if all pass, 503 otherwise.
    """
    checks: dict = {"redis": "ok", "scheduler": "ok"}

    try:
        pong = await get_redis_pool().ping()
        if not pong:
            checks["redis"] = "error"
            checks["redis_error"] = "PING did not return PONG"
    except Exception as e:
        checks["redis"] = "error"
        checks["redis_error"] = str(e)

    runtime = getattr(request.app.state, "standup", None)
    if runtime is None:
        checks["scheduler"] = "error"
    else:
        checks["armed_jobs"] = len(runtime.scheduler.armed_rooms)
        checks["active_interviews"] = runtime.interviews.active_count

    all_healthy = checks["redis"] == "ok" and checks["scheduler"] == "ok"
    return JSONResponse(
        status_code=status.HTTP_200_OK if all_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if all_healthy else "degraded",
            "checks": checks,
        },
    )
