"""Health and readiness endpoints.

  /health (liveness):
    "Is this process alive?"  Always 200 while the process can answer;
    the body reports each dependency so dashboards can show a degraded
    instance without the orchestrator restarting it.

  /ready (readiness):
    "Can this instance take traffic?"  503 when the database is
    configured but unreachable: purchases and progress cannot be read or
    written without it.  Redis only backs webhook deduplication, so a
    Redis outage degrades /health but does not fail readiness.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, Response, status

from app.core.config import SETTINGS
from app.db.engine import engine, ping_database
from app.db.redis import ping_redis, redis_pool

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict:
    checks: dict[str, str] = {}
    overall = "ok"

    if engine is not None:
        if await ping_database():
            checks["database"] = "ok"
        else:
            checks["database"] = "degraded"
            overall = "degraded"
    else:
        checks["database"] = "not_configured"

    if redis_pool is not None:
        if await ping_redis():
            checks["redis"] = "ok"
        else:
            checks["redis"] = "degraded"
            overall = "degraded"
    else:
        checks["redis"] = "not_configured"

    # Configuration only: probing the gateway from every health check
    # would spend its rate limit.
    if getattr(request.app.state, "payment_gateway", None) is not None:
        checks["payment_gateway"] = "configured"
    else:
        checks["payment_gateway"] = "not_configured"

    return {"status": overall, "env": SETTINGS.app_env, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    if engine is not None and not await ping_database():
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)
