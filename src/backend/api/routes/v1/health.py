"""
Health check endpoints (v1).

Provides health, readiness, and liveness probes.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.dependencies import AppSettings, Registry, Store
from models.schemas.health import (
    HealthResponse,
    LivenessResponse,
    ReadinessResponse,
    StoreHealth,
    WebSocketHealth,
)
from utils.db_utils import check_pool_health

router = APIRouter()


async def _store_health(request: Request, store: Store, backend: str) -> StoreHealth:
    pool = getattr(request.app.state, "db_pool", None)
    if pool is not None:
        data: dict[str, Any] = await check_pool_health(pool)
        return StoreHealth(backend="postgres", **data)
    try:
        healthy = await store.ping()
    except Exception as e:
        return StoreHealth(backend=backend, healthy=False, error=str(e))
    return StoreHealth(backend=backend, healthy=healthy)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Health check with record store and connection registry status.",
    tags=["Health"],
)
async def health_check(request: Request, store: Store, registry: Registry, settings: AppSettings) -> HealthResponse:
    """Comprehensive health check endpoint."""
    store_health = await _store_health(request, store, settings.record_store)

    ws_stats = registry.get_stats()
    ws_health = WebSocketHealth(
        active_connections=ws_stats.get("total_connections", 0),
        shutting_down=ws_stats.get("shutting_down", False),
    )

    ws_healthy = not ws_health.shutting_down
    if store_health.healthy and ws_healthy:
        status = "healthy"
    elif store_health.healthy or ws_healthy:
        status = "degraded"
    else:
        status = "unhealthy"

    startup_time: datetime = request.app.state.startup_time
    return HealthResponse(
        status=status,
        version=settings.app_version,
        provider=settings.api_provider,
        uptime_seconds=(datetime.now(UTC) - startup_time).total_seconds(),
        startup_time=startup_time.isoformat(),
        store=store_health,
        websocket=ws_health,
    )


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    summary="Readiness probe",
    description="Kubernetes-style readiness probe for load balancer integration.",
    responses={
        503: {
            "description": "Service not ready",
            "content": {"application/json": {"example": {"ready": False, "error": "Storage unavailable"}}},
        },
    },
    tags=["Health"],
)
async def readiness_check(store: Store, registry: Registry) -> ReadinessResponse | JSONResponse:
    """Kubernetes-style readiness probe."""
    if registry.shutting_down:
        return JSONResponse(status_code=503, content={"ready": False, "error": "Shutting down"})
    try:
        await store.ping()
    except Exception as e:
        return JSONResponse(status_code=503, content={"ready": False, "error": str(e)})
    return ReadinessResponse(ready=True)


@router.get(
    "/health/live",
    response_model=LivenessResponse,
    summary="Liveness probe",
    description="Kubernetes-style liveness probe to confirm process is running.",
    tags=["Health"],
)
async def liveness_check() -> LivenessResponse:
    """Kubernetes-style liveness probe."""
    return LivenessResponse(alive=True)
