"""
Health check API schemas.

Response models for health, readiness, and liveness probes.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class StoreHealth(BaseModel):
    """Record store health."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "backend": "postgres",
                "healthy": True,
                "pool_size": 10,
                "pool_free": 8,
                "pool_used": 2,
            }
        }
    )

    backend: Literal["memory", "postgres"] = Field(..., description="Configured record store")
    healthy: bool = Field(..., description="Store is accessible")
    pool_size: int | None = Field(default=None, ge=0, description="Total pool size (postgres only)")
    pool_free: int | None = Field(default=None, ge=0, description="Available connections")
    pool_used: int | None = Field(default=None, ge=0, description="Active connections")
    error: str | None = Field(default=None, description="Error if unhealthy")


class WebSocketHealth(BaseModel):
    """Connection registry health."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "active_connections": 5,
                "shutting_down": False,
            }
        }
    )

    active_connections: int = Field(default=0, ge=0, description="Registered live channels")
    shutting_down: bool = Field(default=False, description="Shutdown in progress")


class HealthResponse(BaseModel):
    """Comprehensive health check response."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "healthy",
                "version": "1.0.0",
                "provider": "openai",
                "uptime_seconds": 3600.5,
                "startup_time": "2023-12-31T12:00:00Z",
                "store": {"backend": "memory", "healthy": True},
                "websocket": {"active_connections": 5, "shutting_down": False},
            }
        }
    )

    status: Literal["healthy", "degraded", "unhealthy"] = Field(..., description="Overall system health status")
    version: str = Field(..., description="Application version")
    provider: str = Field(..., description="Configured model provider")
    uptime_seconds: float = Field(..., description="Seconds since startup")
    startup_time: str = Field(..., description="Startup timestamp (ISO 8601)")
    store: StoreHealth = Field(..., description="Record store health")
    websocket: WebSocketHealth = Field(..., description="WebSocket health")


class ReadinessResponse(BaseModel):
    """Kubernetes-style readiness probe response."""

    ready: bool = Field(..., description="Service is ready to accept traffic")
    error: str | None = Field(default=None, description="Error message if not ready")


class LivenessResponse(BaseModel):
    """Kubernetes-style liveness probe response."""

    alive: bool = Field(default=True, description="Process is running")
