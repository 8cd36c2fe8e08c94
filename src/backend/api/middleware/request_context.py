"""
Request context middleware for Prizm Connect.

Provides request ID tracking, timing, and context propagation
for both REST and WebSocket endpoints.
"""

from __future__ import annotations

import secrets
import time

from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

_request_context: ContextVar[RequestContext | None] = ContextVar("request_context", default=None)

REQUEST_ID_PREFIX = "req_"
WEBSOCKET_ID_PREFIX = "ws_"


@dataclass
class RequestContext:
    """Request-scoped metadata available anywhere in the call stack."""

    request_id: str
    start_time: float = field(default_factory=time.monotonic)
    path: str = ""
    method: str = ""
    client_ip: str | None = None
    user_id: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.start_time) * 1000

    def to_log_context(self) -> dict[str, Any]:
        """Get context dict for logging."""
        ctx: dict[str, Any] = {
            "request_id": self.request_id,
            "path": self.path,
            "method": self.method,
            "elapsed_ms": round(self.elapsed_ms, 2),
        }
        if self.client_ip:
            ctx["client_ip"] = self.client_ip
        if self.user_id is not None:
            ctx["user_id"] = self.user_id
        return ctx


def generate_request_id(prefix: str = REQUEST_ID_PREFIX) -> str:
    """Generate a unique request ID, e.g. ``req_a1b2c3d4e5f6a7b8``."""
    return f"{prefix}{secrets.token_hex(8)}"


def get_request_context() -> RequestContext | None:
    return _request_context.get()


def get_request_id() -> str | None:
    ctx = get_request_context()
    return ctx.request_id if ctx else None


def set_request_context(context: RequestContext) -> None:
    _request_context.set(context)


def clear_request_context() -> None:
    _request_context.set(None)


def update_request_context(**kwargs: Any) -> None:
    """Update fields in the current request context.

    Common usage:
        update_request_context(user_id=42)
    """
    ctx = get_request_context()
    if ctx:
        for key, value in kwargs.items():
            if hasattr(ctx, key):
                setattr(ctx, key, value)
            else:
                ctx.extra[key] = value


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Initialize request context for each request and echo the request ID."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_request_id()

        client_ip = request.headers.get("X-Forwarded-For")
        if client_ip:
            client_ip = client_ip.split(",")[0].strip()
        elif request.client:
            client_ip = request.client.host

        context = RequestContext(
            request_id=request_id,
            path=request.url.path,
            method=request.method,
            client_ip=client_ip,
        )
        set_request_context(context)

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{context.elapsed_ms:.2f}ms"
            return response
        finally:
            clear_request_context()


def create_websocket_context(client_ip: str | None = None) -> RequestContext:
    """Create a per-connection context for a WebSocket.

    The user id is filled in once the auth frame has been accepted.
    """
    context = RequestContext(
        request_id=generate_request_id(WEBSOCKET_ID_PREFIX),
        path="/ws",
        method="WEBSOCKET",
        client_ip=client_ip,
    )
    set_request_context(context)
    return context


__all__ = [
    "REQUEST_ID_PREFIX",
    "WEBSOCKET_ID_PREFIX",
    "RequestContext",
    "RequestContextMiddleware",
    "clear_request_context",
    "create_websocket_context",
    "generate_request_id",
    "get_request_context",
    "get_request_id",
    "set_request_context",
    "update_request_context",
]
