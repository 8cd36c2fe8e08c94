"""
Standardized error response models for Prizm Connect.

Provides consistent error formatting across REST and WebSocket endpoints
with support for request tracking and error categorization.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from core.constants import FRAME_ERROR


class ErrorCode(str, Enum):
    """Application-specific error codes for categorization."""

    # Authentication errors (1xxx)
    AUTH_REQUIRED = "AUTH_1001"
    AUTH_TIMEOUT = "AUTH_1002"

    # Validation errors (2xxx)
    VALIDATION_ERROR = "VAL_2001"
    VALIDATION_MISSING_FIELD = "VAL_2002"
    VALIDATION_INVALID_FORMAT = "VAL_2003"

    # Resource errors (3xxx)
    RESOURCE_NOT_FOUND = "RES_3001"
    RESOURCE_CONFLICT = "RES_3003"

    # WebSocket errors (6xxx)
    WS_MESSAGE_INVALID = "WS_6002"
    WS_SUPERSEDED = "WS_6006"

    # Storage errors (8xxx)
    STORAGE_ERROR = "DB_8001"
    STORAGE_CONNECTION_FAILED = "DB_8002"

    # Internal errors (9xxx)
    INTERNAL_ERROR = "INT_9001"
    INTERNAL_UNEXPECTED = "INT_9999"


class ErrorDetail(BaseModel):
    """Detailed information about a specific validation or sub-error."""

    field: str | None = None
    message: str
    code: str | None = None


class ErrorResponse(BaseModel):
    """Standardized error response model for REST endpoints.

    Example response:
    {
        "error": {
            "code": "VAL_2001",
            "message": "Message content must not be empty",
            "request_id": "req_abc123",
            "timestamp": "2025-01-15T10:30:00Z",
            "path": "/api/v1/messages"
        }
    }
    """

    code: ErrorCode
    message: str
    request_id: str | None = None
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    details: list[ErrorDetail] | None = None
    path: str | None = None
    debug: dict[str, Any] | None = Field(default=None, exclude=True)

    def to_dict(self, include_debug: bool = False) -> dict[str, Any]:
        data = self.model_dump(mode="json", exclude_none=True)
        if include_debug and self.debug:
            data["debug"] = self.debug
        return {"error": data}


class WebSocketError(BaseModel):
    """Error frame sent over a live channel.

    Example:
    {
        "type": "error",
        "code": "VAL_2001",
        "message": "Cannot send a message to yourself",
        "recoverable": true,
        "user_id": 7
    }
    """

    type: str = FRAME_ERROR
    code: ErrorCode
    message: str
    request_id: str | None = None
    user_id: int | None = None
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    recoverable: bool = True
    details: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


ERROR_CODE_TO_STATUS: dict[ErrorCode, int] = {
    ErrorCode.AUTH_REQUIRED: 401,
    ErrorCode.AUTH_TIMEOUT: 401,
    ErrorCode.RESOURCE_NOT_FOUND: 404,
    ErrorCode.RESOURCE_CONFLICT: 409,
    ErrorCode.VALIDATION_ERROR: 422,
    ErrorCode.VALIDATION_MISSING_FIELD: 422,
    ErrorCode.VALIDATION_INVALID_FORMAT: 422,
    ErrorCode.WS_MESSAGE_INVALID: 422,
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.INTERNAL_UNEXPECTED: 500,
    ErrorCode.STORAGE_ERROR: 500,
    ErrorCode.STORAGE_CONNECTION_FAILED: 500,
}


def get_status_code(error_code: ErrorCode) -> int:
    """Get HTTP status code for an error code."""
    return ERROR_CODE_TO_STATUS.get(error_code, 500)


__all__ = [
    "ERROR_CODE_TO_STATUS",
    "ErrorCode",
    "ErrorDetail",
    "ErrorResponse",
    "WebSocketError",
    "get_status_code",
]
