"""
Global exception handlers for Prizm Connect.

Provides the application exception hierarchy and centralized error handling
with consistent response formatting, logging, and request context integration.
"""

from __future__ import annotations

import traceback

from typing import Any

import asyncpg

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from api.middleware.request_context import get_request_context, get_request_id
from core.constants import get_settings
from models.error_models import (
    ErrorCode,
    ErrorDetail,
    ErrorResponse,
    get_status_code,
)
from utils.logger import logger


class AppException(Exception):
    """Base application exception with error code support.

    Example:
        raise AppException(
            code=ErrorCode.RESOURCE_NOT_FOUND,
            message="User not found",
            details={"user_id": 42}
        )
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        self.code = code
        self.message = message
        self.details = details
        self.cause = cause
        super().__init__(message)


class ValidationError(AppException):
    """Malformed or missing fields in a request. Raised before any side effect."""

    def __init__(
        self,
        message: str = "Validation error",
        field: str | None = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ):
        super().__init__(
            code=code,
            message=message,
            details={"errors": [ErrorDetail(field=field, message=message).model_dump()]} if field else None,
        )
        self.field = field


class StorageError(AppException):
    """The record store failed to persist or read."""

    def __init__(
        self,
        message: str = "Storage operation failed",
        code: ErrorCode = ErrorCode.STORAGE_ERROR,
        cause: Exception | None = None,
    ):
        super().__init__(code=code, message=message, cause=cause)


class ResourceNotFoundError(AppException):
    """Resource not found errors."""

    def __init__(self, resource: str, resource_id: int | str | None = None):
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} '{resource_id}' not found"
        super().__init__(
            code=ErrorCode.RESOURCE_NOT_FOUND,
            message=message,
            details={"resource": resource, "id": resource_id},
        )


def _create_error_response(
    code: ErrorCode,
    message: str,
    request: Request | None = None,
    details: list[ErrorDetail] | None = None,
    debug_info: dict[str, Any] | None = None,
) -> ErrorResponse:
    return ErrorResponse(
        code=code,
        message=message,
        request_id=get_request_id(),
        path=request.url.path if request else None,
        details=details,
        debug=debug_info,
    )


def _log_error(error: Exception, code: ErrorCode, status_code: int) -> None:
    """Log error with appropriate level and context."""
    ctx = get_request_context()
    log_context = ctx.to_log_context() if ctx else {}
    log_context["error_code"] = code.value
    log_context["status_code"] = status_code

    if status_code >= 500:
        logger.error(f"Server error: {code.value} - {error}", exc_info=True, **log_context)
    elif status_code >= 400:
        logger.warning(f"Client error: {code.value} - {error}", **log_context)


def _validation_details(errors: list[Any]) -> list[ErrorDetail]:
    return [
        ErrorDetail(
            field=".".join(str(loc) for loc in error["loc"]),
            message=error["msg"],
            code=error["type"],
        )
        for error in errors
    ]


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle application-specific exceptions."""
    status_code = get_status_code(exc.code)

    settings = get_settings()
    debug_info = None
    if settings.debug:
        debug_info = {
            "exception_type": type(exc).__name__,
            "cause": str(exc.cause) if exc.cause else None,
        }

    details = None
    if exc.details:
        if "errors" in exc.details:
            details = [ErrorDetail(**e) for e in exc.details["errors"]]
        else:
            details = [ErrorDetail(message=str(v), field=k) for k, v in exc.details.items()]

    error_response = _create_error_response(
        code=exc.code,
        message=exc.message,
        request=request,
        details=details,
        debug_info=debug_info,
    )
    _log_error(exc, exc.code, status_code)

    return JSONResponse(
        status_code=status_code,
        content=error_response.to_dict(include_debug=settings.debug),
    )


#: Error codes for HTTPExceptions raised by FastAPI itself (404 routes, 405 methods)
_HTTP_STATUS_TO_CODE: dict[int, ErrorCode] = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.AUTH_REQUIRED,
    404: ErrorCode.RESOURCE_NOT_FOUND,
    409: ErrorCode.RESOURCE_CONFLICT,
    422: ErrorCode.VALIDATION_ERROR,
}


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Wrap framework HTTPExceptions in the standard error envelope."""
    code = _HTTP_STATUS_TO_CODE.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    _log_error(exc, code, exc.status_code)
    error_response = _create_error_response(code=code, message=message, request=request)
    return JSONResponse(status_code=exc.status_code, content=error_response.to_dict())


def _validation_response(
    request: Request,
    exc: RequestValidationError | PydanticValidationError,
    message: str,
) -> JSONResponse:
    _log_error(exc, ErrorCode.VALIDATION_ERROR, 422)
    error_response = _create_error_response(
        code=ErrorCode.VALIDATION_ERROR,
        message=message,
        request=request,
        details=_validation_details(list(exc.errors())),
    )
    return JSONResponse(status_code=422, content=error_response.to_dict())


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies, paths and queries."""
    return _validation_response(request, exc, "Request validation failed")


async def pydantic_exception_handler(request: Request, exc: PydanticValidationError) -> JSONResponse:
    """Model construction failures inside a handler."""
    return _validation_response(request, exc, "Data validation failed")


async def asyncpg_exception_handler(request: Request, exc: asyncpg.PostgresError) -> JSONResponse:
    """A driver error that escaped the record store is still a storage failure."""
    storage_error = StorageError(
        f"Storage operation failed ({getattr(exc, 'sqlstate', None) or type(exc).__name__})",
        cause=exc,
    )
    return await app_exception_handler(request, storage_error)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    settings = get_settings()

    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {exc}",
        exc_info=True,
        path=request.url.path,
    )

    debug_info = None
    if settings.debug:
        debug_info = {
            "exception_type": type(exc).__name__,
            "exception_message": str(exc),
            "traceback": traceback.format_exc(),
        }

    error_response = _create_error_response(
        code=ErrorCode.INTERNAL_UNEXPECTED,
        message="An unexpected error occurred",
        request=request,
        debug_info=debug_info,
    )

    return JSONResponse(
        status_code=500,
        content=error_response.to_dict(include_debug=settings.debug),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application."""
    # Starlette's signature expects Exception; narrower handlers are fine at runtime
    app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(PydanticValidationError, pydantic_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(asyncpg.PostgresError, asyncpg_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)


__all__ = [
    "AppException",
    "ResourceNotFoundError",
    "StorageError",
    "ValidationError",
    "app_exception_handler",
    "asyncpg_exception_handler",
    "generic_exception_handler",
    "http_exception_handler",
    "pydantic_exception_handler",
    "register_exception_handlers",
    "validation_exception_handler",
]
