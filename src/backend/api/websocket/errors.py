"""
WebSocket error handling utilities for Prizm Connect.

Error frames go through the channel's outbound queue like any other push,
so reporting an error never blocks the receive loop.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from api.middleware.request_context import get_request_id
from models.error_models import ErrorCode, WebSocketError
from utils.logger import logger

if TYPE_CHECKING:
    from api.websocket.channel import LiveChannel


# WebSocket close codes (RFC 6455 + application-specific)
class WSCloseCode:
    """WebSocket close codes for error scenarios."""

    # Standard codes
    NORMAL = 1000
    GOING_AWAY = 1001
    POLICY_VIOLATION = 1008
    INTERNAL_ERROR = 1011

    # Application-specific codes (4000-4999)
    IDLE_TIMEOUT = 4000
    AUTH_REQUIRED = 4401
    AUTH_TIMEOUT = 4408
    SUPERSEDED = 4409


ERROR_CODE_TO_WS_CLOSE: dict[ErrorCode, int] = {
    ErrorCode.AUTH_REQUIRED: WSCloseCode.AUTH_REQUIRED,
    ErrorCode.AUTH_TIMEOUT: WSCloseCode.AUTH_TIMEOUT,
    ErrorCode.WS_SUPERSEDED: WSCloseCode.SUPERSEDED,
    ErrorCode.INTERNAL_ERROR: WSCloseCode.INTERNAL_ERROR,
}


def _is_recoverable(code: ErrorCode) -> bool:
    """Whether the client can keep using the connection after this error."""
    non_recoverable = {
        ErrorCode.AUTH_REQUIRED,
        ErrorCode.AUTH_TIMEOUT,
        ErrorCode.WS_SUPERSEDED,
        ErrorCode.INTERNAL_ERROR,
    }
    return code not in non_recoverable


def send_ws_error(
    channel: LiveChannel,
    code: ErrorCode,
    message: str,
    recoverable: bool | None = None,
    details: dict[str, Any] | None = None,
) -> bool:
    """Queue a standardized error frame on ``channel``.

    Returns:
        True if the frame was accepted by the channel
    """
    error = WebSocketError(
        code=code,
        message=message,
        request_id=get_request_id(),
        user_id=channel.user_id,
        recoverable=_is_recoverable(code) if recoverable is None else recoverable,
        details=details,
    )
    accepted = channel.offer(error.to_dict())
    if not accepted:
        logger.warning(f"Failed to queue WebSocket error {code.value} on channel {channel.channel_id}")
    return accepted


async def close_with_error(
    channel: LiveChannel,
    code: ErrorCode,
    message: str,
    drain_timeout: float = 1.0,
) -> None:
    """Send a non-recoverable error frame, then close with the mapped close code."""
    send_ws_error(channel, code=code, message=message, recoverable=False)

    ws_close_code = ERROR_CODE_TO_WS_CLOSE.get(code, WSCloseCode.INTERNAL_ERROR)
    reason = message.encode("utf-8")[:123].decode("utf-8", errors="ignore")
    await channel.close(code=ws_close_code, reason=reason, drain_timeout=drain_timeout)


__all__ = [
    "ERROR_CODE_TO_WS_CLOSE",
    "WSCloseCode",
    "close_with_error",
    "send_ws_error",
]
