"""WebSocket utilities for Prizm Connect.

Provides the live channel, the connection registry and error utilities.
"""

from __future__ import annotations

from api.websocket.channel import LiveChannel
from api.websocket.errors import (
    WSCloseCode,
    close_with_error,
    send_ws_error,
)
from api.websocket.manager import ConnectionRegistry

__all__ = [
    # Connection management
    "ConnectionRegistry",
    "LiveChannel",
    # Error handling
    "WSCloseCode",
    "close_with_error",
    "send_ws_error",
]
