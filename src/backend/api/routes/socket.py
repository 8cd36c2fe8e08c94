from __future__ import annotations

import asyncio
import contextlib
import json

from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from api.middleware.exception_handlers import StorageError, ValidationError
from api.middleware.request_context import create_websocket_context, update_request_context
from api.services.message_router import MessageRouter
from api.websocket.channel import LiveChannel
from api.websocket.errors import WSCloseCode, close_with_error, send_ws_error
from api.websocket.manager import ConnectionRegistry
from core.constants import (
    FRAME_AUTH,
    FRAME_CONNECTED,
    FRAME_MESSAGE,
    FRAME_MESSAGE_SENT,
    FRAME_PING,
    FRAME_PONG,
    get_settings,
)
from models.error_models import ErrorCode
from models.records import AuthFrame, SendFrame, encode_message
from utils.logger import logger

router = APIRouter()


async def _receive_text(websocket: WebSocket) -> str | None:
    """Next text frame from the client; binary frames come back as None.

    Raises:
        WebSocketDisconnect: The client went away
    """
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
    return message.get("text")


def _parse_frame(raw: str | None) -> dict[str, Any] | None:
    """Decode a text frame; anything but a JSON object is None."""
    if raw is None:
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


async def _await_auth(websocket: WebSocket) -> int:
    """Read frames until a valid auth frame arrives; everything before it is dropped."""
    while True:
        frame = _parse_frame(await _receive_text(websocket))
        if frame is None or frame.get("type") != FRAME_AUTH:
            continue
        try:
            return AuthFrame.model_validate(frame).user_id
        except PydanticValidationError:
            logger.debug("Dropping invalid auth frame")


@router.websocket("/ws")
async def socket_endpoint(websocket: WebSocket) -> None:
    """Live channel endpoint.

    The first valid ``{"type": "auth", "userId": n}`` frame binds the socket
    to user ``n``. After that the client may send direct messages and pings,
    and receives pushes for messages addressed to it.
    """
    settings = get_settings()
    registry: ConnectionRegistry = websocket.app.state.registry
    message_router = MessageRouter(
        websocket.app.state.store,
        registry,
        websocket.app.state.gateway,
    )

    client_ip = websocket.client.host if websocket.client else None
    create_websocket_context(client_ip=client_ip)

    await websocket.accept()
    channel = LiveChannel(websocket, queue_size=settings.ws_outbound_queue_size)
    channel.start()

    user_id: int | None = None
    heartbeat_task: asyncio.Task[None] | None = None
    try:
        try:
            user_id = await asyncio.wait_for(_await_auth(websocket), timeout=settings.ws_auth_timeout)
        except asyncio.TimeoutError:
            logger.info(f"Closing unauthenticated socket from {client_ip} after {settings.ws_auth_timeout}s")
            await close_with_error(channel, ErrorCode.AUTH_TIMEOUT, "Authentication timed out")
            return

        update_request_context(user_id=user_id)
        if not await registry.register(user_id, channel):
            await channel.close(code=WSCloseCode.GOING_AWAY, reason="Server shutting down")
            return
        channel.offer({"type": FRAME_CONNECTED, "userId": user_id})

        heartbeat_task = asyncio.create_task(_heartbeat(channel, settings.ws_heartbeat_interval))

        while True:
            raw = await _receive_text(websocket)
            channel.touch()
            frame = _parse_frame(raw)
            if frame is None:
                send_ws_error(channel, ErrorCode.WS_MESSAGE_INVALID, "Frame must be a JSON object")
                continue

            msg_type = frame.get("type")
            if msg_type == FRAME_MESSAGE:
                await _handle_send(frame, user_id, channel, message_router)
            elif msg_type == FRAME_PING:
                channel.offer({"type": FRAME_PONG})
            elif msg_type != FRAME_PONG:
                logger.debug(f"Ignoring frame of type {msg_type!r}", user_id=user_id)

    except WebSocketDisconnect:
        pass  # Normal client disconnect
    except RuntimeError as e:
        # Handle "WebSocket is not connected" errors gracefully
        if "not connected" not in str(e).lower():
            raise
    finally:
        if heartbeat_task is not None:
            heartbeat_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await heartbeat_task
        if user_id is not None:
            await registry.unregister(user_id, channel)
        await channel.close()


async def _handle_send(
    frame: dict[str, Any],
    user_id: int,
    channel: LiveChannel,
    message_router: MessageRouter,
) -> None:
    """Route one ``message`` frame from the authenticated user."""
    try:
        send = SendFrame.model_validate(frame)
    except PydanticValidationError as e:
        send_ws_error(
            channel,
            ErrorCode.WS_MESSAGE_INVALID,
            "Invalid message frame",
            details={"errors": [f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in e.errors()]},
        )
        return

    try:
        message = await message_router.send_direct_message(user_id, send.to_id, send.content)
    except ValidationError as e:
        send_ws_error(channel, e.code, e.message, details={"field": e.field} if e.field else None)
        return
    except StorageError as e:
        send_ws_error(channel, e.code, "Message could not be saved")
        return

    channel.offer({"type": FRAME_MESSAGE_SENT, "message": encode_message(message)})


async def _heartbeat(channel: LiveChannel, interval: float) -> None:
    """Send periodic ping frames."""
    while not channel.closed:
        await asyncio.sleep(interval)
        channel.offer({"type": FRAME_PING})
