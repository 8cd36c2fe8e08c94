"""
Direct message endpoints (v1).

``POST /messages`` goes through the message router, which persists before
attempting a live push; ``GET /messages/{a}/{b}`` reads a conversation.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Path

from api.dependencies import Router
from api.middleware.request_context import update_request_context
from models.records import Message
from models.schemas.requests import DirectMessageRequest

router = APIRouter()

UserIdPath = Annotated[int, Path(..., ge=0, description="User id (0 is the assistant)")]


@router.post(
    "/messages",
    response_model=Message,
    status_code=201,
    summary="Send a direct message",
    description="Persist a message and push it to the recipient's live channel when one is open.",
)
async def send_message(body: DirectMessageRequest, message_router: Router) -> Message:
    """Send a direct message from one user to another."""
    update_request_context(user_id=body.from_id)
    return await message_router.send_direct_message(body.from_id, body.to_id, body.content)


@router.get(
    "/messages/{a}/{b}",
    response_model=list[Message],
    summary="Get a conversation",
    description="All messages exchanged between two users, oldest first.",
)
async def get_conversation(a: UserIdPath, b: UserIdPath, message_router: Router) -> list[Message]:
    """Read the conversation between ``a`` and ``b``."""
    return await message_router.get_conversation(a, b)
