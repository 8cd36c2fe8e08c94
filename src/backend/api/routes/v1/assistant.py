"""
Assistant endpoints (v1).

One call runs a full assistant turn: the user's message and the
assistant's reply are both persisted and returned in creation order.
"""

from __future__ import annotations

from fastapi import APIRouter

from api.dependencies import Router
from api.middleware.request_context import update_request_context
from models.records import Message
from models.schemas.requests import AssistantTurnRequest

router = APIRouter()


@router.post(
    "/assistant/messages",
    response_model=list[Message],
    status_code=201,
    summary="Talk to the assistant",
    description=(
        "Persist the user's turn and the assistant's reply. "
        "If the model is unavailable the reply is a fixed apology."
    ),
)
async def assistant_turn(body: AssistantTurnRequest, message_router: Router) -> list[Message]:
    update_request_context(user_id=body.user_id)
    user_message, assistant_message = await message_router.run_assistant_turn(body.user_id, body.content)
    return [user_message, assistant_message]
