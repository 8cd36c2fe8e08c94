"""
Message router: the single write path for every message.

Each operation validates before touching storage, persists, and only then
attempts a live push. A push that finds no channel is not an error; the
message is already stored and the recipient reads it on next fetch.
"""

from __future__ import annotations

import time

from api.middleware.exception_handlers import ValidationError
from api.services.record_store import RecordStore
from api.websocket.manager import ConnectionRegistry
from core.constants import ASSISTANT_USER_ID, MAX_MESSAGE_LENGTH
from core.intelligence import IntelligenceGateway
from models.error_models import ErrorCode
from models.records import Message, encode_message
from utils.logger import logger


def _validate_user_id(value: int, field: str) -> None:
    if isinstance(value, bool) or value <= ASSISTANT_USER_ID:
        raise ValidationError(f"{field} must be a positive user id", field=field)


def _validate_content(content: str) -> None:
    if not content or not content.strip():
        raise ValidationError(
            "Message content cannot be empty",
            field="content",
            code=ErrorCode.VALIDATION_MISSING_FIELD,
        )
    if len(content) > MAX_MESSAGE_LENGTH:
        raise ValidationError(
            f"Message content exceeds {MAX_MESSAGE_LENGTH} characters",
            field="content",
            code=ErrorCode.VALIDATION_INVALID_FORMAT,
        )


class MessageRouter:
    """Persist-then-push routing for direct and assistant messages."""

    def __init__(
        self,
        store: RecordStore,
        registry: ConnectionRegistry,
        gateway: IntelligenceGateway,
    ):
        self.store = store
        self.registry = registry
        self.gateway = gateway

    async def send_direct_message(self, from_id: int, to_id: int, content: str) -> Message:
        """Persist a user-to-user message and push it to the recipient if online.

        Raises:
            ValidationError: Empty content, self-addressed, or a non-user id
            StorageError: The message could not be persisted
        """
        _validate_user_id(from_id, "fromId")
        _validate_user_id(to_id, "toId")
        if from_id == to_id:
            raise ValidationError("Cannot send a message to yourself", field="toId")
        _validate_content(content)

        message = await self.store.create_message(from_id, to_id, content)
        delivered = await self.registry.deliver(to_id, encode_message(message))

        logger.info(
            f"Message {message.id} routed {from_id} -> {to_id}",
            message_id=message.id,
            from_id=from_id,
            to_id=to_id,
            delivered=delivered,
        )
        return message

    async def run_assistant_turn(self, user_id: int, user_text: str) -> tuple[Message, Message]:
        """Persist the user's turn, ask the assistant, persist its reply.

        The assistant reply is not pushed; both messages are returned to the
        caller in creation order.

        Raises:
            ValidationError: Empty text or a non-user id
            StorageError: Either turn could not be persisted
        """
        _validate_user_id(user_id, "userId")
        _validate_content(user_text)

        user_message = await self.store.create_message(user_id, ASSISTANT_USER_ID, user_text)
        history = await self.store.get_messages(user_id, ASSISTANT_USER_ID)

        started = time.perf_counter()
        reply = await self.gateway.generate_reply(history)
        duration_ms = (time.perf_counter() - started) * 1000

        assistant_message = await self.store.create_message(ASSISTANT_USER_ID, user_id, reply)

        logger.log_assistant_turn(
            user_id=user_id,
            user_input=user_text,
            response=reply,
            duration_ms=duration_ms,
            history_length=len(history),
            fallback=reply == self.gateway.fallback_reply,
        )
        return user_message, assistant_message

    async def get_conversation(self, a: int, b: int) -> list[Message]:
        """All messages between ``a`` and ``b`` ordered by (timestamp, id)."""
        messages = await self.store.get_messages(a, b)
        logger.debug(f"Loaded {len(messages)} messages between {a} and {b}")
        return messages
