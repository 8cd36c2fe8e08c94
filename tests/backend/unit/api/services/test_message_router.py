"""Tests for MessageRouter."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from api.middleware.exception_handlers import StorageError, ValidationError
from api.services.message_router import MessageRouter
from api.services.record_store import InMemoryRecordStore
from api.websocket.manager import ConnectionRegistry
from core.constants import ASSISTANT_USER_ID, MAX_MESSAGE_LENGTH
from core.intelligence import IntelligenceGateway
from core.prompts import FALLBACK_REPLY
from models.error_models import ErrorCode


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def registry() -> MagicMock:
    registry = MagicMock(spec=ConnectionRegistry)
    registry.deliver = AsyncMock(return_value=False)
    return registry


def _router(store: Any, registry: Any, provider: Any) -> MessageRouter:
    return MessageRouter(store, registry, IntelligenceGateway(provider, timeout=1.0))


class TestSendDirectMessage:
    @pytest.mark.asyncio
    async def test_persists_then_pushes(self, store, registry, make_provider) -> None:
        registry.deliver.return_value = True
        router = _router(store, registry, make_provider())

        message = await router.send_direct_message(4, 7, "Is the AC fixable today?")

        assert message.from_id == 4
        assert message.to_id == 7
        assert message.is_ai_assistant is False
        assert await store.get_messages(4, 7) == [message]
        registry.deliver.assert_awaited_once()
        to_id, frame = registry.deliver.await_args.args
        assert to_id == 7
        assert frame["id"] == message.id
        assert frame["fromId"] == 4
        assert frame["isAiAssistant"] is False

    @pytest.mark.asyncio
    async def test_offline_recipient_still_persisted(self, store, registry, make_provider) -> None:
        router = _router(store, registry, make_provider())

        message = await router.send_direct_message(4, 7, "hello")

        assert await store.get_messages(7, 4) == [message]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", ["", "   ", "\n\t"])
    async def test_blank_content_rejected(self, store, registry, make_provider, content) -> None:
        router = _router(store, registry, make_provider())

        with pytest.raises(ValidationError) as exc_info:
            await router.send_direct_message(4, 7, content)

        assert exc_info.value.field == "content"
        assert await store.get_messages(4, 7) == []
        registry.deliver.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_oversized_content_rejected(self, store, registry, make_provider) -> None:
        router = _router(store, registry, make_provider())

        with pytest.raises(ValidationError) as exc_info:
            await router.send_direct_message(4, 7, "x" * (MAX_MESSAGE_LENGTH + 1))

        assert exc_info.value.code == ErrorCode.VALIDATION_INVALID_FORMAT

    @pytest.mark.asyncio
    async def test_self_message_rejected(self, store, registry, make_provider) -> None:
        router = _router(store, registry, make_provider())

        with pytest.raises(ValidationError, match="yourself"):
            await router.send_direct_message(4, 4, "hi me")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("from_id", "to_id"), [(ASSISTANT_USER_ID, 7), (4, ASSISTANT_USER_ID), (-1, 7), (True, 7)])
    async def test_reserved_or_invalid_ids_rejected(self, store, registry, make_provider, from_id, to_id) -> None:
        router = _router(store, registry, make_provider())

        with pytest.raises(ValidationError):
            await router.send_direct_message(from_id, to_id, "hello")

        registry.deliver.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_storage_failure_skips_push(self, registry, make_provider) -> None:
        store = MagicMock()
        store.create_message = AsyncMock(side_effect=StorageError("down"))
        router = _router(store, registry, make_provider())

        with pytest.raises(StorageError):
            await router.send_direct_message(4, 7, "hello")

        registry.deliver.assert_not_awaited()


class TestAssistantTurn:
    @pytest.mark.asyncio
    async def test_persists_both_turns_in_order(self, store, registry, make_provider) -> None:
        provider = make_provider(responses=["Happy to help. What kind of AC do you have?"])
        router = _router(store, registry, provider)

        user_message, reply = await router.run_assistant_turn(9, "My AC is broken")

        assert user_message.to_id == ASSISTANT_USER_ID
        assert user_message.is_ai_assistant is False
        assert reply.from_id == ASSISTANT_USER_ID
        assert reply.to_id == 9
        assert reply.is_ai_assistant is True
        assert reply.content == "Happy to help. What kind of AC do you have?"
        assert user_message.sort_key < reply.sort_key
        assert await store.get_messages(9, ASSISTANT_USER_ID) == [user_message, reply]
        registry.deliver.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_history_includes_new_user_turn(self, store, registry, make_provider) -> None:
        provider = make_provider(responses=["first", "second"])
        router = _router(store, registry, provider)

        await router.run_assistant_turn(9, "one")
        await router.run_assistant_turn(9, "two")

        turns = provider.calls[1]["messages"]
        assert [t["content"] for t in turns] == ["one", "first", "two"]
        assert [t["role"] for t in turns] == ["user", "assistant", "user"]

    @pytest.mark.asyncio
    async def test_provider_failure_persists_fallback(self, store, registry, make_provider) -> None:
        router = _router(store, registry, make_provider(error=RuntimeError("quota")))

        with patch("api.services.message_router.logger") as mock_logger:
            _, reply = await router.run_assistant_turn(9, "hello")

        assert reply.content == FALLBACK_REPLY
        assert reply.is_ai_assistant is True
        assert mock_logger.log_assistant_turn.call_args.kwargs["fallback"] is True

    @pytest.mark.asyncio
    async def test_blank_text_rejected_without_model_call(self, store, registry, make_provider) -> None:
        provider = make_provider(responses=["unused"])
        router = _router(store, registry, provider)

        with pytest.raises(ValidationError):
            await router.run_assistant_turn(9, "  ")

        assert provider.calls == []
        assert await store.get_messages(9, ASSISTANT_USER_ID) == []

    @pytest.mark.asyncio
    async def test_storage_failure_skips_model_call(self, registry, make_provider) -> None:
        store = MagicMock()
        store.create_message = AsyncMock(side_effect=StorageError("down"))
        provider = make_provider(responses=["unused"])
        router = _router(store, registry, provider)

        with pytest.raises(StorageError):
            await router.run_assistant_turn(9, "hello")

        assert provider.calls == []
        registry.deliver.assert_not_awaited()


@pytest.mark.asyncio
async def test_get_conversation_is_symmetric(store, registry, make_provider) -> None:
    router = _router(store, registry, make_provider())
    await router.send_direct_message(1, 2, "a")
    await router.send_direct_message(2, 1, "b")

    assert await router.get_conversation(1, 2) == await router.get_conversation(2, 1)
    assert [m.content for m in await router.get_conversation(1, 2)] == ["a", "b"]
