"""Tests for the model provider adapters."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from anthropic import AsyncAnthropic

from integrations.llm_providers import (
    AnthropicProvider,
    EmptyCompletionError,
    OpenAIProvider,
    create_provider,
)


def _openai_response(content: str | None) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class TestOpenAIProvider:
    @pytest.mark.asyncio
    async def test_prepends_system_prompt(self) -> None:
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=_openai_response("hello"))
        provider = OpenAIProvider(client, model="gpt-4o", max_tokens=256)

        result = await provider.complete("be brief", [{"role": "user", "content": "hi"}])

        assert result == "hello"
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["max_tokens"] == 256
        assert kwargs["messages"][0] == {"role": "system", "content": "be brief"}
        assert kwargs["messages"][1] == {"role": "user", "content": "hi"}
        assert "response_format" not in kwargs

    @pytest.mark.asyncio
    async def test_json_mode(self) -> None:
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=_openai_response('{"matches": []}'))
        provider = OpenAIProvider(client, model="gpt-4o")

        await provider.complete("match", [{"role": "user", "content": "{}"}], json_output=True)

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_empty_content_raises(self) -> None:
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=_openai_response(None))
        provider = OpenAIProvider(client, model="gpt-4o")

        with pytest.raises(EmptyCompletionError):
            await provider.complete("s", [])

    @pytest.mark.asyncio
    async def test_no_choices_raises(self) -> None:
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=SimpleNamespace(choices=[]))
        provider = OpenAIProvider(client, model="gpt-4o")

        with pytest.raises(EmptyCompletionError):
            await provider.complete("s", [])


class TestAnthropicProvider:
    @pytest.mark.asyncio
    async def test_returns_first_text_block(self) -> None:
        client = MagicMock()
        client.messages.create = AsyncMock(
            return_value=SimpleNamespace(
                content=[SimpleNamespace(type="thinking", text=None), SimpleNamespace(type="text", text="Sure.")]
            )
        )
        provider = AnthropicProvider(client, model="claude-3-5-sonnet-20241022", max_tokens=512)

        result = await provider.complete("be brief", [{"role": "user", "content": "hi"}])

        assert result == "Sure."
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["system"] == "be brief"
        assert kwargs["messages"] == [{"role": "user", "content": "hi"}]
        assert kwargs["max_tokens"] == 512

    @pytest.mark.asyncio
    async def test_no_text_raises(self) -> None:
        client = MagicMock()
        client.messages.create = AsyncMock(return_value=SimpleNamespace(content=[]))
        provider = AnthropicProvider(client, model="m")

        with pytest.raises(EmptyCompletionError):
            await provider.complete("s", [{"role": "user", "content": "hi"}])


class TestCreateProvider:
    @pytest.fixture(autouse=True)
    def _no_http_client(self):
        with patch("integrations.llm_providers.create_http_client", return_value=MagicMock()) as mock_http:
            yield mock_http

    def test_openai(self, mock_settings) -> None:
        with patch("integrations.llm_providers.create_openai_client") as mock_client:
            provider = create_provider(mock_settings)

        assert isinstance(provider, OpenAIProvider)
        assert provider.model == "gpt-4o"
        assert mock_client.call_args.args[0] == "test-openai-key"

    def test_azure(self, mock_settings) -> None:
        mock_settings.api_provider = "azure"
        mock_settings.azure_openai_api_key = "azure-key"
        mock_settings.azure_endpoint_str = "https://example.openai.azure.com/openai/v1/"

        with patch("integrations.llm_providers.create_openai_client") as mock_client:
            provider = create_provider(mock_settings)

        assert isinstance(provider, OpenAIProvider)
        assert mock_client.call_args.args[0] == "azure-key"
        assert mock_client.call_args.kwargs["base_url"] == "https://example.openai.azure.com/openai/v1/"

    def test_anthropic(self, mock_settings) -> None:
        mock_settings.api_provider = "anthropic"
        mock_settings.anthropic_api_key = "sk-ant-test"

        with patch("integrations.llm_providers.create_anthropic_client") as mock_client:
            provider = create_provider(mock_settings)

        assert isinstance(provider, AnthropicProvider)
        assert provider.model == "claude-3-5-sonnet-20241022"
        assert mock_client.call_args.args[0] == "sk-ant-test"
        assert mock_client.call_args.kwargs["read_timeout"] == 5.0

    def test_anthropic_builds_real_client(self, mock_settings, _no_http_client) -> None:
        mock_settings.api_provider = "anthropic"
        mock_settings.anthropic_api_key = "sk-ant-test"

        provider = create_provider(mock_settings)

        assert isinstance(provider, AnthropicProvider)
        assert isinstance(provider.client, AsyncAnthropic)
        assert provider.client.max_retries == 0
        _no_http_client.assert_not_called()

    def test_http_client_uses_model_timeout(self, mock_settings, _no_http_client) -> None:
        with patch("integrations.llm_providers.create_openai_client"):
            create_provider(mock_settings)

        _no_http_client.assert_called_once_with(read_timeout=5.0)
