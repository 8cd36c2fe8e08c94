"""
Model provider adapters.

Each adapter exposes the same single ``complete`` call so the intelligence
gateway never sees provider-specific request or response shapes. Which
adapter runs is decided once from settings by :func:`create_provider`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

from utils.client_factory import create_anthropic_client, create_http_client, create_openai_client

if TYPE_CHECKING:
    from anthropic import AsyncAnthropic
    from openai import AsyncOpenAI

    from core.constants import Settings

ChatTurn = dict[str, str]


class EmptyCompletionError(Exception):
    """The provider answered without any text content."""


class CompletionProvider(Protocol):
    """A model backend that turns a system prompt plus turns into text."""

    name: str

    async def complete(self, system: str, messages: list[ChatTurn], *, json_output: bool = False) -> str: ...


class OpenAIProvider:
    """Chat Completions backend (OpenAI or Azure OpenAI)."""

    name = "openai"

    def __init__(self, client: AsyncOpenAI, model: str, max_tokens: int = 1024):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens

    async def complete(self, system: str, messages: list[ChatTurn], *, json_output: bool = False) -> str:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "system", "content": system}, *messages],
            "max_tokens": self.max_tokens,
        }
        if json_output:
            kwargs["response_format"] = {"type": "json_object"}

        response = await self.client.chat.completions.create(**kwargs)
        if not response.choices:
            raise EmptyCompletionError("No choices in completion response")
        content = response.choices[0].message.content
        if not content:
            raise EmptyCompletionError("No text content in completion response")
        return content


class AnthropicProvider:
    """Anthropic Messages API backend."""

    name = "anthropic"

    def __init__(self, client: AsyncAnthropic, model: str, max_tokens: int = 1024):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens

    async def complete(self, system: str, messages: list[ChatTurn], *, json_output: bool = False) -> str:
        # The Messages API has no JSON mode; the system prompt asks for JSON and
        # the gateway tolerates prose around it.
        response = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system=system,
            messages=messages,  # type: ignore[arg-type]
        )
        for block in response.content:
            if getattr(block, "type", None) == "text" and block.text:
                return str(block.text)
        raise EmptyCompletionError("No text content in response")


def create_provider(settings: Settings) -> CompletionProvider:
    """Build the provider selected by ``settings.api_provider``."""
    if settings.api_provider == "anthropic":
        return AnthropicProvider(
            create_anthropic_client(settings.anthropic_api_key or "", read_timeout=settings.llm_timeout),
            model=settings.anthropic_model,
            max_tokens=settings.llm_max_tokens,
        )

    http_client = create_http_client(read_timeout=settings.llm_timeout)
    if settings.api_provider == "azure":
        client = create_openai_client(
            settings.azure_openai_api_key or "",
            base_url=settings.azure_endpoint_str,
            http_client=http_client,
        )
    else:
        client = create_openai_client(settings.openai_api_key or "", http_client=http_client)
    return OpenAIProvider(client, model=settings.openai_model, max_tokens=settings.llm_max_tokens)
