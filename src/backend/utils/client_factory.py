"""
Model provider client factory utilities.
Centralizes AsyncOpenAI / AsyncAnthropic client creation with consistent timeouts.
"""

from __future__ import annotations

from typing import Any

import httpx

from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_READ_TIMEOUT = 60.0
DEFAULT_WRITE_TIMEOUT = 10.0
DEFAULT_POOL_TIMEOUT = 10.0


def create_http_client(read_timeout: float | None = None) -> httpx.AsyncClient:
    """Create an HTTP client shared by the provider SDK.

    The gateway enforces its own per-call bound; these timeouts only keep a
    dead connection from lingering after the gateway has given up on it.
    """
    timeout = httpx.Timeout(
        connect=DEFAULT_CONNECT_TIMEOUT,
        read=read_timeout if read_timeout is not None else DEFAULT_READ_TIMEOUT,
        write=DEFAULT_WRITE_TIMEOUT,
        pool=DEFAULT_POOL_TIMEOUT,
    )
    return httpx.AsyncClient(timeout=timeout)


def create_openai_client(
    api_key: str,
    base_url: str | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> AsyncOpenAI:
    """Create AsyncOpenAI client (OpenAI or Azure OpenAI via ``base_url``).

    Retries are disabled: a failed call degrades immediately instead of
    stretching the caller's request.
    """
    kwargs: dict[str, Any] = {"api_key": api_key, "http_client": http_client, "max_retries": 0}
    if base_url:
        kwargs["base_url"] = base_url
    return AsyncOpenAI(**kwargs)


def create_anthropic_client(api_key: str, read_timeout: float | None = None) -> AsyncAnthropic:
    """Create AsyncAnthropic client with retries disabled.

    The SDK builds its own transport, so only the overall timeout is passed.
    """
    timeout = read_timeout if read_timeout is not None else DEFAULT_READ_TIMEOUT
    return AsyncAnthropic(api_key=api_key, timeout=timeout, max_retries=0)
