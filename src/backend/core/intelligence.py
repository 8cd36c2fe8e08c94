"""
Intelligence gateway: business matching and assistant replies.

Both operations are bounded by a timeout and never raise to their callers.
A failed model call degrades to a safe default: the unranked candidate list
for matching, a fixed apology for replies.
"""

from __future__ import annotations

import asyncio

from collections.abc import Sequence

from pydantic import BaseModel, Field, ValidationError

from core.prompts import (
    FALLBACK_REPLY,
    MATCHING_INSTRUCTIONS,
    build_assistant_instructions,
    build_matching_request,
)
from integrations.llm_providers import ChatTurn, CompletionProvider
from models.records import Business, Message
from utils.json_utils import extract_json_object
from utils.logger import logger


class ProviderError(Exception):
    """Upstream model call or response parsing failed. Never leaves the gateway."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class MatchResult(BaseModel):
    """Structured output expected from the matcher."""

    matches: list[int]
    reasoning: str = Field(default="")


def history_to_turns(history: Sequence[Message]) -> list[ChatTurn]:
    """Map messages to role-tagged turns in chronological order.

    Consecutive turns with the same role are merged; some providers reject
    two user turns in a row.
    """
    turns: list[ChatTurn] = []
    for message in history:
        role = "assistant" if message.is_ai_assistant else "user"
        if turns and turns[-1]["role"] == role:
            turns[-1] = {"role": role, "content": f"{turns[-1]['content']}\n\n{message.content}"}
        else:
            turns.append({"role": role, "content": message.content})
    return turns


def rank_candidates(candidates: Sequence[Business], ordered_ids: Sequence[int]) -> list[Business]:
    """Keep candidates the model named, ordered by first mention."""
    positions: dict[int, int] = {}
    for index, business_id in enumerate(ordered_ids):
        positions.setdefault(business_id, index)

    kept = [business for business in candidates if business.id in positions]
    return sorted(kept, key=lambda business: positions[business.id])


class IntelligenceGateway:
    """Provider-agnostic facade over a large-language-model API."""

    def __init__(
        self,
        provider: CompletionProvider,
        timeout: float = 30.0,
        fallback_reply: str = FALLBACK_REPLY,
    ):
        self.provider = provider
        self.timeout = timeout
        self.fallback_reply = fallback_reply

    async def _complete(self, system: str, messages: list[ChatTurn], *, json_output: bool = False) -> str:
        try:
            return await asyncio.wait_for(
                self.provider.complete(system, messages, json_output=json_output),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise ProviderError(f"{self.provider.name} call timed out after {self.timeout}s", cause=e) from e
        except Exception as e:
            raise ProviderError(f"{self.provider.name} call failed: {type(e).__name__}: {e}", cause=e) from e

    async def match_businesses(self, query: str, candidates: Sequence[Business]) -> list[Business]:
        """Rank ``candidates`` for ``query``; on any failure return them unchanged."""
        if not candidates:
            return []

        request = build_matching_request(query, [business.projection() for business in candidates])
        try:
            raw = await self._complete(MATCHING_INSTRUCTIONS, [{"role": "user", "content": request}], json_output=True)
            try:
                result = MatchResult.model_validate(extract_json_object(raw))
            except (ValueError, ValidationError) as e:
                raise ProviderError(f"Malformed match output: {e}", cause=e) from e
        except ProviderError as e:
            logger.warning(
                f"Business matching degraded to unranked results: {e}",
                provider=self.provider.name,
                candidates=len(candidates),
            )
            return list(candidates)

        ranked = rank_candidates(candidates, result.matches)
        logger.debug(f"Match reasoning: {result.reasoning}", provider=self.provider.name)
        logger.info(
            f"Matched {len(ranked)} of {len(candidates)} businesses",
            provider=self.provider.name,
            matched=len(ranked),
            candidates=len(candidates),
        )
        return ranked

    async def generate_reply(self, history: Sequence[Message]) -> str:
        """Produce the assistant's next reply; on any failure return the apology."""
        turns = history_to_turns(history)
        first_turn = not any(message.is_ai_assistant for message in history)

        try:
            if not turns:
                raise ProviderError("Empty conversation history")
            reply = await self._complete(build_assistant_instructions(first_turn), turns)
            reply = reply.strip()
            if not reply:
                raise ProviderError("Blank reply from provider")
        except ProviderError as e:
            logger.error(f"Assistant reply degraded to fallback: {e}", provider=self.provider.name)
            return self.fallback_reply

        return reply
