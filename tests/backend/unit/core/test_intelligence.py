"""Tests for the intelligence gateway.

The gateway never raises: matching degrades to the unranked candidates and
replies degrade to the fixed apology.
"""

from __future__ import annotations

import asyncio

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import pytest

from core.intelligence import IntelligenceGateway, history_to_turns, rank_candidates
from core.prompts import FALLBACK_REPLY, FIRST_TURN_OPENING, MATCHING_INSTRUCTIONS
from models.records import Business, Message

NOW = datetime(2025, 1, 15, 10, 30, tzinfo=UTC)


def _business(business_id: int, services: list[str], category: str = "General") -> Business:
    return Business(
        id=business_id,
        user_id=business_id,
        description=f"Business {business_id}",
        category=category,
        location="New York, NY",
        services=services,
    )


def _message(message_id: int, from_id: int, to_id: int, content: str) -> Message:
    return Message(
        id=message_id,
        from_id=from_id,
        to_id=to_id,
        content=content,
        timestamp=NOW,
        is_ai_assistant=from_id == 0,
    )


@pytest.fixture
def candidates() -> list[Business]:
    return [
        _business(1, ["Web Development"], "Technology"),
        _business(2, ["HVAC", "Plumbing"], "Home Services"),
        _business(3, ["Primary Care"], "Healthcare"),
    ]


class TestMatchBusinesses:
    """Tests for MatchBusinesses."""

    @pytest.mark.asyncio
    async def test_ac_repair_ranks_hvac_business_only(self, make_provider: Callable[..., Any]) -> None:
        hvac = _business(10, ["HVAC", "Plumbing"], "Home Services")
        web = _business(11, ["Web Development"], "Technology")
        provider = make_provider(responses=['{"matches": [10], "reasoning": "AC repair is an HVAC service"}'])
        gateway = IntelligenceGateway(provider)

        ranked = await gateway.match_businesses("need AC repair", [hvac, web])

        assert len([hvac, web]) == 2
        assert len(ranked) == 1
        assert ranked[0] == hvac

    @pytest.mark.asyncio
    async def test_request_carries_query_and_projection(
        self,
        make_provider: Callable[..., Any],
        candidates: list[Business],
    ) -> None:
        provider = make_provider(responses=['{"matches": [], "reasoning": ""}'])
        gateway = IntelligenceGateway(provider)

        await gateway.match_businesses("need AC repair", candidates)

        call = provider.calls[0]
        assert call["system"] == MATCHING_INSTRUCTIONS
        assert call["json_output"] is True
        request = call["messages"][0]["content"]
        assert "need AC repair" in request
        assert '"services":["HVAC","Plumbing"]' in request
        assert "user_id" not in request

    @pytest.mark.asyncio
    async def test_order_follows_model(self, make_provider: Callable[..., Any], candidates: list[Business]) -> None:
        provider = make_provider(responses=['{"matches": [3, 1, 3], "reasoning": "x"}'])
        gateway = IntelligenceGateway(provider)

        ranked = await gateway.match_businesses("anything", candidates)

        assert [b.id for b in ranked] == [3, 1]

    @pytest.mark.asyncio
    async def test_unknown_ids_are_ignored(self, make_provider: Callable[..., Any], candidates: list[Business]) -> None:
        provider = make_provider(responses=['{"matches": [99, 2], "reasoning": "x"}'])
        gateway = IntelligenceGateway(provider)

        ranked = await gateway.match_businesses("heating", candidates)

        assert [b.id for b in ranked] == [2]

    @pytest.mark.asyncio
    async def test_empty_match_list_returns_empty(
        self,
        make_provider: Callable[..., Any],
        candidates: list[Business],
    ) -> None:
        provider = make_provider(responses=['{"matches": [], "reasoning": "nothing fits"}'])
        gateway = IntelligenceGateway(provider)

        assert await gateway.match_businesses("dog grooming", candidates) == []

    @pytest.mark.asyncio
    async def test_json_wrapped_in_prose(self, make_provider: Callable[..., Any], candidates: list[Business]) -> None:
        provider = make_provider(
            responses=['Here you go:\n```json\n{"matches": [2], "reasoning": "HVAC"}\n```\nHope that helps.']
        )
        gateway = IntelligenceGateway(provider)

        ranked = await gateway.match_businesses("home cooling", candidates)

        assert [b.id for b in ranked] == [2]

    @pytest.mark.asyncio
    async def test_no_candidates_skips_model(self, make_provider: Callable[..., Any]) -> None:
        provider = make_provider()
        gateway = IntelligenceGateway(provider)

        assert await gateway.match_businesses("anything", []) == []
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_provider_error_returns_candidates_unchanged(
        self,
        make_provider: Callable[..., Any],
        candidates: list[Business],
    ) -> None:
        gateway = IntelligenceGateway(make_provider(error=RuntimeError("upstream down")))

        result = await gateway.match_businesses("need AC repair", candidates)

        assert result == candidates
        assert result is not candidates

    @pytest.mark.asyncio
    async def test_timeout_returns_candidates_unchanged(
        self,
        make_provider: Callable[..., Any],
        candidates: list[Business],
    ) -> None:
        gateway = IntelligenceGateway(make_provider(responses=['{"matches": [1]}'], delay=1.0), timeout=0.01)

        assert await gateway.match_businesses("need AC repair", candidates) == candidates

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "raw",
        [
            "I could not decide.",
            '{"reasoning": "missing matches"}',
            '{"matches": "2", "reasoning": "wrong type"}',
            "",
        ],
    )
    async def test_malformed_output_returns_candidates_unchanged(
        self,
        raw: str,
        make_provider: Callable[..., Any],
        candidates: list[Business],
    ) -> None:
        gateway = IntelligenceGateway(make_provider(responses=[raw]))

        assert await gateway.match_businesses("need AC repair", candidates) == candidates


class TestGenerateReply:
    """Tests for GenerateReply."""

    @pytest.mark.asyncio
    async def test_reply_from_provider(self, make_provider: Callable[..., Any]) -> None:
        provider = make_provider(responses=["  I can help with that. Check the filter first.  "])
        gateway = IntelligenceGateway(provider)

        reply = await gateway.generate_reply([_message(1, 5, 0, "My AC is loud")])

        assert reply == "I can help with that. Check the filter first."

    @pytest.mark.asyncio
    async def test_first_turn_requires_opening_phrase(self, make_provider: Callable[..., Any]) -> None:
        provider = make_provider(responses=["ok"])
        gateway = IntelligenceGateway(provider)

        await gateway.generate_reply([_message(1, 5, 0, "Hi")])

        assert FIRST_TURN_OPENING in provider.calls[0]["system"]

    @pytest.mark.asyncio
    async def test_later_turns_omit_opening_phrase(self, make_provider: Callable[..., Any]) -> None:
        provider = make_provider(responses=["ok"])
        gateway = IntelligenceGateway(provider)
        history = [
            _message(1, 5, 0, "Hi"),
            _message(2, 0, 5, "I can help with that."),
            _message(3, 5, 0, "Thanks"),
        ]

        await gateway.generate_reply(history)

        assert FIRST_TURN_OPENING not in provider.calls[0]["system"]
        assert provider.calls[0]["messages"] == [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "I can help with that."},
            {"role": "user", "content": "Thanks"},
        ]

    @pytest.mark.asyncio
    async def test_provider_error_returns_apology(self, make_provider: Callable[..., Any]) -> None:
        gateway = IntelligenceGateway(make_provider(error=ConnectionError("refused")))

        assert await gateway.generate_reply([_message(1, 5, 0, "Hi")]) == FALLBACK_REPLY

    @pytest.mark.asyncio
    async def test_timeout_returns_apology(self, make_provider: Callable[..., Any]) -> None:
        gateway = IntelligenceGateway(make_provider(responses=["late"], delay=1.0), timeout=0.01)

        assert await gateway.generate_reply([_message(1, 5, 0, "Hi")]) == FALLBACK_REPLY

    @pytest.mark.asyncio
    async def test_blank_reply_returns_apology(self, make_provider: Callable[..., Any]) -> None:
        gateway = IntelligenceGateway(make_provider(responses=["   "]))

        assert await gateway.generate_reply([_message(1, 5, 0, "Hi")]) == FALLBACK_REPLY

    @pytest.mark.asyncio
    async def test_empty_history_returns_apology_without_call(self, make_provider: Callable[..., Any]) -> None:
        provider = make_provider(responses=["unused"])
        gateway = IntelligenceGateway(provider)

        assert await gateway.generate_reply([]) == FALLBACK_REPLY
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, make_provider: Callable[..., Any]) -> None:
        gateway = IntelligenceGateway(make_provider(responses=["late"], delay=5.0))

        task = asyncio.create_task(gateway.generate_reply([_message(1, 5, 0, "Hi")]))
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task


class TestHelpers:
    """Tests for turn mapping and ranking helpers."""

    def test_history_to_turns_merges_consecutive_roles(self) -> None:
        history = [
            _message(1, 5, 0, "first"),
            _message(2, 5, 0, "second"),
            _message(3, 0, 5, "reply"),
        ]

        assert history_to_turns(history) == [
            {"role": "user", "content": "first\n\nsecond"},
            {"role": "assistant", "content": "reply"},
        ]

    def test_rank_candidates_is_stable(self, candidates: list[Business]) -> None:
        assert [b.id for b in rank_candidates(candidates, [2, 1])] == [2, 1]
        assert rank_candidates(candidates, []) == []
