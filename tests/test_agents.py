# =============================================================================
# Unit Tests — Workflow Agents (chaining, routing, reflection, parallelization)
# =============================================================================
#
# Runs the compiled LangGraph graphs and the concurrent loops with mock LLM
# providers. No API keys or network access are needed.
# =============================================================================

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock

from agentic_patterns.agents.chaining import ChainInput, run_chain
from agentic_patterns.agents.parallelization import (
    REVIEW_ASPECTS,
    Vote,
    VoteOutcome,
    map_concurrently,
    sectioned_review,
    vote,
)
from agentic_patterns.agents.reflection import reflect
from agentic_patterns.agents.routing import Ticket, route_ticket, route_tickets
from agentic_patterns.services.llm import LLMResponse


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _response(content: str) -> LLMResponse:
    return LLMResponse(content=content, model="test-model", input_tokens=10, output_tokens=5)


def _mock_llm(*contents: str) -> AsyncMock:
    """Mock provider returning `contents` in order."""
    llm = AsyncMock()
    llm.complete.side_effect = [_response(c) for c in contents]
    return llm


def _is_structured_call(kwargs: dict) -> bool:
    return "valid JSON object" in (kwargs.get("system") or "")


# ---------------------------------------------------------------------------
# Test: Prompt Chaining
# ---------------------------------------------------------------------------


CHAIN_INPUT = ChainInput(product="Solar lantern", audience="campers", target_language="Spanish")


class TestChaining:
    def test_passing_check_translates(self):
        basic = _mock_llm("Bright nights. Buy now!", "Noches brillantes. ¡Compra ya!")
        advanced = _mock_llm('{"passes": true, "issues": []}')

        result = _run(run_chain(CHAIN_INPUT, basic_llm=basic, advanced_llm=advanced))

        assert result.status == "translated"
        assert result.draft == "Bright nights. Buy now!"
        assert result.translation == "Noches brillantes. ¡Compra ya!"
        translate_prompt = basic.complete.call_args_list[1].kwargs["messages"][0]["content"]
        assert "Spanish" in translate_prompt
        assert "Bright nights. Buy now!" in translate_prompt

    def test_failing_check_stops_chain(self):
        basic = _mock_llm("The best lantern in the world, guaranteed!")
        advanced = _mock_llm('{"passes": false, "issues": ["Unverifiable claim"]}')

        result = _run(run_chain(CHAIN_INPUT, basic_llm=basic, advanced_llm=advanced))

        assert result.status == "rejected"
        assert result.issues == ["Unverifiable claim"]
        assert result.translation is None
        # No translation call after a rejected draft
        assert basic.complete.call_count == 1


# ---------------------------------------------------------------------------
# Test: Routing
# ---------------------------------------------------------------------------


def _routing_llm(category_for):
    """Classifies by keyword; handlers echo the system prompt's first words."""

    async def complete(messages, system=None, **kwargs):
        prompt = messages[0]["content"]
        if _is_structured_call({"system": system}):
            # Only the ticket text, not the category descriptions
            category = category_for(prompt.split("TICKET:\n", 1)[1])
            return _response(json.dumps({"category": category, "reasoning": "keyword"}))
        return _response(f"handled: {prompt}")

    llm = AsyncMock()
    llm.complete.side_effect = complete
    return llm


def _keyword_category(prompt: str) -> str:
    if "refund" in prompt:
        return "billing"
    if "crash" in prompt:
        return "technical"
    if "password" in prompt:
        return "account"
    return "general"


class TestRouting:
    def test_technical_ticket_uses_advanced_model(self):
        basic = _routing_llm(_keyword_category)
        advanced = _mock_llm("Try reinstalling the app.")

        result = _run(route_ticket(
            Ticket(id="T-1", message="The app crashes on export"),
            basic_llm=basic, advanced_llm=advanced,
        ))

        assert result.category == "technical"
        assert result.response == "Try reinstalling the app."
        assert "technical support" in advanced.complete.call_args.kwargs["system"]

    def test_billing_ticket_stays_on_basic_model(self):
        basic = _routing_llm(_keyword_category)
        advanced = AsyncMock()

        result = _run(route_ticket(
            Ticket(id="T-2", message="Please refund me"),
            basic_llm=basic, advanced_llm=advanced,
        ))

        assert result.category == "billing"
        assert result.response == "handled: Please refund me"
        advanced.complete.assert_not_called()

    def test_unknown_label_falls_back_to_general(self):
        basic = _routing_llm(lambda prompt: "sales")

        result = _run(route_ticket(
            Ticket(id="T-3", message="Do you sell gift cards?"),
            basic_llm=basic, advanced_llm=AsyncMock(),
        ))

        assert result.category == "general"
        assert result.reasoning.startswith("classification failed")
        assert result.response == "handled: Do you sell gift cards?"

    def test_batch_keeps_input_order(self):
        tickets = [
            Ticket(id="A", message="refund please"),
            Ticket(id="B", message="my password expired"),
            Ticket(id="C", message="hello there"),
        ]
        results = _run(route_tickets(
            tickets, basic_llm=_routing_llm(_keyword_category), advanced_llm=AsyncMock(),
        ))

        assert [r.id for r in results] == ["A", "B", "C"]
        assert [r.category for r in results] == ["billing", "account", "general"]


# ---------------------------------------------------------------------------
# Test: Reflection
# ---------------------------------------------------------------------------


def _critique(approved: bool, score: int) -> str:
    return json.dumps({"approved": approved, "score": score, "feedback": f"score {score}"})


class TestReflection:
    def test_stops_on_first_approval(self):
        writer = _mock_llm("v1")
        critic = _mock_llm(_critique(True, 9))

        result = _run(reflect("Write a haiku", writer_llm=writer, critic_llm=critic))

        assert result.approved is True
        assert result.iterations == 1
        assert result.final_draft == "v1"
        assert writer.complete.call_count == 1

    def test_revises_until_approved(self):
        writer = _mock_llm("v1", "v2")
        critic = _mock_llm(_critique(False, 5), _critique(True, 8))

        result = _run(reflect("Write a haiku", max_iterations=3, writer_llm=writer, critic_llm=critic))

        assert result.final_draft == "v2"
        assert result.iterations == 2
        assert [c.score for c in result.critiques] == [5, 8]
        revise_prompt = writer.complete.call_args_list[1].kwargs["messages"][0]["content"]
        assert "v1" in revise_prompt
        assert "score 5" in revise_prompt

    def test_respects_iteration_limit(self):
        writer = _mock_llm("v1", "v2")
        critic = _mock_llm(_critique(False, 3), _critique(False, 4))

        result = _run(reflect("Write a haiku", max_iterations=2, writer_llm=writer, critic_llm=critic))

        assert result.approved is False
        assert result.iterations == 2
        assert len(result.critiques) == 2
        assert writer.complete.call_count == 2
        assert critic.complete.call_count == 2

    def test_zero_iterations_still_writes_one_draft(self):
        writer = _mock_llm("v1")
        critic = _mock_llm(_critique(False, 2))

        result = _run(reflect("Write a haiku", max_iterations=0, writer_llm=writer, critic_llm=critic))

        assert result.iterations == 1
        assert result.final_draft == "v1"
        assert writer.complete.call_count == 1


# ---------------------------------------------------------------------------
# Test: Parallelization
# ---------------------------------------------------------------------------


class TestMapConcurrently:
    def test_preserves_order(self):
        async def slow_echo(n):
            # Later items finish first
            await asyncio.sleep(0.01 * (5 - n))
            return n * 2

        assert _run(map_concurrently([0, 1, 2, 3, 4], slow_echo, limit=5)) == [0, 2, 4, 6, 8]

    def test_respects_limit(self):
        in_flight = 0
        peak = 0

        async def track(_):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1

        _run(map_concurrently(range(10), track, limit=3))
        assert peak == 3


class TestVoteOutcome:
    def _outcome(self, *flags: bool) -> VoteOutcome:
        return VoteOutcome(votes=[Vote(flagged=f, reason="r") for f in flags])

    def test_majority_flags(self):
        assert self._outcome(True, True, False).flagged is True

    def test_minority_passes(self):
        assert self._outcome(True, False, False).flagged is False

    def test_tie_flags(self):
        assert self._outcome(True, False).flagged is True

    def test_no_votes_flags(self):
        assert VoteOutcome().flagged is True


class TestVote:
    def test_failed_votes_are_counted_separately(self):
        llm = _mock_llm(
            "not json at all",
            '{"flagged": false, "reason": "fine"}',
            '{"flagged": false, "reason": "fine"}',
            '{"flagged": true, "reason": "claim"}',
        )

        outcome = _run(vote("Some text", llm, count=4))

        assert outcome.failed == 1
        assert len(outcome.votes) == 3
        assert outcome.flagged_count == 1
        assert outcome.flagged is False
        assert all(c.kwargs["temperature"] == 1.0 for c in llm.complete.call_args_list)

    def test_zero_count_casts_no_votes(self):
        llm = AsyncMock()

        outcome = _run(vote("Some text", llm, count=0))

        assert outcome.votes == []
        assert outcome.failed == 0
        assert outcome.flagged is True
        llm.complete.assert_not_called()


class TestSectionedReview:
    def test_one_review_per_aspect_then_aggregate(self):
        async def review(messages, system=None, **kwargs):
            aspect = messages[0]["content"].split("\n", 1)[0].removeprefix("ASPECT: ")
            return _response(f"{aspect} findings")

        reviewer = AsyncMock()
        reviewer.complete.side_effect = review
        aggregator = _mock_llm("Overall: good.")

        result = _run(sectioned_review("Doc text", reviewer=reviewer, aggregator=aggregator))

        assert [r.aspect for r in result.reviews] == list(REVIEW_ASPECTS)
        assert [r.findings for r in result.reviews] == [f"{a} findings" for a in REVIEW_ASPECTS]
        assert result.report == "Overall: good."
        aggregate_prompt = aggregator.complete.call_args.kwargs["messages"][0]["content"]
        assert "### CLARITY REVIEW\nclarity findings" in aggregate_prompt
