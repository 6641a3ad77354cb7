# =============================================================================
# Parallelization — Sectioning and Voting
# =============================================================================
#
# Two shapes of the same idea: independent model calls run concurrently
# and their results are combined in code.
#
# SECTIONING:
#   text ──┬─▶ review(clarity)   ─┐
#          ├─▶ review(accuracy)  ─┤
#          ├─▶ review(tone)      ─┼─▶ aggregate (advanced) ─▶ report
#          └─▶ review(structure) ─┘
#
# VOTING:
#   text ──▶ N independent votes {flagged, reason} ─▶ majority
#
# DESIGN DECISION: asyncio.gather under a Semaphore. gather keeps results
# in input order; the semaphore caps in-flight calls at
# settings.concurrency_limit so large fan-outs stay within rate limits.
#
# DESIGN DECISION: Ties flag. When votes split evenly the text goes to a
# human, which is the conservative outcome for a review gate.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel, Field

from agentic_patterns.config import settings
from agentic_patterns.services.inputs import read_text, write_output
from agentic_patterns.services.llm import (
    LLMProvider,
    get_advanced_model,
    get_basic_model,
)
from agentic_patterns.services.structured import generate_object

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


# ---------------------------------------------------------------------------
# Bounded Concurrency
# ---------------------------------------------------------------------------


async def map_concurrently(
    items: Sequence[T],
    fn: Callable[[T], Awaitable[R]],
    limit: int,
) -> list[R]:
    """
    Apply `fn` to every item with at most `limit` calls in flight.

    Results are returned in the same order as `items`. Exceptions from
    `fn` propagate; callers that want per-item tolerance handle them
    inside `fn`.
    """
    semaphore = asyncio.Semaphore(max(limit, 1))

    async def run_one(item: T) -> R:
        async with semaphore:
            return await fn(item)

    return list(await asyncio.gather(*(run_one(item) for item in items)))


# ---------------------------------------------------------------------------
# Sectioning
# ---------------------------------------------------------------------------

REVIEW_ASPECTS: dict[str, str] = {
    "clarity": (
        "Is the text easy to follow? Point out ambiguous sentences, jargon "
        "and places where a reader would get lost."
    ),
    "accuracy": (
        "Are the factual claims correct and internally consistent? Flag "
        "unsupported numbers, contradictions and overstatements."
    ),
    "tone": (
        "Is the tone appropriate for a general professional audience? Flag "
        "anything condescending, overly casual or aggressive."
    ),
    "structure": (
        "Is the text well organised? Comment on ordering, paragraphing, "
        "headings and transitions."
    ),
}

REVIEW_SYSTEM = (
    "You are an expert editor reviewing a document from one specific angle. "
    "Stay strictly within your assigned aspect. Answer with a short list of "
    "concrete findings, each with a suggested fix. If you find nothing, say so."
)

AGGREGATE_PROMPT = """Combine the following independent reviews of one \
document into a single prioritised editorial report.

Start with a one-paragraph overall assessment, then list the most important \
fixes first. Merge duplicate findings.

{reviews}"""


@dataclass
class AspectReview:
    aspect: str
    findings: str


@dataclass
class SectionedReview:
    reviews: list[AspectReview]
    report: str


async def review_aspect(llm: LLMProvider, text: str, aspect: str) -> AspectReview:
    """Review the text from a single aspect."""
    response = await llm.complete(
        messages=[{
            "role": "user",
            "content": (
                f"ASPECT: {aspect}\n{REVIEW_ASPECTS[aspect]}\n\n"
                f"DOCUMENT:\n{text}"
            ),
        }],
        system=REVIEW_SYSTEM,
    )
    return AspectReview(aspect=aspect, findings=response.content)


async def sectioned_review(
    text: str,
    reviewer: LLMProvider,
    aggregator: LLMProvider,
    aspects: Sequence[str] | None = None,
    concurrency_limit: int | None = None,
) -> SectionedReview:
    """Run one review per aspect concurrently, then aggregate."""
    aspects = list(aspects or REVIEW_ASPECTS)
    reviews = await map_concurrently(
        aspects,
        lambda aspect: review_aspect(reviewer, text, aspect),
        concurrency_limit or settings.concurrency_limit,
    )

    combined = "\n\n".join(
        f"### {r.aspect.upper()} REVIEW\n{r.findings}" for r in reviews
    )
    response = await aggregator.complete(
        messages=[{
            "role": "user",
            "content": AGGREGATE_PROMPT.format(reviews=combined),
        }],
    )
    return SectionedReview(reviews=reviews, report=response.content)


# ---------------------------------------------------------------------------
# Voting
# ---------------------------------------------------------------------------

VOTE_PROMPT = """Decide whether the following text must be checked by a \
human before publication. Flag it if it contains potentially false claims, \
sensitive personal data, legal risk or offensive content.

TEXT:
{text}"""


class Vote(BaseModel):
    """One independent judgement."""

    flagged: bool = Field(description="True if a human must review the text")
    reason: str = Field(description="One sentence justification")


@dataclass
class VoteOutcome:
    votes: list[Vote] = field(default_factory=list)
    failed: int = 0

    @property
    def flagged_count(self) -> int:
        return sum(1 for v in self.votes if v.flagged)

    @property
    def flagged(self) -> bool:
        """Majority of successful votes; ties (and no votes) flag."""
        if not self.votes:
            return True
        return self.flagged_count * 2 >= len(self.votes)


async def vote(
    text: str,
    llm: LLMProvider,
    count: int | None = None,
    concurrency_limit: int | None = None,
) -> VoteOutcome:
    """Collect `count` independent votes and count them."""
    count = settings.voting_count if count is None else count

    async def cast(_: int) -> Vote | None:
        try:
            # Non-zero temperature so the votes are actually independent
            return await generate_object(
                llm, Vote, VOTE_PROMPT.format(text=text), temperature=1.0,
            )
        except Exception as e:
            logger.warning("Vote failed: %s", e)
            return None

    results = await map_concurrently(
        range(count), cast, concurrency_limit or settings.concurrency_limit,
    )
    votes = [v for v in results if v is not None]
    outcome = VoteOutcome(votes=votes, failed=len(results) - len(votes))
    logger.info(
        "Voting: %d/%d flagged (%d failed)",
        outcome.flagged_count, len(votes), outcome.failed,
    )
    return outcome


# ---------------------------------------------------------------------------
# Entry Point
# ---------------------------------------------------------------------------


def render_report(review: SectionedReview, outcome: VoteOutcome) -> str:
    lines = ["# Parallel Review", "", "## Editorial Report", "", review.report, ""]
    lines += ["## Aspect Reviews", ""]
    for r in review.reviews:
        lines += [f"### {r.aspect.title()}", "", r.findings, ""]
    verdict = "NEEDS HUMAN REVIEW" if outcome.flagged else "OK TO PUBLISH"
    lines += [
        "## Publication Vote",
        "",
        f"**{verdict}** ({outcome.flagged_count} of {len(outcome.votes)} "
        f"votes flagged, {outcome.failed} failed)",
        "",
    ]
    lines += [
        f"- {'flag' if v.flagged else 'pass'}: {v.reason}" for v in outcome.votes
    ]
    return "\n".join(lines).rstrip() + "\n"


async def main(input_path: Path | None = None) -> Path:
    """Entry point used by the CLI."""
    text = read_text(input_path or settings.inputs_dir / "parallelization.txt")
    basic = get_basic_model()
    advanced = get_advanced_model()

    # Both fan-outs are independent of each other as well
    review, outcome = await asyncio.gather(
        sectioned_review(text, reviewer=basic, aggregator=advanced),
        vote(text, basic),
    )

    output = write_output(
        settings.output_dir / "parallelization.md", render_report(review, outcome),
    )
    print(review.report)
    print(
        f"\nVote: {outcome.flagged_count}/{len(outcome.votes)} flagged "
        f"→ {'needs human review' if outcome.flagged else 'ok to publish'}"
    )
    print(f"\nReport written to: {output}")
    return output
