# =============================================================================
# Prompt Chaining — Draft → Gate Check → Translate
# =============================================================================
#
# Each step consumes the previous step's output. A programmatic gate
# between the steps stops the chain early when the draft is not good
# enough, so no tokens are spent translating rejected copy.
#
# GRAPH TOPOLOGY:
#   START ──▶ draft ──▶ check ──┬─(passes)──▶ translate ──▶ END
#                               └─(fails)───────────────────▶ END
#
# DESIGN DECISION: The gate is a structured verdict, not free text.
# The checker returns {passes, issues}; routing reads a boolean instead
# of pattern-matching prose.
#
# DESIGN DECISION: Model overrides travel in the state (like llm_override
# elsewhere) so tests can run the compiled graph with fake providers.
# =============================================================================

from __future__ import annotations

import logging
from pathlib import Path

from langgraph.graph import END, START, StateGraph
from pydantic import BaseModel, Field
from typing_extensions import TypedDict

from agentic_patterns.config import settings
from agentic_patterns.services.inputs import load_input, write_output
from agentic_patterns.services.llm import (
    LLMProvider,
    get_advanced_model,
    get_basic_model,
)
from agentic_patterns.services.structured import generate_object

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class ChainInput(BaseModel):
    """data/inputs/chaining.json"""

    product: str = Field(min_length=1)
    audience: str = Field(min_length=1)
    target_language: str = Field(min_length=1)


class CopyCheck(BaseModel):
    passes: bool = Field(description="True if the copy meets every criterion")
    issues: list[str] = Field(
        default_factory=list,
        description="Specific problems found; empty when the copy passes",
    )


class ChainResult(BaseModel):
    status: str  # "translated" or "rejected"
    draft: str
    issues: list[str] = Field(default_factory=list)
    translation: str | None = None


class ChainState(TypedDict, total=False):
    # --- Input ---
    product: str
    audience: str
    target_language: str
    basic_llm: LLMProvider | None
    advanced_llm: LLMProvider | None

    # --- Set by nodes ---
    draft: str
    check: CopyCheck
    translation: str


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

DRAFT_PROMPT = """Write marketing copy for the product below.

PRODUCT: {product}
AUDIENCE: {audience}

Requirements:
- A headline of at most 10 words
- Two short paragraphs of body copy
- One call to action
Return only the copy."""

CHECK_PROMPT = """Check this marketing copy against the criteria.

CRITERIA:
1. Has a headline of at most 10 words
2. Has a clear call to action
3. Speaks to this audience: {audience}
4. Makes no unverifiable claims (e.g. "best in the world", guaranteed results)

COPY:
{draft}"""

TRANSLATE_PROMPT = """Translate the following marketing copy into \
{target_language}. Keep the structure and the persuasive tone. Return only \
the translation.

{draft}"""


# ---------------------------------------------------------------------------
# Node Functions
# ---------------------------------------------------------------------------


async def draft_node(state: ChainState) -> dict:
    llm = state.get("basic_llm") or get_basic_model()
    response = await llm.complete(
        messages=[{
            "role": "user",
            "content": DRAFT_PROMPT.format(
                product=state["product"], audience=state["audience"],
            ),
        }],
    )
    logger.info("Draft written (%d chars)", len(response.content))
    return {"draft": response.content}


async def check_node(state: ChainState) -> dict:
    llm = state.get("advanced_llm") or get_advanced_model()
    check = await generate_object(
        llm,
        CopyCheck,
        CHECK_PROMPT.format(audience=state["audience"], draft=state["draft"]),
    )
    logger.info("Gate check: passes=%s, issues=%d", check.passes, len(check.issues))
    return {"check": check}


async def translate_node(state: ChainState) -> dict:
    llm = state.get("basic_llm") or get_basic_model()
    response = await llm.complete(
        messages=[{
            "role": "user",
            "content": TRANSLATE_PROMPT.format(
                target_language=state["target_language"], draft=state["draft"],
            ),
        }],
    )
    return {"translation": response.content}


def _route_after_check(state: ChainState) -> str:
    return "translate" if state["check"].passes else END


# ---------------------------------------------------------------------------
# Graph Assembly
# ---------------------------------------------------------------------------

_builder = StateGraph(ChainState)
_builder.add_node("draft", draft_node)
_builder.add_node("check", check_node)
_builder.add_node("translate", translate_node)

_builder.add_edge(START, "draft")
_builder.add_edge("draft", "check")
_builder.add_conditional_edges(
    "check", _route_after_check, {"translate": "translate", END: END},
)
_builder.add_edge("translate", END)

graph = _builder.compile()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def run_chain(
    chain_input: ChainInput,
    basic_llm: LLMProvider | None = None,
    advanced_llm: LLMProvider | None = None,
) -> ChainResult:
    """Run the chain and map the final state to a ChainResult."""
    state: ChainState = {
        "product": chain_input.product,
        "audience": chain_input.audience,
        "target_language": chain_input.target_language,
        "basic_llm": basic_llm,
        "advanced_llm": advanced_llm,
    }
    final = await graph.ainvoke(state)

    check: CopyCheck = final["check"]
    if not check.passes:
        return ChainResult(status="rejected", draft=final["draft"], issues=check.issues)
    return ChainResult(
        status="translated",
        draft=final["draft"],
        issues=check.issues,
        translation=final.get("translation"),
    )


def render_result(chain_input: ChainInput, result: ChainResult) -> str:
    lines = [f"# {chain_input.product}", "", "## Draft", "", result.draft, ""]
    if result.status == "rejected":
        lines += ["## Rejected by gate check", ""]
        lines += [f"- {issue}" for issue in result.issues]
    else:
        lines += [f"## Translation ({chain_input.target_language})", ""]
        lines.append(result.translation or "")
    return "\n".join(lines).rstrip() + "\n"


async def main(input_path: Path | None = None) -> ChainResult:
    """Entry point used by the CLI."""
    chain_input = load_input(
        input_path or settings.inputs_dir / "chaining.json", ChainInput,
    )
    result = await run_chain(chain_input)

    output = write_output(
        settings.output_dir / "chaining.md", render_result(chain_input, result),
    )
    if result.status == "rejected":
        print("Draft rejected by the gate check:")
        for issue in result.issues:
            print(f"  - {issue}")
    else:
        print(result.translation)
    print(f"\nOutput written to: {output}")
    return result
