# =============================================================================
# Reflection — Generate, Critique, Revise Until Approved
# =============================================================================
#
# A writer model produces a draft; a stronger critic model scores it and
# returns concrete feedback; the writer revises using that feedback. The
# loop ends when the critic approves or the iteration limit is reached.
#
# GRAPH TOPOLOGY:
#   START ──▶ generate ──▶ critique ──┬─(approved or limit)──▶ END
#                             ▲       │
#                             └─ revise ◀─(otherwise)
#
# DESIGN DECISION: The limit counts drafts, not critiques. With the
# default of 3 the writer produces at most 3 versions, each critiqued once.
#
# DESIGN DECISION: The critic is a different (stronger) model than the
# writer, so the loop does not just agree with itself.
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


class ReflectionInput(BaseModel):
    """data/inputs/reflection.json"""

    task: str = Field(min_length=1)


class Critique(BaseModel):
    approved: bool = Field(description="True if the draft needs no further changes")
    score: int = Field(ge=1, le=10, description="Overall quality from 1 to 10")
    feedback: str = Field(description="Concrete, actionable improvements")


class ReflectionResult(BaseModel):
    final_draft: str
    approved: bool
    iterations: int
    critiques: list[Critique]


class ReflectionState(TypedDict, total=False):
    # --- Input ---
    task: str
    max_iterations: int
    writer_llm: LLMProvider | None
    critic_llm: LLMProvider | None

    # --- Set by nodes ---
    draft: str
    iterations: int
    critiques: list[Critique]


WRITER_SYSTEM = (
    "You are a careful writer. Produce exactly what the task asks for, "
    "with no preamble or commentary."
)

CRITIC_PROMPT = """You are a demanding reviewer. Evaluate the draft against \
the task. Approve it only if it fully satisfies the task and you have no \
significant improvements left to suggest.

TASK:
{task}

DRAFT:
{draft}"""

REVISE_PROMPT = """Revise your draft using the reviewer's feedback. Return \
only the improved draft.

TASK:
{task}

CURRENT DRAFT:
{draft}

FEEDBACK:
{feedback}"""


# ---------------------------------------------------------------------------
# Node Functions
# ---------------------------------------------------------------------------


async def generate_node(state: ReflectionState) -> dict:
    llm = state.get("writer_llm") or get_basic_model()
    response = await llm.complete(
        messages=[{"role": "user", "content": state["task"]}],
        system=WRITER_SYSTEM,
    )
    return {"draft": response.content, "iterations": 1, "critiques": []}


async def critique_node(state: ReflectionState) -> dict:
    llm = state.get("critic_llm") or get_advanced_model()
    critique = await generate_object(
        llm,
        Critique,
        CRITIC_PROMPT.format(task=state["task"], draft=state["draft"]),
    )
    logger.info(
        "Critique %d: approved=%s score=%d",
        state["iterations"], critique.approved, critique.score,
    )
    return {"critiques": [*state.get("critiques", []), critique]}


async def revise_node(state: ReflectionState) -> dict:
    llm = state.get("writer_llm") or get_basic_model()
    feedback = state["critiques"][-1].feedback
    response = await llm.complete(
        messages=[{
            "role": "user",
            "content": REVISE_PROMPT.format(
                task=state["task"], draft=state["draft"], feedback=feedback,
            ),
        }],
        system=WRITER_SYSTEM,
    )
    return {"draft": response.content, "iterations": state["iterations"] + 1}


def _should_continue(state: ReflectionState) -> str:
    if state["critiques"][-1].approved:
        return END
    if state["iterations"] >= state["max_iterations"]:
        logger.info("Reached max_iterations=%d without approval", state["max_iterations"])
        return END
    return "revise"


# ---------------------------------------------------------------------------
# Graph Assembly
# ---------------------------------------------------------------------------

_builder = StateGraph(ReflectionState)
_builder.add_node("generate", generate_node)
_builder.add_node("critique", critique_node)
_builder.add_node("revise", revise_node)

_builder.add_edge(START, "generate")
_builder.add_edge("generate", "critique")
_builder.add_conditional_edges(
    "critique", _should_continue, {"revise": "revise", END: END},
)
_builder.add_edge("revise", "critique")

graph = _builder.compile()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def reflect(
    task: str,
    max_iterations: int | None = None,
    writer_llm: LLMProvider | None = None,
    critic_llm: LLMProvider | None = None,
) -> ReflectionResult:
    if max_iterations is None:
        max_iterations = settings.reflection_max_iterations
    max_iterations = max(max_iterations, 1)
    final = await graph.ainvoke(
        {
            "task": task,
            "max_iterations": max_iterations,
            "writer_llm": writer_llm,
            "critic_llm": critic_llm,
        },
        # generate + critique per draft, plus revise between drafts
        {"recursion_limit": 3 * max_iterations + 5},
    )
    critiques = final["critiques"]
    return ReflectionResult(
        final_draft=final["draft"],
        approved=critiques[-1].approved,
        iterations=final["iterations"],
        critiques=critiques,
    )


def render_result(task: str, result: ReflectionResult) -> str:
    status = "approved" if result.approved else "not approved"
    lines = [
        "# Reflection", "", f"**Task:** {task}", "",
        f"**Result:** {status} after {result.iterations} draft(s)", "",
        "## Final Draft", "", result.final_draft, "", "## Critiques", "",
    ]
    for i, c in enumerate(result.critiques, 1):
        lines.append(f"{i}. score {c.score}/10, approved={c.approved}: {c.feedback}")
    return "\n".join(lines).rstrip() + "\n"


async def main(input_path: Path | None = None) -> ReflectionResult:
    """Entry point used by the CLI."""
    reflection_input = load_input(
        input_path or settings.inputs_dir / "reflection.json", ReflectionInput,
    )
    result = await reflect(reflection_input.task)

    output = write_output(
        settings.output_dir / "reflection.md",
        render_result(reflection_input.task, result),
    )
    print(result.final_draft)
    print(
        f"\n{'Approved' if result.approved else 'Not approved'} after "
        f"{result.iterations} draft(s). Output written to: {output}"
    )
    return result
