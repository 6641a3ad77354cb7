# =============================================================================
# Routing — Classify, Then Dispatch to a Specialised Handler
# =============================================================================
#
# A cheap classifier labels each support ticket; the label selects a
# handler with its own system prompt (and, for technical tickets, the
# stronger model).
#
# GRAPH TOPOLOGY:
#   START ──▶ classify ──┬─▶ billing   ──┐
#                        ├─▶ technical ──┤
#                        ├─▶ account   ──┼──▶ END
#                        └─▶ general   ──┘
#
# DESIGN DECISION: Handler lookup is a plain dict keyed by label. An
# unknown or failed classification falls back to "general" rather than
# dropping the ticket.
#
# DESIGN DECISION: Tickets are routed concurrently (bounded by
# settings.concurrency_limit); each ticket runs its own graph invocation.
# =============================================================================

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from langgraph.graph import END, START, StateGraph
from pydantic import BaseModel, Field, RootModel
from typing_extensions import TypedDict

from agentic_patterns.agents.parallelization import map_concurrently
from agentic_patterns.config import settings
from agentic_patterns.services.inputs import load_input, write_output
from agentic_patterns.services.llm import (
    LLMProvider,
    get_advanced_model,
    get_basic_model,
)
from agentic_patterns.services.structured import generate_object

logger = logging.getLogger(__name__)

Category = Literal["billing", "technical", "account", "general"]
FALLBACK_CATEGORY = "general"


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class Ticket(BaseModel):
    id: str = Field(min_length=1)
    message: str = Field(min_length=1)


class TicketBatch(RootModel[list[Ticket]]):
    """data/inputs/routing.json — a JSON list of tickets."""


class Classification(BaseModel):
    category: Category
    reasoning: str = Field(description="One sentence explaining the label")


class RoutedTicket(BaseModel):
    id: str
    category: str
    reasoning: str
    response: str


class RoutingState(TypedDict, total=False):
    # --- Input ---
    ticket: Ticket
    basic_llm: LLMProvider | None
    advanced_llm: LLMProvider | None

    # --- Set by nodes ---
    category: str
    reasoning: str
    response: str


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

CLASSIFY_PROMPT = """Classify this customer support ticket.

Categories:
- billing: charges, invoices, refunds, payment methods, plans and pricing
- technical: bugs, errors, outages, integrations, performance
- account: login, password, profile, permissions, account deletion
- general: anything else

TICKET:
{message}"""


@dataclass(frozen=True)
class Handler:
    system: str
    use_advanced: bool = False


HANDLERS: dict[str, Handler] = {
    "billing": Handler(
        system=(
            "You are a billing support specialist. Acknowledge the issue, "
            "explain the relevant charge or refund policy in plain terms and "
            "list the exact next steps. Never promise a refund outright."
        ),
    ),
    "technical": Handler(
        system=(
            "You are a senior technical support engineer. Diagnose the most "
            "likely causes, give numbered troubleshooting steps and say what "
            "information to send if the steps do not help."
        ),
        use_advanced=True,
    ),
    "account": Handler(
        system=(
            "You are an account security specialist. Help with access and "
            "profile issues, prioritise account security and never ask for "
            "passwords or full card numbers."
        ),
    ),
    "general": Handler(
        system=(
            "You are a friendly customer support agent. Answer helpfully and "
            "concisely, and point to the right team when needed."
        ),
    ),
}


# ---------------------------------------------------------------------------
# Node Functions
# ---------------------------------------------------------------------------


async def classify_node(state: RoutingState) -> dict:
    llm = state.get("basic_llm") or get_basic_model()
    ticket = state["ticket"]
    try:
        result = await generate_object(
            llm, Classification, CLASSIFY_PROMPT.format(message=ticket.message),
        )
    except Exception as e:
        logger.warning(
            "Classification failed for ticket %s, using '%s': %s",
            ticket.id, FALLBACK_CATEGORY, e,
        )
        return {
            "category": FALLBACK_CATEGORY,
            "reasoning": f"classification failed: {e}",
        }

    logger.info("Ticket %s → %s", ticket.id, result.category)
    return {"category": result.category, "reasoning": result.reasoning}


def _make_handler_node(category: str):
    handler = HANDLERS[category]

    async def handler_node(state: RoutingState) -> dict:
        if handler.use_advanced:
            llm = state.get("advanced_llm") or get_advanced_model()
        else:
            llm = state.get("basic_llm") or get_basic_model()
        response = await llm.complete(
            messages=[{"role": "user", "content": state["ticket"].message}],
            system=handler.system,
        )
        return {"response": response.content}

    return handler_node


def _route_by_category(state: RoutingState) -> str:
    category = state.get("category", FALLBACK_CATEGORY)
    return category if category in HANDLERS else FALLBACK_CATEGORY


# ---------------------------------------------------------------------------
# Graph Assembly
# ---------------------------------------------------------------------------

_builder = StateGraph(RoutingState)
_builder.add_node("classify", classify_node)
for _category in HANDLERS:
    _builder.add_node(_category, _make_handler_node(_category))
    _builder.add_edge(_category, END)

_builder.add_edge(START, "classify")
_builder.add_conditional_edges(
    "classify", _route_by_category, {c: c for c in HANDLERS},
)

graph = _builder.compile()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def route_ticket(
    ticket: Ticket,
    basic_llm: LLMProvider | None = None,
    advanced_llm: LLMProvider | None = None,
) -> RoutedTicket:
    final = await graph.ainvoke({
        "ticket": ticket,
        "basic_llm": basic_llm,
        "advanced_llm": advanced_llm,
    })
    return RoutedTicket(
        id=ticket.id,
        category=_route_by_category(final),
        reasoning=final.get("reasoning", ""),
        response=final.get("response", ""),
    )


async def route_tickets(
    tickets: list[Ticket],
    basic_llm: LLMProvider | None = None,
    advanced_llm: LLMProvider | None = None,
    concurrency_limit: int | None = None,
) -> list[RoutedTicket]:
    """Route every ticket; results keep input order."""
    return await map_concurrently(
        tickets,
        lambda t: route_ticket(t, basic_llm, advanced_llm),
        concurrency_limit or settings.concurrency_limit,
    )


async def main(input_path: Path | None = None) -> list[RoutedTicket]:
    """Entry point used by the CLI."""
    batch = load_input(input_path or settings.inputs_dir / "routing.json", TicketBatch)
    results = await route_tickets(batch.root)

    output = write_output(
        settings.output_dir / "routing.json",
        json.dumps([r.model_dump() for r in results], indent=2, ensure_ascii=False),
    )
    for r in results:
        print(f"[{r.id}] {r.category}: {r.reasoning}")
    print(f"\nResponses written to: {output}")
    return results
