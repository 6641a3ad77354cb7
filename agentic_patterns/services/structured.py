# =============================================================================
# Structured Output — Pydantic-Validated Object Generation
# =============================================================================
#
# Many steps in the examples need a typed answer rather than prose: a
# relevance verdict, a routing label, a critique with a score. This module
# asks the model for JSON matching a pydantic schema and validates it.
#
# DESIGN DECISION: Prompt-level JSON instructions, not provider-specific
# "JSON mode". Works identically for Anthropic and OpenAI-compatible APIs,
# and the pydantic schema is the single source of truth for the shape.
# =============================================================================

from __future__ import annotations

import json
import logging
import re
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from agentic_patterns.services.llm import LLMProvider

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class StructuredOutputError(ValueError):
    """The model response could not be parsed into the requested schema."""

    def __init__(self, message: str, raw: str) -> None:
        super().__init__(message)
        self.raw = raw


_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)

_OBJECT_INSTRUCTIONS = """Respond with ONLY a valid JSON object (no markdown, \
no explanation) that conforms to this JSON schema:
{schema}"""


def extract_json_object(text: str) -> str:
    """
    Return the JSON object embedded in a model response.

    Strips markdown code fences and any prose before the first "{" or
    after the last "}".
    """
    cleaned = _FENCE_RE.sub("", text.strip())
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end < start:
        return cleaned
    return cleaned[start : end + 1]


def parse_object(text: str, schema: type[T]) -> T:
    """Validate a raw model response against `schema`."""
    payload = extract_json_object(text)
    try:
        return schema.model_validate_json(payload)
    except ValidationError as e:
        raise StructuredOutputError(
            f"Response does not match {schema.__name__}: {e}", raw=text,
        ) from e


async def generate_object(
    llm: LLMProvider,
    schema: type[T],
    prompt: str,
    system: str | None = None,
    temperature: float | None = 0.0,
) -> T:
    """
    Generate an instance of `schema` from a single prompt.

    Args:
        llm: Model handle to call.
        schema: Pydantic model describing the expected object.
        prompt: User prompt with the task.
        system: Optional system prompt, prepended to the JSON instructions.
        temperature: Sampling temperature (deterministic by default).

    Raises:
        StructuredOutputError: If the response is not valid for `schema`.
    """
    instructions = _OBJECT_INSTRUCTIONS.format(
        schema=json.dumps(schema.model_json_schema(), indent=2),
    )
    full_system = f"{system}\n\n{instructions}" if system else instructions

    response = await llm.complete(
        messages=[{"role": "user", "content": prompt}],
        system=full_system,
        temperature=temperature,
    )

    result = parse_object(response.content, schema)
    logger.debug("Generated %s: %s", schema.__name__, result)
    return result
