# =============================================================================
# Multi-Provider LLM Abstraction — Model Handles for Every Example
# =============================================================================
#
# Provides a common interface for LLM completions and tool-calling loops,
# with concrete implementations for Anthropic (Claude) and OpenAI-compatible
# APIs (OpenAI, DeepSeek, Qwen, ...).
#
# Every example works with two pre-configured handles:
#   get_basic_model()    — cheap model for bulk calls (filters, votes, drafts)
#   get_advanced_model() — stronger model for planning, SQL and synthesis
#
# DESIGN DECISION: Protocol (structural typing) over ABC.
# Tests pass AsyncMock objects wherever an LLMProvider is expected.
#
# ARCHITECTURE:
#   LLMProvider (Protocol)
#   ├── AnthropicProvider          — Claude via native Anthropic SDK
#   ├── OpenAICompatibleProvider   — any OpenAI-compatible chat API
#   ├── ProgressIndicatorProvider  — logging wrapper (latency, tokens, cost)
#   ├── create_provider_from_id()  — "provider_type/model[@base_url]"
#   └── get_basic_model() / get_advanced_model() — cached handles
# =============================================================================

from __future__ import annotations

import json
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from pydantic import BaseModel, ValidationError

from agentic_patterns.config import settings
from agentic_patterns.services.pricing import estimate_cost

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class LLMResponse:
    """
    Standardised response from any LLM provider.

    Normalises the different response formats (Anthropic vs OpenAI)
    into a single structure that downstream code can consume.
    """

    content: str           # The generated text
    model: str             # Model identifier (e.g., "claude-haiku-4-5")
    input_tokens: int      # Tokens consumed by the prompt
    output_tokens: int     # Tokens generated in the response


@dataclass
class Tool:
    """
    A function the model may call during run_tools().

    `input_model` provides both the JSON schema advertised to the model
    and validation of the arguments it sends back. `execute` receives the
    validated model instance and returns any JSON-serialisable value.
    """

    name: str
    description: str
    input_model: type[BaseModel]
    execute: Callable[[Any], Awaitable[Any]]

    def json_schema(self) -> dict:
        return self.input_model.model_json_schema()


@dataclass
class ToolCallRecord:
    """One executed tool call, kept for logging and tests."""

    name: str
    arguments: dict
    result: str
    is_error: bool = False


@dataclass
class ToolRunResult:
    """Final outcome of a tool-calling loop."""

    text: str
    model: str
    steps: int
    tool_calls: list[ToolCallRecord] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class LLMProvider(Protocol):
    """
    Protocol defining the LLM provider interface.

    Every model handle handed to the examples provides `complete()` for
    single-shot generation and `run_tools()` for agentic tool loops.
    """

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """
        Generate a completion from the LLM.

        Args:
            messages: Conversation messages as dicts with "role" and "content".
                Roles: "user", "assistant" (no "system" — use the system param).
            system: System prompt for the LLM.
            temperature: Override sampling temperature (default from config).
                0.0 is honoured, not treated as "unset".
            max_tokens: Override max output tokens (default from config).

        Returns:
            LLMResponse with generated text and usage metrics.
        """
        ...

    async def run_tools(
        self,
        messages: list[dict[str, Any]],
        tools: list[Tool],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        max_steps: int = 10,
    ) -> ToolRunResult:
        """
        Let the model call `tools` until it produces a final answer.

        Each model call counts as one step. The loop stops when the model
        stops requesting tools or after `max_steps` model calls.
        """
        ...


# ---------------------------------------------------------------------------
# Shared Tool Execution
# ---------------------------------------------------------------------------


async def execute_tool_call(
    tools_by_name: dict[str, Tool],
    name: str,
    arguments: dict,
) -> ToolCallRecord:
    """
    Validate arguments and run one tool.

    Errors are returned to the model as tool output rather than raised,
    so the model can correct its request on the next step.
    """
    tool = tools_by_name.get(name)
    if tool is None:
        logger.warning("Model requested unknown tool '%s'", name)
        return ToolCallRecord(
            name=name, arguments=arguments,
            result=f"Error: unknown tool '{name}'", is_error=True,
        )

    try:
        params = tool.input_model.model_validate(arguments)
    except ValidationError as e:
        logger.warning("Invalid arguments for tool '%s': %s", name, e)
        return ToolCallRecord(
            name=name, arguments=arguments,
            result=f"Error: invalid arguments: {e}", is_error=True,
        )

    # Unserialisable results are reported as tool errors too
    try:
        output = await tool.execute(params)
        result = output if isinstance(output, str) else json.dumps(output, default=str)
    except Exception as e:
        logger.warning("Tool '%s' failed: %s", name, e)
        return ToolCallRecord(
            name=name, arguments=arguments,
            result=f"Error: {e}", is_error=True,
        )

    logger.info("Tool '%s' returned %d chars", name, len(result))
    return ToolCallRecord(name=name, arguments=arguments, result=result)


# ---------------------------------------------------------------------------
# Implementation 1: Anthropic (Claude)
# ---------------------------------------------------------------------------


class AnthropicProvider:
    """
    Anthropic Claude provider using the native SDK.

    KEY API DIFFERENCE: Anthropic takes system prompts as a top-level
    `system=` kwarg, NOT as a message with role "system".
    """

    provider_type = "anthropic"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
    ) -> None:
        from anthropic import AsyncAnthropic

        resolved_key = api_key or settings.llm_api_key or settings.anthropic_api_key
        if not resolved_key:
            raise ValueError(
                "No Anthropic API key configured. Set LLM_API_KEY or "
                "ANTHROPIC_API_KEY in .env"
            )

        self._client = AsyncAnthropic(api_key=resolved_key)
        self._model = model or "claude-haiku-4-5"
        self._temperature = settings.llm_temperature
        self._max_tokens = settings.llm_max_tokens

        logger.info("Initialized AnthropicProvider (model=%s)", self._model)

    @property
    def model(self) -> str:
        return self._model

    def _request_kwargs(
        self,
        system: str | None,
        temperature: float | None,
        max_tokens: int | None,
    ) -> dict:
        kwargs: dict = {
            "model": self._model,
            "max_tokens": max_tokens or self._max_tokens,
            "temperature": (
                temperature if temperature is not None else self._temperature
            ),
        }
        if system:
            kwargs["system"] = system
        return kwargs

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Generate a completion using Claude."""
        response = await self._client.messages.create(
            messages=messages,
            **self._request_kwargs(system, temperature, max_tokens),
        )

        content = "".join(
            block.text for block in response.content if block.type == "text"
        )

        return LLMResponse(
            content=content,
            model=response.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )

    async def run_tools(
        self,
        messages: list[dict[str, Any]],
        tools: list[Tool],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        max_steps: int = 10,
    ) -> ToolRunResult:
        """Tool loop using Anthropic `tool_use` / `tool_result` blocks."""
        tools_by_name = {t.name: t for t in tools}
        tool_specs = [
            {
                "name": t.name,
                "description": t.description,
                "input_schema": t.json_schema(),
            }
            for t in tools
        ]
        conversation: list[dict[str, Any]] = list(messages)
        result = ToolRunResult(text="", model=self._model, steps=0)

        while result.steps < max_steps:
            response = await self._client.messages.create(
                messages=conversation,
                tools=tool_specs,
                **self._request_kwargs(system, temperature, max_tokens),
            )
            result.steps += 1
            result.model = response.model
            result.input_tokens += response.usage.input_tokens
            result.output_tokens += response.usage.output_tokens
            result.text = "".join(
                block.text for block in response.content if block.type == "text"
            )

            tool_uses = [b for b in response.content if b.type == "tool_use"]
            if response.stop_reason != "tool_use" or not tool_uses:
                return result

            conversation.append({"role": "assistant", "content": response.content})
            tool_results = []
            for block in tool_uses:
                record = await execute_tool_call(
                    tools_by_name, block.name, dict(block.input or {}),
                )
                result.tool_calls.append(record)
                tool_results.append({
                    "type": "tool_result",
                    "tool_use_id": block.id,
                    "content": record.result,
                    "is_error": record.is_error,
                })
            conversation.append({"role": "user", "content": tool_results})

        logger.warning(
            "Tool loop hit max_steps=%d before a final answer (model=%s)",
            max_steps, self._model,
        )
        return result


# ---------------------------------------------------------------------------
# Implementation 2: OpenAI-Compatible (OpenAI, DeepSeek, Qwen, etc.)
# ---------------------------------------------------------------------------

# OpenAI reasoning models reject `max_tokens` and any temperature but the
# default; they take `max_completion_tokens` instead.
_REASONING_MODEL_PREFIXES = ("gpt-5", "o1", "o3", "o4")


def _is_reasoning_model(model: str) -> bool:
    return model.startswith(_REASONING_MODEL_PREFIXES)


class OpenAICompatibleProvider:
    """
    OpenAI-compatible provider for any API that speaks the OpenAI chat format.

    Switching providers is a config change:
        BASIC_MODEL_ID=openai_compatible/deepseek-chat@https://api.deepseek.com/v1
        LLM_API_KEY=your-key
    """

    provider_type = "openai_compatible"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
    ) -> None:
        from openai import AsyncOpenAI

        resolved_key = api_key or settings.llm_api_key or settings.openai_api_key
        if not resolved_key:
            raise ValueError(
                "No API key configured for OpenAI-compatible provider. "
                "Set LLM_API_KEY or OPENAI_API_KEY in .env"
            )

        client_kwargs: dict = {"api_key": resolved_key}
        if base_url:
            client_kwargs["base_url"] = base_url

        self._client = AsyncOpenAI(**client_kwargs)
        self._model = model or "gpt-5-nano"
        self._temperature = settings.llm_temperature
        self._max_tokens = settings.llm_max_tokens

        logger.info(
            "Initialized OpenAICompatibleProvider (model=%s, base_url=%s)",
            self._model,
            base_url or "https://api.openai.com/v1",
        )

    @property
    def model(self) -> str:
        return self._model

    def _request_kwargs(
        self,
        temperature: float | None,
        max_tokens: int | None,
    ) -> dict:
        limit = max_tokens or self._max_tokens
        if _is_reasoning_model(self._model):
            return {"model": self._model, "max_completion_tokens": limit}
        return {
            "model": self._model,
            "max_tokens": limit,
            "temperature": (
                temperature if temperature is not None else self._temperature
            ),
        }

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Generate a completion using an OpenAI-compatible API."""
        # OpenAI: system prompt goes as the first message
        all_messages: list[dict[str, Any]] = []
        if system:
            all_messages.append({"role": "system", "content": system})
        all_messages.extend(messages)

        response = await self._client.chat.completions.create(
            messages=all_messages,
            **self._request_kwargs(temperature, max_tokens),
        )

        content = response.choices[0].message.content or ""
        usage = response.usage

        return LLMResponse(
            content=content,
            model=response.model or self._model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )

    async def run_tools(
        self,
        messages: list[dict[str, Any]],
        tools: list[Tool],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        max_steps: int = 10,
    ) -> ToolRunResult:
        """Tool loop using OpenAI function calling (`tool_calls`)."""
        tools_by_name = {t.name: t for t in tools}
        tool_specs = [
            {
                "type": "function",
                "function": {
                    "name": t.name,
                    "description": t.description,
                    "parameters": t.json_schema(),
                },
            }
            for t in tools
        ]
        conversation: list[dict[str, Any]] = []
        if system:
            conversation.append({"role": "system", "content": system})
        conversation.extend(messages)
        result = ToolRunResult(text="", model=self._model, steps=0)

        while result.steps < max_steps:
            response = await self._client.chat.completions.create(
                messages=conversation,
                tools=tool_specs,
                **self._request_kwargs(temperature, max_tokens),
            )
            result.steps += 1
            result.model = response.model or self._model
            if response.usage:
                result.input_tokens += response.usage.prompt_tokens
                result.output_tokens += response.usage.completion_tokens

            message = response.choices[0].message
            result.text = message.content or ""
            if not message.tool_calls:
                return result

            conversation.append({
                "role": "assistant",
                "content": message.content or "",
                "tool_calls": [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {
                            "name": call.function.name,
                            "arguments": call.function.arguments,
                        },
                    }
                    for call in message.tool_calls
                ],
            })
            for call in message.tool_calls:
                try:
                    arguments = json.loads(call.function.arguments or "{}")
                except json.JSONDecodeError:
                    arguments = {"_raw": call.function.arguments}
                record = await execute_tool_call(
                    tools_by_name, call.function.name, arguments,
                )
                result.tool_calls.append(record)
                conversation.append({
                    "role": "tool",
                    "tool_call_id": call.id,
                    "content": record.result,
                })

        logger.warning(
            "Tool loop hit max_steps=%d before a final answer (model=%s)",
            max_steps, self._model,
        )
        return result


# ---------------------------------------------------------------------------
# Progress Indicator Wrapper
# ---------------------------------------------------------------------------


class ProgressIndicatorProvider:
    """
    Wraps a provider and logs every call: start, latency, tokens, cost.

    Long generations (dashboard bodies, 20-way relevance filtering) are
    otherwise silent for many seconds.
    """

    def __init__(
        self,
        inner: AnthropicProvider | OpenAICompatibleProvider,
        label: str,
        enabled: bool = True,
    ) -> None:
        self._inner = inner
        self._label = label
        self._enabled = enabled

    @property
    def model(self) -> str:
        return self._inner.model

    @property
    def label(self) -> str:
        return self._label

    def _report(
        self, started: float, model: str, input_tokens: int, output_tokens: int,
        extra: str = "",
    ) -> None:
        if not self._enabled:
            return
        elapsed = time.monotonic() - started
        cost = estimate_cost(
            self._inner.provider_type, model, input_tokens, output_tokens,
        )
        cost_label = f"~${cost:.4f}" if cost is not None else "cost n/a"
        logger.info(
            "[%s] done in %.1fs (tokens %d+%d, %s)%s",
            self._label, elapsed, input_tokens, output_tokens, cost_label, extra,
        )

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        if self._enabled:
            logger.info("[%s] generating...", self._label)
        started = time.monotonic()
        response = await self._inner.complete(
            messages, system=system, temperature=temperature, max_tokens=max_tokens,
        )
        self._report(
            started, response.model, response.input_tokens, response.output_tokens,
        )
        return response

    async def run_tools(
        self,
        messages: list[dict[str, Any]],
        tools: list[Tool],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        max_steps: int = 10,
    ) -> ToolRunResult:
        if self._enabled:
            logger.info(
                "[%s] running with tools: %s",
                self._label, ", ".join(t.name for t in tools),
            )
        started = time.monotonic()
        result = await self._inner.run_tools(
            messages, tools, system=system, temperature=temperature,
            max_tokens=max_tokens, max_steps=max_steps,
        )
        self._report(
            started, result.model, result.input_tokens, result.output_tokens,
            extra=f", {result.steps} steps, {len(result.tool_calls)} tool calls",
        )
        return result


# ---------------------------------------------------------------------------
# Factory Functions
# ---------------------------------------------------------------------------

_KNOWN_PROVIDER_TYPES = {"anthropic", "openai_compatible"}


def _parse_provider_id(
    provider_id: str,
) -> tuple[str, str, str | None]:
    """
    Parse a provider_id string into (provider_type, model, base_url).

    Formats supported:
        "anthropic/claude-haiku-4-5"
            → ("anthropic", "claude-haiku-4-5", None)
        "openai_compatible/gpt-5-nano"
            → ("openai_compatible", "gpt-5-nano", None)
        "openai_compatible/deepseek-chat@https://api.deepseek.com/v1"
            → ("openai_compatible", "deepseek-chat", "https://api.deepseek.com/v1")

    Raises:
        ValueError: If the format is unrecognisable or provider type unknown.
    """
    if "/" not in provider_id:
        raise ValueError(
            f"Invalid provider_id '{provider_id}'. "
            "Expected format: 'provider_type/model' or "
            "'provider_type/model@base_url'"
        )

    provider_type, rest = provider_id.split("/", 1)

    base_url: str | None = None
    if "@" in rest:
        model, base_url = rest.split("@", 1)
    else:
        model = rest

    if provider_type not in _KNOWN_PROVIDER_TYPES:
        raise ValueError(
            f"Unknown provider type '{provider_type}'. "
            f"Supported types: {sorted(_KNOWN_PROVIDER_TYPES)}"
        )
    if not model:
        raise ValueError(f"Invalid provider_id '{provider_id}': empty model name")

    return provider_type, model, base_url


def create_provider_from_id(
    provider_id: str,
    api_key: str | None = None,
) -> AnthropicProvider | OpenAICompatibleProvider:
    """
    Create a fresh provider from a provider ID string.

    Raises:
        ValueError: If provider_id is invalid or API key is missing.
    """
    provider_type, model, base_url = _parse_provider_id(provider_id)

    if provider_type == "anthropic":
        return AnthropicProvider(api_key=api_key, model=model)

    return OpenAICompatibleProvider(
        api_key=api_key, model=model, base_url=base_url,
    )


# Lazy singletons — avoid re-creating clients on every call
_basic_model: ProgressIndicatorProvider | None = None
_advanced_model: ProgressIndicatorProvider | None = None


def get_basic_model() -> ProgressIndicatorProvider:
    """Cheap model handle used for bulk calls."""
    global _basic_model
    if _basic_model is None:
        _basic_model = ProgressIndicatorProvider(
            create_provider_from_id(settings.basic_model_id),
            settings.basic_model_label,
            settings.show_progress_indicators,
        )
    return _basic_model


def get_advanced_model() -> ProgressIndicatorProvider:
    """Stronger model handle used for planning, SQL and synthesis."""
    global _advanced_model
    if _advanced_model is None:
        _advanced_model = ProgressIndicatorProvider(
            create_provider_from_id(settings.advanced_model_id),
            settings.advanced_model_label,
            settings.show_progress_indicators,
        )
    return _advanced_model
