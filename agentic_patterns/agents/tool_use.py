# =============================================================================
# Tool Use — Let the Model Call Python Functions
# =============================================================================
#
# The advanced model answers a question with access to three tools. The
# tool loop (services.llm run_tools) executes every requested call,
# feeds the result back and repeats until the model answers in text.
#
# TOOLS:
#   calculate            — arithmetic expression evaluator (ast, no eval)
#   get_current_datetime — current time, optionally in an IANA timezone
#   convert_units        — length / mass / temperature conversions
#
# DESIGN DECISION: The calculator walks the AST and only accepts numeric
# literals and arithmetic operators. Names, calls and attributes are
# rejected, so model-written expressions cannot execute code.
# =============================================================================

from __future__ import annotations

import ast
import logging
import math
import operator
from datetime import datetime, timezone
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field

from agentic_patterns.config import settings
from agentic_patterns.services.inputs import load_input
from agentic_patterns.services.llm import (
    LLMProvider,
    Tool,
    ToolRunResult,
    get_advanced_model,
)

logger = logging.getLogger(__name__)


class ToolUseInput(BaseModel):
    """data/inputs/tool_use.json"""

    question: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# calculate
# ---------------------------------------------------------------------------

_BINARY_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_UNARY_OPS = {ast.UAdd: operator.pos, ast.USub: operator.neg}
_MAX_EXPONENT = 1000
# About 1000 decimal digits, well under the int-to-str conversion limit
_MAX_RESULT_BITS = 3322


def evaluate_expression(expression: str) -> float:
    """
    Evaluate an arithmetic expression safely.

    Raises:
        ValueError: For syntax errors, unsupported constructs, division by
            zero, exponents above _MAX_EXPONENT and results above
            _MAX_RESULT_BITS.
    """
    try:
        tree = ast.parse(expression, mode="eval")
    except SyntaxError as e:
        raise ValueError(f"Invalid expression: {expression!r}") from e

    def _eval(node: ast.AST) -> float:
        if isinstance(node, ast.Expression):
            return _eval(node.body)
        if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) \
                and not isinstance(node.value, bool):
            return node.value
        if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
            left, right = _eval(node.left), _eval(node.right)
            if isinstance(node.op, ast.Pow):
                if abs(right) > _MAX_EXPONENT:
                    raise ValueError("Exponent too large")
                # Estimate the size before computing it
                if abs(left) > 1 and right > 0 \
                        and right * math.log2(abs(left)) > _MAX_RESULT_BITS:
                    raise ValueError("Result too large")
            try:
                return _check_size(_BINARY_OPS[type(node.op)](left, right))
            except ZeroDivisionError as e:
                raise ValueError("Division by zero") from e
            except OverflowError as e:
                raise ValueError("Result too large") from e
        if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
            return _UNARY_OPS[type(node.op)](_eval(node.operand))
        raise ValueError(f"Unsupported syntax: {ast.dump(node)[:60]}")

    return _eval(tree)


def _check_size(value: float) -> float:
    if isinstance(value, int) and value.bit_length() > _MAX_RESULT_BITS:
        raise ValueError("Result too large")
    return value


class CalculateInput(BaseModel):
    expression: str = Field(
        description="Arithmetic expression, e.g. '(1200 * 0.15) / 12'",
    )


async def _calculate(params: CalculateInput) -> dict:
    result = evaluate_expression(params.expression)
    if isinstance(result, float) and math.isfinite(result) and result.is_integer():
        result = int(result)
    return {"expression": params.expression, "result": result}


# ---------------------------------------------------------------------------
# get_current_datetime
# ---------------------------------------------------------------------------


class DatetimeInput(BaseModel):
    timezone: str | None = Field(
        default=None,
        description="IANA timezone name such as 'Europe/Paris'; UTC if omitted",
    )


async def _get_current_datetime(params: DatetimeInput) -> dict:
    if params.timezone:
        try:
            tz = ZoneInfo(params.timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone '{params.timezone}'") from e
    else:
        tz = timezone.utc
    now = datetime.now(tz)
    return {
        "timezone": params.timezone or "UTC",
        "iso": now.isoformat(timespec="seconds"),
        "weekday": now.strftime("%A"),
    }


# ---------------------------------------------------------------------------
# convert_units
# ---------------------------------------------------------------------------

# Factors to the base unit of each dimension (metre, kilogram)
_LINEAR_UNITS: dict[str, tuple[str, float]] = {
    "mm": ("length", 0.001),
    "cm": ("length", 0.01),
    "m": ("length", 1.0),
    "km": ("length", 1000.0),
    "in": ("length", 0.0254),
    "ft": ("length", 0.3048),
    "yd": ("length", 0.9144),
    "mi": ("length", 1609.344),
    "g": ("mass", 0.001),
    "kg": ("mass", 1.0),
    "oz": ("mass", 0.028349523125),
    "lb": ("mass", 0.45359237),
}
_TEMPERATURE_UNITS = {"c", "f", "k"}


def convert(value: float, from_unit: str, to_unit: str) -> float:
    """
    Convert between supported units.

    Raises:
        ValueError: For unknown units or units of different dimensions.
    """
    src, dst = from_unit.strip().lower(), to_unit.strip().lower()

    if src in _TEMPERATURE_UNITS and dst in _TEMPERATURE_UNITS:
        celsius = {"c": value, "f": (value - 32) * 5 / 9, "k": value - 273.15}[src]
        return {"c": celsius, "f": celsius * 9 / 5 + 32, "k": celsius + 273.15}[dst]

    if src not in _LINEAR_UNITS or dst not in _LINEAR_UNITS:
        raise ValueError(f"Unsupported unit conversion: {from_unit} → {to_unit}")
    src_dim, src_factor = _LINEAR_UNITS[src]
    dst_dim, dst_factor = _LINEAR_UNITS[dst]
    if src_dim != dst_dim:
        raise ValueError(f"Cannot convert {src_dim} to {dst_dim}")
    return value * src_factor / dst_factor


class ConvertInput(BaseModel):
    value: float
    from_unit: str = Field(description="One of: mm cm m km in ft yd mi g kg oz lb C F K")
    to_unit: str = Field(description="Target unit, same dimension as from_unit")


async def _convert_units(params: ConvertInput) -> dict:
    result = convert(params.value, params.from_unit, params.to_unit)
    return {
        "value": params.value,
        "from_unit": params.from_unit,
        "to_unit": params.to_unit,
        "result": round(result, 6),
    }


# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------

TOOLS: list[Tool] = [
    Tool(
        name="calculate",
        description="Evaluate an arithmetic expression. Use for every calculation.",
        input_model=CalculateInput,
        execute=_calculate,
    ),
    Tool(
        name="get_current_datetime",
        description="Get the current date and time, optionally in a timezone.",
        input_model=DatetimeInput,
        execute=_get_current_datetime,
    ),
    Tool(
        name="convert_units",
        description="Convert a value between length, mass or temperature units.",
        input_model=ConvertInput,
        execute=_convert_units,
    ),
]

SYSTEM_PROMPT = (
    "You are a precise assistant. Use the tools for every calculation, date "
    "lookup and unit conversion instead of computing in your head. When you "
    "have everything you need, give a short final answer that shows the key "
    "numbers."
)

MAX_STEPS = 10


async def answer_with_tools(
    question: str,
    llm: LLMProvider | None = None,
    max_steps: int = MAX_STEPS,
) -> ToolRunResult:
    llm = llm or get_advanced_model()
    return await llm.run_tools(
        messages=[{"role": "user", "content": question}],
        tools=TOOLS,
        system=SYSTEM_PROMPT,
        temperature=0.0,
        max_steps=max_steps,
    )


async def main(input_path: Path | None = None) -> ToolRunResult:
    """Entry point used by the CLI."""
    tool_input = load_input(
        input_path or settings.inputs_dir / "tool_use.json", ToolUseInput,
    )
    print(f"Q: {tool_input.question}\n")
    result = await answer_with_tools(tool_input.question)

    for call in result.tool_calls:
        status = "error" if call.is_error else "ok"
        print(f"[tool:{call.name}] ({status}) {call.arguments} → {call.result}")
    print(f"\nAnswer:\n{result.text}")
    return result
