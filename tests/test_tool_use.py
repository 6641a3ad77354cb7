# =============================================================================
# Unit Tests — Tool Use (calculator, clock, unit converter)
# =============================================================================

from __future__ import annotations

import asyncio
from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from agentic_patterns.agents.tool_use import (
    TOOLS,
    CalculateInput,
    ConvertInput,
    DatetimeInput,
    _calculate,
    _convert_units,
    _get_current_datetime,
    answer_with_tools,
    convert,
    evaluate_expression,
)
from agentic_patterns.services.llm import ToolRunResult, execute_tool_call


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


class TestEvaluateExpression:
    def test_precedence(self):
        assert evaluate_expression("2 + 3 * 4") == 14

    def test_parentheses_and_division(self):
        assert evaluate_expression("(1200 * 0.15) / 12") == pytest.approx(15.0)

    def test_unary_and_power(self):
        assert evaluate_expression("-2 ** 2") == -4

    def test_rejects_names_and_calls(self):
        with pytest.raises(ValueError, match="Unsupported"):
            evaluate_expression("__import__('os').system('ls')")

    def test_rejects_booleans(self):
        with pytest.raises(ValueError):
            evaluate_expression("True + 1")

    def test_division_by_zero(self):
        with pytest.raises(ValueError, match="Division by zero"):
            evaluate_expression("1 / 0")

    def test_huge_exponent(self):
        with pytest.raises(ValueError, match="Exponent too large"):
            evaluate_expression("9 ** 99999")

    def test_nested_powers_are_bounded(self):
        with pytest.raises(ValueError, match="Result too large"):
            evaluate_expression("(10**1000)**5")
        with pytest.raises(ValueError, match="Result too large"):
            evaluate_expression("((9**999)**999)**999")

    def test_large_products_are_bounded(self):
        with pytest.raises(ValueError, match="Result too large"):
            evaluate_expression("10**1000 * 10**1000")

    def test_float_overflow(self):
        with pytest.raises(ValueError, match="Result too large"):
            evaluate_expression("10.0 ** 400")

    def test_moderate_power_still_works(self):
        assert evaluate_expression("2 ** 1000") == 2 ** 1000

    def test_syntax_error(self):
        with pytest.raises(ValueError, match="Invalid expression"):
            evaluate_expression("2 +")


class TestConvert:
    def test_length(self):
        assert convert(42.195, "km", "mi") == pytest.approx(26.2188, rel=1e-4)

    def test_mass_case_insensitive(self):
        assert convert(1, "KG", "lb") == pytest.approx(2.20462, rel=1e-5)

    def test_temperature(self):
        assert convert(100, "C", "F") == pytest.approx(212.0)
        assert convert(0, "K", "C") == pytest.approx(-273.15)

    def test_mismatched_dimensions(self):
        with pytest.raises(ValueError, match="Cannot convert length to mass"):
            convert(1, "m", "kg")

    def test_unknown_unit(self):
        with pytest.raises(ValueError, match="Unsupported unit"):
            convert(1, "parsec", "m")


class TestToolFunctions:
    def test_calculate_returns_int_for_whole_results(self):
        result = _run(_calculate(CalculateInput(expression="10 / 2")))
        assert result == {"expression": "10 / 2", "result": 5}

    def test_convert_units_rounds(self):
        result = _run(_convert_units(ConvertInput(value=1, from_unit="in", to_unit="cm")))
        assert result["result"] == 2.54

    def test_datetime_in_timezone(self):
        result = _run(_get_current_datetime(DatetimeInput(timezone="Asia/Tokyo")))
        assert result["timezone"] == "Asia/Tokyo"
        assert datetime.fromisoformat(result["iso"]).utcoffset().total_seconds() == 9 * 3600

    def test_datetime_defaults_to_utc(self):
        result = _run(_get_current_datetime(DatetimeInput()))
        assert result["timezone"] == "UTC"

    def test_unknown_timezone_is_tool_error(self):
        tools = {t.name: t for t in TOOLS}
        record = _run(execute_tool_call(tools, "get_current_datetime", {"timezone": "Mars/Base"}))
        assert record.is_error
        assert "Unknown timezone" in record.result


class TestAnswerWithTools:
    def test_runs_tool_loop_deterministically(self):
        llm = AsyncMock()
        llm.run_tools.return_value = ToolRunResult(text="About 26.2 miles.", model="m", steps=2)

        result = _run(answer_with_tools("How long is a marathon in miles?", llm=llm))

        assert result.text == "About 26.2 miles."
        kwargs = llm.run_tools.call_args.kwargs
        assert kwargs["temperature"] == 0.0
        assert [t.name for t in kwargs["tools"]] == [
            "calculate", "get_current_datetime", "convert_units",
        ]
        assert kwargs["messages"] == [
            {"role": "user", "content": "How long is a marathon in miles?"},
        ]
