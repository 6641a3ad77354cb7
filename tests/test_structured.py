# =============================================================================
# Unit Tests — Structured Output
# =============================================================================

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest
from pydantic import BaseModel

from agentic_patterns.services.llm import LLMResponse
from agentic_patterns.services.structured import (
    StructuredOutputError,
    extract_json_object,
    generate_object,
    parse_object,
)


def _run(coro):
    return asyncio.run(coro)


class Verdict(BaseModel):
    ok: bool
    reason: str


class TestExtractJsonObject:
    def test_plain_object(self):
        assert extract_json_object('{"ok": true}') == '{"ok": true}'

    def test_strips_code_fence(self):
        text = '```json\n{"ok": true}\n```'
        assert extract_json_object(text) == '{"ok": true}'

    def test_strips_surrounding_prose(self):
        text = 'Sure! Here it is: {"ok": false} Hope that helps.'
        assert extract_json_object(text) == '{"ok": false}'


class TestParseObject:
    def test_valid(self):
        result = parse_object('{"ok": true, "reason": "fine"}', Verdict)
        assert result == Verdict(ok=True, reason="fine")

    def test_invalid_keeps_raw_text(self):
        with pytest.raises(StructuredOutputError) as exc_info:
            parse_object("I cannot answer that.", Verdict)
        assert exc_info.value.raw == "I cannot answer that."
        assert isinstance(exc_info.value, ValueError)

    def test_missing_field(self):
        with pytest.raises(StructuredOutputError, match="Verdict"):
            parse_object('{"ok": true}', Verdict)


class TestGenerateObject:
    def test_sends_schema_and_parses(self):
        mock_llm = AsyncMock()
        mock_llm.complete.return_value = LLMResponse(
            content='{"ok": true, "reason": "matches"}',
            model="test-model", input_tokens=10, output_tokens=5,
        )

        result = _run(generate_object(mock_llm, Verdict, "Check this", system="Be strict."))

        assert result.ok is True
        kwargs = mock_llm.complete.call_args.kwargs
        assert kwargs["system"].startswith("Be strict.")
        assert '"reason"' in kwargs["system"]
        assert kwargs["temperature"] == 0.0
        assert kwargs["messages"] == [{"role": "user", "content": "Check this"}]
