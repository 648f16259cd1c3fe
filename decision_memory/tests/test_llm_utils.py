"""Tests for shared LLM response parsing utilities."""

import pytest
from decision_memory.common.errors import LLMParseError
from decision_memory.common.llm_utils import parse_llm_json, strip_code_fences


class TestStripCodeFences:
    def test_json_fence(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_no_fence_untouched(self):
        assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'


class TestParseLlmJson:
    def test_valid_json(self):
        assert parse_llm_json('{"key": "value"}') == {"key": "value"}

    def test_json_with_markdown_fences(self):
        raw = '```json\n{"is_decision": true, "decision_type": "technical"}\n```'
        result = parse_llm_json(raw)
        assert result == {"is_decision": True, "decision_type": "technical"}

    def test_json_with_plain_fences(self):
        raw = '```\n{"a": 1}\n```'
        assert parse_llm_json(raw) == {"a": 1}

    def test_json_embedded_in_text(self):
        raw = 'Here is the result: {"key": "value"} and some trailing text.'
        assert parse_llm_json(raw) == {"key": "value"}

    def test_nested_json(self):
        raw = '{"key_decisions": ["A", "B"], "open_questions": []}'
        result = parse_llm_json(raw)
        assert len(result["key_decisions"]) == 2

    def test_no_json_raises(self):
        with pytest.raises(LLMParseError):
            parse_llm_json("This is not JSON at all")

    def test_empty_string_raises(self):
        with pytest.raises(LLMParseError):
            parse_llm_json("")

    def test_invalid_json_with_braces_raises(self):
        with pytest.raises(LLMParseError) as exc_info:
            parse_llm_json('{"broken: json')
        assert exc_info.value.raw == '{"broken: json'

    def test_json_array_is_not_an_object(self):
        with pytest.raises(LLMParseError):
            parse_llm_json("[1, 2, 3]")
