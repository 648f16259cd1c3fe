"""Shared utilities for parsing LLM responses."""

from __future__ import annotations

import json
import re

from .errors import LLMParseError

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*\n?", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\n?```\s*$")


def strip_code_fences(raw: str) -> str:
    """Remove a Markdown code fence wrapped around an LLM response."""
    text = (raw or "").strip()
    text = _FENCE_OPEN.sub("", text)
    text = _FENCE_CLOSE.sub("", text)
    return text.strip()


def parse_llm_json(raw: str) -> dict:
    """Parse a JSON object from an LLM response.

    Tries in order:
    1. Strip markdown code fences, then json.loads
    2. Extract substring between first '{' and last '}', then json.loads

    Raises:
        LLMParseError: if no JSON object can be recovered
    """
    if not raw or not raw.strip():
        raise LLMParseError("Empty LLM response", raw=raw or "")

    text = strip_code_fences(raw)

    try:
        data = json.loads(text)
        if isinstance(data, dict):
            return data
    except json.JSONDecodeError:
        pass

    start = text.find("{")
    end = text.rfind("}") + 1
    if start >= 0 and end > start:
        try:
            data = json.loads(text[start:end])
            if isinstance(data, dict):
                return data
        except json.JSONDecodeError:
            pass

    raise LLMParseError("LLM response is not a JSON object", raw=raw)
