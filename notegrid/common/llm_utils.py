"""Shared utilities for parsing LLM responses."""

from __future__ import annotations

import json
from typing import Optional


def _strip_code_fences(raw: str) -> str:
    if not raw.startswith("```"):
        return raw
    lines = [l for l in raw.split("\n") if not l.strip().startswith("```")]
    return "\n".join(lines)


def parse_llm_json_array(raw: str) -> Optional[list]:
    """Parse a JSON array from an LLM response.

    Models are told to answer with a bare array but sometimes wrap it in code
    fences, add a preamble, or return an object holding the array.

    Tries in order:
    1. Strip markdown code fences, then json.loads
    2. Unwrap a single list-valued key of an object ({"notes": [...]})
    3. Extract substring between first '[' and last ']', then json.loads
    4. Return None
    """
    if not raw or not raw.strip():
        return None

    text = _strip_code_fences(raw.strip())

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        data = None

    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        lists = [v for v in data.values() if isinstance(v, list)]
        if len(lists) == 1:
            return lists[0]
        return None

    start = text.find("[")
    end = text.rfind("]") + 1
    if start >= 0 and end > start:
        try:
            data = json.loads(text[start:end])
        except json.JSONDecodeError:
            return None
        if isinstance(data, list):
            return data

    return None
