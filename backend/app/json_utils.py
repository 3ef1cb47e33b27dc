from __future__ import annotations

import json
import re
from typing import Any

_CODE_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def _first_json_value(raw: str) -> Any:
    if not isinstance(raw, str):
        raise ValueError("payload must be a string")
    text = raw.strip()
    if not text:
        raise ValueError("payload is empty")

    fence_match = _CODE_FENCE_RE.search(text)
    if fence_match:
        text = fence_match.group(1).strip()

    decoder = json.JSONDecoder()
    for index, char in enumerate(text):
        if char not in "{[":
            continue
        try:
            obj, _ = decoder.raw_decode(text[index:])
        except json.JSONDecodeError:
            continue
        return obj

    raise ValueError("No JSON value found in payload")


def extract_json_dict(raw: str) -> dict[str, Any]:
    """Extract a JSON object from LLM output that may contain prose or code fences."""
    obj = _first_json_value(raw)
    if not isinstance(obj, dict):
        raise ValueError("JSON root must be an object")
    return obj


def extract_json_list(raw: str, *, key: str | None = None) -> list[Any]:
    """Extract a JSON array from LLM output.

    Models asked for an array often wrap it in an object; when `key` is given,
    `{"<key>": [...]}` is accepted as well.
    """
    obj = _first_json_value(raw)
    if isinstance(obj, dict) and key and isinstance(obj.get(key), list):
        return obj[key]
    if not isinstance(obj, list):
        raise ValueError("JSON root must be an array")
    return obj


__all__ = ["extract_json_dict", "extract_json_list"]
