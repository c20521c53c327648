from __future__ import annotations

import json
import re
from typing import Any

from loguru import logger

from nanobook.errors import JSONExtractionError

_FENCE_RE = re.compile(r"\A```[A-Za-z]*[ \t]*\n?(?P<body>.*?)\n?[ \t]*```\Z", re.DOTALL)


def strip_code_fences(raw_text: str) -> str:
    """Unwrap one outer Markdown fence; fences inside string values are kept."""
    text = raw_text.strip()
    match = _FENCE_RE.match(text)
    if match:
        return match.group("body").strip()
    return text


def extract_json(raw_text: str) -> Any:
    """Recover a JSON value from free-form model output.

    An outer Markdown fence is unwrapped and the remainder parsed directly. When that
    fails, the span from the first `{` to the last `}` is parsed instead, which
    handles commentary such as "Here is the result:" around the object. No
    semantic validation happens here.
    """
    if not raw_text or not raw_text.strip():
        raise JSONExtractionError("Cannot parse empty model output", raw_text or "")

    text = strip_code_fences(raw_text)
    try:
        return json.loads(text)
    except json.JSONDecodeError as direct_error:
        start = text.find("{")
        end = text.rfind("}")
        if start < 0 or end <= start:
            logger.debug(f"JSON extraction failed (no braces). Raw text: {raw_text!r}")
            raise JSONExtractionError(
                f"Failed to parse JSON: {direct_error.msg} (no object found)", raw_text
            ) from direct_error
        try:
            return json.loads(text[start : end + 1])
        except json.JSONDecodeError as span_error:
            logger.debug(f"JSON extraction failed. Raw text: {raw_text!r}")
            raise JSONExtractionError(
                f"Failed to parse JSON: {span_error.msg} at char {span_error.pos}", raw_text
            ) from span_error


def extract_json_object(raw_text: str) -> dict[str, Any]:
    parsed = extract_json(raw_text)
    if not isinstance(parsed, dict):
        raise JSONExtractionError(
            f"Expected a JSON object, got {type(parsed).__name__}", raw_text
        )
    return parsed
