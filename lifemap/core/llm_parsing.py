"""Extraction of JSON arrays from free-form oracle text."""

import json
import re
from typing import Any

from lifemap.core.errors import ParseError
from lifemap.core.logging import get_logger

logger = get_logger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)```", re.DOTALL)


class EmptyResult:
    """The oracle returned no array at all: a valid "nothing to change" outcome."""

    _instance: "EmptyResult | None" = None

    def __new__(cls) -> "EmptyResult":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __len__(self) -> int:
        return 0

    def __iter__(self):
        return iter(())

    def __repr__(self) -> str:
        return "EmptyResult()"


EMPTY_RESULT = EmptyResult()


def _strip_llm_fences(raw_output: str) -> str:
    """Strip markdown code fences from LLM output.

    Handles: ```json ... ```, ``` ... ```, leading/trailing whitespace.
    """
    cleaned = raw_output.strip()

    fence_match = _FENCE_RE.search(cleaned)
    if fence_match:
        return fence_match.group(1).strip()

    # Unterminated fence
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def parse_json_array(raw_output: str) -> list[dict[str, Any]] | EmptyResult:
    """
    Parse the first bracketed JSON array out of oracle text.

    Commentary around the array and code fences are tolerated. The array
    runs from the first "[" to the last "]" (or to the end of the text when
    no closing bracket exists, which then fails to parse).

    Args:
        raw_output: Raw text returned by the oracle

    Returns:
        List of objects, or EMPTY_RESULT when the text contains no array

    Raises:
        ParseError: If a bracketed blob is present but is not a JSON array
            of objects
    """
    cleaned = _strip_llm_fences(raw_output or "")

    start = cleaned.find("[")
    if start == -1:
        return EMPTY_RESULT

    end = cleaned.rfind("]")
    candidate = cleaned[start : end + 1] if end > start else cleaned[start:]

    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse oracle array: {e}; raw={raw_output!r}")
        raise ParseError(raw_output, str(e)) from e

    if not isinstance(parsed, list):
        raise ParseError(raw_output, "top-level value is not an array")

    if any(not isinstance(entry, dict) for entry in parsed):
        raise ParseError(raw_output, "array entries must be objects")

    return parsed
