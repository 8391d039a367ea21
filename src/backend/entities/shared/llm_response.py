"""Parsing helpers for raw LLM responses.

Pure functions: JSON-object extraction and fenced code block extraction.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_CODE_FENCE_PATTERN = re.compile(r"```([A-Za-z0-9_+-]*)[^\n]*\n(.*?)```", re.DOTALL)


def parse_json_object(response_text: str) -> dict[str, Any]:
    """Parse the first JSON object in an LLM response.

    Attempts direct JSON parsing, then markdown code-fence extraction,
    and finally a regex search for an embedded flat JSON object.

    Args:
        response_text: The raw text response from the LLM.

    Returns:
        Parsed dictionary, or an empty dict when nothing parses.
    """
    text = response_text.strip()

    # Direct JSON parse
    try:
        parsed = json.loads(text)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    # Extract from markdown code fence
    for language, body in extract_code_blocks(text):
        if language in {"json", ""}:
            try:
                parsed = json.loads(body)
                if isinstance(parsed, dict):
                    return parsed
            except json.JSONDecodeError:
                pass

    # Regex search for any JSON object
    json_match = re.search(r"\{[^{}]*\}", text, re.DOTALL)
    if json_match:
        try:
            return json.loads(json_match.group())
        except json.JSONDecodeError:
            pass

    logger.warning("No JSON object found in LLM response: %s", text[:200])
    return {}


def extract_code_blocks(text: str, language: str | None = None) -> list[tuple[str, str]]:
    """Return ``(language, body)`` for every fenced code block in ``text``.

    Args:
        text: Markdown text that may contain fenced blocks.
        language: If given, keep only blocks tagged with this language
            (case-insensitive).

    Returns:
        Blocks in document order; ``language`` is lowercased and the body
        is stripped.
    """
    blocks = [
        (match.group(1).lower(), match.group(2).strip())
        for match in _CODE_FENCE_PATTERN.finditer(text)
    ]
    if language is None:
        return blocks
    return [b for b in blocks if b[0] == language.lower()]


def as_string_list(value: Any) -> list[str]:
    """Coerce a JSON value into a list of non-empty strings."""
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if isinstance(item, (str, int)) and str(item).strip()]


def clamp_confidence(value: Any, default: float = 0.0) -> float:
    """Coerce ``value`` to a float in [0, 1], using ``default`` on bad input."""
    try:
        return max(0.0, min(1.0, float(value)))
    except (TypeError, ValueError):
        return default
