import json
import re
from typing import Any, Dict, List, Union, Optional

from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

_MATCH_FLAG_RE = re.compile(r'"match"\s*:\s*(true|false)', re.IGNORECASE)
_REASON_RE = re.compile(r'"reason"\s*:\s*"([^"]*)"', re.IGNORECASE)


def parse_json_safely(text: str) -> Union[Dict[str, Any], List[Any], None]:
    """Parse JSON from text, handling common LLM formatting issues.

    Handles:
    - Markdown code blocks (```json ... ```)
    - Leading/trailing whitespace
    - Prose around a single JSON object

    Args:
        text: The text containing JSON

    Returns:
        Parsed JSON object or None if parsing fails
    """
    if not text:
        return None

    # Clean markdown code blocks
    cleaned_text = text.strip()
    if cleaned_text.startswith("```json"):
        cleaned_text = cleaned_text[7:]
    elif cleaned_text.startswith("```"):
        cleaned_text = cleaned_text[3:]

    if cleaned_text.endswith("```"):
        cleaned_text = cleaned_text[:-3]

    cleaned_text = cleaned_text.strip()

    try:
        return json.loads(cleaned_text)
    except json.JSONDecodeError as e:
        LOGGER.debug(f"Initial JSON parse failed: {e}, attempting repairs...")

    # Look for the first { ... } block
    json_match = re.search(r'(\{[^{}]*(?:\{[^{}]*\}[^{}]*)*\})', cleaned_text, re.DOTALL)
    if json_match:
        try:
            return json.loads(json_match.group(1))
        except json.JSONDecodeError:
            pass

    LOGGER.warning("Failed to parse JSON from model output")
    return None


def parse_match_verdict(text: str) -> Optional[Dict[str, Any]]:
    """Extract a ``{"match": bool, "reason": str}`` verdict from model output.

    Falls back to pattern matching when the output is not valid JSON.

    Args:
        text: Raw model output

    Returns:
        Dict with ``match`` and ``reason`` keys, or None if no verdict is present
    """
    parsed = parse_json_safely(text)
    if isinstance(parsed, dict) and isinstance(parsed.get("match"), bool):
        return {"match": parsed["match"], "reason": str(parsed.get("reason") or "")}

    if not text:
        return None

    flag = _MATCH_FLAG_RE.search(text)
    if not flag:
        return None

    reason = _REASON_RE.search(text)
    return {
        "match": flag.group(1).lower() == "true",
        "reason": reason.group(1) if reason else "",
    }
