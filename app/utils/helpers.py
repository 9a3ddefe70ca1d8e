"""
Common utility functions and helpers.
"""
from datetime import datetime, timezone
from typing import Any, List, Optional
import json
import re


_CITATION_RE = re.compile(r"\[\d+(?:,\s*\d+)*\]")
_CODE_FENCE_RE = re.compile(r"```(?:json)?\n?|\n?```")


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def strip_markdown(text: str) -> str:
    """
    Strip markdown formatting from text.

    Args:
        text: Markdown text

    Returns:
        Plain text with headers, emphasis, links, code and list markers removed
    """
    if not text:
        return ""
    text = re.sub(r"```[\s\S]*?```", "", text)
    text = re.sub(r"#{1,6}\s+", "", text)
    text = re.sub(r"\*\*([^*]+)\*\*", r"\1", text)
    text = re.sub(r"\*([^*]+)\*", r"\1", text)
    text = re.sub(r"\[([^\]]+)\]\([^)]+\)", r"\1", text)
    text = re.sub(r"`([^`]+)`", r"\1", text)
    text = re.sub(r"^\s*[-*+]\s+", "", text, flags=re.MULTILINE)
    text = re.sub(r"^\s*\d+\.\s+", "", text, flags=re.MULTILINE)
    text = re.sub(r">\s+", "", text)
    return text.strip()


def clean_citations(text: str) -> str:
    """Remove numeric citation markers such as ``[1]`` or ``[2, 3]``."""
    return _CITATION_RE.sub("", text or "")


def count_words(text: str) -> int:
    """Count whitespace-separated words."""
    return len([word for word in re.split(r"\s+", text or "") if word])


def strip_code_fences(text: str) -> str:
    """Remove ```json fences an LLM may wrap around structured output."""
    return _CODE_FENCE_RE.sub("", text or "").strip()


def extract_json_array(text: str) -> Optional[List[Any]]:
    """
    Parse the first JSON array found in an LLM reply.

    Args:
        text: Raw model output, possibly with prose or fences around the JSON

    Returns:
        The parsed list, or None when no valid array is present
    """
    if not text:
        return None
    candidates = []
    match = re.search(r"\[[\s\S]*\]", text)
    if match:
        candidates.append(match.group(0))
    candidates.append(strip_code_fences(text))

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except (json.JSONDecodeError, ValueError):
            continue
        if isinstance(parsed, list):
            return parsed
    return None


def escape_like(value: str, escape: str = "\\") -> str:
    """Escape LIKE wildcards so *value* matches literally."""
    return (
        value.replace(escape, escape + escape)
        .replace("%", escape + "%")
        .replace("_", escape + "_")
    )


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round halves away from zero for non-negative values (dashboard rounding)."""
    factor = 10 ** ndigits
    rounded = int(value * factor + 0.5) / factor
    return int(rounded) if ndigits == 0 else rounded


def percentage(count: int, total: int) -> int:
    """Whole-number percentage of *count* in *total* (0 when total is 0)."""
    if total <= 0:
        return 0
    return int(round_half_up(count / total * 100))
