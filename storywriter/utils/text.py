"""Shared string helpers for prompts and generated text."""

import re
from typing import Optional

NOT_PROVIDED = "(not provided)"
TRUNCATION_MARKER = "\n... [truncated]"

_OPENING_FENCE = re.compile(r"^```[A-Za-z0-9_-]*[ \t]*\n?")
_CLOSING_FENCE = re.compile(r"\n?```$")


def nvl(value: Optional[str]) -> str:
    """Return value, or the explicit placeholder when it is missing."""
    return value if value is not None else NOT_PROVIDED


def truncate(value: Optional[str], max_chars: int) -> str:
    """Cut value to max_chars, appending a marker when something was dropped."""
    if value is None:
        return ""
    if len(value) > max_chars:
        return value[:max_chars] + TRUNCATION_MARKER
    return value


def strip_code_fence(raw: str) -> str:
    """
    Remove a single Markdown code fence wrapping the text.

    Text that does not start with a fence is returned trimmed but otherwise unchanged.
    """
    text = raw.strip()
    if not text.startswith("```"):
        return text
    text = _OPENING_FENCE.sub("", text, count=1)
    text = _CLOSING_FENCE.sub("", text, count=1)
    return text.strip()


def preview(value: str, limit: int = 200) -> str:
    """Single-line preview used in log messages."""
    flat = " ".join(value.split())
    if len(flat) <= limit:
        return flat
    return flat[:limit] + "...[truncated]"
