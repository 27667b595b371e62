"""Best-effort parsers for structured model output.

Models are asked for tagged sections or JSON but do not always comply.
These helpers never raise on malformed text: they return ``None`` (or an
empty value) and leave the fallback decision to the caller.
"""

from __future__ import annotations

import json
import re
from typing import Any

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def count_words(text: str) -> int:
    """Number of whitespace-separated tokens in *text*."""
    return len(text.split())


def truncate_words(text: str, limit: int) -> str:
    """Cut *text* down to *limit* words, marking the cut with an ellipsis."""
    words = text.split()
    if len(words) <= limit:
        return text.strip()
    return " ".join(words[:limit]) + "..."


def extract_tagged(text: str, *tags: str) -> str | None:
    """Return the body of the first ``<tag>...</tag>`` found, trying *tags* in order."""
    for tag in tags:
        match = re.search(
            rf"<{tag}>(.*?)</{tag}>", text, re.DOTALL | re.IGNORECASE
        )
        if match:
            return match.group(1).strip()
    return None


def _candidates(text: str, opener: str, closer: str) -> list[str]:
    found: list[str] = []
    stripped = text.strip()
    found.append(stripped)
    for fenced in _FENCE_RE.findall(text):
        found.append(fenced.strip())
    start, end = text.find(opener), text.rfind(closer)
    if start != -1 and end > start:
        found.append(text[start:end + 1])
    return found


def extract_json_object(text: str) -> dict[str, Any] | None:
    """Find and decode a JSON object in *text* (bare, fenced, or embedded)."""
    for candidate in _candidates(text, "{", "}"):
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            return value
    return None


def extract_json_array(text: str) -> list[Any] | None:
    """Find and decode a JSON array in *text* (bare, fenced, or embedded)."""
    for candidate in _candidates(text, "[", "]"):
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(value, list):
            return value
    return None
