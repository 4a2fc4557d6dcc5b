"""Named dynamic replacement callbacks usable from rules files and the API."""

from __future__ import annotations

from typing import Any

from mqreplace.patterns.models import ReplacementCallback
from mqreplace.render.context import current_match
from mqreplace.render.template import escape_replacement


def counter(context: Any, occurrence_count: int) -> str:
    """Insert a running number: ``format.format(start + occurrence_count)``."""

    options = context or {}
    start = int(options.get("start", 0))
    pattern = str(options.get("format", "{}"))
    return escape_replacement(pattern.format(start + occurrence_count))


def upcase(context: Any, occurrence_count: int) -> str:
    return escape_replacement(_group_text(context).upper())


def downcase(context: Any, occurrence_count: int) -> str:
    return escape_replacement(_group_text(context).lower())


def _group_text(context: Any) -> str:
    group = (context or {}).get("group", 0)
    text = current_match().group(group)
    return text if isinstance(text, str) else ""


_SUPPORTED_CALLBACKS: dict[str, ReplacementCallback] = {
    "counter": counter,
    "downcase": downcase,
    "upcase": upcase,
}


def get_callback(name: str) -> ReplacementCallback:
    """Resolve a supported callback by name."""

    try:
        return _SUPPORTED_CALLBACKS[name]
    except KeyError as exc:
        raise ValueError(f"Unsupported callback: {name}") from exc


def list_supported_callbacks() -> list[str]:
    """Return supported callback names in stable order."""

    return sorted(_SUPPORTED_CALLBACKS)
