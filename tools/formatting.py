"""Display formatting helpers for timeline text."""

from __future__ import annotations

from typing import Any


def format_duration(ms: int) -> str:
    """Format milliseconds as ``"1h 2m 3s"``.

    Hours and minutes are omitted when zero; seconds are shown when non-zero
    or when they are the only unit.
    """
    total_seconds = max(0, int(ms)) // 1000
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    parts: list[str] = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if seconds > 0 or not parts:
        parts.append(f"{seconds}s")
    return " ".join(parts)


def truncate(value: Any, limit: int) -> str:
    """Return ``str(value)`` cut to ``limit`` characters, with ``...`` if cut."""
    text = str(value)
    if len(text) > limit:
        return text[:limit] + "..."
    return text
