"""Time formatting helpers for status output."""

from __future__ import annotations

import math


def format_seconds(seconds: float) -> str:
    """Format seconds as MM:SS, or H:MM:SS from one hour up."""
    return _format_seconds(seconds, force_hours=False)


def format_progress(position: float, duration: float) -> str:
    """Format ``position / duration`` with a shared width.

    Unknown or unbounded durations (live streams) render as dashes.
    """
    hours_mode = _needs_hours(position) or _needs_hours(duration)
    left = _format_seconds(position, force_hours=hours_mode)
    if _coerce_seconds(duration) <= 0:
        right = "--:--:--" if hours_mode else "--:--"
    else:
        right = _format_seconds(duration, force_hours=hours_mode)
    return f"{left} / {right}"


def _needs_hours(seconds: float) -> bool:
    return _coerce_seconds(seconds) >= 3600


def _format_seconds(seconds: float, *, force_hours: bool) -> str:
    total = _coerce_seconds(seconds)
    hours = total // 3600
    minutes = (total // 60) % 60 if hours > 0 or force_hours else total // 60
    secs = total % 60
    if hours > 0 or force_hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def _coerce_seconds(value: float) -> int:
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(numeric):
        return 0
    return max(0, int(numeric))
