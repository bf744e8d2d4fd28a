"""Runtime configuration normalization helpers.

These helpers keep CLI flag interpretation deterministic across entrypoints.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any

from tunecli.settings_store import PlayerSettings

LOAD_MODES = ("replace", "append", "append-play", "insert-next", "insert-next-play")


def resolve_log_level(*, verbose: bool, quiet: bool, default: str = "INFO") -> str:
    """Resolve effective log level from CLI flags.

    Precedence is deterministic: --quiet overrides --verbose, and both
    override the persisted level.
    """
    if quiet:
        return "WARNING"
    if verbose:
        return "DEBUG"
    return default


def apply_cli_overrides(
    settings: PlayerSettings,
    *,
    engine: str | None = None,
    socket_path: str | None = None,
) -> PlayerSettings:
    """Return settings with non-empty CLI flag values taking precedence."""
    changes: dict[str, Any] = {}
    if engine and engine.strip():
        changes["engine_binary"] = engine.strip()
    if socket_path and socket_path.strip():
        changes["socket_path"] = str(Path(socket_path.strip()).expanduser())
    return replace(settings, **changes) if changes else settings
