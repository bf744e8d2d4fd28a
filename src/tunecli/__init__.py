"""tunecli: a headless terminal music player driving mpv over JSON IPC."""

from __future__ import annotations

from .version import __version__

__all__ = ["__version__"]
