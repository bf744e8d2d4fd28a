"""Ownership of the engine control socket path."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from tunecli.errors import StartupFailure

logger = logging.getLogger(__name__)


class SocketPathManager:
    """Owns the control socket path and clears stale socket files.

    The engine refuses to bind a path that already exists, so `cleanup()`
    must run before every spawn.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def __str__(self) -> str:
        return str(self.path)

    def exists(self) -> bool:
        return self.path.exists()

    def cleanup(self) -> None:
        """Remove any existing socket file; a missing file is fine."""
        try:
            os.unlink(self.path)
        except FileNotFoundError:
            return
        except OSError as exc:
            raise StartupFailure(
                "Could not remove the stale engine socket.",
                f"unlink {self.path} failed: {exc}",
                recovery_hint=f"Remove '{self.path}' manually or pick another socket path.",
            ) from exc
        logger.debug("Removed stale socket file %s", self.path)
