"""Release version and the runtime summary shown under ``--help``."""

from __future__ import annotations

import platform
import sys

__version__ = "0.3.0"
PROJECT_URL = "https://github.com/sokolawesome/tunecli"


def build_help_epilog() -> str:
    python = ".".join(str(part) for part in sys.version_info[:3])
    return "\n".join(
        [
            "Needs mpv on PATH; yt-dlp is only used for YouTube links.",
            f"tunecli {__version__} (Python {python}, {platform.system()} {platform.machine()})",
            PROJECT_URL,
        ]
    )
