"""Find playable audio files under the configured music directories."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

AUDIO_EXTENSIONS = frozenset(
    {
        ".aac",
        ".flac",
        ".m4a",
        ".mp3",
        ".ogg",
        ".opus",
        ".wav",
        ".wma",
    }
)
"""Suffixes (lowercase) treated as audio when scanning music directories."""


@dataclass(frozen=True)
class MusicFile:
    """One audio file found during a scan."""

    path: Path
    size: int
    modified: float

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def directory(self) -> Path:
        return self.path.parent


def is_audio_file(path: Path) -> bool:
    return path.suffix.lower() in AUDIO_EXTENSIONS


def expand_music_dir(raw: str) -> Path:
    """Expand a leading ``~`` in a configured directory."""
    return Path(raw.strip()).expanduser()


def scan_directories(dirs: Iterable[str]) -> list[MusicFile]:
    """Walk each directory recursively and return its audio files.

    Missing directories are skipped. Entries that vanish or cannot be
    stat'ed mid-scan are ignored. Results are ordered by directory order,
    then by path within each directory, with duplicates dropped.
    """
    found: list[MusicFile] = []
    seen: set[Path] = set()
    for raw in dirs:
        root = expand_music_dir(raw)
        if not root.is_dir():
            logger.info("Music directory %s not found; skipping.", root)
            continue
        batch: list[MusicFile] = []
        for path in root.rglob("*"):
            if not is_audio_file(path) or path in seen:
                continue
            try:
                if not path.is_file():
                    continue
                info = path.stat()
            except OSError as exc:
                logger.debug("Skipping unreadable entry %s: %s", path, exc)
                continue
            seen.add(path)
            batch.append(MusicFile(path=path, size=info.st_size, modified=info.st_mtime))
        batch.sort(key=lambda item: str(item.path).casefold())
        logger.debug("Scanned %s: %d audio files", root, len(batch))
        found.extend(batch)
    return found
