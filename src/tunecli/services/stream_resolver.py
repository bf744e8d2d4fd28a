"""Resolve streaming-site references to direct stream URLs via yt-dlp.

This runs before `PlayerOrchestrator.load_file`; the orchestrator itself only
ever sees local paths or direct stream URLs.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress

from tunecli.errors import StreamResolutionError

logger = logging.getLogger(__name__)

STREAM_HOSTS = ("youtube.com", "youtu.be")
DEFAULT_RESOLVER = "yt-dlp"
DEFAULT_RESOLVE_TIMEOUT_S = 30.0


def is_stream_url(reference: str) -> bool:
    """Return whether `reference` points at a site that needs resolving."""
    return any(host in reference for host in STREAM_HOSTS)


async def resolve_media_reference(
    reference: str,
    *,
    resolver: str = DEFAULT_RESOLVER,
    timeout_s: float = DEFAULT_RESOLVE_TIMEOUT_S,
) -> str:
    """Return a loadable reference; local paths pass through unchanged."""
    if not is_stream_url(reference):
        return reference
    logger.info("Resolving stream URL", extra={"reference": reference})
    try:
        process = await asyncio.create_subprocess_exec(
            resolver,
            "-f",
            "ba",
            "-g",
            reference,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise StreamResolutionError(
            "Could not run the stream URL helper.",
            f"spawn {resolver!r} failed: {exc}",
            recovery_hint="Install yt-dlp and make sure it is on PATH.",
        ) from exc
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout_s)
    except asyncio.TimeoutError as exc:
        with suppress(ProcessLookupError):
            process.kill()
        await process.wait()
        raise StreamResolutionError(
            "Timed out resolving the stream URL.",
            f"{resolver} did not finish within {timeout_s:.0f}s for {reference}",
        ) from exc
    if process.returncode != 0:
        detail = stderr.decode("utf-8", errors="replace").strip()
        raise StreamResolutionError(
            "The stream URL helper failed.",
            f"{resolver} exit={process.returncode}: {detail}",
        )
    lines = stdout.decode("utf-8", errors="replace").strip().splitlines()
    stream_url = lines[0].strip() if lines else ""
    if not stream_url:
        raise StreamResolutionError(
            "The stream URL helper returned no stream.",
            f"{resolver} produced empty output for {reference}",
        )
    return stream_url
