"""Wire codec for the engine's JSON IPC protocol.

Commands go out as ``{"command": [...]}`` followed by a newline. Events come
back as one JSON object per line. `decode_line` maps each line onto the
closed `tunecli.events` variant set, and `apply_event` is the pure reducer
that folds an event into a `PlaybackState`.
"""

from __future__ import annotations

import json
import math
import ntpath
import posixpath
import re
from collections.abc import Sequence
from dataclasses import replace

from tunecli.errors import EncodingError
from tunecli.events import (
    OBSERVED_PROPERTIES,
    EndFile,
    EngineEvent,
    Idle,
    PlaybackRestarted,
    PropertyChanged,
    UnknownEvent,
)
from tunecli.services.player_control import VOLUME_MAX, VOLUME_MIN, PlaybackState

_WINDOWS_DRIVE = re.compile(r"^[A-Za-z]:[\\/]")


class DecodeError(ValueError):
    """A line from the engine was not a JSON object."""


def encode_command(command: Sequence[object]) -> bytes:
    """Serialize one command to its newline-terminated wire form."""
    if not command or not isinstance(command[0], str):
        raise EncodingError(
            "Command could not be encoded.",
            f"command must start with a keyword string: {command!r}",
        )
    try:
        payload = json.dumps({"command": list(command)}, allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise EncodingError(
            "Command could not be encoded.", f"{command!r}: {exc}"
        ) from exc
    return payload.encode("utf-8") + b"\n"


def observe_commands() -> list[list[object]]:
    """Return one ``observe_property`` command per tracked property."""
    return [
        ["observe_property", observer_id, name]
        for observer_id, name in enumerate(OBSERVED_PROPERTIES, start=1)
    ]


def decode_line(line: str | bytes) -> EngineEvent | None:
    """Decode one line into an event.

    Returns None for blank lines and for command replies, which carry no
    ``event`` key. Raises `DecodeError` for lines that are not JSON objects.
    """
    if isinstance(line, bytes):
        line = line.decode("utf-8", errors="replace")
    text = line.strip()
    if not text:
        return None
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise DecodeError(f"invalid JSON: {exc.msg}") from exc
    if not isinstance(payload, dict):
        raise DecodeError("event line is not a JSON object")
    kind = payload.get("event")
    if not isinstance(kind, str):
        return None
    if kind == "property-change":
        name = payload.get("name")
        if not isinstance(name, str):
            return UnknownEvent(kind)
        return PropertyChanged(name=name, data=payload.get("data"))
    if kind == "idle":
        return Idle()
    if kind == "end-file":
        reason = payload.get("reason")
        error = payload.get("file_error")
        return EndFile(
            reason=reason if isinstance(reason, str) else None,
            error=error if isinstance(error, str) else None,
        )
    if kind == "playback-restart":
        return PlaybackRestarted()
    return UnknownEvent(kind)


def apply_event(state: PlaybackState, event: EngineEvent) -> PlaybackState:
    """Return the state after `event`; unchanged for anything untracked."""
    if isinstance(event, PropertyChanged):
        return _apply_property(state, event.name, event.data)
    if isinstance(event, Idle):
        return replace(state, is_playing=False)
    if isinstance(event, EndFile):
        if event.reason == "error":
            return replace(
                state,
                is_playing=False,
                last_error=event.error or "playback failed",
            )
        return replace(state, is_playing=False)
    if isinstance(event, PlaybackRestarted):
        return replace(state, is_playing=True, last_error="")
    return state


def _apply_property(state: PlaybackState, name: str, data: object) -> PlaybackState:
    if name == "pause":
        if isinstance(data, bool):
            return replace(state, is_playing=not data)
        return state
    if name == "media-title":
        if data is None:
            return replace(state, title="")
        if isinstance(data, str):
            return replace(state, title=normalize_title(data))
        return state
    if name == "volume":
        number = _as_number(data)
        if number is None:
            return state
        # Half-up, so mpv's 42.5 shows as 43 rather than banker's 42.
        rounded = math.floor(number + 0.5)
        return replace(state, volume=max(VOLUME_MIN, min(VOLUME_MAX, rounded)))
    if name == "time-pos":
        if data is None:
            return replace(state, position=0.0)
        number = _as_number(data)
        if number is None:
            return state
        return replace(state, position=max(0.0, number))
    if name == "duration":
        if data is None:
            return replace(state, duration=0.0)
        number = _as_number(data)
        if number is None:
            return state
        return replace(state, duration=max(0.0, number))
    # Unobserved property: never mutate on names we did not ask for.
    return state


def _as_number(data: object) -> float | None:
    if isinstance(data, bool) or not isinstance(data, (int, float)):
        return None
    number = float(data)
    if not math.isfinite(number):
        return None
    return number


def normalize_title(raw: str) -> str:
    """Trim a title and reduce filesystem paths to their base name.

    Titles such as ``AC/DC - Thunderstruck`` are left alone; only values that
    look like absolute or explicitly relative paths are shortened.
    """
    title = raw.strip()
    if not _looks_like_path(title):
        return title
    if "\\" in title:
        base = ntpath.basename(title.rstrip("\\/"))
    else:
        base = posixpath.basename(title.rstrip("/"))
    return base or title


def _looks_like_path(value: str) -> bool:
    if not value or "://" in value:
        return False
    if value.startswith(("/", "./", "../", "~/", "\\\\")):
        return True
    return bool(_WINDOWS_DRIVE.match(value))
