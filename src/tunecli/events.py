"""Decoded engine event models.

The engine emits loosely-typed JSON objects; `tunecli.services.ipc_protocol`
turns each line into exactly one of these variants so the state engine can
dispatch over a closed set instead of raw dictionaries.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Union

ObservedProperty = Literal["pause", "media-title", "volume", "time-pos", "duration"]

OBSERVED_PROPERTIES: tuple[ObservedProperty, ...] = (
    "pause",
    "media-title",
    "volume",
    "time-pos",
    "duration",
)


@dataclass(frozen=True)
class PropertyChanged:
    """An observed property changed value."""

    name: str
    data: object


@dataclass(frozen=True)
class Idle:
    """The engine has nothing loaded."""


@dataclass(frozen=True)
class EndFile:
    """The current file finished, was stopped, or failed."""

    reason: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class PlaybackRestarted:
    """Playback (re)started after load or seek."""


@dataclass(frozen=True)
class UnknownEvent:
    """Any event kind the orchestrator does not track."""

    kind: str


EngineEvent = Union[PropertyChanged, Idle, EndFile, PlaybackRestarted, UnknownEvent]
