"""Playback state snapshot and the consumer-facing control contract.

UI layers, desktop bridges, and the CLI depend on `PlayerControl` rather than
on the orchestrator class, so they can be exercised against any object that
offers the same commands and notification stream.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from tunecli.services.state_store import Subscription

VOLUME_MIN = 0
VOLUME_MAX = 100


@dataclass(frozen=True)
class PlaybackState:
    """Immutable snapshot of engine playback state."""

    is_playing: bool = False
    title: str = ""
    volume: int = 100
    position: float = 0.0
    duration: float = 0.0
    last_error: str = ""

    @property
    def is_stopped(self) -> bool:
        """Nothing is loaded, whatever the pause flag says."""
        return self.title == ""


class LifecycleState(enum.Enum):
    """Orchestrator lifecycle phases."""

    UNSTARTED = "unstarted"
    STARTING = "starting"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


@runtime_checkable
class PlayerControl(Protocol):
    """Control surface consumed by UI and integration layers."""

    @property
    def lifecycle(self) -> LifecycleState: ...

    async def load_file(self, path: str, mode: str = "replace") -> None: ...

    async def toggle_pause(self) -> None: ...

    async def stop(self) -> None: ...

    async def set_volume(self, volume: int) -> None: ...

    async def seek(self, seconds: float) -> None: ...

    def get_state(self) -> PlaybackState: ...

    def subscribe(self, maxsize: int | None = None) -> Subscription: ...

    def unsubscribe(self, subscription: Subscription) -> None: ...

    async def shutdown(self) -> None: ...
