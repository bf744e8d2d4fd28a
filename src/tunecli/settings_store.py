"""JSON persistence for user-editable player settings.

Loading is tolerant of missing or invalid values so a hand-edited or
partially written file degrades to safe defaults instead of aborting
startup.
"""

from __future__ import annotations

import json
import logging
import math
import time
from contextlib import suppress
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit
from uuid import uuid4

from tunecli.services.orchestrator import OrchestratorConfig
from tunecli.services.player_control import VOLUME_MAX, VOLUME_MIN
from tunecli.services.state_store import DEFAULT_SUBSCRIBER_BUFFER

logger = logging.getLogger(__name__)

_TIMEOUT_MIN_S = 0.1
_TIMEOUT_MAX_S = 120.0


@dataclass(frozen=True)
class RadioStation:
    """A named stream the user can play with ``tunecli play --station``."""

    name: str
    url: str
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class PlayerSettings:
    """Persisted engine and timing preferences."""

    engine_binary: str = "mpv"
    engine_args: tuple[str, ...] = ()
    socket_path: str | None = None
    initial_volume: int = 100
    startup_timeout_s: float = 5.0
    command_timeout_s: float = 3.0
    shutdown_timeout_s: float = 2.0
    subscriber_buffer: int = DEFAULT_SUBSCRIBER_BUFFER
    resolver_binary: str = "yt-dlp"
    log_level: str = "INFO"
    music_dirs: tuple[str, ...] = ()
    stations: tuple[RadioStation, ...] = ()

    def find_station(self, name: str) -> RadioStation | None:
        """Look up a station by name, ignoring case and surrounding space."""
        wanted = name.strip().casefold()
        for station in self.stations:
            if station.name.casefold() == wanted:
                return station
        return None

    def to_orchestrator_config(self) -> OrchestratorConfig:
        return OrchestratorConfig(
            engine=(self.engine_binary,),
            engine_args=self.engine_args,
            socket_path=Path(self.socket_path) if self.socket_path else None,
            startup_timeout_s=self.startup_timeout_s,
            command_timeout_s=self.command_timeout_s,
            shutdown_timeout_s=self.shutdown_timeout_s,
            subscriber_buffer=self.subscriber_buffer,
        )


def _coerce_settings(data: dict[str, Any]) -> PlayerSettings:
    """Coerce an untyped JSON object into `PlayerSettings` with safe defaults."""
    defaults = PlayerSettings()

    def _str_or_default(value: Any, default: str) -> str:
        if isinstance(value, str) and value.strip():
            return value.strip()
        return default

    def _timeout_or_default(value: Any, default: float) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return default
        normalized = float(value)
        if not math.isfinite(normalized):
            return default
        return max(_TIMEOUT_MIN_S, min(_TIMEOUT_MAX_S, normalized))

    def _int_in_range(value: Any, default: int, low: int, high: int) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            return default
        return max(low, min(high, value))

    raw_args = data.get("engine_args")
    engine_args = (
        tuple(value for value in raw_args if isinstance(value, str) and value.strip())
        if isinstance(raw_args, list)
        else ()
    )
    socket_path = data.get("socket_path")

    return PlayerSettings(
        engine_binary=_str_or_default(data.get("engine_binary"), defaults.engine_binary),
        engine_args=engine_args,
        socket_path=socket_path.strip()
        if isinstance(socket_path, str) and socket_path.strip()
        else None,
        initial_volume=_int_in_range(
            data.get("initial_volume"), defaults.initial_volume, VOLUME_MIN, VOLUME_MAX
        ),
        startup_timeout_s=_timeout_or_default(
            data.get("startup_timeout_s"), defaults.startup_timeout_s
        ),
        command_timeout_s=_timeout_or_default(
            data.get("command_timeout_s"), defaults.command_timeout_s
        ),
        shutdown_timeout_s=_timeout_or_default(
            data.get("shutdown_timeout_s"), defaults.shutdown_timeout_s
        ),
        subscriber_buffer=_int_in_range(
            data.get("subscriber_buffer"), defaults.subscriber_buffer, 1, 1000
        ),
        resolver_binary=_str_or_default(
            data.get("resolver_binary"), defaults.resolver_binary
        ),
        log_level=_str_or_default(data.get("log_level"), defaults.log_level).upper(),
        music_dirs=_string_list(data.get("music_dirs")),
        stations=_coerce_stations(data.get("stations")),
    )


def _string_list(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(item.strip() for item in value if isinstance(item, str) and item.strip())


def _coerce_stations(value: Any) -> tuple[RadioStation, ...]:
    """Keep well-formed station entries; skip the rest with a warning."""
    if not isinstance(value, list):
        return ()
    stations: list[RadioStation] = []
    names: set[str] = set()
    for index, entry in enumerate(value):
        station = _coerce_station(entry)
        if station is None:
            logger.warning("Ignoring invalid radio station entry %d.", index)
            continue
        if station.name.casefold() in names:
            logger.warning("Ignoring duplicate radio station %r.", station.name)
            continue
        names.add(station.name.casefold())
        stations.append(station)
    return tuple(stations)


def _coerce_station(entry: Any) -> RadioStation | None:
    if not isinstance(entry, dict):
        return None
    name = entry.get("name")
    url = entry.get("url")
    if not isinstance(name, str) or not name.strip():
        return None
    if not isinstance(url, str) or not is_valid_station_url(url):
        return None
    return RadioStation(
        name=name.strip(), url=url.strip(), tags=_string_list(entry.get("tags"))
    )


def is_valid_station_url(url: str) -> bool:
    """Accept absolute network URLs such as ``https://host/stream``."""
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return False
    return bool(parts.scheme and parts.netloc)


def load_settings_with_notice(path: Path) -> tuple[PlayerSettings, str | None]:
    """Load settings and return an optional user-facing notice."""
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.info("Settings file missing at %s; using defaults.", path)
        return PlayerSettings(), None
    except OSError as exc:
        logger.warning("Failed to read settings %s: %s; using defaults.", path, exc)
        return (
            PlayerSettings(),
            "Settings were reset to defaults.\n"
            "Likely cause: settings file is unreadable due to permissions or IO issues.\n"
            f"Next step: verify access to '{path}' and restart.",
        )

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Settings file at %s is invalid JSON; using defaults.", path)
        return (
            PlayerSettings(),
            "Settings were reset to defaults.\n"
            "Likely cause: settings file is corrupt or partially written.\n"
            f"Next step: remove or repair '{path}' and restart.",
        )

    if not isinstance(data, dict):
        logger.warning("Settings file at %s is not a JSON object; using defaults.", path)
        return (
            PlayerSettings(),
            "Settings were reset to defaults.\n"
            "Likely cause: settings file format is invalid for this version.\n"
            f"Next step: remove '{path}' and restart.",
        )

    return _coerce_settings(data), None


def load_settings(path: Path) -> PlayerSettings:
    """Load settings from disk, falling back to defaults."""
    settings, _notice = load_settings_with_notice(path)
    return settings


def save_settings(path: Path, settings: PlayerSettings) -> None:
    """Persist settings atomically via write-then-replace."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.name}.{uuid4().hex}.tmp")
    payload = asdict(settings)
    payload["engine_args"] = list(settings.engine_args)
    payload["music_dirs"] = list(settings.music_dirs)
    payload["stations"] = [
        {"name": station.name, "url": station.url, "tags": list(station.tags)}
        for station in settings.stations
    ]
    text = json.dumps(payload, indent=2, sort_keys=True)
    delay_s = 0.02
    try:
        for attempt in range(4):
            tmp_path.write_text(text, encoding="utf-8")
            try:
                tmp_path.replace(path)
                return
            except OSError as exc:
                if not _is_retryable_replace_error(exc) or attempt >= 3:
                    raise
                time.sleep(delay_s)
                delay_s = min(0.25, delay_s * 2.0)
    finally:
        with suppress(OSError):
            tmp_path.unlink()


def _is_retryable_replace_error(exc: OSError) -> bool:
    """Return whether an atomic replace failure is likely transient."""
    winerror = getattr(exc, "winerror", None)
    if winerror in {32, 5, 2}:
        return True
    return getattr(exc, "errno", None) in {13, 16}
