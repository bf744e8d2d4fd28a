"""Path helpers for per-user app data and the engine control socket."""

from __future__ import annotations

import os
import tempfile
from functools import lru_cache
from pathlib import Path
from uuid import uuid4

from platformdirs import AppDirs

DEFAULT_APP_NAME = "tunecli"


@lru_cache(maxsize=4)
def get_app_dirs(app_name: str = DEFAULT_APP_NAME) -> AppDirs:
    """Platform directory lookup, cached per app name."""
    return AppDirs(app_name, appauthor=False)


def _ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def data_dir(app_name: str = DEFAULT_APP_NAME) -> Path:
    """Per-user data root (logs live below it); created on first use."""
    return _ensure_dir(Path(get_app_dirs(app_name).user_data_dir))


def config_dir(app_name: str = DEFAULT_APP_NAME) -> Path:
    """Per-user config root holding ``settings.json``; created on first use."""
    return _ensure_dir(Path(get_app_dirs(app_name).user_config_dir))


def log_dir(app_name: str = DEFAULT_APP_NAME) -> Path:
    """Directory for the rotating JSON log files."""
    return _ensure_dir(data_dir(app_name) / "logs")


def settings_path(app_name: str = DEFAULT_APP_NAME) -> Path:
    """Return the JSON settings file path."""
    return config_dir(app_name) / "settings.json"


def runtime_dir(app_name: str = DEFAULT_APP_NAME) -> Path:
    """Return a directory suitable for sockets, creating it if needed.

    Falls back to the system temp directory when the platform has no
    per-user runtime directory (or it cannot be created).
    """
    try:
        return _ensure_dir(Path(get_app_dirs(app_name).user_runtime_dir))
    except OSError:
        return Path(tempfile.gettempdir())


def default_socket_path(pid: int | None = None, token: str | None = None) -> Path:
    """Return a fresh control socket path for one orchestrator instance.

    The PID plus a random token keeps both separate runs on one host and
    several orchestrators inside one process on distinct socket files.
    """
    resolved_pid = os.getpid() if pid is None else pid
    suffix = uuid4().hex[:8] if token is None else token
    name = f"{DEFAULT_APP_NAME}-mpv-{resolved_pid}-{suffix}.sock"
    return runtime_dir() / name
