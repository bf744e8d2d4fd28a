"""Tests for platform-specific paths."""

from __future__ import annotations

import os
from pathlib import Path

import tunecli.paths as paths


class FakeAppDirs:
    """Minimal AppDirs stand-in used to control path roots during tests."""

    def __init__(self, data_dir: Path, config_dir: Path, runtime_dir: Path) -> None:
        self.user_data_dir = str(data_dir)
        self.user_config_dir = str(config_dir)
        self.user_runtime_dir = str(runtime_dir)


def _install_fake_dirs(monkeypatch, tmp_path: Path, runtime_dir: Path) -> FakeAppDirs:
    fake = FakeAppDirs(tmp_path / "data", tmp_path / "config", runtime_dir)

    def fake_app_dirs(app_name: str, appauthor: bool | None = None) -> FakeAppDirs:
        assert appauthor is False
        return fake

    monkeypatch.setattr(paths, "AppDirs", fake_app_dirs)
    paths.get_app_dirs.cache_clear()
    return fake


def test_paths_use_platformdirs_and_create_dirs(tmp_path, monkeypatch) -> None:
    _install_fake_dirs(monkeypatch, tmp_path, tmp_path / "run")
    try:
        data_dir = tmp_path / "data"
        config_dir = tmp_path / "config"
        assert paths.data_dir() == data_dir
        assert paths.config_dir() == config_dir
        assert paths.log_dir() == data_dir / "logs"
        assert paths.settings_path() == config_dir / "settings.json"
        assert paths.runtime_dir() == tmp_path / "run"

        assert data_dir.exists()
        assert config_dir.exists()
        assert (data_dir / "logs").exists()
        assert (tmp_path / "run").exists()
    finally:
        paths.get_app_dirs.cache_clear()


def test_default_socket_path_is_unique_per_call(tmp_path, monkeypatch) -> None:
    _install_fake_dirs(monkeypatch, tmp_path, tmp_path / "run")
    try:
        pinned = paths.default_socket_path(pid=100, token="cafe0001")
        assert pinned == tmp_path / "run" / "tunecli-mpv-100-cafe0001.sock"
        assert paths.default_socket_path(pid=100) != paths.default_socket_path(pid=100)
        generated = paths.default_socket_path()
        assert generated.name.startswith(f"tunecli-mpv-{os.getpid()}-")
        assert len(generated.stem.rsplit("-", 1)[1]) == 8
    finally:
        paths.get_app_dirs.cache_clear()


def test_runtime_dir_falls_back_to_temp_dir(tmp_path, monkeypatch) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    _install_fake_dirs(monkeypatch, tmp_path, blocker / "run")
    monkeypatch.setattr(paths.tempfile, "gettempdir", lambda: str(tmp_path / "tmp"))
    try:
        assert paths.runtime_dir() == tmp_path / "tmp"
    finally:
        paths.get_app_dirs.cache_clear()
