"""Tests for engine spawning and socket path ownership."""

from __future__ import annotations

import asyncio
import sys

import pytest

from tunecli.errors import StartupFailure
from tunecli.services.engine_process import EngineProcess, build_engine_argv
from tunecli.services.socket_path import SocketPathManager

pytestmark = pytest.mark.skipif(
    sys.platform == "win32", reason="posix process and socket semantics required"
)


def test_argv_carries_headless_flags_and_socket(tmp_path) -> None:
    argv = build_engine_argv(("mpv",), tmp_path / "s.sock", ("--volume=50",))
    assert argv[0] == "mpv"
    assert "--idle" in argv
    assert "--no-video" in argv
    assert "--no-terminal" in argv
    assert f"--input-ipc-server={tmp_path / 's.sock'}" in argv
    assert argv[-1] == "--volume=50"


def test_argv_requires_an_engine(tmp_path) -> None:
    with pytest.raises(ValueError):
        build_engine_argv((), tmp_path / "s.sock")


def test_missing_binary_is_startup_failure(tmp_path) -> None:
    process = EngineProcess(("tunecli-no-such-engine-binary",), tmp_path / "s.sock")
    with pytest.raises(StartupFailure) as excinfo:
        asyncio.run(process.start())
    assert excinfo.value.recovery_hint
    assert process.running is False


def test_kill_is_idempotent_and_wait_reports_exit(tmp_path) -> None:
    async def run() -> tuple[bool, int | None]:
        process = EngineProcess(
            (sys.executable, "-c", "import time; time.sleep(30)"),
            tmp_path / "s.sock",
        )
        # Unknown flags reach the interpreter as script argv.
        await process.start()
        assert process.running is True
        assert process.pid is not None
        process.kill()
        process.kill()
        exited = await process.wait(5.0)
        process.kill()
        return exited, process.returncode

    exited, returncode = asyncio.run(run())
    assert exited is True
    assert returncode is not None


def test_kill_before_start_is_a_no_op(tmp_path) -> None:
    process = EngineProcess(("mpv",), tmp_path / "s.sock")
    process.kill()
    assert asyncio.run(process.wait(0.1)) is True


def test_socket_cleanup_removes_stale_file(tmp_path) -> None:
    stale = tmp_path / "stale.sock"
    stale.write_text("", encoding="utf-8")
    manager = SocketPathManager(stale)
    assert manager.exists() is True
    manager.cleanup()
    assert manager.exists() is False
    manager.cleanup()


def test_socket_cleanup_failure_is_startup_failure(tmp_path) -> None:
    directory = tmp_path / "not-a-socket"
    directory.mkdir()
    manager = SocketPathManager(directory)
    with pytest.raises(StartupFailure) as excinfo:
        manager.cleanup()
    assert str(directory) in excinfo.value.recovery_hint
