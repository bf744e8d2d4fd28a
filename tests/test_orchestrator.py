"""Integration tests for the player orchestrator against the fake engine."""

from __future__ import annotations

import asyncio
import sys
import time
from collections.abc import Callable

import pytest

import tunecli.paths as paths_module

from tunecli.errors import (
    InvalidArgument,
    NotRunning,
    OrchestratorCancelled,
    OrchestratorError,
    StartupFailure,
)
from tunecli.services.orchestrator import OrchestratorConfig, PlayerOrchestrator
from tunecli.services.player_control import LifecycleState, PlaybackState

pytestmark = pytest.mark.skipif(
    sys.platform == "win32", reason="unix domain sockets required"
)


def _run(coro):
    """Run async scenario from sync test functions."""
    return asyncio.run(coro)


async def _wait_for(
    player: PlayerOrchestrator,
    predicate: Callable[[PlaybackState], bool],
    timeout: float = 3.0,
) -> PlaybackState:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        state = player.get_state()
        if predicate(state):
            return state
        if loop.time() >= deadline:
            raise AssertionError(f"state never matched: {state}")
        await asyncio.sleep(0.02)


def test_commands_validate_before_running_check() -> None:
    player = PlayerOrchestrator(OrchestratorConfig(socket_path=None))

    async def run() -> None:
        for bad in (-1, 101, True, 50.5):
            with pytest.raises(InvalidArgument):
                await player.set_volume(bad)  # type: ignore[arg-type]
        for bad_seek in (float("nan"), float("inf"), False, "5"):
            with pytest.raises(InvalidArgument):
                await player.seek(bad_seek)  # type: ignore[arg-type]
        for bad_path in ("", "   "):
            with pytest.raises(InvalidArgument):
                await player.load_file(bad_path)
        with pytest.raises(NotRunning):
            await player.set_volume(50)
        with pytest.raises(NotRunning):
            await player.toggle_pause()

    _run(run())
    assert player.lifecycle is LifecycleState.UNSTARTED
    assert player.get_state() == PlaybackState()


def test_invalid_argument_is_a_value_error() -> None:
    assert issubclass(InvalidArgument, ValueError)


def test_end_to_end_playback_against_fake_engine(fake_engine_config, tmp_path) -> None:
    media = tmp_path / "Track One.flac"
    media.write_bytes(b"\x00")

    async def run() -> None:
        async with PlayerOrchestrator(fake_engine_config()) as player:
            assert player.lifecycle is LifecycleState.RUNNING
            assert player.engine_running is True
            first = player.subscribe()
            second = player.subscribe()

            await player.set_volume(42)
            await _wait_for(player, lambda s: s.volume == 42)

            await player.load_file(str(media))
            state = await _wait_for(
                player, lambda s: s.title == "Track One.flac" and s.is_playing
            )
            assert state.duration == 180.0
            assert state.last_error == ""

            await player.toggle_pause()
            await _wait_for(player, lambda s: not s.is_playing)
            await player.toggle_pause()
            await _wait_for(player, lambda s: s.is_playing)

            await player.seek(30)
            await _wait_for(player, lambda s: s.position >= 30)

            await player.stop()
            stopped = await _wait_for(
                player, lambda s: s.is_stopped and not s.is_playing
            )
            assert stopped.is_playing is False

            assert first.pending() > 0
            assert second.pending() > 0
        assert player.lifecycle is LifecycleState.STOPPED
        assert first.closed is True
        assert not player.socket_path.exists()

    _run(run())


def test_missing_file_sets_last_error(fake_engine_config, tmp_path) -> None:
    async def run() -> PlaybackState:
        async with PlayerOrchestrator(fake_engine_config()) as player:
            await player.load_file(str(tmp_path / "nope.mp3"))
            return await _wait_for(player, lambda s: s.last_error != "")

    state = _run(run())
    assert state.last_error == "loading failed"
    assert state.is_playing is False
    assert state.is_stopped is True


def test_playback_runs_to_end_of_file(fake_engine_config, tmp_path) -> None:
    media = tmp_path / "short.ogg"
    media.write_bytes(b"\x00")

    async def run() -> PlaybackState:
        config = fake_engine_config("--duration", "0.3", "--tick", "0.05")
        async with PlayerOrchestrator(config) as player:
            await player.load_file(str(media))
            await _wait_for(player, lambda s: s.title == "short.ogg")
            return await _wait_for(
                player, lambda s: s.is_stopped and not s.is_playing
            )

    state = _run(run())
    assert state.is_playing is False
    assert state.position == 0.0
    assert state.last_error == ""


def test_engine_that_never_opens_socket_fails_startup(fake_engine_config) -> None:
    config = fake_engine_config("--no-socket", startup_timeout_s=0.5)
    player = PlayerOrchestrator(config)

    started = time.monotonic()
    with pytest.raises(StartupFailure):
        _run(player.start())
    assert time.monotonic() - started < 5.0
    assert player.lifecycle is LifecycleState.STOPPED
    assert player.engine_running is False
    assert not config.socket_path.exists()


def test_missing_engine_binary_fails_startup(socket_dir) -> None:
    config = OrchestratorConfig(
        engine=("tunecli-no-such-engine-binary",),
        socket_path=socket_dir / "engine.sock",
    )
    with pytest.raises(StartupFailure):
        _run(PlayerOrchestrator.create(config))


def test_engine_exiting_during_startup_fails_fast(socket_dir) -> None:
    config = OrchestratorConfig(
        engine=(sys.executable, "-c", "raise SystemExit(3)"),
        socket_path=socket_dir / "engine.sock",
        startup_timeout_s=10.0,
    )
    player = PlayerOrchestrator(config)
    started = time.monotonic()
    with pytest.raises(StartupFailure) as excinfo:
        _run(player.start())
    assert time.monotonic() - started < 5.0
    assert "3" in excinfo.value.technical_message


def test_stale_socket_file_is_removed_before_spawn(fake_engine_config) -> None:
    config = fake_engine_config()
    config.socket_path.write_text("stale", encoding="utf-8")

    async def run() -> LifecycleState:
        async with PlayerOrchestrator(config) as player:
            return player.lifecycle

    assert _run(run()) is LifecycleState.RUNNING


def test_cancel_during_startup_raises_cancelled(fake_engine_config) -> None:
    config = fake_engine_config("--no-socket", startup_timeout_s=10.0)
    player = PlayerOrchestrator(config)

    async def run() -> None:
        asyncio.get_running_loop().call_later(0.2, player.cancel)
        await player.start()

    started = time.monotonic()
    with pytest.raises(OrchestratorCancelled):
        _run(run())
    assert time.monotonic() - started < 5.0
    assert player.lifecycle is LifecycleState.STOPPED


def test_start_twice_is_rejected(fake_engine_config) -> None:
    async def run() -> None:
        player = await PlayerOrchestrator.create(fake_engine_config())
        try:
            with pytest.raises(OrchestratorError):
                await player.start()
        finally:
            await player.shutdown()

    _run(run())


def test_shutdown_is_idempotent_and_commands_fail_after(fake_engine_config) -> None:
    async def run() -> PlayerOrchestrator:
        player = await PlayerOrchestrator.create(fake_engine_config())
        await player.shutdown()
        await player.shutdown()
        with pytest.raises(NotRunning):
            await player.set_volume(10)
        return player

    player = _run(run())
    assert player.lifecycle is LifecycleState.STOPPED
    assert player.engine_running is False
    assert not player.socket_path.exists()


def test_shutdown_kills_engine_that_ignores_quit(fake_engine_config) -> None:
    config = fake_engine_config("--ignore-quit", shutdown_timeout_s=1.0)

    async def run() -> tuple[float, PlayerOrchestrator]:
        player = await PlayerOrchestrator.create(config)
        started = time.monotonic()
        await player.shutdown()
        return time.monotonic() - started, player

    elapsed, player = _run(run())
    assert elapsed < 2.5
    assert player.engine_running is False
    assert player.lifecycle is LifecycleState.STOPPED


def test_shutdown_after_cancel_still_quits(fake_engine_config) -> None:
    async def run() -> PlayerOrchestrator:
        player = await PlayerOrchestrator.create(fake_engine_config())
        player.cancel()
        await player.shutdown()
        return player

    player = _run(run())
    assert player.engine_running is False
    assert player.lifecycle is LifecycleState.STOPPED


def test_subscription_ends_on_shutdown(fake_engine_config) -> None:
    async def run() -> list[PlaybackState]:
        player = await PlayerOrchestrator.create(fake_engine_config())
        subscription = player.subscribe()

        async def collect() -> list[PlaybackState]:
            return [state async for state in subscription]

        collector = asyncio.create_task(collect())
        await player.set_volume(7)
        await _wait_for(player, lambda s: s.volume == 7)
        await player.shutdown()
        return await asyncio.wait_for(collector, 2.0)

    seen = _run(run())
    assert any(state.volume == 7 for state in seen)


def test_default_socket_paths_keep_two_instances_apart(
    fake_engine_config, socket_dir, monkeypatch
) -> None:
    monkeypatch.setattr(paths_module, "runtime_dir", lambda: socket_dir)
    config = fake_engine_config(socket_path=None)

    async def run() -> tuple[PlayerOrchestrator, PlayerOrchestrator]:
        first = await PlayerOrchestrator.create(config)
        try:
            second = await PlayerOrchestrator.create(config)
            try:
                assert first.socket_path != second.socket_path
                assert first.socket_path.parent == socket_dir

                await first.set_volume(11)
                await _wait_for(first, lambda s: s.volume == 11)
                await second.set_volume(64)
                await _wait_for(second, lambda s: s.volume == 64)
                await asyncio.sleep(0.1)
                assert first.get_state().volume == 11
                assert second.get_state().volume == 64
            finally:
                await second.shutdown()
            assert first.socket_path.exists()
            assert first.engine_running is True
        finally:
            await first.shutdown()
        return first, second

    first, second = _run(run())
    assert not first.socket_path.exists()
    assert not second.socket_path.exists()


def test_volume_bounds_reach_engine_and_out_of_range_is_never_sent(
    fake_engine_config,
) -> None:
    async def run() -> None:
        async with PlayerOrchestrator(fake_engine_config()) as player:
            await player.set_volume(0)
            await _wait_for(player, lambda s: s.volume == 0)

            with pytest.raises(InvalidArgument):
                await player.set_volume(101)
            with pytest.raises(InvalidArgument):
                await player.set_volume(-1)
            await asyncio.sleep(0.2)
            assert player.get_state().volume == 0

            await player.set_volume(100)
            await _wait_for(player, lambda s: s.volume == 100)

    _run(run())
