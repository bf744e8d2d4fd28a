"""Player orchestrator: engine lifecycle plus the public control API.

`PlayerOrchestrator` is the only object the rest of the application talks
to. Startup runs strictly in order (socket cleanup, spawn, wait for the
socket, register observers, start the listener) and unwinds completely on
any failure. Commands are validated before any I/O and delivered over
short-lived connections; state only ever changes from the engine's event
stream, never optimistically from a command method.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from types import TracebackType

from tunecli.errors import (
    CommandFailure,
    InvalidArgument,
    NotRunning,
    OrchestratorCancelled,
    OrchestratorError,
    StartupFailure,
)
from tunecli.paths import default_socket_path
from tunecli.services.command_sender import DEFAULT_COMMAND_TIMEOUT_S, CommandSender
from tunecli.services.engine_process import EngineProcess
from tunecli.services.event_listener import EventListener
from tunecli.services.player_control import (
    VOLUME_MAX,
    VOLUME_MIN,
    LifecycleState,
    PlaybackState,
)
from tunecli.services.socket_path import SocketPathManager
from tunecli.services.state_store import (
    DEFAULT_SUBSCRIBER_BUFFER,
    StateBroadcaster,
    StateStore,
    Subscription,
)
from tunecli.utils.async_utils import sleep_or_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrchestratorConfig:
    """Runtime knobs for one orchestrator instance."""

    engine: tuple[str, ...] = ("mpv",)
    engine_args: tuple[str, ...] = ()
    socket_path: Path | None = None
    startup_timeout_s: float = 5.0
    poll_interval_s: float = 0.1
    command_timeout_s: float = DEFAULT_COMMAND_TIMEOUT_S
    shutdown_timeout_s: float = 2.0
    listener_exit_timeout_s: float = 0.5
    subscriber_buffer: int = DEFAULT_SUBSCRIBER_BUFFER
    initial_state: PlaybackState = field(default_factory=PlaybackState)

    def resolved_socket_path(self) -> Path:
        """Configured path, or a freshly generated one; resolve once per instance."""
        return self.socket_path if self.socket_path is not None else default_socket_path()


class PlayerOrchestrator:
    """Drives one headless engine process and republishes its state."""

    def __init__(self, config: OrchestratorConfig | None = None) -> None:
        self._config = config or OrchestratorConfig()
        self._lifecycle = LifecycleState.UNSTARTED
        self._socket = SocketPathManager(self._config.resolved_socket_path())
        self._cancel_event = asyncio.Event()
        self._broadcaster = StateBroadcaster(self._config.subscriber_buffer)
        self._store = StateStore(self._broadcaster, self._config.initial_state)
        self._sender = CommandSender(
            self._socket.path,
            timeout_s=self._config.command_timeout_s,
            cancel_event=self._cancel_event,
        )
        self._process: EngineProcess | None = None
        self._listener: EventListener | None = None

    @classmethod
    async def create(cls, config: OrchestratorConfig | None = None) -> PlayerOrchestrator:
        """Return a running orchestrator, or raise if the engine cannot start."""
        orchestrator = cls(config)
        await orchestrator.start()
        return orchestrator

    async def __aenter__(self) -> PlayerOrchestrator:
        if self._lifecycle is LifecycleState.UNSTARTED:
            await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.shutdown()

    @property
    def config(self) -> OrchestratorConfig:
        return self._config

    @property
    def lifecycle(self) -> LifecycleState:
        return self._lifecycle

    @property
    def socket_path(self) -> Path:
        return self._socket.path

    @property
    def engine_pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    @property
    def engine_running(self) -> bool:
        return self._process is not None and self._process.running

    # -- lifecycle -----------------------------------------------------

    async def start(self) -> None:
        """Bring the engine up; on failure everything started is torn down."""
        if self._lifecycle is not LifecycleState.UNSTARTED:
            raise OrchestratorError(
                "Player can only be started once.",
                f"start() called in state {self._lifecycle.value}",
            )
        self._set_lifecycle(LifecycleState.STARTING)
        try:
            await self._startup_sequence()
        except (OrchestratorError, asyncio.CancelledError) as exc:
            logger.error("Engine startup failed: %s", exc)
            await self._abort_startup()
            raise
        except Exception as exc:
            logger.exception("Unexpected engine startup error")
            await self._abort_startup()
            raise StartupFailure(
                "Playback engine failed to start.", repr(exc)
            ) from exc
        self._set_lifecycle(LifecycleState.RUNNING)

    async def _startup_sequence(self) -> None:
        config = self._config
        self._socket.cleanup()
        self._process = EngineProcess(
            config.engine, self._socket.path, extra_args=config.engine_args
        )
        await self._process.start()
        await self._wait_for_socket()
        self._listener = EventListener(
            self._socket.path, self._store, cancel_event=self._cancel_event
        )
        await self._listener.connect(config.command_timeout_s)
        await self._listener.register_observers(config.command_timeout_s)
        self._listener.start()

    async def _wait_for_socket(self) -> None:
        config = self._config
        process = self._process
        assert process is not None
        loop = asyncio.get_running_loop()
        deadline = loop.time() + config.startup_timeout_s
        while True:
            if self._cancel_event.is_set():
                raise OrchestratorCancelled("Player startup was cancelled.")
            if not process.running:
                raise StartupFailure(
                    "Playback engine exited during startup.",
                    f"engine exited with code {process.returncode} before "
                    f"opening {self._socket.path}",
                    recovery_hint="Run the engine by hand to see its error output.",
                )
            if await self._probe_socket():
                logger.debug("Engine socket is ready at %s", self._socket.path)
                return
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise StartupFailure(
                    "Playback engine did not become ready.",
                    f"no connectable socket at {self._socket.path} after "
                    f"{config.startup_timeout_s:.1f}s",
                    recovery_hint="Check that the engine supports --input-ipc-server.",
                )
            if await sleep_or_event(
                min(config.poll_interval_s, remaining), self._cancel_event
            ):
                raise OrchestratorCancelled("Player startup was cancelled.")

    async def _probe_socket(self) -> bool:
        try:
            _reader, writer = await asyncio.wait_for(
                asyncio.open_unix_connection(str(self._socket.path)),
                self._config.poll_interval_s,
            )
        except (OSError, asyncio.TimeoutError):
            return False
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return True

    async def _abort_startup(self) -> None:
        if self._process is not None:
            self._process.kill()
            await self._process.wait(self._config.shutdown_timeout_s)
        if self._listener is not None:
            await self._listener.stop()
        self._broadcaster.close()
        self._remove_socket()
        self._set_lifecycle(LifecycleState.STOPPED)

    def cancel(self) -> None:
        """Signal cancellation to the startup poll, listener, and in-flight sends."""
        self._cancel_event.set()

    async def shutdown(self) -> None:
        """Quit gracefully, fall back to kill, then release every resource.

        A no-op unless the orchestrator is running.
        """
        if self._lifecycle is not LifecycleState.RUNNING:
            return
        self._set_lifecycle(LifecycleState.SHUTTING_DOWN)
        process = self._process
        listener = self._listener
        assert process is not None and listener is not None
        try:
            if not await self._quit_gracefully(process):
                process.kill()
            self._cancel_event.set()
            if not await listener.wait_closed(self._config.listener_exit_timeout_s):
                logger.debug("Event listener still running after engine exit")
            await listener.stop()
            if not await process.wait(self._config.shutdown_timeout_s):
                logger.warning(
                    "Engine process not reaped", extra={"pid": process.pid}
                )
        finally:
            self._broadcaster.close()
            self._remove_socket()
            self._set_lifecycle(LifecycleState.STOPPED)

    async def _quit_gracefully(self, process: EngineProcess) -> bool:
        loop = asyncio.get_running_loop()
        budget = self._config.shutdown_timeout_s
        deadline = loop.time() + budget
        try:
            await self._sender.send(["quit"], timeout_s=budget, honor_cancel=False)
        except CommandFailure as exc:
            logger.warning("Graceful quit failed: %s", exc.technical_message)
            return False
        exited = await process.wait(max(0.0, deadline - loop.time()))
        if not exited:
            logger.warning(
                "Engine ignored quit for %.1fs; killing", budget,
                extra={"pid": process.pid},
            )
        return exited

    def _remove_socket(self) -> None:
        try:
            self._socket.cleanup()
        except StartupFailure as exc:
            logger.warning("Socket cleanup failed: %s", exc.technical_message)

    def _set_lifecycle(self, state: LifecycleState) -> None:
        previous = self._lifecycle
        self._lifecycle = state
        logger.info(
            "Player lifecycle %s -> %s", previous.value, state.value,
            extra={"socket": str(self._socket.path)},
        )

    # -- state -----------------------------------------------------------

    def get_state(self) -> PlaybackState:
        """Return the latest snapshot; safe to call from any thread."""
        return self._store.get()

    def subscribe(self, maxsize: int | None = None) -> Subscription:
        return self._broadcaster.subscribe(maxsize)

    def unsubscribe(self, subscription: Subscription) -> None:
        self._broadcaster.unsubscribe(subscription)

    # -- commands ----------------------------------------------------------

    async def load_file(self, path: str, mode: str = "replace") -> None:
        """Load a local path or direct stream URL.

        `mode` is the engine's own replace/append enum and is passed through.
        """
        if not isinstance(path, str) or not path.strip():
            raise InvalidArgument("Path cannot be empty.")
        await self._send(["loadfile", path, mode])

    async def toggle_pause(self) -> None:
        await self._send(["cycle", "pause"])

    async def stop(self) -> None:
        await self._send(["stop"])

    async def set_volume(self, volume: int) -> None:
        if (
            isinstance(volume, bool)
            or not isinstance(volume, int)
            or not VOLUME_MIN <= volume <= VOLUME_MAX
        ):
            raise InvalidArgument(
                f"Volume must be between {VOLUME_MIN} and {VOLUME_MAX}.",
                f"rejected volume {volume!r}",
            )
        await self._send(["set_property", "volume", volume])

    async def seek(self, seconds: float) -> None:
        """Relative seek; negative values move backward, the engine clamps."""
        if (
            isinstance(seconds, bool)
            or not isinstance(seconds, (int, float))
            or not math.isfinite(seconds)
        ):
            raise InvalidArgument(
                "Seek offset must be a finite number of seconds.",
                f"rejected seek offset {seconds!r}",
            )
        await self._send(["seek", seconds])

    async def _send(self, command: list[object]) -> None:
        if self._lifecycle is not LifecycleState.RUNNING:
            raise NotRunning(
                "Player is not running.",
                f"{command[0]} rejected in state {self._lifecycle.value}",
            )
        await self._sender.send(command)
