"""Engine subprocess supervision."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Sequence
from contextlib import suppress
from pathlib import Path

from tunecli.errors import StartupFailure

logger = logging.getLogger(__name__)

# Flag spelling is the engine's compatibility contract.
HEADLESS_FLAGS: tuple[str, ...] = ("--idle", "--no-video", "--no-terminal")


def build_engine_argv(
    engine: Sequence[str],
    socket_path: Path,
    extra_args: Sequence[str] = (),
) -> list[str]:
    """Return the full engine command line for a headless, socket-driven run."""
    if not engine:
        raise ValueError("engine command must not be empty")
    return [
        *engine,
        *HEADLESS_FLAGS,
        f"--input-ipc-server={socket_path}",
        *extra_args,
    ]


class EngineProcess:
    """Spawns the engine and owns its process handle.

    Readiness is not checked here; the orchestrator polls the socket.
    """

    def __init__(
        self,
        engine: Sequence[str],
        socket_path: Path,
        *,
        extra_args: Sequence[str] = (),
    ) -> None:
        self._argv = build_engine_argv(engine, socket_path, extra_args)
        self._process: asyncio.subprocess.Process | None = None
        self._lock = threading.Lock()

    @property
    def argv(self) -> list[str]:
        return list(self._argv)

    @property
    def pid(self) -> int | None:
        process = self._process
        return process.pid if process is not None else None

    @property
    def returncode(self) -> int | None:
        process = self._process
        return process.returncode if process is not None else None

    @property
    def running(self) -> bool:
        process = self._process
        return process is not None and process.returncode is None

    async def start(self) -> None:
        if self._process is not None:
            raise RuntimeError("engine process already started")
        try:
            process = await asyncio.create_subprocess_exec(
                *self._argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as exc:
            raise StartupFailure(
                "Could not start the playback engine.",
                f"spawn {self._argv[0]!r} failed: {exc}",
                recovery_hint="Install mpv and make sure it is on PATH (see `tunecli doctor`).",
            ) from exc
        with self._lock:
            self._process = process
        logger.info("Engine started", extra={"pid": process.pid, "argv": self._argv})

    def kill(self) -> None:
        """Forcibly terminate the engine. Safe to call any number of times."""
        with self._lock:
            process = self._process
            if process is None or process.returncode is not None:
                return
            with suppress(ProcessLookupError):
                process.kill()
        logger.warning("Engine killed", extra={"pid": process.pid})

    async def wait(self, timeout: float | None = None) -> bool:
        """Wait for the process to exit; return False if `timeout` expired."""
        process = self._process
        if process is None:
            return True
        try:
            await asyncio.wait_for(process.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        logger.debug(
            "Engine exited",
            extra={"pid": process.pid, "returncode": process.returncode},
        )
        return True
