"""One-shot command delivery over the engine control socket."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from contextlib import suppress
from pathlib import Path

from tunecli.errors import CommandFailure, CommandTimeout
from tunecli.services.ipc_protocol import encode_command
from tunecli.utils.async_utils import SignalledCancel, race_with_event

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT_S = 3.0


class CommandSender:
    """Writes each command on its own short-lived connection.

    Concurrent callers never queue behind each other and no reply
    correlation is needed; replies are not read at all.
    """

    def __init__(
        self,
        socket_path: Path,
        *,
        timeout_s: float = DEFAULT_COMMAND_TIMEOUT_S,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        self._socket_path = Path(socket_path)
        self._timeout_s = timeout_s
        self._cancel_event = cancel_event

    @property
    def timeout_s(self) -> float:
        return self._timeout_s

    async def send(
        self,
        command: Sequence[object],
        *,
        timeout_s: float | None = None,
        honor_cancel: bool = True,
    ) -> None:
        """Deliver one command.

        `honor_cancel=False` lets shutdown still send ``quit`` after the
        orchestrator has been cancelled.
        """
        payload = encode_command(command)
        timeout = self._timeout_s if timeout_s is None else timeout_s
        keyword = command[0]
        try:
            await race_with_event(
                self._deliver(payload),
                timeout=timeout,
                cancel_event=self._cancel_event if honor_cancel else None,
            )
        except asyncio.TimeoutError as exc:
            raise CommandTimeout(
                f"Engine did not accept '{keyword}' in time.",
                f"{keyword}: no connect/write within {timeout:.1f}s on {self._socket_path}",
            ) from exc
        except SignalledCancel as exc:
            raise CommandFailure(
                f"Command '{keyword}' aborted: player is shutting down.",
            ) from exc
        except OSError as exc:
            raise CommandFailure(
                f"Could not reach the playback engine for '{keyword}'.",
                f"{keyword}: {self._socket_path}: {exc}",
            ) from exc
        logger.debug("Sent engine command", extra={"command": list(command)})

    async def _deliver(self, payload: bytes) -> None:
        _reader, writer = await asyncio.open_unix_connection(str(self._socket_path))
        try:
            writer.write(payload)
            await writer.drain()
        finally:
            writer.close()
            with suppress(OSError):
                await writer.wait_closed()
