"""Background consumer of the engine event stream.

The listener holds one persistent connection to the control socket for the
orchestrator's whole lifetime. Property observers are registered on that
same connection, because the engine only delivers property changes to the
client that asked for them. Each decoded event is folded into the
`StateStore`, which broadcasts only when a field actually changed.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from functools import partial
from pathlib import Path

from tunecli.errors import StartupFailure
from tunecli.services.ipc_protocol import (
    DecodeError,
    apply_event,
    decode_line,
    encode_command,
    observe_commands,
)
from tunecli.services.state_store import StateStore
from tunecli.utils.async_utils import SignalledCancel, race_with_event

logger = logging.getLogger(__name__)

STREAM_LINE_LIMIT = 1 << 20


class EventListener:
    """Owns the event connection and the task that drains it."""

    def __init__(
        self,
        socket_path: Path,
        store: StateStore,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        self._socket_path = Path(socket_path)
        self._store = store
        self._cancel_event = cancel_event
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._task: asyncio.Task[None] | None = None
        self.lines_seen = 0
        self.lines_skipped = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def connect(self, timeout_s: float) -> None:
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_unix_connection(
                    str(self._socket_path), limit=STREAM_LINE_LIMIT
                ),
                timeout_s,
            )
        except (OSError, asyncio.TimeoutError) as exc:
            raise StartupFailure(
                "Could not open the engine event stream.",
                f"connect {self._socket_path}: {exc!r}",
            ) from exc

    async def register_observers(self, timeout_s: float) -> None:
        """Ask the engine to report changes of every tracked property."""
        writer = self._writer
        if writer is None:
            raise RuntimeError("event stream not connected")
        for command in observe_commands():
            try:
                writer.write(encode_command(command))
                await asyncio.wait_for(writer.drain(), timeout_s)
            except (OSError, asyncio.TimeoutError) as exc:
                raise StartupFailure(
                    "Could not subscribe to engine property changes.",
                    f"observe_property {command[2]!r} failed: {exc!r}",
                ) from exc
        logger.debug("Registered property observers")

    def start(self) -> None:
        if self._reader is None:
            raise RuntimeError("event stream not connected")
        if self._task is not None:
            raise RuntimeError("event listener already started")
        self._task = asyncio.create_task(self._run(), name="tunecli-event-listener")

    async def wait_closed(self, timeout_s: float) -> bool:
        """Wait for the loop to exit on its own; False if it is still running."""
        task = self._task
        if task is None:
            return True
        done, _pending = await asyncio.wait({task}, timeout=timeout_s)
        return task in done

    async def stop(self) -> None:
        """Cancel the loop if it is still running and release the connection."""
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        await self._close_connection()

    def handle_line(self, line: str | bytes) -> bool:
        """Decode one line and fold it into the store.

        Returns True when the state changed. Malformed lines are skipped.
        """
        self.lines_seen += 1
        try:
            event = decode_line(line)
        except DecodeError as exc:
            self.lines_skipped += 1
            logger.debug("Skipping undecodable engine line: %s", exc)
            return False
        if event is None:
            return False
        return self._store.update(partial(apply_event, event=event)) is not None

    async def _run(self) -> None:
        reader = self._reader
        assert reader is not None
        logger.debug("Event listener started")
        try:
            while True:
                try:
                    line = await race_with_event(
                        reader.readline(),
                        timeout=None,
                        cancel_event=self._cancel_event,
                    )
                except SignalledCancel:
                    logger.debug("Event listener cancelled")
                    break
                except ValueError:
                    # Line longer than the stream limit; its bytes are discarded.
                    self.lines_skipped += 1
                    logger.debug("Skipping oversized engine line")
                    continue
                except (ConnectionError, OSError) as exc:
                    logger.info("Event stream closed with error: %s", exc)
                    break
                if not line:
                    logger.info("Event stream reached EOF")
                    break
                self.handle_line(line)
        finally:
            await self._close_connection()
            logger.debug(
                "Event listener stopped",
                extra={"lines_seen": self.lines_seen, "lines_skipped": self.lines_skipped},
            )

    async def _close_connection(self) -> None:
        writer = self._writer
        if writer is None:
            return
        self._writer = None
        writer.close()
        with suppress(OSError):
            await writer.wait_closed()
