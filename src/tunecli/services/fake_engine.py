"""Stand-in playback engine speaking the mpv JSON IPC protocol.

Run as a script with the same flags the orchestrator passes to mpv. It
simulates playback progress without decoding anything, which keeps the
integration tests deterministic and independent of an mpv install.

Extra flags:
  --ignore-quit   accept ``quit`` but keep running (unresponsive engine)
  --no-socket     never bind the control socket (stuck startup)
  --duration S    simulated media length in seconds (default 180)
  --tick S        progress interval in seconds (default 0.25)

This file must stay standard-library only and free of package imports so it
can be executed directly by path.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from contextlib import suppress
from dataclasses import dataclass, field


@dataclass
class _Client:
    writer: asyncio.StreamWriter
    observed: dict[str, int] = field(default_factory=dict)


class FakeEngine:
    """In-process simulation of the engine's observable properties."""

    def __init__(
        self,
        socket_path: str,
        *,
        ignore_quit: bool = False,
        duration_s: float = 180.0,
        tick_s: float = 0.25,
    ) -> None:
        self._socket_path = socket_path
        self._ignore_quit = ignore_quit
        self._duration_s = duration_s
        self._tick_s = tick_s
        self._clients: list[_Client] = []
        self._quit = asyncio.Event()
        self.props: dict[str, object] = {
            "pause": False,
            "volume": 100.0,
            "media-title": None,
            "time-pos": None,
            "duration": None,
        }

    async def serve(self) -> None:
        server = await asyncio.start_unix_server(self._on_client, path=self._socket_path)
        ticker = asyncio.create_task(self._tick_loop())
        try:
            await self._quit.wait()
        finally:
            ticker.cancel()
            with suppress(asyncio.CancelledError):
                await ticker
            server.close()
            for client in list(self._clients):
                client.writer.close()
            with suppress(OSError):
                os.unlink(self._socket_path)

    async def _on_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        client = _Client(writer)
        self._clients.append(client)
        try:
            while not reader.at_eof():
                line = await reader.readline()
                if not line:
                    break
                await self._handle(client, line)
        except (ConnectionError, OSError):
            pass
        finally:
            if client in self._clients:
                self._clients.remove(client)
            writer.close()

    async def _handle(self, client: _Client, line: bytes) -> None:
        try:
            payload = json.loads(line)
            command = payload["command"]
            name = command[0]
        except (ValueError, KeyError, TypeError, IndexError):
            await self._send(client, {"error": "invalid parameter"})
            return
        handler = getattr(self, "_cmd_" + str(name).replace("-", "_"), None)
        if handler is None:
            await self._send(client, {"error": "unknown command", "request_id": 0})
            return
        try:
            await handler(client, *command[1:])
        except (TypeError, ValueError):
            await self._send(client, {"error": "invalid parameter", "request_id": 0})
            return
        await self._send(client, {"error": "success", "data": None, "request_id": 0})

    async def _cmd_observe_property(self, client: _Client, observer_id, name) -> None:
        client.observed[str(name)] = int(observer_id)
        await self._notify_one(client, str(name))

    async def _cmd_set_property(self, _client: _Client, name, value) -> None:
        if name == "volume":
            self.props["volume"] = float(value)
        elif name == "pause":
            self.props["pause"] = bool(value)
        else:
            return
        await self._notify(str(name))

    async def _cmd_cycle(self, _client: _Client, name, *_rest) -> None:
        if name == "pause":
            self.props["pause"] = not self.props["pause"]
            await self._notify("pause")

    async def _cmd_loadfile(self, _client: _Client, path, *_rest) -> None:
        await self._broadcast({"event": "start-file"})
        path = str(path)
        if "://" not in path and not os.path.exists(path):
            await self._end_file("error", error="loading failed")
            return
        self.props.update(
            {
                "pause": False,
                "media-title": path if "://" in path else os.path.basename(path),
                "time-pos": 0.0,
                "duration": self._duration_s,
            }
        )
        for name in ("media-title", "duration", "time-pos", "pause"):
            await self._notify(name)
        await self._broadcast({"event": "file-loaded"})
        await self._broadcast({"event": "playback-restart"})

    async def _cmd_stop(self, _client: _Client, *_rest) -> None:
        if self.props["media-title"] is None:
            return
        await self._end_file("stop")

    async def _cmd_seek(self, _client: _Client, offset, *_rest) -> None:
        position = self.props["time-pos"]
        duration = self.props["duration"]
        if not isinstance(position, float) or not isinstance(duration, float):
            return
        self.props["time-pos"] = max(0.0, min(duration, position + float(offset)))
        await self._notify("time-pos")
        await self._broadcast({"event": "playback-restart"})

    async def _cmd_quit(self, _client: _Client, *_rest) -> None:
        if self._ignore_quit:
            return
        self._quit.set()

    async def _end_file(self, reason: str, *, error: str | None = None) -> None:
        self.props.update({"media-title": None, "time-pos": None, "duration": None})
        for name in ("media-title", "time-pos", "duration"):
            await self._notify(name)
        event: dict[str, object] = {"event": "end-file", "reason": reason}
        if error is not None:
            event["file_error"] = error
        await self._broadcast(event)
        await self._broadcast({"event": "idle"})

    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self._tick_s)
            position = self.props["time-pos"]
            duration = self.props["duration"]
            if self.props["pause"] or not isinstance(position, float):
                continue
            if not isinstance(duration, float):
                continue
            position = min(duration, position + self._tick_s)
            self.props["time-pos"] = position
            await self._notify("time-pos")
            if position >= duration:
                await self._end_file("eof")

    async def _notify(self, name: str) -> None:
        for client in list(self._clients):
            await self._notify_one(client, name)

    async def _notify_one(self, client: _Client, name: str) -> None:
        observer_id = client.observed.get(name)
        if observer_id is None:
            return
        await self._send(
            client,
            {
                "event": "property-change",
                "id": observer_id,
                "name": name,
                "data": self.props.get(name),
            },
        )

    async def _broadcast(self, payload: dict[str, object]) -> None:
        for client in list(self._clients):
            await self._send(client, payload)

    async def _send(self, client: _Client, payload: dict[str, object]) -> None:
        try:
            client.writer.write(json.dumps(payload).encode("utf-8") + b"\n")
            await client.writer.drain()
        except (ConnectionError, OSError):
            if client in self._clients:
                self._clients.remove(client)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fake-engine")
    parser.add_argument("--input-ipc-server", required=True)
    parser.add_argument("--idle", action="store_true")
    parser.add_argument("--no-video", action="store_true")
    parser.add_argument("--no-terminal", action="store_true")
    parser.add_argument("--ignore-quit", action="store_true")
    parser.add_argument("--no-socket", action="store_true")
    parser.add_argument("--duration", type=float, default=180.0)
    parser.add_argument("--tick", type=float, default=0.25)
    return parser


async def _amain(args: argparse.Namespace) -> None:
    if args.no_socket:
        await asyncio.Event().wait()
        return
    engine = FakeEngine(
        args.input_ipc_server,
        ignore_quit=args.ignore_quit,
        duration_s=args.duration,
        tick_s=args.tick,
    )
    await engine.serve()


def main(argv: list[str] | None = None) -> int:
    args, _unknown = build_parser().parse_known_args(argv)
    asyncio.run(_amain(args))
    return 0


if __name__ == "__main__":
    sys.exit(main())
