"""Command-line interface for tunecli."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from collections.abc import Callable
from contextlib import suppress
from pathlib import Path

from rich.console import Console
from rich.text import Text

from . import __version__
from .doctor import render_report, run_doctor
from .errors import CommandFailure, InvalidArgument, OrchestratorError
from .logging_utils import setup_logging
from .paths import log_dir, settings_path
from .runtime_config import LOAD_MODES, apply_cli_overrides, resolve_log_level
from .services.orchestrator import PlayerOrchestrator
from .services.library_scanner import scan_directories
from .services.player_control import PlaybackState, PlayerControl
from .services.state_store import Subscription, SubscriptionClosed
from .services.stream_resolver import resolve_media_reference
from .settings_store import PlayerSettings, load_settings_with_notice
from .utils.time_format import format_progress
from .version import build_help_epilog

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2

_WATCH_POLL_S = 1.0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tunecli",
        description="Headless terminal music player driving mpv.",
        epilog=build_help_epilog(),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument(
        "--quiet", action="store_true", help="Only show warnings and errors"
    )
    parser.add_argument("--log-file", help="Write logs to a file path")
    parser.add_argument("--engine", help="Engine binary to launch (default: mpv).")
    parser.add_argument(
        "--socket-path", help="Control socket path (default: unique per instance)."
    )
    subparsers = parser.add_subparsers(dest="command")

    play = subparsers.add_parser("play", help="Play a file or URL and show status.")
    play.add_argument(
        "target", nargs="?", help="Local path, stream URL, or YouTube link."
    )
    play.add_argument("--station", help="Play a configured radio station by name.")
    play.add_argument(
        "--mode",
        choices=LOAD_MODES,
        default="replace",
        help="How the engine queues the target (default: replace).",
    )
    play.add_argument("--volume", type=int, help="Initial volume 0-100.")

    library = subparsers.add_parser(
        "list", help="List audio files in the configured music directories."
    )
    library.add_argument(
        "--stations", action="store_true", help="List configured radio stations instead."
    )

    subparsers.add_parser("doctor", help="Check engine and helper tooling.")
    return parser


def render_status(state: PlaybackState) -> Text:
    """Render one status line for a playback snapshot."""
    if state.is_stopped:
        line = Text("■ stopped", style="dim")
    else:
        icon = "▶" if state.is_playing else "⏸"
        line = Text(f"{icon} ", style="bold green" if state.is_playing else "yellow")
        line.append(state.title, style="bold")
        line.append(f"  {format_progress(state.position, state.duration)}")
    line.append(f"  vol {state.volume}", style="cyan")
    if state.last_error:
        line.append(f"  error: {state.last_error}", style="bold red")
    return line


async def watch_playback(
    player: PlayerControl,
    subscription: Subscription,
    stop_requested: asyncio.Event,
    console: Console,
    *,
    engine_alive: Callable[[], bool] | None = None,
) -> int:
    """Print status lines until playback ends, the engine dies, or stop is requested."""
    started = False
    last_line = ""
    while not stop_requested.is_set():
        try:
            await asyncio.wait_for(subscription.get(), _WATCH_POLL_S)
        except asyncio.TimeoutError:
            if engine_alive is not None and not engine_alive():
                console.print(Text("Playback engine exited.", style="bold red"))
                return EXIT_FAILURE
            continue
        except SubscriptionClosed:
            return EXIT_OK
        # Notifications may be dropped; always render the latest snapshot.
        state = player.get_state()
        line = render_status(state)
        if line.plain != last_line:
            console.print(line)
            last_line = line.plain
        if state.last_error and not started and state.is_stopped:
            return EXIT_FAILURE
        if not state.is_stopped:
            started = True
        elif started:
            return EXIT_OK
    return EXIT_OK


async def run_play(
    settings: PlayerSettings,
    target: str,
    *,
    mode: str = "replace",
    volume: int | None = None,
    console: Console | None = None,
) -> int:
    """Start the engine, play `target`, and report status until it ends."""
    console = console or Console(highlight=False)
    try:
        reference = await resolve_media_reference(
            target, resolver=settings.resolver_binary
        )
    except OrchestratorError as exc:
        logger.error("Stream resolution failed: %s", exc.technical_message)
        console.print(Text(exc.get_full_message(), style="bold red"))
        return EXIT_FAILURE

    try:
        player = await PlayerOrchestrator.create(settings.to_orchestrator_config())
    except OrchestratorError as exc:
        logger.error("Startup failed: %s", exc.technical_message)
        console.print(Text(exc.get_full_message(), style="bold red"))
        return EXIT_FAILURE

    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for signum in (signal.SIGINT, signal.SIGTERM):
        with suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(signum, stop_requested.set)
            installed.append(signum)

    subscription = player.subscribe()
    try:
        initial_volume = settings.initial_volume if volume is None else volume
        try:
            await player.set_volume(initial_volume)
        except (InvalidArgument, CommandFailure) as exc:
            logger.warning("Failed to set initial volume: %s", exc)
        try:
            await player.load_file(reference, mode)
        except InvalidArgument as exc:
            console.print(Text(str(exc), style="bold red"))
            return EXIT_USAGE
        except CommandFailure as exc:
            logger.error("Load failed: %s", exc.technical_message)
            console.print(Text(exc.get_full_message(), style="bold red"))
            return EXIT_FAILURE
        return await watch_playback(
            player,
            subscription,
            stop_requested,
            console,
            engine_alive=lambda: player.engine_running,
        )
    finally:
        for signum in installed:
            loop.remove_signal_handler(signum)
        await player.shutdown()


def list_library(
    settings: PlayerSettings, *, stations: bool = False, console: Console | None = None
) -> int:
    """Print configured stations, or every audio file under the music dirs."""
    console = console or Console(highlight=False)
    if stations:
        if not settings.stations:
            console.print(Text("No radio stations configured.", style="yellow"))
            return EXIT_FAILURE
        for station in settings.stations:
            line = Text(station.name, style="bold")
            line.append(f"  {station.url}")
            if station.tags:
                line.append(f"  [{', '.join(station.tags)}]", style="dim")
            console.print(line)
        return EXIT_OK
    if not settings.music_dirs:
        console.print(
            Text("No music directories configured (music_dirs).", style="yellow")
        )
        return EXIT_FAILURE
    files = scan_directories(settings.music_dirs)
    for item in files:
        console.print(Text(str(item.path)), soft_wrap=True)
    console.print(Text(f"{len(files)} audio files", style="dim"))
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "play" and (args.target is None) == (args.station is None):
        parser.error("play needs either a target or --station NAME")
    try:
        settings, notice = load_settings_with_notice(settings_path())
        settings = apply_cli_overrides(
            settings, engine=args.engine, socket_path=args.socket_path
        )
        level = resolve_log_level(
            verbose=args.verbose, quiet=args.quiet, default=settings.log_level
        )
        setup_logging(
            log_dir=log_dir(),
            level=level,
            log_file=Path(args.log_file) if args.log_file else None,
        )
        if notice:
            print(notice, file=sys.stderr)
        if args.command == "doctor":
            report = run_doctor(
                settings.engine_binary,
                settings.resolver_binary,
                socket_path=Path(settings.socket_path) if settings.socket_path else None,
            )
            print(render_report(report))
            return report.exit_code
        if args.command == "list":
            return list_library(settings, stations=args.stations)
        if args.command == "play":
            target = args.target
            if args.station is not None:
                station = settings.find_station(args.station)
                if station is None:
                    known = ", ".join(s.name for s in settings.stations) or "none"
                    print(
                        f"Unknown station '{args.station}' (configured: {known}).",
                        file=sys.stderr,
                    )
                    return EXIT_USAGE
                target = station.url
            logger.info("Starting tunecli playback", extra={"target": target})
            return asyncio.run(
                run_play(settings, target, mode=args.mode, volume=args.volume)
            )
        parser.print_help()
        return EXIT_USAGE
    except Exception as exc:  # pragma: no cover - top-level safety net
        logger.exception("Unhandled error: %s", exc)
        print("Unexpected error. Re-run with --verbose for details.", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":
    raise SystemExit(main())
