"""Logging helpers.

File output is one JSON object per line so engine/IPC sessions can be
inspected after the fact; console output goes to stderr through rich so it
never interleaves with the status lines printed on stdout.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

LOG_FILE_NAME = "tunecli.log"

_RECORD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


class JsonLogFormatter(logging.Formatter):
    """One JSON object per record; `extra=` fields land under ``context``."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, timezone.utc)
        entry: dict[str, Any] = {
            "ts": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        task = _task_name(record)
        if task:
            entry["task"] = task
        context = {
            key: _json_safe(value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        }
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=True)


def _task_name(record: logging.LogRecord) -> str | None:
    # Distinguishes the event listener task from caller tasks issuing commands.
    name = getattr(record, "taskName", None)
    if name:
        return str(name)
    try:
        task = asyncio.current_task()
    except RuntimeError:
        return None
    return task.get_name() if task is not None else None


def _json_safe(value: object) -> object:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, dict):
        return {str(key): _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_json_safe(item) for item in value]
    return repr(value)


def _numeric_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    numeric = logging.getLevelName(level.upper())
    return numeric if isinstance(numeric, int) else logging.INFO


def _file_handler(path: Path, max_bytes: int, backup_count: int) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handler.setFormatter(JsonLogFormatter())
    return handler


def _console_handler(console: Console | None) -> logging.Handler:
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=False,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s %(message)s"))
    return handler


def setup_logging(
    log_dir: Path,
    level: str | int = "INFO",
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    log_file: Path | None = None,
    console: Console | None = None,
) -> Path:
    """Route all logging to a rotating JSON file and a rich stderr console.

    Replaces any handlers already on the root logger and returns the path of
    the active log file.
    """
    numeric = _numeric_level(level)
    log_path = log_file if log_file is not None else log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(numeric)
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(_file_handler(log_path, max_bytes, backup_count))
    root.addHandler(_console_handler(console))
    # asyncio's own debug chatter drowns out engine traffic.
    logging.getLogger("asyncio").setLevel(max(numeric, logging.WARNING))
    return log_path
