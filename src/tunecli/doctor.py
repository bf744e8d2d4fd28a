"""Runtime diagnostics for the playback engine and helper tooling."""

from __future__ import annotations

import importlib
import os
import shutil
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from tunecli.paths import default_socket_path

DoctorStatus = Literal["ok", "missing", "error"]

INSTALL_GUIDANCE = "Install mpv (required) and yt-dlp (optional, for streaming URLs)."

# sun_path is 108 bytes on Linux and 104 on the BSDs, including the NUL.
SOCKET_PATH_MAX = 103 if sys.platform == "darwin" or "bsd" in sys.platform else 107

_STATUS_TOKENS: dict[str, str] = {"ok": "[OK]", "missing": "[MISS]", "error": "[ERR]"}


@dataclass(frozen=True)
class DoctorCheck:
    """Outcome of one readiness probe."""

    name: str
    status: DoctorStatus
    required: bool
    detail: str
    hint: str | None = None

    @property
    def blocking(self) -> bool:
        return self.required and self.status != "ok"


@dataclass(frozen=True)
class DoctorReport:
    """All probe results for one engine configuration."""

    engine: str
    checks: list[DoctorCheck]

    @property
    def failures(self) -> list[DoctorCheck]:
        return [check for check in self.checks if check.blocking]

    @property
    def exit_code(self) -> int:
        """2 when a required check did not pass, else 0."""
        return 2 if self.failures else 0


def run_doctor(
    engine: str = "mpv",
    resolver: str = "yt-dlp",
    socket_path: Path | None = None,
) -> DoctorReport:
    """Probe Python dependencies, the socket location, mpv and yt-dlp."""
    checks = [
        probe_module("platformdirs"),
        probe_module("rich"),
        probe_socket_location(socket_path),
        probe_binary(
            "engine",
            engine,
            required=True,
            hint="Install mpv and make sure it is on PATH.",
        ),
        probe_binary(
            "yt-dlp",
            resolver,
            required=False,
            hint="Install yt-dlp to play YouTube links.",
        ),
    ]
    return DoctorReport(engine=engine, checks=checks)


def render_report(report: DoctorReport) -> str:
    lines = [f"tunecli doctor (engine={report.engine})", ""]
    for check in report.checks:
        kind = "required" if check.required else "optional"
        token = _STATUS_TOKENS.get(check.status, "[ERR]")
        lines.append(f"{token} {check.name} ({kind}): {check.detail}")
        if check.hint and check.status != "ok":
            lines.append(f"    hint: {check.hint}")
    lines.append("")
    if report.failures:
        lines.append("Result: FAIL")
        lines.append(f"Install guidance: {INSTALL_GUIDANCE}")
    else:
        lines.append("Result: OK")
    return "\n".join(lines)


def probe_module(name: str) -> DoctorCheck:
    """Check that a runtime Python dependency imports."""
    try:
        module = importlib.import_module(name)
    except Exception as exc:
        return DoctorCheck(
            name=name,
            status="missing",
            required=True,
            detail=f"not importable ({exc.__class__.__name__})",
            hint="Reinstall tunecli with its dependencies.",
        )
    version = getattr(module, "__version__", None)
    return DoctorCheck(
        name=name,
        status="ok",
        required=True,
        detail=f"importable ({version})" if version else "importable",
    )


def probe_socket_location(socket_path: Path | None = None) -> DoctorCheck:
    """Check the control socket can be created where the engine will bind it."""
    if socket_path is None:
        socket_path = default_socket_path()
    hint = "Pass --socket-path with a short path in a writable directory."
    length = len(os.fsencode(str(socket_path)))
    if length > SOCKET_PATH_MAX:
        return DoctorCheck(
            name="socket",
            status="error",
            required=True,
            detail=f"{socket_path} is {length} bytes (limit {SOCKET_PATH_MAX})",
            hint=hint,
        )
    directory = socket_path.parent
    if not directory.is_dir() or not os.access(directory, os.W_OK | os.X_OK):
        return DoctorCheck(
            name="socket",
            status="error",
            required=True,
            detail=f"{directory} is not a writable directory",
            hint=hint,
        )
    return DoctorCheck(name="socket", status="ok", required=True, detail=str(socket_path))


def probe_binary(name: str, binary: str, *, required: bool, hint: str) -> DoctorCheck:
    """Check an external executable is on PATH and answers ``--version``."""
    resolved = shutil.which(binary)
    if resolved is None:
        return DoctorCheck(
            name=name,
            status="missing",
            required=required,
            detail=f"{binary!r} not found on PATH",
            hint=hint,
        )
    try:
        proc = subprocess.run(
            [resolved, "--version"],
            capture_output=True,
            text=True,
            timeout=5,
            check=False,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        return DoctorCheck(
            name=name,
            status="error",
            required=required,
            detail=f"launch failed ({exc.__class__.__name__})",
            hint=hint,
        )
    if proc.returncode != 0:
        reason = _first_line(proc.stderr)
        detail = f"{binary} --version failed (exit={proc.returncode})"
        return DoctorCheck(
            name=name,
            status="error",
            required=required,
            detail=f"{detail}: {reason}" if reason else detail,
            hint=hint,
        )
    return DoctorCheck(
        name=name,
        status="ok",
        required=required,
        detail=_first_line(proc.stdout) or f"found at {resolved}",
    )


def _first_line(text: str | None) -> str:
    if not text:
        return ""
    stripped = text.strip()
    return stripped.splitlines()[0] if stripped else ""
