"""Nox sessions for tunecli: lint, types, unit and engine tests."""

from __future__ import annotations

import nox

nox.options.sessions = ["lint", "typecheck", "tests"]
nox.options.reuse_existing_virtualenvs = True

# Suites that spawn the fake engine and talk to it over a real socket.
ENGINE_SUITES = [
    "tests/test_command_sender.py",
    "tests/test_engine_process.py",
    "tests/test_event_listener.py",
    "tests/test_orchestrator.py",
]


@nox.session
def lint(session: nox.Session) -> None:
    """ruff check plus a format check; pass ``-- --fix`` to rewrite files."""
    session.install("ruff")
    fix = "--fix" in session.posargs
    session.run("ruff", "check", *(["--fix"] if fix else []), ".")
    session.run("ruff", "format", *([] if fix else ["--check"]), ".")


@nox.session
def typecheck(session: nox.Session) -> None:
    session.install("mypy", "-e", ".")
    session.run("mypy", "src")


@nox.session
def tests(session: nox.Session) -> None:
    """Full pytest run; extra args after ``--`` go straight to pytest."""
    session.install("-e", ".[test]")
    session.run("pytest", *session.posargs)


@nox.session(name="engine-tests")
def engine_tests(session: nox.Session) -> None:
    session.install("-e", ".[test]")
    session.run("pytest", "-v", *ENGINE_SUITES)


@nox.session
def doctor(session: nox.Session) -> None:
    """Report whether mpv and yt-dlp are usable on this machine."""
    session.install("-e", ".")
    session.run("tunecli", "doctor", success_codes=[0, 2])
