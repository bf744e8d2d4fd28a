"""Test configuration."""

from __future__ import annotations

import shutil
import sys
import tempfile
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from tunecli.services import fake_engine  # noqa: E402
from tunecli.services.orchestrator import OrchestratorConfig  # noqa: E402

FAKE_ENGINE = (sys.executable, str(Path(fake_engine.__file__).resolve()))


@pytest.fixture
def socket_dir():
    """Short temp directory for sockets (AF_UNIX paths are length-limited)."""
    path = Path(tempfile.mkdtemp(prefix="tcli-"))
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def fake_engine_config(socket_dir):
    """Build orchestrator configs that launch the bundled fake engine."""

    def build(*engine_args: str, **overrides) -> OrchestratorConfig:
        values = {
            "engine": FAKE_ENGINE,
            "engine_args": tuple(engine_args),
            "socket_path": socket_dir / "engine.sock",
            "startup_timeout_s": 5.0,
            "command_timeout_s": 2.0,
            "shutdown_timeout_s": 2.0,
        }
        values.update(overrides)
        return OrchestratorConfig(**values)

    return build
