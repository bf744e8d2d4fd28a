"""Error hierarchy for the player orchestrator.

Every error carries a short user-facing message plus optional technical
detail for logs, so entrypoints can print something actionable while the
log file keeps the full story.
"""

from __future__ import annotations


class OrchestratorError(Exception):
    """Base class for all tunecli errors."""

    recoverable = False

    def __init__(
        self,
        user_message: str,
        technical_message: str | None = None,
        *,
        recovery_hint: str | None = None,
    ) -> None:
        super().__init__(user_message)
        self.user_message = user_message
        self.technical_message = technical_message or user_message
        self.recovery_hint = recovery_hint

    def __str__(self) -> str:
        return self.user_message

    def get_full_message(self) -> str:
        """Return the user message followed by the recovery hint, if any."""
        if self.recovery_hint:
            return f"{self.user_message}\nNext step: {self.recovery_hint}"
        return self.user_message


class StartupFailure(OrchestratorError):
    """The engine could not be brought to a running, observable state."""


class OrchestratorCancelled(OrchestratorError):
    """Startup was aborted because the orchestrator was cancelled."""


class CommandFailure(OrchestratorError):
    """A single command could not be delivered to the engine."""

    recoverable = True


class CommandTimeout(CommandFailure):
    """Connecting or writing did not finish within the command timeout."""


class NotRunning(CommandFailure):
    """A command was issued while the orchestrator was not running."""


class EncodingError(CommandFailure):
    """A command could not be serialized to JSON."""


class InvalidArgument(OrchestratorError, ValueError):
    """Caller-supplied value is outside the accepted contract."""

    recoverable = True


class StreamResolutionError(OrchestratorError):
    """A streaming-site URL could not be resolved to a direct stream."""

    recoverable = True
