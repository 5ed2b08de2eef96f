"""Exception hierarchy shared by the engine and the web layer."""

from __future__ import annotations


class TelemetryError(Exception):
    """Base class for every error raised by Telemetry Center."""

    code = "internal_error"


class CollectorFailure(TelemetryError):
    """A single metric source could not be read."""

    code = "collector_failure"

    def __init__(self, capability: str, message: str) -> None:
        super().__init__(f"{capability}: {message}")
        self.capability = capability


class SourceUnreachable(TelemetryError):
    """A whole log or metric provider is unavailable."""

    code = "source_unreachable"


class ValidationError(TelemetryError):
    """Caller supplied an invalid value; nothing was mutated."""

    code = "validation_error"


class NotFoundError(TelemetryError):
    code = "not_found"


class UnsupportedOperation(TelemetryError):
    """The operation belongs to an external collaborator this service does not run."""

    code = "not_implemented"
