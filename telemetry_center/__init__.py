"""Telemetry Center: system telemetry, log analysis and diagnostics engine."""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = [
    "TelemetryService",
    "create_app",
    "core",
    "data",
    "engine",
    "models",
]

from .web import TelemetryService, create_app  # noqa: E402
