"""HTTP surface for Telemetry Center."""

from __future__ import annotations

__all__ = [
    "TelemetryService",
    "create_app",
]

from .server import create_app  # noqa: E402
from .service import TelemetryService  # noqa: E402
