"""Core utilities for Telemetry Center."""

from __future__ import annotations

from .config import (
    ANALYSIS,
    APP_NAME,
    DATA_DIR,
    HEALTH,
    HISTORY,
    RISK,
    RISK_WEIGHTS,
    SAMPLING,
    SECURITY,
    Settings,
)
from .errors import (
    CollectorFailure,
    NotFoundError,
    SourceUnreachable,
    TelemetryError,
    UnsupportedOperation,
    ValidationError,
)
from .scheduler import PeriodicTask

__all__ = [
    "ANALYSIS",
    "APP_NAME",
    "DATA_DIR",
    "HEALTH",
    "HISTORY",
    "RISK",
    "RISK_WEIGHTS",
    "SAMPLING",
    "SECURITY",
    "Settings",
    "CollectorFailure",
    "NotFoundError",
    "SourceUnreachable",
    "TelemetryError",
    "UnsupportedOperation",
    "ValidationError",
    "PeriodicTask",
]
