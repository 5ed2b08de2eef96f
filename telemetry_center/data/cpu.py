"""CPU data collection utilities."""

from __future__ import annotations

import os

import psutil


def _safe_load_average() -> tuple[float, float, float] | None:
    try:
        return os.getloadavg()
    except (OSError, AttributeError):  # pragma: no cover - platform specific
        return None


def read_cpu_percent() -> float:
    """Return system-wide CPU usage since the previous call."""

    return float(psutil.cpu_percent(interval=None))


def read_load_average() -> tuple[float, float, float] | None:
    return _safe_load_average()


def cpu_count() -> int:
    return psutil.cpu_count(logical=True) or 1
