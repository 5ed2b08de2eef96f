"""Memory data collection."""

from __future__ import annotations

import psutil


def read_memory_percent() -> float:
    mem = psutil.virtual_memory()
    return float(mem.percent)


def read_swap_percent() -> float:
    return float(psutil.swap_memory().percent)
