"""Composite health score derived from CPU, memory and disk usage."""

from __future__ import annotations

import math

from telemetry_center.core import HEALTH
from telemetry_center.core.config import HealthThresholds
from telemetry_center.models import HealthScore, HealthStatus, MetricSample


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def subscore(usage_percent: float | None) -> float:
    """100 minus usage, clamped to [0, 100]; a missing reading counts as idle."""

    if usage_percent is None or math.isnan(usage_percent):
        return 100.0
    usage = min(max(float(usage_percent), 0.0), 100.0)
    return 100.0 - usage


def status_for(score: int, thresholds: HealthThresholds = HEALTH) -> HealthStatus:
    if score < thresholds.critical_below:
        return HealthStatus.CRITICAL
    if score < thresholds.warning_below:
        return HealthStatus.WARNING
    return HealthStatus.GOOD


class HealthScorer:
    def __init__(self, thresholds: HealthThresholds = HEALTH) -> None:
        self._thresholds = thresholds

    def score(self, sample: MetricSample) -> HealthScore:
        subscores = {
            "cpu": subscore(sample.cpu_usage),
            "memory": subscore(sample.memory_usage),
            "disk": subscore(sample.disk_percent()),
        }
        value = round_half_up(sum(subscores.values()) / len(subscores))
        return HealthScore(
            score=value,
            status=status_for(value, self._thresholds),
            subscores=subscores,
        )
