"""Health score calculation."""

from __future__ import annotations

import itertools

import pytest

from conftest import make_volume
from telemetry_center.engine.health import HealthScorer, round_half_up, subscore
from telemetry_center.models import DiskVolume, HealthStatus, MetricSample


class TestHealthScorer:
    def test_worked_example(self):
        result = HealthScorer().score(
            MetricSample(timestamp=0, cpu_usage=95, memory_usage=30, disk_usage=20)
        )
        assert result.subscores == {"cpu": 5.0, "memory": 70.0, "disk": 80.0}
        assert result.score == 52
        assert result.status is HealthStatus.WARNING

    @pytest.mark.parametrize(
        ("usage", "expected"),
        [(0, HealthStatus.GOOD), (30, HealthStatus.GOOD), (31, HealthStatus.WARNING), (60, HealthStatus.WARNING), (61, HealthStatus.CRITICAL)],
    )
    def test_status_thresholds(self, usage, expected):
        result = HealthScorer().score(
            MetricSample(timestamp=0, cpu_usage=usage, memory_usage=usage, disk_usage=usage)
        )
        assert result.status is expected

    def test_multi_volume_uses_primary_volume(self):
        volumes = (make_volume(75.0), DiskVolume("sdb1", "/data", 1000, 0))
        result = HealthScorer().score(MetricSample(timestamp=0, cpu_usage=0, memory_usage=0, disk_usage=volumes))
        assert result.subscores["disk"] == pytest.approx(25.0)

    def test_missing_fields_count_as_idle(self):
        result = HealthScorer().score(MetricSample(timestamp=0, cpu_usage=40))
        assert result.subscores == {"cpu": 60.0, "memory": 100.0, "disk": 100.0}
        assert result.score == 87

    def test_usage_is_clamped(self):
        assert subscore(150) == 0.0
        assert subscore(-5) == 100.0
        assert subscore(float("nan")) == 100.0

    def test_score_is_bounded_and_monotonic(self):
        scorer = HealthScorer()
        levels = (0, 10, 33.3, 50, 66.7, 90, 100, 120)
        for cpu, mem, disk in itertools.product(levels, repeat=3):
            base = scorer.score(MetricSample(timestamp=0, cpu_usage=cpu, memory_usage=mem, disk_usage=disk))
            assert 0 <= base.score <= 100
            for bumped in (
                MetricSample(timestamp=0, cpu_usage=cpu + 7, memory_usage=mem, disk_usage=disk),
                MetricSample(timestamp=0, cpu_usage=cpu, memory_usage=mem + 7, disk_usage=disk),
                MetricSample(timestamp=0, cpu_usage=cpu, memory_usage=mem, disk_usage=disk + 7),
            ):
                assert scorer.score(bumped).score <= base.score

    def test_identical_input_identical_output(self):
        sample = MetricSample(timestamp=5, cpu_usage=12.5, memory_usage=48.1, disk_usage=71.0)
        assert HealthScorer().score(sample) == HealthScorer().score(sample)

    def test_round_half_up(self):
        assert round_half_up(51.5) == 52
        assert round_half_up(52.5) == 53
        assert round_half_up(51.4999) == 51
