"""Pluggable metric collector interface and its psutil implementation."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from telemetry_center.models import DiskVolume, NetworkThroughput

from .cpu import read_cpu_percent
from .disk import read_disk_volumes
from .memory import read_memory_percent
from .network import ThroughputTracker


@runtime_checkable
class MetricCollector(Protocol):
    """Capabilities a sampler needs; each read may fail on its own."""

    def read_cpu(self) -> float: ...

    def read_memory(self) -> float: ...

    def read_disk(self) -> float | tuple[DiskVolume, ...]: ...

    def read_network(self) -> NetworkThroughput: ...


class PsutilCollector:
    """Collector reading the local machine through psutil."""

    def __init__(self) -> None:
        self._throughput = ThroughputTracker()

    def read_cpu(self) -> float:
        return read_cpu_percent()

    def read_memory(self) -> float:
        return read_memory_percent()

    def read_disk(self) -> tuple[DiskVolume, ...]:
        return read_disk_volumes()

    def read_network(self) -> NetworkThroughput:
        return self._throughput.read()
