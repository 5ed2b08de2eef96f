"""Dataclasses representing resource usage samples and health scores."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass(frozen=True, slots=True)
class DiskVolume:
    name: str
    mountpoint: str | None
    total_bytes: int | None
    free_bytes: int | None

    @property
    def used_percent(self) -> float | None:
        if not self.total_bytes or self.free_bytes is None:
            return None
        return (self.total_bytes - self.free_bytes) / self.total_bytes * 100.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "mountpoint": self.mountpoint,
            "total": self.total_bytes,
            "free": self.free_bytes,
            "usedPercent": self.used_percent,
        }


@dataclass(frozen=True, slots=True)
class NetworkThroughput:
    sent_bytes_per_sec: float
    recv_bytes_per_sec: float

    def to_dict(self) -> dict[str, Any]:
        return {"sent": self.sent_bytes_per_sec, "recv": self.recv_bytes_per_sec}


@dataclass(frozen=True, slots=True)
class MetricSample:
    """One timestamped reading; any metric may be missing after a partial failure."""

    timestamp: float
    cpu_usage: float | None = None
    memory_usage: float | None = None
    disk_usage: float | tuple[DiskVolume, ...] | None = None
    network: NetworkThroughput | None = None

    def is_empty(self) -> bool:
        return (
            self.cpu_usage is None
            and self.memory_usage is None
            and self.disk_usage is None
            and self.network is None
        )

    def disk_percent(self) -> float | None:
        """Disk usage as a percent, from the direct value or the primary volume."""

        if self.disk_usage is None:
            return None
        if isinstance(self.disk_usage, (int, float)):
            return float(self.disk_usage)
        if not self.disk_usage:
            return None
        return self.disk_usage[0].used_percent

    def to_dict(self) -> dict[str, Any]:
        disk: Any = self.disk_usage
        if isinstance(disk, tuple):
            disk = [volume.to_dict() for volume in disk]
        return {
            "timestamp": self.timestamp,
            "cpuUsage": self.cpu_usage,
            "memoryUsage": self.memory_usage,
            "diskUsage": disk,
            "diskPercent": self.disk_percent(),
            "network": self.network.to_dict() if self.network else None,
        }


class HealthStatus(str, Enum):
    GOOD = "Good"
    WARNING = "Warning"
    CRITICAL = "Critical"


@dataclass(frozen=True, slots=True)
class HealthScore:
    score: int
    status: HealthStatus
    subscores: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "status": self.status.value,
            "subscores": dict(self.subscores),
        }


@dataclass(slots=True)
class SystemInfoSnapshot:
    timestamp: float
    hostname: str | None
    os_name: str | None
    os_version: str | None
    kernel_version: str | None
    architecture: str | None
    cpu_model: str | None
    logical_cores: int | None
    physical_cores: int | None
    total_memory_bytes: int | None
    uptime_seconds: float | None
    boot_time: float | None
    virtualization: str | None = None


@dataclass(slots=True)
class PartitionInfo:
    device: str
    mountpoint: str
    fstype: str
    total_bytes: int | None
    used_bytes: int | None
    free_bytes: int | None
    percent: float | None
