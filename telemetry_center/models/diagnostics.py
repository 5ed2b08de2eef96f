"""Driver and network diagnostic records."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .risk import Priority


class IssueStatus(str, Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"


@dataclass(frozen=True, slots=True)
class FixOption:
    id: str
    description: str
    action: str
    difficulty: str = "easy"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "action": self.action,
            "difficulty": self.difficulty,
        }


@dataclass(frozen=True, slots=True)
class DriverInfo:
    id: str
    name: str
    category: str
    version: str | None
    manufacturer: str
    date: str | None = None
    update_available: bool = False
    importance: Priority = Priority.LOW
    minimum_version: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "version": self.version or "Unknown",
            "manufacturer": self.manufacturer,
            "date": self.date or "Unknown",
            "updateAvailable": self.update_available,
            "importance": self.importance.value,
            "minimumVersion": self.minimum_version,
        }


@dataclass(frozen=True, slots=True)
class DriverProblem:
    id: str
    device_name: str
    level: str
    category: str
    message: str
    time: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "deviceName": self.device_name,
            "level": self.level,
            "category": self.category,
            "message": self.message,
            "time": self.time,
        }


@dataclass(frozen=True, slots=True)
class DriverRecord:
    id: str
    category: str
    severity: Priority
    description: str
    recommendations: tuple[FixOption, ...] = ()
    status: IssueStatus = IssueStatus.ACTIVE

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "severity": self.severity.value,
            "description": self.description,
            "recommendations": [option.to_dict() for option in self.recommendations],
            "status": self.status.value,
        }


@dataclass(frozen=True, slots=True)
class NetworkIssue:
    id: str
    type: str
    severity: Priority
    description: str
    timestamp: float
    possible_causes: tuple[str, ...] = ()
    recommendations: tuple[FixOption, ...] = ()
    status: IssueStatus = IssueStatus.ACTIVE
    resolution_method: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "severity": self.severity.value,
            "description": self.description,
            "timestamp": self.timestamp,
            "possibleCauses": list(self.possible_causes),
            "recommendations": [option.to_dict() for option in self.recommendations],
            "status": self.status.value,
            "resolutionMethod": self.resolution_method,
        }


@dataclass(frozen=True, slots=True)
class InterfaceState:
    name: str
    is_up: bool
    address: str | None
    speed_mbps: int | None = None


@dataclass(frozen=True, slots=True)
class ProbeResult:
    target: str
    attempts: int
    successes: int
    times_ms: tuple[float, ...] = ()

    @property
    def loss_percent(self) -> float:
        if self.attempts <= 0:
            return 100.0
        return round((self.attempts - self.successes) / self.attempts * 100.0, 1)

    @property
    def avg_ms(self) -> float | None:
        if not self.times_ms:
            return None
        return round(sum(self.times_ms) / len(self.times_ms), 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": self.target,
            "avgTime": self.avg_ms,
            "loss": self.loss_percent,
        }


@dataclass(frozen=True, slots=True)
class NetworkDiagnostics:
    timestamp: float
    connected: bool
    dns_servers: tuple[str, ...]
    interfaces: tuple[InterfaceState, ...]
    dns_probe: ProbeResult
    connect_probe: ProbeResult
    download_mbps: float | None
    upload_mbps: float | None
    jitter_ms: float | None
    issues: tuple[NetworkIssue, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "internetConnection": {
                "status": "connected" if self.connected else "disconnected",
                "dns": list(self.dns_servers),
                "interfaces": [
                    {
                        "name": iface.name,
                        "isUp": iface.is_up,
                        "address": iface.address,
                        "speedMbps": iface.speed_mbps,
                    }
                    for iface in self.interfaces
                ],
            },
            "speedTest": {
                "download": self.download_mbps,
                "upload": self.upload_mbps,
                "latency": self.connect_probe.avg_ms,
                "jitter": self.jitter_ms,
            },
            "pingResults": {
                "dns": self.dns_probe.to_dict(),
                "internet": self.connect_probe.to_dict(),
            },
            "issues": [issue.to_dict() for issue in self.issues],
        }
