"""Process descriptors and per-application monitoring session state."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SessionStatus(str, Enum):
    ACTIVE = "Active"
    STOPPED = "Stopped"


@dataclass(slots=True)
class ProcessInfo:
    pid: int
    name: str
    status: str
    username: str | None
    create_time: float | None
    cpu_percent: float
    memory_bytes: int
    command_line: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class ProcessDescriptor:
    name: str
    title: str
    pid: int | None = None
    process_count: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "title": self.title,
            "pid": self.pid,
            "processCount": self.process_count,
        }


@dataclass(frozen=True, slots=True)
class PerformanceData:
    cpu: float = 0.0
    memory: float = 0.0  # MB
    process_count: int = 0
    threads: int = 0
    running: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "cpu": round(self.cpu, 1),
            "memory": round(self.memory, 1),
            "processCount": self.process_count,
            "threads": self.threads,
            "running": self.running,
        }


@dataclass(frozen=True, slots=True)
class SessionIssue:
    message: str
    recommendation: str
    source: str
    timestamp: float

    @property
    def key(self) -> tuple[str, str]:
        return self.source, self.message

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "recommendation": self.recommendation,
            "source": self.source,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True, slots=True)
class SessionData:
    performance_data: PerformanceData = field(default_factory=PerformanceData)
    issues: tuple[SessionIssue, ...] = ()


@dataclass(frozen=True, slots=True)
class MonitorSession:
    """Read-only view of one monitoring session."""

    app_name: str
    poll_interval_ms: int
    status: SessionStatus
    started_at: float
    last_update: float | None = None
    latest_data: SessionData = field(default_factory=SessionData)
    new_issues: tuple[SessionIssue, ...] = ()
    polls: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "appName": self.app_name,
            "pollIntervalMs": self.poll_interval_ms,
            "status": self.status.value,
            "startedAt": self.started_at,
            "lastUpdate": self.last_update,
            "data": {
                "performanceData": self.latest_data.performance_data.to_dict(),
                "issues": [issue.to_dict() for issue in self.latest_data.issues],
            },
            "newIssues": [issue.to_dict() for issue in self.new_issues],
            "polls": self.polls,
        }
