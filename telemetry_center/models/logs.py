"""Log records and the structured analysis produced from them."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


class LogLevel(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

    @classmethod
    def parse(cls, value: Any) -> "LogLevel":
        """Normalize the many spellings log providers use."""

        if isinstance(value, LogLevel):
            return value
        text = str(value or "").strip().lower()
        if text in {"error", "err", "critical", "crit", "alert", "emerg", "emergency", "fatal"}:
            return cls.ERROR
        if text in {"warning", "warn"}:
            return cls.WARNING
        return cls.INFO


class IssueCategory(str, Enum):
    DISK = "disk"
    MEMORY = "memory"
    CPU = "cpu"
    NETWORK = "network"
    DRIVER = "driver"
    HARDWARE = "hardware"
    SECURITY = "security"
    SERVICE = "service"
    APPLICATION = "application"
    UPDATE = "update"
    GENERAL = "general"


class SystemState(str, Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True, slots=True)
class LogRecord:
    timestamp: float
    level: LogLevel
    source: str
    message: str
    details: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "LogRecord":
        details = payload.get("details") or payload.get("structuredDetails") or {}
        return cls(
            timestamp=float(payload.get("timestamp") or 0.0),
            level=LogLevel.parse(payload.get("level")),
            source=str(payload.get("source") or "unknown"),
            message=str(payload.get("message") or ""),
            details={str(key): str(value) for key, value in dict(details).items()},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "level": self.level.value,
            "source": self.source,
            "message": self.message,
            "details": dict(self.details),
        }


@dataclass(frozen=True, slots=True)
class CriticalIssue:
    issue: str
    impact: str
    category: IssueCategory
    source: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "issue": self.issue,
            "impact": self.impact,
            "category": self.category.value,
            "source": self.source,
        }


@dataclass(frozen=True, slots=True)
class WarningEntry:
    component: str
    message: str
    category: IssueCategory

    def to_dict(self) -> dict[str, Any]:
        return {
            "component": self.component,
            "message": self.message,
            "category": self.category.value,
        }


@dataclass(frozen=True, slots=True)
class LogStats:
    error_count: int = 0
    warning_count: int = 0
    info_count: int = 0

    @property
    def total(self) -> int:
        return self.error_count + self.warning_count + self.info_count

    def to_dict(self) -> dict[str, int]:
        return {
            "errorCount": self.error_count,
            "warningCount": self.warning_count,
            "infoCount": self.info_count,
        }


@dataclass(frozen=True, slots=True)
class LogAnalysis:
    summary: str
    critical_issues: tuple[CriticalIssue, ...] = ()
    warnings: tuple[WarningEntry, ...] = ()
    recommendations: tuple[str, ...] = ()
    system_state: SystemState = SystemState.HEALTHY
    stats: LogStats = field(default_factory=LogStats)

    def categories(self) -> set[IssueCategory]:
        found = {issue.category for issue in self.critical_issues}
        found.update(warning.category for warning in self.warnings)
        return found

    def count(self, category: IssueCategory) -> tuple[int, int]:
        """Return ``(critical, warning)`` counts for ``category``."""

        critical = sum(1 for issue in self.critical_issues if issue.category is category)
        warnings = sum(1 for warning in self.warnings if warning.category is category)
        return critical, warnings

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "criticalIssues": [issue.to_dict() for issue in self.critical_issues],
            "warnings": [warning.to_dict() for warning in self.warnings],
            "recommendations": list(self.recommendations),
            "systemState": self.system_state.value,
            "stats": self.stats.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class QueryDiagnosis:
    diagnosis: str
    related_logs: tuple[LogRecord, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "diagnosis": self.diagnosis,
            "relatedLogs": [record.to_dict() for record in self.related_logs],
        }
