"""Models exported by Telemetry Center."""

from .diagnostics import (
    DriverInfo,
    DriverProblem,
    DriverRecord,
    FixOption,
    InterfaceState,
    IssueStatus,
    NetworkDiagnostics,
    NetworkIssue,
    ProbeResult,
)
from .logs import (
    CriticalIssue,
    IssueCategory,
    LogAnalysis,
    LogLevel,
    LogRecord,
    LogStats,
    QueryDiagnosis,
    SystemState,
    WarningEntry,
)
from .metrics import (
    DiskVolume,
    HealthScore,
    HealthStatus,
    MetricSample,
    NetworkThroughput,
    PartitionInfo,
    SystemInfoSnapshot,
)
from .risk import (
    Prediction,
    Predictions,
    Priority,
    RiskAssessment,
    RiskCategory,
    RiskRecommendation,
    RiskScore,
    Timeframe,
)
from .sessions import (
    MonitorSession,
    PerformanceData,
    ProcessDescriptor,
    ProcessInfo,
    SessionData,
    SessionIssue,
    SessionStatus,
)

__all__ = [
    "CriticalIssue",
    "DiskVolume",
    "DriverInfo",
    "DriverProblem",
    "DriverRecord",
    "FixOption",
    "HealthScore",
    "HealthStatus",
    "InterfaceState",
    "IssueCategory",
    "IssueStatus",
    "LogAnalysis",
    "LogLevel",
    "LogRecord",
    "LogStats",
    "MetricSample",
    "MonitorSession",
    "NetworkDiagnostics",
    "NetworkIssue",
    "NetworkThroughput",
    "PartitionInfo",
    "PerformanceData",
    "Prediction",
    "Predictions",
    "Priority",
    "ProbeResult",
    "ProcessDescriptor",
    "ProcessInfo",
    "QueryDiagnosis",
    "RiskAssessment",
    "RiskCategory",
    "RiskRecommendation",
    "RiskScore",
    "SessionData",
    "SessionIssue",
    "SessionStatus",
    "SystemInfoSnapshot",
    "SystemState",
    "Timeframe",
    "WarningEntry",
]
