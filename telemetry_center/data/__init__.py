"""Data provider package."""

from .collector import MetricCollector, PsutilCollector
from .disk import collect_partitions, read_disk_volumes
from .drivers import DriverSource, KernelModuleSource, categorize_driver
from .logs import (
    FallbackLogSource,
    JournalLogSource,
    LogSource,
    MemoryLogSource,
    SyslogFileSource,
    default_log_source,
)
from .network import ThroughputTracker, collect_interfaces, read_dns_servers
from .probe import NetworkProbe, SocketNetworkProbe
from .processes import ProcessSource, PsutilProcessSource, matches_app
from .system import collect_system_info

__all__ = [
    "MetricCollector",
    "PsutilCollector",
    "collect_partitions",
    "read_disk_volumes",
    "DriverSource",
    "KernelModuleSource",
    "categorize_driver",
    "FallbackLogSource",
    "JournalLogSource",
    "LogSource",
    "MemoryLogSource",
    "SyslogFileSource",
    "default_log_source",
    "ThroughputTracker",
    "collect_interfaces",
    "read_dns_servers",
    "NetworkProbe",
    "SocketNetworkProbe",
    "ProcessSource",
    "PsutilProcessSource",
    "matches_app",
    "collect_system_info",
]
