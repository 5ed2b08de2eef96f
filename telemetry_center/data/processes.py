"""Process enumeration and per-application usage aggregation."""

from __future__ import annotations

import os
from typing import Iterable, Protocol

import psutil

from telemetry_center.models import PerformanceData, ProcessDescriptor, ProcessInfo

_PROCESS_ATTRS = [
    "pid",
    "name",
    "status",
    "username",
    "create_time",
    "cpu_percent",
    "memory_info",
    "cmdline",
    "num_threads",
]


class ProcessSource(Protocol):
    def list_running(self) -> list[ProcessDescriptor]: ...

    def usage_for(self, app_name: str) -> PerformanceData: ...


def _safe_cmdline(cmdline: Iterable[str] | None) -> tuple[str, ...]:
    if not cmdline:
        return ()
    return tuple(arg for arg in cmdline if arg)


def normalize_app_name(name: str) -> str:
    lowered = name.strip().lower()
    if lowered.endswith(".exe"):
        lowered = lowered[:-4]
    return lowered


def matches_app(process_name: str, app_name: str) -> bool:
    wanted = normalize_app_name(app_name)
    return bool(wanted) and wanted in normalize_app_name(process_name)


def collect_processes() -> list[tuple[ProcessInfo, int]]:
    """Return ``(info, thread_count)`` for every readable process."""

    processes: list[tuple[ProcessInfo, int]] = []
    for proc in psutil.process_iter(attrs=_PROCESS_ATTRS):
        try:
            info = proc.info
            memory_info = info.get("memory_info")
            processes.append(
                (
                    ProcessInfo(
                        pid=int(info["pid"]),
                        name=str(info.get("name") or ""),
                        status=str(info.get("status") or "unknown"),
                        username=info.get("username"),
                        create_time=float(info.get("create_time") or 0.0),
                        cpu_percent=float(info.get("cpu_percent") or 0.0),
                        memory_bytes=int(memory_info.rss) if memory_info else 0,
                        command_line=_safe_cmdline(info.get("cmdline")),
                    ),
                    int(info.get("num_threads") or 0),
                )
            )
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    return processes


class PsutilProcessSource:
    """Process source backed by ``psutil.process_iter``."""

    def list_running(self) -> list[ProcessDescriptor]:
        grouped: dict[str, list[ProcessInfo]] = {}
        for info, _threads in collect_processes():
            # Kernel threads have no command line; they are not applications.
            if not info.name or not info.command_line:
                continue
            grouped.setdefault(info.name, []).append(info)

        descriptors: list[ProcessDescriptor] = []
        for name, members in grouped.items():
            members.sort(key=lambda p: p.create_time or 0.0)
            leader = members[0]
            title = " ".join(leader.command_line)
            if len(title) > 120:
                title = title[:117] + "..."
            descriptors.append(
                ProcessDescriptor(
                    name=name,
                    title=os.path.basename(leader.command_line[0]) if not title else title,
                    pid=leader.pid,
                    process_count=len(members),
                )
            )
        descriptors.sort(key=lambda d: d.name.lower())
        return descriptors

    def usage_for(self, app_name: str) -> PerformanceData:
        cpu = 0.0
        memory = 0
        threads = 0
        count = 0
        for info, thread_count in collect_processes():
            if not matches_app(info.name, app_name):
                continue
            cpu += info.cpu_percent
            memory += info.memory_bytes
            threads += thread_count
            count += 1
        return PerformanceData(
            cpu=cpu,
            memory=memory / (1024 * 1024),
            process_count=count,
            threads=threads,
            running=count > 0,
        )
