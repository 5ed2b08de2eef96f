"""Shared fakes and fixtures for the Telemetry Center test suite."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable

import pytest

from telemetry_center.core import Settings
from telemetry_center.core.errors import SourceUnreachable
from telemetry_center.models import (
    DiskVolume,
    DriverInfo,
    InterfaceState,
    LogLevel,
    LogRecord,
    NetworkThroughput,
    PerformanceData,
    ProbeResult,
    ProcessDescriptor,
)
from telemetry_center.web.service import TelemetryService


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class FakeCollector:
    """Collector returning fixed readings; capabilities listed in ``failing`` raise."""

    def __init__(
        self,
        cpu: float = 10.0,
        memory: float = 20.0,
        disk: Any = 30.0,
        network: NetworkThroughput | None = None,
        failing: Iterable[str] = (),
    ) -> None:
        self.cpu = cpu
        self.memory = memory
        self.disk = disk
        self.network = network or NetworkThroughput(sent_bytes_per_sec=1_000.0, recv_bytes_per_sec=2_000.0)
        self.failing = set(failing)

    def _value(self, name: str) -> Any:
        if name in self.failing:
            raise RuntimeError(f"{name} unavailable")
        return getattr(self, name)

    def read_cpu(self) -> float:
        return self._value("cpu")

    def read_memory(self) -> float:
        return self._value("memory")

    def read_disk(self) -> Any:
        return self._value("disk")

    def read_network(self) -> NetworkThroughput:
        return self._value("network")


class FakeLogSource:
    def __init__(self, records: Iterable[LogRecord] = (), *, unreachable: bool = False) -> None:
        self.records = list(records)
        self.unreachable = unreachable
        self.reads = 0

    def read(self, limit: int) -> list[LogRecord]:
        self.reads += 1
        if self.unreachable:
            raise SourceUnreachable("journal not available")
        return self.records[-limit:]


class FakeProcessSource:
    def __init__(self, usage: dict[str, PerformanceData] | None = None) -> None:
        self.usage = usage or {}
        self.calls: list[str] = []

    def list_running(self) -> list[ProcessDescriptor]:
        return [
            ProcessDescriptor(name=name, title=name.title(), pid=100 + index, process_count=data.process_count)
            for index, (name, data) in enumerate(sorted(self.usage.items()))
            if data.running
        ]

    def usage_for(self, app_name: str) -> PerformanceData:
        self.calls.append(app_name)
        return self.usage.get(app_name.lower(), PerformanceData())


class FakeDriverSource:
    def __init__(self, drivers: Iterable[DriverInfo] = ()) -> None:
        self.drivers = list(drivers)

    def read(self) -> list[DriverInfo]:
        return list(self.drivers)


class FakeProbe:
    def __init__(
        self,
        *,
        interfaces: Iterable[InterfaceState] | None = None,
        dns_servers: Iterable[str] = ("192.168.1.1",),
        resolve_successes: int = 4,
        connect_times: Iterable[float] = (20.0, 22.0, 21.0, 23.0),
        connect_attempts: int = 4,
    ) -> None:
        self._interfaces = list(
            interfaces
            if interfaces is not None
            else [
                InterfaceState(name="lo", is_up=True, address="127.0.0.1"),
                InterfaceState(name="eth0", is_up=True, address="192.168.1.20", speed_mbps=1000),
            ]
        )
        self._dns = list(dns_servers)
        self.resolve_successes = resolve_successes
        self.connect_times = tuple(connect_times)
        self.connect_attempts = connect_attempts

    def interfaces(self) -> list[InterfaceState]:
        return list(self._interfaces)

    def dns_servers(self) -> list[str]:
        return list(self._dns)

    def resolve(self, host: str, attempts: int) -> ProbeResult:
        successes = min(self.resolve_successes, attempts)
        return ProbeResult(target=host, attempts=attempts, successes=successes, times_ms=(5.0,) * successes)

    def connect(self, host: str, port: int, attempts: int) -> ProbeResult:
        return ProbeResult(
            target=f"{host}:{port}",
            attempts=self.connect_attempts,
            successes=len(self.connect_times),
            times_ms=self.connect_times,
        )


class MemoryFeedbackStore:
    def __init__(self) -> None:
        self.entries: list[dict[str, Any]] = []

    def write(self, entry: dict[str, Any]) -> None:
        self.entries.append(entry)


class FailingFeedbackStore:
    def write(self, entry: dict[str, Any]) -> None:
        raise OSError("disk is read-only")


class ManualTask:
    """Task stand-in that never spawns a thread; tests drive it explicitly."""

    instances: list["ManualTask"] = []

    def __init__(self, action: Any, interval: float, *, name: str = "task", **_: Any) -> None:
        self.action = action
        self.interval = interval
        self.name = name
        self.started = False
        self.stopped = False
        ManualTask.instances.append(self)

    def start(self) -> None:
        self.started = True

    def stop(self, timeout: float | None = None) -> None:
        self.stopped = True

    def reschedule(self, interval: float) -> None:
        self.interval = interval

    def is_running(self) -> bool:
        return self.started and not self.stopped

    def run_once(self) -> None:
        self.action()


def make_record(
    message: str,
    *,
    level: str | LogLevel = LogLevel.ERROR,
    source: str = "kernel",
    timestamp: float = 1_700_000_000.0,
) -> LogRecord:
    return LogRecord(timestamp=timestamp, level=LogLevel.parse(level), source=source, message=message)


def make_volume(used_percent: float, total: int = 1_000_000) -> DiskVolume:
    free = int(round(total * (100.0 - used_percent) / 100.0))
    return DiskVolume(name="sda1", mountpoint="/", total_bytes=total, free_bytes=free)


def build_service(tmp_path: Path, clock: FakeClock | None = None, **overrides: Any) -> TelemetryService:
    """TelemetryService wired to fakes; keyword arguments replace individual fakes."""

    options: dict[str, Any] = {
        "collector": FakeCollector(),
        "log_source": FakeLogSource(),
        "process_source": FakeProcessSource(
            {"firefox": PerformanceData(cpu=5.0, memory=300.0, process_count=3, threads=40, running=True)}
        ),
        "driver_source": FakeDriverSource(
            [DriverInfo(id="nvidia", name="nvidia", category="Display", version="525.60.11", manufacturer="Proprietary vendor")]
        ),
        "probe": FakeProbe(),
        "feedback_store": MemoryFeedbackStore(),
        "clock": clock or FakeClock(),
    }
    options.update(overrides)
    return TelemetryService(Settings(data_dir=tmp_path), **options)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def manual_tasks() -> list[ManualTask]:
    ManualTask.instances.clear()
    return ManualTask.instances
