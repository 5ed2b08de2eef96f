"""Network diagnostic cycle: probes, rule-based issues and an issue registry."""

from __future__ import annotations

import logging
import statistics
import threading
import time
import uuid
from dataclasses import replace
from typing import Any, Callable, Mapping, Protocol

from telemetry_center.core.errors import NotFoundError, ValidationError
from telemetry_center.data.probe import NetworkProbe
from telemetry_center.models import (
    FixOption,
    IssueStatus,
    NetworkDiagnostics,
    NetworkIssue,
    Priority,
    ProbeResult,
)

from .store import RollingSeriesStore

logger = logging.getLogger(__name__)

DNS_TEST_HOST = "example.com"
CONNECT_TARGET = ("1.1.1.1", 443)
PROBE_ATTEMPTS = 4
THROUGHPUT_WINDOW_SECONDS = 300
HISTORY_LIMIT = 200

FIX_OPTIONS: Mapping[str, FixOption] = {
    option.id: option
    for option in (
        FixOption("flush_dns", "Clear the local DNS cache", "flush_dns", "easy"),
        FixOption("change_dns", "Switch to a public DNS resolver (1.1.1.1 or 8.8.8.8)", "change_dns", "medium"),
        FixOption("restart_network", "Restart the network service", "restart_network", "easy"),
        FixOption("renew_dhcp", "Release and renew the DHCP lease", "renew_dhcp", "easy"),
        FixOption("reset_adapter", "Bring the network adapter down and up again", "reset_adapter", "medium"),
        FixOption("check_hardware", "Check cables, Wi-Fi signal and the router", "check_hardware", "easy"),
        FixOption("reduce_load", "Pause large downloads and streaming on this network", "reduce_load", "easy"),
    )
}

# Shell plan for each fix; the dry-run executor only reports these.
FIX_COMMANDS: Mapping[str, tuple[str, ...]] = {
    "flush_dns": ("resolvectl flush-caches",),
    "change_dns": ("resolvectl dns <interface> 1.1.1.1 8.8.8.8",),
    "restart_network": ("systemctl restart NetworkManager",),
    "renew_dhcp": ("dhclient -r", "dhclient"),
    "reset_adapter": ("ip link set <interface> down", "ip link set <interface> up"),
    "check_hardware": (),
    "reduce_load": (),
}


class FixExecutor(Protocol):
    def apply(self, issue: NetworkIssue, option: FixOption) -> dict[str, Any]: ...


class DryRunFixExecutor:
    """Reports what a fix would run without touching the system."""

    def apply(self, issue: NetworkIssue, option: FixOption) -> dict[str, Any]:
        commands = list(FIX_COMMANDS.get(option.id, ()))
        logger.info("Plan de corrección '%s' para %s (sin ejecutar)", option.id, issue.id)
        return {
            "executed": False,
            "commands": commands,
            "manual": not commands,
        }


def jitter_ms(probe: ProbeResult) -> float | None:
    times = probe.times_ms
    if len(times) < 2:
        return None
    return round(statistics.fmean(abs(b - a) for a, b in zip(times, times[1:])), 1)


def _options(*ids: str) -> tuple[FixOption, ...]:
    return tuple(FIX_OPTIONS[i] for i in ids)


class NetworkDiagnosticEngine:
    """Runs probes and keeps one active issue per issue type.

    A diagnostic run that no longer detects an active issue marks it resolved
    automatically; issues fixed through :meth:`fix` record the fix applied.
    """

    def __init__(
        self,
        probe: NetworkProbe,
        *,
        store: RollingSeriesStore | None = None,
        executor: FixExecutor | None = None,
        clock: Callable[[], float] = time.time,
        latency_warning_ms: float = 150.0,
        latency_critical_ms: float = 300.0,
        jitter_warning_ms: float = 30.0,
    ) -> None:
        self._probe = probe
        self._store = store
        self._executor = executor or DryRunFixExecutor()
        self._clock = clock
        self._latency_warning = latency_warning_ms
        self._latency_critical = latency_critical_ms
        self._jitter_warning = jitter_warning_ms
        self._issues: dict[str, NetworkIssue] = {}
        self._active_by_type: dict[str, str] = {}
        self._lock = threading.RLock()

    def run_diagnostics(self) -> NetworkDiagnostics:
        now = self._clock()
        interfaces = tuple(self._probe.interfaces())
        dns_servers = tuple(self._probe.dns_servers())
        dns_probe = self._probe.resolve(DNS_TEST_HOST, PROBE_ATTEMPTS)
        connect_probe = self._probe.connect(CONNECT_TARGET[0], CONNECT_TARGET[1], PROBE_ATTEMPTS)
        jitter = jitter_ms(connect_probe)
        download, upload = self._observed_throughput(now)

        detected = self._detect(interfaces, dns_servers, dns_probe, connect_probe, jitter, now)
        active = self._merge(detected, now)
        connected = connect_probe.successes > 0
        logger.info(
            "Diagnóstico de red: %s, %d problema(s) activo(s)",
            "conectado" if connected else "sin conexión",
            len(active),
        )
        return NetworkDiagnostics(
            timestamp=now,
            connected=connected,
            dns_servers=dns_servers,
            interfaces=interfaces,
            dns_probe=dns_probe,
            connect_probe=connect_probe,
            download_mbps=download,
            upload_mbps=upload,
            jitter_ms=jitter,
            issues=tuple(active),
        )

    def issues(self) -> list[NetworkIssue]:
        """Every known issue, newest first."""

        with self._lock:
            return sorted(self._issues.values(), key=lambda issue: issue.timestamp, reverse=True)

    def get(self, issue_id: str) -> NetworkIssue:
        with self._lock:
            issue = self._issues.get(issue_id)
        if issue is None:
            raise NotFoundError(f"network issue '{issue_id}' not found")
        return issue

    def fix(self, issue_id: str, fix_type: str) -> dict[str, Any]:
        if not fix_type:
            raise ValidationError("fixType is required")
        issue = self.get(issue_id)
        if issue.status is IssueStatus.RESOLVED:
            raise ValidationError(f"network issue '{issue_id}' is already resolved")
        option = next(
            (o for o in issue.recommendations if fix_type in (o.id, o.action)),
            None,
        )
        if option is None:
            allowed = ", ".join(o.id for o in issue.recommendations)
            raise ValidationError(f"'{fix_type}' is not a fix for this issue (expected one of: {allowed})")

        result = self._executor.apply(issue, option)
        with self._lock:
            current = self._issues.get(issue_id, issue)
            resolved = replace(current, status=IssueStatus.RESOLVED, resolution_method=option.id)
            self._issues[issue_id] = resolved
            if self._active_by_type.get(resolved.type) == issue_id:
                del self._active_by_type[resolved.type]
        return {"issue": resolved, "fix": option, "result": result}

    def _observed_throughput(self, now: float) -> tuple[float | None, float | None]:
        if self._store is None:
            return None, None
        readings = [s.network for s in self._store.window(THROUGHPUT_WINDOW_SECONDS, now=now) if s.network]
        if not readings:
            return None, None
        to_mbps = 8 / 1_000_000
        download = statistics.fmean(r.recv_bytes_per_sec for r in readings) * to_mbps
        upload = statistics.fmean(r.sent_bytes_per_sec for r in readings) * to_mbps
        return round(download, 2), round(upload, 2)

    def _detect(
        self,
        interfaces: tuple[Any, ...],
        dns_servers: tuple[str, ...],
        dns_probe: ProbeResult,
        connect_probe: ProbeResult,
        jitter: float | None,
        now: float,
    ) -> list[NetworkIssue]:
        found: list[NetworkIssue] = []

        def add(kind: str, severity: Priority, description: str, causes: tuple[str, ...], fixes: tuple[FixOption, ...]) -> None:
            found.append(
                NetworkIssue(
                    id="",
                    type=kind,
                    severity=severity,
                    description=description,
                    timestamp=now,
                    possible_causes=causes,
                    recommendations=fixes,
                )
            )

        external = [iface for iface in interfaces if not iface.name.startswith("lo")]
        if not any(iface.is_up and iface.address for iface in external):
            add(
                "no_interface",
                Priority.HIGH,
                "No network adapter is up with an address assigned",
                ("Wi-Fi is turned off", "Network cable unplugged", "Adapter driver not loaded"),
                _options("reset_adapter", "renew_dhcp", "check_hardware"),
            )
        if connect_probe.successes == 0:
            add(
                "no_internet",
                Priority.HIGH,
                f"Could not reach {connect_probe.target} in {connect_probe.attempts} attempts",
                ("Router or modem is down", "Internet provider outage", "Firewall blocking traffic"),
                _options("restart_network", "renew_dhcp", "check_hardware"),
            )
        elif connect_probe.loss_percent > 0:
            add(
                "packet_loss",
                Priority.HIGH if connect_probe.loss_percent >= 20 else Priority.MEDIUM,
                f"{connect_probe.loss_percent:.0f}% of connection attempts failed",
                ("Weak Wi-Fi signal", "Congested network", "Faulty cable or router"),
                _options("check_hardware", "reduce_load", "reset_adapter"),
            )

        if not dns_servers:
            add(
                "dns_config",
                Priority.MEDIUM,
                "No DNS servers are configured",
                ("DHCP did not provide DNS servers", "Resolver configuration was overwritten"),
                _options("change_dns", "renew_dhcp"),
            )
        if dns_probe.successes == 0 and connect_probe.successes > 0:
            add(
                "dns_resolution",
                Priority.HIGH,
                f"Name resolution for {dns_probe.target} failed although the internet is reachable",
                ("DNS server is down or slow", "Stale DNS cache"),
                _options("flush_dns", "change_dns"),
            )

        latency = connect_probe.avg_ms
        if latency is not None and latency >= self._latency_warning:
            add(
                "high_latency",
                Priority.HIGH if latency >= self._latency_critical else Priority.MEDIUM,
                f"Average connection latency is {latency:.0f} ms",
                ("Network congestion", "Distant or overloaded server", "Weak Wi-Fi signal"),
                _options("reduce_load", "check_hardware"),
            )
        if jitter is not None and jitter >= self._jitter_warning:
            add(
                "high_jitter",
                Priority.LOW,
                f"Latency varies by {jitter:.0f} ms between attempts",
                ("Wi-Fi interference", "Other devices saturating the link"),
                _options("reduce_load", "check_hardware"),
            )
        return found

    def _merge(self, detected: list[NetworkIssue], now: float) -> list[NetworkIssue]:
        active: list[NetworkIssue] = []
        with self._lock:
            seen_types = set()
            for issue in detected:
                seen_types.add(issue.type)
                existing_id = self._active_by_type.get(issue.type)
                if existing_id is not None:
                    merged = replace(
                        self._issues[existing_id],
                        severity=issue.severity,
                        description=issue.description,
                        timestamp=now,
                        possible_causes=issue.possible_causes,
                        recommendations=issue.recommendations,
                    )
                else:
                    merged = replace(issue, id=f"net-{uuid.uuid4().hex[:10]}")
                    self._active_by_type[issue.type] = merged.id
                    logger.warning("Nuevo problema de red: %s", merged.description)
                self._issues[merged.id] = merged
                active.append(merged)

            for kind, issue_id in list(self._active_by_type.items()):
                if kind in seen_types:
                    continue
                self._issues[issue_id] = replace(
                    self._issues[issue_id], status=IssueStatus.RESOLVED, resolution_method="auto"
                )
                del self._active_by_type[kind]

            if len(self._issues) > HISTORY_LIMIT:
                resolved = sorted(
                    (i for i in self._issues.values() if i.status is IssueStatus.RESOLVED),
                    key=lambda i: i.timestamp,
                )
                for old in resolved[: len(self._issues) - HISTORY_LIMIT]:
                    del self._issues[old.id]
        return active
