"""Network throughput and interface collection."""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Any

import psutil

from telemetry_center.models import InterfaceState, NetworkThroughput

_RESOLV_CONF = Path("/etc/resolv.conf")


class ThroughputTracker:
    """Turns cumulative interface counters into per-second rates."""

    def __init__(self) -> None:
        self._previous: tuple[float, Any] | None = None
        self._lock = threading.Lock()

    def read(self) -> NetworkThroughput:
        timestamp = time.time()
        counters = psutil.net_io_counters()
        with self._lock:
            previous = self._previous
            self._previous = (timestamp, counters)
        if previous is None:
            return NetworkThroughput(sent_bytes_per_sec=0.0, recv_bytes_per_sec=0.0)
        prev_time, prev = previous
        delta_t = max(timestamp - prev_time, 1e-6)
        sent_rate = max(0.0, (counters.bytes_sent - prev.bytes_sent) / delta_t)
        recv_rate = max(0.0, (counters.bytes_recv - prev.bytes_recv) / delta_t)
        return NetworkThroughput(sent_bytes_per_sec=sent_rate, recv_bytes_per_sec=recv_rate)


def collect_interfaces() -> list[InterfaceState]:
    stats = psutil.net_if_stats()
    addrs = psutil.net_if_addrs()
    interfaces: list[InterfaceState] = []
    for name, iface_stats in stats.items():
        address = None
        for addr in addrs.get(name, []):
            family_name = getattr(addr.family, "name", str(addr.family))
            if family_name == "AF_INET":
                address = addr.address
                break
        interfaces.append(
            InterfaceState(
                name=name,
                is_up=bool(getattr(iface_stats, "isup", False)),
                address=address,
                speed_mbps=int(iface_stats.speed) if getattr(iface_stats, "speed", 0) else None,
            )
        )
    return interfaces


def read_dns_servers(path: Path = _RESOLV_CONF) -> list[str]:
    try:
        content = path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return []
    servers: list[str] = []
    for line in content.splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[0] == "nameserver":
            servers.append(parts[1])
    return servers
