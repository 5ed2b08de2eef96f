"""Active network probes: name resolution and TCP reachability."""

from __future__ import annotations

import socket
import time
from typing import Protocol

from telemetry_center.models import InterfaceState, ProbeResult

from .network import collect_interfaces, read_dns_servers


class NetworkProbe(Protocol):
    def interfaces(self) -> list[InterfaceState]: ...

    def dns_servers(self) -> list[str]: ...

    def resolve(self, host: str, attempts: int) -> ProbeResult: ...

    def connect(self, host: str, port: int, attempts: int) -> ProbeResult: ...


class SocketNetworkProbe:
    def __init__(self, timeout: float = 3.0) -> None:
        self._timeout = timeout

    def interfaces(self) -> list[InterfaceState]:
        return collect_interfaces()

    def dns_servers(self) -> list[str]:
        return read_dns_servers()

    def resolve(self, host: str, attempts: int) -> ProbeResult:
        times: list[float] = []
        for _ in range(attempts):
            start = time.perf_counter()
            try:
                socket.getaddrinfo(host, None)
            except (socket.gaierror, OSError):
                continue
            times.append((time.perf_counter() - start) * 1000)
        return ProbeResult(target=host, attempts=attempts, successes=len(times), times_ms=tuple(times))

    def connect(self, host: str, port: int, attempts: int) -> ProbeResult:
        times: list[float] = []
        for _ in range(attempts):
            start = time.perf_counter()
            try:
                with socket.create_connection((host, port), timeout=self._timeout):
                    pass
            except OSError:
                continue
            times.append((time.perf_counter() - start) * 1000)
        return ProbeResult(
            target=f"{host}:{port}",
            attempts=attempts,
            successes=len(times),
            times_ms=tuple(times),
        )
