"""System summary collection utilities."""

from __future__ import annotations

import platform
import socket
import time
from pathlib import Path
from typing import Optional

import psutil

from telemetry_center.models import SystemInfoSnapshot

_DMI_PATH = Path("/sys/class/dmi/id")

_VIRTUALIZATION_PATTERNS = {
    "kvm": "KVM",
    "qemu": "QEMU",
    "vmware": "VMware",
    "virtualbox": "VirtualBox",
    "hyper-v": "Hyper-V",
    "xen": "Xen",
    "parallels": "Parallels",
}


def _read_dmi(field: str) -> str | None:
    path = _DMI_PATH / field
    if not path.exists():
        return None
    try:
        value = path.read_text(encoding="utf-8", errors="replace").strip()
    except OSError:
        return None
    return value or None


def _detect_virtualization() -> str | None:
    candidates = [
        (_read_dmi("product_name") or "") + " " + (_read_dmi("sys_vendor") or ""),
        (_read_dmi("product_version") or ""),
    ]
    for text in candidates:
        lowered = text.lower()
        for needle, label in _VIRTUALIZATION_PATTERNS.items():
            if needle in lowered:
                return label
    return None


def collect_system_info() -> SystemInfoSnapshot:
    timestamp = time.time()
    uname = platform.uname()
    hostname = getattr(uname, "node", None) or socket.gethostname()

    try:
        total_memory_bytes = int(psutil.virtual_memory().total)
    except Exception:  # pragma: no cover - should not happen
        total_memory_bytes = None

    boot_time: Optional[float]
    try:
        boot_time = float(psutil.boot_time())
    except Exception:  # pragma: no cover - psutil fallback
        boot_time = None

    return SystemInfoSnapshot(
        timestamp=timestamp,
        hostname=hostname,
        os_name=platform.system() or None,
        os_version=platform.version() or None,
        kernel_version=getattr(uname, "release", None),
        architecture=getattr(uname, "machine", None),
        cpu_model=getattr(uname, "processor", None) or platform.processor() or None,
        logical_cores=psutil.cpu_count(logical=True),
        physical_cores=psutil.cpu_count(logical=False),
        total_memory_bytes=total_memory_bytes,
        uptime_seconds=max(0.0, timestamp - boot_time) if boot_time else None,
        boot_time=boot_time,
        virtualization=_detect_virtualization(),
    )
