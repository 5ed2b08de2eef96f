"""Installed driver inventory (Linux kernel modules)."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Protocol

from telemetry_center.core.errors import SourceUnreachable
from telemetry_center.models import DriverInfo

_PROC_MODULES = Path("/proc/modules")
_SYS_MODULE = Path("/sys/module")

# Checked in order; the first matching pattern wins.
_CATEGORY_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("Display", re.compile(r"^(i915|xe|amdgpu|radeon|nouveau|nvidia.*|drm.*|vmwgfx|virtio_gpu|qxl|bochs)$")),
    ("Audio", re.compile(r"^(snd.*|soundcore|ac97.*)$")),
    ("Bluetooth", re.compile(r"^(bluetooth|bt(usb|intel|rtl|bcm|mtk).*|hci_.*|rfcomm|bnep)$")),
    ("Network", re.compile(r"^(e1000.*|igb|igc|ixgbe.*|r8169|r8152|tg3|bnx2.*|iwl.*|ath.*|rtw.*|rtl8.*|mt76.*|brcm.*|virtio_net|vmxnet3|cfg80211|mac80211)$")),
    ("Camera", re.compile(r"^(uvcvideo|videobuf2.*|v4l2.*|videodev)$")),
    ("Storage", re.compile(r"^(nvme.*|ahci|libahci|sd_mod|sr_mod|usb_storage|uas|virtio_blk|virtio_scsi|scsi_.*|dm_.*|raid.*|md_mod)$")),
    ("USB", re.compile(r"^(xhci.*|ehci.*|ohci.*|uhci.*|usbcore|usbhid|typec.*|ucsi.*)$")),
    ("Input", re.compile(r"^(hid.*|psmouse|i2c_hid.*|atkbd|evdev|joydev)$")),
    ("Filesystem", re.compile(r"^(ext4|xfs|btrfs|vfat|fat|ntfs.*|exfat|fuse|overlay|nfs.*|cifs|isofs)$")),
    ("Virtualization", re.compile(r"^(kvm.*|vbox.*|vmw_.*|vhost.*|virtio.*)$")),
    ("Power", re.compile(r"^(acpi.*|battery|intel_rapl.*|processor_thermal.*|thermal.*|cpufreq.*|intel_pstate)$")),
)


class DriverSource(Protocol):
    def read(self) -> list[DriverInfo]: ...


def categorize_driver(name: str) -> str:
    lowered = name.lower()
    for category, pattern in _CATEGORY_PATTERNS:
        if pattern.match(lowered):
            return category
    return "System"


def _read_text(path: Path) -> str | None:
    try:
        value = path.read_text(encoding="utf-8", errors="replace").strip()
    except OSError:
        return None
    return value or None


def _manufacturer(taint: str | None) -> str:
    if taint and "P" in taint:
        return "Proprietary vendor"
    if taint and "O" in taint:
        return "Out-of-tree"
    return "Linux kernel"


class KernelModuleSource:
    """Reads loaded kernel modules from ``/proc/modules`` and ``/sys/module``."""

    def __init__(self, proc_modules: Path = _PROC_MODULES, sys_module: Path = _SYS_MODULE) -> None:
        self._proc_modules = proc_modules
        self._sys_module = sys_module

    def read(self) -> list[DriverInfo]:
        try:
            content = self._proc_modules.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise SourceUnreachable(f"No se puede leer {self._proc_modules}: {exc}") from exc

        drivers: list[DriverInfo] = []
        for line in content.splitlines():
            parts = line.split()
            if not parts:
                continue
            name = parts[0]
            module_dir = self._sys_module / name
            drivers.append(
                DriverInfo(
                    id=name,
                    name=name,
                    category=categorize_driver(name),
                    version=_read_text(module_dir / "version"),
                    manufacturer=_manufacturer(_read_text(module_dir / "taint")),
                )
            )
        drivers.sort(key=lambda driver: (driver.category, driver.name))
        return drivers
