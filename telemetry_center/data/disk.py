"""Disk storage collection."""

from __future__ import annotations

import os

import psutil

from telemetry_center.models import DiskVolume, PartitionInfo

_PRIMARY_MOUNTPOINTS = ("/", "C:\\")


def _sort_key(mountpoint: str) -> tuple[int, str]:
    return (0 if mountpoint in _PRIMARY_MOUNTPOINTS else 1, mountpoint)


def collect_partitions() -> list[PartitionInfo]:
    """Return every mounted partition, the primary (system) volume first."""

    partitions: list[PartitionInfo] = []
    seen: set[str] = set()
    for part in psutil.disk_partitions(all=False):
        if part.mountpoint in seen:
            continue
        seen.add(part.mountpoint)
        try:
            usage = psutil.disk_usage(part.mountpoint)
        except (PermissionError, OSError):  # pragma: no cover - mountpoint permissions
            total = used = free = None
            percent = None
        else:
            total, used, free = int(usage.total), int(usage.used), int(usage.free)
            percent = float(usage.percent)
        partitions.append(
            PartitionInfo(
                device=part.device,
                mountpoint=part.mountpoint,
                fstype=part.fstype,
                total_bytes=total,
                used_bytes=used,
                free_bytes=free,
                percent=percent,
            )
        )
    partitions.sort(key=lambda p: _sort_key(p.mountpoint))
    return partitions


def read_disk_volumes() -> tuple[DiskVolume, ...]:
    volumes = tuple(
        DiskVolume(
            name=os.path.basename(part.device) or part.device,
            mountpoint=part.mountpoint,
            total_bytes=part.total_bytes,
            free_bytes=part.free_bytes,
        )
        for part in collect_partitions()
        if part.total_bytes
    )
    if not volumes:
        # Containers often expose no regular partition; fall back to the root fs.
        usage = psutil.disk_usage(os.path.abspath(os.sep))
        volumes = (
            DiskVolume(
                name="root",
                mountpoint=os.path.abspath(os.sep),
                total_bytes=int(usage.total),
                free_bytes=int(usage.free),
            ),
        )
    return volumes
