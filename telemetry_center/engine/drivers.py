"""Driver inventory checks, log-based driver problems and per-application reports."""

from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import replace
from typing import Any, Iterable, Mapping, Sequence

from telemetry_center.core.errors import NotFoundError, ValidationError
from telemetry_center.data.drivers import DriverSource, categorize_driver
from telemetry_center.models import (
    DriverInfo,
    DriverProblem,
    DriverRecord,
    FixOption,
    IssueCategory,
    LogLevel,
    LogRecord,
    Priority,
)

from .classifier import LogClassifier, category_of, recommendation_for
from .sessions import mentions_app

logger = logging.getLogger(__name__)

# Minimum known-good versions of out-of-tree modules that ship their own version.
DEFAULT_BASELINE: Mapping[str, tuple[str, Priority]] = {
    "nvidia": ("535.0", Priority.HIGH),
    "nvidia_drm": ("535.0", Priority.HIGH),
    "nvidia_modeset": ("535.0", Priority.HIGH),
    "nvidia_uvm": ("535.0", Priority.MEDIUM),
    "vboxdrv": ("7.0.0", Priority.MEDIUM),
    "vboxnetflt": ("7.0.0", Priority.LOW),
    "vboxnetadp": ("7.0.0", Priority.LOW),
    "zfs": ("2.1.0", Priority.HIGH),
    "wireguard": ("1.0.0", Priority.MEDIUM),
    "e1000e": ("3.2.6", Priority.MEDIUM),
    "r8168": ("8.050.0", Priority.MEDIUM),
}

# Driver categories an application of each kind depends on.
APP_REQUIREMENTS: tuple[tuple[re.Pattern[str], tuple[str, ...]], ...] = (
    (re.compile(r"steam|game|proton|wine|lutris|unity|unreal"), ("Display", "Audio", "Input")),
    (re.compile(r"zoom|teams|skype|discord|slack|meet|webex|jitsi"), ("Camera", "Audio", "Network")),
    (re.compile(r"obs|kdenlive|davinci|resolve|blender|gimp|krita|premiere"), ("Display", "Audio", "Storage")),
    (re.compile(r"chrome|chromium|firefox|brave|edge|opera|vivaldi"), ("Display", "Network")),
    (re.compile(r"spotify|vlc|mpv|rhythmbox|audacity"), ("Audio",)),
    (re.compile(r"docker|virtualbox|vmware|qemu|kvm"), ("Virtualization", "Storage", "Network")),
)
DEFAULT_REQUIREMENTS = ("Display", "Network")

_DRIVER_ID = re.compile(r"^[A-Za-z0-9_\-]+$")


def version_key(version: str | None) -> tuple[int, ...] | None:
    if not version:
        return None
    numbers = re.findall(r"\d+", version)
    return tuple(int(n) for n in numbers) if numbers else None


def is_outdated(version: str | None, minimum: str | None) -> bool:
    current, wanted = version_key(version), version_key(minimum)
    if current is None or wanted is None:
        return False
    width = max(len(current), len(wanted))
    return current + (0,) * (width - len(current)) < wanted + (0,) * (width - len(wanted))


def requirements_for(app_name: str) -> tuple[str, ...]:
    lowered = app_name.lower()
    for pattern, categories in APP_REQUIREMENTS:
        if pattern.search(lowered):
            return categories
    return DEFAULT_REQUIREMENTS


def _problem_id(record: LogRecord) -> str:
    digest = hashlib.sha1(
        f"{record.timestamp}|{record.source}|{record.message}".encode("utf-8")
    ).hexdigest()
    return f"drv-{digest[:12]}"


def _fix_options(driver_id: str, *, outdated: bool) -> tuple[FixOption, ...]:
    options = [
        FixOption(
            id="inspect",
            description=f"Show module details and recent kernel messages for {driver_id}",
            action=f"modinfo {driver_id}",
            difficulty="easy",
        ),
        FixOption(
            id="reload",
            description=f"Unload and reload the {driver_id} module",
            action=f"modprobe -r {driver_id} && modprobe {driver_id}",
            difficulty="medium",
        ),
    ]
    if outdated:
        options.insert(
            0,
            FixOption(
                id="update",
                description="Install the latest driver package from your distribution or the vendor",
                action="update-driver",
                difficulty="medium",
            ),
        )
    return tuple(options)


class DriverDiagnostics:
    """Rule-based driver checks over a pluggable inventory source."""

    def __init__(
        self,
        source: DriverSource,
        *,
        baseline: Mapping[str, tuple[str, Priority]] = DEFAULT_BASELINE,
        classifier: LogClassifier | None = None,
    ) -> None:
        self._source = source
        self._baseline = dict(baseline)
        self._classifier = classifier or LogClassifier()

    def inventory(self) -> list[DriverInfo]:
        drivers = []
        for driver in self._source.read():
            minimum, importance = self._baseline.get(driver.name, (None, Priority.LOW))
            outdated = is_outdated(driver.version, minimum)
            drivers.append(
                replace(
                    driver,
                    minimum_version=minimum,
                    update_available=outdated,
                    importance=importance if outdated else Priority.LOW,
                )
            )
        return drivers

    def check_updates(self) -> dict[str, Any]:
        drivers = self.inventory()
        pending = [driver for driver in drivers if driver.update_available]
        summary = {
            "total": len(drivers),
            "updatesAvailable": len(pending),
            "critical": sum(1 for d in pending if d.importance is Priority.HIGH),
            "medium": sum(1 for d in pending if d.importance is Priority.MEDIUM),
            "low": sum(1 for d in pending if d.importance is Priority.LOW),
        }
        if pending:
            logger.info("%d controlador(es) con actualización disponible", len(pending))
        return {"drivers": drivers, "summary": summary}

    def problems(self, logs: Iterable[LogRecord], drivers: Sequence[DriverInfo] | None = None) -> list[DriverProblem]:
        """Driver-related warnings and errors, newest first."""

        known = [d.name for d in (drivers if drivers is not None else self.inventory())]
        problems: list[DriverProblem] = []
        for record in logs:
            if record.level is LogLevel.INFO:
                continue
            device = self._device_in(record, known)
            if device is None and category_of(record) is not IssueCategory.DRIVER:
                continue
            device_name = device or record.source
            problems.append(
                DriverProblem(
                    id=_problem_id(record),
                    device_name=device_name,
                    level="Error" if record.level is LogLevel.ERROR else "Warning",
                    category=categorize_driver(device) if device else "System",
                    message=record.message,
                    time=record.timestamp,
                )
            )
        problems.sort(key=lambda p: p.time, reverse=True)
        return problems

    def issues(self, logs: Iterable[LogRecord]) -> list[DriverRecord]:
        drivers = self.inventory()
        records: list[DriverRecord] = []

        for driver in drivers:
            if not driver.update_available:
                continue
            records.append(
                DriverRecord(
                    id=f"outdated-{driver.id}",
                    category=driver.category,
                    severity=driver.importance,
                    description=(
                        f"{driver.name} {driver.version} is older than the minimum "
                        f"recommended version {driver.minimum_version}"
                    ),
                    recommendations=_fix_options(driver.id, outdated=True),
                )
            )

        grouped: dict[str, list[DriverProblem]] = {}
        for problem in self.problems(logs, drivers):
            grouped.setdefault(problem.device_name, []).append(problem)
        for device, problems in grouped.items():
            errors = sum(1 for p in problems if p.level == "Error")
            warnings = len(problems) - errors
            safe_id = device if _DRIVER_ID.match(device) else re.sub(r"[^A-Za-z0-9_\-]", "_", device)
            records.append(
                DriverRecord(
                    id=f"logged-{safe_id}",
                    category=problems[0].category,
                    severity=Priority.HIGH if errors else Priority.MEDIUM,
                    description=(
                        f"{device} reported {errors} error(s) and {warnings} warning(s); "
                        f"latest: {problems[0].message}"
                    ),
                    recommendations=_fix_options(safe_id, outdated=False),
                )
            )

        records.sort(key=lambda r: r.severity.rank)
        return records

    def device_manager_command(self, driver_id: str) -> dict[str, Any]:
        """Return the commands to inspect or reload a driver; nothing is executed."""

        if not driver_id or not _DRIVER_ID.match(driver_id):
            raise ValidationError(f"invalid driver id {driver_id!r}")
        driver = next((d for d in self.inventory() if d.id == driver_id), None)
        if driver is None:
            raise NotFoundError(f"driver '{driver_id}' is not loaded")
        return {
            "deviceId": driver.id,
            "name": driver.name,
            "category": driver.category,
            "executed": False,
            "commands": [
                f"modinfo {driver.id}",
                f"journalctl -k --grep {driver.id}",
                f"sudo modprobe -r {driver.id} && sudo modprobe {driver.id}",
            ],
        }

    def app_diagnostics(self, app_name: str, logs: Iterable[LogRecord]) -> dict[str, Any]:
        name = (app_name or "").strip()
        if not name:
            raise ValidationError("appName must not be empty")

        drivers = self.inventory()
        required = requirements_for(name)
        by_category: dict[str, list[DriverInfo]] = {}
        for driver in drivers:
            by_category.setdefault(driver.category, []).append(driver)

        missing = [
            {"name": f"{category} driver", "category": category}
            for category in required
            if category not in by_category
        ]
        outdated = [
            {
                "name": driver.name,
                "category": category,
                "installedDrivers": f"{driver.name} {driver.version} (minimum {driver.minimum_version})",
            }
            for category in required
            for driver in by_category.get(category, ())
            if driver.update_available
        ]

        related = [record for record in logs if mentions_app(record, name)]
        analysis = self._classifier.classify(related)
        latest = {record.message[:240]: record.timestamp for record in related}
        performance_issues = [
            {
                "message": issue.issue,
                "source": issue.source,
                "timestamp": latest.get(issue.issue),
                "recommendation": recommendation_for(issue.category),
            }
            for issue in analysis.critical_issues
        ] + [
            {
                "message": warning.message,
                "source": warning.component,
                "timestamp": latest.get(warning.message),
                "recommendation": recommendation_for(warning.category, critical=False),
            }
            for warning in analysis.warnings
        ]

        compatibility_issues = [f"No {item['category'].lower()} driver is loaded" for item in missing]
        compatibility_issues += [f"{item['name']} is older than recommended" for item in outdated]
        if analysis.critical_issues:
            compatibility_issues.append(f"{name} logged {len(analysis.critical_issues)} error(s) recently")

        recommendations: list[str] = []
        if missing:
            recommendations.append(
                "Install drivers for: " + ", ".join(item["category"] for item in missing)
            )
        if outdated:
            recommendations.append(
                "Update outdated drivers: " + ", ".join(item["name"] for item in outdated)
            )
        for text in analysis.recommendations:
            if text not in recommendations:
                recommendations.append(text)
        if not recommendations:
            recommendations.append(f"No driver or compatibility problems found for {name}.")

        return {
            "application": name,
            "driverStatus": {
                "required": len(required),
                "available": len(required) - len(missing),
                "missing": missing,
                "outdated": outdated,
            },
            "performanceIssues": performance_issues,
            "compatibility": {
                "compatible": not missing and not analysis.critical_issues,
                "issues": compatibility_issues,
            },
            "recommendations": recommendations,
        }

    @staticmethod
    def _device_in(record: LogRecord, known: Sequence[str]) -> str | None:
        text = f"{record.source} {record.message}"
        for name in known:
            if re.search(rf"\b{re.escape(name)}\b", text):
                return name
        return None
