"""Driver inventory checks and per-application driver reports."""

from __future__ import annotations

import pytest

from conftest import FakeDriverSource, make_record
from telemetry_center.core.errors import NotFoundError, SourceUnreachable, ValidationError
from telemetry_center.data.drivers import KernelModuleSource, categorize_driver
from telemetry_center.engine.drivers import DriverDiagnostics, is_outdated, requirements_for
from telemetry_center.models import DriverInfo, Priority


def driver(name, category, version=None):
    return DriverInfo(id=name, name=name, category=category, version=version, manufacturer="Linux kernel")


@pytest.fixture
def diagnostics():
    source = FakeDriverSource(
        [
            driver("nvidia", "Display", "525.60.11"),
            driver("e1000e", "Network", "3.2.6-k"),
            driver("vboxdrv", "Virtualization", "6.1.40"),
            driver("snd_hda_intel", "Audio"),
            driver("ext4", "Filesystem"),
        ]
    )
    return DriverDiagnostics(source)


@pytest.fixture
def driver_logs():
    return [
        make_record("NVRM: nvidia GPU has fallen off the bus", timestamp=100),
        make_record("disk full", source="disk", timestamp=150),
        make_record("firmware: failed to load iwlwifi-ty-a0-gf-a0.pnvm", level="warning", timestamp=200),
        make_record("nvidia module loaded", level="info", timestamp=300),
    ]


class TestVersions:
    @pytest.mark.parametrize(
        ("version", "minimum", "expected"),
        [
            ("525.60.11", "535.0", True),
            ("535.54.03", "535.0", False),
            ("3.2.6-k", "3.2.6", False),
            ("7.0", "7.0.0", False),
            (None, "1.0", False),
            ("1.0", None, False),
        ],
    )
    def test_is_outdated(self, version, minimum, expected):
        assert is_outdated(version, minimum) is expected

    def test_requirements_by_application_kind(self):
        assert requirements_for("Zoom") == ("Camera", "Audio", "Network")
        assert requirements_for("unknown-tool") == ("Display", "Network")


class TestInventory:
    def test_baseline_marks_outdated_drivers(self, diagnostics):
        drivers = {d.name: d for d in diagnostics.inventory()}

        assert drivers["nvidia"].update_available
        assert drivers["nvidia"].importance is Priority.HIGH
        assert drivers["nvidia"].minimum_version == "535.0"
        assert not drivers["e1000e"].update_available
        assert drivers["e1000e"].importance is Priority.LOW
        assert drivers["ext4"].minimum_version is None

    def test_check_updates_summary(self, diagnostics):
        result = diagnostics.check_updates()
        assert result["summary"] == {"total": 5, "updatesAvailable": 2, "critical": 1, "medium": 1, "low": 0}

    def test_problems_newest_first(self, diagnostics, driver_logs):
        problems = diagnostics.problems(driver_logs)

        assert [p.time for p in problems] == [200, 100]
        assert problems[0].device_name == "kernel"
        assert problems[0].level == "Warning"
        assert problems[0].category == "System"
        assert problems[1].device_name == "nvidia"
        assert problems[1].category == "Display"
        assert problems[1].id.startswith("drv-")

    def test_issues_sorted_by_severity(self, diagnostics, driver_logs):
        issues = diagnostics.issues(driver_logs)

        assert [i.id for i in issues] == ["outdated-nvidia", "logged-nvidia", "outdated-vboxdrv", "logged-kernel"]
        assert [o.id for o in issues[0].recommendations] == ["update", "inspect", "reload"]
        assert [o.id for o in issues[1].recommendations] == ["inspect", "reload"]


class TestDeviceManager:
    def test_returns_commands_without_running_them(self, diagnostics):
        result = diagnostics.device_manager_command("nvidia")
        assert result["executed"] is False
        assert result["category"] == "Display"
        assert result["commands"][0] == "modinfo nvidia"

    @pytest.mark.parametrize("driver_id", ["", "rm -rf /", "nvidia;reboot"])
    def test_rejects_unsafe_ids(self, diagnostics, driver_id):
        with pytest.raises(ValidationError):
            diagnostics.device_manager_command(driver_id)

    def test_unknown_driver(self, diagnostics):
        with pytest.raises(NotFoundError):
            diagnostics.device_manager_command("not_loaded")


class TestAppDiagnostics:
    def test_missing_driver_and_crash(self, diagnostics):
        logs = [make_record("zoom[555]: segfault at 0 error 4", timestamp=42)]
        report = diagnostics.app_diagnostics("Zoom", logs)

        status = report["driverStatus"]
        assert status["required"] == 3
        assert status["available"] == 2
        assert status["missing"] == [{"name": "Camera driver", "category": "Camera"}]
        assert report["performanceIssues"][0]["timestamp"] == 42
        assert report["compatibility"]["compatible"] is False
        assert report["compatibility"]["issues"] == ["No camera driver is loaded", "Zoom logged 1 error(s) recently"]
        assert report["recommendations"][0] == "Install drivers for: Camera"

    def test_outdated_required_driver(self, diagnostics):
        report = diagnostics.app_diagnostics("firefox", [])

        assert report["driverStatus"]["outdated"][0]["name"] == "nvidia"
        assert report["compatibility"]["compatible"] is True
        assert report["recommendations"] == ["Update outdated drivers: nvidia"]

    def test_empty_name(self, diagnostics):
        with pytest.raises(ValidationError):
            diagnostics.app_diagnostics("  ", [])


class TestKernelModuleSource:
    def test_reads_proc_and_sys(self, tmp_path):
        proc = tmp_path / "modules"
        proc.write_text(
            "nvidia 56823808 2 nvidia_modeset, Live 0x0000000000000000 (POE)\n"
            "snd_hda_intel 61440 3 - Live 0x0000000000000000\n",
            encoding="utf-8",
        )
        module_dir = tmp_path / "sys" / "nvidia"
        module_dir.mkdir(parents=True)
        (module_dir / "version").write_text("535.54.03\n", encoding="utf-8")
        (module_dir / "taint").write_text("POE\n", encoding="utf-8")

        drivers = KernelModuleSource(proc, tmp_path / "sys").read()

        assert [(d.name, d.category) for d in drivers] == [("snd_hda_intel", "Audio"), ("nvidia", "Display")]
        assert drivers[1].version == "535.54.03"
        assert drivers[1].manufacturer == "Proprietary vendor"
        assert drivers[0].version is None

    def test_missing_proc_file(self, tmp_path):
        with pytest.raises(SourceUnreachable):
            KernelModuleSource(tmp_path / "absent").read()

    def test_categorize(self):
        assert categorize_driver("iwlwifi") == "Network"
        assert categorize_driver("mystery") == "System"
