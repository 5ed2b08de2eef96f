"""psutil-backed providers."""

from __future__ import annotations

from types import SimpleNamespace
from unittest import mock

import pytest

from telemetry_center.data import MetricCollector, PsutilCollector
from telemetry_center.data.disk import collect_partitions, read_disk_volumes
from telemetry_center.data.network import ThroughputTracker, read_dns_servers
from telemetry_center.data.processes import PsutilProcessSource, matches_app, normalize_app_name
from telemetry_center.models import DiskVolume, NetworkThroughput, ProcessInfo


def process(pid, name, cpu, memory_mb, cmdline=("/usr/bin/app",), created=0.0):
    return ProcessInfo(
        pid=pid,
        name=name,
        status="running",
        username="user",
        create_time=created,
        cpu_percent=cpu,
        memory_bytes=int(memory_mb * 1024 * 1024),
        command_line=tuple(cmdline),
    )


class TestPsutilCollector:
    def test_reads_have_expected_types(self):
        collector = PsutilCollector()
        assert isinstance(collector, MetricCollector)
        assert 0.0 <= collector.read_cpu() <= 100.0
        assert 0.0 <= collector.read_memory() <= 100.0
        volumes = collector.read_disk()
        assert all(isinstance(volume, DiskVolume) for volume in volumes)
        assert isinstance(collector.read_network(), NetworkThroughput)


class TestThroughputTracker:
    def test_rates_from_counter_deltas(self):
        counters = [
            SimpleNamespace(bytes_sent=1_000, bytes_recv=5_000),
            SimpleNamespace(bytes_sent=3_000, bytes_recv=9_000),
        ]
        with mock.patch("telemetry_center.data.network.psutil.net_io_counters", side_effect=counters), \
                mock.patch("telemetry_center.data.network.time", time=mock.Mock(side_effect=[100.0, 102.0])):
            tracker = ThroughputTracker()
            first = tracker.read()
            second = tracker.read()

        assert (first.sent_bytes_per_sec, first.recv_bytes_per_sec) == (0.0, 0.0)
        assert (second.sent_bytes_per_sec, second.recv_bytes_per_sec) == (1_000.0, 2_000.0)

    def test_counter_reset_never_goes_negative(self):
        counters = [
            SimpleNamespace(bytes_sent=9_000, bytes_recv=9_000),
            SimpleNamespace(bytes_sent=10, bytes_recv=10),
        ]
        with mock.patch("telemetry_center.data.network.psutil.net_io_counters", side_effect=counters), \
                mock.patch("telemetry_center.data.network.time", time=mock.Mock(side_effect=[100.0, 101.0])):
            tracker = ThroughputTracker()
            tracker.read()
            rates = tracker.read()
        assert rates.sent_bytes_per_sec == 0.0


class TestDnsServers:
    def test_reads_nameservers(self, tmp_path):
        resolv = tmp_path / "resolv.conf"
        resolv.write_text("# comment\nnameserver 1.1.1.1\nsearch lan\nnameserver 8.8.8.8\n", encoding="utf-8")
        assert read_dns_servers(resolv) == ["1.1.1.1", "8.8.8.8"]

    def test_missing_file(self, tmp_path):
        assert read_dns_servers(tmp_path / "absent") == []


class TestProcesses:
    @pytest.fixture
    def processes(self):
        return [
            (process(10, "firefox", 12.5, 400, ("/usr/lib/firefox/firefox",), created=5.0), 80),
            (process(11, "firefox", 7.5, 200, ("/usr/lib/firefox/firefox", "-contentproc"), created=6.0), 20),
            (process(20, "code", 3.0, 150, ("/usr/share/code/code",)), 30),
            (process(2, "kworker/0:1", 0.0, 0, ()), 1),
        ]

    def test_usage_is_aggregated(self, processes):
        with mock.patch("telemetry_center.data.processes.collect_processes", return_value=processes):
            usage = PsutilProcessSource().usage_for("Firefox.exe")

        assert usage.running
        assert usage.cpu == pytest.approx(20.0)
        assert usage.memory == pytest.approx(600.0)
        assert (usage.process_count, usage.threads) == (2, 100)

    def test_absent_application(self, processes):
        with mock.patch("telemetry_center.data.processes.collect_processes", return_value=processes):
            usage = PsutilProcessSource().usage_for("slack")
        assert not usage.running
        assert usage.process_count == 0

    def test_running_list_groups_and_skips_kernel_threads(self, processes):
        with mock.patch("telemetry_center.data.processes.collect_processes", return_value=processes):
            running = PsutilProcessSource().list_running()

        assert [d.name for d in running] == ["code", "firefox"]
        firefox = running[1]
        assert firefox.pid == 10
        assert firefox.process_count == 2
        assert firefox.title == "/usr/lib/firefox/firefox"

    def test_name_matching(self):
        assert normalize_app_name(" Chrome.EXE ") == "chrome"
        assert matches_app("google-chrome", "chrome")
        assert not matches_app("firefox", "")


class TestPartitions:
    def test_primary_first_and_duplicates_skipped(self):
        parts = [
            SimpleNamespace(device="/dev/sdb1", mountpoint="/data", fstype="xfs"),
            SimpleNamespace(device="/dev/sda1", mountpoint="/", fstype="ext4"),
            SimpleNamespace(device="/dev/sda1", mountpoint="/", fstype="ext4"),
        ]
        usage = SimpleNamespace(total=1_000, used=250, free=750, percent=25.0)
        with mock.patch("telemetry_center.data.disk.psutil.disk_partitions", return_value=parts), \
                mock.patch("telemetry_center.data.disk.psutil.disk_usage", return_value=usage):
            partitions = collect_partitions()
            volumes = read_disk_volumes()

        assert [p.mountpoint for p in partitions] == ["/", "/data"]
        assert partitions[0].percent == 25.0
        assert [v.name for v in volumes] == ["sda1", "sdb1"]

    def test_unreadable_mount_falls_back_to_root(self):
        parts = [SimpleNamespace(device="/dev/sr0", mountpoint="/media/cdrom", fstype="iso9660")]
        root = SimpleNamespace(total=2_000, used=500, free=1_500, percent=25.0)

        def usage(path):
            if path == "/media/cdrom":
                raise PermissionError(path)
            return root

        with mock.patch("telemetry_center.data.disk.psutil.disk_partitions", return_value=parts), \
                mock.patch("telemetry_center.data.disk.psutil.disk_usage", side_effect=usage):
            partitions = collect_partitions()
            volumes = read_disk_volumes()

        assert partitions[0].total_bytes is None
        assert [(v.name, v.free_bytes) for v in volumes] == [("root", 1_500)]
