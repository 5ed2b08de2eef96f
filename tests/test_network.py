"""Network diagnostics and the network issue registry."""

from __future__ import annotations

import pytest

from conftest import FakeProbe
from telemetry_center.core.errors import NotFoundError, ValidationError
from telemetry_center.engine.network import NetworkDiagnosticEngine, jitter_ms
from telemetry_center.engine.store import RollingSeriesStore
from telemetry_center.models import (
    InterfaceState,
    IssueStatus,
    MetricSample,
    NetworkThroughput,
    Priority,
    ProbeResult,
)


def issue_types(result):
    return [issue.type for issue in result.issues]


class TestRunDiagnostics:
    def test_healthy_network_has_no_issues(self, clock):
        engine = NetworkDiagnosticEngine(FakeProbe(), clock=clock)
        result = engine.run_diagnostics()

        assert result.connected
        assert result.issues == ()
        payload = result.to_dict()
        assert payload["internetConnection"]["status"] == "connected"
        assert payload["speedTest"]["latency"] == 21.5
        assert payload["pingResults"]["internet"]["loss"] == 0.0

    def test_no_internet(self, clock):
        engine = NetworkDiagnosticEngine(FakeProbe(connect_times=()), clock=clock)
        result = engine.run_diagnostics()

        assert not result.connected
        assert issue_types(result) == ["no_internet"]
        assert result.issues[0].severity is Priority.HIGH

    def test_no_interface(self, clock):
        probe = FakeProbe(interfaces=[InterfaceState(name="lo", is_up=True, address="127.0.0.1")])
        result = NetworkDiagnosticEngine(probe, clock=clock).run_diagnostics()
        assert "no_interface" in issue_types(result)

    def test_packet_loss(self, clock):
        probe = FakeProbe(connect_times=(20.0, 21.0, 22.0))
        result = NetworkDiagnosticEngine(probe, clock=clock).run_diagnostics()
        assert issue_types(result) == ["packet_loss"]
        assert result.issues[0].severity is Priority.HIGH

    def test_dns_failure_with_working_internet(self, clock):
        result = NetworkDiagnosticEngine(FakeProbe(resolve_successes=0), clock=clock).run_diagnostics()
        assert issue_types(result) == ["dns_resolution"]

    def test_missing_dns_servers(self, clock):
        result = NetworkDiagnosticEngine(FakeProbe(dns_servers=()), clock=clock).run_diagnostics()
        assert issue_types(result) == ["dns_config"]

    def test_high_latency(self, clock):
        probe = FakeProbe(connect_times=(400.0, 410.0, 405.0, 400.0))
        result = NetworkDiagnosticEngine(probe, clock=clock).run_diagnostics()
        assert issue_types(result) == ["high_latency"]
        assert result.issues[0].severity is Priority.HIGH

    def test_high_jitter(self, clock):
        probe = FakeProbe(connect_times=(20.0, 80.0, 20.0, 80.0))
        result = NetworkDiagnosticEngine(probe, clock=clock).run_diagnostics()
        assert issue_types(result) == ["high_jitter"]
        assert result.jitter_ms == 60.0

    def test_throughput_comes_from_observed_samples(self, clock):
        store = RollingSeriesStore(capacity=10, clock=clock)
        for offset in (-60, -30, 0):
            store.append(
                MetricSample(
                    timestamp=clock() + offset,
                    network=NetworkThroughput(sent_bytes_per_sec=62_500.0, recv_bytes_per_sec=125_000.0),
                )
            )
        result = NetworkDiagnosticEngine(FakeProbe(), store=store, clock=clock).run_diagnostics()
        assert (result.download_mbps, result.upload_mbps) == (1.0, 0.5)

    def test_throughput_unknown_without_samples(self, clock):
        result = NetworkDiagnosticEngine(FakeProbe(), clock=clock).run_diagnostics()
        assert result.download_mbps is None


class TestIssueRegistry:
    def test_same_type_is_deduplicated(self, clock):
        engine = NetworkDiagnosticEngine(FakeProbe(connect_times=()), clock=clock)
        first = engine.run_diagnostics().issues[0]
        clock.advance(60)
        second = engine.run_diagnostics().issues[0]

        assert first.id == second.id
        assert first.id.startswith("net-")
        assert second.timestamp == clock()
        assert len(engine.issues()) == 1

    def test_issue_disappearing_is_auto_resolved(self, clock):
        probe = FakeProbe(connect_times=())
        engine = NetworkDiagnosticEngine(probe, clock=clock)
        issue_id = engine.run_diagnostics().issues[0].id

        probe.connect_times = (20.0, 21.0, 20.0, 21.0)
        clock.advance(60)
        assert engine.run_diagnostics().issues == ()

        resolved = engine.get(issue_id)
        assert resolved.status is IssueStatus.RESOLVED
        assert resolved.resolution_method == "auto"

    def test_issues_newest_first(self, clock):
        probe = FakeProbe(dns_servers=())
        engine = NetworkDiagnosticEngine(probe, clock=clock)
        engine.run_diagnostics()
        clock.advance(60)
        probe.connect_times = ()
        engine.run_diagnostics()

        assert [i.timestamp for i in engine.issues()] == sorted(
            (i.timestamp for i in engine.issues()), reverse=True
        )

    def test_get_unknown_issue(self, clock):
        with pytest.raises(NotFoundError):
            NetworkDiagnosticEngine(FakeProbe(), clock=clock).get("net-missing")


class TestFix:
    @pytest.fixture
    def engine(self, clock):
        return NetworkDiagnosticEngine(FakeProbe(connect_times=()), clock=clock)

    def test_applies_recommended_fix(self, engine):
        issue_id = engine.run_diagnostics().issues[0].id
        outcome = engine.fix(issue_id, "restart_network")

        assert outcome["issue"].status is IssueStatus.RESOLVED
        assert outcome["issue"].resolution_method == "restart_network"
        assert outcome["result"] == {
            "executed": False,
            "commands": ["systemctl restart NetworkManager"],
            "manual": False,
        }

    def test_manual_fix_has_no_commands(self, engine):
        issue_id = engine.run_diagnostics().issues[0].id
        assert engine.fix(issue_id, "check_hardware")["result"]["manual"] is True

    def test_fix_not_offered_for_issue(self, engine):
        issue_id = engine.run_diagnostics().issues[0].id
        with pytest.raises(ValidationError):
            engine.fix(issue_id, "flush_dns")
        assert engine.get(issue_id).status is IssueStatus.ACTIVE

    def test_fix_requires_type(self, engine):
        issue_id = engine.run_diagnostics().issues[0].id
        with pytest.raises(ValidationError):
            engine.fix(issue_id, "")

    def test_resolved_issue_cannot_be_fixed_again(self, engine):
        issue_id = engine.run_diagnostics().issues[0].id
        engine.fix(issue_id, "renew_dhcp")
        with pytest.raises(ValidationError):
            engine.fix(issue_id, "renew_dhcp")

    def test_unknown_issue(self, engine):
        with pytest.raises(NotFoundError):
            engine.fix("net-nope", "restart_network")

    def test_recurring_problem_opens_new_issue_after_fix(self, engine, clock):
        issue_id = engine.run_diagnostics().issues[0].id
        engine.fix(issue_id, "restart_network")
        clock.advance(60)
        again = engine.run_diagnostics().issues[0]
        assert again.id != issue_id
        assert again.status is IssueStatus.ACTIVE


class TestJitter:
    def test_needs_two_samples(self):
        assert jitter_ms(ProbeResult(target="x", attempts=1, successes=1, times_ms=(10.0,))) is None

    def test_mean_of_consecutive_differences(self):
        probe = ProbeResult(target="x", attempts=3, successes=3, times_ms=(10.0, 20.0, 15.0))
        assert jitter_ms(probe) == 7.5
