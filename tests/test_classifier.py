"""Log classification and query diagnosis."""

from __future__ import annotations

import random

import pytest

from conftest import make_record
from telemetry_center.engine.classifier import LogClassifier, category_of, query_tokens
from telemetry_center.models import IssueCategory, LogLevel, SystemState


class TestClassify:
    def test_empty_input_is_healthy(self):
        analysis = LogClassifier().classify([])
        assert analysis.system_state is SystemState.HEALTHY
        assert analysis.critical_issues == ()
        assert analysis.warnings == ()
        assert analysis.recommendations == ()
        assert analysis.stats.total == 0
        assert analysis.summary == "No log entries to analyze. The system appears healthy."

    def test_disk_full_error(self):
        records = [make_record("disk full on /dev/sda1", source="disk")]
        analysis = LogClassifier().classify(records)

        assert analysis.system_state is SystemState.CRITICAL
        assert len(analysis.critical_issues) == 1
        issue = analysis.critical_issues[0]
        assert issue.category is IssueCategory.DISK
        assert issue.issue == "disk full on /dev/sda1"
        assert analysis.recommendations[0].startswith("Run a disk cleanup")

    def test_warnings_only_gives_warning_state(self):
        records = [make_record("Link is down on eth0", level="warning", source="NetworkManager")]
        analysis = LogClassifier().classify(records)
        assert analysis.system_state is SystemState.WARNING
        assert analysis.warnings[0].category is IssueCategory.NETWORK
        assert analysis.stats.to_dict() == {"errorCount": 0, "warningCount": 1, "infoCount": 0}

    def test_info_only_is_healthy(self):
        analysis = LogClassifier().classify([make_record("Started session 3", level="info")])
        assert analysis.system_state is SystemState.HEALTHY
        assert "no errors or warnings" in analysis.summary

    def test_result_independent_of_input_order(self):
        records = [
            make_record("Out of memory: Killed process 4121", timestamp=10),
            make_record("Failed password for root from 10.0.0.5", source="sshd", timestamp=11),
            make_record("CPU temperature above threshold", level="warning", timestamp=12),
            make_record("firefox[4242]: segfault at 0 error 4", timestamp=13),
        ]
        expected = LogClassifier().classify(records)
        shuffled = records[:]
        random.Random(7).shuffle(shuffled)
        assert LogClassifier().classify(shuffled) == expected
        assert LogClassifier().classify(records) == expected

    def test_duplicate_errors_are_collapsed(self):
        records = [make_record("disk full on /dev/sda1", source="disk", timestamp=t) for t in range(5)]
        analysis = LogClassifier().classify(records)
        assert len(analysis.critical_issues) == 1
        assert analysis.stats.error_count == 5

    def test_recommendations_are_capped(self):
        records = [
            make_record("Failed password for admin", source="sshd"),
            make_record("disk full", source="disk"),
            make_record("Out of memory"),
            make_record("Machine check exception"),
            make_record("nvidia driver probe failed"),
            make_record("DNS resolution failed", source="systemd-resolved"),
        ]
        analysis = LogClassifier(max_recommendations=3).classify(records)
        assert len(analysis.recommendations) == 3
        assert analysis.recommendations[0].startswith("Review recent authentication failures")


class TestCategoryOf:
    def test_segfault_is_application(self):
        assert category_of(make_record("firefox[4242]: segfault at 0 error 4")) is IssueCategory.APPLICATION

    def test_source_alone_can_classify(self):
        assert category_of(make_record("Accepted publickey", source="sshd")) is IssueCategory.SECURITY

    def test_unknown_falls_back_to_general(self):
        assert category_of(make_record("something odd happened")) is IssueCategory.GENERAL

    @pytest.mark.parametrize(
        ("message", "source", "expected"),
        [
            ("task jbd2/sda1-8:250 blocked for more than 120 seconds", "kernel", IssueCategory.CPU),
            ("fanotify_init failed", "kernel", IssueCategory.GENERAL),
            ("Unity editor exited", "kernel", IssueCategory.GENERAL),
            ("Reached target Multi-User System", "initramfs", IssueCategory.GENERAL),
            ("report written", "apport", IssueCategory.GENERAL),
            ("update check finished", "packagekitd", IssueCategory.UPDATE),
            ("CPU0: Core temperature above threshold, cpu clock throttled", "kernel", IssueCategory.HARDWARE),
            ("[UFW BLOCK] IN=wlan0 OUT= SRC=10.0.0.7", "kernel", IssueCategory.SECURITY),
            ("ata1.00: failed command: READ FPDMA QUEUED", "kernel", IssueCategory.DISK),
            ("cups.service: Main process exited, code=exited, status=1/FAILURE", "systemd", IssueCategory.SERVICE),
            ("Started session 4", "systemd-logind", IssueCategory.GENERAL),
        ],
    )
    def test_keywords_and_sources_match_whole_words(self, message, source, expected):
        assert category_of(make_record(message, source=source)) is expected


class TestDiagnoseQuery:
    def test_empty_query_asks_for_detail(self):
        result = LogClassifier().diagnose_query("   ", [make_record("disk full", source="disk")])
        assert result.related_logs == ()
        assert "describe the problem" in result.diagnosis

    def test_related_logs_newest_first(self):
        logs = [
            make_record("wlan0: link is down", level="warning", source="NetworkManager", timestamp=100),
            make_record("DNS lookup failed", source="systemd-resolved", timestamp=200),
            make_record("disk full", source="disk", timestamp=300),
        ]
        result = LogClassifier().diagnose_query("my wifi keeps dropping, network is slow", logs)

        assert [r.timestamp for r in result.related_logs] == [200, 100]
        assert "network problem" in result.diagnosis
        assert "Suggested next step" in result.diagnosis

    def test_no_match_explains_nothing_was_found(self):
        logs = [make_record("disk full", source="disk")]
        result = LogClassifier().diagnose_query("bluetooth headset", logs)
        assert result.related_logs == ()
        assert 'No recent log entries relate to "bluetooth headset"' in result.diagnosis

    def test_limit_bounds_related_logs(self):
        logs = [make_record(f"disk error {i}", source="disk", timestamp=i) for i in range(10)]
        result = LogClassifier().diagnose_query("disk", logs, limit=3)
        assert [r.timestamp for r in result.related_logs] == [9, 8, 7]

    def test_query_tokens_drop_stopwords(self):
        assert query_tokens("Why does my computer keep crashing?") == ["crashing"]


class TestLogLevel:
    def test_parse_spellings(self):
        assert LogLevel.parse("crit") is LogLevel.ERROR
        assert LogLevel.parse("WARN") is LogLevel.WARNING
        assert LogLevel.parse(None) is LogLevel.INFO
