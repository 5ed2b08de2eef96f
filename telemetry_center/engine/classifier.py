"""Rule-based log classification and query-scoped diagnosis."""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Sequence

from telemetry_center.core import ANALYSIS
from telemetry_center.models import (
    CriticalIssue,
    IssueCategory,
    LogAnalysis,
    LogLevel,
    LogRecord,
    LogStats,
    QueryDiagnosis,
    SystemState,
    WarningEntry,
)

_MAX_ISSUE_LENGTH = 240


@dataclass(frozen=True, slots=True)
class ClassificationRule:
    """Keywords are regex fragments matched as whole words; sources match whole tokens."""

    category: IssueCategory
    component: str
    impact: str
    keywords: tuple[str, ...]
    sources: tuple[str, ...] = ()

    def pattern(self) -> re.Pattern[str]:
        return re.compile(r"\b(?:" + "|".join(self.keywords) + r")\b", re.IGNORECASE)

    def source_pattern(self) -> re.Pattern[str] | None:
        if not self.sources:
            return None
        names = "|".join(re.escape(s) for s in self.sources)
        return re.compile(r"(?<![\w-])(?:" + names + r")(?![\w-])", re.IGNORECASE)


# Evaluated top to bottom; the first rule that matches a record wins.
RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule(
        IssueCategory.SECURITY,
        "Security",
        "Possible unauthorized access attempt; accounts or data may be at risk",
        ("authentication failure", "failed password", "invalid user", "unauthori[sz]ed",
         "access denied", "permission denied", "brute[- ]?force", "malware", "intrusion", "apparmor",
         "selinux", r"avc:\s+denied", "firewall", "ufw block"),
        ("sshd", "sudo", "auditd", "audit", "polkitd", "apparmor", "ufw"),
    ),
    ClassificationRule(
        IssueCategory.DISK,
        "Storage",
        "Storage failures can cause data loss and stop applications from saving files",
        ("disks?", "no space", "filesystems?", "file system", "i/o error", "ext4", "xfs", "btrfs",
         "smart", "bad sectors?", "inodes?", "read-only", "quota", r"nvme\w*", r"ata\d+(?:\.\d+)?"),
        ("disk", "smartd", "udisksd", "fsck", "storage"),
    ),
    ClassificationRule(
        IssueCategory.MEMORY,
        "Memory",
        "Memory exhaustion forces the system to kill processes and slows everything down",
        ("out of memory", r"oom\w*", "memory", "swap", "page allocation failure", "killed process"),
        ("oom_reaper", "earlyoom", "systemd-oomd", "memory"),
    ),
    ClassificationRule(
        IssueCategory.DRIVER,
        "Drivers",
        "A faulty driver can make its device unavailable or crash the system",
        ("drivers?", "firmware", "modules?", "probe failed", "nvidia", "amdgpu", "i915", "nouveau",
         r"taint\w*", "device descriptor"),
        ("driver", "modprobe", "udev", "systemd-udevd"),
    ),
    ClassificationRule(
        IssueCategory.HARDWARE,
        "Hardware",
        "Hardware faults tend to get worse over time and can cause sudden shutdowns",
        ("hardware error", "machine check", "mce", "temperature", "thermal", r"overheat\w*",
         "fans?", r"throttl\w*", "pcie bus error", "aer", "battery", "voltage", "ecc"),
        ("mcelog", "rasdaemon", "thermald", "hardware", "upower"),
    ),
    ClassificationRule(
        IssueCategory.NETWORK,
        "Network",
        "Connectivity problems interrupt downloads, updates and online services",
        ("networks?", "dns", "dhcp", "link is down", "link down", "connection refused",
         "unreachable", "wifi", "wi-fi", r"wlan\d*", "ethernet", r"resolv\w*", "packet loss", "carrier"),
        ("networkmanager", "systemd-resolved", "systemd-networkd", "dhclient", "wpa_supplicant",
         "network"),
    ),
    ClassificationRule(
        IssueCategory.CPU,
        "Processor",
        "Processor stalls make the system unresponsive",
        (r"cpu\d*", "soft lockup", "hard lockup", "hung task", "blocked for more than", "rcu stall",
         "load average"),
        ("cpu",),
    ),
    ClassificationRule(
        IssueCategory.UPDATE,
        "Updates",
        "Failed updates leave known bugs and vulnerabilities unpatched",
        (r"updat\w*", r"upgrad\w*", "dpkg", "apt", "dnf", "packages?", "snapd", "flatpak"),
        ("packagekitd", "apt", "dnf", "unattended-upgrade", "snapd", "windowsupdate"),
    ),
    ClassificationRule(
        IssueCategory.SERVICE,
        "Services",
        "A background service is not running, so features that depend on it are unavailable",
        ("failed to start", "services?", r"\w+\.service", "main process exited", "code=exited",
         "start request repeated", "dependency failed"),
        ("systemd", "init", "service control manager"),
    ),
    ClassificationRule(
        IssueCategory.APPLICATION,
        "Applications",
        "Application crashes lose unsaved work and tend to recur",
        ("segfault", r"crash\w*", "exception", "traceback", "core dumped", r"abort\w*", "not responding",
         "application error"),
        ("application", "app", "abrt", "coredump", "systemd-coredump"),
    ),
)

_COMPILED_RULES = tuple((rule, rule.pattern(), rule.source_pattern()) for rule in RULES)

_GENERAL_IMPACT = "Unclassified error; review the full log entry for details"

# (recommendation when errors are present, recommendation when only warnings are)
_RECOMMENDATIONS: dict[IssueCategory, tuple[str, str]] = {
    IssueCategory.SECURITY: (
        "Review recent authentication failures, change exposed passwords and verify firewall rules.",
        "Audit security warnings and confirm only trusted users have access.",
    ),
    IssueCategory.DISK: (
        "Run a disk cleanup: remove temporary files, old logs and unused packages, then check drive health with SMART tools.",
        "Monitor free disk space and schedule a disk cleanup before the drive fills up.",
    ),
    IssueCategory.MEMORY: (
        "Close memory-hungry applications and consider adding RAM or swap space.",
        "Watch memory usage and restart applications that keep growing.",
    ),
    IssueCategory.HARDWARE: (
        "Check temperatures, fans and hardware error counters; back up important data in case of component failure.",
        "Clean dust from vents and keep an eye on hardware sensor readings.",
    ),
    IssueCategory.DRIVER: (
        "Update or reinstall the failing driver and its firmware from the vendor.",
        "Check for driver updates for devices reporting warnings.",
    ),
    IssueCategory.NETWORK: (
        "Restart the network adapter and router, then verify DNS and DHCP settings.",
        "Check network cable or Wi-Fi signal quality if connectivity warnings continue.",
    ),
    IssueCategory.CPU: (
        "Identify processes with sustained high CPU usage and check for processor throttling.",
        "Review startup programs and background tasks that keep the processor busy.",
    ),
    IssueCategory.SERVICE: (
        "Inspect failed services with the service manager and restart them after fixing their configuration.",
        "Review services that restart repeatedly.",
    ),
    IssueCategory.APPLICATION: (
        "Update or reinstall the crashing application and check its own logs.",
        "Keep applications up to date to avoid known crashes.",
    ),
    IssueCategory.UPDATE: (
        "Re-run the failed system update and resolve any package conflicts it reports.",
        "Install pending system updates.",
    ),
    IssueCategory.GENERAL: (
        "Review the unclassified errors in the system log for more context.",
        "Review recent warnings in the system log.",
    ),
}

_RECOMMENDATION_PRIORITY: tuple[IssueCategory, ...] = (
    IssueCategory.SECURITY,
    IssueCategory.DISK,
    IssueCategory.MEMORY,
    IssueCategory.HARDWARE,
    IssueCategory.DRIVER,
    IssueCategory.NETWORK,
    IssueCategory.CPU,
    IssueCategory.SERVICE,
    IssueCategory.APPLICATION,
    IssueCategory.UPDATE,
    IssueCategory.GENERAL,
)

_missing = set(IssueCategory) - set(_RECOMMENDATIONS) | set(IssueCategory) - set(_RECOMMENDATION_PRIORITY)
if _missing:  # pragma: no cover - guards edits to the tables above
    raise RuntimeError(f"Recommendation tables do not cover: {sorted(c.value for c in _missing)}")

_STOPWORDS = frozenset(
    {
        "the", "and", "for", "with", "that", "this", "have", "has", "was", "are", "but", "not",
        "why", "what", "when", "how", "does", "did", "can", "cannot", "keeps", "keep", "my",
        "from", "into", "after", "before", "there", "about", "any", "all", "its", "it's", "you",
        "your", "computer", "system", "problem", "issue", "again", "just", "very", "really",
    }
)
_TOKEN = re.compile(r"[a-z0-9][a-z0-9_\-./]*[a-z0-9]|[a-z0-9]")


def match_rule(record: LogRecord) -> ClassificationRule | None:
    for rule, pattern, source_pattern in _COMPILED_RULES:
        if pattern.search(record.message) or (source_pattern and source_pattern.search(record.source)):
            return rule
    return None


def category_of(record: LogRecord) -> IssueCategory:
    rule = match_rule(record)
    return rule.category if rule else IssueCategory.GENERAL


def recommendation_for(category: IssueCategory, *, critical: bool = True) -> str:
    on_error, on_warning = _RECOMMENDATIONS[category]
    return on_error if critical else on_warning


def _plural(count: int, word: str, plural: str | None = None) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {plural or word + 's'}"


def _sort_key(record: LogRecord) -> tuple[float, str, str, str]:
    return (record.timestamp, record.level.value, record.source, record.message)


class LogClassifier:
    """Turns raw log records into a :class:`LogAnalysis`.

    Classification is a pure function of the input: the records are put in a
    canonical order first, so the same set of records always produces the same
    analysis.
    """

    def __init__(self, max_recommendations: int = ANALYSIS.max_recommendations) -> None:
        self._max_recommendations = max(0, max_recommendations)

    def classify(self, records: Iterable[LogRecord]) -> LogAnalysis:
        ordered = sorted(records, key=_sort_key)
        errors = [r for r in ordered if r.level is LogLevel.ERROR]
        warnings = [r for r in ordered if r.level is LogLevel.WARNING]
        stats = LogStats(
            error_count=len(errors),
            warning_count=len(warnings),
            info_count=len(ordered) - len(errors) - len(warnings),
        )

        critical_issues: list[CriticalIssue] = []
        seen: set[tuple[IssueCategory, str]] = set()
        for record in errors:
            rule = match_rule(record)
            category = rule.category if rule else IssueCategory.GENERAL
            text = record.message[:_MAX_ISSUE_LENGTH] or f"Error reported by {record.source}"
            if (category, text) in seen:
                continue
            seen.add((category, text))
            critical_issues.append(
                CriticalIssue(
                    issue=text,
                    impact=rule.impact if rule else _GENERAL_IMPACT,
                    category=category,
                    source=record.source,
                )
            )

        warning_entries: list[WarningEntry] = []
        seen.clear()
        for record in warnings:
            rule = match_rule(record)
            category = rule.category if rule else IssueCategory.GENERAL
            text = record.message[:_MAX_ISSUE_LENGTH] or f"Warning reported by {record.source}"
            if (category, text) in seen:
                continue
            seen.add((category, text))
            warning_entries.append(
                WarningEntry(
                    component=rule.component if rule else record.source,
                    message=text,
                    category=category,
                )
            )

        if critical_issues:
            state = SystemState.CRITICAL
        elif warning_entries:
            state = SystemState.WARNING
        else:
            state = SystemState.HEALTHY

        return LogAnalysis(
            summary=self._summarize(stats, critical_issues, warning_entries),
            critical_issues=tuple(critical_issues),
            warnings=tuple(warning_entries),
            recommendations=self._recommend(critical_issues, warning_entries),
            system_state=state,
            stats=stats,
        )

    def diagnose_query(
        self,
        query: str,
        recent_logs: Sequence[LogRecord],
        *,
        limit: int = ANALYSIS.query_top_n,
    ) -> QueryDiagnosis:
        tokens = query_tokens(query)
        if not tokens:
            return QueryDiagnosis(
                diagnosis="Please describe the problem in a few words (for example: 'wifi keeps disconnecting').",
            )

        wanted_categories = _categories_for_tokens(tokens)
        related: list[LogRecord] = []
        for record in recent_logs:
            haystack = f"{record.source} {record.message}".lower()
            if any(token in haystack for token in tokens) or (
                wanted_categories and category_of(record) in wanted_categories
            ):
                related.append(record)

        related.sort(key=lambda r: (r.timestamp, _LEVEL_WEIGHT[r.level]), reverse=True)
        top = tuple(related[: max(0, limit)])
        if not top:
            return QueryDiagnosis(
                diagnosis=(
                    f'No recent log entries relate to "{query.strip()}". The problem may not be '
                    "logged, or it happened before the retained log window."
                ),
            )

        analysis = self.classify(top)
        parts = [
            f"Found {_plural(len(top), 'recent log entry', 'recent log entries')} related to your question "
            f"({_plural(analysis.stats.error_count, 'error')}, "
            f"{_plural(analysis.stats.warning_count, 'warning')})."
        ]
        if analysis.critical_issues or analysis.warnings:
            top_category = _top_category(analysis.critical_issues, analysis.warnings)
            impact = next(
                (i.impact for i in analysis.critical_issues if i.category is top_category),
                None,
            )
            sentence = f"They point to a {top_category.value} problem"
            parts.append(f"{sentence}: {impact}." if impact else f"{sentence}.")
            if analysis.recommendations:
                parts.append(f"Suggested next step: {analysis.recommendations[0]}")
        else:
            parts.append("The related entries are informational only; no fault is recorded for this.")
        return QueryDiagnosis(diagnosis=" ".join(parts), related_logs=top)

    def _recommend(
        self,
        critical_issues: Sequence[CriticalIssue],
        warnings: Sequence[WarningEntry],
    ) -> tuple[str, ...]:
        critical_categories = {issue.category for issue in critical_issues}
        warning_categories = {warning.category for warning in warnings} - critical_categories
        recommendations: list[str] = []
        for categories, critical in ((critical_categories, True), (warning_categories, False)):
            for category in _RECOMMENDATION_PRIORITY:
                if category not in categories:
                    continue
                text = recommendation_for(category, critical=critical)
                if text not in recommendations:
                    recommendations.append(text)
        return tuple(recommendations[: self._max_recommendations])

    @staticmethod
    def _summarize(
        stats: LogStats,
        critical_issues: Sequence[CriticalIssue],
        warnings: Sequence[WarningEntry],
    ) -> str:
        if stats.total == 0:
            return "No log entries to analyze. The system appears healthy."
        if not stats.error_count and not stats.warning_count:
            return (
                f"Analyzed {_plural(stats.total, 'log entry', 'log entries')} with no "
                "errors or warnings. The system appears healthy."
            )
        top = _top_category(critical_issues, warnings)
        count = sum(1 for i in critical_issues if i.category is top) + sum(
            1 for w in warnings if w.category is top
        )
        return (
            f"Analyzed {_plural(stats.total, 'log entry', 'log entries')}: "
            f"{_plural(stats.error_count, 'error')}, {_plural(stats.warning_count, 'warning')} and "
            f"{stats.info_count} informational. Most issues relate to {top.value} "
            f"({_plural(count, 'finding')})."
        )


_LEVEL_WEIGHT = {LogLevel.ERROR: 2, LogLevel.WARNING: 1, LogLevel.INFO: 0}


def query_tokens(query: str) -> list[str]:
    tokens: list[str] = []
    for token in _TOKEN.findall(query.lower()):
        if len(token) < 3 or token in _STOPWORDS or token in tokens:
            continue
        tokens.append(token)
    return tokens


def _categories_for_tokens(tokens: Sequence[str]) -> set[IssueCategory]:
    text = " ".join(tokens)
    return {rule.category for rule, pattern, _ in _COMPILED_RULES if pattern.search(text)}


def _top_category(
    critical_issues: Sequence[CriticalIssue],
    warnings: Sequence[WarningEntry],
) -> IssueCategory:
    counter: Counter[IssueCategory] = Counter()
    for issue in critical_issues:
        counter[issue.category] += 1
    for warning in warnings:
        counter[warning.category] += 1
    return counter.most_common(1)[0][0]
