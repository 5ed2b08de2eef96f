"""System log acquisition: journald, syslog files, or an in-memory buffer."""

from __future__ import annotations

import json
import logging
import re
import subprocess
import threading
import time
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Protocol, Sequence

from telemetry_center.core.errors import SourceUnreachable
from telemetry_center.models import LogLevel, LogRecord

logger = logging.getLogger(__name__)

_JOURNAL_DETAIL_FIELDS = ("_SYSTEMD_UNIT", "_PID", "_HOSTNAME", "_TRANSPORT")
_SYSLOG_PATHS = (Path("/var/log/syslog"), Path("/var/log/messages"))
_BSD_LINE = re.compile(
    r"^(?P<ts>[A-Z][a-z]{2}\s+\d{1,2}\s\d{2}:\d{2}:\d{2})\s(?P<host>\S+)\s"
    r"(?P<source>[^:\[\s]+)(?:\[(?P<pid>\d+)\])?:\s?(?P<message>.*)$"
)
_ISO_LINE = re.compile(
    r"^(?P<ts>\d{4}-\d{2}-\d{2}T\S+)\s(?P<host>\S+)\s"
    r"(?P<source>[^:\[\s]+)(?:\[(?P<pid>\d+)\])?:\s?(?P<message>.*)$"
)
_ERROR_WORDS = re.compile(r"\b(error|failed|failure|fatal|critical|panic|segfault)\b", re.IGNORECASE)
_WARNING_WORDS = re.compile(r"\b(warn|warning|deprecated|timeout|timed out|retry)\b", re.IGNORECASE)


class LogSource(Protocol):
    def read(self, limit: int) -> list[LogRecord]:
        """Return up to ``limit`` records in chronological order."""
        ...


def _journal_level(priority: Any) -> LogLevel:
    try:
        value = int(priority)
    except (TypeError, ValueError):
        return LogLevel.INFO
    if value <= 3:
        return LogLevel.ERROR
    if value == 4:
        return LogLevel.WARNING
    return LogLevel.INFO


def _journal_text(value: Any) -> str:
    # journald encodes non-UTF-8 payloads as arrays of byte values
    if isinstance(value, list):
        return bytes(int(b) & 0xFF for b in value).decode("utf-8", errors="replace")
    return str(value or "")


def parse_journal_entry(entry: dict[str, Any]) -> LogRecord:
    raw_ts = entry.get("__REALTIME_TIMESTAMP")
    try:
        timestamp = int(raw_ts) / 1_000_000 if raw_ts is not None else time.time()
    except (TypeError, ValueError):
        timestamp = time.time()
    source = (
        entry.get("SYSLOG_IDENTIFIER")
        or entry.get("_COMM")
        or entry.get("_SYSTEMD_UNIT")
        or "journal"
    )
    details = {
        key.lstrip("_").lower(): str(entry[key])
        for key in _JOURNAL_DETAIL_FIELDS
        if entry.get(key) is not None
    }
    return LogRecord(
        timestamp=timestamp,
        level=_journal_level(entry.get("PRIORITY")),
        source=_journal_text(source),
        message=_journal_text(entry.get("MESSAGE")).strip(),
        details=details,
    )


def infer_level(message: str) -> LogLevel:
    if _ERROR_WORDS.search(message):
        return LogLevel.ERROR
    if _WARNING_WORDS.search(message):
        return LogLevel.WARNING
    return LogLevel.INFO


def parse_syslog_line(line: str, *, year: int | None = None) -> LogRecord | None:
    line = line.rstrip("\n")
    if not line.strip():
        return None
    match = _ISO_LINE.match(line)
    timestamp: float | None = None
    if match:
        try:
            timestamp = datetime.fromisoformat(match.group("ts")).timestamp()
        except ValueError:
            timestamp = None
    else:
        match = _BSD_LINE.match(line)
        if match:
            stamp = f"{year or datetime.now().year} {match.group('ts')}"
            try:
                timestamp = datetime.strptime(stamp, "%Y %b %d %H:%M:%S").timestamp()
            except ValueError:
                timestamp = None
    if not match:
        return None
    message = match.group("message").strip()
    details = {"host": match.group("host")}
    if match.group("pid"):
        details["pid"] = match.group("pid")
    return LogRecord(
        timestamp=timestamp if timestamp is not None else time.time(),
        level=infer_level(message),
        source=match.group("source"),
        message=message,
        details=details,
    )


class JournalLogSource:
    """Reads the systemd journal through ``journalctl -o json``."""

    def __init__(self, *, timeout: float = 5.0, executable: str = "journalctl") -> None:
        self._timeout = timeout
        self._executable = executable

    def read(self, limit: int) -> list[LogRecord]:
        cmd = [self._executable, "-o", "json", "-n", str(max(1, limit)), "--no-pager"]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self._timeout)
        except (OSError, subprocess.SubprocessError) as exc:
            raise SourceUnreachable(f"journalctl no disponible: {exc}") from exc
        if result.returncode != 0:
            raise SourceUnreachable(
                f"journalctl terminó con código {result.returncode}: {result.stderr.strip()[:200]}"
            )
        records: list[LogRecord] = []
        for line in result.stdout.splitlines():
            if not line.strip():
                continue
            try:
                records.append(parse_journal_entry(json.loads(line)))
            except (ValueError, TypeError):
                logger.debug("Entrada de journal ignorada: %r", line[:120])
        records.sort(key=lambda record: record.timestamp)
        return records[-limit:]


class SyslogFileSource:
    """Tails classic syslog text files."""

    def __init__(self, paths: Sequence[Path] = _SYSLOG_PATHS) -> None:
        self._paths = tuple(paths)

    def read(self, limit: int) -> list[LogRecord]:
        for path in self._paths:
            try:
                with path.open("r", encoding="utf-8", errors="replace") as handle:
                    tail = deque(handle, maxlen=max(1, limit))
            except OSError:
                continue
            records = [record for record in map(parse_syslog_line, tail) if record is not None]
            records.sort(key=lambda record: record.timestamp)
            return records
        raise SourceUnreachable("No hay archivos de syslog legibles")


class FallbackLogSource:
    """Tries each source in order, raising only when every one fails."""

    def __init__(self, sources: Iterable[LogSource]) -> None:
        self._sources = tuple(sources)

    def read(self, limit: int) -> list[LogRecord]:
        errors: list[str] = []
        for source in self._sources:
            try:
                return source.read(limit)
            except SourceUnreachable as exc:
                errors.append(str(exc))
        raise SourceUnreachable("; ".join(errors) or "No hay fuentes de logs configuradas")


class MemoryLogSource:
    """Bounded in-memory log buffer, filled by callers."""

    def __init__(self, records: Iterable[LogRecord] = (), *, capacity: int = 1000) -> None:
        self._records: deque[LogRecord] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self.extend(records)

    def extend(self, records: Iterable[LogRecord]) -> None:
        with self._lock:
            self._records.extend(records)

    def read(self, limit: int) -> list[LogRecord]:
        with self._lock:
            records = sorted(self._records, key=lambda record: record.timestamp)
        return records[-limit:] if limit > 0 else []


def default_log_source() -> LogSource:
    return FallbackLogSource([JournalLogSource(), SyslogFileSource()])
