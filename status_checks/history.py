from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable


LOGGER = logging.getLogger("status-checks.history")

# On-disk record format, one line per run:
#   "<UTC YYYY-MM-DD HH:MM>, <success|failed>\n"
# Files live at <logs_dir>/<key>_report.log and are read as-is by renderers.
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M"
RECORD_SEPARATOR = ", "
LOG_FILE_SUFFIX = "_report.log"
DEFAULT_MAX_RECORDS = 2000


class LogStoreError(OSError):
    """Writing or truncating a log store failed (distinct from a service being down)."""


@dataclass(frozen=True)
class LogRecord:
    timestamp: datetime
    status: str

    @property
    def ok(self) -> bool:
        return self.status == "success"


def as_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def format_record(timestamp: datetime, status: str) -> str:
    return f"{as_utc(timestamp).strftime(TIMESTAMP_FORMAT)}{RECORD_SEPARATOR}{status}\n"


def parse_timestamp(value: str) -> datetime | None:
    s = (value or "").strip()
    if not s:
        return None
    try:
        return datetime.strptime(s, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        pass
    # Tolerate hand-edited lines with seconds or an ISO-8601 "T"/offset.
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        return as_utc(datetime.fromisoformat(s))
    except ValueError:
        return None


def parse_record(line: str) -> LogRecord | None:
    raw_ts, sep, raw_status = (line or "").partition(",")
    if not sep:
        return None
    status = raw_status.strip()
    if not status:
        return None
    ts = parse_timestamp(raw_ts)
    if ts is None:
        return None
    return LogRecord(timestamp=ts, status=status)


def parse_records(lines: Iterable[str]) -> list[LogRecord]:
    """Best-effort decode; unparsable lines are skipped."""
    out: list[LogRecord] = []
    for line in lines:
        rec = parse_record(line)
        if rec is not None:
            out.append(rec)
    return out


def _ends_with_newline(path: Path) -> bool:
    try:
        with open(path, "rb") as f:
            f.seek(0, 2)
            if f.tell() == 0:
                return True
            f.seek(-1, 2)
            return f.read(1) == b"\n"
    except FileNotFoundError:
        return True


def write_bytes_atomic(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f"{path.name}.tmp")
    with open(tmp, "wb") as f:
        f.write(data)
        f.flush()
        os.fsync(f.fileno())
    tmp.replace(path)


class LogStore:
    """
    Append-only per-key outcome logs with a retention cap.

    After every append the file holds at most `max_records` lines; when it
    grows past that, the most recent lines are written to a temp file which
    is renamed over the original, so a crash mid-truncation leaves either the
    old or the new content on disk.

    Expects one writer per key at a time.
    """

    def __init__(self, directory: Path | str, *, max_records: int = DEFAULT_MAX_RECORDS) -> None:
        if int(max_records) < 1:
            raise ValueError("max_records must be >= 1")
        self.directory = Path(directory)
        self.max_records = int(max_records)

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}{LOG_FILE_SUFFIX}"

    def read_lines(self, key: str) -> list[str]:
        path = self.path_for(key)
        try:
            # Undecodable bytes become U+FFFD so the line just fails to parse.
            text = path.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            return []
        return [line for line in text.splitlines() if line.strip()]

    def read_records(self, key: str) -> list[LogRecord]:
        return parse_records(self.read_lines(key))

    def append(self, key: str, timestamp: datetime, status: str) -> int:
        """Append one record and apply retention. Returns the resulting record count."""
        path = self.path_for(key)
        line = format_record(timestamp, status).encode("utf-8")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            if not _ends_with_newline(path):
                line = b"\n" + line
            with open(path, "ab") as f:
                f.write(line)
            return self._enforce_retention(path)
        except (OSError, UnicodeError) as exc:
            raise LogStoreError(f"Failed to record outcome key={key} path={path}: {exc}") from exc

    def _enforce_retention(self, path: Path) -> int:
        # Lines are counted as raw bytes; a corrupt line is kept or dropped like any other.
        with open(path, "rb") as f:
            lines = f.readlines()
        if len(lines) <= self.max_records:
            return len(lines)

        kept = lines[-self.max_records :]
        if kept and not kept[-1].endswith(b"\n"):
            kept[-1] = kept[-1] + b"\n"
        write_bytes_atomic(path, b"".join(kept))
        LOGGER.debug("Truncated log path=%s dropped=%s kept=%s", path, len(lines) - len(kept), len(kept))
        return len(kept)
