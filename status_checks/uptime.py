from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable

from status_checks.history import LogRecord, as_utc, parse_record


MAX_DAYS = 30

DAY_SUCCESS = "success"
DAY_PARTIAL = "partial"
DAY_FAILURE = "failure"
DAY_NO_DATA = "no data"

# A day below this success ratio counts as an outage rather than degraded.
FAILURE_RATIO_THRESHOLD = 0.3

_STATUS_LABELS = {
    DAY_SUCCESS: "Operational",
    DAY_PARTIAL: "Degraded",
    DAY_FAILURE: "Outage",
    DAY_NO_DATA: "No Data",
}

_STATUS_DESCRIPTIONS = {
    DAY_SUCCESS: "All checks passed on this day.",
    DAY_PARTIAL: "Some checks failed on this day.",
    DAY_FAILURE: "Most checks failed on this day.",
    DAY_NO_DATA: "No monitoring data available.",
}


def classify_ratio(ratio: float | None) -> str:
    if ratio is None:
        return DAY_NO_DATA
    if ratio >= 1:
        return DAY_SUCCESS
    if ratio < FAILURE_RATIO_THRESHOLD:
        return DAY_FAILURE
    return DAY_PARTIAL


def status_label(status: str) -> str:
    return _STATUS_LABELS.get(status, "Unknown")


def status_description(status: str) -> str:
    return _STATUS_DESCRIPTIONS.get(status, "")


def format_service_name(key: str) -> str:
    if key.lower() == "api":
        return "API"
    return key[:1].upper() + key[1:].lower()


@dataclass(frozen=True)
class UptimeSummary:
    total: int
    successes: int
    # days_ago -> success ratio; days without records are absent.
    buckets: dict[int, float] = field(default_factory=dict)
    window_days: int = MAX_DAYS

    @property
    def overall_percent(self) -> float | None:
        if self.total <= 0:
            return None
        return (self.successes / float(self.total)) * 100.0

    @property
    def uptime_label(self) -> str:
        pct = self.overall_percent
        return "no data" if pct is None else f"{pct:.2f}%"

    @property
    def current_status(self) -> str:
        return self.status_for(0)

    def status_for(self, days_ago: int) -> str:
        return classify_ratio(self.buckets.get(int(days_ago)))

    def timeline(self) -> list[str]:
        """Per-day statuses for the window, oldest day first, today last."""
        return [self.status_for(i) for i in range(self.window_days - 1, -1, -1)]

    def to_dict(self) -> dict[str, Any]:
        pct = self.overall_percent
        return {
            "overall_percent": round(pct, 2) if pct is not None else None,
            "uptime": self.uptime_label,
            "total": self.total,
            "successes": self.successes,
            "current_status": self.current_status,
            "buckets": {str(k): round(v, 4) for k, v in sorted(self.buckets.items())},
            "timeline": self.timeline(),
        }


def _day_start(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)


def aggregate(
    records: Iterable[LogRecord | str],
    now: datetime | None = None,
    *,
    window_days: int = MAX_DAYS,
) -> UptimeSummary:
    """
    Derive day buckets and overall uptime from a service's log.

    Accepts parsed records or raw log lines; lines that do not parse are
    skipped. Days are UTC calendar days of each record's own timestamp, and
    `days_ago` is the floor of whole days between that day's midnight and
    `now`. Only days within the window are bucketed, but the overall
    percentage covers every parsed record.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    per_day: dict[date, list[int]] = {}
    total = 0
    successes = 0
    for item in records:
        rec = parse_record(item) if isinstance(item, str) else item
        if rec is None:
            continue
        ok = 1 if rec.ok else 0
        counts = per_day.setdefault(as_utc(rec.timestamp).date(), [0, 0])
        counts[0] += ok
        counts[1] += 1
        successes += ok
        total += 1

    buckets: dict[int, float] = {}
    one_day = timedelta(days=1)
    for day, (ok_count, day_total) in per_day.items():
        days_ago = (now - _day_start(day)) // one_day
        if 0 <= days_ago < window_days:
            buckets[days_ago] = ok_count / float(day_total)

    return UptimeSummary(total=total, successes=successes, buckets=buckets, window_days=window_days)
