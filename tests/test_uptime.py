from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from status_checks.history import LogRecord, format_record
from status_checks.uptime import (
    DAY_FAILURE,
    DAY_NO_DATA,
    DAY_PARTIAL,
    DAY_SUCCESS,
    aggregate,
    classify_ratio,
    format_service_name,
    status_description,
    status_label,
)


NOW = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


def _lines(day: datetime, ok: int, failed: int) -> list[str]:
    out = []
    for i in range(ok):
        out.append(format_record(day + timedelta(minutes=i), "success"))
    for i in range(failed):
        out.append(format_record(day + timedelta(minutes=ok + i), "failed"))
    return out


def test_seven_of_ten_today_is_seventy_percent_partial() -> None:
    today = datetime(2024, 5, 10, 0, 0, tzinfo=timezone.utc)
    summary = aggregate(_lines(today, 7, 3), NOW)

    assert summary.total == 10
    assert summary.successes == 7
    assert summary.overall_percent == pytest.approx(70.0)
    assert summary.uptime_label == "70.00%"
    assert summary.buckets == {0: pytest.approx(0.7)}
    assert summary.status_for(0) == DAY_PARTIAL
    assert summary.current_status == DAY_PARTIAL


def test_days_ago_uses_record_calendar_day_not_elapsed_hours() -> None:
    # 23:50 yesterday is only 12h10m before NOW but still one calendar day ago.
    now = datetime(2024, 5, 10, 0, 30, tzinfo=timezone.utc)
    lines = [
        "2024-05-09 23:50, failed",
        "2024-05-10 00:10, success",
    ]
    summary = aggregate(lines, now)
    assert summary.buckets == {0: 1.0, 1: 0.0}


def test_window_filters_buckets_but_not_overall_percent() -> None:
    lines = [
        "2024-04-01 10:00, failed",  # 39 days ago
        "2024-04-11 10:00, failed",  # 29 days ago
        "2024-05-10 10:00, success",
    ]
    summary = aggregate(lines, NOW)
    assert summary.total == 3
    assert summary.overall_percent == pytest.approx(100.0 / 3)
    assert summary.buckets == {29: 0.0, 0: 1.0}
    assert 39 not in summary.buckets


def test_unparsable_and_future_records() -> None:
    lines = [
        "garbage",
        "2024-05-10 10:00, success",
        "tomorrow-ish, failed",
        "2024-05-12 10:00, failed",  # future day, counted overall but not bucketed
    ]
    summary = aggregate(lines, NOW)
    assert summary.total == 2
    assert summary.successes == 1
    assert summary.buckets == {0: 1.0}


def test_empty_log_reports_no_data() -> None:
    summary = aggregate([], NOW)
    assert summary.overall_percent is None
    assert summary.uptime_label == "no data"
    assert summary.buckets == {}
    assert summary.current_status == DAY_NO_DATA


def test_missing_day_is_absent_and_renders_no_data() -> None:
    lines = ["2024-05-08 10:00, success", "2024-05-10 10:00, success"]
    summary = aggregate(lines, NOW)
    assert 1 not in summary.buckets
    assert summary.status_for(1) == DAY_NO_DATA
    assert summary.status_for(2) == DAY_SUCCESS


def test_aggregate_accepts_parsed_records() -> None:
    records = [
        LogRecord(timestamp=datetime(2024, 5, 10, 1, 0, tzinfo=timezone.utc), status="success"),
        LogRecord(timestamp=datetime(2024, 5, 10, 2, 0, tzinfo=timezone.utc), status="failed"),
    ]
    summary = aggregate(records, NOW)
    assert summary.buckets == {0: 0.5}


def test_timeline_is_oldest_first_and_window_sized() -> None:
    lines = ["2024-04-11 10:00, failed", "2024-05-10 10:00, success"]
    timeline = aggregate(lines, NOW).timeline()
    assert len(timeline) == 30
    assert timeline[0] == DAY_FAILURE
    assert timeline[-1] == DAY_SUCCESS
    assert set(timeline[1:-1]) == {DAY_NO_DATA}


def test_to_dict_is_json_friendly() -> None:
    data = aggregate(_lines(datetime(2024, 5, 10, tzinfo=timezone.utc), 1, 1), NOW).to_dict()
    assert data["overall_percent"] == 50.0
    assert data["uptime"] == "50.00%"
    assert data["buckets"] == {"0": 0.5}
    assert data["current_status"] == DAY_PARTIAL
    assert aggregate([], NOW).to_dict()["overall_percent"] is None


@pytest.mark.parametrize(
    ("ratio", "expected"),
    [
        (None, DAY_NO_DATA),
        (1.0, DAY_SUCCESS),
        (0.999, DAY_PARTIAL),
        (0.7, DAY_PARTIAL),
        (0.3, DAY_PARTIAL),
        (0.2999, DAY_FAILURE),
        (0.0, DAY_FAILURE),
    ],
)
def test_classify_ratio_thresholds(ratio: float | None, expected: str) -> None:
    assert classify_ratio(ratio) == expected


def test_labels_and_names() -> None:
    assert status_label(DAY_SUCCESS) == "Operational"
    assert status_label(DAY_PARTIAL) == "Degraded"
    assert status_label(DAY_FAILURE) == "Outage"
    assert status_label(DAY_NO_DATA) == "No Data"
    assert status_label("bogus") == "Unknown"
    assert status_description(DAY_NO_DATA) == "No monitoring data available."
    assert format_service_name("api") == "API"
    assert format_service_name("vaultWARDEN") == "Vaultwarden"


def test_naive_record_timestamps_are_utc() -> None:
    records = [LogRecord(timestamp=datetime(2024, 5, 9, 23, 50), status="success")]
    assert aggregate(records, NOW).buckets == {1: 1.0}


def test_undecodable_line_is_skipped() -> None:
    lines = ["2024-05-10 10:00, success", "�� garbage", "2024-05-10 11:00, failed"]
    summary = aggregate(lines, NOW)
    assert summary.total == 2
    assert summary.buckets == {0: 0.5}
