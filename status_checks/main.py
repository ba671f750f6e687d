from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from status_checks.alerting import (
    EXIT_CONFIG_ERROR,
    EXIT_PERSISTENCE_ERROR,
    RunVerdict,
    evaluate_run,
)
from status_checks.config import CheckerConfig, load_config
from status_checks.fanout import ProbeOutcome, run_probes
from status_checks.history import LogStore, LogStoreError, write_bytes_atomic
from status_checks.probe import build_http_client, format_status_code
from status_checks.targets import Target, load_targets
from status_checks.uptime import aggregate, format_service_name, status_label


LOGGER = logging.getLogger("status-checks")


@dataclass(frozen=True)
class RunReport:
    targets: list[Target]
    outcomes: dict[str, ProbeOutcome]
    verdict: RunVerdict
    # key -> error message for outcomes that could not be written to their log.
    persistence_errors: dict[str, str] = field(default_factory=dict)

    @property
    def exit_code(self) -> int:
        if self.persistence_errors:
            return EXIT_PERSISTENCE_ERROR
        return self.verdict.exit_code

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.verdict.to_dict(),
            "exit_code": self.exit_code,
            "services": [
                {**self.outcomes[t.key].to_dict(), "url": t.url} for t in self.targets if t.key in self.outcomes
            ],
            "persistence_errors": dict(self.persistence_errors),
        }


def _write_json_atomic(path: Path, payload: dict[str, Any]) -> None:
    write_bytes_atomic(path, json.dumps(payload, ensure_ascii=False, sort_keys=True, indent=2).encode("utf-8"))


def record_outcomes(store: LogStore, outcomes: dict[str, ProbeOutcome]) -> dict[str, str]:
    """Append each outcome to its log, one key at a time. Returns failures by key."""
    errors: dict[str, str] = {}
    for key, outcome in outcomes.items():
        try:
            store.append(key, outcome.timestamp, outcome.status)
        except LogStoreError as exc:
            LOGGER.exception("Failed to record outcome key=%s error=%s", key, exc)
            errors[key] = str(exc)
    return errors


async def run_once(config: CheckerConfig, *, now: datetime | None = None) -> RunReport:
    targets = load_targets(Path(config.urls_file))
    LOGGER.info("Health check starting services=%s", len(targets))
    policy = config.probe_policy()

    async with build_http_client(policy) as http_client:
        outcomes = await run_probes(targets, http_client, policy, now=now)

    for key, outcome in outcomes.items():
        level = logging.INFO if outcome.ok else logging.WARNING
        LOGGER.log(
            level,
            "Check result key=%s status=%s attempts=%s code=%s error=%s",
            key,
            outcome.status,
            outcome.attempts,
            format_status_code(outcome.status_code),
            outcome.error,
        )

    persistence_errors: dict[str, str] = {}
    if config.record:
        store = LogStore(config.logs_dir, max_records=config.max_records)
        persistence_errors = record_outcomes(store, outcomes)
    else:
        LOGGER.info("Recording disabled; logs left untouched")

    verdict = evaluate_run(outcomes)
    report = RunReport(
        targets=targets,
        outcomes=outcomes,
        verdict=verdict,
        persistence_errors=persistence_errors,
    )

    if config.summary_path:
        try:
            _write_json_atomic(Path(config.summary_path), report.to_dict())
        except OSError as exc:
            LOGGER.warning("Failed to write run summary path=%s error=%s", config.summary_path, exc)

    if verdict.healthy:
        LOGGER.info("Run healthy services=%s", len(outcomes))
    else:
        LOGGER.warning("Run unhealthy down=%s", ",".join(verdict.down))
    return report


def print_run_table(report: RunReport) -> None:
    for key, outcome in report.outcomes.items():
        print(f"  {key}: {outcome.status}")
    print(f"Verdict: {report.verdict.status}")
    if report.verdict.down:
        print(f"Down: {', '.join(report.verdict.down)}")
    if report.persistence_errors:
        print(f"Not recorded: {', '.join(report.persistence_errors)}")


def build_report(config: CheckerConfig, *, now: datetime | None = None) -> list[dict[str, Any]]:
    """Recompute the uptime summary of every configured service from its log."""
    now = now or datetime.now(timezone.utc)
    store = LogStore(config.logs_dir, max_records=config.max_records)
    rows: list[dict[str, Any]] = []
    for target in load_targets(Path(config.urls_file)):
        summary = aggregate(store.read_lines(target.key), now, window_days=config.window_days)
        rows.append(
            {
                "key": target.key,
                "name": format_service_name(target.key),
                "url": target.url,
                **summary.to_dict(),
            }
        )
    return rows


_TIMELINE_CHARS = {"success": "#", "partial": "+", "failure": "x", "no data": "."}


def print_uptime_report(rows: list[dict[str, Any]]) -> None:
    for row in rows:
        timeline = "".join(_TIMELINE_CHARS.get(s, "?") for s in row["timeline"])
        print(f"{row['name']} ({row['url']})")
        print(f"  {status_label(row['current_status'])} - {row['uptime']} uptime")
        print(f"  [{timeline}]")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Multi-service availability checker")
    parser.add_argument("--config", default=None, help="Path to YAML config (default: $STATUS_CONFIG or status_checks.yaml)")
    parser.add_argument("--urls", default=None, help="key=url target list (overrides config)")
    parser.add_argument("--logs-dir", default=None, help="Directory for per-service logs (overrides config)")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (INFO, WARNING, ...)",
    )

    sub = parser.add_subparsers(dest="command")
    run = sub.add_parser("run", help="Probe every service once, record outcomes, exit non-zero when any is down")
    run.add_argument("--no-record", action="store_true", help="Probe only; do not append to logs")
    run.add_argument("--summary-json", default=None, help="Write a JSON run summary to this path")

    report = sub.add_parser("report", help="Print the rolling uptime history from the logs")
    report.add_argument("--json", action="store_true", help="Print summaries as JSON")
    return parser


def _apply_cli_overrides(config: CheckerConfig, args: argparse.Namespace) -> CheckerConfig:
    updates: dict[str, Any] = {}
    if args.urls:
        updates["urls_file"] = args.urls
    if args.logs_dir:
        updates["logs_dir"] = args.logs_dir
    if args.log_level:
        updates["log_level"] = args.log_level
    if getattr(args, "no_record", False):
        updates["record"] = False
    if getattr(args, "summary_json", None):
        updates["summary_path"] = args.summary_json
    return config.model_copy(update=updates) if updates else config


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    command = args.command or "run"

    try:
        config = _apply_cli_overrides(load_config(args.config), args)
    except (ValidationError, ValueError, OSError) as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    logging.basicConfig(
        level=getattr(logging, str(config.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    try:
        if command == "report":
            rows = build_report(config)
            if args.json:
                print(json.dumps(rows, ensure_ascii=False, indent=2))
            else:
                print_uptime_report(rows)
            return 0

        report = asyncio.run(run_once(config))
    except FileNotFoundError as exc:
        LOGGER.error("Target list not found path=%s error=%s", config.urls_file, exc)
        return EXIT_CONFIG_ERROR
    except (OSError, UnicodeDecodeError) as exc:
        LOGGER.error("Target list unreadable path=%s error=%s", config.urls_file, exc)
        return EXIT_CONFIG_ERROR

    print_run_table(report)
    return report.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
