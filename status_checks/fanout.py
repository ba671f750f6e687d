from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Sequence

import httpx

from status_checks.probe import (
    STATUS_FAILED,
    STATUS_SUCCESS,
    ProbePolicy,
    ProbeResult,
    format_status_code,
    probe_url,
)
from status_checks.targets import Target


LOGGER = logging.getLogger("status-checks.fanout")


@dataclass(frozen=True)
class ProbeOutcome:
    target_key: str
    timestamp: datetime
    status: str
    attempts: int = 0
    status_code: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SUCCESS

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.target_key,
            "timestamp": self.timestamp.strftime("%Y-%m-%d %H:%M"),
            "status": self.status,
            "attempts": self.attempts,
            "status_code": format_status_code(self.status_code),
            "error": self.error,
        }


def run_timestamp(now: datetime | None = None) -> datetime:
    """UTC timestamp truncated to the minute, shared by every outcome of a run."""
    ts = now or datetime.now(timezone.utc)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).replace(second=0, microsecond=0)


async def _safe_probe(target: Target, client: httpx.AsyncClient, policy: ProbePolicy) -> ProbeResult:
    try:
        return await probe_url(target.url, client, policy)
    except Exception as exc:
        err = f"{type(exc).__name__}: {exc}"
        LOGGER.exception("Probe crashed key=%s error=%s", target.key, err)
        return ProbeResult(status=STATUS_FAILED, attempts=0, error=f"probe_crashed: {err}")


async def run_probes(
    targets: Sequence[Target],
    client: httpx.AsyncClient,
    policy: ProbePolicy | None = None,
    *,
    now: datetime | None = None,
) -> dict[str, ProbeOutcome]:
    """
    Probe every target concurrently and wait for all of them.

    One task per target, no cap. The returned mapping is keyed by target key
    and iterates in the same order as `targets`, whatever order the probes
    finished in.
    """
    policy = policy or ProbePolicy()
    if not targets:
        return {}

    results = await asyncio.gather(*(_safe_probe(t, client, policy) for t in targets))

    ts = run_timestamp(now)
    outcomes: dict[str, ProbeOutcome] = {}
    for target, result in zip(targets, results):
        outcomes[target.key] = ProbeOutcome(
            target_key=target.key,
            timestamp=ts,
            status=result.status,
            attempts=result.attempts,
            status_code=result.status_code,
            error=result.error,
        )
    return outcomes
