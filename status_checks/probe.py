from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field

import httpx


LOGGER = logging.getLogger("status-checks.probe")

STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"

# Final status codes (after redirects) that count as "up".
DEFAULT_SUCCESS_STATUS_CODES: frozenset[int] = frozenset({200, 201, 202, 204, 301, 302, 303, 307, 308})

USER_AGENT = "status-checks/1.0"


@dataclass(frozen=True)
class ProbePolicy:
    attempts: int = 3
    retry_delay_seconds: float = 2.0
    connect_timeout_seconds: float = 10.0
    total_timeout_seconds: float = 30.0
    success_status_codes: frozenset[int] = field(default_factory=lambda: DEFAULT_SUCCESS_STATUS_CODES)

    @property
    def worst_case_seconds(self) -> float:
        attempts = max(1, int(self.attempts))
        return attempts * float(self.total_timeout_seconds) + (attempts - 1) * float(self.retry_delay_seconds)


@dataclass(frozen=True)
class ProbeResult:
    status: str
    attempts: int
    # Last observed final status code; None when the last attempt never got a response.
    status_code: int | None = None
    error: str | None = None
    elapsed_ms: float | None = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SUCCESS


def format_status_code(code: int | None) -> str:
    return "000" if code is None else str(int(code))


def build_http_client(policy: ProbePolicy) -> httpx.AsyncClient:
    timeout = httpx.Timeout(float(policy.total_timeout_seconds), connect=float(policy.connect_timeout_seconds))
    return httpx.AsyncClient(
        timeout=timeout,
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT},
    )


async def _attempt(url: str, client: httpx.AsyncClient, policy: ProbePolicy) -> tuple[int | None, str | None]:
    try:
        # httpx timeouts are per network operation; wait_for bounds the whole request.
        resp = await asyncio.wait_for(
            client.get(url, follow_redirects=True),
            timeout=float(policy.total_timeout_seconds),
        )
    except asyncio.TimeoutError:
        return None, f"timeout after {policy.total_timeout_seconds}s"
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        return None, f"http_error: {type(e).__name__}: {e}"
    return resp.status_code, None


async def probe_url(url: str, client: httpx.AsyncClient, policy: ProbePolicy | None = None) -> ProbeResult:
    """
    Bounded-retry availability check for a single url.

    Stops on the first attempt whose final status code is in the success set;
    otherwise waits a fixed delay and retries until the attempts run out.
    Network errors never escape: they count as code "000".
    """
    policy = policy or ProbePolicy()
    attempts = max(1, int(policy.attempts))
    started = time.perf_counter()

    status_code: int | None = None
    error: str | None = None
    for attempt in range(1, attempts + 1):
        status_code, error = await _attempt(url, client, policy)
        if status_code is not None and status_code in policy.success_status_codes:
            return ProbeResult(
                status=STATUS_SUCCESS,
                attempts=attempt,
                status_code=status_code,
                elapsed_ms=round((time.perf_counter() - started) * 1000.0, 3),
            )

        LOGGER.debug(
            "Probe attempt failed url=%s attempt=%s/%s code=%s error=%s",
            url,
            attempt,
            attempts,
            format_status_code(status_code),
            error,
        )
        if attempt < attempts and policy.retry_delay_seconds > 0:
            await asyncio.sleep(float(policy.retry_delay_seconds))

    return ProbeResult(
        status=STATUS_FAILED,
        attempts=attempts,
        status_code=status_code,
        error=error or f"unexpected status {format_status_code(status_code)}",
        elapsed_ms=round((time.perf_counter() - started) * 1000.0, 3),
    )
