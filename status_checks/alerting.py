from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from status_checks.fanout import ProbeOutcome


EXIT_HEALTHY = 0
EXIT_UNHEALTHY = 1
EXIT_PERSISTENCE_ERROR = 2
EXIT_CONFIG_ERROR = 3

VERDICT_HEALTHY = "healthy"
VERDICT_UNHEALTHY = "unhealthy"


@dataclass(frozen=True)
class RunVerdict:
    healthy: bool
    down: list[str] = field(default_factory=list)

    @property
    def status(self) -> str:
        return VERDICT_HEALTHY if self.healthy else VERDICT_UNHEALTHY

    @property
    def exit_code(self) -> int:
        return EXIT_HEALTHY if self.healthy else EXIT_UNHEALTHY

    def to_dict(self) -> dict[str, Any]:
        return {"verdict": self.status, "down": list(self.down)}


def evaluate_run(outcomes: Mapping[str, ProbeOutcome]) -> RunVerdict:
    """A target is down iff this run's live probe failed; history plays no part."""
    down = [key for key, outcome in outcomes.items() if not outcome.ok]
    return RunVerdict(healthy=not down, down=down)
