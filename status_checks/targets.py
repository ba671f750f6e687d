from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable


LOGGER = logging.getLogger("status-checks.targets")

_KEY_DISALLOWED_RE = re.compile(r"[^A-Za-z0-9_]")


@dataclass(frozen=True)
class Target:
    key: str
    url: str


def sanitize_key(raw: str) -> str:
    return _KEY_DISALLOWED_RE.sub("", raw or "")


def parse_targets(lines: Iterable[str]) -> list[Target]:
    """
    Parse `key=url` lines into targets, preserving input order.

    Blank lines, `#` comments and lines without `=` are skipped. Keys are
    reduced to [A-Za-z0-9_]; entries whose key or url ends up empty are dropped.
    A repeated key keeps its first url since both would share one log file.
    """
    targets: list[Target] = []
    seen: set[str] = set()
    for lineno, raw_line in enumerate(lines, start=1):
        line = (raw_line or "").strip()
        if not line or line.startswith("#"):
            continue

        raw_key, sep, raw_url = line.partition("=")
        if not sep:
            LOGGER.debug("Skipping line without '=' line=%s", lineno)
            continue

        key = sanitize_key(raw_key)
        url = raw_url.strip()
        if not key or not url:
            LOGGER.debug("Skipping entry with empty key or url line=%s", lineno)
            continue

        if key in seen:
            LOGGER.warning("Duplicate target key ignored key=%s line=%s url=%s", key, lineno, url)
            continue

        seen.add(key)
        targets.append(Target(key=key, url=url))
    return targets


def load_targets(path: Path) -> list[Target]:
    with open(path, "r", encoding="utf-8") as f:
        return parse_targets(f.read().splitlines())
