"""Parse backend capture intervals such as "5m" or "30s"."""

from __future__ import annotations

from typing import Final
import re


INTERVAL_PATTERN: Final[re.Pattern[str]] = re.compile(r"(\d+)([smh])")
UNIT_MILLISECONDS: Final[dict[str, int]] = {"s": 1_000, "m": 60_000, "h": 3_600_000}


def parse_interval_ms(value: str | None) -> int:
    """Return the duration in milliseconds, or 0 for anything not `<int><s|m|h>`."""
    if not value:
        return 0
    match = INTERVAL_PATTERN.fullmatch(value)
    if match is None:
        return 0
    amount, unit = match.groups()
    return int(amount) * UNIT_MILLISECONDS[unit]


def parse_interval_seconds(value: str | None) -> int:
    return parse_interval_ms(value) // 1_000
