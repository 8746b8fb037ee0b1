"""
Duration strings in the formats the Temporal TypeScript SDK accepts.
"""

from __future__ import annotations

import re
from typing import Optional

_DURATION_PATTERN = re.compile(
    r"^\s*(?P<amount>\d+(?:\.\d+)?)\s*(?P<unit>[a-zA-Z]+)\s*$"
)

_UNIT_MS = {
    "ms": 1,
    "millisecond": 1,
    "milliseconds": 1,
    "s": 1000,
    "sec": 1000,
    "secs": 1000,
    "second": 1000,
    "seconds": 1000,
    "m": 60_000,
    "min": 60_000,
    "mins": 60_000,
    "minute": 60_000,
    "minutes": 60_000,
    "h": 3_600_000,
    "hr": 3_600_000,
    "hrs": 3_600_000,
    "hour": 3_600_000,
    "hours": 3_600_000,
    "d": 86_400_000,
    "day": 86_400_000,
    "days": 86_400_000,
}


def parse_duration_ms(value: str) -> Optional[int]:
    """Return ``value`` in milliseconds, or ``None`` when it is not a duration."""

    match = _DURATION_PATTERN.match(value or "")
    if not match:
        return None
    factor = _UNIT_MS.get(match.group("unit").lower())
    if factor is None:
        return None
    return int(float(match.group("amount")) * factor)


def is_duration(value: str) -> bool:
    return parse_duration_ms(value) is not None
