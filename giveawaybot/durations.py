"""Human duration parsing for giveaway commands."""

from __future__ import annotations

import math
import re
from typing import List, Optional

SECOND_MS = 1000
MINUTE_MS = 60 * SECOND_MS
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS
WEEK_MS = 7 * DAY_MS

# Longest accepted duration: one year.
MAX_DURATION_MS = 365 * DAY_MS

_UNITS = {
    "ms": 1,
    "msec": 1,
    "msecs": 1,
    "millisecond": 1,
    "milliseconds": 1,
    "s": SECOND_MS,
    "sec": SECOND_MS,
    "secs": SECOND_MS,
    "second": SECOND_MS,
    "seconds": SECOND_MS,
    "m": MINUTE_MS,
    "min": MINUTE_MS,
    "mins": MINUTE_MS,
    "minute": MINUTE_MS,
    "minutes": MINUTE_MS,
    "h": HOUR_MS,
    "hr": HOUR_MS,
    "hrs": HOUR_MS,
    "hour": HOUR_MS,
    "hours": HOUR_MS,
    "d": DAY_MS,
    "day": DAY_MS,
    "days": DAY_MS,
    "w": WEEK_MS,
    "week": WEEK_MS,
    "weeks": WEEK_MS,
}

PART_RE = re.compile(r"(\d+(?:\.\d+)?|\.\d+)\s*([a-z]+)")
NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")


def parse_duration(value: Optional[str]) -> Optional[int]:
    """Parse strings like '90s', '3m', '1h30m' or '2 days' into milliseconds.

    A bare number is read as milliseconds. Returns None when the value cannot
    be parsed, is not positive or exceeds MAX_DURATION_MS.
    """
    if value is None:
        return None
    text = value.strip().lower()
    if not text:
        return None

    if NUMBER_RE.fullmatch(text):
        return _bounded(float(text))

    total = 0.0
    position = 0
    for match in PART_RE.finditer(text):
        if text[position:match.start()].strip(" ,"):
            return None
        unit = _UNITS.get(match.group(2))
        if unit is None:
            return None
        total += float(match.group(1)) * unit
        position = match.end()
    if position == 0 or text[position:].strip(" ,"):
        return None

    return _bounded(total)


def humanize_ms(value: int) -> str:
    """Render a millisecond span as a compact string such as '1h 30m'."""
    seconds = max(int(value) // SECOND_MS, 0)
    if seconds == 0:
        return "0s"
    parts: List[str] = []
    days, rem = divmod(seconds, 86400)
    hours, rem = divmod(rem, 3600)
    minutes, secs = divmod(rem, 60)
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs:
        parts.append(f"{secs}s")
    return " ".join(parts)


def _bounded(total: float) -> Optional[int]:
    if not math.isfinite(total):
        return None
    result = int(round(total))
    if result <= 0 or result > MAX_DURATION_MS:
        return None
    return result
