"""Time parsing and formatting helpers (core domain).

All times handed to the Logs API are integer milliseconds since the epoch.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from cwlogs.core.config import DEFAULT_LOOKBACK_SECONDS
from cwlogs.core.errors import InvalidTimeExpression

_DURATION_TOKEN = re.compile(r"(\d+)\s*([A-Za-z]+)")
_DURATION_FULL = re.compile(r"^(\s*\d+\s*[A-Za-z]+)+\s*$")

_UNIT_SECONDS = {
    "ms": 0.001,
    "msec": 0.001,
    "s": 1,
    "sec": 1,
    "secs": 1,
    "second": 1,
    "seconds": 1,
    "m": 60,
    "min": 60,
    "mins": 60,
    "minute": 60,
    "minutes": 60,
    "h": 3600,
    "hr": 3600,
    "hrs": 3600,
    "hour": 3600,
    "hours": 3600,
    "d": 86400,
    "day": 86400,
    "days": 86400,
    "w": 604800,
    "week": 604800,
    "weeks": 604800,
    # Calendar-free month (30.44 days) and year (365.25 days).
    "M": 2_630_016,
    "month": 2_630_016,
    "months": 2_630_016,
    "y": 31_557_600,
    "year": 31_557_600,
    "years": 31_557_600,
}


def to_millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def now_ms(now: Optional[datetime] = None) -> int:
    return to_millis(now or datetime.now(timezone.utc))


def default_start_time_ms(now: Optional[datetime] = None) -> int:
    """Return "now" moved slightly into the past.

    That way an empty start time is more likely to return at least something.
    """

    moment = now or datetime.now(timezone.utc)
    return to_millis(moment - timedelta(seconds=DEFAULT_LOOKBACK_SECONDS))


def parse_duration(value: str) -> Optional[timedelta]:
    """Parse `1h30m`, `15 min` or `2d`; return None if `value` is not a duration."""

    if not _DURATION_FULL.match(value):
        return None
    total = 0.0
    for amount, unit in _DURATION_TOKEN.findall(value):
        factor = _UNIT_SECONDS.get(unit)
        if factor is None:
            factor = _UNIT_SECONDS.get(unit.lower())
        if factor is None:
            return None
        total += int(amount) * factor
    return timedelta(seconds=total)


def _parse_datetime(value: str) -> Optional[datetime]:
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_human_time(value: str, now: Optional[datetime] = None) -> int:
    """Parse a time option into epoch milliseconds.

    A duration means "that long ago"; anything else must be an ISO 8601 /
    RFC 3339 date or date-time. Naive date-times are taken as UTC.
    """

    duration = parse_duration(value)
    if duration is not None:
        moment = now or datetime.now(timezone.utc)
        return to_millis(moment - duration)

    parsed = _parse_datetime(value)
    if parsed is None:
        raise InvalidTimeExpression(f"expected a duration (e.g. 15m) or a date/time, got {value!r}")
    return to_millis(parsed)


def format_timestamp(timestamp_ms: int, use_local_time: bool = False) -> Optional[str]:
    """Render epoch milliseconds as RFC 3339 with second precision."""

    try:
        moment = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None
    if use_local_time:
        moment = moment.astimezone()
    rendered = moment.isoformat(timespec="seconds")
    if rendered.endswith("+00:00"):
        rendered = rendered[: -len("+00:00")] + "Z"
    return rendered
