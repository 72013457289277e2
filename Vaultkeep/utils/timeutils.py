"""Time helpers shared by the inventory, ranker and archive code."""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Optional, Union

from .errors import ValidationError

Timestamp = Union[str, datetime]

SECONDS_PER_DAY = 86400.0

_DURATION_RE = re.compile(r"^(\d+)([dwmy])$")
_DURATION_DAYS = {"d": 1, "w": 7, "m": 30, "y": 365}
_DURATION_NAMES = {"d": "day", "w": "week", "m": "month", "y": "year"}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_today() -> date:
    return utc_now().date()


def iso_now() -> str:
    """Current UTC time as an ISO-8601 string with a trailing ``Z``."""
    return utc_now().isoformat().replace("+00:00", "Z")


def parse_timestamp(value: Timestamp) -> datetime:
    """Parse an ISO timestamp (or pass a datetime through) as an aware UTC datetime.

    Naive values are assumed to be UTC. Raises ValueError when unparseable.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        dt = datetime.fromisoformat(raw)
    else:
        raise ValueError(f"Unsupported timestamp type: {type(value).__name__}")

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def age_in_days(value: Timestamp, now: Optional[datetime] = None) -> float:
    """Fractional age in days; never negative."""
    now = now or utc_now()
    delta = parse_timestamp(now) - parse_timestamp(value)
    return max(0.0, delta.total_seconds() / SECONDS_PER_DAY)


def month_key(value: Timestamp) -> str:
    """``YYYY-MM`` key for a timestamp."""
    dt = parse_timestamp(value)
    return f"{dt.year:04d}-{dt.month:02d}"


def parse_duration(duration: str) -> int:
    """Convert a duration such as ``90d``, ``2w``, ``6m`` or ``1y`` into days.

    Months count as 30 days and years as 365.
    """
    match = _DURATION_RE.match((duration or "").strip())
    if not match:
        raise ValidationError(
            f"Invalid duration format: {duration!r} (expected e.g. 90d, 2w, 6m, 1y)",
            context={"value": duration},
        )
    return int(match.group(1)) * _DURATION_DAYS[match.group(2)]


def format_duration(duration: str) -> str:
    """Human-readable form of a duration string; unknown input is returned unchanged."""
    match = _DURATION_RE.match((duration or "").strip())
    if not match:
        return duration
    value = int(match.group(1))
    unit = _DURATION_NAMES[match.group(2)]
    plural = "s" if value > 1 else ""
    return f"{value} {unit}{plural}"


__all__ = [
    "Timestamp",
    "utc_now",
    "utc_today",
    "iso_now",
    "parse_timestamp",
    "age_in_days",
    "month_key",
    "parse_duration",
    "format_duration",
]
