"""Time resolution, interval parsing and timestamp formatting."""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from enum import Enum

# Interval descriptor aliases. Case matters: ``M`` is months, ``m`` minutes.
INTERVAL_UNITS: dict[str, str] = {
    "year": "y",
    "years": "y",
    "y": "y",
    "months": "M",
    "month": "M",
    "mo": "M",
    "mos": "M",
    "M": "M",
    "weeks": "w",
    "week": "w",
    "wks": "w",
    "wk": "w",
    "w": "w",
    "days": "d",
    "day": "d",
    "d": "d",
    "hours": "h",
    "hour": "h",
    "hr": "h",
    "hrs": "h",
    "h": "h",
    "minutes": "m",
    "minute": "m",
    "min": "m",
    "mins": "m",
    "m": "m",
    "seconds": "s",
    "second": "s",
    "s": "s",
    "milliseconds": "ms",
    "millisecond": "ms",
    "ms": "ms",
}

# Calendar units are approximated; slices only need a nominal width.
UNIT_DELTAS: dict[str, timedelta] = {
    "y": timedelta(days=365),
    "M": timedelta(days=30),
    "w": timedelta(weeks=1),
    "d": timedelta(days=1),
    "h": timedelta(hours=1),
    "m": timedelta(minutes=1),
    "s": timedelta(seconds=1),
    "ms": timedelta(milliseconds=1),
}

AUTO_INTERVAL = "auto"

_INTERVAL_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([A-Za-z]+)\s*$")


class Resolution(str, Enum):
    """Smallest addressable time delta of a date slicer."""

    SECONDS = "s"
    MILLISECONDS = "ms"

    @property
    def unit(self) -> timedelta:
        if self is Resolution.MILLISECONDS:
            return timedelta(milliseconds=1)
        return timedelta(seconds=1)

    @property
    def timespec(self) -> str:
        return "milliseconds" if self is Resolution.MILLISECONDS else "seconds"


def parse_interval(value: str) -> timedelta | None:
    """Parse an interval descriptor such as ``2hrs`` or ``5m``.

    Returns ``None`` for ``auto``, meaning the width is derived from the
    data density at initialization time.
    """

    if value.strip() == AUTO_INTERVAL:
        return None
    match = _INTERVAL_PATTERN.match(value)
    if not match:
        raise ValueError("the time descriptor for the interval is malformed")
    amount, descriptor = match.groups()
    unit = INTERVAL_UNITS.get(descriptor)
    if unit is None:
        raise ValueError("the time descriptor for the interval is malformed")
    delta = UNIT_DELTAS[unit] * float(amount)
    if delta <= timedelta(0):
        raise ValueError("interval must be positive")
    return delta


def parse_timestamp(value: datetime | str) -> datetime:
    """Return a timezone-aware datetime; naive values are taken as UTC."""

    if isinstance(value, datetime):
        parsed = value
    else:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def truncate(value: datetime, resolution: Resolution) -> datetime:
    if resolution is Resolution.MILLISECONDS:
        return value.replace(microsecond=(value.microsecond // 1000) * 1000)
    return value.replace(microsecond=0)


def format_timestamp(value: datetime, resolution: Resolution) -> str:
    return value.isoformat(timespec=resolution.timespec)


def align_interval(interval: timedelta, resolution: Resolution) -> timedelta:
    """Round an interval down to whole resolution units (at least one)."""

    units = max(1, interval // resolution.unit)
    return resolution.unit * units
