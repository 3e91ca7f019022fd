"""
Date parsing and formatting utilities.
"""

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import re

# Epoch values above this are milliseconds rather than seconds.
MILLISECONDS_THRESHOLD = 10_000_000_000

# Instants closer than this are considered the same.
DATE_TOLERANCE = timedelta(seconds=60)

# fromisoformat before 3.11 only takes 3 or 6 fraction digits and no "Z".
FRACTION_RE = re.compile(r"(\d{2}:\d{2}:\d{2})\.(\d+)")


def resolve_timezone(name: Optional[str]) -> tzinfo:
    """
    Resolve an IANA timezone name.

    Args:
        name: Timezone name such as "Europe/London"; falsy means the
            system local timezone.

    Returns:
        tzinfo instance. Unknown names fall back to UTC.
    """
    if not name:
        return datetime.now().astimezone().tzinfo or timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


def from_epoch(value: float) -> datetime:
    """Convert epoch seconds or milliseconds to an aware UTC datetime."""
    seconds = value / 1000.0 if value > MILLISECONDS_THRESHOLD else value
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def normalize_iso(text: str) -> str:
    """Rewrite an ISO-8601 string into the subset fromisoformat reads everywhere."""
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return FRACTION_RE.sub(
        lambda match: f"{match.group(1)}.{match.group(2)[:6].ljust(6, '0')}", text
    )


def to_epoch_millis(value: datetime) -> int:
    """Convert a datetime to integer epoch milliseconds."""
    return int(round(value.timestamp() * 1000))


def parse_date(date_str: Optional[str], tz: tzinfo = timezone.utc) -> Optional[datetime]:
    """
    Parse a ``YYYY-MM-DD`` string into midnight of that day in ``tz``.

    Args:
        date_str: Date string to parse
        tz: Timezone the calendar day belongs to

    Returns:
        Aware datetime or None if invalid
    """
    if not date_str:
        return None
    try:
        day = datetime.strptime(date_str.strip(), "%Y-%m-%d").date()
    except ValueError:
        return None
    return datetime.combine(day, time(0, 0), tzinfo=tz)


def format_date(value: Optional[datetime], tz: tzinfo = timezone.utc) -> Optional[str]:
    """
    Format a datetime as ``YYYY-MM-DD`` in ``tz``.

    Locale independent; time of day is dropped.
    """
    if value is None:
        return None
    return localize(value, tz).strftime("%Y-%m-%d")


def localize(value: datetime, tz: tzinfo) -> datetime:
    """Express ``value`` in ``tz``; naive values are taken to already be in ``tz``."""
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def coerce_datetime(value: Any, tz: tzinfo = timezone.utc) -> Optional[datetime]:
    """
    Convert a loosely typed document value into an aware datetime.

    Accepts datetimes, dates, timestamp wrappers (``ToDatetime()`` or
    ``timestamp()``), epoch seconds or milliseconds as numbers or numeric
    strings, ISO-8601 strings and bare ``YYYY-MM-DD`` strings. Anything
    else yields None.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        return localize(value, tz)

    if isinstance(value, date):
        return datetime.combine(value, time(0, 0), tzinfo=tz)

    if isinstance(value, (int, float)):
        return _safe_epoch(float(value))

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return _safe_epoch(float(text))
        except ValueError:
            pass
        try:
            return localize(datetime.fromisoformat(normalize_iso(text)), tz)
        except ValueError:
            pass
        return parse_date(text, tz)

    # protobuf Timestamp
    to_datetime = getattr(value, "ToDatetime", None)
    if callable(to_datetime):
        try:
            return to_datetime().replace(tzinfo=timezone.utc)
        except (TypeError, ValueError, OverflowError):
            return None

    timestamp = getattr(value, "timestamp", None)
    if callable(timestamp):
        try:
            return _safe_epoch(float(timestamp()))
        except (TypeError, ValueError):
            return None

    return None


def _safe_epoch(value: float) -> Optional[datetime]:
    try:
        return from_epoch(value)
    except (OverflowError, OSError, ValueError):
        return None


def has_time_of_day(value: datetime, tz: tzinfo = timezone.utc) -> bool:
    """True when ``value`` is not at midnight (hour or minute set) in ``tz``."""
    local = localize(value, tz)
    return local.hour != 0 or local.minute != 0


def dates_equal(
    date1: Optional[datetime],
    date2: Optional[datetime],
    tolerance: timedelta = DATE_TOLERANCE,
) -> bool:
    """
    Check if two instants are equal within a tolerance.

    Args:
        date1: First instant
        date2: Second instant
        tolerance: Maximum difference still treated as equal

    Returns:
        True if both are None, or both are set and within tolerance
    """
    if date1 is None and date2 is None:
        return True

    if date1 is None or date2 is None:
        return False

    return abs(date1 - date2) <= tolerance
