"""
Timestamp parsing and human-readable durations

The ticket store hands timestamps back either as already-parsed values or as
serialized strings; everything is normalised to timezone-aware UTC datetimes.
Durations are rendered in Indonesian units (hari / jam / menit / detik) to
match what officers and unit staff see in the dashboards.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, NamedTuple

from dateutil import parser as date_parser

from maintdesk.errors import DecodeError

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND
MS_PER_HOUR = 60 * MS_PER_MINUTE
MS_PER_DAY = 24 * MS_PER_HOUR

INSTANT_LABEL = "seketika"
ZERO_SECONDS_LABEL = "0 detik"


class DurationParts(NamedTuple):
    """Whole-unit decomposition of a non-negative time delta"""
    days: int
    hours: int
    minutes: int
    seconds: int
    total_ms: int


def utc_now() -> datetime:
    """Current time as an aware UTC datetime"""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones to UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(raw: Any) -> datetime:
    """
    Parse a timestamp coming from the ticket store

    Accepts datetimes, dates (midnight UTC), epoch milliseconds and
    ISO-8601 (or otherwise dateutil-parsable) strings.

    Raises:
        DecodeError: If the value cannot be interpreted as an instant
    """
    if isinstance(raw, datetime):
        return ensure_utc(raw)
    if isinstance(raw, date):
        return datetime.combine(raw, time.min, tzinfo=timezone.utc)
    if isinstance(raw, bool):
        raise DecodeError(f"Unsupported timestamp value: {raw!r}")
    if isinstance(raw, (int, float)):
        try:
            return datetime.fromtimestamp(raw / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise DecodeError(f"Timestamp out of range: {raw!r}") from e
    if isinstance(raw, str) and raw.strip():
        text = raw.strip()
        try:
            return ensure_utc(date_parser.isoparse(text))
        except (ValueError, OverflowError):
            pass
        try:
            return ensure_utc(date_parser.parse(text))
        except (ValueError, OverflowError) as e:
            raise DecodeError(f"Unparseable timestamp: {raw!r}") from e
    raise DecodeError(f"Unsupported timestamp value: {raw!r}")


def duration_parts(start: datetime, end: datetime) -> DurationParts:
    """
    Decompose end - start into whole days, hours, minutes and seconds

    A negative delta is clamped to zero.
    """
    total_ms = (ensure_utc(end) - ensure_utc(start)) // timedelta(milliseconds=1)
    total_ms = max(total_ms, 0)
    return DurationParts(
        days=total_ms // MS_PER_DAY,
        hours=(total_ms % MS_PER_DAY) // MS_PER_HOUR,
        minutes=(total_ms % MS_PER_HOUR) // MS_PER_MINUTE,
        seconds=total_ms // MS_PER_SECOND,
        total_ms=total_ms,
    )


def format_duration(start: datetime, end: datetime, zero_label: str = INSTANT_LABEL) -> str:
    """
    Render the time between two instants, e.g. "1 hari 2 jam 5 menit"

    Only non-zero units are included. When days, hours and minutes are all
    zero the whole (floored) seconds are shown instead. If end is not after
    start, zero_label is returned.

    Args:
        start: Earlier instant
        end: Later instant
        zero_label: Text for an empty or negative interval

    Returns:
        Human-readable duration
    """
    parts = duration_parts(start, end)
    if parts.total_ms == 0:
        return zero_label

    units = []
    if parts.days:
        units.append(f"{parts.days} hari")
    if parts.hours:
        units.append(f"{parts.hours} jam")
    if parts.minutes:
        units.append(f"{parts.minutes} menit")

    if not units:
        return f"{parts.seconds} detik"
    return " ".join(units)
