"""Time expression parsing for Loki query windows."""

import re
from datetime import datetime, timedelta, timezone

from loki_mcp.models.errors import InvalidTimeExpression
from loki_mcp.models.requests import TimeRange

DEFAULT_LOOKBACK = timedelta(hours=1)

_RELATIVE_PATTERN = re.compile(r"^-(\d+)([smhd])$")

_RFC3339_PATTERN = re.compile(
    r"^(\d{4}-\d{2}-\d{2})[Tt ](\d{2}:\d{2}:\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})?$"
)

_UNITS = {
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
}


def _parse_relative_time(time_str: str, reference: datetime) -> datetime | None:
    """
    Parse 'now' or a negative offset like '-30m' against a reference time.

    Returns None when the string is not in either form.
    """
    if time_str == "now":
        return reference

    match = _RELATIVE_PATTERN.match(time_str)
    if not match:
        return None

    value = int(match.group(1))
    unit = _UNITS[match.group(2)]
    try:
        return reference - timedelta(**{unit: value})
    except (OverflowError, ValueError) as e:
        raise InvalidTimeExpression(
            f"time offset out of range: {time_str!r}",
            details={"value": time_str, "error": str(e)},
        ) from e


def _parse_rfc3339(time_str: str) -> datetime | None:
    """
    Parse an RFC3339 timestamp; the offset may be omitted.

    Fractions beyond microseconds are truncated. Returns None when the
    string does not have the RFC3339 shape.

    Raises:
        ValueError: If a date or time field is out of range
    """
    match = _RFC3339_PATTERN.match(time_str)
    if not match:
        return None

    date_part, time_part, fraction, offset = match.groups()
    iso = f"{date_part}T{time_part}"
    if fraction:
        iso += "." + fraction[:6].ljust(6, "0")
    if offset in ("Z", "z"):
        iso += "+00:00"
    elif offset:
        iso += offset
    return datetime.fromisoformat(iso)


def resolve_time(time_str: str, reference: datetime) -> datetime:
    """
    Resolve a time expression to an absolute datetime.

    Accepted forms, tried in order:
        now        -> reference
        -<n><unit> -> reference minus n seconds/minutes/hours/days
        RFC3339    -> that instant; UTC when no offset is given

    Args:
        time_str: Time expression
        reference: Time that 'now' and offsets are relative to

    Returns:
        Resolved datetime

    Raises:
        InvalidTimeExpression: If the string matches none of the forms or
            is out of range
    """
    resolved = _parse_relative_time(time_str, reference)
    if resolved is not None:
        return resolved

    try:
        dt = _parse_rfc3339(time_str)
    except ValueError as e:
        raise InvalidTimeExpression(
            f"invalid RFC3339 time: {time_str!r}",
            details={"value": time_str, "error": str(e)},
        ) from e

    if dt is None:
        raise InvalidTimeExpression(
            f"unsupported time format: {time_str!r} "
            "(use 'now', a negative offset like '-15m', or RFC3339)",
            details={"value": time_str},
        )

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def resolve_time_range(
    start: str | None,
    end: str | None,
    now: datetime | None = None,
) -> TimeRange:
    """
    Build the query window from optional start/end expressions.

    Missing values default to [now - 1h, now]. Both ends are resolved
    against the same reference instant. An invalid expression is an error,
    never silently replaced by the default.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    start_dt = now - DEFAULT_LOOKBACK
    end_dt = now

    if start:
        try:
            start_dt = resolve_time(start, now)
        except InvalidTimeExpression as e:
            raise InvalidTimeExpression(f"invalid start time: {e.message}", e.details) from e
    if end:
        try:
            end_dt = resolve_time(end, now)
        except InvalidTimeExpression as e:
            raise InvalidTimeExpression(f"invalid end time: {e.message}", e.details) from e

    return TimeRange(start=int(start_dt.timestamp()), end=int(end_dt.timestamp()))
