"""UTC-everywhere time handling. Eliminates timezone bugs at the source."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

_DATE_INPUT_FORMAT = "%Y-%m-%dT%H:%M"


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere.
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    Raises ValueError if datetime is naive (no timezone).
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime to UTC. Datetime must be timezone-aware."
        )
    return dt.astimezone(timezone.utc)


def _zone(tz_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name)
    except (KeyError, ValueError):
        raise ValueError(f"Unknown timezone: {tz_name}")


def _business_timezone() -> str:
    from utils.config import settings
    return settings.business.timezone


def to_local(dt: datetime, tz_name: str) -> datetime:
    """
    Convert UTC datetime to local timezone for display.

    ONLY use this at display boundaries - when rendering for humans.
    All internal operations should remain in UTC.

    Args:
        dt: UTC datetime
        tz_name: IANA timezone name (e.g., "Asia/Colombo")

    Raises:
        ValueError: If datetime is naive or timezone name is invalid
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime. Datetime must be timezone-aware."
        )
    return dt.astimezone(_zone(tz_name))


def parse_iso(iso_string: str) -> datetime:
    """
    Parse ISO 8601 datetime string to UTC datetime.

    Raises ValueError if string has no timezone info.
    """
    dt = datetime.fromisoformat(iso_string)
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot parse naive datetime string. "
            "Include timezone offset (e.g., 'Z' or '+00:00')."
        )
    return to_utc(dt)


def ensure_utc(dt: datetime, tz_name: str | None = None) -> datetime:
    """
    Convert to UTC, reading naive datetimes in the business timezone.

    For values that came from human input. Internal code should never
    produce naive datetimes; use to_utc there.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=_zone(tz_name or _business_timezone()))
    return to_utc(dt)


def parse_date_input(value: str | None, tz_name: str | None = None) -> datetime | None:
    """
    Parse a human-entered date/time (e.g. "2026-01-05T10:30") to UTC.

    Lenient on purpose: blank or unparseable input yields None instead of
    raising. Naive values are read in the business timezone unless tz_name
    is given.
    """
    trimmed = (value or "").strip()
    if not trimmed:
        return None

    try:
        dt = datetime.fromisoformat(trimmed)
    except ValueError:
        return None

    return ensure_utc(dt, tz_name)


def to_date_input(dt: datetime | None, tz_name: str | None = None) -> str:
    """Format a stored timestamp back into the "yyyy-MM-ddTHH:mm" input form."""
    if dt is None:
        return ""
    return to_local(dt, tz_name or _business_timezone()).strftime(_DATE_INPUT_FORMAT)


def format_date_time_short(dt: datetime, tz_name: str | None = None) -> str:
    """e.g. "Jan 5, 10:30"."""
    local = to_local(dt, tz_name or _business_timezone())
    return f"{local:%b} {local.day}, {local:%H:%M}"


def format_date_short(dt: datetime, tz_name: str | None = None) -> str:
    """e.g. "Jan 5"."""
    local = to_local(dt, tz_name or _business_timezone())
    return f"{local:%b} {local.day}"


def format_time_short(dt: datetime, tz_name: str | None = None) -> str:
    """e.g. "10:30"."""
    return to_local(dt, tz_name or _business_timezone()).strftime("%H:%M")
