from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def local_now(tz_name: str | None) -> datetime:
    """Wall-clock 'now' in a tenant's timezone (naive)."""
    if not tz_name or tz_name == "UTC":
        return utcnow()
    return datetime.now(ZoneInfo(tz_name)).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt.replace(tzinfo=None)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """'YYYY-MM-DD' -> date. None / "" -> None."""
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    return date.fromisoformat(s)


def parse_clock_time(value: Optional[str]) -> Optional[time]:
    """
    Parse a wall-clock time ('HH:MM' or 'HH:MM:SS').

    Booking times are local to the tenant, so no timezone is accepted.
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    t = time.fromisoformat(s)
    if t.tzinfo is not None:
        raise ValueError("clock times must not carry a timezone")
    return t


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def fmt_clock(t: Optional[time]) -> Optional[str]:
    """time -> 'HH:MM'."""
    if t is None:
        return None
    return t.strftime("%H:%M")


def add_minutes(day: date, t: time, minutes: int) -> datetime:
    """
    Anchor a wall-clock time on a date and add minutes.

    Returns a datetime so callers can detect a roll-over past midnight.
    """
    return datetime.combine(day, t) + timedelta(minutes=minutes)
