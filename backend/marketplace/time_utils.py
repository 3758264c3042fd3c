from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


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


def _as_date(value: date | datetime | None) -> date:
    if value is None:
        return utcnow().date()
    if isinstance(value, datetime):
        return value.date()
    return value


def week_label(value: date | datetime | None = None) -> str:
    """ISO week label for the Monday-start week containing value, e.g. "2026-W43"."""
    iso_year, iso_week, _ = _as_date(value).isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def start_of_week(value: date | datetime | None = None) -> datetime:
    """Monday 00:00 of the week containing value."""
    d = _as_date(value)
    monday = d - timedelta(days=d.weekday())
    return datetime.combine(monday, time.min)


def end_of_week(value: date | datetime | None = None) -> datetime:
    """Sunday 23:59:59.999999 of the week containing value."""
    return start_of_week(value) + timedelta(days=7) - timedelta(microseconds=1)
