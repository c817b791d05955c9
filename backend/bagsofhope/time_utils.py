# Overview: UTC helpers shared by models and services; timestamps are stored naive in UTC.

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a pickup/milestone timestamp into a UTC-naive datetime.

    Blank input gives None. A naive string is read as UTC; a "Z" or
    "+HH:MM" suffix is converted. Raises ValueError on anything else.
    """
    s = _clean(value)
    if s is None:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    return normalize_datetime(datetime.fromisoformat(s))


def normalize_datetime(dt: datetime) -> datetime:
    """Aware datetimes are converted to UTC; naive ones are taken as UTC already."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    # Birthdays arrive as plain dates or as full timestamps from the intake form
    s = _clean(value)
    if s is None:
        return None
    return date.fromisoformat(s[:10])


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Serialize for to_dict(): whole seconds with a trailing 'Z'."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")
