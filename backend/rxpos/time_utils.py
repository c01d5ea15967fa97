from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def business_now(tz_name: Optional[str] = None) -> datetime:
    """
    'Now' in the business time zone.

    - tz_name set -> aware datetime in that IANA zone
    - tz_name None -> aware datetime in the server's local zone
    """
    if tz_name:
        return datetime.now(ZoneInfo(tz_name))
    return datetime.now().astimezone()


def business_today(tz_name: Optional[str] = None) -> date:
    return business_now(tz_name).date()


def build_date_key(moment: Optional[datetime | date] = None, tz_name: Optional[str] = None) -> str:
    """
    Deterministic YYYYMMDD key for the calendar day of `moment`.

    Aware datetimes are converted into the business zone first; naive
    datetimes and plain dates are taken as already local.
    """
    if moment is None:
        moment = business_now(tz_name)
    elif isinstance(moment, datetime) and moment.tzinfo is not None:
        moment = moment.astimezone(ZoneInfo(tz_name)) if tz_name else moment.astimezone()
    return f"{moment.year:04d}{moment.month:02d}{moment.day:02d}"


def parse_date_only(value: Optional[str]) -> Optional[date]:
    """
    Parse a strict 'YYYY-MM-DD' string.

    - None / "" -> None
    - anything else that is not a real calendar date -> ValueError
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    if len(s) != 10 or s[4] != "-" or s[7] != "-":
        raise ValueError(f"invalid date: {value!r}")
    return date.fromisoformat(s)


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

    if dt.tzinfo is None:
        return dt
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


def to_date_str(d: Optional[date]) -> Optional[str]:
    if d is None:
        return None
    if isinstance(d, datetime):
        d = d.date()
    return d.isoformat()
