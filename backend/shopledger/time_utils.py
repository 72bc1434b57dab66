from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


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


def resolve_timezone(name: Optional[str], fallback: str = "UTC") -> ZoneInfo:
    """Unknown or empty zone names fall back to `fallback` (then UTC)."""
    for candidate in (name, fallback, "UTC"):
        if not candidate:
            continue
        try:
            return ZoneInfo(candidate)
        except (ZoneInfoNotFoundError, ValueError):
            continue
    return ZoneInfo("UTC")


def business_day(moment: Optional[datetime], tz: ZoneInfo) -> date:
    """
    Calendar day that `moment` falls on in the business timezone.

    `moment` is UTC-naive (canonical); None means now. The returned date is the
    day key for DailyEntry rows: every sale between local midnight and the next
    local midnight lands on the same entry.
    """
    if moment is None:
        moment = utcnow()
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz).date()


def day_start_utc(day: date, tz: ZoneInfo) -> datetime:
    """Local midnight of `day`, expressed as a UTC-naive datetime."""
    local_midnight = datetime(day.year, day.month, day.day, tzinfo=tz)
    return local_midnight.astimezone(timezone.utc).replace(tzinfo=None)
