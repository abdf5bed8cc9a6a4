from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo


PERIODS = ("today", "week", "month", "previous_month", "all", "custom")


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Parse "YYYY-MM-DD" (None / "" -> None)."""
    if value is None or not value.strip():
        return None
    return date.fromisoformat(value.strip())


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


def to_local(dt: datetime, tz_name: str) -> datetime:
    """Convert a UTC-naive datetime to an aware datetime in tz_name."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(ZoneInfo(tz_name))


def format_local_date(dt: datetime, tz_name: str) -> str:
    """d/m/yyyy, the way the operator's calendar shows it."""
    local = to_local(dt, tz_name)
    return f"{local.day}/{local.month}/{local.year}"


def format_local_time(dt: datetime, tz_name: str) -> str:
    return to_local(dt, tz_name).strftime("%H:%M:%S")


def _local_to_utc_naive(local: datetime) -> datetime:
    return local.astimezone(timezone.utc).replace(tzinfo=None)


def period_range(
    period: str,
    tz_name: str,
    *,
    now: Optional[datetime] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> tuple[datetime, datetime]:
    """
    Resolve a named reporting period to a [start, end] UTC-naive range.

    Boundaries are computed on the operator's local calendar:
    - today: local midnight .. end of today
    - week: Monday of the current week .. end of today
    - month: first day of the month .. end of today
    - previous_month: whole previous calendar month
    - all: epoch .. end of today
    - custom: date_from (default today) .. end of date_to (default today)

    Raises ValueError for an unknown period.
    """
    if period not in PERIODS:
        raise ValueError(f"Unknown period: {period}. Must be one of {list(PERIODS)}")

    tz = ZoneInfo(tz_name)
    now_local = to_local(now or utcnow(), tz_name)
    today = now_local.date()

    def start_of(d: date) -> datetime:
        return datetime.combine(d, time.min, tzinfo=tz)

    def end_of(d: date) -> datetime:
        return datetime.combine(d, time.max, tzinfo=tz)

    if period == "today":
        start, end = start_of(today), end_of(today)
    elif period == "week":
        monday = today - timedelta(days=today.weekday())
        start, end = start_of(monday), end_of(today)
    elif period == "month":
        start, end = start_of(today.replace(day=1)), end_of(today)
    elif period == "previous_month":
        last_prev = today.replace(day=1) - timedelta(days=1)
        start, end = start_of(last_prev.replace(day=1)), end_of(last_prev)
    elif period == "custom":
        start = start_of(date_from or today)
        end = end_of(date_to or today)
    else:
        start = datetime(1970, 1, 1, tzinfo=timezone.utc)
        end = end_of(today)

    return _local_to_utc_naive(start), _local_to_utc_naive(end)
