"""
Calendar-day helpers.

All recurrence and overdue arithmetic goes through here so that dates are
compared as whole days with no time-of-day or timezone component.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Iterator
from zoneinfo import ZoneInfo

from todo_calendar.config import settings


def parse_day(value: date | datetime | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        raise ValueError("Empty date")
    # "2024-03-04T00:00:00.000Z" and friends carry the calendar day in the first 10 chars.
    if len(text) > 10 and text[10] != "T":
        raise ValueError(f"Not an ISO date: {text!r}")
    return date.fromisoformat(text[:10])


def iso_day(value: date) -> str:
    return value.isoformat()


def today(tz_name: str | None = None) -> date:
    return datetime.now(ZoneInfo(tz_name or settings.timezone)).date()


def days_between(start: date, end: date) -> int:
    return (end - start).days


def iter_days(start: date, days_ahead: int) -> Iterator[date]:
    """Yield start .. start + days_ahead, both ends included."""
    for offset in range(days_ahead + 1):
        yield start + timedelta(days=offset)


def js_weekday(value: date) -> int:
    # 0 = Sunday .. 6 = Saturday
    return (value.weekday() + 1) % 7


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def epoch_millis(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)
