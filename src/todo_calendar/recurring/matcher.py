from __future__ import annotations

from datetime import date, datetime
from typing import Any

from loguru import logger

from todo_calendar.recurring.dates import days_between, js_weekday
from todo_calendar.recurring.errors import MalformedRecurrence
from todo_calendar.recurring.models import (
    QUARTER_MONTHS,
    IntervalDays,
    MonthlyDate,
    Quarterly,
    Recurrence,
    Weekly,
    Yearly,
    parse_recurrence,
)


def _matches_parsed(day: date, recurrence: Recurrence) -> bool:
    if isinstance(recurrence, MonthlyDate):
        return day.day == recurrence.date
    if isinstance(recurrence, Weekly):
        return js_weekday(day) == recurrence.day_of_week
    if isinstance(recurrence, IntervalDays):
        offset = days_between(recurrence.start_date, day)
        return offset >= 0 and offset % recurrence.interval == 0
    if isinstance(recurrence, Quarterly):
        return day.month in QUARTER_MONTHS and day.day == recurrence.date
    if isinstance(recurrence, Yearly):
        return day.month == recurrence.month and day.day == recurrence.day
    return False


def matches(day: date | datetime, recurrence: Recurrence | dict[str, Any] | Any) -> bool:
    """
    Occurrence check for one calendar day.

    Never raises: an unknown or malformed descriptor simply does not match.
    """
    try:
        parsed = parse_recurrence(recurrence)
    except MalformedRecurrence as exc:
        logger.debug("recurrence_malformed err={}", exc)
        return False
    if isinstance(day, datetime):
        day = day.date()
    return _matches_parsed(day, parsed)
