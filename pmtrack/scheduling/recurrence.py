"""Recurrence calculation for preventive maintenance schedules.

Turns (start date, period, count) into calendar due dates. Month-based periods
use calendar arithmetic: the start date's day-of-month is kept and clamped to
the last day of shorter target months (Jan 31 -> Feb 28/29 -> Mar 31).
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta

from pmtrack.errors import ConfigurationError, ValidationError
from pmtrack.models import PMSchedule, RecurringPeriod

# Fixed-length steps in days
_DAY_STEPS = {
    RecurringPeriod.DAILY: 1,
    RecurringPeriod.WEEKLY: 7,
    RecurringPeriod.BIWEEKLY: 14,
}

# Calendar steps in months
_MONTH_STEPS = {
    RecurringPeriod.MONTHLY: 1,
    RecurringPeriod.QUARTERLY: 3,
    RecurringPeriod.SEMIANNUAL: 6,
    RecurringPeriod.ANNUAL: 12,
}


def parse_period(value: RecurringPeriod | str | None) -> RecurringPeriod:
    """Coerce a raw period value, rejecting anything unsupported.

    Raises:
        ConfigurationError: If the period is missing or not recognised
    """
    if isinstance(value, RecurringPeriod):
        return value
    try:
        return RecurringPeriod(value)
    except ValueError:
        raise ConfigurationError(
            "unsupported recurring period", recurring_period=value
        ) from None


def to_calendar_day(value: date | datetime) -> date:
    """Truncate to a calendar date without any timezone conversion."""
    if isinstance(value, datetime):
        return value.date()
    return value


def add_months(start: date, months: int) -> date:
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(start.day, last_day))


def occurrence_date(
    start_date: date | datetime,
    recurring_period: RecurringPeriod | str,
    index: int,
) -> date:
    """Due date of occurrence ``index``, computed directly from the start date."""
    period = parse_period(recurring_period)
    start = to_calendar_day(start_date)

    if index < 0:
        raise ValidationError("occurrence index must be non-negative", index=index)

    try:
        if period in _DAY_STEPS:
            return start + timedelta(days=_DAY_STEPS[period] * index)
        return add_months(start, _MONTH_STEPS[period] * index)
    except (ValueError, OverflowError):
        raise ValidationError(
            "occurrence falls outside the supported calendar range",
            field="occurrences",
            index=index,
            recurring_period=period.value,
        ) from None


def generate_occurrence_dates(
    start_date: date | datetime,
    recurring_period: RecurringPeriod | str,
    occurrence_count: int,
) -> list[date]:
    """Generate the ordered due dates of a recurring schedule.

    Args:
        start_date: First due date (datetimes are truncated to their date)
        recurring_period: One of the RecurringPeriod values
        occurrence_count: Number of occurrences, must be >= 1

    Returns:
        List of ``occurrence_count`` strictly increasing dates

    Raises:
        ValidationError: If occurrence_count is not positive
        ConfigurationError: If recurring_period is not recognised
    """
    if occurrence_count <= 0:
        raise ValidationError(
            "occurrence count must be positive", occurrence_count=occurrence_count
        )
    period = parse_period(recurring_period)

    return [occurrence_date(start_date, period, i) for i in range(occurrence_count)]


def schedule_dates(schedule: PMSchedule) -> list[date]:
    """Due dates for a schedule; one-off schedules yield only the start date."""
    if not schedule.is_recurring:
        return [to_calendar_day(schedule.start_date)]
    return generate_occurrence_dates(
        schedule.start_date, schedule.recurring_period, schedule.occurrences
    )
