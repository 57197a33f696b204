"""Unit tests for recurrence date generation."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from pmtrack.errors import ConfigurationError, ValidationError
from pmtrack.models import PMSchedule, RecurringPeriod
from pmtrack.scheduling.recurrence import (
    add_months,
    generate_occurrence_dates,
    occurrence_date,
    parse_period,
    schedule_dates,
)


class TestFixedSteps:
    def test_daily(self):
        dates = generate_occurrence_dates(date(2024, 2, 27), "daily", 4)
        assert dates == [
            date(2024, 2, 27),
            date(2024, 2, 28),
            date(2024, 2, 29),
            date(2024, 3, 1),
        ]

    def test_weekly(self):
        dates = generate_occurrence_dates(date(2024, 1, 1), RecurringPeriod.WEEKLY, 3)
        assert dates == [date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15)]

    def test_biweekly_crosses_year_end(self):
        dates = generate_occurrence_dates(date(2023, 12, 20), "biweekly", 2)
        assert dates == [date(2023, 12, 20), date(2024, 1, 3)]


class TestCalendarSteps:
    def test_monthly_clamps_to_month_end(self):
        dates = generate_occurrence_dates(date(2024, 1, 31), "monthly", 3)
        assert dates == [date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31)]

    def test_monthly_clamps_in_non_leap_year(self):
        dates = generate_occurrence_dates(date(2023, 1, 31), "monthly", 3)
        assert dates == [date(2023, 1, 31), date(2023, 2, 28), date(2023, 3, 31)]

    def test_monthly_is_not_compounded(self):
        # Iterating from Feb 29 would drift to the 29th; direct computation keeps the 31st
        dates = generate_occurrence_dates(date(2024, 1, 31), "monthly", 5)
        assert dates[4] == date(2024, 5, 31)
        assert dates[3] == date(2024, 4, 30)

    def test_quarterly(self):
        dates = generate_occurrence_dates(date(2024, 11, 30), "quarterly", 3)
        assert dates == [date(2024, 11, 30), date(2025, 2, 28), date(2025, 5, 30)]

    def test_semiannual(self):
        dates = generate_occurrence_dates(date(2024, 8, 31), "semiannual", 3)
        assert dates == [date(2024, 8, 31), date(2025, 2, 28), date(2025, 8, 31)]

    def test_annual_from_leap_day(self):
        dates = generate_occurrence_dates(date(2024, 2, 29), "annual", 5)
        assert dates == [
            date(2024, 2, 29),
            date(2025, 2, 28),
            date(2026, 2, 28),
            date(2027, 2, 28),
            date(2028, 2, 29),
        ]

    def test_add_months_across_years(self):
        assert add_months(date(2024, 12, 15), 1) == date(2025, 1, 15)
        assert add_months(date(2024, 1, 15), 25) == date(2026, 2, 15)


@pytest.mark.parametrize("period", list(RecurringPeriod))
def test_dates_strictly_increase_and_match_direct_index(period):
    start = date(2024, 1, 31)
    dates = generate_occurrence_dates(start, period, 30)

    assert len(dates) == 30
    assert all(a < b for a, b in zip(dates, dates[1:]))
    for index, value in enumerate(dates):
        assert value == occurrence_date(start, period, index)


def test_datetime_start_is_truncated_to_its_date():
    dates = generate_occurrence_dates(datetime(2024, 3, 10, 23, 59), "daily", 2)
    assert dates == [date(2024, 3, 10), date(2024, 3, 11)]


class TestErrors:
    @pytest.mark.parametrize("count", [0, -1])
    def test_non_positive_count(self, count):
        with pytest.raises(ValidationError) as exc_info:
            generate_occurrence_dates(date(2024, 1, 1), "monthly", count)
        assert exc_info.value.context["occurrence_count"] == count

    def test_unknown_period(self):
        with pytest.raises(ConfigurationError) as exc_info:
            generate_occurrence_dates(date(2024, 1, 1), "fortnightly-ish", 2)
        assert exc_info.value.context["recurring_period"] == "fortnightly-ish"

    def test_missing_period(self):
        with pytest.raises(ConfigurationError):
            parse_period(None)

    def test_negative_index(self):
        with pytest.raises(ValidationError):
            occurrence_date(date(2024, 1, 1), "daily", -1)

    @pytest.mark.parametrize(
        "period,index",
        [("annual", 7976), ("quarterly", 40_000), ("weekly", 10**6), ("daily", 10**12)],
    )
    def test_index_past_calendar_range(self, period, index):
        with pytest.raises(ValidationError) as exc_info:
            occurrence_date(date(2024, 1, 1), period, index)

        assert exc_info.value.context["field"] == "occurrences"
        assert exc_info.value.context["index"] == index

    def test_last_representable_year(self):
        assert occurrence_date(date(2024, 1, 1), "annual", 7975) == date(9999, 1, 1)


def test_legacy_period_spellings_are_accepted():
    assert parse_period("annually") == RecurringPeriod.ANNUAL
    assert parse_period("semiannually") == RecurringPeriod.SEMIANNUAL
    assert parse_period("Bi-Weekly") == RecurringPeriod.BIWEEKLY


class TestScheduleDates:
    def test_one_off_schedule_has_single_date(self):
        schedule = PMSchedule(
            title="Annual inspection", start_date=date(2024, 6, 1), occurrences=1
        )
        assert schedule_dates(schedule) == [date(2024, 6, 1)]

    def test_recurring_schedule(self, monthly_schedule):
        assert schedule_dates(monthly_schedule) == [
            date(2024, 1, 1),
            date(2024, 2, 1),
            date(2024, 3, 1),
        ]
