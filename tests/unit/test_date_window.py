"""Unit tests for date window helpers."""

from datetime import date

import pytest
from pydantic import ValidationError

from daydone.core.date_window import (
    DateWindow,
    Period,
    day_window,
    days_in_year,
    format_date,
    month_window,
    parse_date,
    week_window,
    window_for,
    year_window,
)


@pytest.mark.unit
class TestWeekWindow:
    """Weeks run Monday through Sunday."""

    def test_midweek_reference(self):
        window = week_window(date(2024, 3, 14))  # Thursday

        assert window.start == date(2024, 3, 11)
        assert window.end == date(2024, 3, 17)

    def test_monday_starts_its_own_week(self):
        window = week_window(date(2024, 3, 11))

        assert window.start == date(2024, 3, 11)

    def test_sunday_belongs_to_previous_monday(self):
        window = week_window(date(2024, 3, 17))

        assert window.start == date(2024, 3, 11)
        assert window.end == date(2024, 3, 17)

    def test_week_spanning_new_year(self):
        window = week_window(date(2025, 1, 1))  # Wednesday

        assert window.start == date(2024, 12, 30)
        assert window.end == date(2025, 1, 5)


@pytest.mark.unit
class TestMonthAndYearWindows:
    """Month and year bounds."""

    def test_leap_february(self):
        window = month_window(date(2024, 2, 10))

        assert window.start == date(2024, 2, 1)
        assert window.end == date(2024, 2, 29)

    def test_regular_february(self):
        assert month_window(date(2023, 2, 10)).end == date(2023, 2, 28)

    def test_december(self):
        window = month_window(date(2024, 12, 31))

        assert (window.start, window.end) == (date(2024, 12, 1), date(2024, 12, 31))

    def test_year(self):
        window = year_window(date(2024, 7, 4))

        assert (window.start_iso, window.end_iso) == ("2024-01-01", "2024-12-31")

    def test_day(self):
        window = day_window(date(2024, 7, 4))

        assert window.start == window.end == date(2024, 7, 4)


@pytest.mark.unit
class TestWindowFor:
    """Period dispatch."""

    @pytest.mark.parametrize(
        ("period", "expected_start"),
        [
            (Period.DAY, date(2024, 3, 14)),
            (Period.WEEK, date(2024, 3, 11)),
            (Period.MONTH, date(2024, 3, 1)),
            (Period.YEAR, date(2024, 1, 1)),
        ],
    )
    def test_period_start(self, period, expected_start):
        assert window_for(period, date(2024, 3, 14)).start == expected_start

    def test_accepts_period_name(self):
        assert window_for("month", date(2024, 3, 14)).end == date(2024, 3, 31)

    def test_rejects_unknown_period(self):
        with pytest.raises(ValueError):
            window_for("fortnight", date(2024, 3, 14))


@pytest.mark.unit
class TestDateWindowModel:
    """DateWindow validation and helpers."""

    def test_end_before_start_rejected(self):
        with pytest.raises(ValidationError):
            DateWindow(start=date(2024, 3, 2), end=date(2024, 3, 1))

    def test_contains_includes_bounds(self):
        window = DateWindow(start=date(2024, 3, 1), end=date(2024, 3, 31))

        assert window.contains(date(2024, 3, 1))
        assert window.contains(date(2024, 3, 31))
        assert not window.contains(date(2024, 4, 1))

    def test_frozen(self):
        window = day_window(date(2024, 3, 1))

        with pytest.raises(ValidationError):
            window.start = date(2024, 1, 1)


@pytest.mark.unit
class TestDateFormatting:
    """Calendar date strings carry no time component."""

    def test_format_date(self):
        assert format_date(date(2024, 1, 5)) == "2024-01-05"

    def test_parse_date_strips_time(self):
        assert parse_date("2024-01-05 00:00:00.000Z") == date(2024, 1, 5)

    def test_parse_date_passes_dates_through(self):
        assert parse_date(date(2024, 1, 5)) == date(2024, 1, 5)

    def test_days_in_leap_year(self):
        days = days_in_year(2024)

        assert len(days) == 366
        assert days[0] == date(2024, 1, 1)
        assert days[-1] == date(2024, 12, 31)

    def test_days_in_regular_year(self):
        assert len(days_in_year(2023)) == 365
