"""Calendar window helpers: day, ISO week (Monday start), month and year bounds."""

import calendar
from datetime import date, timedelta
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, model_validator


class Period(StrEnum):
    """Aggregation periods."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class DateWindow(BaseModel):
    """Inclusive range of calendar dates."""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @model_validator(mode="after")
    def check_order(self) -> "DateWindow":
        """Reject windows that end before they start."""
        if self.end < self.start:
            raise ValueError(f"Window end {self.end} is before start {self.start}")
        return self

    @property
    def start_iso(self) -> str:
        return format_date(self.start)

    @property
    def end_iso(self) -> str:
        return format_date(self.end)

    def contains(self, day: date) -> bool:
        """Return True if day falls inside the window (bounds included)."""
        return self.start <= day <= self.end


def format_date(day: date) -> str:
    """Format a date as YYYY-MM-DD."""
    return day.isoformat()


def parse_date(value: str | date) -> date:
    """Parse a YYYY-MM-DD string; dates pass through unchanged."""
    if isinstance(value, date):
        return value
    return date.fromisoformat(value.strip()[:10])


def day_window(reference: date) -> DateWindow:
    return DateWindow(start=reference, end=reference)


def week_window(reference: date) -> DateWindow:
    """Monday through Sunday of the week containing reference."""
    start = reference - timedelta(days=reference.weekday())
    return DateWindow(start=start, end=start + timedelta(days=6))


def month_window(reference: date) -> DateWindow:
    last_day = calendar.monthrange(reference.year, reference.month)[1]
    return DateWindow(start=reference.replace(day=1), end=reference.replace(day=last_day))


def year_window(reference: date) -> DateWindow:
    return DateWindow(start=date(reference.year, 1, 1), end=date(reference.year, 12, 31))


_WINDOW_BUILDERS = {
    Period.DAY: day_window,
    Period.WEEK: week_window,
    Period.MONTH: month_window,
    Period.YEAR: year_window,
}


def window_for(period: Period | str, reference: date) -> DateWindow:
    """Return the window of the given period that contains reference.

    Raises:
        ValueError: If period is not one of day, week, month, year
    """
    return _WINDOW_BUILDERS[Period(period)](reference)


def days_in_year(year: int) -> list[date]:
    """Every calendar date of the year, in order."""
    first = date(year, 1, 1)
    count = 366 if calendar.isleap(year) else 365
    return [first + timedelta(days=offset) for offset in range(count)]
