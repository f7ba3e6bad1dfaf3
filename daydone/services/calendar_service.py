"""Calendar service: a year of daily hours laid out as a contribution grid."""

import logging
import math
from datetime import date
from typing import Any

from daydone.core import db_client
from daydone.core.config import Constants
from daydone.core.date_window import days_in_year, parse_date, year_window
from daydone.core.errors import to_store_error
from daydone.core.logging import span
from daydone.models.service_models import CalendarCell, CalendarGrid, MonthLabel


logger = logging.getLogger(__name__)

MONTH_ABBREVIATIONS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

# Lower bounds (hours) of intensity tiers 2, 3 and 4; tier 1 is anything above 0
_TIER_THRESHOLDS = (3, 6, 9)


def intensity_tier(hours: float) -> int:
    """Bucket hours into 0 (none), 1 (<3), 2 (<6), 3 (<9) or 4 (9 and more)."""
    if hours <= 0:
        return 0
    tier = 1
    for threshold in _TIER_THRESHOLDS:
        if hours >= threshold:
            tier += 1
    return tier


def _empty_cell() -> CalendarCell:
    return CalendarCell()


def build_calendar_grid(year: int, hours_by_date: dict[date, float]) -> CalendarGrid:
    """Lay out every day of a year in week columns of seven cells, Monday first.

    The first column is padded with empty cells so January 1st sits on its
    weekday row, and the last column is padded to seven cells. A month label is
    attached to the first column whose first day falls in a new month.
    """
    days = days_in_year(year)
    weeks: list[list[CalendarCell]] = []
    current_week = [_empty_cell() for _ in range(days[0].weekday())]

    for day in days:
        hours = float(hours_by_date.get(day, 0.0))
        current_week.append(CalendarCell(date=day, hours=hours, tier=intensity_tier(hours)))
        if len(current_week) == Constants.DAYS_PER_WEEK:
            weeks.append(current_week)
            current_week = []

    if current_week:
        current_week.extend(_empty_cell() for _ in range(Constants.DAYS_PER_WEEK - len(current_week)))
        weeks.append(current_week)

    month_labels: list[MonthLabel] = []
    last_month = None
    for week_index, week in enumerate(weeks):
        first_day = next(cell.date for cell in week if cell.date is not None)
        if first_day.month != last_month:
            month_labels.append(MonthLabel(name=MONTH_ABBREVIATIONS[first_day.month - 1], week_index=week_index))
            last_month = first_day.month

    in_year = [hours for day, hours in hours_by_date.items() if day.year == year]
    return CalendarGrid(
        year=year,
        weeks=weeks,
        month_labels=month_labels,
        total_hours=math.fsum(in_year),
        active_days=sum(1 for hours in in_year if hours > 0),
    )


def _hours_by_date(logs: list[dict[str, Any]]) -> dict[date, float]:
    return {parse_date(log["date"]): float(log.get("hours_worked") or 0) for log in logs}


async def get_user_calendar(*, user_id: str, year: int) -> CalendarGrid:
    """Fetch a user's logs for the year and build the calendar grid."""
    with span("calendar_service.get_user_calendar"):
        window = year_window(date(year, 1, 1))
        try:
            logs = await db_client.list_all_records(
                collection=db_client.RecordKind.DAILY_LOGS,
                filter_query=(
                    f'user_id = "{db_client.sanitize_param(user_id)}" && '
                    f'date >= "{window.start_iso}" && date <= "{window.end_iso}"'
                ),
                sort="date,id",
            )
        except Exception as e:  # noqa: BLE001 - classified and re-raised
            raise to_store_error(e, operation="list_daily_logs") from e

        grid = build_calendar_grid(year, _hours_by_date(logs))
        logger.info(
            "Built calendar for user %s, %d: %d active days",
            user_id,
            year,
            grid.active_days,
            extra={"weeks": len(grid.weeks)},
        )
        return grid


def year_options(current_year: int, count: int = Constants.CALENDAR_YEAR_OPTIONS) -> list[int]:
    """Years offered in the calendar's year picker, newest first."""
    return [current_year - offset for offset in range(count)]
