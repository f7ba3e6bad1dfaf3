"""Analytics service for hour totals, leaderboards and levels.

This module provides functions for:
- Summing a user's hours over a date window (day, week, month, year)
- Ranking users by hours logged in a window
- Turning all-time hours into points and levels for gamification

Key Concepts:
- Points: one point per logged hour.
- Rank: position in the leaderboard, 1-based. Users with equal hours get
  consecutive ranks, never a shared one. Ties go to the user whose first log in
  the window is earliest, because logs are visited ordered by (date, id) and
  users keep the order in which they were first seen.
- Level: every 100 points is a level. At an exact multiple of 100 the points
  needed for the next level are reported as 100, not 0.

Every call reads fresh rows from the record store; nothing is cached. Store
failures are raised as classified StoreOperationErrors.
"""

import asyncio
import logging
import math
from datetime import date
from typing import Any

from daydone.core import db_client
from daydone.core.config import Constants
from daydone.core.date_window import (
    DateWindow,
    day_window,
    month_window,
    week_window,
    year_window,
)
from daydone.core.errors import to_store_error
from daydone.core.logging import span
from daydone.models.service_models import (
    DashboardMetrics,
    LeaderboardEntry,
    LevelProgress,
    PointsSummary,
)


logger = logging.getLogger(__name__)


def _window_filter(window: DateWindow) -> str:
    return f'date >= "{window.start_iso}" && date <= "{window.end_iso}"'


async def _list_logs(*, filter_query: str) -> list[dict[str, Any]]:
    try:
        return await db_client.list_all_records(
            collection=db_client.RecordKind.DAILY_LOGS,
            filter_query=filter_query,
            sort="date,id",
        )
    except Exception as e:  # noqa: BLE001 - classified and re-raised
        raise to_store_error(e, operation="list_daily_logs") from e


async def get_total_hours(*, user_id: str, window: DateWindow) -> float:
    """Sum a user's logged hours for every day inside the window.

    Days without a log contribute nothing; the result is 0.0 when no log matches.
    """
    with span("analytics_service.get_total_hours"):
        logs = await _list_logs(
            filter_query=f'user_id = "{db_client.sanitize_param(user_id)}" && {_window_filter(window)}',
        )
        return math.fsum(float(log.get("hours_worked") or 0) for log in logs)


def rank_user_hours(logs: list[dict[str, Any]], user_names: dict[str, str]) -> list[LeaderboardEntry]:
    """Group logs by user, sum hours and rank users by total, highest first.

    Users are kept in order of first appearance in `logs`; the sort is stable so
    that order decides ties. Users whose total is 0 are left out.
    """
    hours_by_user: dict[str, list[float]] = {}
    for log in logs:
        hours_by_user.setdefault(str(log["user_id"]), []).append(float(log.get("hours_worked") or 0))

    totals = [(user_id, math.fsum(hours)) for user_id, hours in hours_by_user.items()]
    ranked = sorted((item for item in totals if item[1] > 0), key=lambda item: item[1], reverse=True)

    return [
        LeaderboardEntry(
            user_id=user_id,
            user_name=user_names.get(user_id, Constants.UNKNOWN_USER_NAME),
            total_hours=total,
            rank=position,
        )
        for position, (user_id, total) in enumerate(ranked, start=1)
    ]


async def _user_names() -> dict[str, str]:
    try:
        users = await db_client.list_all_records(collection=db_client.RecordKind.USERS, sort="id")
    except Exception as e:  # noqa: BLE001 - classified and re-raised
        raise to_store_error(e, operation="list_users") from e
    return {user["id"]: user.get("name") or Constants.UNKNOWN_USER_NAME for user in users}


async def get_leaderboard(*, window: DateWindow) -> list[LeaderboardEntry]:
    """Get leaderboard of hours logged per user within the window.

    Args:
        window: Inclusive date range to aggregate

    Returns:
        List of LeaderboardEntry objects sorted by total hours descending
    """
    with span("analytics_service.get_leaderboard"):
        logs = await _list_logs(filter_query=_window_filter(window))
        user_names = await _user_names()

        leaderboard = rank_user_hours(logs, user_names)

        logger.info(
            "Generated leaderboard for %s..%s: %d users",
            window.start_iso,
            window.end_iso,
            len(leaderboard),
        )
        return leaderboard


async def get_top_performers(*, window: DateWindow, limit: int = Constants.TOP_PERFORMERS_LIMIT) -> list[LeaderboardEntry]:
    """Return the head of the leaderboard; the first entry is the period's winner."""
    leaderboard = await get_leaderboard(window=window)
    return leaderboard[:limit]


def calculate_level(total_points: float) -> LevelProgress:
    """Compute the level for a number of points.

    level = floor(points / 100) + 1 and points_to_next = 100 - (points mod 100).
    Exact multiples of 100 therefore report a full 100 points to the next level.
    """
    level_size = Constants.LEVEL_POINTS
    return LevelProgress(
        level=math.floor(total_points / level_size) + 1,
        points_to_next=level_size - (total_points % level_size),
    )


def _progress(value: float, target: float) -> float:
    """Percentage of target reached, capped at 100."""
    if not target:
        return 0.0
    return min(value / target * 100, 100.0)


async def get_dashboard_metrics(*, user_id: str, reference: date | None = None) -> DashboardMetrics:
    """Hours for today, this week, this month and this year, with target progress.

    Args:
        user_id: User to report on
        reference: Date the periods are anchored on (default: today)

    Returns:
        DashboardMetrics with period totals and progress percentages
    """
    with span("analytics_service.get_dashboard_metrics"):
        reference = reference or date.today()

        today, week, month, year = await asyncio.gather(
            get_total_hours(user_id=user_id, window=day_window(reference)),
            get_total_hours(user_id=user_id, window=week_window(reference)),
            get_total_hours(user_id=user_id, window=month_window(reference)),
            get_total_hours(user_id=user_id, window=year_window(reference)),
        )

        return DashboardMetrics(
            reference_date=reference,
            today=today,
            week=week,
            month=month,
            year=year,
            daily_target=Constants.DAILY_TARGET_HOURS,
            weekly_target=Constants.WEEKLY_TARGET_HOURS,
            monthly_target=Constants.MONTHLY_TARGET_HOURS,
            daily_progress=_progress(today, Constants.DAILY_TARGET_HOURS),
            weekly_progress=_progress(week, Constants.WEEKLY_TARGET_HOURS),
            monthly_progress=_progress(month, Constants.MONTHLY_TARGET_HOURS),
        )


async def get_points_summary(*, user_id: str, reference: date | None = None) -> PointsSummary:
    """All-time points, rank and level for a user plus this week's points.

    A user without any logged hours is placed last, i.e. at rank == total_users.
    """
    with span("analytics_service.get_points_summary"):
        reference = reference or date.today()

        all_logs = await _list_logs(filter_query="")
        standings = rank_user_hours(all_logs, {})
        total_users = len(standings)

        entry = next((e for e in standings if e.user_id == user_id), None)
        total_points = entry.total_hours if entry else 0.0
        rank = entry.rank if entry else total_users

        this_week_points = await get_total_hours(user_id=user_id, window=week_window(reference))
        progress = calculate_level(total_points)

        logger.info("User %s points: %.1f, rank %d of %d", user_id, total_points, rank, total_users)

        return PointsSummary(
            user_id=user_id,
            total_points=total_points,
            rank=rank,
            total_users=total_users,
            this_week_points=this_week_points,
            level=progress.level,
            points_to_next=progress.points_to_next,
        )
