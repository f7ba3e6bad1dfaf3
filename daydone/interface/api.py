"""JSON API over the sync, analytics and calendar services."""

import logging
from datetime import date

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from daydone.core.config import constants, settings
from daydone.core.date_window import Period, window_for
from daydone.core.db_client import RecordNotFoundError
from daydone.core.errors import StoreErrorKind, StoreOperationError, error_response_for
from daydone.domain.task import EditedTask
from daydone.domain.user import User
from daydone.models.service_models import (
    CalendarGrid,
    DailyLogSnapshot,
    DashboardMetrics,
    LeaderboardEntry,
    PointsSummary,
    SyncResult,
)
from daydone.services import analytics_service, calendar_service, sync_service, user_service


logger = logging.getLogger(__name__)

router = APIRouter(tags=["progress"])

_STATUS_BY_KIND = {
    StoreErrorKind.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    StoreErrorKind.UNIQUENESS_CONFLICT: status.HTTP_409_CONFLICT,
    StoreErrorKind.STALE_WRITE: status.HTTP_409_CONFLICT,
    StoreErrorKind.REFERENTIAL_INTEGRITY: status.HTTP_422_UNPROCESSABLE_ENTITY,
    StoreErrorKind.TRANSPORT: status.HTTP_503_SERVICE_UNAVAILABLE,
    StoreErrorKind.UNCLASSIFIED: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class UserCreateRequest(BaseModel):
    """Body of POST /users."""

    name: str
    email: str = ""


class SyncRequest(BaseModel):
    """Body of PUT /users/{user_id}/logs/{log_date}."""

    daily_log_id: str | None = Field(default=None, description="Work log id the client loaded, if any")
    hours: str | float | None = Field(default=None, description="Hours as typed by the user")
    notes: str | None = None
    tasks: list[EditedTask] = Field(default_factory=list)
    expected_version: int | None = None


class SyncResponse(BaseModel):
    """Saved state plus a confirmation message."""

    result: SyncResult
    message: str


def _store_error_response(error: StoreOperationError) -> JSONResponse:
    body = error_response_for(error).model_dump(mode="json")
    body["kind"] = error.kind.value
    body["step"] = error.operation
    if isinstance(error, sync_service.SyncError):
        body["applied"] = error.counts.model_dump()
        body["daily_log_id"] = error.daily_log_id
    return JSONResponse(content=body, status_code=_STATUS_BY_KIND[error.kind])


def _aggregate_error_response(error: StoreOperationError, *, user_id: str | None) -> JSONResponse:
    logger.warning(
        "aggregate_failed",
        extra={"user_id": user_id, "kind": error.kind.value, "step": error.operation},
    )
    return _store_error_response(error)


async def _require_user(user_id: str) -> User:
    try:
        return await user_service.get_user(user_id=user_id)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User {user_id} not found") from e


@router.get("/users")
async def list_users() -> list[User]:
    """List users in the order they were added."""
    return await user_service.list_users()


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def add_user(body: UserCreateRequest) -> User:
    """Add a user."""
    try:
        return await user_service.add_user(name=body.name, email=body.email)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=[error["msg"] for error in e.errors()],
        ) from e


@router.get("/users/{user_id}/logs/{log_date}")
async def get_daily_log(user_id: str, log_date: date) -> DailyLogSnapshot | None:
    """Work log and tasks for one day; null when nothing was saved yet."""
    await _require_user(user_id)
    return await sync_service.get_daily_log(user_id=user_id, log_date=log_date)


@router.put("/users/{user_id}/logs/{log_date}", response_model=None)
async def save_daily_log(user_id: str, log_date: date, body: SyncRequest) -> SyncResponse | JSONResponse:
    """Save hours, notes and the edited task list for one day."""
    await _require_user(user_id)
    try:
        result = await sync_service.sync_daily_log(
            daily_log_id=body.daily_log_id,
            user_id=user_id,
            log_date=log_date,
            hours=body.hours,
            notes=body.notes,
            edited_tasks=body.tasks,
            expected_version=body.expected_version,
        )
    except sync_service.SyncError as e:
        logger.warning(
            "save_daily_log_failed",
            extra={"user_id": user_id, "kind": e.kind.value, "step": e.step},
        )
        return _store_error_response(e)

    return SyncResponse(result=result, message=sync_service.save_message(result))


@router.get("/users/{user_id}/metrics", response_model=None)
async def get_metrics(user_id: str, reference: date | None = None) -> DashboardMetrics | JSONResponse:
    """Today/week/month/year hours with progress towards targets."""
    await _require_user(user_id)
    try:
        return await analytics_service.get_dashboard_metrics(user_id=user_id, reference=reference)
    except StoreOperationError as e:
        return _aggregate_error_response(e, user_id=user_id)


@router.get("/users/{user_id}/points", response_model=None)
async def get_points(user_id: str, reference: date | None = None) -> PointsSummary | JSONResponse:
    """All-time points, rank and level."""
    await _require_user(user_id)
    try:
        return await analytics_service.get_points_summary(user_id=user_id, reference=reference)
    except StoreOperationError as e:
        return _aggregate_error_response(e, user_id=user_id)


@router.get("/users/{user_id}/calendar/{year}", response_model=None)
async def get_calendar(user_id: str, year: int) -> CalendarGrid | JSONResponse:
    """Contribution calendar for a year."""
    await _require_user(user_id)
    try:
        return await calendar_service.get_user_calendar(user_id=user_id, year=year)
    except StoreOperationError as e:
        return _aggregate_error_response(e, user_id=user_id)


@router.get("/calendar/years")
async def get_calendar_years(current_year: int | None = None) -> list[int]:
    """Years offered in the calendar year picker."""
    return calendar_service.year_options(current_year or date.today().year, constants.CALENDAR_YEAR_OPTIONS)


@router.get("/leaderboard", response_model=None)
async def get_leaderboard(
    period: Period | None = None,
    reference: date | None = None,
    limit: int | None = Query(default=None, ge=1),
) -> list[LeaderboardEntry] | JSONResponse:
    """Users ranked by hours for the period containing the reference date."""
    window = window_for(period or Period(settings.leaderboard_default_period), reference or date.today())
    try:
        if limit is not None:
            return await analytics_service.get_top_performers(window=window, limit=limit)
        return await analytics_service.get_leaderboard(window=window)
    except StoreOperationError as e:
        return _aggregate_error_response(e, user_id=None)
