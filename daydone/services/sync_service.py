"""Sync service: saves a day's hours, notes and edited task list.

A save takes the full client-side task list for one day and reconciles it with
what is persisted for that day's work log:

- Tasks still carrying a placeholder id ("temp-...") are inserted, unless their
  name is blank, in which case they are dropped without error.
- Tasks with a persisted id are updated (name, description, status), even when
  nothing changed. A persisted task whose name was blanked is deleted.
- Persisted tasks missing from the list are deleted in one batch call.

Saves are not transactional. When a store call fails part way, the writes that
already happened stay applied and a SyncError describes what failed and what
had been done. Re-submitting the same list is safe: deletes and updates by id
are idempotent, and every inserted task remembers the placeholder id it came
from (client_ref), so a replayed placeholder adopts the row a failed save
already inserted instead of inserting it twice.
"""

import logging
import math
import re
import secrets
from datetime import date
from typing import Any

from daydone.core import db_client
from daydone.core.config import Constants
from daydone.core.date_window import format_date, parse_date
from daydone.core.errors import StoreErrorKind, StoreOperationError, to_store_error
from daydone.core.logging import log_with_user_context, span
from daydone.domain.daily_log import DailyLog
from daydone.domain.task import EditedTask, Task
from daydone.models.service_models import (
    DailyLogSnapshot,
    SyncCounts,
    SyncResult,
    TaskChangePlan,
)


logger = logging.getLogger(__name__)

_LEADING_NUMBER = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


class SyncError(StoreOperationError):
    """A save failed part way; carries the failing step and what was applied before it."""

    def __init__(
        self,
        message: str,
        *,
        kind: StoreErrorKind,
        step: str,
        counts: SyncCounts,
        daily_log_id: str | None,
    ) -> None:
        super().__init__(message, kind=kind, operation=step)
        self.step = step
        self.counts = counts
        self.daily_log_id = daily_log_id


def new_placeholder_id() -> str:
    """Return a fresh placeholder id for a task added on the client."""
    return f"{Constants.TEMP_ID_PREFIX}{secrets.token_hex(8)}"


def is_placeholder_id(task_id: str) -> bool:
    return task_id.startswith(Constants.TEMP_ID_PREFIX)


def parse_hours(raw: str | float | None) -> float:
    """Parse hours typed by the user, falling back to 0.

    Leading numeric text is accepted ("7.5h" -> 7.5). Anything unparseable,
    negative or non-finite becomes 0.0 instead of raising.
    """
    if raw is None or isinstance(raw, bool):
        return 0.0

    if isinstance(raw, int | float):
        value = float(raw)
    else:
        match = _LEADING_NUMBER.match(str(raw).strip())
        if not match:
            return 0.0
        try:
            value = float(match.group(0))
        except ValueError:
            return 0.0

    if not math.isfinite(value) or value < 0:
        return 0.0
    return value


def plan_task_changes(*, persisted: list[Task], edited: list[EditedTask]) -> TaskChangePlan:
    """Compute which persisted tasks to delete and which edited tasks to update or create.

    Persisted tasks whose edited name is blank are deleted, like removed ones.
    A placeholder whose id matches a persisted task's client_ref adopts that task.
    Real ids that are not persisted under this log end up in `unknown`.
    """
    persisted_by_id = {task.id: task for task in persisted}
    persisted_by_ref = {task.client_ref: task.id for task in persisted if task.client_ref}

    plan = TaskChangePlan()
    unknown: list[str] = []
    keep: set[str] = set()
    seen: set[str] = set()

    for task in edited:
        if task.id in seen:
            continue
        seen.add(task.id)

        has_name = bool(task.task_name.strip())
        if is_placeholder_id(task.id):
            if not has_name:
                plan.dropped.append(task.id)
            elif task.id in persisted_by_ref:
                plan.to_adopt[task.id] = persisted_by_ref[task.id]
                keep.add(persisted_by_ref[task.id])
            else:
                plan.to_create.append(task.id)
        elif task.id in persisted_by_id:
            if has_name:
                plan.to_update.append(task.id)
                keep.add(task.id)
            else:
                plan.dropped.append(task.id)
        else:
            unknown.append(task.id)

    plan.to_delete = [task.id for task in persisted if task.id not in keep]
    plan.unknown = unknown
    return plan


def _to_daily_log(record: dict[str, Any]) -> DailyLog:
    return DailyLog(**record)


def _to_task(record: dict[str, Any]) -> Task:
    return Task(**record)


async def _find_daily_log(*, user_id: str, log_date: date) -> dict[str, Any] | None:
    return await db_client.get_first_record(
        collection=db_client.RecordKind.DAILY_LOGS,
        filter_query=(
            f'user_id = "{db_client.sanitize_param(user_id)}" && date = "{format_date(log_date)}"'
        ),
    )


async def _list_tasks(*, daily_log_id: str) -> list[Task]:
    records = await db_client.list_all_records(
        collection=db_client.RecordKind.TASKS,
        filter_query=f'work_log_id = "{db_client.sanitize_param(daily_log_id)}"',
        sort="id",
    )
    return [_to_task(record) for record in records]


async def get_daily_log(*, user_id: str, log_date: date | str) -> DailyLogSnapshot | None:
    """Load a user's work log for a date with its tasks, or None if nothing was saved yet."""
    with span("sync_service.get_daily_log"):
        record = await _find_daily_log(user_id=user_id, log_date=parse_date(log_date))
        if record is None:
            return None

        daily_log = _to_daily_log(record)
        tasks = await _list_tasks(daily_log_id=daily_log.id)
        return DailyLogSnapshot(daily_log=daily_log, tasks=tasks)


async def _check_unknown_task_ids(*, unknown: list[str], daily_log_id: str | None) -> None:
    """Reject persisted ids that are not part of this work log before anything is written."""
    for task_id in unknown:
        try:
            record = await db_client.get_record(collection=db_client.RecordKind.TASKS, record_id=task_id)
        except KeyError:
            msg = f"Task {task_id} no longer exists. Reload the day and save again."
            raise SyncError(
                msg,
                kind=StoreErrorKind.STALE_WRITE,
                step="validate_tasks",
                counts=SyncCounts(),
                daily_log_id=daily_log_id,
            ) from None

        msg = f"Task {task_id} belongs to work log {record.get('work_log_id')}, not to this day"
        raise SyncError(
            msg,
            kind=StoreErrorKind.VALIDATION,
            step="validate_tasks",
            counts=SyncCounts(),
            daily_log_id=daily_log_id,
        )


async def _save_daily_log(
    *,
    existing: dict[str, Any] | None,
    user_id: str,
    log_date: date,
    hours_worked: float,
    notes: str,
    expected_version: int | None,
) -> dict[str, Any]:
    """Create the day's work log or overwrite its hours and notes."""
    if existing is None:
        return await db_client.create_record(
            collection=db_client.RecordKind.DAILY_LOGS,
            data={
                "user_id": user_id,
                "date": format_date(log_date),
                "hours_worked": hours_worked,
                "notes": notes,
            },
        )

    return await db_client.update_record(
        collection=db_client.RecordKind.DAILY_LOGS,
        record_id=existing["id"],
        data={"hours_worked": hours_worked, "notes": notes},
        expected_version=expected_version,
    )


def _task_fields(task: EditedTask) -> dict[str, Any]:
    return {
        "task_name": task.task_name,
        "description": task.description or None,
        "status": task.status.value,
    }


async def sync_daily_log(  # noqa: C901, PLR0912, PLR0915
    *,
    daily_log_id: str | None,
    user_id: str,
    log_date: date | str,
    hours: str | float | None,
    notes: str | None,
    edited_tasks: list[EditedTask],
    expected_version: int | None = None,
) -> SyncResult:
    """Save a day's hours, notes and task list, then return the stored state.

    Args:
        daily_log_id: Work log id the client loaded, or None if the day was empty
        user_id: Owner of the day
        log_date: Calendar date being saved
        hours: Raw hours input; unparseable values count as 0
        notes: Free-text notes (overwrites the stored notes)
        edited_tasks: Full client-side task list for the day, in display order
        expected_version: Work log version the client loaded; when set, a newer
            stored version fails the save with a stale_write error

    Returns:
        SyncResult with the re-fetched work log, its tasks and the counts

    Raises:
        SyncError: If a store call fails; writes made before it stay applied
    """
    with span("sync_service.sync_daily_log"):
        day = parse_date(log_date)
        hours_worked = parse_hours(hours)
        counts = SyncCounts()
        step = "load_daily_log"
        current_log_id = daily_log_id

        try:
            # Resolve the work log and the tasks persisted under it (reads only)
            if daily_log_id:
                try:
                    existing = await db_client.get_record(
                        collection=db_client.RecordKind.DAILY_LOGS, record_id=daily_log_id
                    )
                except db_client.RecordNotFoundError:
                    msg = f"Work log {daily_log_id} no longer exists. Reload the day and save again."
                    raise SyncError(
                        msg,
                        kind=StoreErrorKind.STALE_WRITE,
                        step=step,
                        counts=counts,
                        daily_log_id=None,
                    ) from None
                if existing.get("user_id") != user_id or parse_date(existing["date"]) != day:
                    msg = f"Work log {daily_log_id} does not belong to user {user_id} on {format_date(day)}"
                    raise SyncError(
                        msg,
                        kind=StoreErrorKind.VALIDATION,
                        step=step,
                        counts=counts,
                        daily_log_id=daily_log_id,
                    )
            else:
                existing = await _find_daily_log(user_id=user_id, log_date=day)

            current_log_id = existing["id"] if existing else None
            persisted = await _list_tasks(daily_log_id=current_log_id) if current_log_id else []

            plan = plan_task_changes(persisted=persisted, edited=edited_tasks)
            if plan.unknown:
                await _check_unknown_task_ids(unknown=plan.unknown, daily_log_id=current_log_id)

            # 1. Create or overwrite the work log
            step = "save_daily_log"
            saved_log = await _save_daily_log(
                existing=existing,
                user_id=user_id,
                log_date=day,
                hours_worked=hours_worked,
                notes=notes or "",
                expected_version=expected_version,
            )
            current_log_id = saved_log["id"]
            is_new_log = existing is None

            # 2. Delete tasks that were removed on the client, in one call
            step = "delete_tasks"
            if plan.to_delete:
                await db_client.delete_records(collection=db_client.RecordKind.TASKS, record_ids=plan.to_delete)
                counts.deleted = len(plan.to_delete)

            # 3. Walk the edited list in order
            versions = {task.id: task.version for task in edited_tasks}
            to_create = set(plan.to_create)
            to_update = set(plan.to_update)
            for task in edited_tasks:
                if task.id in to_create:
                    step = "insert_task"
                    await db_client.create_record(
                        collection=db_client.RecordKind.TASKS,
                        data={
                            "work_log_id": current_log_id,
                            "user_id": user_id,
                            "client_ref": task.id,
                            **_task_fields(task),
                        },
                    )
                    to_create.discard(task.id)
                    counts.created += 1
                elif task.id in plan.to_adopt:
                    step = "insert_task"
                    await db_client.update_record(
                        collection=db_client.RecordKind.TASKS,
                        record_id=plan.to_adopt.pop(task.id),
                        data=_task_fields(task),
                    )
                    counts.created += 1
                elif task.id in to_update:
                    step = "update_task"
                    await db_client.update_record(
                        collection=db_client.RecordKind.TASKS,
                        record_id=task.id,
                        data=_task_fields(task),
                        expected_version=versions.get(task.id),
                    )
                    to_update.discard(task.id)
                    counts.updated += 1

            # 4. Re-read the authoritative state
            step = "reload"
            daily_log_record = await db_client.get_record(
                collection=db_client.RecordKind.DAILY_LOGS, record_id=current_log_id
            )
            tasks = await _list_tasks(daily_log_id=current_log_id)
        except SyncError:
            raise
        except Exception as e:  # noqa: BLE001 - classified and re-raised as SyncError
            store_error = to_store_error(e, operation=step)
            log_with_user_context(
                logger,
                "error",
                "sync_daily_log_failed",
                user_id=user_id,
                step=step,
                kind=store_error.kind.value,
                work_log_id=current_log_id,
                created=counts.created,
                updated=counts.updated,
                deleted=counts.deleted,
                error=str(e),
            )
            raise SyncError(
                store_error.message,
                kind=store_error.kind,
                step=step,
                counts=counts,
                daily_log_id=current_log_id,
            ) from e

        if plan.dropped:
            logger.debug("Dropped %d blank tasks", len(plan.dropped), extra={"work_log_id": current_log_id})

        log_with_user_context(
            logger,
            "info",
            "Synced daily log",
            user_id=user_id,
            work_log_id=current_log_id,
            date=format_date(day),
            created=counts.created,
            updated=counts.updated,
            deleted=counts.deleted,
        )

        return SyncResult(
            daily_log=_to_daily_log(daily_log_record),
            tasks=tasks,
            counts=counts,
            is_new_log=is_new_log,
        )


def save_message(result: SyncResult) -> str:
    """Human-readable confirmation for a successful save."""
    created = result.counts.created
    if created > 0:
        return f"{created} new task{'s' if created > 1 else ''} added successfully!"
    if result.is_new_log:
        return "Work log created and saved successfully!"
    return "Your progress has been saved successfully!"
