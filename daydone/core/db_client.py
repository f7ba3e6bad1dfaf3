"""SQLite database client wrapper with CRUD operations.

This is the record store the services talk to. Every function is async and
keyword-only so tests can monkeypatch them with an in-memory implementation.
"""

import asyncio
import json
import logging
import re
import threading
from datetime import date, datetime
from enum import StrEnum
from pathlib import Path
from typing import Any, NoReturn

import aiosqlite

from daydone.core.config import Constants, settings


logger = logging.getLogger(__name__)


class RecordKind(StrEnum):
    """Collections exposed by the record store."""

    USERS = "users"
    DAILY_LOGS = "daily_logs"
    TASKS = "tasks"


# Collections carrying an optimistic-concurrency version column
VERSIONED_COLLECTIONS = frozenset({RecordKind.DAILY_LOGS, RecordKind.TASKS})

_NOW_SQL = "strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"


class DatabaseError(RuntimeError):
    """A record store operation failed."""


class RecordNotFoundError(KeyError):
    """The requested record does not exist."""


class StaleRecordError(DatabaseError):
    """An update was rejected because the stored version moved on."""


def _validate_collection_name(collection: str) -> None:
    """Validate that a collection name contains only alphanumeric characters and underscores."""
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", collection):
        msg = f"Invalid collection name: {collection}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def sanitize_param(value: str | int | float | bool | None) -> str:
    """Escape a value for safe embedding in filter queries via json.dumps."""
    return json.dumps(str(value))[1:-1]


def _convert_record_ids(record: dict[str, Any]) -> dict[str, Any]:
    """Convert integer ID and foreign key fields to strings for Pydantic compatibility."""
    converted = record.copy()
    for key, value in converted.items():
        if isinstance(value, int) and (key == "id" or key.endswith("_id")):
            converted[key] = str(value)
    return converted


def _to_sql_value(value: Any) -> Any:
    """Convert a Python value to something SQLite can bind."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, StrEnum):
        return value.value
    if isinstance(value, dict | list):
        return json.dumps(value)
    return value


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


def _parse_value(value: str, *, is_like: bool = False) -> str | int | float | bool | None:
    """Parse a string value to the appropriate Python type for SQLite."""
    if is_like:
        return value.replace("%", "\\%").replace("_", "\\_")

    if value.isdigit():
        return int(value)
    if value.replace(".", "", 1).isdigit():
        return float(value)

    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False

    return value


def _get_sql_operator(op: str) -> str:
    """Map filter operator to SQL operator."""
    op_map = {
        "=": "=",
        "!=": "!=",
        ">": ">",
        "<": "<",
        ">=": ">=",
        "<=": "<=",
        "~": "LIKE",
    }
    sql_op = op_map.get(op)
    if not sql_op:
        msg = f"Unsupported operator: {op}"
        raise ValueError(msg)
    return sql_op


def _parse_single_comparison(comparison: str) -> tuple[str, str | int | float | None]:
    """Parse a single comparison expression into a SQL condition and parameter."""
    match = re.match(
        r"""(\w+)\s*(!=|>=|<=|=|>|<|~)\s*(['"])([^'"]*)\3""",
        comparison,
    )
    if not match:
        msg = f"Invalid filter syntax: {comparison}"
        raise ValueError(msg)

    field = match.group(1)
    op = match.group(2)
    raw_value = match.group(4)

    sql_op = _get_sql_operator(op)
    is_like = sql_op == "LIKE"
    value = _parse_value(raw_value, is_like=is_like)

    if is_like:
        return f"{field} LIKE ? ESCAPE '\\'", f"%{value}%"
    return f"{field} {sql_op} ?", value


def _parse_or_group(or_group: str) -> tuple[str, list[str | int | float | None]]:
    """Parse a parenthesized OR group into a SQL condition and parameters."""
    inner = or_group[1:-1]  # Remove parentheses
    or_parts = [p.strip() for p in inner.split("||")]
    or_conditions = []
    or_params = []

    for part in or_parts:
        cond, value = _parse_single_comparison(part)
        or_conditions.append(cond)
        or_params.append(value)

    return f"({' OR '.join(or_conditions)})", or_params


def _split_and_conditions(filter_query: str) -> list[str]:
    """Split filter query by && while preserving parenthesized groups."""
    parts = []
    current = ""
    paren_depth = 0

    for char in filter_query:
        if char == "(":
            paren_depth += 1
        elif char == ")":
            paren_depth -= 1

        current += char

        if paren_depth == 0 and current.endswith("&&"):
            parts.append(current[:-2].strip())
            current = ""

    if current.strip():
        parts.append(current.strip())

    return parts


def parse_filter(filter_query: str) -> tuple[str, list[str | int | float | None]]:
    """Parse filter syntax into a SQL WHERE clause and parameter list."""
    if not filter_query:
        return "", []

    parts = _split_and_conditions(filter_query)
    conditions = []
    params = []

    for raw_part in parts:
        part = raw_part.strip()

        # Handle parenthesized OR groups
        if part.startswith("(") and part.endswith(")"):
            cond, cond_params = _parse_or_group(part)
            conditions.append(cond)
            params.extend(cond_params)
        else:
            cond, value = _parse_single_comparison(part)
            conditions.append(cond)
            params.append(value)

    return " AND ".join(conditions), params


def parse_sort(sort: str) -> str:
    """Translate a sort spec ("-date,id" or "date DESC, id ASC") into an ORDER BY clause.

    Invalid specs fall back to "id ASC".
    """
    if not sort.strip():
        return "id ASC"

    terms = []
    for raw_term in sort.split(","):
        term = raw_term.strip()
        match = re.match(r"^([+-]?)([A-Za-z_][A-Za-z0-9_]*)(?:\s+(ASC|DESC))?$", term, re.IGNORECASE)
        if not match:
            logger.warning("Invalid sort parameter, using default", extra={"sort": sort})
            return "id ASC"
        sign, field, direction = match.groups()
        if direction:
            terms.append(f"{field} {direction.upper()}")
        else:
            terms.append(f"{field} {'DESC' if sign == '-' else 'ASC'}")
    return ", ".join(terms)


_db_connections: dict[tuple[int, int, str], aiosqlite.Connection] = {}
_db_lock = asyncio.Lock()


async def get_connection(*, db_path: str | None = None) -> aiosqlite.Connection:
    """Get or create a cached connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop = asyncio.get_running_loop()
    loop_id = id(loop)
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    if cache_key in _db_connections:
        return _db_connections[cache_key]

    async with _db_lock:
        # Double-check after acquiring lock
        if cache_key in _db_connections:
            return _db_connections[cache_key]

        path.parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(str(path))
        await conn.execute("PRAGMA foreign_keys = ON")
        await conn.execute("PRAGMA journal_mode = WAL")

        _db_connections[cache_key] = conn

        logger.info(
            "Created new SQLite connection",
            extra={"db_path": str(path), "thread_id": thread_id, "loop_id": loop_id},
        )
        return conn


async def close_connection(*, db_path: str | None = None) -> None:
    """Close the cached SQLite connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop_id = id(asyncio.get_running_loop())
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    if cache_key not in _db_connections:
        return

    try:
        async with _db_lock:
            conn = _db_connections.pop(cache_key, None)
            if conn is not None:
                await conn.close()
                logger.info(
                    "Closed SQLite connection",
                    extra={"thread_id": thread_id, "loop_id": loop_id, "db_path": str(path)},
                )
    except aiosqlite.Error as e:
        logger.warning(
            "Error closing SQLite connection",
            extra={"error": str(e), "thread_id": thread_id, "loop_id": loop_id},
        )


async def init_db(*, db_path: str | None = None) -> None:
    """Initialize the database schema by delegating to schema.init_db()."""
    schema = __import__("daydone.core.schema", fromlist=["init_db"])
    await schema.init_db(db_path=db_path)


def _raise_database_error(*, action: str, collection: str, error: Exception) -> NoReturn:
    """Re-raise a driver failure as DatabaseError, keeping the driver message."""
    if isinstance(error, aiosqlite.OperationalError) and "no such table" in str(error):
        msg = f"Table '{collection}' does not exist. Call init_db() first."
        logger.error("Table not found", extra={"collection": collection})
        raise DatabaseError(msg) from error
    logger.error(f"{action}_failed", extra={"collection": collection, "error": str(error)})
    msg = f"Failed to {action.replace('_', ' ')} in {collection}: {error}"
    raise DatabaseError(msg) from error


async def create_record(*, collection: str, data: dict[str, Any]) -> dict[str, Any]:
    """Insert a new record and return it with its assigned id."""
    _validate_collection_name(collection)
    try:
        conn = await get_connection()

        columns = list(data.keys())
        columns_str = ", ".join(columns)
        placeholders_str = ", ".join("?" for _ in columns)
        values = [_to_sql_value(data[key]) for key in columns]

        query = f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str})"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, values)
        await conn.commit()
        record_id = cursor.lastrowid
    except Exception as e:  # noqa: BLE001 - re-raised as DatabaseError
        _raise_database_error(action="create_record", collection=collection, error=e)

    logger.info("Created record", extra={"collection": collection, "record_id": record_id})
    return await get_record(collection=collection, record_id=str(record_id))


async def get_record(*, collection: str, record_id: str) -> dict[str, Any]:
    """Fetch a single record by ID, raising RecordNotFoundError if not found."""
    _validate_collection_name(collection)
    try:
        conn = await get_connection()

        query = f"SELECT * FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (int(record_id),))
        row = await cursor.fetchone()
        columns = [description[0] for description in cursor.description]
    except ValueError as e:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg) from e
    except Exception as e:  # noqa: BLE001 - re-raised as DatabaseError
        _raise_database_error(action="get_record", collection=collection, error=e)

    if row is None:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    logger.debug("Retrieved record", extra={"collection": collection, "record_id": record_id})
    return _convert_record_ids(dict(zip(columns, row, strict=True)))


async def update_record(
    *,
    collection: str,
    record_id: str,
    data: dict[str, Any],
    expected_version: int | None = None,
) -> dict[str, Any]:
    """Update a record by ID and return the updated record.

    Patched fields are overwritten as given. Versioned collections get their version
    bumped; when expected_version is set the update only applies if it still matches.

    Raises:
        RecordNotFoundError: If the record does not exist
        StaleRecordError: If expected_version no longer matches the stored version
        DatabaseError: For any other failure
    """
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    _validate_collection_name(collection)
    versioned = collection in VERSIONED_COLLECTIONS
    try:
        conn = await get_connection()

        assignments = [f"{key} = ?" for key in data]
        assignments.append(f"updated = {_NOW_SQL}")
        if versioned:
            assignments.append("version = version + 1")
        values = [_to_sql_value(val) for val in data.values()]

        query = f"UPDATE {collection} SET {', '.join(assignments)} WHERE id = ?"  # noqa: S608 - collection is validated
        values.append(int(record_id))
        if versioned and expected_version is not None:
            query += " AND version = ?"
            values.append(expected_version)

        cursor = await conn.execute(query, values)
        await conn.commit()
        rowcount = cursor.rowcount
    except ValueError as e:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg) from e
    except Exception as e:  # noqa: BLE001 - re-raised as DatabaseError
        _raise_database_error(action="update_record", collection=collection, error=e)

    if rowcount == 0:
        # Raises RecordNotFoundError when the row is gone
        current = await get_record(collection=collection, record_id=record_id)
        msg = (
            f"Stale write on {collection} {record_id}: version mismatch "
            f"(expected {expected_version}, found {current.get('version')})"
        )
        logger.warning("update_record_stale", extra={"collection": collection, "record_id": record_id})
        raise StaleRecordError(msg)

    logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
    return await get_record(collection=collection, record_id=record_id)


async def delete_records(*, collection: str, record_ids: list[str]) -> int:
    """Delete records by ID in one statement. Ids that are already gone are ignored.

    Returns:
        Number of rows actually deleted
    """
    _validate_collection_name(collection)
    if not record_ids:
        return 0

    try:
        conn = await get_connection()

        placeholders = ", ".join("?" for _ in record_ids)
        query = f"DELETE FROM {collection} WHERE id IN ({placeholders})"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, [int(record_id) for record_id in record_ids])
        await conn.commit()
        deleted = cursor.rowcount
    except Exception as e:  # noqa: BLE001 - re-raised as DatabaseError
        _raise_database_error(action="delete_records", collection=collection, error=e)

    logger.info(
        "Deleted records",
        extra={"collection": collection, "requested": len(record_ids), "deleted": deleted},
    )
    return deleted


async def list_records(
    *,
    collection: str,
    page: int = 1,
    per_page: int = 50,
    filter_query: str = "",
    sort: str = "",
) -> list[dict[str, Any]]:
    """List records with optional filtering, sorting, and pagination."""
    _validate_collection_name(collection)
    try:
        conn = await get_connection()

        where_clause = ""
        params: list[Any] = []
        if filter_query:
            where_clause, params = parse_filter(filter_query)
            where_clause = f"WHERE {where_clause}"

        order_by = parse_sort(sort)
        offset = (page - 1) * per_page

        query = f"SELECT * FROM {collection} {where_clause} ORDER BY {order_by} LIMIT ? OFFSET ?"  # noqa: S608 - collection is validated
        params.extend([per_page, offset])

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
        columns = [description[0] for description in cursor.description]
    except ValueError:
        raise
    except Exception as e:  # noqa: BLE001 - re-raised as DatabaseError
        _raise_database_error(action="list_records", collection=collection, error=e)

    records = [_convert_record_ids(dict(zip(columns, row, strict=True))) for row in rows]
    logger.debug("Listed records", extra={"collection": collection, "count": len(records)})
    return records


async def get_first_record(*, collection: str, filter_query: str, sort: str = "") -> dict[str, Any] | None:
    """Return the first record matching the filter, or None."""
    records = await list_records(collection=collection, filter_query=filter_query, sort=sort, per_page=1)
    return records[0] if records else None


async def list_all_records(
    *,
    collection: str,
    filter_query: str = "",
    sort: str = "",
    per_page: int | None = None,
) -> list[dict[str, Any]]:
    """List every record matching the filter, fetching page after page.

    The sort should be total (e.g. end with "id") so pages do not overlap.
    """
    per_page = per_page or Constants.MAX_LIST_PAGE_SIZE
    records: list[dict[str, Any]] = []
    page = 1
    while True:
        batch = await list_records(
            collection=collection,
            filter_query=filter_query,
            sort=sort,
            per_page=per_page,
            page=page,
        )
        records.extend(batch)

        # A short page means everything has been fetched
        if len(batch) < per_page:
            break

        page += 1
        logger.debug("Fetching next page", extra={"collection": collection, "page": page})
    return records
