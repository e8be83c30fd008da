"""SQLite database client wrapper with CRUD operations."""

import asyncio
import json
import logging
import re
import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any

import aiosqlite

from src.core.config import settings


logger = logging.getLogger(__name__)


class DatabaseError(Exception):
    """Raised when a database operation fails."""


class RecordNotFoundError(DatabaseError):
    """Raised when a record does not exist."""


# Reference columns stored as INTEGER but exposed as strings
_REFERENCE_FIELDS = {
    "id",
    "assigned_to",
    "completed_by",
    "created_by",
    "updated_by",
}


def _validate_collection_name(collection: str) -> None:
    """Validate that a collection name contains only alphanumeric characters and underscores."""
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", collection):
        msg = f"Invalid collection name: {collection}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def sanitize_param(value: str | int | float | bool | None) -> str:
    """Escape a value for embedding in a double-quoted filter value.

    Quotes and backslashes are JSON-escaped; non-ASCII text is kept as is.
    """
    return json.dumps(str(value), ensure_ascii=False)[1:-1]


def _convert_record_ids(record: dict[str, Any]) -> dict[str, Any]:
    """Convert integer ID and reference fields to strings for Pydantic compatibility."""
    converted = record.copy()
    for key, value in converted.items():
        if isinstance(value, int) and (key in _REFERENCE_FIELDS or key.endswith("_id")):
            converted[key] = str(value)
    return converted


def _to_db_value(value: Any) -> Any:
    """Serialize a Python value into something SQLite can bind."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, dict | list):
        return json.dumps(value)
    return value


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


def _parse_value(value: str) -> str | int | bool:
    """Parse a string value to the appropriate Python type for SQLite."""
    if value.isascii() and value.isdigit():
        return int(value)

    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False

    return value


_SQL_OPERATORS = {"=", "!=", ">", "<", ">=", "<="}

# Double-quoted values carry JSON escapes (see sanitize_param); single-quoted values are literal
_COMPARISON_RE = re.compile(r"""^(\w+)\s*(!=|>=|<=|=|>|<)\s*(?:"((?:[^"\\]|\\.)*)"|'([^']*)')$""", re.DOTALL)


def split_conditions(filter_query: str) -> list[str]:
    """Split a filter on ``&&`` separators that sit outside quoted values."""
    parts: list[str] = []
    current: list[str] = []
    quote: str | None = None
    escaped = False
    i = 0
    while i < len(filter_query):
        ch = filter_query[i]
        if quote:
            current.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\" and quote == '"':
                escaped = True
            elif ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
            current.append(ch)
        elif filter_query.startswith("&&", i):
            parts.append("".join(current).strip())
            current = []
            i += 2
            continue
        else:
            current.append(ch)
        i += 1
    parts.append("".join(current).strip())
    return parts


def parse_condition(comparison: str) -> tuple[str, str, str]:
    """Split ``field op "value"`` into its field, operator and unescaped value."""
    match = _COMPARISON_RE.match(comparison.strip())
    if not match:
        msg = f"Invalid filter syntax: {comparison}"
        raise ValueError(msg)

    field, op, double_quoted, single_quoted = match.groups()
    if op not in _SQL_OPERATORS:
        msg = f"Unsupported operator: {op}"
        raise ValueError(msg)
    if double_quoted is None:
        return field, op, single_quoted
    try:
        value = json.loads(f'"{double_quoted}"')
    except json.JSONDecodeError as e:
        msg = f"Invalid escape in filter value: {comparison}"
        raise ValueError(msg) from e
    return field, op, value


def parse_filter(filter_query: str) -> tuple[str, list[str | int | bool]]:
    """Parse filter syntax into a SQL WHERE clause and parameter list.

    Supports ``field = "value"`` comparisons (``= != > < >= <=``) joined with
    ``&&``. Values are always bound as parameters.
    """
    if not filter_query:
        return "", []

    conditions = []
    params: list[str | int | bool] = []

    for part in split_conditions(filter_query):
        field, op, value = parse_condition(part)
        conditions.append(f"{field} {op} ?")
        params.append(_parse_value(value))

    return " AND ".join(conditions), params


def parse_sort(sort: str) -> str:
    """Translate ``-field,+other`` sort syntax into an ORDER BY clause."""
    if not sort:
        return "id ASC"

    clauses = []
    for raw_field in sort.split(","):
        field = raw_field.strip()
        direction = "DESC" if field.startswith("-") else "ASC"
        field = field.lstrip("+-")
        if not re.match(r"^[A-Za-z_][A-Za-z0-9_]*$", field):
            logger.warning("Invalid sort parameter, using default", extra={"sort": sort})
            return "id ASC"
        clauses.append(f"{field} {direction}")
    return ", ".join(clauses)


_db_connections: dict[tuple[int, int, str], aiosqlite.Connection] = {}
_write_locks: dict[int, asyncio.Lock] = {}
_db_lock = asyncio.Lock()

# Connection of the transaction open in the current task, if any
_active_transaction: ContextVar[aiosqlite.Connection | None] = ContextVar("_active_transaction", default=None)


async def get_connection(*, db_path: str | None = None) -> aiosqlite.Connection:
    """Get or create a cached connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop = asyncio.get_running_loop()
    loop_id = id(loop)
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    cached_conn = _db_connections.get(cache_key)
    if cached_conn is not None:
        return cached_conn

    async with _db_lock:
        if cache_key in _db_connections:
            return _db_connections[cache_key]

        path.parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(str(path))
        conn.row_factory = aiosqlite.Row
        await conn.execute("PRAGMA foreign_keys = ON")
        await conn.execute("PRAGMA journal_mode = WAL")

        _db_connections[cache_key] = conn
        _write_locks[id(conn)] = asyncio.Lock()

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

    async with _db_lock:
        conn = _db_connections.pop(cache_key, None)
        if conn is None:
            return
        _write_locks.pop(id(conn), None)
        try:
            await conn.close()
        except aiosqlite.Error as e:
            logger.warning("Error closing SQLite connection", extra={"error": str(e), "db_path": str(path)})
            return

    logger.info("Closed SQLite connection", extra={"db_path": str(path)})


async def init_db(*, db_path: str | None = None) -> None:
    """Initialize the database schema."""
    from src.core.schema import init_db as init_schema

    await init_schema(db_path=db_path)


def _write_lock(conn: aiosqlite.Connection) -> asyncio.Lock:
    return _write_locks.setdefault(id(conn), asyncio.Lock())


@asynccontextmanager
async def transaction() -> AsyncIterator[None]:
    """Run the enclosed writes as one SQLite transaction.

    CRUD calls inside the block share the cached connection and skip their own
    commit. The block commits once on exit and rolls back if it raises. Nested
    blocks join the outer transaction.
    """
    if _active_transaction.get() is not None:
        yield
        return

    conn = await get_connection()
    async with _write_lock(conn):
        token = _active_transaction.set(conn)
        try:
            yield
            await conn.commit()
        except BaseException as e:
            try:
                await conn.rollback()
            except aiosqlite.Error as rollback_error:
                logger.error("transaction_rollback_failed", extra={"error": str(rollback_error)})
            if isinstance(e, aiosqlite.Error):
                msg = f"Failed to commit transaction: {e}"
                raise DatabaseError(msg) from e
            raise
        finally:
            _active_transaction.reset(token)


async def _execute_write(query: str, values: list[Any] | tuple[Any, ...]) -> aiosqlite.Cursor:
    """Execute a write, committing it unless a transaction is open."""
    conn = _active_transaction.get()
    if conn is not None:
        return await conn.execute(query, values)

    conn = await get_connection()
    async with _write_lock(conn):
        cursor = await conn.execute(query, values)
        await conn.commit()
        return cursor


def _is_row_id(record_id: Any) -> bool:
    text = str(record_id)
    return text.isascii() and text.isdigit()


def _row_to_record(row: aiosqlite.Row) -> dict[str, Any]:
    return _convert_record_ids(dict(row))


async def create_record(*, collection: str, data: dict[str, Any]) -> dict[str, Any]:
    """Insert a new record and return it with its assigned id."""
    _validate_collection_name(collection)
    try:
        columns = list(data.keys())
        columns_str = ", ".join(columns)
        placeholders_str = ", ".join("?" for _ in columns)
        values = [_to_db_value(data[key]) for key in columns]

        query = f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str})"  # noqa: S608 - collection is validated
        cursor = await _execute_write(query, values)
        record_id = cursor.lastrowid
    except aiosqlite.Error as e:
        logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to create record in {collection}: {e}"
        raise DatabaseError(msg) from e

    logger.info("Created record", extra={"collection": collection, "record_id": record_id})
    return await get_record(collection=collection, record_id=str(record_id))


async def get_record(*, collection: str, record_id: str) -> dict[str, Any]:
    """Fetch a single record by ID, raising RecordNotFoundError if not found."""
    _validate_collection_name(collection)
    if not _is_row_id(record_id):
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    try:
        conn = _active_transaction.get() or await get_connection()
        query = f"SELECT * FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (int(record_id),))
        row = await cursor.fetchone()
    except aiosqlite.Error as e:
        logger.error("get_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to get record from {collection}: {e}"
        raise DatabaseError(msg) from e

    if row is None:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    logger.debug("Retrieved record", extra={"collection": collection, "record_id": record_id})
    return _row_to_record(row)


async def update_record(
    *,
    collection: str,
    record_id: str,
    data: dict[str, Any],
    filter_query: str = "",
) -> dict[str, Any] | None:
    """Update a record by ID and return the updated record.

    When ``filter_query`` is given the update only applies if the stored row
    also matches it; None is returned when it does not.
    """
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    _validate_collection_name(collection)
    if not _is_row_id(record_id):
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    set_clause = ", ".join(f"{key} = ?" for key in data)
    values: list[Any] = [_to_db_value(val) for val in data.values()]
    values.append(int(record_id))

    where_clause = "id = ?"
    if filter_query:
        extra_where, extra_params = parse_filter(filter_query)
        where_clause = f"{where_clause} AND {extra_where}"
        values.extend(extra_params)

    try:
        query = f"UPDATE {collection} SET {set_clause} WHERE {where_clause}"  # noqa: S608 - collection is validated
        cursor = await _execute_write(query, values)
        rowcount = cursor.rowcount
    except aiosqlite.Error as e:
        logger.error("update_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to update record in {collection}: {e}"
        raise DatabaseError(msg) from e

    if rowcount == 0:
        if filter_query:
            # Distinguish "missing" from "guard did not match"
            await get_record(collection=collection, record_id=record_id)
            return None
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
    return await get_record(collection=collection, record_id=record_id)


async def delete_record(*, collection: str, record_id: str) -> None:
    """Delete a record by ID, raising RecordNotFoundError if not found."""
    _validate_collection_name(collection)
    if not _is_row_id(record_id):
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    try:
        query = f"DELETE FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await _execute_write(query, (int(record_id),))
    except aiosqlite.Error as e:
        logger.error("delete_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to delete record from {collection}: {e}"
        raise DatabaseError(msg) from e

    if cursor.rowcount == 0:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    logger.info("Deleted record", extra={"collection": collection, "record_id": record_id})


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

    where_clause = ""
    params: list[Any] = []
    if filter_query:
        where_sql, params = parse_filter(filter_query)
        where_clause = f"WHERE {where_sql}"

    order_by = parse_sort(sort)
    offset = (page - 1) * per_page
    params.extend([per_page, offset])

    try:
        conn = _active_transaction.get() or await get_connection()
        query = f"SELECT * FROM {collection} {where_clause} ORDER BY {order_by} LIMIT ? OFFSET ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
    except aiosqlite.Error as e:
        logger.error("list_records_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to list records from {collection}: {e}"
        raise DatabaseError(msg) from e

    records = [_row_to_record(row) for row in rows]
    logger.debug("Listed records", extra={"collection": collection, "count": len(records)})
    return records

