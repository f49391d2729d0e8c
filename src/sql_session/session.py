"""Database session: one connection, one statement at a time.

Every data operation goes through ``_execute``: expand parameters,
prepare, bind, execute. A "server has gone away" failure outside a
transaction reconnects and runs the statement again, at most
``RETRY_ATTEMPTS`` times in a row. Every driver failure is written to the
failure log with its SQL and parameters before anything else happens.
"""

from __future__ import annotations

import json
import logging
import weakref
from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from sql_session.config import get_log_dir
from sql_session.db.backend import Connection, Connector, Statement
from sql_session.db.connection import connector_for
from sql_session.db.params import Params, build_params, quote_identifier, sanitize_identifier
from sql_session.errors import ConnectionFailedError, InvalidIdentifierError
from sql_session.failure_log import DailyFileLog, FailureLog

logger = logging.getLogger(__name__)

RETRY_ATTEMPTS = 3
LOST_CONNECTION_MESSAGE = "server has gone away"

_READ_KEYWORDS = frozenset({"select", "show"})
_WRITE_KEYWORDS = frozenset({"insert", "update", "delete"})


class FetchMode(StrEnum):
    """Row shape returned by read operations."""

    ASSOC = "assoc"  # dict keyed by column name
    NUM = "num"  # tuple in column order


class _Handles:
    """Driver handles owned by a session.

    Kept apart from the session so the finalizer can release them
    without holding a reference to the session itself.
    """

    def __init__(self) -> None:
        self.conn: Connection | None = None
        self.stmt: Statement | None = None

    def release(self) -> None:
        try:
            if self.stmt is not None:
                stmt, self.stmt = self.stmt, None
                stmt.close_cursor()
        finally:
            if self.conn is not None:
                conn, self.conn = self.conn, None
                conn.close()


def _sanitize_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Map field keys to sanitized column names, rejecting keys that collide."""
    columns: dict[str, Any] = {}
    for key, value in fields.items():
        column = sanitize_identifier(key)
        if column in columns:
            raise InvalidIdentifierError(f"Field {key!r} duplicates column {column!r}")
        columns[column] = value
    return columns


def _json_default(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=repr)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _serialize_params(params: Params | None) -> str:
    if params is None:
        payload: Any = {}
    elif isinstance(params, Mapping):
        payload = dict(params)
    else:
        payload = list(params)
    return json.dumps(payload, ensure_ascii=False, default=_json_default)


class DatabaseSession:
    """A single database connection with convenience query helpers.

    Not safe for concurrent use; callers serialize access. Use as a
    context manager, call ``close()``, or let garbage collection release
    the connection.
    """

    def __init__(
        self,
        dsn: str,
        user: str = "",
        password: str = "",
        *,
        connector: Connector | None = None,
        failure_log: FailureLog | None = None,
        retry_attempts: int = RETRY_ATTEMPTS,
    ) -> None:
        """Connect immediately. Raises ConnectionFailedError on failure."""
        self.dsn = dsn
        self.row_count = 0
        self.column_count = 0
        self._connector = connector or connector_for(dsn, user, password)
        self._failure_log = failure_log if failure_log is not None else DailyFileLog(get_log_dir())
        self._retry_attempts = retry_attempts
        self._retry_attempt = 0
        self._handles = _Handles()
        self._finalizer = weakref.finalize(self, self._handles.release)

        conn = self._connect()
        if conn is None:
            raise ConnectionFailedError("Database connection failed (please check the logs).")
        self._quote_char = conn.quote_char

    def __enter__(self) -> DatabaseSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -- Connection lifecycle --

    @property
    def connected(self) -> bool:
        """True while a connection is open."""
        return self._handles.conn is not None

    def _connect(self) -> Connection | None:
        """Open a connection. Failures are logged, not raised."""
        try:
            self._handles.conn = self._connector()
        except Exception as e:
            self._log_exception(e, "Connection failed")
            return None
        logger.debug("Connected to %s", self.dsn)
        return self._handles.conn

    def reconnect(self) -> bool:
        """Close and open a fresh connection. Returns False if that failed."""
        self.close()
        return self._connect() is not None

    def close(self) -> None:
        """Release the live statement and the connection. Safe to repeat."""
        self._handles.release()

    # -- Execution --

    def _execute(self, query: str, params: Params | None = None) -> Statement | None:
        """Prepare, bind and execute. Returns None when there is no connection."""
        if self._handles.conn is None and self._connect() is None:
            return None
        sql, bound = build_params(query, params)

        while True:
            conn = self._handles.conn or self._connect()
            if conn is None:
                return None

            self._handles.stmt = None
            try:
                stmt = conn.prepare(sql)
                self._handles.stmt = stmt
                for key, param in bound.items():
                    stmt.bind(key + 1 if isinstance(key, int) else key, param)
                stmt.execute()
            except conn.driver_errors as e:
                self._record_failure(e, query, params)
                if not self._should_retry(conn, e):
                    self._retry_attempt = 0
                    raise
                self._retry_attempt += 1
                logger.warning(
                    "Lost connection, reconnecting (attempt %d of %d)",
                    self._retry_attempt,
                    self._retry_attempts,
                )
                if not self.reconnect():
                    self._retry_attempt = 0
                    return None
                continue

            self._retry_attempt = 0
            return stmt

    def _should_retry(self, conn: Connection, error: Exception) -> bool:
        message = str(error)
        markers = (LOST_CONNECTION_MESSAGE, *conn.lost_connection_messages)
        return (
            self._retry_attempt < self._retry_attempts
            and any(marker in message for marker in markers)
            and not self.in_transaction()
        )

    def _finish(self, stmt: Statement) -> None:
        self.row_count = stmt.rowcount
        self.column_count = stmt.column_count
        stmt.close_cursor()
        self._handles.stmt = None

    @staticmethod
    def _shape(stmt: Statement, row: tuple[Any, ...], fetch_mode: FetchMode) -> Any:
        if fetch_mode is FetchMode.NUM:
            return tuple(row)
        return dict(zip(stmt.columns, row, strict=False))

    # -- Reads --

    def query(
        self,
        query: str,
        params: Params | None = None,
        fetch_mode: FetchMode = FetchMode.ASSOC,
    ) -> Any:
        """Run any statement.

        SELECT / SHOW return all rows; INSERT / UPDATE / DELETE return the
        affected-row count; anything else returns None.
        """
        words = query.split(None, 1)
        query_type = words[0].lower() if words else ""

        stmt = self._execute(query, params)
        if stmt is None:
            return None

        result: Any = None
        if query_type in _READ_KEYWORDS:
            result = [self._shape(stmt, row, fetch_mode) for row in stmt.fetchall()]
        elif query_type in _WRITE_KEYWORDS:
            result = stmt.rowcount

        self._finish(stmt)
        return result

    def row(
        self,
        query: str,
        params: Params | None = None,
        fetch_mode: FetchMode = FetchMode.ASSOC,
    ) -> Any:
        """Return the first row, or None."""
        stmt = self._execute(query, params)
        if stmt is None:
            return None
        first = stmt.fetchone()
        result = self._shape(stmt, first, fetch_mode) if first is not None else None
        self._finish(stmt)
        return result

    def column(self, query: str, params: Params | None = None) -> list[Any] | None:
        """Return the first column of every row."""
        stmt = self._execute(query, params)
        if stmt is None:
            return None
        result = [row[0] for row in stmt.fetchall()]
        self._finish(stmt)
        return result

    def single(self, query: str, params: Params | None = None) -> Any:
        """Return the first column of the first row, or None."""
        stmt = self._execute(query, params)
        if stmt is None:
            return None
        first = stmt.fetchone()
        self._finish(stmt)
        return first[0] if first else None

    # -- Writes --

    def _quote(self, identifier: str) -> str:
        return quote_identifier(identifier, self._quote_char)

    def insert(self, table: str, fields: Mapping[str, Any]) -> int | bool:
        """Insert one row. Returns the generated id, or False if nothing was inserted."""
        if not fields:
            return False

        table_sql = self._quote(table)
        values = _sanitize_fields(fields)
        columns = ", ".join(self._quote(column) for column in values)
        placeholders = ", ".join(f":{column}" for column in values)
        query = f"INSERT INTO {table_sql} ({columns}) VALUES ({placeholders})"

        row_count = self.query(query, values)
        if not row_count:
            return False
        last_id = self.last_insert_id()
        return int(last_id) if last_id is not None else False

    def update(
        self,
        table: str,
        fields: Mapping[str, Any],
        where: str,
        where_params: Mapping[str, Any] | None = None,
    ) -> int:
        """Update matching rows. Returns the affected-row count.

        SET values bind as ``:set_<column>`` so WHERE placeholders with the
        same column name don't collide.
        """
        if not fields:
            return 0

        table_sql = self._quote(table)
        set_parts = []
        params: dict[str, Any] = {}
        for column, value in _sanitize_fields(fields).items():
            set_parts.append(f"{self._quote(column)} = :set_{column}")
            params[f"set_{column}"] = value
        params.update(where_params or {})

        query = f"UPDATE {table_sql} SET {', '.join(set_parts)} WHERE {where}"
        return int(self.query(query, params) or 0)

    def delete(self, table: str, where: str, where_params: Mapping[str, Any] | None = None) -> int:
        """Delete matching rows. Returns the affected-row count."""
        query = f"DELETE FROM {self._quote(table)} WHERE {where}"
        return int(self.query(query, where_params or {}) or 0)

    # -- Transactions --

    def begin(self) -> bool:
        """Start a transaction. False when there is no connection or the driver fails."""
        conn = self._handles.conn
        if conn is None:
            return False
        try:
            conn.begin()
        except conn.driver_errors as e:
            self._log_exception(e, "Failed to begin transaction")
            return False
        return True

    def commit(self) -> bool:
        """Commit the open transaction. False if none is open or the driver fails."""
        conn = self._handles.conn
        if conn is None or not conn.in_transaction():
            return False
        try:
            conn.commit()
        except conn.driver_errors as e:
            self._log_exception(e, "Failed to commit transaction")
            return False
        return True

    def rollback(self) -> bool:
        """Roll back the open transaction. False if none is open or the driver fails."""
        conn = self._handles.conn
        if conn is None or not conn.in_transaction():
            return False
        try:
            conn.rollback()
        except conn.driver_errors as e:
            self._log_exception(e, "Failed to rollback transaction")
            return False
        return True

    def in_transaction(self) -> bool:
        """True while a transaction is open."""
        conn = self._handles.conn
        return conn.in_transaction() if conn is not None else False

    def last_insert_id(self) -> int | None:
        """Identifier generated by the last INSERT, or None without a connection."""
        conn = self._handles.conn
        return conn.last_insert_id() if conn is not None else None

    # -- Failure logging --

    def _record_failure(self, error: Exception, query: str, params: Params | None) -> None:
        logger.warning("Query failed: %s", error)
        self._append_failure(f"{error}\nSQL: {query}\nPARAMS: {_serialize_params(params)}")

    def _log_exception(self, error: Exception, context: str) -> None:
        logger.warning("%s: %s", context, error)
        self._append_failure(f"[{context}] {error}")

    def _append_failure(self, entry: str) -> None:
        # Sink failures are logged, never raised
        try:
            self._failure_log.append(entry)
        except OSError:
            logger.exception("Could not write to the failure log")
