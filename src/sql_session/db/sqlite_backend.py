"""SQLite implementation of the driver protocol.

Thin wrapper around a ``sqlite3.Connection`` opened in autocommit mode.
No SQL translation is needed since sqlite3 accepts ``:name`` and ``?``
placeholders natively.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Any

from sql_session.db.params import Param

logger = logging.getLogger(__name__)


class SQLiteStatement:
    """Collects bound values and runs them through a sqlite3 cursor."""

    def __init__(self, conn: sqlite3.Connection, sql: str) -> None:
        """Initialize with the owning connection and the SQL text."""
        self._conn = conn
        self._sql = sql
        self._named: dict[str, Any] = {}
        self._positional: dict[int, Any] = {}
        self._cursor: sqlite3.Cursor | None = None
        self._fetched = 0

    @property
    def rowcount(self) -> int:
        """Rows affected by DML, or rows fetched so far for queries.

        sqlite3 reports -1 for SELECT, so the fetched count stands in.
        """
        if self._cursor is None:
            return 0
        if self._cursor.description is not None:
            return self._fetched
        return max(self._cursor.rowcount, 0)

    @property
    def columns(self) -> list[str]:
        """Column names of the result set."""
        if self._cursor is None or self._cursor.description is None:
            return []
        return [d[0] for d in self._cursor.description]

    @property
    def column_count(self) -> int:
        """Number of columns in the result set."""
        return len(self.columns)

    def bind(self, placeholder: str | int, param: Param) -> None:
        """Bind by name, or by 1-based position for integers."""
        if isinstance(placeholder, int):
            self._positional[placeholder] = param.driver_value
        else:
            self._named[placeholder] = param.driver_value

    def execute(self) -> None:
        """Execute the statement with everything bound so far."""
        if self._named and self._positional:
            raise sqlite3.ProgrammingError("Cannot mix named and positional parameters")
        params: dict[str, Any] | list[Any]
        if self._positional:
            params = [self._positional[i] for i in sorted(self._positional)]
        else:
            params = self._named
        self._cursor = self._conn.execute(self._sql, params)

    def fetchone(self) -> tuple[Any, ...] | None:
        """Fetch the next row, or None if exhausted."""
        if self._cursor is None:
            return None
        row = self._cursor.fetchone()
        if row is not None:
            self._fetched += 1
        return row

    def fetchall(self) -> list[tuple[Any, ...]]:
        """Fetch all remaining rows."""
        if self._cursor is None:
            return []
        rows = self._cursor.fetchall()
        self._fetched += len(rows)
        return rows

    def close_cursor(self) -> None:
        """Close the underlying cursor."""
        if self._cursor is not None:
            self._cursor.close()


class SQLiteConnection:
    """SQLite implementation of the Connection protocol."""

    driver_errors: tuple[type[Exception], ...] = (sqlite3.Error,)
    lost_connection_messages: tuple[str, ...] = ()
    quote_char = '"'

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialize with an open sqlite3 connection."""
        self._conn = conn

    @classmethod
    def open(cls, path: str) -> SQLiteConnection:
        """Open a database file (or ``:memory:``) in autocommit mode."""
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(path, isolation_level=None)
        conn.execute("PRAGMA foreign_keys=ON")
        logger.debug("Opened SQLite database %s", path)
        return cls(conn)

    def prepare(self, sql: str) -> SQLiteStatement:
        """Create a statement. sqlite3 compiles lazily on execute."""
        return SQLiteStatement(self._conn, sql)

    def begin(self) -> None:
        """Start a transaction."""
        self._conn.execute("BEGIN")

    def commit(self) -> None:
        """Commit the current transaction."""
        self._conn.execute("COMMIT")

    def rollback(self) -> None:
        """Roll back the current transaction."""
        self._conn.execute("ROLLBACK")

    def in_transaction(self) -> bool:
        """Return True while a transaction is open."""
        try:
            return self._conn.in_transaction
        except sqlite3.ProgrammingError:
            # Closed connection
            return False

    def last_insert_id(self) -> int | None:
        """Rowid of the last inserted row on this connection."""
        row = self._conn.execute("SELECT last_insert_rowid()").fetchone()
        return row[0] if row else None

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
