"""Driver protocol: a thin abstraction over a blocking DB-API connection.

The session programs against these protocols. Each backend (SQLite,
MySQL, ...) provides a concrete implementation. Placeholder dialect
differences are handled inside the backend: session SQL always uses
``:name`` and ``?`` placeholders.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from sql_session.db.params import Param


@runtime_checkable
class Statement(Protocol):
    """A single prepared statement, executed once."""

    @property
    def rowcount(self) -> int:
        """Number of rows affected (or returned) by the execution."""
        ...

    @property
    def columns(self) -> list[str]:
        """Column names of the result set, empty for DML."""
        ...

    @property
    def column_count(self) -> int:
        """Number of columns in the result set."""
        ...

    def bind(self, placeholder: str | int, param: Param) -> None:
        """Bind a value by name or by 1-based position."""
        ...

    def execute(self) -> None:
        """Execute with the bound values."""
        ...

    def fetchone(self) -> tuple[Any, ...] | None:
        """Fetch the next row, or None if exhausted."""
        ...

    def fetchall(self) -> list[tuple[Any, ...]]:
        """Fetch all remaining rows."""
        ...

    def close_cursor(self) -> None:
        """Release the driver cursor."""
        ...


@runtime_checkable
class Connection(Protocol):
    """Blocking database connection.

    ``driver_errors`` lists the exception types the session treats as
    driver failures (logged, possibly retried, then re-raised).
    ``lost_connection_messages`` lists driver-specific message fragments
    that mean the server dropped the connection.
    """

    driver_errors: tuple[type[Exception], ...]
    lost_connection_messages: tuple[str, ...]
    quote_char: str

    def prepare(self, sql: str) -> Statement:
        """Compile a statement against this connection."""
        ...

    def begin(self) -> None:
        """Start a transaction."""
        ...

    def commit(self) -> None:
        """Commit the current transaction."""
        ...

    def rollback(self) -> None:
        """Roll back the current transaction."""
        ...

    def in_transaction(self) -> bool:
        """Return True while a transaction is open."""
        ...

    def last_insert_id(self) -> int | None:
        """Identifier generated by the last INSERT."""
        ...

    def close(self) -> None:
        """Close the connection."""
        ...


Connector = Callable[[], Connection]
"""Zero-argument factory that opens a new Connection or raises."""
