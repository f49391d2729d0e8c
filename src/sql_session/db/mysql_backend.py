"""MySQL / MariaDB implementation of the driver protocol.

Uses PyMySQL for blocking access. Session SQL uses ``:name`` and ``?``
placeholders. This backend translates them to ``%(name)s`` and ``%s``
at prepare time and doubles literal ``%`` signs, since PyMySQL formats
the query with the ``%`` operator.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

import pymysql
from pymysql.constants import SERVER_STATUS

from sql_session.db.params import Param

if TYPE_CHECKING:
    from pymysql.connections import Connection as PyMySQLConnection
    from pymysql.cursors import Cursor as PyMySQLCursor

    from sql_session.db.dsn import Dsn

logger = logging.getLogger(__name__)

# CR_SERVER_GONE_ERROR (2006), CR_SERVER_LOST (2013), ER_CLIENT_INTERACTION_TIMEOUT (4031)
LOST_CONNECTION_MESSAGES = (
    "server has gone away",
    "Lost connection to MySQL server",
    "disconnected by the server because of inactivity",
)

# Quoted literals are matched first so placeholders inside them are left alone
_TOKEN_RE = re.compile(
    r"""(?P<literal>'(?:[^'\\]|\\.|'')*'|"(?:[^"\\]|\\.)*"|`[^`]*`)"""
    r"""|(?<!:):(?P<name>[A-Za-z_][A-Za-z0-9_]*)"""
    r"""|(?P<positional>\?)"""
    r"""|(?P<percent>%)""",
    re.DOTALL,
)


def _translate_placeholders(sql: str) -> str:
    """Convert ``:name`` → ``%(name)s`` and ``?`` → ``%s`` for PyMySQL."""

    def _replace(match: re.Match[str]) -> str:
        if match.group("literal") is not None:
            return match.group("literal").replace("%", "%%")
        if match.group("name") is not None:
            return f"%({match.group('name')})s"
        if match.group("positional") is not None:
            return "%s"
        return "%%"

    return _TOKEN_RE.sub(_replace, sql)


def _placeholders(sql: str) -> tuple[set[str], int]:
    """Named placeholders and the number of ``?`` placeholders outside literals."""
    names: set[str] = set()
    positional = 0
    for match in _TOKEN_RE.finditer(sql):
        if match.group("name") is not None:
            names.add(match.group("name"))
        elif match.group("positional") is not None:
            positional += 1
    return names, positional


class MySQLStatement:
    """Collects bound values and runs them through a PyMySQL cursor."""

    def __init__(self, conn: PyMySQLConnection, sql: str) -> None:
        """Initialize with the owning connection and the SQL text."""
        self._conn = conn
        self._sql = _translate_placeholders(sql)
        self._names, self._positional_slots = _placeholders(sql)
        self._named: dict[str, Any] = {}
        self._positional: dict[int, Any] = {}
        self._cursor: PyMySQLCursor | None = None

    @property
    def sql(self) -> str:
        """The translated SQL text."""
        return self._sql

    @property
    def rowcount(self) -> int:
        """Rows affected by DML, or rows in the buffered result set."""
        if self._cursor is None:
            return 0
        return max(self._cursor.rowcount, 0)

    @property
    def columns(self) -> list[str]:
        """Column names of the result set."""
        if self._cursor is None or not self._cursor.description:
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
            raise pymysql.err.ProgrammingError("Cannot mix named and positional parameters")
        self._check_bound()
        args: dict[str, Any] | tuple[Any, ...]
        if self._positional:
            args = tuple(self._positional[i] for i in sorted(self._positional))
        else:
            args = self._named
        self._cursor = self._conn.cursor()
        self._cursor.execute(self._sql, args)

    def _check_bound(self) -> None:
        """Raise ProgrammingError for placeholders without a bound value."""
        missing = sorted(self._names - self._named.keys())
        if missing:
            raise pymysql.err.ProgrammingError(
                f"No value bound for placeholder(s): {', '.join(':' + n for n in missing)}"
            )
        if self._positional_slots != len(self._positional):
            raise pymysql.err.ProgrammingError(
                f"Statement has {self._positional_slots} positional placeholder(s), "
                f"{len(self._positional)} value(s) bound"
            )

    def fetchone(self) -> tuple[Any, ...] | None:
        """Fetch the next row, or None if exhausted."""
        if self._cursor is None:
            return None
        return self._cursor.fetchone()

    def fetchall(self) -> list[tuple[Any, ...]]:
        """Fetch all remaining rows."""
        if self._cursor is None:
            return []
        return list(self._cursor.fetchall())

    def close_cursor(self) -> None:
        """Close the cursor. A dead connection is not an error here."""
        if self._cursor is None:
            return
        try:
            self._cursor.close()
        except pymysql.err.MySQLError:
            logger.debug("Cursor close failed on a broken connection", exc_info=True)
        self._cursor = None


class MySQLConnection:
    """PyMySQL implementation of the Connection protocol.

    The connection runs in autocommit mode; ``begin()`` opens an explicit
    transaction. Transaction state is read from the server status flags
    of the last packet, so it stays accurate after a dropped connection.
    """

    driver_errors: tuple[type[Exception], ...] = (pymysql.err.MySQLError,)
    lost_connection_messages: tuple[str, ...] = LOST_CONNECTION_MESSAGES
    quote_char = "`"

    def __init__(self, conn: PyMySQLConnection) -> None:
        """Initialize with an open PyMySQL connection."""
        self._conn = conn

    @classmethod
    def open(
        cls, dsn: Dsn, user: str, password: str, *, connect_timeout: int = 10
    ) -> MySQLConnection:
        """Connect to the server described by ``dsn``."""
        conn = pymysql.connect(
            host=dsn.host,
            port=dsn.port,
            user=user,
            password=password,
            database=dsn.dbname,
            charset=dsn.charset,
            unix_socket=dsn.unix_socket,
            autocommit=True,
            connect_timeout=connect_timeout,
        )
        logger.debug("Connected to MySQL %s:%s/%s", dsn.host, dsn.port, dsn.dbname)
        return cls(conn)

    def prepare(self, sql: str) -> MySQLStatement:
        """Create a statement with translated placeholders."""
        return MySQLStatement(self._conn, sql)

    def begin(self) -> None:
        """Start a transaction."""
        self._conn.begin()

    def commit(self) -> None:
        """Commit the current transaction."""
        self._conn.commit()

    def rollback(self) -> None:
        """Roll back the current transaction."""
        self._conn.rollback()

    def in_transaction(self) -> bool:
        """Return True while the server reports an open transaction."""
        return bool(self._conn.server_status & SERVER_STATUS.SERVER_STATUS_IN_TRANS)

    def last_insert_id(self) -> int | None:
        """AUTO_INCREMENT value generated by the last INSERT."""
        return self._conn.insert_id()

    def close(self) -> None:
        """Close the connection if the socket is still open."""
        if self._conn.open:
            self._conn.close()
