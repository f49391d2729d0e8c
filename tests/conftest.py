"""Shared test fixtures."""

import pytest

from sql_session.failure_log import MemoryFailureLog
from sql_session.session import DatabaseSession

GONE_AWAY = "SQLSTATE[HY000]: General error: 2006 MySQL server has gone away"


class FakeDriverError(Exception):
    """Stands in for a driver exception class."""


class FakeStatement:
    """Records binds and replays the rows configured on its connection."""

    def __init__(self, conn, sql: str):
        self.conn = conn
        self.sql = sql
        self.bound = {}
        self.executed = False
        self.closed = False
        self._rows = list(conn.rows)

    @property
    def rowcount(self) -> int:
        return self.conn.rowcount

    @property
    def columns(self) -> list[str]:
        return list(self.conn.columns)

    @property
    def column_count(self) -> int:
        return len(self.conn.columns)

    def bind(self, placeholder, param) -> None:
        self.bound[placeholder] = param

    def execute(self) -> None:
        if self.conn.errors:
            raise self.conn.errors.pop(0)
        self.executed = True

    def fetchone(self):
        return self._rows.pop(0) if self._rows else None

    def fetchall(self):
        rows, self._rows = self._rows, []
        return rows

    def close_cursor(self) -> None:
        self.closed = True


class FakeConnection:
    """Controllable fake connection.

    ``errors`` is a queue of exceptions raised by successive executes and
    survives reconnects, so a test can script a failure sequence.
    """

    driver_errors = (FakeDriverError,)
    lost_connection_messages: tuple[str, ...] = ()
    quote_char = "`"

    def __init__(self, rows=None, columns=None, rowcount: int = 0, insert_id=None):
        self.rows = rows or []
        self.columns = columns or []
        self.rowcount = rowcount
        self.insert_id = insert_id
        self.errors: list[Exception] = []
        self.tx_error: Exception | None = None
        self.prepared: list[FakeStatement] = []
        self.calls: list[str] = []
        self.in_tx = False
        self.close_count = 0

    def prepare(self, sql: str) -> FakeStatement:
        stmt = FakeStatement(self, sql)
        self.prepared.append(stmt)
        return stmt

    def _tx_call(self, name: str) -> None:
        self.calls.append(name)
        if self.tx_error is not None:
            raise self.tx_error

    def begin(self) -> None:
        self._tx_call("begin")
        self.in_tx = True

    def commit(self) -> None:
        self._tx_call("commit")
        self.in_tx = False

    def rollback(self) -> None:
        self._tx_call("rollback")
        self.in_tx = False

    def in_transaction(self) -> bool:
        return self.in_tx

    def last_insert_id(self):
        return self.insert_id

    def close(self) -> None:
        self.close_count += 1


class FakeConnector:
    """Hands out the same FakeConnection on every call, or fails."""

    def __init__(self, conn: FakeConnection, fail: bool = False):
        self.conn = conn
        self.fail = fail
        self.calls = 0

    def __call__(self) -> FakeConnection:
        self.calls += 1
        if self.fail:
            raise FakeDriverError("Connection refused")
        return self.conn


@pytest.fixture
def fake_conn():
    """Fake connection with no rows configured."""
    return FakeConnection()


@pytest.fixture
def connector(fake_conn):
    """Connector returning the fake connection."""
    return FakeConnector(fake_conn)


@pytest.fixture
def failure_log():
    """In-memory failure log."""
    return MemoryFailureLog()


@pytest.fixture
def session(connector, failure_log):
    """Session over the fake connection."""
    db = DatabaseSession("fake:", connector=connector, failure_log=failure_log)
    yield db
    db.close()


@pytest.fixture
def sqlite_db(failure_log):
    """In-memory SQLite session with a users table."""
    db = DatabaseSession("sqlite::memory:", failure_log=failure_log)
    db.query(
        """CREATE TABLE users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            active INTEGER NOT NULL DEFAULT 1,
            score REAL
        )"""
    )
    yield db
    db.close()
