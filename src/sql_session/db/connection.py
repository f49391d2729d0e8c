"""Connection creation, dispatched on the DSN driver."""

import logging
from functools import partial

from sql_session.config import get_connect_timeout
from sql_session.db.backend import Connection, Connector
from sql_session.db.dsn import Driver, Dsn, parse_dsn
from sql_session.db.sqlite_backend import SQLiteConnection
from sql_session.errors import UnsupportedDriverError

logger = logging.getLogger(__name__)


def create_connection(dsn: str, user: str = "", password: str = "") -> Connection:
    """Open a connection for a PDO-style DSN.

    Raises UnsupportedDriverError for unknown drivers, and whatever the
    driver raises when the server can't be reached.
    """
    parsed = parse_dsn(dsn)
    logger.debug("Opening %s connection", parsed.driver)
    if parsed.driver is Driver.SQLITE:
        return _create_sqlite(parsed)
    return _create_mysql(parsed, user, password)


def connector_for(dsn: str, user: str = "", password: str = "") -> Connector:
    """Return a zero-argument factory that opens a fresh connection each call."""
    # Parse eagerly so a bad DSN fails before any connect attempt
    parse_dsn(dsn)
    return partial(create_connection, dsn, user, password)


def _create_sqlite(dsn: Dsn) -> Connection:
    """Open a SQLite database file or an in-memory database."""
    if dsn.path is None:
        raise UnsupportedDriverError("SQLite DSN needs a path or :memory:")
    return SQLiteConnection.open(dsn.path)


def _create_mysql(dsn: Dsn, user: str, password: str) -> Connection:
    """Connect to MySQL / MariaDB with PyMySQL."""
    from sql_session.db.mysql_backend import MySQLConnection

    return MySQLConnection.open(dsn, user, password, connect_timeout=get_connect_timeout())
