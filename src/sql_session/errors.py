"""Exceptions raised by the session layer.

Driver exceptions (``sqlite3.Error``, ``pymysql.err.MySQLError``) are never
wrapped in these; they propagate to the caller unchanged.
"""


class SessionError(Exception):
    """Base class for sql_session errors."""


class ConnectionFailedError(SessionError):
    """The initial connection could not be established."""


class InvalidIdentifierError(SessionError, ValueError):
    """A table or column name has no valid characters left after sanitizing."""


class UnsupportedDriverError(SessionError, ValueError):
    """The DSN is malformed or names a driver with no backend."""
