"""Minimal database session helper over SQLite and MySQL drivers."""

from sql_session.errors import (
    ConnectionFailedError,
    InvalidIdentifierError,
    SessionError,
    UnsupportedDriverError,
)
from sql_session.failure_log import DailyFileLog, FailureLog, MemoryFailureLog
from sql_session.session import RETRY_ATTEMPTS, DatabaseSession, FetchMode

__all__ = [
    "RETRY_ATTEMPTS",
    "ConnectionFailedError",
    "DailyFileLog",
    "DatabaseSession",
    "FailureLog",
    "FetchMode",
    "InvalidIdentifierError",
    "MemoryFailureLog",
    "SessionError",
    "UnsupportedDriverError",
]
