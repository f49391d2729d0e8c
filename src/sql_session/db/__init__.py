"""Driver protocols, backends and parameter handling."""

from sql_session.db.backend import Connection, Connector, Statement
from sql_session.db.connection import connector_for, create_connection
from sql_session.db.params import (
    BindKind,
    Param,
    build_params,
    quote_identifier,
    sanitize_identifier,
)
from sql_session.db.sqlite_backend import SQLiteConnection

__all__ = [
    "BindKind",
    "Connection",
    "Connector",
    "Param",
    "SQLiteConnection",
    "Statement",
    "build_params",
    "connector_for",
    "create_connection",
    "quote_identifier",
    "sanitize_identifier",
]
