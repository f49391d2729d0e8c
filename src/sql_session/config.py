"""Environment-variable-based configuration."""

import os
from pathlib import Path


def get_dsn() -> str:
    """Return the data source name from SQLS_DSN."""
    return os.environ.get("SQLS_DSN", "sqlite::memory:")


def get_user() -> str:
    """Return the database user from SQLS_USER."""
    return os.environ.get("SQLS_USER", "")


def get_password() -> str:
    """Return the database password from SQLS_PASSWORD."""
    return os.environ.get("SQLS_PASSWORD", "")


def get_log_dir() -> Path:
    """Return the failure log directory from SQLS_LOG_DIR."""
    raw = os.environ.get("SQLS_LOG_DIR", "~/.local/state/sql_session/logs")
    return Path(raw).expanduser()


def get_log_level() -> str:
    """Return the logging level from SQLS_LOG_LEVEL."""
    return os.environ.get("SQLS_LOG_LEVEL", "WARNING")


def get_connect_timeout() -> int:
    """Return the connect timeout in seconds from SQLS_CONNECT_TIMEOUT."""
    return int(os.environ.get("SQLS_CONNECT_TIMEOUT", "10"))
