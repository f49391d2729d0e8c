"""PDO-style data source names.

``mysql:host=db;port=3306;dbname=app;charset=utf8mb4``
``sqlite:/var/lib/app.db``
``sqlite::memory:``
"""

from enum import StrEnum

from pydantic import BaseModel, Field, ValidationError

from sql_session.errors import UnsupportedDriverError


class Driver(StrEnum):
    """Drivers with a backend in sql_session.db."""

    MYSQL = "mysql"
    SQLITE = "sqlite"


class Dsn(BaseModel):
    """A parsed data source name."""

    driver: Driver
    host: str = "localhost"
    port: int = Field(default=3306, gt=0, lt=65536)
    dbname: str | None = None
    charset: str = "utf8mb4"
    unix_socket: str | None = None
    path: str | None = None


_MYSQL_KEYS = {"host", "port", "dbname", "charset", "unix_socket"}


def parse_dsn(dsn: str) -> Dsn:
    """Parse a PDO-style DSN. Raises UnsupportedDriverError."""
    prefix, sep, rest = dsn.partition(":")
    if not sep:
        raise UnsupportedDriverError(f"Malformed DSN (missing driver prefix): {dsn!r}")
    try:
        driver = Driver(prefix.strip().lower())
    except ValueError:
        raise UnsupportedDriverError(f"Unsupported database driver: {prefix!r}") from None

    if driver is Driver.SQLITE:
        if not rest:
            raise UnsupportedDriverError("SQLite DSN needs a path or :memory:")
        return Dsn(driver=driver, path=rest)

    fields: dict[str, str] = {}
    for part in rest.split(";"):
        if not part.strip():
            continue
        key, eq, value = part.partition("=")
        key = key.strip().lower()
        if not eq or key not in _MYSQL_KEYS:
            raise UnsupportedDriverError(f"Unrecognized DSN option: {part!r}")
        fields[key] = value.strip()
    try:
        return Dsn(driver=driver, **fields)  # type: ignore[arg-type]
    except ValidationError as e:
        raise UnsupportedDriverError(f"Invalid DSN {dsn!r}: {e}") from e
