"""Failure log sinks: an audit trail of every failed statement.

The session only needs ``append``; the file-backed sink writes one file
per calendar day and creates its directory on the first entry.
"""

from datetime import datetime
from pathlib import Path
from typing import Protocol, runtime_checkable


@runtime_checkable
class FailureLog(Protocol):
    """Sink for failure entries."""

    def append(self, message: str) -> None:
        """Record one entry."""
        ...


class DailyFileLog:
    """Appends timestamped entries to ``<directory>/db-YYYY-MM-DD.log``."""

    def __init__(self, directory: Path | str) -> None:
        """Initialize with the log directory. Nothing is created yet."""
        self.directory = Path(directory)

    def path_for(self, when: datetime) -> Path:
        """Log file for the calendar day of ``when``."""
        return self.directory / f"db-{when:%Y-%m-%d}.log"

    def append(self, message: str) -> None:
        """Append one entry, creating the directory on first use."""
        now = datetime.now()
        self.directory.mkdir(parents=True, exist_ok=True)
        with self.path_for(now).open("a", encoding="utf-8") as f:
            f.write(f"[{now:%Y-%m-%d %H:%M:%S}] {message}\n")


class MemoryFailureLog:
    """Keeps entries in a list."""

    def __init__(self) -> None:
        self.entries: list[str] = []

    def append(self, message: str) -> None:
        self.entries.append(message)
