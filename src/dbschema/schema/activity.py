"""Per-call activity log.

Each public operation creates its own ``ActivityLog`` and returns its
entries inside the operation result, so concurrent callers never share
log state. Every entry is also forwarded to the standard ``logging``
logger of the component that produced it.

Usage:
    log = ActivityLog()
    log.info("Reading tables...")
    log.statement("ALTER TABLE [Users] ADD [Email] varchar(100) NULL;")
    result.log = log.entries
"""

import logging
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

LogLevel = Literal["info", "warning", "error", "statement"]

_LOGGING_LEVELS = {
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "statement": logging.DEBUG,
}


class LogEntry(BaseModel):
    """One step of an operation, successful or not."""

    level: LogLevel
    message: str
    sql: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ActivityLog:
    """Append-only list of ``LogEntry`` for a single operation call."""

    def __init__(self, logger_: logging.Logger | None = None) -> None:
        self._entries: list[LogEntry] = []
        self._logger = logger_ or logger

    @property
    def entries(self) -> list[LogEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def _add(self, level: LogLevel, message: str, sql: str | None = None) -> LogEntry:
        entry = LogEntry(level=level, message=message, sql=sql)
        self._entries.append(entry)
        if sql is None:
            self._logger.log(_LOGGING_LEVELS[level], message)
        else:
            self._logger.log(_LOGGING_LEVELS[level], "%s\n%s", message, sql)
        return entry

    def info(self, message: str) -> LogEntry:
        return self._add("info", message)

    def warning(self, message: str) -> LogEntry:
        return self._add("warning", message)

    def error(self, message: str) -> LogEntry:
        return self._add("error", message)

    def statement(self, sql: str, message: str = "Executing statement") -> LogEntry:
        """Record a statement before it is sent to the database."""
        return self._add("statement", message, sql=sql)
