"""
Logging setup and the in-memory log collector shown on the admin console.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Deque, List, Optional

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_exception_formatter = logging.Formatter()


@dataclass(frozen=True)
class LogEntry:
    timestamp: datetime
    level: str
    message: str
    module: str


class LogCollector:
    """Thread-safe store of the most recent log entries."""

    def __init__(
        self,
        max_entries: int = 500,
    ) -> None:
        self.max_entries = max_entries
        self._entries: Deque[LogEntry] = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    def add_entry(
        self,
        level: str,
        message: str,
        module: Optional[str] = None,
    ) -> None:
        """
        Record a log entry, dropping the oldest one when full.

        @param level: Level name (e.g. "INFO")
        @param message: Formatted log message
        @param module: Originating logger name, "app" when missing
        """
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc),
            level=level,
            message=message,
            module=module or "app",
        )
        with self._lock:
            self._entries.append(entry)

    def get_entries(self) -> List[LogEntry]:
        """
        Get all stored entries.

        @return: List of entries, newest first
        """
        with self._lock:
            return list(reversed(self._entries))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class CollectorHandler(logging.Handler):
    """Logging handler that feeds a LogCollector."""

    def __init__(
        self,
        collector: LogCollector,
        level: int = logging.NOTSET,
    ) -> None:
        super().__init__(level)
        self.collector = collector

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = record.getMessage()
            if record.exc_info:
                message = f"{message}\n{_exception_formatter.formatException(record.exc_info)}"
            self.collector.add_entry(record.levelname, message, record.name)
        except Exception:
            self.handleError(record)


def setup_logging(
    level: str = "INFO",
    collector: Optional[LogCollector] = None,
) -> None:
    """
    Configure the root logger with a console handler and, optionally, a
    handler feeding the admin console collector.

    @param level: Root log level name
    @param collector: Collector to attach, or None
    """
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, force=True)

    if collector is not None:
        logging.getLogger().addHandler(CollectorHandler(collector))

    # aiohttp logs every request at INFO
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
