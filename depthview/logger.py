"""Console and daily-rotating file logging for the application."""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timedelta
from pathlib import Path

_LEVEL_TAGS = (
    (logging.CRITICAL, "[Fatal]"),
    (logging.ERROR, "[Critical]"),
    (logging.WARNING, "[Warning]"),
    (logging.INFO, "[Info]"),
)
_HISTORY_DAYS = 7


def _level_tag(levelno: int) -> str:
    for threshold, tag in _LEVEL_TAGS:
        if levelno >= threshold:
            return tag
    return "[Debug]"


def format_log_line(levelno: int, message: str, when: datetime) -> str:
    """Render one log line: timestamp, right-aligned level tag and message."""
    stamp = when.strftime("%Y-%m-%d %H:%M:%S:") + f"{when.microsecond // 1000:03d}"
    return f"{stamp} {_level_tag(levelno):>10} : {message}"


class DailyFileLogHandler(logging.Handler):
    """Prints each record and appends it to ``<root>/<prefix>.<yyyymmdd>.log``."""

    def __init__(self, root_dir: str | os.PathLike, prefix: str) -> None:
        super().__init__()
        if not str(root_dir):
            raise ValueError("a log directory must be given")
        self.root_dir = Path(root_dir)
        self.prefix = prefix
        self._file = None
        self.root_dir.mkdir(parents=True, exist_ok=True)
        self.delete_history()

    @property
    def log_path(self) -> Path | None:
        """Path of the file currently written to, once one is open."""
        return Path(self._file.name) if self._file is not None else None

    def emit(self, record: logging.LogRecord) -> None:
        try:
            when = datetime.fromtimestamp(record.created)
            line = format_log_line(record.levelno, record.getMessage(), when)
            print(line, file=sys.stdout)
            if self._file is None:
                path = self.root_dir / f"{self.prefix}.{when:%Y%m%d}.log"
                self._file = open(path, "a", encoding="utf-8")
            self._file.write(line + "\n")
            self._file.flush()
        except Exception:
            self.handleError(record)

    def delete_history(self, now: datetime | None = None) -> list[Path]:
        """Remove this prefix's log files dated more than a week before ``now``."""
        now = now if now is not None else datetime.now()
        end_day = (now - timedelta(days=_HISTORY_DAYS)).strftime("%Y%m%d")
        removed = []
        for path in sorted(self.root_dir.glob(f"{self.prefix}.*.log")):
            parts = path.name.split(".")
            if len(parts) == 3 and len(parts[1]) == 8 and parts[1] < end_day:
                path.unlink()
                removed.append(path)
        return removed

    def close(self) -> None:
        self.acquire()
        try:
            if self._file is not None:
                self._file.flush()
                self._file.close()
                self._file = None
        finally:
            self.release()
        super().close()


def install_logger(root_dir: str | os.PathLike, prefix: str) -> DailyFileLogHandler:
    """Attach a daily file handler to the root logger and return it."""
    handler = DailyFileLogHandler(root_dir, prefix)
    logging.getLogger().addHandler(handler)
    return handler