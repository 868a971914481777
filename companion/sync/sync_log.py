"""Bounded append-only sync log stored as newline-delimited JSON.

One ``SyncLogEntry`` per line, oldest first on disk.  After every append the
file is trimmed to the ``MAX_ENTRIES`` most recent lines.
"""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ValidationError

logger = logging.getLogger("momentum.sync.log")

MAX_ENTRIES = 200
DEFAULT_RECENT_COUNT = 50

PERIODIC_SYNC = "PERIODIC_SYNC"
INITIAL_IMPORT = "INITIAL_IMPORT"

SUCCESS = "SUCCESS"
RETRY = "RETRY"
ERROR = "ERROR"

LogType = Literal["PERIODIC_SYNC", "INITIAL_IMPORT"]
LogStatus = Literal["SUCCESS", "RETRY", "ERROR"]


class SyncLogEntry(BaseModel):
    """One sync outcome.

    Attributes:
        timestamp: Epoch milliseconds when the outcome was recorded.
        type:      PERIODIC_SYNC or INITIAL_IMPORT.
        status:    SUCCESS, RETRY or ERROR.
        message:   Human-readable summary.
    """

    timestamp: int
    type: LogType
    status: LogStatus
    message: str


class SyncLogRepository:
    """Read and write the sync log file.

    Usage::

        log = SyncLogRepository(settings.sync_log_path)
        log.log(PERIODIC_SYNC, SUCCESS, "Synced 2 days, 1 activities, 1 sleep sessions")
        for entry in log.recent():
            print(entry.message)
    """

    def __init__(self, path: Path, max_entries: int = MAX_ENTRIES) -> None:
        self._path = Path(path)
        self._max_entries = max_entries
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def log(
        self,
        log_type: LogType,
        status: LogStatus,
        message: str,
        timestamp: int | None = None,
    ) -> SyncLogEntry:
        """Append one entry and trim the file to the most recent entries."""
        entry = SyncLogEntry(
            timestamp=timestamp if timestamp is not None else int(time.time() * 1000),
            type=log_type,
            status=status,
            message=message,
        )
        with self._lock:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as fh:
                fh.write(entry.model_dump_json() + "\n")
            self._trim()

        log_fn = logger.info if status == SUCCESS else logger.warning
        log_fn("[%s] %s: %s", log_type, status, message)
        return entry

    def _trim(self) -> None:
        lines = self._read_lines()
        if len(lines) <= self._max_entries:
            return
        kept = lines[-self._max_entries:]
        self._path.write_text("\n".join(kept) + "\n", encoding="utf-8")
        logger.debug("Trimmed sync log to %d entries", len(kept))

    def _read_lines(self) -> list[str]:
        if not self._path.is_file():
            return []
        text = self._path.read_text(encoding="utf-8")
        return [line for line in text.splitlines() if line.strip()]

    def recent(self, count: int = DEFAULT_RECENT_COUNT) -> list[SyncLogEntry]:
        """Return up to ``count`` entries, newest first.  Bad lines are skipped."""
        with self._lock:
            lines = self._read_lines()

        entries: list[SyncLogEntry] = []
        for line in reversed(lines):
            if len(entries) >= count:
                break
            try:
                entries.append(SyncLogEntry.model_validate_json(line))
            except ValidationError:
                logger.debug("Skipping unparseable sync log line: %.80s", line)
        return entries

    def clear(self) -> None:
        with self._lock:
            self._path.unlink(missing_ok=True)
        logger.info("Cleared sync log %s", self._path)
