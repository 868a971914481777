"""Health source backed by a JSON export of the platform health store.

The platform store has no server-side API, so the device writes its records
to a JSON file and the companion reads them from there.  Expected layout::

    {
      "steps": [
        {"startTime": "2025-06-15T00:00:00Z", "endTime": "2025-06-16T00:00:00Z",
         "count": 8123, "dataOrigin": "com.sec.android.app.shealth"}
      ],
      "exerciseSessions": [
        {"id": "ex-1", "startTime": "...", "endTime": "...", "exerciseType": 56,
         "title": "Morning run", "dataOrigin": "com.sec.android.app.shealth"}
      ],
      "totalCaloriesBurned": [
        {"startTime": "...", "endTime": "...", "energyKcal": 312.5, "dataOrigin": "..."}
      ],
      "sleepSessions": [
        {"id": "sl-1", "startTime": "...", "endTime": "...", "dataOrigin": "...",
         "stages": [{"stage": 4, "startTime": "...", "endTime": "..."}]}
      ]
    }

Timestamps are ISO-8601 strings (naive values are taken as UTC) or epoch
milliseconds.  Each record kind has its own pure decode function.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from companion.health.base import (
    HealthSource,
    HealthStoreUnavailable,
    RawCalorieRecord,
    RawExerciseSession,
    RawRecord,
    RawSleepSession,
    RawSleepStage,
    RawStepRecord,
    RecordType,
)

logger = logging.getLogger("momentum.health.export")

_UNKNOWN_SOURCE = "unknown"


def parse_instant(value: object) -> datetime:
    """Parse an ISO-8601 string or epoch milliseconds into a tz-aware datetime.

    Raises:
        ValueError: If the value is missing or unparseable.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Invalid timestamp: {value!r}")
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    if isinstance(value, str):
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    raise ValueError(f"Invalid timestamp: {value!r}")


def _source(raw: dict) -> str:
    origin = raw.get("dataOrigin") or _UNKNOWN_SOURCE
    return str(origin)


# ---------------------------------------------------------------------------
# Per-kind decoders
# ---------------------------------------------------------------------------


def decode_steps(raw: dict) -> RawStepRecord:
    start = parse_instant(raw["startTime"])
    return RawStepRecord(
        start_time=start,
        end_time=parse_instant(raw.get("endTime", raw["startTime"])),
        count=int(raw["count"]),
        source_app=_source(raw),
    )


def decode_exercise_session(raw: dict) -> RawExerciseSession:
    start = parse_instant(raw["startTime"])
    return RawExerciseSession(
        record_id=str(raw.get("id") or f"exercise-{int(start.timestamp())}"),
        start_time=start,
        end_time=parse_instant(raw["endTime"]),
        exercise_type=int(raw.get("exerciseType", 0)),
        title=raw.get("title"),
        source_app=_source(raw),
    )


def decode_total_calories(raw: dict) -> RawCalorieRecord:
    start = parse_instant(raw["startTime"])
    return RawCalorieRecord(
        start_time=start,
        end_time=parse_instant(raw.get("endTime", raw["startTime"])),
        kilocalories=float(raw["energyKcal"]),
        source_app=_source(raw),
    )


def decode_sleep_session(raw: dict) -> RawSleepSession:
    start = parse_instant(raw["startTime"])
    stages = tuple(
        RawSleepStage(
            stage=int(stage.get("stage", 0)),
            start_time=parse_instant(stage["startTime"]),
            end_time=parse_instant(stage["endTime"]),
        )
        for stage in raw.get("stages") or []
    )
    return RawSleepSession(
        record_id=str(raw.get("id") or f"sleep-{int(start.timestamp())}"),
        start_time=start,
        end_time=parse_instant(raw["endTime"]),
        source_app=_source(raw),
        stages=stages,
    )


_DECODERS: dict[RecordType, Callable[[dict], RawRecord]] = {
    RecordType.STEPS: decode_steps,
    RecordType.EXERCISE_SESSION: decode_exercise_session,
    RecordType.TOTAL_CALORIES: decode_total_calories,
    RecordType.SLEEP_SESSION: decode_sleep_session,
}


def decode_record(record_type: RecordType, raw: dict) -> RawRecord:
    """Decode one export entry of the given kind.

    Raises:
        KeyError, TypeError, ValueError: If the entry is malformed.
    """
    return _DECODERS[record_type](raw)


# ---------------------------------------------------------------------------
# Source
# ---------------------------------------------------------------------------


class ExportHealthSource(HealthSource):
    """Read raw records from a health-store JSON export file.

    The file is re-read on every call so that each sync run sees the
    latest export.  Malformed entries are logged and skipped.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def is_available(self) -> bool:
        return self._path.is_file()

    def _load(self) -> dict[str, Any]:
        if not self.is_available():
            raise HealthStoreUnavailable(f"Health export not found: {self._path}")
        with self._path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise HealthStoreUnavailable(f"Health export is not a JSON object: {self._path}")
        return data

    async def read_records(
        self, record_type: RecordType, start: datetime, end: datetime
    ) -> list[RawRecord]:
        data = await asyncio.to_thread(self._load)
        entries = data.get(record_type.value) or []

        records: list[RawRecord] = []
        skipped = 0
        for entry in entries:
            try:
                record = decode_record(record_type, entry)
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                skipped += 1
                logger.warning("Skipping malformed %s entry: %s", record_type.value, exc)
                continue
            if start <= record.start_time < end:
                records.append(record)

        logger.debug(
            "Read %d %s record(s) in [%s, %s) (%d skipped)",
            len(records), record_type.value, start.isoformat(), end.isoformat(), skipped,
        )
        return records
