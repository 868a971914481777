"""Read and reconcile health-store data over a local date range."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, tzinfo

from companion.health.base import (
    HealthSource,
    RawCalorieRecord,
    RawExerciseSession,
    RawSleepSession,
    RawStepRecord,
    RecordType,
    day_range,
    local_date,
)
from companion.health.reconciler import SourceReconciler

logger = logging.getLogger("momentum.health.reader")


@dataclass
class HealthWindow:
    """Reconciled data for one sync window.

    Attributes:
        start_date:        First day of the window (inclusive).
        end_date:          Last day of the window (inclusive).
        steps:             Day → deduplicated step total.
        exercise_sessions: Sessions from non-ignored sources.
        exercise_calories: Day → exercise kcal from non-ignored sources.
        sleep_sessions:    Sleep sessions from non-ignored sources.
    """

    start_date: date
    end_date: date
    steps: dict[date, int] = field(default_factory=dict)
    exercise_sessions: list[RawExerciseSession] = field(default_factory=list)
    exercise_calories: dict[date, float] = field(default_factory=dict)
    sleep_sessions: list[RawSleepSession] = field(default_factory=list)


class HealthReader:
    """Read each record kind from a HealthSource and reconcile it.

    All reads cover ``[start 00:00, end + 1 day 00:00)`` in the local zone.
    """

    def __init__(
        self,
        source: HealthSource,
        reconciler: SourceReconciler | None = None,
        zone: tzinfo | None = None,
    ) -> None:
        self._source = source
        self._zone = zone
        self._reconciler = reconciler or SourceReconciler(zone=zone)

    @property
    def source(self) -> HealthSource:
        return self._source

    def is_available(self) -> bool:
        return self._source.is_available()

    async def _read(self, record_type: RecordType, start: date, end: date) -> list:
        range_start, range_end = day_range(start, end, self._zone)
        return await self._source.read_records(record_type, range_start, range_end)

    async def read_steps(self, start: date, end: date) -> dict[date, int]:
        records: list[RawStepRecord] = await self._read(RecordType.STEPS, start, end)
        return self._reconciler.reconcile_steps(records)

    async def read_total_calories(self, start: date, end: date) -> dict[date, float]:
        records: list[RawCalorieRecord] = await self._read(RecordType.TOTAL_CALORIES, start, end)
        return self._reconciler.reconcile_calories(records)

    async def read_exercise_sessions(self, start: date, end: date) -> list[RawExerciseSession]:
        sessions = await self._read(RecordType.EXERCISE_SESSION, start, end)
        return self._reconciler.filter_sessions(sessions)

    async def read_sleep_sessions(self, start: date, end: date) -> list[RawSleepSession]:
        sessions = await self._read(RecordType.SLEEP_SESSION, start, end)
        return self._reconciler.filter_sessions(sessions)

    async def read_window(self, start: date, end: date) -> HealthWindow:
        """Read every record kind for a sync window, one kind at a time."""
        window = HealthWindow(start_date=start, end_date=end)
        window.steps = await self.read_steps(start, end)
        window.exercise_sessions = await self.read_exercise_sessions(start, end)
        window.exercise_calories = await self.read_total_calories(start, end)
        window.sleep_sessions = await self.read_sleep_sessions(start, end)
        logger.info(
            "Read %s → %s: %d step day(s), %d exercise, %d sleep session(s)",
            start, end, len(window.steps),
            len(window.exercise_sessions), len(window.sleep_sessions),
        )
        return window

    async def describe_day(self, day: date) -> list[str]:
        """Log every raw record of ``day`` at DEBUG level, unreconciled.

        Returns the logged lines so callers can print them.
        """
        lines = [f"=== Raw health data for {day} ==="]
        for record_type in RecordType:
            records = await self._read(record_type, day, day)
            lines.append(f"{record_type.value}: {len(records)} record(s)")
            for i, r in enumerate(records):
                minutes = int((r.end_time - r.start_time).total_seconds() // 60)
                start = r.start_time.astimezone(self._zone).strftime("%H:%M")
                end = r.end_time.astimezone(self._zone).strftime("%H:%M")
                if record_type is RecordType.STEPS:
                    rate = r.count // minutes if minutes > 0 else 0
                    detail = f"{r.count} steps, {rate} steps/min"
                elif record_type is RecordType.TOTAL_CALORIES:
                    detail = f"{r.kilocalories:.1f} kcal"
                elif record_type is RecordType.EXERCISE_SESSION:
                    detail = f"type={r.exercise_type}"
                else:
                    detail = f"{len(r.stages)} stage(s), wake {local_date(r.end_time, self._zone)}"
                lines.append(
                    f"  [{i}] {detail}, {start}-{end} ({minutes}min, src={r.source_app})"
                )
        lines.append("=== End raw data ===")
        for line in lines:
            logger.debug(line)
        return lines
