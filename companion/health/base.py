"""Raw record types and the health-store interface.

Every health source returns these immutable raw records, tagged with the
source application that wrote them.  They are the only input consumed by the
reconciler, estimator and session mapper, and are re-read on every sync run.
"""

from __future__ import annotations

import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, tzinfo
from typing import Union

logger = logging.getLogger("momentum.health")


# ---------------------------------------------------------------------------
# Record kinds
# ---------------------------------------------------------------------------


class RecordType(str, enum.Enum):
    """The four raw record kinds read from the health store."""

    STEPS = "steps"
    EXERCISE_SESSION = "exerciseSessions"
    TOTAL_CALORIES = "totalCaloriesBurned"
    SLEEP_SESSION = "sleepSessions"


# ---------------------------------------------------------------------------
# Raw records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RawStepRecord:
    """Step count over a time bucket.

    Attributes:
        start_time: Start of the bucket (tz-aware).
        end_time:   End of the bucket (tz-aware).
        count:      Steps counted in the bucket.
        source_app: Package id of the writing application.
    """

    start_time: datetime
    end_time: datetime
    count: int
    source_app: str


@dataclass(frozen=True)
class RawExerciseSession:
    """A logged exercise session.

    Attributes:
        record_id:     Health-store record id.
        start_time:    Session start (tz-aware).
        end_time:      Session end (tz-aware), after start_time.
        exercise_type: Platform exercise type code.
        source_app:    Package id of the writing application.
        title:         Optional user-facing title.
    """

    record_id: str
    start_time: datetime
    end_time: datetime
    exercise_type: int
    source_app: str
    title: str | None = None


@dataclass(frozen=True)
class RawCalorieRecord:
    """Total energy burned over an interval, attributed to exercise."""

    start_time: datetime
    end_time: datetime
    kilocalories: float
    source_app: str


@dataclass(frozen=True)
class RawSleepStage:
    stage: int
    start_time: datetime
    end_time: datetime


@dataclass(frozen=True)
class RawSleepSession:
    """A sleep session with its ordered stage list (possibly empty)."""

    record_id: str
    start_time: datetime
    end_time: datetime
    source_app: str
    stages: tuple[RawSleepStage, ...] = field(default_factory=tuple)


RawRecord = Union[RawStepRecord, RawExerciseSession, RawCalorieRecord, RawSleepSession]


# ---------------------------------------------------------------------------
# User profile
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UserProfile:
    """Body parameters used by the passive activity estimator.

    Bounds are enforced where the values are edited (preferences / CLI);
    the estimator trusts them.
    """

    steps_per_minute: int = 100
    weight_kg: float = 70.0
    height_cm: int = 170
    age: int = 30
    is_male: bool = True


# ---------------------------------------------------------------------------
# Health store interface
# ---------------------------------------------------------------------------


class HealthStoreUnavailable(RuntimeError):
    """Raised when the health store cannot be read on this device."""


class HealthSource(ABC):
    """Narrow read interface over the platform health store."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return True if the store can be read on this device."""

    @abstractmethod
    async def read_records(
        self, record_type: RecordType, start: datetime, end: datetime
    ) -> list[RawRecord]:
        """Return all records of ``record_type`` whose start is in [start, end).

        Args:
            record_type: Which raw kind to read.
            start:       Inclusive lower bound (tz-aware).
            end:         Exclusive upper bound (tz-aware).

        Returns:
            Raw records with their source metadata, in store order.
        """


# ---------------------------------------------------------------------------
# Local-date helpers
# ---------------------------------------------------------------------------


def local_date(instant: datetime, zone: tzinfo | None = None) -> date:
    """Return the calendar date of ``instant`` in ``zone`` (system zone if None)."""
    return instant.astimezone(zone).date()


def start_of_day(day: date, zone: tzinfo | None = None) -> datetime:
    """Return local midnight of ``day`` as a tz-aware datetime."""
    midnight = datetime(day.year, day.month, day.day)
    if zone is None:
        return midnight.astimezone()
    return midnight.replace(tzinfo=zone)


def day_range(start_day: date, end_day: date, zone: tzinfo | None = None) -> tuple[datetime, datetime]:
    """Return ``[start_day 00:00, end_day + 1 00:00)`` in the local zone."""
    return start_of_day(start_day, zone), start_of_day(end_day + timedelta(days=1), zone)


def iter_dates(start_day: date, end_day: date) -> list[date]:
    """Return every date from start_day to end_day inclusive, ascending."""
    days = []
    current = start_day
    while current <= end_day:
        days.append(current)
        current += timedelta(days=1)
    return days
