"""Shared fixtures and record builders for health pipeline tests."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from companion.health.base import (
    HealthSource,
    RawCalorieRecord,
    RawExerciseSession,
    RawRecord,
    RawSleepSession,
    RawSleepStage,
    RawStepRecord,
    RecordType,
    UserProfile,
)
from companion.health.config_loader import SourcesConfig, load_sources_config
from companion.health.reconciler import SourceReconciler

# Fixed zone so local dates do not depend on the machine running the tests
TEST_ZONE = ZoneInfo("Europe/Paris")
TEST_DATE = date(2025, 6, 15)

SAMSUNG_HEALTH = "com.sec.android.app.shealth"
GOOGLE_FIT = "com.google.android.apps.fitness"
ANDROID_PLATFORM = "android"
GARMIN = "com.garmin.android.apps.connectmobile"


# ---------------------------------------------------------------------------
# Record builders
# ---------------------------------------------------------------------------


def at(day: date, hour: int = 0, minute: int = 0) -> datetime:
    """Local wall-clock instant in TEST_ZONE."""
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=TEST_ZONE)


def steps(day: date, count: int, source: str, hour: int = 0) -> RawStepRecord:
    start = at(day, hour)
    return RawStepRecord(
        start_time=start,
        end_time=start + timedelta(hours=1) if hour else at(day + timedelta(days=1)),
        count=count,
        source_app=source,
    )


def exercise(
    day: date,
    hour: int,
    minutes: float,
    exercise_type: int = 56,
    source: str = SAMSUNG_HEALTH,
    record_id: str = "ex-1",
    title: str | None = None,
) -> RawExerciseSession:
    start = at(day, hour)
    return RawExerciseSession(
        record_id=record_id,
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
        exercise_type=exercise_type,
        source_app=source,
        title=title,
    )


def calories(day: date, kcal: float, source: str = SAMSUNG_HEALTH, hour: int = 8) -> RawCalorieRecord:
    start = at(day, hour)
    return RawCalorieRecord(
        start_time=start,
        end_time=start + timedelta(minutes=30),
        kilocalories=kcal,
        source_app=source,
    )


def sleep(
    start: datetime,
    end: datetime,
    stages: tuple[RawSleepStage, ...] = (),
    source: str = SAMSUNG_HEALTH,
    record_id: str = "sl-1",
) -> RawSleepSession:
    return RawSleepSession(
        record_id=record_id,
        start_time=start,
        end_time=end,
        source_app=source,
        stages=stages,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sources_config() -> SourcesConfig:
    """Load the bundled sources config."""
    return load_sources_config()


@pytest.fixture
def reconciler(sources_config: SourcesConfig) -> SourceReconciler:
    return SourceReconciler(config=sources_config, zone=TEST_ZONE)


@pytest.fixture
def profile() -> UserProfile:
    """Default profile: 100 steps/min, 70 kg."""
    return UserProfile()


# ---------------------------------------------------------------------------
# In-memory health source
# ---------------------------------------------------------------------------


class InMemorySource(HealthSource):
    """HealthSource over fixed record lists, recording every requested range."""

    def __init__(self, records: dict[RecordType, list[RawRecord]], available: bool = True) -> None:
        self._records = records
        self._available = available
        self.calls: list[tuple[RecordType, datetime, datetime]] = []

    def is_available(self) -> bool:
        return self._available

    async def read_records(
        self, record_type: RecordType, start: datetime, end: datetime
    ) -> list[RawRecord]:
        self.calls.append((record_type, start, end))
        return [r for r in self._records.get(record_type, []) if start <= r.start_time < end]
