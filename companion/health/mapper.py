"""Map raw exercise and sleep sessions to Momentum wire records.

Both mappings are total: every exercise code and every sleep stage code maps
to something, with an explicit fallback for codes this module does not know.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import tzinfo

from companion.api.models import ActivityRecord, SleepRecord, SleepStage
from companion.health.base import RawExerciseSession, RawSleepSession, local_date
from companion.health.estimator import session_whole_minutes

# Platform exercise type codes
EXERCISE_TYPE_BIKING = 8
EXERCISE_TYPE_ELLIPTICAL = 25
EXERCISE_TYPE_HIKING = 37
EXERCISE_TYPE_RUNNING = 56
EXERCISE_TYPE_STAIR_CLIMBING = 68
EXERCISE_TYPE_SWIMMING_OPEN_WATER = 73
EXERCISE_TYPE_WALKING = 79
EXERCISE_TYPE_WEIGHTLIFTING = 81
EXERCISE_TYPE_YOGA = 83

# Platform sleep stage codes
STAGE_TYPE_AWAKE = 1
STAGE_TYPE_SLEEPING = 2
STAGE_TYPE_LIGHT = 4
STAGE_TYPE_DEEP = 5
STAGE_TYPE_REM = 6

OTHER_WORKOUT = "OTHER_WORKOUT"
OTHER_WORKOUT_LABEL = "Autre"
DEFAULT_SLEEP_STAGE = "sleeping"

# Exercise code → (canonical activity type, localized label)
_EXERCISE_TYPE_MAP: dict[int, tuple[str, str]] = {
    EXERCISE_TYPE_WALKING: ("WALKING", "Marche"),
    EXERCISE_TYPE_RUNNING: ("RUNNING", "Course"),
    EXERCISE_TYPE_BIKING: ("BIKING", "Velo"),
    EXERCISE_TYPE_SWIMMING_OPEN_WATER: ("SWIMMING", "Natation"),
    EXERCISE_TYPE_WEIGHTLIFTING: ("WEIGHTLIFTING", "Musculation"),
    EXERCISE_TYPE_YOGA: ("YOGA", "Yoga"),
    EXERCISE_TYPE_HIKING: ("HIKING", "Randonnee"),
    EXERCISE_TYPE_ELLIPTICAL: ("ELLIPTICAL", "Elliptique"),
    EXERCISE_TYPE_STAIR_CLIMBING: ("STAIR_CLIMBING", "Escaliers"),
}

_SLEEP_STAGE_MAP: dict[int, str] = {
    STAGE_TYPE_AWAKE: "awake",
    STAGE_TYPE_LIGHT: "light",
    STAGE_TYPE_DEEP: "deep",
    STAGE_TYPE_REM: "rem",
    STAGE_TYPE_SLEEPING: "sleeping",
}


def exercise_type_to_string(code: int) -> str:
    """Canonical activity type for a platform exercise code."""
    entry = _EXERCISE_TYPE_MAP.get(code)
    return entry[0] if entry else OTHER_WORKOUT


def exercise_type_to_label(code: int) -> str:
    """Localized display label for a platform exercise code."""
    entry = _EXERCISE_TYPE_MAP.get(code)
    return entry[1] if entry else OTHER_WORKOUT_LABEL


def sleep_stage_to_string(code: int) -> str:
    return _SLEEP_STAGE_MAP.get(code, DEFAULT_SLEEP_STAGE)


def map_exercise_sessions(
    sessions: Sequence[RawExerciseSession], zone: tzinfo | None = None
) -> list[ActivityRecord]:
    """Project exercise sessions to ActivityRecords dated by their start day."""
    return [
        ActivityRecord(
            source_record_id=s.record_id,
            date=local_date(s.start_time, zone),
            start_time=s.start_time,
            end_time=s.end_time,
            activity_type=exercise_type_to_string(s.exercise_type),
            title=s.title,
            duration_minutes=(s.end_time - s.start_time).total_seconds() / 60.0,
            source_app=s.source_app,
        )
        for s in sessions
    ]


def map_sleep_sessions(
    sessions: Sequence[RawSleepSession], zone: tzinfo | None = None
) -> list[SleepRecord]:
    """Project sleep sessions to SleepRecords dated by their wake day.

    A session with no stage data gets ``stages=None``, never an empty list.
    """
    records = []
    for s in sessions:
        stages = [
            SleepStage(
                stage=sleep_stage_to_string(stage.stage),
                start_time=stage.start_time,
                end_time=stage.end_time,
            )
            for stage in s.stages
        ]
        records.append(
            SleepRecord(
                date=local_date(s.end_time, zone),
                start_time=s.start_time,
                end_time=s.end_time,
                duration_minutes=(s.end_time - s.start_time).total_seconds() / 60.0,
                stages=stages or None,
            )
        )
    return records


# ---------- Today overview ----------


@dataclass(frozen=True)
class TodayActivity:
    """One exercise session as listed in the today overview.

    Attributes:
        start_time:       Local wall-clock start, ``HH:MM``.
        label:            Localized activity label.
        duration_minutes: Duration truncated to whole minutes.
    """

    start_time: str
    label: str
    duration_minutes: int


def map_today_activities(
    sessions: Sequence[RawExerciseSession], zone: tzinfo | None = None
) -> list[TodayActivity]:
    """Project exercise sessions to display rows, earliest first."""
    return [
        TodayActivity(
            start_time=s.start_time.astimezone(zone).strftime("%H:%M"),
            label=exercise_type_to_label(s.exercise_type),
            duration_minutes=session_whole_minutes(s),
        )
        for s in sorted(sessions, key=lambda s: s.start_time)
    ]
