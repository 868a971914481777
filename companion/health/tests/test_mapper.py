"""Tests for exercise / sleep session mapping to wire records."""

from __future__ import annotations

from datetime import timedelta

import pytest

from companion.health.base import RawSleepStage
from companion.health.mapper import (
    EXERCISE_TYPE_BIKING,
    EXERCISE_TYPE_ELLIPTICAL,
    EXERCISE_TYPE_HIKING,
    EXERCISE_TYPE_RUNNING,
    EXERCISE_TYPE_STAIR_CLIMBING,
    EXERCISE_TYPE_SWIMMING_OPEN_WATER,
    EXERCISE_TYPE_WALKING,
    EXERCISE_TYPE_WEIGHTLIFTING,
    EXERCISE_TYPE_YOGA,
    TodayActivity,
    exercise_type_to_label,
    exercise_type_to_string,
    map_exercise_sessions,
    map_sleep_sessions,
    map_today_activities,
    sleep_stage_to_string,
)
from companion.health.tests.conftest import SAMSUNG_HEALTH, TEST_DATE, TEST_ZONE, at, exercise, sleep

NEXT_DAY = TEST_DATE + timedelta(days=1)


class TestExerciseTaxonomy:
    @pytest.mark.parametrize(
        "code, expected, label",
        [
            (EXERCISE_TYPE_WALKING, "WALKING", "Marche"),
            (EXERCISE_TYPE_RUNNING, "RUNNING", "Course"),
            (EXERCISE_TYPE_BIKING, "BIKING", "Velo"),
            (EXERCISE_TYPE_SWIMMING_OPEN_WATER, "SWIMMING", "Natation"),
            (EXERCISE_TYPE_WEIGHTLIFTING, "WEIGHTLIFTING", "Musculation"),
            (EXERCISE_TYPE_YOGA, "YOGA", "Yoga"),
            (EXERCISE_TYPE_HIKING, "HIKING", "Randonnee"),
            (EXERCISE_TYPE_ELLIPTICAL, "ELLIPTICAL", "Elliptique"),
            (EXERCISE_TYPE_STAIR_CLIMBING, "STAIR_CLIMBING", "Escaliers"),
        ],
    )
    def test_known_codes(self, code: int, expected: str, label: str) -> None:
        assert exercise_type_to_string(code) == expected
        assert exercise_type_to_label(code) == label

    @pytest.mark.parametrize("code", [0, -1, 999])
    def test_unknown_code_falls_back(self, code: int) -> None:
        assert exercise_type_to_string(code) == "OTHER_WORKOUT"
        assert exercise_type_to_label(code) == "Autre"


class TestSleepStageTaxonomy:
    def test_known_stages(self) -> None:
        assert [sleep_stage_to_string(c) for c in (1, 2, 4, 5, 6)] == [
            "awake", "sleeping", "light", "deep", "rem",
        ]

    @pytest.mark.parametrize("code", [0, 3, 7, 42])
    def test_unknown_stage_is_sleeping(self, code: int) -> None:
        assert sleep_stage_to_string(code) == "sleeping"


class TestMapExerciseSessions:
    def test_fields(self) -> None:
        session = exercise(TEST_DATE, 7, 32.5, record_id="run-1", title="Morning run")
        [record] = map_exercise_sessions([session], TEST_ZONE)
        assert record.source_record_id == "run-1"
        assert record.date == TEST_DATE
        assert record.activity_type == "RUNNING"
        assert record.title == "Morning run"
        assert record.duration_minutes == pytest.approx(32.5)
        assert record.source_app == SAMSUNG_HEALTH
        assert record.calories is None
        assert record.distance is None
        assert record.heart_rate_avg is None

    def test_date_is_local_start_day(self) -> None:
        [record] = map_exercise_sessions([exercise(TEST_DATE, 23, 90)], TEST_ZONE)
        assert record.date == TEST_DATE

    def test_wire_keys(self) -> None:
        [record] = map_exercise_sessions([exercise(TEST_DATE, 7, 30, record_id="x")], TEST_ZONE)
        wire = record.to_wire()
        assert wire["hcRecordId"] == "x"
        assert wire["activityType"] == "RUNNING"
        assert wire["durationMinutes"] == pytest.approx(30.0)
        assert wire["date"] == "2025-06-15"
        assert wire["heartRateAvg"] is None

    def test_empty(self) -> None:
        assert map_exercise_sessions([], TEST_ZONE) == []


class TestMapSleepSessions:
    def test_overnight_dated_by_wake_day(self) -> None:
        night = sleep(at(TEST_DATE, 23), at(NEXT_DAY, 7))
        [record] = map_sleep_sessions([night], TEST_ZONE)
        assert record.date == NEXT_DAY
        assert record.duration_minutes == pytest.approx(480.0)
        assert record.score is None

    def test_no_stages_is_none(self) -> None:
        [record] = map_sleep_sessions([sleep(at(TEST_DATE, 23), at(NEXT_DAY, 7))], TEST_ZONE)
        assert record.stages is None
        assert record.to_wire()["stages"] is None

    def test_stages_mapped_in_order(self) -> None:
        stages = (
            RawSleepStage(4, at(TEST_DATE, 23), at(NEXT_DAY, 1)),
            RawSleepStage(5, at(NEXT_DAY, 1), at(NEXT_DAY, 3)),
            RawSleepStage(6, at(NEXT_DAY, 3), at(NEXT_DAY, 5)),
            RawSleepStage(99, at(NEXT_DAY, 5), at(NEXT_DAY, 6)),
            RawSleepStage(1, at(NEXT_DAY, 6), at(NEXT_DAY, 7)),
        )
        [record] = map_sleep_sessions([sleep(at(TEST_DATE, 23), at(NEXT_DAY, 7), stages)], TEST_ZONE)
        assert [s.stage for s in record.stages] == ["light", "deep", "rem", "sleeping", "awake"]
        assert record.stages[0].start_time == at(TEST_DATE, 23)


class TestMapTodayActivities:
    def test_local_time_label_and_whole_minutes(self) -> None:
        sessions = [
            exercise(TEST_DATE, 18, 45.9, exercise_type=EXERCISE_TYPE_BIKING, record_id="b"),
            exercise(TEST_DATE, 7, 30, exercise_type=999, record_id="a"),
        ]
        assert map_today_activities(sessions, TEST_ZONE) == [
            TodayActivity(start_time="07:00", label="Autre", duration_minutes=30),
            TodayActivity(start_time="18:00", label="Velo", duration_minutes=45),
        ]

    def test_empty(self) -> None:
        assert map_today_activities([], TEST_ZONE) == []
