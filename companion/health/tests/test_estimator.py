"""Tests for daily metric estimation with passive activity backfill."""

from __future__ import annotations

from datetime import timedelta

import pytest

from companion.api.models import DailyMetric
from companion.health.base import UserProfile
from companion.health.estimator import (
    build_daily_metrics,
    calories_per_minute,
    round_half_up,
    session_whole_minutes,
    today_summary,
)
from companion.health.tests.conftest import TEST_DATE, TEST_ZONE, exercise

NEXT_DAY = TEST_DATE + timedelta(days=1)


def _build(steps=None, sessions=(), kcal=None, profile=None, start=TEST_DATE, end=TEST_DATE):
    return build_daily_metrics(
        steps=steps or {},
        exercise_sessions=list(sessions),
        exercise_calories=kcal or {},
        profile=profile or UserProfile(),
        start_date=start,
        end_date=end,
        zone=TEST_ZONE,
    )


class TestCaloriesPerMinute:
    def test_default_profile(self, profile: UserProfile) -> None:
        # 3.0 × 3.5 × 70 / 200
        assert calories_per_minute(profile) == pytest.approx(3.675)

    def test_scales_with_weight(self) -> None:
        assert calories_per_minute(UserProfile(weight_kg=100.0)) == pytest.approx(5.25)


class TestRoundHalfUp:
    @pytest.mark.parametrize("value, expected", [(2.5, 3), (3.5, 4), (2.49, 2), (0.0, 0)])
    def test_halves_round_up(self, value: float, expected: int) -> None:
        assert round_half_up(value) == expected


class TestSessionWholeMinutes:
    def test_truncates_partial_minutes(self) -> None:
        assert session_whole_minutes(exercise(TEST_DATE, 8, 30.9)) == 30

    def test_exact_minutes(self) -> None:
        assert session_whole_minutes(exercise(TEST_DATE, 8, 45)) == 45


class TestBuildDailyMetrics:
    def test_steps_only_day(self) -> None:
        metrics = _build(steps={TEST_DATE: 8000})
        assert metrics == [
            DailyMetric(date=TEST_DATE, steps=8000, active_calories=294, active_minutes=80)
        ]

    def test_exercise_steps_deducted(self) -> None:
        # 65 exercise minutes × 100 spm = 6500 steps; passive = 3500 steps = 35 min
        sessions = [
            exercise(TEST_DATE, 8, 20, record_id="a"),
            exercise(TEST_DATE, 18, 45, record_id="b"),
        ]
        metrics = _build(steps={TEST_DATE: 10000}, sessions=sessions, kcal={TEST_DATE: 300.0})
        [metric] = metrics
        assert metric.steps == 10000
        assert metric.active_minutes == 100
        # 35 × 3.675 + 300 = 428.625
        assert metric.active_calories == 429

    def test_two_sessions_at_least_their_minutes(self) -> None:
        sessions = [
            exercise(TEST_DATE, 8, 20, record_id="a"),
            exercise(TEST_DATE, 18, 45, record_id="b"),
        ]
        [metric] = _build(steps={TEST_DATE: 2000}, sessions=sessions)
        assert metric.active_minutes >= 65

    def test_passive_steps_floored_at_zero(self) -> None:
        # 1000 steps but 30 exercise minutes (3000 estimated steps)
        [metric] = _build(steps={TEST_DATE: 1000}, sessions=[exercise(TEST_DATE, 8, 30)])
        assert metric.active_minutes == 30
        assert metric.active_calories == 0

    def test_zero_signal_day_omitted(self) -> None:
        metrics = _build(steps={TEST_DATE: 0}, start=TEST_DATE, end=NEXT_DAY)
        assert metrics == []

    def test_zero_steps_with_session_included(self) -> None:
        [metric] = _build(sessions=[exercise(TEST_DATE, 8, 40)], kcal={TEST_DATE: 250.4})
        assert metric.steps == 0
        assert metric.active_minutes == 40
        assert metric.active_calories == 250

    def test_sessions_attributed_to_start_day(self) -> None:
        # Starts 23:00 on TEST_DATE, ends on NEXT_DAY
        late = exercise(TEST_DATE, 23, 60)
        metrics = _build(steps={NEXT_DAY: 5000}, sessions=[late], start=TEST_DATE, end=NEXT_DAY)
        assert [m.date for m in metrics] == [TEST_DATE, NEXT_DAY]
        assert metrics[0].active_minutes == 60
        assert metrics[1].active_minutes == 50

    def test_ascending_order_and_range_bounds(self) -> None:
        steps = {
            TEST_DATE - timedelta(days=1): 4000,
            TEST_DATE: 3000,
            NEXT_DAY: 2000,
        }
        metrics = _build(steps=steps, start=TEST_DATE, end=NEXT_DAY)
        assert [m.date for m in metrics] == [TEST_DATE, NEXT_DAY]

    def test_half_minute_rounds_up(self) -> None:
        # 250 steps at 100 spm = 2.5 min; 2.5 × 3.675 = 9.1875 kcal
        [metric] = _build(steps={TEST_DATE: 250})
        assert metric.active_minutes == 3
        assert metric.active_calories == 9

    def test_minutes_monotonic_in_steps(self) -> None:
        minutes = [_build(steps={TEST_DATE: n})[0].active_minutes for n in (150, 250, 350, 450)]
        assert minutes == [2, 3, 4, 5]

    def test_cadence_changes_passive_minutes(self) -> None:
        [metric] = _build(steps={TEST_DATE: 6000}, profile=UserProfile(steps_per_minute=120))
        assert metric.active_minutes == 50


class TestTodaySummary:
    def test_returns_matching_day(self) -> None:
        metrics = _build(steps={TEST_DATE: 8000})
        assert today_summary(metrics, TEST_DATE).steps == 8000

    def test_zero_placeholder_when_missing(self) -> None:
        summary = today_summary([], TEST_DATE)
        assert summary == DailyMetric(
            date=TEST_DATE, steps=0, active_calories=0, active_minutes=0
        )
