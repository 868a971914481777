"""Daily metric estimation.

The health store only carries exercise-time calories and sessions from some
sources, not the passive activity measured by the pedometer.  The estimator
backfills that baseline from step counts:

1. Deduct the steps attributed to logged exercise from the day's total
   (exercise minutes × the user's walking cadence), floored at zero.
2. Passive active minutes = passive steps / cadence.
3. Passive calories = passive minutes × a walking calorie rate.
4. Day totals = passive + exercise.

Walking calorie rate (full metabolic cost during movement, MET 3.0)::

    kcal/min = (MET × 3.5 × weight_kg) / 200
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from collections.abc import Mapping, Sequence
from datetime import date, tzinfo

from companion.api.models import DailyMetric
from companion.health.base import RawExerciseSession, UserProfile, iter_dates, local_date

logger = logging.getLogger("momentum.health.estimator")

#: Metabolic equivalent of casual walking.
WALKING_MET = 3.0


def calories_per_minute(profile: UserProfile) -> float:
    """Walking kcal/min for the profile's body weight."""
    return (WALKING_MET * 3.5 * profile.weight_kg) / 200.0


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves rounding up."""
    return int(math.floor(value + 0.5))


def session_whole_minutes(session: RawExerciseSession) -> int:
    """Session duration truncated to whole minutes."""
    return int((session.end_time - session.start_time).total_seconds() // 60)


def build_daily_metrics(
    steps: Mapping[date, int],
    exercise_sessions: Sequence[RawExerciseSession],
    exercise_calories: Mapping[date, float],
    profile: UserProfile,
    start_date: date,
    end_date: date,
    zone: tzinfo | None = None,
) -> list[DailyMetric]:
    """Build one DailyMetric per day with signal in [start_date, end_date].

    Args:
        steps:             Reconciled day → step total.
        exercise_sessions: Reconciled exercise sessions (any day).
        exercise_calories: Reconciled day → exercise kcal.
        profile:           User body parameters (steps_per_minute > 0).
        start_date:        First day, inclusive.
        end_date:          Last day, inclusive.
        zone:              Zone defining session days (system zone if None).

    Returns:
        Metrics in ascending date order.  Days with no steps and no
        exercise session are omitted rather than emitted as zeros.
    """
    sessions_by_day: dict[date, list[RawExerciseSession]] = defaultdict(list)
    for session in exercise_sessions:
        sessions_by_day[local_date(session.start_time, zone)].append(session)

    kcal_per_min = calories_per_minute(profile)
    metrics: list[DailyMetric] = []

    for day in iter_dates(start_date, end_date):
        day_steps = int(steps.get(day, 0))
        day_sessions = sessions_by_day.get(day, [])
        if day_steps == 0 and not day_sessions:
            continue

        exercise_minutes = sum(session_whole_minutes(s) for s in day_sessions)
        exercise_kcal = exercise_calories.get(day, 0.0)

        estimated_exercise_steps = exercise_minutes * profile.steps_per_minute
        passive_steps = max(0, day_steps - estimated_exercise_steps)
        passive_minutes = passive_steps / profile.steps_per_minute
        passive_calories = passive_minutes * kcal_per_min

        metrics.append(
            DailyMetric(
                date=day,
                steps=day_steps,
                active_calories=round_half_up(passive_calories + exercise_kcal),
                active_minutes=round_half_up(passive_minutes + exercise_minutes),
            )
        )

    logger.debug(
        "Built %d daily metric(s) for %s → %s", len(metrics), start_date, end_date
    )
    return metrics


def today_summary(metrics: Sequence[DailyMetric], day: date) -> DailyMetric:
    """Return the metric for ``day``, or a zero placeholder when it has no signal."""
    for metric in metrics:
        if metric.date == day:
            return metric
    return DailyMetric(date=day, steps=0, active_calories=0, active_minutes=0)
