"""Source reconciliation for raw health-store records.

Several applications can write the same physical activity into the health
store (e.g. Samsung Health writes one full-day step record while the Android
sensor platform writes the same steps as many short records).  This module
removes those duplicates before anything is estimated or sent.

Rules:
    - Records from an ignored source are always dropped, for every kind.
    - Step records: per local calendar day, the first preferred source present
      wins and every other source that day is dropped.  With no preferred
      source present, all remaining sources are summed (this can over-count
      when two non-preferred apps both report full-day totals).
    - Exercise, sleep and calorie records are only filtered, never deduplicated.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable, Iterable, Sequence
from datetime import date, tzinfo
from typing import TypeVar

from companion.health.base import (
    RawCalorieRecord,
    RawExerciseSession,
    RawSleepSession,
    RawStepRecord,
    local_date,
)
from companion.health.config_loader import SourcesConfig, get_sources_config

logger = logging.getLogger("momentum.health.reconciler")

_R = TypeVar("_R", RawStepRecord, RawExerciseSession, RawCalorieRecord, RawSleepSession)


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def filter_ignored(records: Iterable[_R], ignored_sources: Iterable[str]) -> list[_R]:
    """Drop every record written by an ignored source."""
    ignored = frozenset(ignored_sources)
    return [r for r in records if r.source_app not in ignored]


def deduplicate_steps_by_source(
    records: Sequence[RawStepRecord],
    preferred_sources: Sequence[str],
    zone: tzinfo | None = None,
) -> list[RawStepRecord]:
    """Keep only the highest-priority source's step records for each day.

    Args:
        records:           Step records, already filtered for ignored sources.
        preferred_sources: Ordered priority list; first match per day wins.
        zone:              Zone defining day boundaries (system zone if None).

    Returns:
        The surviving records, grouped by day in first-seen day order.
    """
    by_day: dict[date, list[RawStepRecord]] = defaultdict(list)
    for record in records:
        by_day[local_date(record.start_time, zone)].append(record)

    kept: list[RawStepRecord] = []
    for day, day_records in by_day.items():
        present = {r.source_app for r in day_records}
        canonical = next((s for s in preferred_sources if s in present), None)
        if canonical is None:
            kept.extend(day_records)
            continue
        dropped = len(day_records)
        day_kept = [r for r in day_records if r.source_app == canonical]
        kept.extend(day_kept)
        dropped -= len(day_kept)
        if dropped:
            logger.debug(
                "Steps on %s: using %s, dropped %d record(s) from %s",
                day, canonical, dropped, sorted(present - {canonical}),
            )
    return kept


def sum_by_day(
    records: Iterable[_R],
    value: Callable[[_R], float],
    zone: tzinfo | None = None,
) -> dict[date, float]:
    """Sum ``value(record)`` per local day of each record's start."""
    totals: dict[date, float] = defaultdict(float)
    for record in records:
        totals[local_date(record.start_time, zone)] += value(record)
    return dict(totals)


def _step_count(record: RawStepRecord) -> float:
    return record.count


def _kilocalories(record: RawCalorieRecord) -> float:
    return record.kilocalories


# ---------------------------------------------------------------------------
# Reconciler
# ---------------------------------------------------------------------------


class SourceReconciler:
    """Apply the configured ignore-list and step-source priority.

    Usage::

        reconciler = SourceReconciler()
        steps_by_day = reconciler.reconcile_steps(step_records)
        sessions = reconciler.filter_sessions(exercise_sessions)
    """

    def __init__(self, config: SourcesConfig | None = None, zone: tzinfo | None = None) -> None:
        self._config = config or get_sources_config()
        self._zone = zone

    @property
    def config(self) -> SourcesConfig:
        return self._config

    def reconcile_steps(self, records: Sequence[RawStepRecord]) -> dict[date, int]:
        """Return the deduplicated step total for every day with records."""
        kept = filter_ignored(records, self._config.ignored_sources)
        kept = deduplicate_steps_by_source(kept, self._config.preferred_step_sources, self._zone)
        summed = sum_by_day(kept, _step_count, self._zone)
        totals = {day: int(total) for day, total in summed.items()}
        logger.debug(
            "Reconciled %d step records into %d day(s) (%d kept)",
            len(records), len(totals), len(kept),
        )
        return totals

    def reconcile_calories(self, records: Sequence[RawCalorieRecord]) -> dict[date, float]:
        """Return exercise kilocalories per day, ignored sources removed."""
        kept = filter_ignored(records, self._config.ignored_sources)
        return sum_by_day(kept, _kilocalories, self._zone)

    def filter_sessions(self, sessions: Sequence[_R]) -> list[_R]:
        """Drop exercise or sleep sessions written by an ignored source."""
        return filter_ignored(sessions, self._config.ignored_sources)
