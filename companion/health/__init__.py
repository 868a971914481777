"""Health-store telemetry: raw records, reconciliation, estimation, mapping.

Core modules:
    base          — Raw record types, UserProfile, HealthSource interface
    config_loader — Load/validate sources.yaml (ignored / preferred sources)
    reconciler    — Per-day source deduplication and ignore-list filtering
    estimator     — Daily metrics with passive activity estimation
    mapper        — Exercise / sleep sessions → wire records and today rows
    reader        — Read + reconcile a sync window from a HealthSource
    export_source — HealthSource backed by a JSON export file
"""

from companion.health.base import (
    HealthSource,
    HealthStoreUnavailable,
    RawCalorieRecord,
    RawExerciseSession,
    RawSleepSession,
    RawSleepStage,
    RawStepRecord,
    RecordType,
    UserProfile,
)
from companion.health.config_loader import SourcesConfig, get_sources_config
from companion.health.reconciler import SourceReconciler

__all__ = [
    "HealthSource",
    "HealthStoreUnavailable",
    "RawCalorieRecord",
    "RawExerciseSession",
    "RawSleepSession",
    "RawSleepStage",
    "RawStepRecord",
    "RecordType",
    "UserProfile",
    "SourcesConfig",
    "get_sources_config",
    "SourceReconciler",
]
