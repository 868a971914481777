"""Sync pipeline: orchestration, scheduling, outcome log and error taxonomy."""

from companion.sync.errors import (
    AuthenticationError,
    ConfigurationError,
    MappingError,
    SyncError,
    TransientSubmissionError,
)
from companion.sync.orchestrator import SyncOrchestrator, SyncOutcome, SyncResult, TodayOverview
from companion.sync.scheduler import SyncScheduler
from companion.sync.sync_log import SyncLogEntry, SyncLogRepository

__all__ = [
    "AuthenticationError",
    "ConfigurationError",
    "MappingError",
    "SyncError",
    "TransientSubmissionError",
    "SyncOrchestrator",
    "SyncOutcome",
    "SyncResult",
    "TodayOverview",
    "SyncScheduler",
    "SyncLogEntry",
    "SyncLogRepository",
]
