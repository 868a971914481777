"""Error taxonomy for sync runs.

Every error is caught at the orchestrator boundary and turned into a sync
log entry plus a ``SyncOutcome``; none of them reaches the scheduler.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all sync-run errors."""


class ConfigurationError(SyncError):
    """Credentials missing or the health store is unavailable.  Not retried."""


class AuthenticationError(SyncError):
    """No usable bearer token for this run.

    Attributes:
        token_rejected: True when the server answered 401 to a submission
                        (the cached token has been cleared).
    """

    def __init__(self, message: str, token_rejected: bool = False) -> None:
        super().__init__(message)
        self.token_rejected = token_rejected


class TransientSubmissionError(SyncError):
    """Submission failed in a way that may succeed on a later attempt.

    Attributes:
        status_code: HTTP status of the failed response, or None for
                     transport failures (timeouts, connection errors).
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MappingError(SyncError):
    """A raw record could not be mapped to a wire record.

    The shipped mappers are total and never raise this.
    """
