"""Sync orchestration: one invocation of the health sync pipeline.

Each run walks a fixed sequence of steps:

    CheckPreconditions → EnsureToken → SelectWindow → FetchRaw
        → Reconcile + Estimate + Map → Submit → {Success | Retry | Failure}

Every outcome is written to the sync log before ``run`` returns, and all
errors are resolved into a ``SyncOutcome``.  Only ``asyncio.CancelledError``
escapes, and a cancelled run leaves preferences and the log untouched.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Callable

import httpx
from pydantic import ValidationError

from companion.api.client import MomentumClient, normalize_server_url
from companion.api.models import (
    DailyMetric,
    HealthSyncRequest,
    HealthSyncResponse,
    LoginResponse,
    SyncedCounts,
    SyncStatusResponse,
    default_goals,
)
from companion.config import Settings, get_settings
from companion.health.base import HealthStoreUnavailable, local_date
from companion.health.estimator import build_daily_metrics, today_summary
from companion.health.mapper import (
    TodayActivity,
    map_exercise_sessions,
    map_sleep_sessions,
    map_today_activities,
)
from companion.health.reader import HealthReader, HealthWindow
from companion.preferences import AppPreferences, SyncCredentials
from companion.sync import sync_log as log_types
from companion.sync.errors import (
    AuthenticationError,
    ConfigurationError,
    SyncError,
    TransientSubmissionError,
)
from companion.sync.sync_log import SyncLogRepository

logger = logging.getLogger("momentum.sync.orchestrator")

MAX_RETRY_COUNT = 3

BackendFactory = Callable[[str, bool], MomentumClient]


class SyncOutcome(str, enum.Enum):
    SUCCESS = "success"
    RETRY = "retry"
    FAILURE = "failure"


@dataclass
class SyncResult:
    """Resolved outcome of one run.

    Attributes:
        outcome:    SUCCESS, RETRY (scheduler should re-invoke) or FAILURE.
        message:    The message written to the sync log.
        attempt:    1-based attempt number of this run.
        counts:     Server-echoed counts on success.
        start_date: First day of the synced window, when one was selected.
        end_date:   Last day of the synced window, when one was selected.
    """

    outcome: SyncOutcome
    message: str
    attempt: int = 1
    counts: SyncedCounts | None = None
    start_date: date | None = None
    end_date: date | None = None


@dataclass
class TodayOverview:
    """Locally computed totals for today alongside their goals.

    Attributes:
        metric:            Today's DailyMetric (zeros when there is no signal).
        activities:        Today's exercise sessions, earliest first.
        goals:             Goal per metric name (``steps``, ``active_calories``,
                           ``active_minutes``).
        goals_from_server: False when the defaults were used.
    """

    metric: DailyMetric
    activities: list[TodayActivity]
    goals: dict[str, int]
    goals_from_server: bool = False

    def percent_of_goal(self, name: str) -> int:
        goal = self.goals.get(name, 0)
        if goal <= 0:
            return 0
        return int(getattr(self.metric, name) * 100 / goal)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _failure_prefix(log_type: str) -> str:
    return "Import failed" if log_type == log_types.INITIAL_IMPORT else "Sync failed"


class SyncOrchestrator:
    """Run the health sync pipeline against one server account.

    Usage::

        orchestrator = SyncOrchestrator(reader, preferences, sync_log)
        result = await orchestrator.run(attempt=1)
        if result.outcome is SyncOutcome.RETRY:
            ...  # re-invoke later with attempt=2
    """

    def __init__(
        self,
        reader: HealthReader | None,
        preferences: AppPreferences,
        sync_log: SyncLogRepository,
        backend_factory: BackendFactory | None = None,
        settings: Settings | None = None,
        zone: tzinfo | None = None,
        clock: Callable[[], datetime] = _utc_now,
        max_attempts: int = MAX_RETRY_COUNT,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            reader:          Health reader, or None when no store exists.
            preferences:     Credential / sync-state / profile store.
            sync_log:        Outcome log.
            backend_factory: Callable(server_url, allow_self_signed) → client.
            settings:        Process settings (device name, timeouts).
            zone:            Zone defining local days (system zone if None).
            clock:           Returns the current tz-aware instant.
            max_attempts:    Attempts before a failing submission is terminal.
        """
        self._reader = reader
        self._preferences = preferences
        self._sync_log = sync_log
        self._settings = settings or get_settings()
        self._backend_factory = backend_factory or self._default_backend
        self._zone = zone
        self._clock = clock
        self._max_attempts = max_attempts

    def _default_backend(self, server_url: str, allow_self_signed: bool) -> MomentumClient:
        return MomentumClient(
            server_url,
            allow_self_signed=allow_self_signed,
            timeout=self._settings.http_timeout_seconds,
        )

    def _backend(self, server_url: str) -> MomentumClient:
        return self._backend_factory(server_url, self._preferences.allow_self_signed)

    def _today(self) -> date:
        return local_date(self._clock(), self._zone)

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    async def run(self, attempt: int = 1) -> SyncResult:
        """Run one incremental sync.

        Args:
            attempt: 1-based attempt number; submissions failing on attempt
                     ``max_attempts`` are terminal.
        """
        return await self._execute(log_types.PERIODIC_SYNC, attempt, initial_days=None)

    async def initial_import(self, days: int | None = None) -> SyncResult:
        """Push the last ``days`` days (inclusive of today).  Never retried."""
        if days is None:
            days = self._settings.initial_import_days
        return await self._execute(
            log_types.INITIAL_IMPORT, 1, initial_days=days, allow_retry=False
        )

    async def connect(
        self,
        server_url: str,
        email: str,
        password: str,
        allow_self_signed: bool = False,
    ) -> LoginResponse:
        """Validate the inputs, log in, and persist the account on success.

        Raises:
            ConfigurationError:  If a field is blank.
            AuthenticationError: If the server rejects the login or is unreachable.
        """
        if not server_url or not server_url.strip():
            raise ConfigurationError("Server URL is required")
        if not email or not email.strip():
            raise ConfigurationError("Email is required")
        if not password:
            raise ConfigurationError("Password is required")

        url = normalize_server_url(server_url)
        email = email.strip()
        client = self._backend_factory(url, allow_self_signed)
        try:
            login = await client.login(email, password)
        except httpx.HTTPStatusError as exc:
            raise AuthenticationError(
                f"Login failed (HTTP {exc.response.status_code})"
            ) from exc
        except (httpx.HTTPError, ValidationError) as exc:
            raise AuthenticationError(f"Login failed: {exc}") from exc

        self._preferences.update(
            server_url=url,
            jwt_token=login.token,
            email=email,
            password=password,
            allow_self_signed=allow_self_signed,
        )
        logger.info("Connected to %s as %s", url, email)
        return login

    async def status(self) -> SyncStatusResponse:
        """Fetch server-side sync status with the cached token.

        Raises:
            ConfigurationError:  If no server/token is stored.
            AuthenticationError: On 401 (the cached token is cleared).
            SyncError:           On any other HTTP or transport failure.
        """
        creds = self._preferences.credentials()
        if not creds.is_configured:
            raise ConfigurationError("Not configured - connect to a server first")

        try:
            return await self._backend(creds.server_url).get_status(creds.bearer_token)
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 401:
                self._preferences.clear_token()
                raise AuthenticationError("Token rejected by server", token_rejected=True) from exc
            raise SyncError(f"Status request failed (HTTP {exc.response.status_code})") from exc
        except httpx.HTTPError as exc:
            raise SyncError(f"Status request failed: {exc}") from exc

    async def today(self) -> TodayOverview:
        """Compute today's overview from the health store.

        Goals come from the server when an account is configured and the
        status request succeeds; otherwise the defaults are used.
        """
        if self._reader is None or not self._reader.is_available():
            raise ConfigurationError("Health store not available on this device")
        day = self._today()
        window = await self._read(day, day)
        goals, from_server = await self._load_goals()
        return TodayOverview(
            metric=today_summary(self._build_metrics(window), day),
            activities=map_today_activities(window.exercise_sessions, self._zone),
            goals=goals,
            goals_from_server=from_server,
        )

    async def _load_goals(self) -> tuple[dict[str, int], bool]:
        creds = self._preferences.credentials()
        if not creds.is_configured:
            return default_goals(), False
        try:
            status = await self._backend(creds.server_url).get_status(creds.bearer_token)
        except (httpx.HTTPError, ValidationError) as exc:
            logger.info("Using default goals, status unavailable: %s", exc)
            return default_goals(), False
        return status.goals(), True

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _execute(
        self,
        log_type: str,
        attempt: int,
        initial_days: int | None,
        allow_retry: bool = True,
    ) -> SyncResult:
        logger.info("Starting %s (attempt %d/%d)", log_type, attempt, self._max_attempts)
        staged_token: str | None = None
        start: date | None = None
        end: date | None = None

        try:
            creds = self._check_preconditions()
            client = self._backend(creds.server_url)
            token, staged_token = await self._ensure_token(client, creds)
            start, end = self._select_window(initial_days)
            window = await self._read(start, end)
            request = self._build_request(window)
            response = await self._submit(client, token, request, _failure_prefix(log_type))

        except ConfigurationError as exc:
            self._commit_token(staged_token)
            return self._fail(log_type, attempt, str(exc), retryable=False)

        except AuthenticationError as exc:
            if exc.token_rejected:
                self._preferences.clear_token()
                logger.warning("Cleared bearer token after 401")
                return self._fail(log_type, attempt, str(exc), retryable=allow_retry)
            return self._fail(log_type, attempt, str(exc), retryable=False)

        except TransientSubmissionError as exc:
            self._commit_token(staged_token)
            return self._fail(log_type, attempt, str(exc), retryable=allow_retry)

        except Exception as exc:
            logger.exception("Unexpected error during %s", log_type)
            self._commit_token(staged_token)
            return self._fail(
                log_type, attempt, f"{_failure_prefix(log_type)}: {exc}", retryable=allow_retry
            )

        return self._succeed(log_type, attempt, response, staged_token, start, end)

    def _check_preconditions(self) -> SyncCredentials:
        creds = self._preferences.credentials()
        if not creds.server_url or not (creds.is_configured or creds.can_reauthenticate):
            raise ConfigurationError("Not configured - connect to a server first")
        if self._reader is None or not self._reader.is_available():
            raise ConfigurationError("Health store not available on this device")
        return creds

    async def _ensure_token(
        self, client: MomentumClient, creds: SyncCredentials
    ) -> tuple[str, str | None]:
        """Return (token, newly obtained token or None)."""
        if creds.bearer_token:
            return creds.bearer_token, None
        if not creds.can_reauthenticate:
            raise AuthenticationError("Authentication failed - could not obtain token")

        logger.info("No cached token, logging in again as %s", creds.email)
        try:
            login = await client.login(creds.email, creds.password)
        except (httpx.HTTPError, ValidationError) as exc:
            logger.warning("Re-login failed: %s", exc)
            raise AuthenticationError("Authentication failed - could not obtain token") from exc
        return login.token, login.token

    def _select_window(self, initial_days: int | None) -> tuple[date, date]:
        today = self._today()
        if initial_days is not None:
            return today - timedelta(days=initial_days), today

        last_sync = self._preferences.last_sync_timestamp
        if last_sync > 0:
            last = datetime.fromtimestamp(last_sync / 1000.0, tz=timezone.utc)
            return local_date(last, self._zone), today
        return today - timedelta(days=1), today

    async def _read(self, start: date, end: date) -> HealthWindow:
        try:
            return await self._reader.read_window(start, end)
        except HealthStoreUnavailable as exc:
            raise ConfigurationError(str(exc)) from exc

    def _build_metrics(self, window: HealthWindow) -> list[DailyMetric]:
        return build_daily_metrics(
            steps=window.steps,
            exercise_sessions=window.exercise_sessions,
            exercise_calories=window.exercise_calories,
            profile=self._preferences.user_profile(),
            start_date=window.start_date,
            end_date=window.end_date,
            zone=self._zone,
        )

    def _build_request(self, window: HealthWindow) -> HealthSyncRequest:
        return HealthSyncRequest(
            device_name=self._settings.device_name,
            synced_at=self._clock(),
            daily_metrics=self._build_metrics(window),
            activities=map_exercise_sessions(window.exercise_sessions, self._zone),
            sleep_sessions=map_sleep_sessions(window.sleep_sessions, self._zone),
        )

    async def _submit(
        self, client: MomentumClient, token: str, request: HealthSyncRequest, prefix: str
    ) -> HealthSyncResponse:
        logger.info(
            "Submitting %d metric(s), %d activity(ies), %d sleep session(s)",
            len(request.daily_metrics), len(request.activities), len(request.sleep_sessions),
        )
        try:
            return await client.post_health_sync(token, request)
        except httpx.HTTPStatusError as exc:
            code = exc.response.status_code
            message = f"{prefix} (HTTP {code}): {exc.response.reason_phrase}"
            if code == 401:
                raise AuthenticationError(message, token_rejected=True) from exc
            raise TransientSubmissionError(message, status_code=code) from exc
        except httpx.HTTPError as exc:
            raise TransientSubmissionError(f"{prefix}: {exc}") from exc
        except ValidationError as exc:
            raise TransientSubmissionError(
                f"{prefix}: invalid server response ({exc.error_count()} error(s))"
            ) from exc

    # ------------------------------------------------------------------
    # Outcomes
    # ------------------------------------------------------------------

    def _commit_token(self, token: str | None) -> None:
        if token is not None:
            self._preferences.set_token(token)

    def _succeed(
        self,
        log_type: str,
        attempt: int,
        response: HealthSyncResponse,
        staged_token: str | None,
        start: date,
        end: date,
    ) -> SyncResult:
        changes: dict[str, object] = {
            "last_sync_timestamp": int(self._clock().timestamp() * 1000)
        }
        if staged_token is not None:
            changes["jwt_token"] = staged_token
        self._preferences.update(**changes)

        counts = response.synced
        verb = "Imported" if log_type == log_types.INITIAL_IMPORT else "Synced"
        message = (
            f"{verb} {counts.daily_metrics} days, {counts.activities} activities, "
            f"{counts.sleep_sessions} sleep sessions"
        )
        self._sync_log.log(log_type, log_types.SUCCESS, message)
        return SyncResult(
            outcome=SyncOutcome.SUCCESS,
            message=message,
            attempt=attempt,
            counts=counts,
            start_date=start,
            end_date=end,
        )

    def _fail(self, log_type: str, attempt: int, message: str, retryable: bool) -> SyncResult:
        if retryable and attempt < self._max_attempts:
            self._sync_log.log(log_type, log_types.RETRY, message)
            return SyncResult(outcome=SyncOutcome.RETRY, message=message, attempt=attempt)
        self._sync_log.log(log_type, log_types.ERROR, message)
        return SyncResult(outcome=SyncOutcome.FAILURE, message=message, attempt=attempt)
