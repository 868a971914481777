"""In-process scheduler for the periodic health sync job.

There is exactly one logical job, ``momentum_health_sync``:

1. ``schedule_periodic`` starts it, replacing any job already scheduled
2. Each tick checks the optional constraints, then runs the orchestrator
3. A RETRY outcome re-invokes after an exponential backoff
   (10 s, 20 s, 40 s, ... capped at 5 h) with the next attempt number
4. SUCCESS or FAILURE ends the tick; the attempt counter resets

``sync_now`` and ``run_initial_import`` share the job lock with the
periodic loop, so two runs never overlap.

Supported intervals (minutes): 15, 30, 60, 120.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from companion.sync.orchestrator import SyncOrchestrator, SyncOutcome, SyncResult

logger = logging.getLogger("momentum.sync.scheduler")

JOB_NAME = "momentum_health_sync"

SUPPORTED_INTERVALS: tuple[int, ...] = (15, 30, 60, 120)

MIN_BACKOFF_SECONDS = 10
MAX_BACKOFF_SECONDS = 5 * 60 * 60


def backoff_delay(attempt: int) -> float:
    """Return the wait before re-invoking after a RETRY on ``attempt`` (1-based)."""
    return float(min(MIN_BACKOFF_SECONDS * 2 ** (attempt - 1), MAX_BACKOFF_SECONDS))


class SyncScheduler:
    """Schedule and execute the unique sync job.

    Usage::

        scheduler = SyncScheduler(orchestrator, constraints=network_available)
        scheduler.schedule_periodic(15)
        ...
        await scheduler.sync_now()
        scheduler.cancel_all()
    """

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        constraints: Callable[[], bool] | None = None,
        job_name: str = JOB_NAME,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the scheduler.

        Args:
            orchestrator: Runs one sync invocation.
            constraints:  Callable returning False when a tick must be skipped
                          (e.g. no network).  None means always run.
            job_name:     Name of the unique periodic job.
            sleep:        Awaitable sleep, replaceable in tests.
        """
        self._orchestrator = orchestrator
        self._constraints = constraints
        self._job_name = job_name
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._periodic: asyncio.Task | None = None
        self._interval_minutes: int | None = None
        self._oneshots: set[asyncio.Task] = set()

    @property
    def job_name(self) -> str:
        return self._job_name

    @property
    def is_scheduled(self) -> bool:
        return self._periodic is not None and not self._periodic.done()

    @property
    def interval_minutes(self) -> int | None:
        return self._interval_minutes if self.is_scheduled else None

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def schedule_periodic(self, interval_minutes: int) -> asyncio.Task:
        """Start the periodic job, replacing any pending one.

        Must be called from a running event loop.

        Raises:
            ValueError: If the interval is not a supported one.
        """
        if interval_minutes not in SUPPORTED_INTERVALS:
            raise ValueError(
                f"Unsupported sync interval {interval_minutes} min; "
                f"expected one of {SUPPORTED_INTERVALS}"
            )
        if self._periodic is not None and not self._periodic.done():
            logger.info("Replacing scheduled job %s", self._job_name)
            self._periodic.cancel()

        self._interval_minutes = interval_minutes
        self._periodic = asyncio.create_task(
            self._periodic_loop(interval_minutes * 60), name=self._job_name
        )
        logger.info("Scheduled %s every %d min", self._job_name, interval_minutes)
        return self._periodic

    async def _periodic_loop(self, interval_seconds: float) -> None:
        while True:
            try:
                await self.run_job()
            except Exception:
                logger.exception("Tick of %s failed, keeping schedule", self._job_name)
            await self._sleep(interval_seconds)

    def cancel_all(self) -> None:
        """Cancel the periodic job and any in-flight one-shot run."""
        cancelled = 0
        if self._periodic is not None and not self._periodic.done():
            self._periodic.cancel()
            cancelled += 1
        for task in list(self._oneshots):
            if not task.done():
                task.cancel()
                cancelled += 1
        self._periodic = None
        self._interval_minutes = None
        logger.info("Cancelled %d task(s) for %s", cancelled, self._job_name)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _constraints_met(self) -> bool:
        if self._constraints is None:
            return True
        try:
            return bool(self._constraints())
        except Exception as exc:
            logger.warning("Constraint check failed, skipping tick: %s", exc)
            return False

    async def run_job(self) -> SyncResult | None:
        """Run one tick: constraints, then the orchestrator with retries.

        Returns:
            The final SyncResult, or None if the tick was skipped.
        """
        if not self._constraints_met():
            logger.info("Constraints not met, skipping %s", self._job_name)
            return None

        async with self._lock:
            attempt = 1
            while True:
                result = await self._orchestrator.run(attempt=attempt)
                if result.outcome is not SyncOutcome.RETRY:
                    logger.info(
                        "%s finished: %s after %d attempt(s)",
                        self._job_name, result.outcome.value, attempt,
                    )
                    return result
                delay = backoff_delay(attempt)
                logger.info("Retrying %s in %.0fs (attempt %d)", self._job_name, delay, attempt + 1)
                await self._sleep(delay)
                attempt += 1

    async def _run_oneshot(self, coro: Awaitable) -> object:
        task = asyncio.ensure_future(coro)
        self._oneshots.add(task)
        task.add_done_callback(self._oneshots.discard)
        return await task

    async def sync_now(self) -> SyncResult | None:
        """Run one extra sync immediately, waiting for any running one first."""
        return await self._run_oneshot(self.run_job())

    async def run_initial_import(self, days: int | None = None) -> SyncResult:
        """Run the initial import under the job lock.  Never retried."""

        async def _import() -> SyncResult:
            async with self._lock:
                return await self._orchestrator.initial_import(days)

        return await self._run_oneshot(_import())
