"""
Shared plumbing for the periodic sweep jobs.

Each job instance owns an asyncio.Lock so a sweep never overlaps itself;
different jobs may run at the same time.
"""

import asyncio
from datetime import datetime, timedelta

from alive_ping.infrastructure.observability.logging import get_logger
from alive_ping.utils.clock import Clock

logger = get_logger(__name__)


class PeriodicJobError(Exception):
    """Custom exception for periodic job failures."""

    def __init__(self, message: str, operation: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


class PeriodicJob:
    """Base class: run_once with self-exclusion, status and health reporting."""

    name = "periodic_job"

    def __init__(self, clock: Clock, interval_minutes: float):
        if interval_minutes <= 0:
            raise ValueError(f"{self.name}: interval must be positive")

        self._clock = clock
        self.interval_minutes = interval_minutes
        self._lock = asyncio.Lock()
        self.last_run_time: datetime | None = None
        self.last_metrics: dict | None = None
        self.consecutive_failures = 0

    @property
    def interval_seconds(self) -> float:
        return self.interval_minutes * 60

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def _execute(self, now: datetime) -> dict:
        raise NotImplementedError

    async def run_once(self) -> dict:
        """
        Run a single iteration of the job.

        Returns:
            dict: Job metrics, or {"skipped": True, ...} if already running

        Raises:
            PeriodicJobError: If the sweep itself failed (e.g. database down)
        """
        if self._lock.locked():
            logger.warning("Job already running, skipping this iteration", job=self.name)
            return {"skipped": True, "reason": "already_running", "job_run": self.name}

        async with self._lock:
            now = self._clock.now()
            try:
                metrics = await self._execute(now)
            except Exception as e:
                self.consecutive_failures += 1
                logger.error(
                    "Job run failed",
                    job=self.name,
                    error=str(e),
                    error_type=type(e).__name__,
                    consecutive_failures=self.consecutive_failures,
                )
                raise PeriodicJobError(f"{self.name} failed: {e}", operation="run_once") from e

            self.last_run_time = now
            self.last_metrics = metrics
            self.consecutive_failures = 0
            return metrics

    def get_job_status(self) -> dict:
        return {
            "job_name": self.name,
            "is_running": self.is_running,
            "interval_minutes": self.interval_minutes,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "consecutive_failures": self.consecutive_failures,
            "last_run_metrics": self.last_metrics,
        }

    def health_check(self) -> dict:
        """Unhealthy when the job hasn't completed within twice its interval."""
        now = self._clock.now()
        overdue_threshold = timedelta(minutes=self.interval_minutes * 2)
        is_overdue = self.last_run_time is not None and (now - self.last_run_time) > overdue_threshold

        health = {
            "healthy": not is_overdue and self.consecutive_failures == 0,
            "service": self.name,
            "is_running": self.is_running,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "is_overdue": is_overdue,
            "consecutive_failures": self.consecutive_failures,
        }
        if is_overdue:
            health["warning"] = (
                f"Job overdue by {(now - self.last_run_time).total_seconds() / 60:.1f} minutes"
            )
        return health
