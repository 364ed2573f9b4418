"""
In-process scheduler for the periodic jobs.

One asyncio task per job, each on its own fixed-rate timer. A run that
overruns its period starts the next iteration immediately instead of
queueing missed ticks. stop() signals the loops and gives an in-flight
sweep a bounded time to finish before cancelling it.
"""

import asyncio
import time

from alive_ping.infrastructure.observability.logging import get_logger
from alive_ping.jobs.base import PeriodicJob, PeriodicJobError

logger = get_logger(__name__)

ERROR_BACKOFF_SECONDS = 60


class JobScheduler:
    def __init__(self, jobs: list[PeriodicJob], shutdown_timeout_seconds: float = 30.0):
        self.jobs = {job.name: job for job in jobs}
        self.shutdown_timeout_seconds = shutdown_timeout_seconds
        self._stop = asyncio.Event()
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        if self.running:
            logger.warning("Job scheduler already running")
            return

        self._stop.clear()
        self._tasks = [
            asyncio.create_task(self._run_loop(job), name=f"job:{job.name}")
            for job in self.jobs.values()
        ]
        logger.info(
            "Job scheduler started",
            jobs={name: job.interval_minutes for name, job in self.jobs.items()},
        )

    async def _run_loop(self, job: PeriodicJob) -> None:
        logger.info("Starting job loop", job=job.name, interval_minutes=job.interval_minutes)

        while not self._stop.is_set():
            started = time.monotonic()
            delay = job.interval_seconds

            try:
                await job.run_once()
            except PeriodicJobError:
                # Already logged by the job; back off a little before retrying
                delay = min(job.interval_seconds, ERROR_BACKOFF_SECONDS)
            except Exception as e:
                logger.error(
                    "Unexpected error in job loop",
                    job=job.name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                delay = min(job.interval_seconds, ERROR_BACKOFF_SECONDS)
            else:
                delay = max(0.0, job.interval_seconds - (time.monotonic() - started))

            if await self._wait_for_stop(delay):
                break

        logger.info("Job loop stopped", job=job.name)

    async def _wait_for_stop(self, delay: float) -> bool:
        """Sleep up to ``delay`` seconds; True if stop was requested."""
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=delay)
        except TimeoutError:
            return False
        return True

    async def stop(self) -> None:
        if not self._tasks:
            return

        logger.info("Stopping job scheduler", timeout_seconds=self.shutdown_timeout_seconds)
        self._stop.set()

        _, pending = await asyncio.wait(self._tasks, timeout=self.shutdown_timeout_seconds)
        for task in pending:
            logger.warning("Cancelling job still running at shutdown", task=task.get_name())
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        self._tasks = []
        logger.info("Job scheduler stopped")

    async def run_forever(self) -> None:
        """Start the loops and block until stop() is called or the task is cancelled."""
        self.start()
        try:
            await self._stop.wait()
        finally:
            await self.stop()

    def status(self) -> dict:
        return {
            "running": self.running,
            "jobs": {name: job.get_job_status() for name, job in self.jobs.items()},
        }

    def health_check(self) -> dict:
        checks = {name: job.health_check() for name, job in self.jobs.items()}
        return {
            "healthy": self.running and all(check["healthy"] for check in checks.values()),
            "running": self.running,
            "jobs": checks,
        }
