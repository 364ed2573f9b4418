"""
Background worker runner.

Reads the desired job name from CLI args or the WORKER_JOB environment
variable, opens its own database pool and runs the job:

    scheduler         both sweeps on their timers until interrupted
    escalation_sweep  one escalation sweep, then exit
    reminder_sweep    one reminder sweep, then exit
    init_db           create tables and indexes, then exit
"""

import asyncio
import os
import sys
from collections.abc import Awaitable, Callable

from alive_ping.config import settings
from alive_ping.db.pool import DatabasePoolManager
from alive_ping.db.schema import init_schema
from alive_ping.infrastructure.observability.logging import get_logger, setup_logging
from alive_ping.runtime import Runtime, build_runtime

logger = get_logger(__name__)

JobCoroutine = Callable[[Runtime], Awaitable[object]]


async def _run_scheduler(runtime: Runtime) -> None:
    await runtime.scheduler.run_forever()


async def _run_escalation_sweep(runtime: Runtime) -> dict:
    return await runtime.escalation_job.run_once()


async def _run_reminder_sweep(runtime: Runtime) -> dict:
    return await runtime.reminder_job.run_once()


async def _run_init_db(runtime: Runtime) -> None:
    await init_schema(runtime.pool)


JOB_REGISTRY: dict[str, JobCoroutine] = {
    "scheduler": _run_scheduler,
    "escalation_sweep": _run_escalation_sweep,
    "reminder_sweep": _run_reminder_sweep,
    "init_db": _run_init_db,
}


def _resolve_job_name() -> str:
    """Pick the target job from CLI args or WORKER_JOB env variable."""
    if len(sys.argv) > 1:
        return sys.argv[1].strip().lower()
    return os.getenv("WORKER_JOB", "scheduler").strip().lower()


async def run_worker(job_name: str | None = None, runtime: Runtime | None = None) -> object:
    """Run the requested background job against a fresh (or supplied) runtime."""
    name = (job_name or _resolve_job_name()).strip().lower()
    if name not in JOB_REGISTRY:
        raise ValueError(
            f"Unknown worker job '{name}'. "
            f"Available jobs: {', '.join(sorted(JOB_REGISTRY.keys()))}"
        )

    owns_runtime = runtime is None
    if owns_runtime:
        pool = DatabasePoolManager(config=settings)
        await pool.initialize()
        runtime = build_runtime(pool, settings)

    logger.info("Starting background worker", job=name)
    try:
        return await JOB_REGISTRY[name](runtime)
    finally:
        if owns_runtime:
            await runtime.close()


def main() -> None:
    """CLI entrypoint."""
    setup_logging(log_level=settings.LOG_LEVEL, json_logs=settings.environment != "development")
    job_name = _resolve_job_name()
    try:
        asyncio.run(run_worker(job_name))
    except KeyboardInterrupt:
        logger.info("Worker stopped by user", job=job_name)


if __name__ == "__main__":
    main()
