"""
FastAPI application with explicit runtime lifecycle management.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from alive_ping.config import settings
from alive_ping.db.pool import DatabasePoolManager
from alive_ping.infrastructure.observability.logging import get_logger, setup_logging
from alive_ping.routes import checkin, contacts, health, user
from alive_ping.runtime import build_runtime

setup_logging(log_level=settings.LOG_LEVEL, json_logs=settings.environment != "development")
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the pool, build the runtime, start the scheduler; tear down in reverse."""
    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    pool = DatabasePoolManager(config=settings)
    try:
        logger.info("Initializing database pool")
        await pool.initialize()
    except Exception as e:
        logger.error("Failed to initialize database pool", error=str(e))
        raise

    runtime = build_runtime(pool, settings)
    app.state.runtime = runtime

    if settings.SCHEDULER_ENABLED:
        runtime.scheduler.start()
        logger.info("Scheduler started", jobs=sorted(runtime.scheduler.jobs))
    else:
        logger.info("Scheduler disabled; run the worker process for sweeps")

    yield

    logger.info("Application shutting down")
    try:
        await runtime.close()
        logger.info("All services closed successfully")
    except Exception as e:
        logger.error("Error during shutdown", error=str(e))
    finally:
        app.state.runtime = None


app = FastAPI(
    title="Alive Ping",
    description="Daily check-in service with emergency contact escalation",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(checkin.router)
app.include_router(contacts.router)
app.include_router(user.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    logger.info(
        "HTTP request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
