"""
Health check endpoints: liveness, readiness, database pool and background jobs.
"""

import time

from fastapi import APIRouter, Depends

from alive_ping.config import settings
from alive_ping.infrastructure.observability.logging import log_health_check
from alive_ping.routes.dependencies import get_runtime
from alive_ping.runtime import Runtime

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "alive-ping"}


@router.get("/readyz")
async def readyz(runtime: Runtime = Depends(get_runtime)):
    """Readiness check: database pool and configuration."""
    checks = {}
    overall_ok = True

    t0 = time.time()
    try:
        db_health = await runtime.pool.health_check()
        is_healthy = db_health.get("healthy", False)
        latency_ms = round((time.time() - t0) * 1000, 1)

        checks["database"] = {"ok": is_healthy, "latency_ms": latency_ms}
        if "pool_stats" in db_health:
            pool_stats = db_health["pool_stats"]
            checks["database"].update(
                {
                    "pool_size": pool_stats.get("pool_size", 0),
                    "pool_available": pool_stats.get("pool_available", 0),
                    "pool_utilization_percent": pool_stats.get("pool_utilization_percent", 0),
                }
            )
        if "warnings" in db_health:
            checks["database"]["warnings"] = db_health["warnings"]
        if not is_healthy:
            checks["database"]["error"] = db_health.get("error", "Database unhealthy")

        log_health_check("database", is_healthy, latency_ms, db_health.get("error"))
        overall_ok = overall_ok and is_healthy

    except Exception as e:
        checks["database"] = {
            "ok": False,
            "error": f"{type(e).__name__}: {e}",
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        overall_ok = False

    config_issues = []
    if not settings.DATABASE_URL:
        config_issues.append("DATABASE_URL not set")
    if not settings.JWT_SECRET:
        config_issues.append("JWT_SECRET not set")
    if settings.NOTIFIER_BACKEND == "http" and not settings.SMS_GATEWAY_URL:
        config_issues.append("SMS_GATEWAY_URL not set")

    checks["configuration"] = {
        "ok": not config_issues,
        "issues": config_issues or None,
        "environment": settings.environment,
    }
    overall_ok = overall_ok and not config_issues

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}


@router.get("/health/database")
async def database_health(runtime: Runtime = Depends(get_runtime)):
    """Detailed database pool health information."""
    return await runtime.pool.health_check()


@router.get("/health/jobs")
async def jobs_health(runtime: Runtime = Depends(get_runtime)):
    """Scheduler state plus last run, overdue flag and last metrics per job."""
    health = runtime.scheduler.health_check()
    health["scheduler_enabled"] = settings.SCHEDULER_ENABLED
    health["status"] = runtime.scheduler.status()["jobs"]
    return health
