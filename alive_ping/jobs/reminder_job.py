"""
Approaching-deadline reminder job (default every 10 minutes).

Logs users inside their reminder window; it never escalates.
"""

from datetime import datetime

from alive_ping.jobs.base import PeriodicJob
from alive_ping.services.escalation_engine import EscalationEngine
from alive_ping.utils.clock import Clock


class ReminderJob(PeriodicJob):
    name = "reminder_sweep"

    def __init__(self, engine: EscalationEngine, clock: Clock, interval_minutes: float = 10.0):
        super().__init__(clock, interval_minutes)
        self._engine = engine

    async def _execute(self, now: datetime) -> dict:
        return await self._engine.run_reminder_sweep(now)
