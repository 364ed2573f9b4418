"""
Escalation sweep job.

Runs the escalation engine over all active users on a fixed cadence
(default every 5 minutes).
"""

from datetime import datetime

from alive_ping.jobs.base import PeriodicJob
from alive_ping.services.escalation_engine import EscalationEngine
from alive_ping.utils.clock import Clock


class EscalationJob(PeriodicJob):
    name = "escalation_sweep"

    def __init__(self, engine: EscalationEngine, clock: Clock, interval_minutes: float = 5.0):
        super().__init__(clock, interval_minutes)
        self._engine = engine

    async def _execute(self, now: datetime) -> dict:
        metrics = await self._engine.run_sweep(now)
        return metrics.to_dict()
