"""
Composition root: wires stores, notifier, engine, services and jobs
around one explicitly constructed database pool.
"""

from dataclasses import dataclass

from alive_ping.config import Settings
from alive_ping.db.pool import DatabasePoolManager
from alive_ping.jobs.escalation_job import EscalationJob
from alive_ping.jobs.reminder_job import ReminderJob
from alive_ping.jobs.scheduler import JobScheduler
from alive_ping.repositories.checkin_repository import CheckInRepository
from alive_ping.repositories.contact_repository import ContactRepository
from alive_ping.repositories.escalation_repository import EscalationRepository
from alive_ping.repositories.user_repository import UserRepository
from alive_ping.services.checkin_service import CheckInService
from alive_ping.services.contact_service import ContactService
from alive_ping.services.escalation_engine import EscalationEngine, EscalationPolicy
from alive_ping.services.notifier import build_notifier
from alive_ping.services.user_service import UserService
from alive_ping.utils.clock import Clock, SystemClock


@dataclass
class Runtime:
    pool: DatabasePoolManager
    clock: Clock
    users: UserRepository
    checkins: CheckInRepository
    contacts: ContactRepository
    escalations: EscalationRepository
    notifier: object
    engine: EscalationEngine
    checkin_service: CheckInService
    contact_service: ContactService
    user_service: UserService
    escalation_job: EscalationJob
    reminder_job: ReminderJob
    scheduler: JobScheduler

    async def close(self) -> None:
        """Stop the scheduler, release the notifier, close the pool."""
        try:
            await self.scheduler.stop()
        finally:
            try:
                await self.notifier.close()
            finally:
                await self.pool.close()


def build_runtime(
    pool: DatabasePoolManager,
    config: Settings,
    *,
    clock: Clock | None = None,
    notifier=None,
) -> Runtime:
    clock = clock or SystemClock()
    notifier = notifier or build_notifier(config)

    users = UserRepository(pool)
    checkins = CheckInRepository(pool)
    contacts = ContactRepository(pool)
    escalations = EscalationRepository(pool)

    engine = EscalationEngine(
        checkins=checkins,
        contacts=contacts,
        escalations=escalations,
        notifier=notifier,
        policy=EscalationPolicy.from_settings(config),
    )
    escalation_job = EscalationJob(engine, clock, config.ESCALATION_SWEEP_INTERVAL_MINUTES)
    reminder_job = ReminderJob(engine, clock, config.REMINDER_SWEEP_INTERVAL_MINUTES)

    return Runtime(
        pool=pool,
        clock=clock,
        users=users,
        checkins=checkins,
        contacts=contacts,
        escalations=escalations,
        notifier=notifier,
        engine=engine,
        checkin_service=CheckInService(users, checkins, clock, config.local_day_offset()),
        contact_service=ContactService(contacts),
        user_service=UserService(users),
        escalation_job=escalation_job,
        reminder_job=reminder_job,
        scheduler=JobScheduler(
            [escalation_job, reminder_job],
            shutdown_timeout_seconds=config.SCHEDULER_SHUTDOWN_TIMEOUT_SECONDS,
        ),
    )
