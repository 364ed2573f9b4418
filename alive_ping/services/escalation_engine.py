"""
Escalation engine: one sweep over all active users.

For every non-paused user with at least one check-in, the current
deadline is classified at ``now``. Users that are OVERDUE_ELIGIBLE get one
escalation round, unless today's cap is reached or the last round was
too recent: every contact is notified, and one sms_logs record is
appended per attempt, all sharing the round's sequence number.

Nothing here raises out of a sweep for a single user's problem: delivery
failures are recorded, persistence failures are logged and left for the
next sweep, and unexpected errors are counted per user.
"""

import asyncio
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from alive_ping.config import Settings
from alive_ping.infrastructure.observability.logging import get_logger
from alive_ping.models.domain.checkin_domain import (
    ActiveDeadline,
    Contact,
    DeadlineState,
    EscalationRecord,
    User,
)
from alive_ping.services.deadline import classify_user
from alive_ping.services.errors import (
    EscalationSuperseded,
    NoContactsConfigured,
    NotificationDeliveryFailed,
    PersistenceFailure,
)
from alive_ping.services.notifier import mask_phone
from alive_ping.utils.clock import ensure_utc, local_day

logger = get_logger(__name__)


@dataclass(frozen=True)
class EscalationPolicy:
    """Process-wide knobs for the escalation engine."""

    max_sms_count: int = 3
    min_interval: timedelta | None = timedelta(minutes=30)
    local_day_offset: timedelta = timedelta(hours=8)
    notifier_timeout_seconds: float = 10.0

    @classmethod
    def from_settings(cls, config: Settings) -> "EscalationPolicy":
        return cls(
            max_sms_count=config.MAX_SMS_COUNT,
            min_interval=config.sms_interval(),
            local_day_offset=config.local_day_offset(),
            notifier_timeout_seconds=config.NOTIFIER_TIMEOUT_SECONDS,
        )


class RoundOutcome(str, Enum):
    SENT = "sent"
    NO_CONTACTS = "no_contacts"
    CAPPED = "capped"
    THROTTLED = "throttled"
    SUPERSEDED = "superseded"


@dataclass
class RoundResult:
    """What happened to one overdue user during one sweep."""

    user_id: int
    outcome: RoundOutcome
    sequence_number: int | None = None
    delivered: int = 0
    failed: int = 0
    persistence_failures: int = 0
    records: list[EscalationRecord] = field(default_factory=list)


class SweepMetrics:
    """Counters for one escalation sweep."""

    def __init__(self, now: datetime):
        self.now = now
        self._started = time.monotonic()
        self.duration_seconds = 0.0
        self.users_scanned = 0
        self.states: Counter = Counter()
        self.outcomes: Counter = Counter()
        self.notifications_sent = 0
        self.notifications_failed = 0
        self.persistence_failures = 0
        self.processing_errors = 0
        self.errors: list[dict] = []

    def record_state(self, state: DeadlineState) -> None:
        self.users_scanned += 1
        self.states[state.value] += 1

    def record_round(self, result: RoundResult) -> None:
        self.outcomes[result.outcome.value] += 1
        self.notifications_sent += result.delivered
        self.notifications_failed += result.failed
        self.persistence_failures += result.persistence_failures

    def record_processing_error(self, user_id: int, error: str) -> None:
        self.processing_errors += 1
        self.errors.append({"user_id": user_id, "error": error})
        logger.error("Escalation processing error", user_id=user_id, error=error)

    def finalize(self) -> None:
        self.duration_seconds = time.monotonic() - self._started

    @property
    def rounds_sent(self) -> int:
        return self.outcomes[RoundOutcome.SENT.value]

    def to_dict(self) -> dict:
        return {
            "job_run": "escalation_sweep",
            "now": self.now.isoformat(),
            "duration_seconds": round(self.duration_seconds, 3),
            "users_scanned": self.users_scanned,
            "states": dict(self.states),
            "rounds": dict(self.outcomes),
            "rounds_sent": self.rounds_sent,
            "notifications_sent": self.notifications_sent,
            "notifications_failed": self.notifications_failed,
            "persistence_failures": self.persistence_failures,
            "processing_errors": self.processing_errors,
            "errors_count": len(self.errors),
        }


class EscalationEngine:
    """
    Classifies active users and runs escalation rounds.

    The stores and notifier are passed in explicitly; the engine keeps no
    state between sweeps. Today's count is read back from the log every
    time, so repeated or overlapping sweeps cannot exceed the cap.
    """

    def __init__(self, checkins, contacts, escalations, notifier, policy: EscalationPolicy):
        self._checkins = checkins
        self._contacts = contacts
        self._escalations = escalations
        self._notifier = notifier
        self.policy = policy

    async def run_sweep(self, now: datetime) -> SweepMetrics:
        """Evaluate every active user at ``now`` and escalate the overdue ones."""
        now = ensure_utc(now)
        metrics = SweepMetrics(now)

        candidates = await self._checkins.list_active_deadlines()
        logger.info("Escalation sweep started", candidates=len(candidates), now=now.isoformat())

        for candidate in candidates:
            classification = classify_user(now, candidate.user, candidate.latest_check_in)
            metrics.record_state(classification.state)

            if not classification.escalation_eligible:
                continue

            try:
                result = await self.escalate_user(candidate, now)
            except Exception as e:
                metrics.record_processing_error(candidate.user.id, f"{type(e).__name__}: {e}")
                continue

            metrics.record_round(result)

        metrics.finalize()
        logger.info("Escalation sweep completed", **metrics.to_dict())
        return metrics

    async def escalate_user(self, candidate: ActiveDeadline, now: datetime) -> RoundResult:
        """
        Run at most one escalation round for an overdue user.

        The caller has already established the user is OVERDUE_ELIGIBLE;
        each contact is re-checked before sending, and the append step
        re-validates under the user row lock.
        """
        user = candidate.user
        deadline = candidate.latest_check_in.next_deadline

        contacts = await self._contacts.list_for_user(user.id)
        if not contacts:
            logger.warning("Skipping overdue user", user_id=user.id, reason=str(NoContactsConfigured(user.id)))
            return RoundResult(user_id=user.id, outcome=RoundOutcome.NO_CONTACTS)

        day = local_day(now, self.policy.local_day_offset)
        summary = await self._escalations.today_summary(user.id, day)

        if summary.sent_today >= self.policy.max_sms_count:
            logger.info(
                "Daily escalation cap reached",
                user_id=user.id,
                sent_today=summary.sent_today,
                max_sms_count=self.policy.max_sms_count,
            )
            return RoundResult(
                user_id=user.id, outcome=RoundOutcome.CAPPED, sequence_number=summary.sent_today
            )

        if self._throttled(now, summary.last_sent_at):
            logger.debug(
                "Escalation throttled",
                user_id=user.id,
                last_sent_at=summary.last_sent_at.isoformat(),
                interval_minutes=self.policy.min_interval.total_seconds() / 60,
            )
            return RoundResult(
                user_id=user.id, outcome=RoundOutcome.THROTTLED, sequence_number=summary.sent_today
            )

        sequence = summary.sent_today + 1
        result = RoundResult(user_id=user.id, outcome=RoundOutcome.SENT, sequence_number=sequence)

        for contact in contacts:
            # A check-in or pause since classification ends the round before
            # anyone else is notified.
            if not await self._escalations.is_still_eligible(user.id, deadline):
                self._log_superseded(user.id, sequence, result)
                result.outcome = RoundOutcome.SUPERSEDED
                break

            delivered, error_detail = await self._deliver(user, contact)
            record = EscalationRecord(
                user_id=user.id,
                contact_id=contact.id,
                sequence_number=sequence,
                sent_at=now,
                status="sent" if delivered else "failed",
                error_detail=error_detail,
            )

            if delivered:
                result.delivered += 1
            else:
                result.failed += 1

            superseded = False
            try:
                try:
                    stored = await self._escalations.append(record, expected_deadline=deadline)
                except EscalationSuperseded:
                    # Every gateway call gets exactly one record
                    superseded = True
                    stored = await self._escalations.record_attempt(record)
            except Exception as e:
                # Round for this contact is indeterminate; the next sweep
                # recomputes from the log and may notify again.
                failure = PersistenceFailure(f"{type(e).__name__}: {e}", operation="append_escalation")
                logger.error(
                    "Failed to record escalation attempt",
                    user_id=user.id,
                    contact_id=contact.id,
                    sequence=sequence,
                    error=str(failure),
                )
                result.persistence_failures += 1
                stored = None

            if stored is not None:
                result.records.append(stored)

            if superseded:
                self._log_superseded(user.id, sequence, result)
                result.outcome = RoundOutcome.SUPERSEDED
                break

        if result.outcome == RoundOutcome.SENT:
            logger.info(
                "Escalation round sent",
                user_id=user.id,
                sequence=sequence,
                delivered=result.delivered,
                failed=result.failed,
            )
        return result

    def _log_superseded(self, user_id: int, sequence: int, result: RoundResult) -> None:
        logger.info(
            "Escalation round abandoned, user checked in or paused",
            user_id=user_id,
            sequence=sequence,
            contacts_attempted=result.delivered + result.failed,
        )

    def _throttled(self, now: datetime, last_sent_at: datetime | None) -> bool:
        if self.policy.min_interval is None or last_sent_at is None:
            return False
        return now - ensure_utc(last_sent_at) < self.policy.min_interval

    async def _deliver(self, user: User, contact: Contact) -> tuple[bool, str | None]:
        """One bounded notifier call; never raises."""
        timeout = self.policy.notifier_timeout_seconds
        try:
            ok = await asyncio.wait_for(
                self._notifier.send(contact.phone, user.display_name, user.phone),
                timeout=timeout,
            )
        except TimeoutError:
            failure = NotificationDeliveryFailed(contact.phone, f"timed out after {timeout}s")
        except Exception as e:
            failure = NotificationDeliveryFailed(contact.phone, f"{type(e).__name__}: {e}")
        else:
            if ok is True:
                return True, None
            failure = NotificationDeliveryFailed(contact.phone, "notifier reported failure")

        logger.warning(
            "Escalation delivery failed",
            user_id=user.id,
            contact_id=contact.id,
            contact_phone=mask_phone(contact.phone),
            reason=failure.reason,
        )
        return False, failure.reason

    async def run_reminder_sweep(self, now: datetime) -> dict:
        """
        Log users whose deadline falls within their reminder window.

        Best-effort and non-escalating: nothing is delivered or recorded,
        so the same user may be logged by consecutive sweeps.
        """
        now = ensure_utc(now)
        started = time.monotonic()

        candidates = await self._checkins.list_active_deadlines()
        approaching = []
        for candidate in candidates:
            classification = classify_user(now, candidate.user, candidate.latest_check_in)
            if classification.state != DeadlineState.APPROACHING:
                continue

            approaching.append(candidate.user.id)
            logger.info(
                "User deadline approaching",
                user_id=candidate.user.id,
                next_deadline=classification.next_deadline.isoformat(),
                minutes_remaining=round(classification.time_remaining.total_seconds() / 60, 1),
            )

        summary = {
            "job_run": "reminder_sweep",
            "now": now.isoformat(),
            "users_scanned": len(candidates),
            "users_approaching": len(approaching),
            "duration_seconds": round(time.monotonic() - started, 3),
        }
        logger.info("Reminder sweep completed", **summary)
        return summary
