"""
Escalation state: the append-only sms_logs table.

No counters are cached anywhere. The number of rounds sent today is
recomputed from the log on every sweep (MAX(sms_count) within the local
day), so a failed or duplicated append never leaves stale state behind.
"""

from datetime import datetime

from alive_ping.db.helpers import fetch_one, with_db_retry
from alive_ping.db.pool import DatabasePoolManager
from alive_ping.infrastructure.observability.logging import get_logger
from alive_ping.models.domain.checkin_domain import DailyEscalationSummary, EscalationRecord
from alive_ping.services.errors import EscalationSuperseded
from alive_ping.utils.clock import LocalDay, ensure_utc

logger = get_logger(__name__)

RECORD_COLUMNS = "id, user_id, contact_id, sms_count, sent_at, status, error_message"


def row_to_record(row: dict) -> EscalationRecord:
    return EscalationRecord(
        id=row["id"],
        user_id=row["user_id"],
        contact_id=row["contact_id"],
        sequence_number=row["sms_count"],
        sent_at=row["sent_at"],
        status=row["status"],
        error_detail=row.get("error_message"),
    )


class EscalationRepository:
    """Reads today's escalation aggregate and appends attempt records."""

    def __init__(self, pool: DatabasePoolManager):
        self._pool = pool

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def today_summary(self, user_id: int, day: LocalDay) -> DailyEscalationSummary:
        query = """
            SELECT COALESCE(MAX(sms_count), 0) AS max_count, MAX(sent_at) AS last_sent
            FROM sms_logs
            WHERE user_id = %s AND sent_at >= %s AND sent_at < %s
        """
        async with self._pool.connection() as conn:
            row = await fetch_one(conn, query, (user_id, day.start, day.end))

        if not row:
            return DailyEscalationSummary()
        return DailyEscalationSummary(
            sent_today=int(row["max_count"] or 0),
            last_sent_at=row["last_sent"],
        )

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def is_still_eligible(self, user_id: int, expected_deadline: datetime) -> bool:
        """Unlocked read: user unpaused and latest deadline unchanged."""
        query = """
            SELECT u.is_paused, c.next_check_in_deadline
            FROM users u
            LEFT JOIN LATERAL (
                SELECT next_check_in_deadline
                FROM checkins
                WHERE user_id = u.id
                ORDER BY check_in_time DESC, id DESC
                LIMIT 1
            ) c ON TRUE
            WHERE u.id = %s
        """
        async with self._pool.connection() as conn:
            row = await fetch_one(conn, query, (user_id,))

        if not row or row["is_paused"] or row["next_check_in_deadline"] is None:
            return False
        return ensure_utc(row["next_check_in_deadline"]) == ensure_utc(expected_deadline)

    async def append(self, record: EscalationRecord, expected_deadline: datetime) -> EscalationRecord:
        """
        Append one attempt record after re-validating eligibility.

        Locks the user row, then checks the user is still unpaused and that
        their latest deadline is the one the sweep classified. Check-in
        intake takes the same lock, so a check-in cannot slip in between.

        Raises:
            EscalationSuperseded: the user checked in again or paused
            DatabaseError: the insert failed
        """
        async with self._pool.transaction() as conn:
            user_row = await fetch_one(
                conn, "SELECT is_paused FROM users WHERE id = %s FOR UPDATE", (record.user_id,)
            )
            if not user_row or user_row["is_paused"]:
                logger.debug("Escalation append rejected, user paused or gone", user_id=record.user_id)
                raise EscalationSuperseded(record.user_id)

            latest = await fetch_one(
                conn,
                """
                SELECT next_check_in_deadline
                FROM checkins
                WHERE user_id = %s
                ORDER BY check_in_time DESC, id DESC
                LIMIT 1
                """,
                (record.user_id,),
            )
            if not latest or ensure_utc(latest["next_check_in_deadline"]) != ensure_utc(
                expected_deadline
            ):
                logger.debug("Escalation append rejected, deadline moved", user_id=record.user_id)
                raise EscalationSuperseded(record.user_id)

            return await self._insert(conn, record)

    async def record_attempt(self, record: EscalationRecord) -> EscalationRecord:
        """Log an attempt that already reached the gateway, without re-validating."""
        async with self._pool.connection() as conn:
            return await self._insert(conn, record)

    async def _insert(self, conn, record: EscalationRecord) -> EscalationRecord:
        row = await fetch_one(
            conn,
            f"""
            INSERT INTO sms_logs (user_id, contact_id, sms_count, sent_at, status, error_message)
            VALUES (%s, %s, %s, %s, %s, %s)
            RETURNING {RECORD_COLUMNS}
            """,
            (
                record.user_id,
                record.contact_id,
                record.sequence_number,
                record.sent_at,
                record.status,
                record.error_detail,
            ),
        )
        return row_to_record(row)
