"""
Deadline store: the append-only check-in log.

A user's current deadline is the next_check_in_deadline of their most
recent check-in. Rows are never updated after insert.
"""

from datetime import datetime, timedelta

from alive_ping.db.helpers import fetch_all, fetch_one, fetch_val, with_db_retry
from alive_ping.db.pool import DatabasePoolManager
from alive_ping.models.domain.checkin_domain import ActiveDeadline, CheckIn
from alive_ping.repositories.user_repository import USER_COLUMNS, row_to_user
from alive_ping.utils.clock import LocalDay

CHECKIN_COLUMNS = "id, user_id, check_in_time, next_check_in_deadline"


def row_to_check_in(row: dict | None) -> CheckIn | None:
    if not row:
        return None

    return CheckIn(
        id=row["id"],
        user_id=row["user_id"],
        check_in_time=row["check_in_time"],
        next_deadline=row["next_check_in_deadline"],
    )


class CheckInRepository:
    """Persistence helpers backing check-in intake and the sweeps."""

    def __init__(self, pool: DatabasePoolManager):
        self._pool = pool

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def get_latest(self, user_id: int) -> CheckIn | None:
        query = f"""
            SELECT {CHECKIN_COLUMNS}
            FROM checkins
            WHERE user_id = %s
            ORDER BY check_in_time DESC, id DESC
            LIMIT 1
        """
        async with self._pool.connection() as conn:
            row = await fetch_one(conn, query, (user_id,))
        return row_to_check_in(row)

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def list_history(self, user_id: int, limit: int, offset: int) -> list[CheckIn]:
        query = f"""
            SELECT {CHECKIN_COLUMNS}
            FROM checkins
            WHERE user_id = %s
            ORDER BY check_in_time DESC, id DESC
            LIMIT %s OFFSET %s
        """
        async with self._pool.connection() as conn:
            rows = await fetch_all(conn, query, (user_id, limit, offset))
        return [row_to_check_in(row) for row in rows]

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def count(self, user_id: int) -> int:
        async with self._pool.connection() as conn:
            total = await fetch_val(
                conn, "SELECT COUNT(*) FROM checkins WHERE user_id = %s", (user_id,)
            )
        return int(total or 0)

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def exists_in_day(self, user_id: int, day: LocalDay) -> bool:
        query = """
            SELECT EXISTS (
                SELECT 1 FROM checkins
                WHERE user_id = %s AND check_in_time >= %s AND check_in_time < %s
            )
        """
        async with self._pool.connection() as conn:
            return bool(await fetch_val(conn, query, (user_id, day.start, day.end)))

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def count_local_days_since(
        self, user_id: int, since: datetime, offset: timedelta
    ) -> int:
        """Number of distinct local calendar days with a check-in since ``since``."""
        query = """
            SELECT COUNT(DISTINCT ((check_in_time AT TIME ZONE 'UTC') + %s)::date)
            FROM checkins
            WHERE user_id = %s AND check_in_time >= %s
        """
        async with self._pool.connection() as conn:
            days = await fetch_val(conn, query, (offset, user_id, since))
        return int(days or 0)

    async def insert_once_per_day(
        self,
        user_id: int,
        check_in_time: datetime,
        next_deadline: datetime,
        day: LocalDay,
    ) -> CheckIn | None:
        """
        Insert a check-in unless one already exists in ``day``.

        Runs under a row lock on the user so it serializes with escalation
        appends and with a concurrent check-in by the same user.

        Returns:
            The new CheckIn, or None when the user already checked in that day
            (or no longer exists).
        """
        async with self._pool.transaction() as conn:
            locked = await fetch_val(
                conn, "SELECT id FROM users WHERE id = %s FOR UPDATE", (user_id,)
            )
            if locked is None:
                return None

            existing = await fetch_val(
                conn,
                """
                SELECT id FROM checkins
                WHERE user_id = %s AND check_in_time >= %s AND check_in_time < %s
                LIMIT 1
                """,
                (user_id, day.start, day.end),
            )
            if existing is not None:
                return None

            row = await fetch_one(
                conn,
                f"""
                INSERT INTO checkins (user_id, check_in_time, next_check_in_deadline)
                VALUES (%s, %s, %s)
                RETURNING {CHECKIN_COLUMNS}
                """,
                (user_id, check_in_time, next_deadline),
            )

        return row_to_check_in(row)

    @with_db_retry(max_retries=2, base_delay=0.2)
    async def list_active_deadlines(self) -> list[ActiveDeadline]:
        """
        All non-paused users that have at least one check-in, each with
        their most recent check-in. Users who never checked in are excluded.
        """
        user_columns = ", ".join(f"u.{column.strip()}" for column in USER_COLUMNS.split(","))
        query = f"""
            SELECT DISTINCT ON (u.id)
                {user_columns},
                c.id AS checkin_id,
                c.check_in_time,
                c.next_check_in_deadline
            FROM users u
            JOIN checkins c ON c.user_id = u.id
            WHERE u.is_paused = FALSE
            ORDER BY u.id, c.check_in_time DESC, c.id DESC
        """
        async with self._pool.connection() as conn:
            rows = await fetch_all(conn, query)

        return [
            ActiveDeadline(
                user=row_to_user(row),
                latest_check_in=CheckIn(
                    id=row["checkin_id"],
                    user_id=row["id"],
                    check_in_time=row["check_in_time"],
                    next_deadline=row["next_check_in_deadline"],
                ),
            )
            for row in rows
        ]
