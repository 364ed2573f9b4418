"""
Persistence helpers for users and their schedule settings.
"""

from typing import Any

from alive_ping.db.helpers import fetch_one, with_db_retry
from alive_ping.db.pool import DatabasePoolManager
from alive_ping.infrastructure.observability.logging import get_logger
from alive_ping.models.domain.checkin_domain import User

logger = get_logger(__name__)

USER_COLUMNS = """
    id, phone, nickname, check_in_interval_hours, grace_period_hours,
    reminder_before_hours, is_paused, created_at, updated_at
"""

UPDATABLE_FIELDS = (
    "nickname",
    "check_in_interval_hours",
    "grace_period_hours",
    "reminder_before_hours",
    "is_paused",
)


def row_to_user(row: dict | None) -> User | None:
    if not row:
        return None

    return User(
        id=row["id"],
        phone=row["phone"],
        nickname=row.get("nickname"),
        check_in_interval_hours=float(row["check_in_interval_hours"]),
        grace_period_hours=float(row["grace_period_hours"]),
        reminder_before_hours=float(row["reminder_before_hours"]),
        is_paused=bool(row["is_paused"]),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


class UserRepository:
    """Reads and profile updates on the users table."""

    def __init__(self, pool: DatabasePoolManager):
        self._pool = pool

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def get(self, user_id: int) -> User | None:
        query = f"SELECT {USER_COLUMNS} FROM users WHERE id = %s"
        async with self._pool.connection() as conn:
            row = await fetch_one(conn, query, (user_id,))
        return row_to_user(row)

    async def update_settings(self, user_id: int, changes: dict[str, Any]) -> User | None:
        """
        Apply a partial settings update.

        Unknown keys are ignored; an empty update just returns the user.
        """
        fields = {key: value for key, value in changes.items() if key in UPDATABLE_FIELDS}
        if not fields:
            return await self.get(user_id)

        assignments = ", ".join(f"{column} = %s" for column in fields)
        query = f"""
            UPDATE users
            SET {assignments}, updated_at = NOW()
            WHERE id = %s
            RETURNING {USER_COLUMNS}
        """

        async with self._pool.transaction() as conn:
            row = await fetch_one(conn, query, (*fields.values(), user_id))

        if row:
            logger.info("User settings updated", user_id=user_id, fields=sorted(fields))
        return row_to_user(row)
