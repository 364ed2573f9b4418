"""
Repository helpers for emergency contacts.

Contacts are listed primary first, then in creation order; that order is
the notification order used by the escalation engine.
"""

from alive_ping.db.helpers import execute_query, fetch_all, fetch_one, with_db_retry
from alive_ping.db.pool import DatabasePoolManager
from alive_ping.infrastructure.observability.logging import get_logger
from alive_ping.models.domain.checkin_domain import Contact

logger = get_logger(__name__)

CONTACT_COLUMNS = "id, user_id, name, phone, is_primary, created_at, updated_at"


def row_to_contact(row: dict | None) -> Contact | None:
    if not row:
        return None

    return Contact(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        phone=row["phone"],
        is_primary=bool(row["is_primary"]),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


class ContactRepository:
    """CRUD on the contacts table."""

    def __init__(self, pool: DatabasePoolManager):
        self._pool = pool

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def list_for_user(self, user_id: int) -> list[Contact]:
        query = f"""
            SELECT {CONTACT_COLUMNS}
            FROM contacts
            WHERE user_id = %s
            ORDER BY is_primary DESC, created_at ASC, id ASC
        """
        async with self._pool.connection() as conn:
            rows = await fetch_all(conn, query, (user_id,))
        return [row_to_contact(row) for row in rows]

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def get(self, user_id: int, contact_id: int) -> Contact | None:
        query = f"SELECT {CONTACT_COLUMNS} FROM contacts WHERE id = %s AND user_id = %s"
        async with self._pool.connection() as conn:
            row = await fetch_one(conn, query, (contact_id, user_id))
        return row_to_contact(row)

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def find_by_phone(
        self, user_id: int, phone: str, exclude_id: int | None = None
    ) -> Contact | None:
        query = f"""
            SELECT {CONTACT_COLUMNS}
            FROM contacts
            WHERE user_id = %s AND phone = %s AND id <> COALESCE(%s, -1)
        """
        async with self._pool.connection() as conn:
            row = await fetch_one(conn, query, (user_id, phone, exclude_id))
        return row_to_contact(row)

    async def create(self, user_id: int, name: str, phone: str, is_primary: bool) -> Contact:
        async with self._pool.transaction() as conn:
            if is_primary:
                await execute_query(
                    conn, "UPDATE contacts SET is_primary = FALSE WHERE user_id = %s", (user_id,)
                )

            row = await fetch_one(
                conn,
                f"""
                INSERT INTO contacts (user_id, name, phone, is_primary)
                VALUES (%s, %s, %s, %s)
                RETURNING {CONTACT_COLUMNS}
                """,
                (user_id, name, phone, is_primary),
            )

        logger.info("Contact added", user_id=user_id, contact_id=row["id"], is_primary=is_primary)
        return row_to_contact(row)

    async def update(
        self,
        user_id: int,
        contact_id: int,
        *,
        name: str | None = None,
        phone: str | None = None,
        is_primary: bool | None = None,
    ) -> Contact | None:
        fields = {
            key: value
            for key, value in (("name", name), ("phone", phone), ("is_primary", is_primary))
            if value is not None
        }

        async with self._pool.transaction() as conn:
            if is_primary:
                await execute_query(
                    conn,
                    "UPDATE contacts SET is_primary = FALSE WHERE user_id = %s AND id <> %s",
                    (user_id, contact_id),
                )

            assignments = "".join(f"{column} = %s, " for column in fields)
            row = await fetch_one(
                conn,
                f"""
                UPDATE contacts
                SET {assignments}updated_at = NOW()
                WHERE id = %s AND user_id = %s
                RETURNING {CONTACT_COLUMNS}
                """,
                (*fields.values(), contact_id, user_id),
            )

        if row:
            logger.info("Contact updated", user_id=user_id, contact_id=contact_id, fields=sorted(fields))
        return row_to_contact(row)

    async def delete(self, user_id: int, contact_id: int) -> bool:
        async with self._pool.connection() as conn:
            deleted = await execute_query(
                conn, "DELETE FROM contacts WHERE id = %s AND user_id = %s", (contact_id, user_id)
            )

        if deleted:
            logger.info("Contact deleted", user_id=user_id, contact_id=contact_id)
        return deleted > 0
