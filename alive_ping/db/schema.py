"""
Schema bootstrap for the check-in service.

All instants are TIMESTAMPTZ and stored in UTC; the local-day offset is
applied only when bucketing by day, never to stored values.
"""

from alive_ping.db.pool import DatabasePoolManager
from alive_ping.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

SCHEMA_STATEMENTS: list[str] = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id BIGSERIAL PRIMARY KEY,
        phone VARCHAR(100) UNIQUE NOT NULL,
        nickname VARCHAR(100),
        check_in_interval_hours NUMERIC(8, 2) NOT NULL DEFAULT 24,
        grace_period_hours NUMERIC(8, 2) NOT NULL DEFAULT 2,
        reminder_before_hours NUMERIC(8, 2) NOT NULL DEFAULT 1,
        is_paused BOOLEAN NOT NULL DEFAULT FALSE,
        password_hash VARCHAR(255),
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS contacts (
        id BIGSERIAL PRIMARY KEY,
        user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        name VARCHAR(100) NOT NULL,
        phone VARCHAR(20) NOT NULL,
        is_primary BOOLEAN NOT NULL DEFAULT FALSE,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        UNIQUE (user_id, phone)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_contacts_user_id ON contacts (user_id)",
    """
    CREATE TABLE IF NOT EXISTS checkins (
        id BIGSERIAL PRIMARY KEY,
        user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        check_in_time TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        next_check_in_deadline TIMESTAMPTZ NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_checkins_user_time ON checkins (user_id, check_in_time DESC)",
    "CREATE INDEX IF NOT EXISTS idx_checkins_deadline ON checkins (next_check_in_deadline)",
    """
    CREATE TABLE IF NOT EXISTS sms_logs (
        id BIGSERIAL PRIMARY KEY,
        user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        contact_id BIGINT NOT NULL REFERENCES contacts(id) ON DELETE CASCADE,
        sms_count INTEGER NOT NULL DEFAULT 1,
        sent_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        status VARCHAR(20) NOT NULL DEFAULT 'sent',
        error_message TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_sms_logs_user_sent ON sms_logs (user_id, sent_at)",
]


async def init_schema(pool: DatabasePoolManager) -> None:
    """Create all tables and indexes if they do not exist."""
    logger.info("Initializing database schema", statements=len(SCHEMA_STATEMENTS))

    async with pool.transaction() as conn:
        for statement in SCHEMA_STATEMENTS:
            await conn.execute(statement)

    logger.info("Database schema ready")
