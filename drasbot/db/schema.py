"""Database schema, created idempotently at startup"""
import logging

from drasbot.db.connection import db

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS users (
        identity TEXT PRIMARY KEY,
        display_name TEXT,
        level TEXT NOT NULL DEFAULT 'user',
        is_registered BOOLEAN NOT NULL DEFAULT FALSE,
        last_activity TIMESTAMPTZ,
        preferences JSONB NOT NULL DEFAULT '{}'::jsonb,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS contexts (
        id BIGSERIAL PRIMARY KEY,
        user_id TEXT NOT NULL REFERENCES users(identity),
        context_type TEXT NOT NULL,
        step TEXT NOT NULL,
        data JSONB NOT NULL DEFAULT '{}'::jsonb,
        created_at TIMESTAMPTZ NOT NULL,
        last_interaction TIMESTAMPTZ NOT NULL,
        expires_at TIMESTAMPTZ NOT NULL,
        active BOOLEAN NOT NULL DEFAULT TRUE
    )
    """,
    # At most one active context per user
    """
    CREATE UNIQUE INDEX IF NOT EXISTS contexts_one_active_per_user
        ON contexts (user_id) WHERE active
    """,
    """
    CREATE INDEX IF NOT EXISTS contexts_active_expiry
        ON contexts (expires_at) WHERE active
    """,
    """
    CREATE TABLE IF NOT EXISTS command_logs (
        id BIGSERIAL PRIMARY KEY,
        user_id TEXT NOT NULL,
        command TEXT NOT NULL,
        args JSONB NOT NULL DEFAULT '[]'::jsonb,
        success BOOLEAN NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS command_logs_user_created
        ON command_logs (user_id, created_at DESC)
    """,
]


async def init_schema() -> None:
    """Create tables and indexes if they do not exist"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            for statement in SCHEMA_STATEMENTS:
                await cur.execute(statement)
        await conn.commit()
    logger.info(f"Database schema ensured ({len(SCHEMA_STATEMENTS)} statements)")
