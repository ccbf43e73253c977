"""User database queries"""
import json
import logging
from datetime import datetime
from typing import Any, Optional
from drasbot.db.connection import db

logger = logging.getLogger(__name__)

# Columns a partial update may touch; preferences are merged, not replaced
UPDATABLE_COLUMNS = ("display_name", "level", "is_registered", "last_activity")


async def get_user(identity: str) -> Optional[dict]:
    """Fetch one user row by identity key"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT identity, display_name, level, is_registered, last_activity,
                       preferences, created_at, updated_at
                FROM users
                WHERE identity = %s
                """,
                (identity,)
            )
            return await cur.fetchone()


async def create_user(
    identity: str,
    display_name: Optional[str] = None,
    level: str = "user",
    is_registered: bool = False,
    preferences: Optional[dict] = None
) -> dict:
    """
    Create a user (idempotent per identity).

    A concurrent creation for the same identity resolves to the row that won
    the insert; only the display name is filled in if it was still empty.
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO users (identity, display_name, level, is_registered, preferences)
                VALUES (%s, %s, %s, %s, %s)
                ON CONFLICT (identity) DO UPDATE SET
                    display_name = COALESCE(users.display_name, EXCLUDED.display_name),
                    updated_at = NOW()
                RETURNING identity, display_name, level, is_registered, last_activity,
                          preferences, created_at, updated_at
                """,
                (identity, display_name, level, is_registered, json.dumps(preferences or {}))
            )
            row = await cur.fetchone()
            await conn.commit()

    logger.info(f"Ensured user exists: {identity}")
    return row


async def update_user(identity: str, changes: dict[str, Any]) -> Optional[dict]:
    """
    Apply a partial update and return the updated row (None if absent).

    Args:
        identity: User identity key
        changes: Column values; unknown keys are ignored, `preferences` is
            merged into the stored map
    """
    assignments = []
    params: list[Any] = []
    for column in UPDATABLE_COLUMNS:
        if column in changes:
            assignments.append(f"{column} = %s")
            params.append(changes[column])
    if changes.get("preferences"):
        assignments.append("preferences = users.preferences || %s::jsonb")
        params.append(json.dumps(changes["preferences"]))
    assignments.append("updated_at = NOW()")
    params.append(identity)

    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                UPDATE users SET {', '.join(assignments)}
                WHERE identity = %s
                RETURNING identity, display_name, level, is_registered, last_activity,
                          preferences, created_at, updated_at
                """,
                tuple(params)
            )
            row = await cur.fetchone()
            await conn.commit()

    if row:
        logger.debug(f"Updated user {identity}: {sorted(changes)}")
    return row


async def touch_user_activity(identity: str, at: datetime) -> None:
    """Set last_activity without bumping updated_at"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                "UPDATE users SET last_activity = %s WHERE identity = %s",
                (at, identity)
            )
            await conn.commit()


async def count_users(level: Optional[str] = None) -> int:
    """Count users, optionally at one level"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            if level:
                await cur.execute("SELECT COUNT(*) AS total FROM users WHERE level = %s", (level,))
            else:
                await cur.execute("SELECT COUNT(*) AS total FROM users")
            row = await cur.fetchone()
            return int(row["total"]) if row else 0


async def list_users(limit: int = 20, offset: int = 0) -> list[dict]:
    """Most recently active users first"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT identity, display_name, level, is_registered, last_activity,
                       preferences, created_at, updated_at
                FROM users
                ORDER BY last_activity DESC NULLS LAST, created_at DESC
                LIMIT %s OFFSET %s
                """,
                (limit, offset)
            )
            return await cur.fetchall()
