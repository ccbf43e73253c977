"""Conversation context database queries"""
import json
import logging
from datetime import datetime
from typing import Optional
from drasbot.db.connection import db

logger = logging.getLogger(__name__)

_CONTEXT_COLUMNS = """
    user_id, context_type, step, data, created_at, last_interaction, expires_at, active
"""


async def get_active_context(user_id: str) -> Optional[dict]:
    """Fetch the user's active context row, expired or not"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"SELECT {_CONTEXT_COLUMNS} FROM contexts WHERE user_id = %s AND active",
                (user_id,)
            )
            return await cur.fetchone()


async def save_active_context(
    user_id: str,
    context_type: str,
    step: str,
    data: dict,
    created_at: datetime,
    last_interaction: datetime,
    expires_at: datetime
) -> None:
    """
    Insert or overwrite the user's single active context row.

    Relies on the partial unique index `contexts_one_active_per_user`.
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO contexts
                (user_id, context_type, step, data, created_at, last_interaction, expires_at, active)
                VALUES (%s, %s, %s, %s, %s, %s, %s, TRUE)
                ON CONFLICT (user_id) WHERE active DO UPDATE SET
                    context_type = EXCLUDED.context_type,
                    step = EXCLUDED.step,
                    data = EXCLUDED.data,
                    created_at = EXCLUDED.created_at,
                    last_interaction = EXCLUDED.last_interaction,
                    expires_at = EXCLUDED.expires_at
                """,
                (user_id, context_type, step, json.dumps(data), created_at, last_interaction, expires_at)
            )
            await conn.commit()
    logger.debug(f"Saved context {context_type}/{step} for user {user_id}")


async def deactivate_context(user_id: str, expired_before: Optional[datetime] = None) -> bool:
    """
    Mark the user's active context inactive.

    With `expired_before`, only a context whose expiry is earlier is cleared
    (compare-and-clear for the sweeper).

    Returns:
        True if a row was deactivated
    """
    query = "UPDATE contexts SET active = FALSE WHERE user_id = %s AND active"
    params: tuple = (user_id,)
    if expired_before is not None:
        query += " AND expires_at < %s"
        params = (user_id, expired_before)

    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(query + " RETURNING id", params)
            row = await cur.fetchone()
            await conn.commit()
    return row is not None


async def list_expired_context_users(now: datetime, limit: int = 500) -> list[str]:
    """User ids holding an active context that expired before `now`"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT user_id FROM contexts
                WHERE active AND expires_at < %s
                ORDER BY expires_at
                LIMIT %s
                """,
                (now, limit)
            )
            rows = await cur.fetchall()
    return [row["user_id"] for row in rows]
