"""Command log queries

Append-only audit of executed commands. Nothing in dispatch reads it back;
it exists for operators and the admin tooling.
"""
import json
import logging
from datetime import datetime
from typing import Optional

from drasbot.db.connection import db

logger = logging.getLogger(__name__)


async def insert_command_log(
    user_id: str,
    command: str,
    args: list[str],
    success: bool,
    created_at: datetime
) -> None:
    """Args are stored as a JSON array"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO command_logs (user_id, command, args, success, created_at)
                VALUES (%s, %s, %s, %s, %s)
                """,
                (user_id, command, json.dumps(args), success, created_at)
            )
            await conn.commit()


async def get_recent_command_logs(user_id: Optional[str] = None, limit: int = 20) -> list[dict]:
    """Newest entries first; all users when `user_id` is None"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT user_id, command, args, success, created_at
                FROM command_logs
                WHERE %(user_id)s::text IS NULL OR user_id = %(user_id)s
                ORDER BY created_at DESC
                LIMIT %(limit)s
                """,
                {"user_id": user_id, "limit": limit}
            )
            rows = await cur.fetchall()
    logger.debug(f"Read {len(rows)} command log entries (user={user_id or 'all'})")
    return rows
