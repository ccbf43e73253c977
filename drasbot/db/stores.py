"""
Storage interfaces consumed by the core, and their PostgreSQL implementations.

The core only talks to these protocols; `drasbot.db.memory_store` provides
process-local equivalents for tests and `STORAGE_BACKEND=memory`.
"""

import logging
from datetime import datetime
from typing import Any, Optional, Protocol

import psycopg

from drasbot.db import queries
from drasbot.exceptions import wrap_external_exception
from drasbot.models.context import Context
from drasbot.models.user import User

logger = logging.getLogger(__name__)


class UserStore(Protocol):
    async def get(self, identity: str) -> Optional[User]: ...

    async def create(self, user: User) -> User: ...

    async def update(self, identity: str, changes: dict[str, Any]) -> Optional[User]: ...

    async def touch(self, identity: str, at: datetime) -> None: ...

    async def count(self) -> int: ...

    async def list(self, limit: int = 20, offset: int = 0) -> list[User]: ...


class ContextStore(Protocol):
    async def load(self, user_id: str) -> Optional[Context]: ...

    async def save(self, context: Context) -> None: ...

    async def deactivate(self, user_id: str, expired_before: Optional[datetime] = None) -> bool: ...

    async def expired_users(self, now: datetime) -> list[str]: ...


class CommandLogStore(Protocol):
    async def append(self, user_id: str, command: str, args: list[str], success: bool, at: datetime) -> None: ...

    async def recent(self, user_id: Optional[str] = None, limit: int = 20) -> list[dict]: ...


class PostgresUserStore:
    """UserStore backed by the `users` table"""

    async def get(self, identity: str) -> Optional[User]:
        try:
            row = await queries.get_user(identity)
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="get_user", user_id=identity)
        return User(**row) if row else None

    async def create(self, user: User) -> User:
        try:
            row = await queries.create_user(
                user.identity,
                display_name=user.display_name,
                level=user.level.value,
                is_registered=user.is_registered,
                preferences=user.preferences
            )
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="create_user", user_id=user.identity)
        return User(**row)

    async def update(self, identity: str, changes: dict[str, Any]) -> Optional[User]:
        if "level" in changes and changes["level"] is not None:
            changes = {**changes, "level": getattr(changes["level"], "value", changes["level"])}
        try:
            row = await queries.update_user(identity, changes)
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="update_user", user_id=identity)
        return User(**row) if row else None

    async def touch(self, identity: str, at: datetime) -> None:
        try:
            await queries.touch_user_activity(identity, at)
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="touch_user_activity", user_id=identity)

    async def count(self) -> int:
        return await queries.count_users()

    async def list(self, limit: int = 20, offset: int = 0) -> list[User]:
        rows = await queries.list_users(limit=limit, offset=offset)
        return [User(**row) for row in rows]


class PostgresContextStore:
    """ContextStore backed by the `contexts` table"""

    async def load(self, user_id: str) -> Optional[Context]:
        try:
            row = await queries.get_active_context(user_id)
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="get_context", user_id=user_id)
        return Context(**row) if row else None

    async def save(self, context: Context) -> None:
        try:
            await queries.save_active_context(
                context.user_id,
                context.context_type,
                context.step,
                context.data,
                context.created_at,
                context.last_interaction,
                context.expires_at
            )
        except psycopg.Error as e:
            raise wrap_external_exception(
                e,
                operation="save_context",
                user_id=context.user_id,
                context={"context_type": context.context_type, "step": context.step}
            )

    async def deactivate(self, user_id: str, expired_before: Optional[datetime] = None) -> bool:
        try:
            return await queries.deactivate_context(user_id, expired_before=expired_before)
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="clear_context", user_id=user_id)

    async def expired_users(self, now: datetime) -> list[str]:
        return await queries.list_expired_context_users(now)


class PostgresCommandLogStore:
    """CommandLogStore backed by the `command_logs` table"""

    async def append(self, user_id: str, command: str, args: list[str], success: bool, at: datetime) -> None:
        try:
            await queries.insert_command_log(user_id, command, args, success, at)
        except psycopg.Error as e:
            raise wrap_external_exception(
                e, operation="log_command", user_id=user_id, context={"command": command}
            )

    async def recent(self, user_id: Optional[str] = None, limit: int = 20) -> list[dict]:
        return await queries.get_recent_command_logs(user_id=user_id, limit=limit)
