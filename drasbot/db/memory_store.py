"""
In-memory stores

Process-local implementations of the storage protocols. Used by the test
suite and by `STORAGE_BACKEND=memory`; nothing survives a restart.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from drasbot.models.context import Context
from drasbot.models.user import User
from drasbot.utils.datetime_helpers import Clock, now_utc

logger = logging.getLogger(__name__)


class InMemoryUserStore:
    """UserStore keeping users in a dict keyed by identity"""

    def __init__(self, clock: Clock = now_utc):
        self._users: dict[str, User] = {}
        self._clock = clock

    async def get(self, identity: str) -> Optional[User]:
        user = self._users.get(identity)
        return user.model_copy(deep=True) if user else None

    async def create(self, user: User) -> User:
        existing = self._users.get(user.identity)
        if existing:
            # First write wins; only fill a missing display name
            if existing.display_name is None and user.display_name:
                existing.display_name = user.display_name
                existing.updated_at = self._clock()
            return existing.model_copy(deep=True)

        now = self._clock()
        stored = user.model_copy(deep=True, update={"created_at": now, "updated_at": now})
        self._users[user.identity] = stored
        logger.debug(f"Created user {user.identity} in memory store")
        return stored.model_copy(deep=True)

    async def update(self, identity: str, changes: dict[str, Any]) -> Optional[User]:
        user = self._users.get(identity)
        if user is None:
            return None
        for key, value in changes.items():
            if key == "preferences":
                if value:
                    user.preferences = {**user.preferences, **value}
            elif key in ("display_name", "level", "is_registered", "last_activity"):
                setattr(user, key, value)
        user.updated_at = self._clock()
        return user.model_copy(deep=True)

    async def touch(self, identity: str, at: datetime) -> None:
        user = self._users.get(identity)
        if user:
            user.last_activity = at

    async def count(self) -> int:
        return len(self._users)

    async def list(self, limit: int = 20, offset: int = 0) -> list[User]:
        users = sorted(
            self._users.values(),
            key=lambda u: (u.last_activity or datetime.min.replace(tzinfo=self._clock().tzinfo)),
            reverse=True
        )
        return [u.model_copy(deep=True) for u in users[offset:offset + limit]]


class InMemoryContextStore:
    """ContextStore holding one active context per user"""

    def __init__(self):
        self._contexts: dict[str, Context] = {}

    async def load(self, user_id: str) -> Optional[Context]:
        context = self._contexts.get(user_id)
        return context.model_copy(deep=True) if context else None

    async def save(self, context: Context) -> None:
        self._contexts[context.user_id] = context.model_copy(deep=True)

    async def deactivate(self, user_id: str, expired_before: Optional[datetime] = None) -> bool:
        context = self._contexts.get(user_id)
        if context is None:
            return False
        if expired_before is not None and not context.expires_at < expired_before:
            return False
        del self._contexts[user_id]
        return True

    async def expired_users(self, now: datetime) -> list[str]:
        return [uid for uid, ctx in self._contexts.items() if ctx.expires_at < now]


class InMemoryCommandLogStore:
    """Append-only command log kept in a list"""

    def __init__(self):
        self.entries: list[dict] = []

    async def append(self, user_id: str, command: str, args: list[str], success: bool, at: datetime) -> None:
        self.entries.append({
            "user_id": user_id,
            "command": command,
            "args": list(args),
            "success": success,
            "created_at": at,
        })

    async def recent(self, user_id: Optional[str] = None, limit: int = 20) -> list[dict]:
        entries = [e for e in self.entries if user_id is None or e["user_id"] == user_id]
        return list(reversed(entries))[:limit]
