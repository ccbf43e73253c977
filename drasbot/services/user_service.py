"""
UserService - User Management Business Logic

Wraps the UserStore with the rules the core relies on: creation is
idempotent per identity (creating an existing user is an update), owners
listed in OWNER_IDS are promoted on creation, and activity pings never fail
dispatch.
"""

import logging
from typing import Any, Optional

from drasbot.config import DEFAULT_USER_LEVEL, OWNER_IDS
from drasbot.db.stores import UserStore
from drasbot.exceptions import RecordNotFoundError
from drasbot.models.user import User, UserLevel, UserUpdate
from drasbot.utils.datetime_helpers import Clock, now_utc

logger = logging.getLogger(__name__)


class UserService:
    """
    Service for user records.

    Responsibilities:
    - Find-or-create on first contact
    - Partial updates (display name, level, registration, preferences)
    - Activity timestamps
    - Listings for moderator commands
    """

    def __init__(
        self,
        store: UserStore,
        owner_ids: Optional[list[str]] = None,
        default_level: str = DEFAULT_USER_LEVEL,
        clock: Clock = now_utc
    ):
        """
        Initialize UserService.

        Args:
            store: Persistent user store
            owner_ids: Identities promoted to owner when first created
            default_level: Level given to everyone else on creation
            clock: Source of "now"
        """
        self.store = store
        self.owner_ids = set(OWNER_IDS if owner_ids is None else owner_ids)
        self.default_level = UserLevel.parse(default_level)
        self.clock = clock

    async def find_by_identity(self, identity: str) -> Optional[User]:
        return await self.store.get(identity)

    async def create(self, identity: str, **fields: Any) -> User:
        """
        Create a user, or update it when the identity already exists.

        Args:
            identity: Stable account key
            **fields: Optional display_name, level, is_registered, preferences

        Returns:
            The stored user
        """
        existing = await self.store.get(identity)
        if existing is not None:
            if not fields:
                return existing
            logger.info(f"User {identity} already exists, applying as update")
            return await self.update(identity, UserUpdate(**fields))

        level = UserLevel.OWNER if identity in self.owner_ids else fields.pop("level", self.default_level)
        fields.pop("level", None)
        user = User(identity=identity, level=level, **fields)
        created = await self.store.create(user)
        logger.info(f"Created new user: {identity} (level={created.level.value})")
        return created

    async def ensure(self, identity: str, push_name: Optional[str] = None) -> User:
        """
        Find-or-create the sender of a message and record activity.

        The bridge's push name is kept as a provisional preference only; the
        display name is set by registration.
        """
        user = await self.store.get(identity)
        if user is None:
            preferences = {"push_name": push_name} if push_name else {}
            user = await self.create(identity, preferences=preferences)

        await self.touch_activity(identity)
        user.last_activity = self.clock()
        return user

    async def update(self, identity: str, changes: UserUpdate) -> User:
        """
        Apply a partial update.

        Raises:
            RecordNotFoundError: no user with this identity
        """
        updated = await self.store.update(identity, changes.changes())
        if updated is None:
            raise RecordNotFoundError(
                f"User {identity} not found",
                record_type="User",
                record_id=identity,
                operation="update_user"
            )
        logger.info(f"Updated user {identity}: {sorted(changes.changes())}")
        return updated

    async def touch_activity(self, identity: str) -> None:
        """Record activity; failures are logged, never raised"""
        try:
            await self.store.touch(identity, self.clock())
        except Exception as e:
            logger.warning(f"Failed to record activity for {identity}: {e}")

    async def count(self) -> int:
        return await self.store.count()

    async def list_users(self, limit: int = 20, offset: int = 0) -> list[User]:
        return await self.store.list(limit=limit, offset=offset)
