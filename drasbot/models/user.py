"""User-related Pydantic models"""
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field


class UserLevel(str, Enum):
    """Permission levels, lowest first. BLOCKED is the soft-ban level."""
    BLOCKED = "blocked"
    GUEST = "guest"
    USER = "user"
    MODERATOR = "moderator"
    ADMIN = "admin"
    OWNER = "owner"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self)

    def satisfies(self, required: "UserLevel") -> bool:
        """Check this level against a required minimum level"""
        # Owner passes every check regardless of ordering
        if self is UserLevel.OWNER:
            return True
        return self.rank >= required.rank

    @classmethod
    def parse(cls, value: str) -> "UserLevel":
        """Parse a level name case-insensitively; raises ValueError if unknown"""
        return cls(value.strip().lower())


_LEVEL_ORDER = [
    UserLevel.BLOCKED,
    UserLevel.GUEST,
    UserLevel.USER,
    UserLevel.MODERATOR,
    UserLevel.ADMIN,
    UserLevel.OWNER,
]


class User(BaseModel):
    """Known WhatsApp user"""
    identity: str  # phone number / bridge JID
    display_name: Optional[str] = None
    level: UserLevel = UserLevel.USER
    is_registered: bool = False
    last_activity: Optional[datetime] = None
    preferences: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_blocked(self) -> bool:
        return self.level is UserLevel.BLOCKED

    @property
    def language(self) -> Optional[str]:
        return self.preferences.get("language")


class UserUpdate(BaseModel):
    """Partial user record; unset fields are left untouched"""
    display_name: Optional[str] = None
    level: Optional[UserLevel] = None
    is_registered: Optional[bool] = None
    last_activity: Optional[datetime] = None
    preferences: Optional[dict[str, Any]] = None  # merged into existing preferences

    def changes(self) -> dict[str, Any]:
        """Fields explicitly set on this update"""
        return self.model_dump(exclude_unset=True)
