"""Conversation context models"""
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field


# Context types known to the built-in flows. The context manager itself
# accepts any string; each flow validates its own steps.
REGISTRATION = "registration"
CONFIGURATION = "configuration"
IDLE = "idle"

# Reserved data keys maintained by the context manager
STEP_HISTORY_KEY = "_step_history"
PAUSED_KEY = "_paused"


class Context(BaseModel):
    """A user's conversational context (at most one active per user)"""

    user_id: str
    context_type: str
    step: str
    data: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    last_interaction: datetime
    expires_at: datetime
    active: bool = True

    def is_expired(self, now: datetime) -> bool:
        """Check if the context outlived its TTL"""
        return now > self.expires_at

    @property
    def step_history(self) -> list[str]:
        return list(self.data.get(STEP_HISTORY_KEY, []))


class ContextPatch(BaseModel):
    """Partial context used to create or merge into the active context"""

    context_type: Optional[str] = None
    step: Optional[str] = None
    data: dict[str, Any] = Field(default_factory=dict)


class TransitionKind(str, Enum):
    NO_CHANGE = "no_change"
    SET = "set"
    CLEAR = "clear"


class ContextTransition(BaseModel):
    """
    What the dispatcher must do with the user's context after a handler ran.

    NO_CHANGE and CLEAR are distinct: a handler that does not touch the
    context returns NO_CHANGE, a handler ending the exchange returns CLEAR.
    SET merges `patch` into the active context, or starts a new one when
    `fresh` is true (any previous context is discarded first).
    """

    kind: TransitionKind = TransitionKind.NO_CHANGE
    patch: Optional[ContextPatch] = None
    fresh: bool = False
    record_history: bool = True

    @classmethod
    def no_change(cls) -> "ContextTransition":
        return cls(kind=TransitionKind.NO_CHANGE)

    @classmethod
    def clear(cls) -> "ContextTransition":
        return cls(kind=TransitionKind.CLEAR)

    @classmethod
    def set(
        cls,
        step: Optional[str] = None,
        data: Optional[dict[str, Any]] = None,
        context_type: Optional[str] = None,
        fresh: bool = False,
        record_history: bool = True
    ) -> "ContextTransition":
        return cls(
            kind=TransitionKind.SET,
            patch=ContextPatch(context_type=context_type, step=step, data=data or {}),
            fresh=fresh,
            record_history=record_history
        )
