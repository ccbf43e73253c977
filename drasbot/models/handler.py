"""Handler outcome models"""
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field

from drasbot.models.context import ContextTransition


class SideActionKind(str, Enum):
    PERSIST_USER = "persist_user"   # payload: UserUpdate fields
    NOTIFY = "notify"               # payload: recipient, text
    LOG_COMMAND = "log_command"     # payload: command, args, success


class SideAction(BaseModel):
    """Effect the dispatcher executes after the context transition is applied"""
    kind: SideActionKind
    payload: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def persist_user(cls, **changes: Any) -> "SideAction":
        return cls(kind=SideActionKind.PERSIST_USER, payload=changes)

    @classmethod
    def notify(cls, recipient: str, text: str) -> "SideAction":
        return cls(kind=SideActionKind.NOTIFY, payload={"recipient": recipient, "text": text})

    @classmethod
    def log_command(cls, command: str, args: list[str], success: bool) -> "SideAction":
        return cls(
            kind=SideActionKind.LOG_COMMAND,
            payload={"command": command, "args": args, "success": success}
        )


class HandlerResult(BaseModel):
    """Tagged outcome of a handler run"""
    handled: bool = True
    success: bool = True
    reply: Optional[str] = None
    context: ContextTransition = Field(default_factory=ContextTransition.no_change)
    side_actions: list[SideAction] = Field(default_factory=list)

    @property
    def should_reply(self) -> bool:
        return self.handled and bool(self.reply)

    @classmethod
    def unhandled(cls) -> "HandlerResult":
        return cls(handled=False, success=False)
