"""Command definitions and results"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from drasbot.models.context import ContextTransition
from drasbot.models.handler import SideAction
from drasbot.models.user import UserLevel


class CommandStatus(str, Enum):
    OK = "ok"
    FAILED = "failed"              # command ran and reported failure
    INVALID_ARGS = "invalid_args"  # validation error, user can retry
    DENIED = "denied"              # permission check failed, never executed
    UNKNOWN = "unknown"            # no such command or alias
    COOLDOWN = "cooldown"          # executed too recently by this user


@dataclass
class CommandResult:
    status: CommandStatus
    reply: Optional[str] = None
    context: ContextTransition = field(default_factory=ContextTransition.no_change)
    side_actions: list[SideAction] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.status is CommandStatus.OK

    @classmethod
    def ok(cls, reply: Optional[str] = None, **kwargs: Any) -> "CommandResult":
        return cls(status=CommandStatus.OK, reply=reply, **kwargs)

    @classmethod
    def failed(cls, reply: Optional[str] = None, **kwargs: Any) -> "CommandResult":
        return cls(status=CommandStatus.FAILED, reply=reply, **kwargs)

    @classmethod
    def invalid(cls, reply: Optional[str] = None, **kwargs: Any) -> "CommandResult":
        return cls(status=CommandStatus.INVALID_ARGS, reply=reply, **kwargs)


# Executors receive a CommandInvocation (see drasbot.services.command_registry)
CommandExecutor = Callable[[Any], Awaitable[CommandResult]]


@dataclass(frozen=True)
class CommandDefinition:
    """A command and its aliases; names are matched case-insensitively"""
    name: str
    executor: CommandExecutor
    aliases: tuple[str, ...] = ()
    min_level: UserLevel = UserLevel.USER
    description: str = ""
    usage: str = ""
    examples: tuple[str, ...] = ()
    category: str = "general"
    cooldown_seconds: int = 0
    escape: bool = False  # also recognised as a bare word, even inside an open context
    enabled: bool = True

    @property
    def names(self) -> tuple[str, ...]:
        """Canonical name followed by aliases, lower-cased"""
        return (self.name.lower(),) + tuple(a.lower() for a in self.aliases)
