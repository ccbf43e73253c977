"""
CommandRegistry - command names, aliases and permission-checked execution

Names and aliases share one case-insensitive namespace: a collision is a
startup error. The registry is built once by the composition root, frozen,
and read-only afterwards.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional

from drasbot.exceptions import CommandRegistrationError, ConfigurationError
from drasbot.models.command import CommandDefinition, CommandResult, CommandStatus
from drasbot.models.handler import SideAction
from drasbot.models.user import UserLevel
from drasbot.monitoring import record_command
from drasbot.utils.datetime_helpers import Clock, now_utc

logger = logging.getLogger(__name__)


@dataclass
class CommandInvocation:
    """What a command executor receives"""
    definition: CommandDefinition
    invoked_as: str
    args: list[str]
    bundle: Any  # drasbot.handlers.base.MessageContext

    @property
    def user(self):
        return self.bundle.user

    @property
    def lang(self) -> str:
        return self.bundle.lang

    @property
    def services(self):
        return self.bundle.services


@dataclass
class CommandStats:
    executions: int = 0
    failures: int = 0
    denials: int = 0
    last_used: Optional[datetime] = None


@dataclass
class CommandRegistry:
    """Name/alias table with permission checks, cooldowns and usage stats"""

    clock: Clock = now_utc
    _by_name: dict[str, CommandDefinition] = field(default_factory=dict, init=False)
    _definitions: list[CommandDefinition] = field(default_factory=list, init=False)
    _last_run: dict[tuple[str, str], datetime] = field(default_factory=dict, init=False)
    _stats: dict[str, CommandStats] = field(default_factory=dict, init=False)
    _frozen: bool = field(default=False, init=False)

    def register(self, definition: CommandDefinition) -> None:
        """
        Add a command.

        Raises:
            CommandRegistrationError: name or alias already taken (or repeated
                within the definition itself)
            ConfigurationError: registry already frozen
        """
        if self._frozen:
            raise ConfigurationError(
                f"Cannot register '{definition.name}': registry is frozen",
                config_key=definition.name
            )

        names = definition.names
        for name in names:
            if not name or any(c.isspace() for c in name):
                raise CommandRegistrationError(f"Invalid command name '{name}'", name=name)
            if name in self._by_name:
                owner = self._by_name[name].name
                raise CommandRegistrationError(
                    f"Command name '{name}' of '{definition.name}' collides with '{owner}'",
                    name=name
                )
        if len(set(names)) != len(names):
            raise CommandRegistrationError(
                f"Command '{definition.name}' repeats a name among its aliases",
                name=definition.name
            )

        for name in names:
            self._by_name[name] = definition
        self._definitions.append(definition)
        self._stats[definition.name] = CommandStats()
        logger.debug(f"Registered command {definition.name} (aliases: {list(definition.aliases)})")

    def freeze(self) -> None:
        self._frozen = True
        logger.info(f"Command registry frozen with {len(self._definitions)} commands")

    def resolve(self, name_or_alias: str) -> Optional[CommandDefinition]:
        """Case-insensitive lookup by name or alias"""
        if not name_or_alias:
            return None
        return self._by_name.get(name_or_alias.strip().lower())

    def list_for(self, level: UserLevel) -> list[CommandDefinition]:
        """Enabled commands whose minimum level `level` satisfies, in registration order"""
        return [d for d in self._definitions if d.enabled and level.satisfies(d.min_level)]

    def all_names(self) -> list[str]:
        return list(self._by_name.keys())

    def escape_names(self) -> list[str]:
        return [name for name, d in self._by_name.items() if d.escape]

    def stats(self, name: str) -> Optional[CommandStats]:
        definition = self.resolve(name)
        return self._stats.get(definition.name) if definition else None

    def __len__(self) -> int:
        return len(self._definitions)

    def _cooldown_remaining(self, definition: CommandDefinition, user_id: str, now: datetime) -> int:
        if definition.cooldown_seconds <= 0:
            return 0
        last = self._last_run.get((definition.name, user_id))
        if last is None:
            return 0
        remaining = (last + timedelta(seconds=definition.cooldown_seconds)) - now
        return max(0, int(remaining.total_seconds() + 0.999))

    async def execute(self, name: str, args: list[str], bundle: Any) -> CommandResult:
        """
        Resolve, permission-check, then run a command.

        Unknown names, denials and cooldowns are result kinds, never raised;
        none of them run side actions. Any command that actually ran gets a
        LOG_COMMAND side action appended. Exceptions raised by the executor
        propagate to the caller.
        """
        definition = self.resolve(name)
        if definition is None or not definition.enabled:
            record_command(name, CommandStatus.UNKNOWN.value)
            return CommandResult(status=CommandStatus.UNKNOWN, data={"command": name})

        user = bundle.user
        stats = self._stats[definition.name]
        if not user.level.satisfies(definition.min_level):
            stats.denials += 1
            record_command(definition.name, CommandStatus.DENIED.value)
            logger.warning(
                f"User {user.identity} ({user.level.value}) denied {definition.name} "
                f"(requires {definition.min_level.value})"
            )
            return CommandResult(
                status=CommandStatus.DENIED,
                data={"command": definition.name, "required": definition.min_level.value}
            )

        now = self.clock()
        remaining = self._cooldown_remaining(definition, user.identity, now)
        if remaining:
            record_command(definition.name, CommandStatus.COOLDOWN.value)
            return CommandResult(
                status=CommandStatus.COOLDOWN,
                data={"command": definition.name, "seconds": remaining}
            )

        invocation = CommandInvocation(definition=definition, invoked_as=name.lower(), args=list(args), bundle=bundle)
        result = await definition.executor(invocation)

        self._last_run[(definition.name, user.identity)] = now
        stats.executions += 1
        stats.last_used = now
        if not result.success:
            stats.failures += 1
        record_command(definition.name, result.status.value)

        result.side_actions = list(result.side_actions) + [
            SideAction.log_command(definition.name, list(args), result.success)
        ]
        result.data.setdefault("command", definition.name)
        return result
