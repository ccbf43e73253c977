"""Command catalog"""
from typing import Iterable, Optional

from drasbot.commands.admin import ADMIN_COMMANDS, MODERATOR_COMMANDS
from drasbot.commands.basic import BASIC_COMMANDS
from drasbot.commands.escape import ESCAPE_COMMANDS
from drasbot.models.command import CommandDefinition
from drasbot.services.command_registry import CommandRegistry
from drasbot.utils.datetime_helpers import Clock, now_utc

DEFAULT_COMMANDS: list[CommandDefinition] = BASIC_COMMANDS + ESCAPE_COMMANDS + MODERATOR_COMMANDS + ADMIN_COMMANDS


def build_registry(
    commands: Optional[Iterable[CommandDefinition]] = None,
    clock: Clock = now_utc
) -> CommandRegistry:
    """
    Register the catalog and freeze the registry.

    Raises:
        CommandRegistrationError: duplicate name or alias (aborts startup)
    """
    registry = CommandRegistry(clock=clock)
    for definition in DEFAULT_COMMANDS if commands is None else commands:
        registry.register(definition)
    registry.freeze()
    return registry
