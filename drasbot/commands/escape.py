"""
Escape commands

Recognised with or without the prefix, and even in the middle of an open
conversation. They only ever build context transitions; the dispatcher
applies them.
"""
from drasbot.models.command import CommandDefinition, CommandResult
from drasbot.models.context import ContextTransition
from drasbot.models.user import UserLevel
from drasbot.services.command_registry import CommandInvocation
from drasbot.services.context_manager import (
    EscapeOutcome,
    back_transition,
    pause_transition,
    reset_transition,
    resume_transition,
)

OUTCOME_KEYS = {
    EscapeOutcome.NOTHING_ACTIVE: "nothing_to_cancel",
    EscapeOutcome.ALREADY_PAUSED: "already_paused",
    EscapeOutcome.NOT_PAUSED: "not_paused",
    EscapeOutcome.NO_HISTORY: "back_nothing",
}


async def cancel_command(inv: CommandInvocation) -> CommandResult:
    if inv.bundle.context is None:
        return CommandResult.ok(inv.bundle.reply("nothing_to_cancel"))
    return CommandResult.ok(inv.bundle.reply("cancelled"), context=ContextTransition.clear())


async def reset_command(inv: CommandInvocation) -> CommandResult:
    escape = reset_transition(inv.bundle.context)
    return CommandResult.ok(inv.bundle.reply("reset_done"), context=escape.transition)


async def pause_command(inv: CommandInvocation) -> CommandResult:
    escape = pause_transition(inv.bundle.context)
    if not escape.ok:
        return CommandResult.ok(inv.bundle.reply(OUTCOME_KEYS[escape.outcome]))
    return CommandResult.ok(inv.bundle.reply("paused"), context=escape.transition)


async def resume_command(inv: CommandInvocation) -> CommandResult:
    escape = resume_transition(inv.bundle.context)
    if not escape.ok:
        return CommandResult.ok(inv.bundle.reply(OUTCOME_KEYS[escape.outcome]))
    return CommandResult.ok(inv.bundle.reply("resumed"), context=escape.transition)


async def back_command(inv: CommandInvocation) -> CommandResult:
    escape = back_transition(inv.bundle.context)
    if not escape.ok:
        return CommandResult.ok(inv.bundle.reply(OUTCOME_KEYS[escape.outcome]))
    return CommandResult.ok(inv.bundle.reply("back_done"), context=escape.transition)


ESCAPE_COMMANDS = [
    CommandDefinition(
        name="cancelar",
        executor=cancel_command,
        aliases=("cancel", "salir"),
        min_level=UserLevel.GUEST,
        description="Cancela la conversación en curso",
        usage="cancelar",
        category="escape",
        escape=True,
    ),
    CommandDefinition(
        name="reset",
        executor=reset_command,
        aliases=("reiniciar",),
        min_level=UserLevel.GUEST,
        description="Reinicia la conversación",
        usage="reset",
        category="escape",
        escape=True,
    ),
    CommandDefinition(
        name="pausa",
        executor=pause_command,
        aliases=("pause",),
        min_level=UserLevel.GUEST,
        description="Pausa la conversación en curso",
        usage="pausa",
        category="escape",
        escape=True,
    ),
    CommandDefinition(
        name="continuar",
        executor=resume_command,
        aliases=("resume", "reanudar"),
        min_level=UserLevel.GUEST,
        description="Retoma una conversación pausada",
        usage="continuar",
        category="escape",
        escape=True,
    ),
    CommandDefinition(
        name="atras",
        executor=back_command,
        aliases=("back", "volver"),
        min_level=UserLevel.GUEST,
        description="Vuelve al paso anterior",
        usage="atras",
        category="escape",
        escape=True,
    ),
]
