"""Command handler: routes COMMAND messages through the registry"""
import logging

from drasbot.handlers.base import MessageContext, MessageHandler
from drasbot.models.command import CommandStatus
from drasbot.models.context import ContextTransition
from drasbot.models.handler import HandlerResult
from drasbot.models.message import MessageKind

logger = logging.getLogger(__name__)


class CommandHandler(MessageHandler):
    """
    Executes commands and turns every CommandStatus into a reply.

    Denials, unknown names and cooldowns never touch the context and never
    run side actions.
    """

    name = "command"
    priority = 100

    def accepts(self, bundle: MessageContext) -> bool:
        return bundle.label is MessageKind.COMMAND

    async def handle(self, bundle: MessageContext) -> HandlerResult:
        command = bundle.classification.command_name or ""
        args = bundle.classification.command_args

        if not bundle.classification.extraction.get("known", False):
            logger.info(f"Unknown command '{command}' from {bundle.user.identity}")
            return HandlerResult(success=False, reply=bundle.reply("unknown_command", command=command))

        result = await bundle.services.registry.execute(command, args, bundle)

        if result.status is CommandStatus.UNKNOWN:
            return HandlerResult(success=False, reply=bundle.reply("unknown_command", command=command))
        if result.status is CommandStatus.DENIED:
            return HandlerResult(
                success=False,
                reply=bundle.reply("permission_denied", command=command),
                context=ContextTransition.no_change()
            )
        if result.status is CommandStatus.COOLDOWN:
            return HandlerResult(
                success=False,
                reply=bundle.reply("command_cooldown", command=command, seconds=result.data.get("seconds", 0))
            )

        reply = result.reply
        if result.status is CommandStatus.INVALID_ARGS and not reply:
            definition = bundle.services.registry.resolve(command)
            reply = bundle.reply("command_usage", usage=definition.usage or f"{bundle.prefix}{definition.name}")

        return HandlerResult(
            success=result.success,
            reply=reply,
            context=result.context,
            side_actions=result.side_actions
        )
