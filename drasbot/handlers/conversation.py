"""Non-command conversation handlers: blocked users, welcome, small talk, idle and stale contexts"""
import logging
from typing import Iterable

from drasbot.handlers.base import MessageContext, MessageHandler
from drasbot.handlers.registration import RegistrationFlow
from drasbot.models.context import IDLE, ContextTransition
from drasbot.models.handler import HandlerResult
from drasbot.models.message import MessageKind

logger = logging.getLogger(__name__)


class BlockedUserHandler(MessageHandler):
    """Swallows everything from blocked users without replying"""

    name = "blocked"
    priority = 1000

    def accepts(self, bundle: MessageContext) -> bool:
        return bundle.user.is_blocked

    async def handle(self, bundle: MessageContext) -> HandlerResult:
        logger.info(f"Ignoring message from blocked user {bundle.user.identity}")
        return HandlerResult(reply=None)


class IdleContextHandler(MessageHandler):
    """Reminds a paused user how to resume"""

    name = "idle"
    priority = 85

    def accepts(self, bundle: MessageContext) -> bool:
        return (
            bundle.context is not None
            and bundle.context.context_type == IDLE
            and bundle.label is MessageKind.CONTEXT_RESPONSE
        )

    async def handle(self, bundle: MessageContext) -> HandlerResult:
        return HandlerResult(reply=bundle.reply("idle_reminder"))


class WelcomeHandler(MessageHandler):
    """First contact from an unregistered user starts registration"""

    name = "welcome"
    priority = 50

    def __init__(self, flow: RegistrationFlow):
        self.flow = flow

    def accepts(self, bundle: MessageContext) -> bool:
        return (
            not bundle.user.is_registered
            and bundle.context is None
            and bundle.label in (MessageKind.GREETING, MessageKind.GENERAL)
        )

    async def handle(self, bundle: MessageContext) -> HandlerResult:
        logger.info(f"Welcoming unregistered user {bundle.user.identity}")
        return self.flow.begin(bundle, welcome=True)


class SmallTalkHandler(MessageHandler):
    """Canned replies for greetings, farewells, help requests and questions"""

    name = "small_talk"
    priority = 20

    LABEL_KEYS = {
        MessageKind.GREETING: "greeting",
        MessageKind.FAREWELL: "farewell",
        MessageKind.HELP_REQUEST: "help_request",
        MessageKind.QUESTION: "question",
    }

    def accepts(self, bundle: MessageContext) -> bool:
        return bundle.context is None and bundle.label in self.LABEL_KEYS

    async def handle(self, bundle: MessageContext) -> HandlerResult:
        key = self.LABEL_KEYS[bundle.label]
        if bundle.label is MessageKind.FAREWELL and bundle.classification.extraction.get("thanks"):
            key = "thanks"
        return HandlerResult(reply=bundle.reply(key, name=bundle.display_name))


class StaleContextHandler(MessageHandler):
    """Clears contexts whose type no handler owns any more"""

    name = "stale_context"
    priority = 10

    def __init__(self, known_types: Iterable[str]):
        self.known_types = frozenset(known_types)

    def accepts(self, bundle: MessageContext) -> bool:
        return bundle.context is not None and bundle.context.context_type not in self.known_types

    async def handle(self, bundle: MessageContext) -> HandlerResult:
        logger.warning(
            f"Clearing context of unknown type '{bundle.context.context_type}' for {bundle.user.identity}"
        )
        return HandlerResult(reply=bundle.reply("stale_context"), context=ContextTransition.clear())
