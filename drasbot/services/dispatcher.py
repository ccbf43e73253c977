"""
Dispatcher - one inbound message from receipt to reply

Pipeline per message, steps 1-3 under the sender's context session:
    1. find-or-create the sender and record activity
    2. read the context, classify, pick the first accepting handler
       (highest priority first), run it
    3. apply the handler's context transition, then its side actions in order
    4. release the session, then hand the reply (and queued notifications)
       to the bridge

Handler failures become one generic reply and the message counts as
consumed; nothing falls through to the next handler. Delivery failures are
logged and never undo the context transition already applied.
"""

import logging
from typing import Iterable, Optional

from pydantic import BaseModel

from drasbot.handlers.base import MessageContext, MessageHandler
from drasbot.i18n.translations import t
from drasbot.models.handler import HandlerResult, SideAction, SideActionKind
from drasbot.models.message import ClassificationResult, InboundMessage, MessageKind
from drasbot.models.user import User, UserUpdate
from drasbot.monitoring import capture_exception, record_dispatch, set_user_context, track_dispatch

logger = logging.getLogger(__name__)

FALLBACK_HANDLER = "fallback"


class HandlerChain:
    """Handlers ordered by descending priority; ties keep registration order"""

    def __init__(self, handlers: Iterable[MessageHandler]):
        indexed = list(enumerate(handlers))
        indexed.sort(key=lambda pair: (-pair[1].priority, pair[0]))
        self.handlers: tuple[MessageHandler, ...] = tuple(h for _, h in indexed)

    def select(self, bundle: MessageContext) -> Optional[MessageHandler]:
        """First handler whose `accepts` returns True"""
        for handler in self.handlers:
            if handler.accepts(bundle):
                return handler
        return None

    def __iter__(self):
        return iter(self.handlers)

    def __len__(self) -> int:
        return len(self.handlers)


class DispatchOutcome(BaseModel):
    processed: bool
    label: Optional[MessageKind] = None
    handler: Optional[str] = None
    success: bool = False
    reply: Optional[str] = None
    replied: bool = False
    delivered: Optional[bool] = None


class Dispatcher:
    """
    Composition of classifier, handler chain and context manager.

    Args:
        services: ServiceContainer with users, contexts, registry, bridge,
            command_logs and dispatch settings
        chain: Ordered handlers
        classifier: MessageClassifier built from the frozen registry
    """

    def __init__(self, services, chain: HandlerChain, classifier):
        self.services = services
        self.chain = chain
        self.classifier = classifier

    async def dispatch(self, message: InboundMessage) -> DispatchOutcome:
        with track_dispatch():
            return await self._dispatch(message)

    async def _dispatch(self, message: InboundMessage) -> DispatchOutcome:
        services = self.services
        user = None
        # The sender's record is read under the session too: a message
        # must see every write made by the previous one from the same user
        async with services.contexts.session(message.sender):
            try:
                user = await services.users.ensure(message.sender, message.push_name)
            except Exception as e:
                logger.error(f"Could not load sender {message.sender}: {e}", exc_info=True)
                capture_exception(e, operation="ensure_user", sender=message.sender)
            if user is not None:
                set_user_context(user.identity, level=user.level.value)
                classification, handler_name, result, outbox = await self._handle(message, user)

        if user is None:
            reply = t("error_generic", services.default_language)
            delivered = await self._deliver(message.sender, reply)
            return DispatchOutcome(processed=False, reply=reply, replied=True, delivered=delivered)

        # Session released: a slow bridge never holds up this user's next message
        delivered = None
        if result.should_reply:
            delivered = await self._deliver(message.sender, result.reply)
        for recipient, text in outbox:
            await self._deliver(recipient, text)

        outcome = "unhandled" if not result.handled else ("success" if result.success else "failure")
        record_dispatch(classification.label.value, handler_name, outcome)
        logger.info(
            f"Dispatched {message.message_id} from {user.identity}: label={classification.label.value} "
            f"handler={handler_name} outcome={outcome} delivered={delivered}"
        )
        return DispatchOutcome(
            processed=True,
            label=classification.label,
            handler=handler_name,
            success=result.success,
            reply=result.reply if result.should_reply else None,
            replied=result.should_reply,
            delivered=delivered
        )

    async def _handle(
        self, message: InboundMessage, user: User
    ) -> tuple[ClassificationResult, str, HandlerResult, list[tuple[str, str]]]:
        """Classify, run one handler, apply its outcome; caller holds the session"""
        services = self.services
        context = await services.contexts.get(user.identity)
        classification = self.classifier.classify(message.text, context is not None)
        bundle = MessageContext(
            message=message,
            user=user,
            context=context,
            classification=classification,
            services=services
        )

        handler_name = FALLBACK_HANDLER
        try:
            handler = self.chain.select(bundle)
            if handler is None:
                result = self._fallback(bundle)
            else:
                handler_name = handler.name
                result = await handler.handle(bundle)
        except Exception as e:
            logger.error(
                f"Handler {handler_name} failed for {user.identity}: {e}",
                exc_info=True
            )
            capture_exception(e, handler=handler_name, label=classification.label.value, stage="handle")
            result = HandlerResult(success=False, reply=bundle.reply("error_generic"))

        outbox: list[tuple[str, str]] = []
        try:
            await services.contexts.apply(user.identity, result.context)
            outbox = await self._run_side_actions(bundle, result.side_actions)
        except Exception as e:
            logger.error(
                f"Applying outcome of {handler_name} failed for {user.identity}: {e}",
                exc_info=True
            )
            capture_exception(e, handler=handler_name, label=classification.label.value, stage="apply")
            result = HandlerResult(success=False, reply=bundle.reply("error_generic"))
            outbox = []
        return classification, handler_name, result, outbox

    def _fallback(self, bundle: MessageContext) -> HandlerResult:
        if self.services.fallback_action == "ignore":
            return HandlerResult.unhandled()
        return HandlerResult(reply=bundle.reply("fallback"))

    async def _run_side_actions(self, bundle: MessageContext, actions: list[SideAction]) -> list[tuple[str, str]]:
        """
        Execute side actions in order.

        NOTIFY actions are returned as (recipient, text) pairs and delivered
        after the session is released.
        """
        outbox: list[tuple[str, str]] = []
        for action in actions:
            if action.kind is SideActionKind.PERSIST_USER:
                payload = dict(action.payload)
                identity = payload.pop("identity", bundle.user.identity)
                await self.services.users.update(identity, UserUpdate(**payload))
            elif action.kind is SideActionKind.NOTIFY:
                outbox.append((action.payload["recipient"], action.payload["text"]))
            elif action.kind is SideActionKind.LOG_COMMAND:
                await self._log_command(bundle, action)
        return outbox

    async def _log_command(self, bundle: MessageContext, action: SideAction) -> None:
        # Diagnostics only: a lost log line never fails the message
        try:
            await self.services.command_logs.append(
                bundle.user.identity,
                action.payload["command"],
                action.payload.get("args", []),
                action.payload.get("success", False),
                self.services.contexts.clock()
            )
        except Exception as e:
            logger.warning(f"Failed to log command {action.payload.get('command')}: {e}")

    async def _deliver(self, recipient: str, text: str) -> bool:
        try:
            delivered = await self.services.bridge.send_text(recipient, text)
        except Exception as e:
            logger.error(f"Reply to {recipient} failed: {e}", exc_info=True)
            return False
        if not delivered:
            logger.warning(f"Reply to {recipient} was not delivered")
        return delivered
