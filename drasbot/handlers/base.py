"""Handler capability and the context-flow base class"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from drasbot.exceptions import DrasBotError, InvalidContextStepError
from drasbot.i18n.translations import resolve_language, t
from drasbot.models.context import Context, ContextTransition
from drasbot.models.handler import HandlerResult
from drasbot.models.message import ClassificationResult, InboundMessage, MessageKind
from drasbot.models.user import User

logger = logging.getLogger(__name__)


@dataclass
class MessageContext:
    """Everything a handler may look at for one inbound message"""
    message: InboundMessage
    user: User
    context: Optional[Context]
    classification: ClassificationResult
    services: Any  # drasbot.services.container.ServiceContainer

    @property
    def text(self) -> str:
        return (self.message.text or "").strip()

    @property
    def label(self) -> MessageKind:
        return self.classification.label

    @property
    def lang(self) -> str:
        return resolve_language(self.user.language or self.services.default_language)

    @property
    def prefix(self) -> str:
        return self.services.command_prefix

    @property
    def display_name(self) -> str:
        return self.user.display_name or t("default_name", self.lang)

    def reply(self, key: str, **kwargs: Any) -> str:
        """Translate `key` in the user's language; prefix is always available"""
        kwargs.setdefault("prefix", self.prefix)
        return t(key, self.lang, **kwargs)

    def reply_error(self, error: DrasBotError) -> str:
        """The user-facing text of `error`, in the user's language"""
        return error.user_reply(self.lang, prefix=self.prefix)


class MessageHandler(ABC):
    """
    A member of the handler chain.

    `accepts` must be cheap and side-effect free; `handle` runs only for the
    single handler the dispatcher picked.
    """

    name: str = "handler"
    priority: int = 0

    @abstractmethod
    def accepts(self, bundle: MessageContext) -> bool:
        ...

    @abstractmethod
    async def handle(self, bundle: MessageContext) -> HandlerResult:
        ...

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(priority={self.priority})"


class ContextFlow(MessageHandler):
    """
    Handler owning one context type and its finite set of steps.

    Subclasses declare `context_type`, `steps` and `initial_step`, and
    implement `handle_step`. Transitions built through `goto`/`start` are
    checked against the declared steps.
    """

    context_type: str = ""
    steps: tuple[str, ...] = ()
    initial_step: str = ""

    def owns(self, context: Optional[Context]) -> bool:
        return context is not None and context.context_type == self.context_type

    def accepts(self, bundle: MessageContext) -> bool:
        return self.owns(bundle.context) and bundle.label is MessageKind.CONTEXT_RESPONSE

    def check_step(self, step: str) -> None:
        if step not in self.steps:
            raise InvalidContextStepError(
                f"Step '{step}' is not declared for context type '{self.context_type}'",
                context_type=self.context_type,
                step=step
            )

    def start(self, step: Optional[str] = None, data: Optional[dict] = None) -> ContextTransition:
        """Open a new context of this type, discarding any other"""
        step = step or self.initial_step
        self.check_step(step)
        return ContextTransition.set(
            context_type=self.context_type,
            step=step,
            data=data,
            fresh=True
        )

    def goto(self, step: str, data: Optional[dict] = None) -> ContextTransition:
        """Move the active context to `step`, merging `data`"""
        self.check_step(step)
        return ContextTransition.set(step=step, data=data)

    def stay(self, data: Optional[dict] = None) -> ContextTransition:
        """Remain on the current step, merging `data` and refreshing the TTL"""
        return ContextTransition.set(data=data)

    async def handle(self, bundle: MessageContext) -> HandlerResult:
        context = bundle.context
        if context.step not in self.steps:
            logger.warning(
                f"Context {context.context_type}/{context.step} for {bundle.user.identity} "
                f"has an undeclared step, clearing"
            )
            return HandlerResult(reply=bundle.reply("stale_context"), context=ContextTransition.clear())
        return await self.handle_step(bundle, context)

    @abstractmethod
    async def handle_step(self, bundle: MessageContext, context: Context) -> HandlerResult:
        ...
