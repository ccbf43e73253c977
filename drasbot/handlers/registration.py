"""
Registration flow

States: start -> awaiting_name -> complete (terminal).

`start` prompts for a name and moves to `awaiting_name`. `awaiting_name`
validates the candidate; a rejection stays on the step with the attempt
counter incremented, and after the configured number of failed attempts the
context is dropped. A valid name is persisted through a PERSIST_USER side
action, the confirmation is sent and the context is cleared directly, so
`complete` is never stored; a context found there is closed without a reply.
"""

import logging
from typing import Optional

from drasbot.config import REGISTRATION_MAX_ATTEMPTS
from drasbot.exceptions import ValidationError
from drasbot.handlers.base import ContextFlow, MessageContext, MessageHandler
from drasbot.models.context import REGISTRATION, Context, ContextTransition
from drasbot.models.handler import HandlerResult, SideAction
from drasbot.models.message import MessageKind
from drasbot.validators import extract_name, validate_display_name

logger = logging.getLogger(__name__)

START = "start"
AWAITING_NAME = "awaiting_name"
COMPLETE = "complete"


class RegistrationFlow(ContextFlow):
    """Handler for messages inside a `registration` context"""

    name = "registration"
    priority = 90
    context_type = REGISTRATION
    steps = (START, AWAITING_NAME, COMPLETE)
    initial_step = START

    def __init__(self, max_attempts: int = REGISTRATION_MAX_ATTEMPTS):
        self.max_attempts = max_attempts

    def begin(self, bundle: MessageContext, welcome: bool = True) -> HandlerResult:
        """Open a fresh registration and ask for the name"""
        return HandlerResult(
            reply=bundle.reply("registration_welcome" if welcome else "registration_prompt"),
            context=self.start(AWAITING_NAME, data={"attempts": 0})
        )

    async def handle_step(self, bundle: MessageContext, context: Context) -> HandlerResult:
        if context.step == START:
            return HandlerResult(
                reply=bundle.reply("registration_prompt"),
                context=self.goto(AWAITING_NAME, data={"attempts": 0})
            )
        if context.step == COMPLETE:
            # The name was already taken; close silently instead of asking again
            return HandlerResult(context=ContextTransition.clear())

        candidate = bundle.classification.candidate_name or extract_name(bundle.text)
        return self.submit_name(bundle, candidate, attempts=int(context.data.get("attempts", 0)))

    def submit_name(self, bundle: MessageContext, candidate: Optional[str], attempts: int) -> HandlerResult:
        """
        Validate a candidate name against the awaiting_name step.

        Args:
            bundle: Message being handled
            candidate: Name extracted from the message
            attempts: Failed attempts so far in this registration
        """
        try:
            name = validate_display_name(candidate)
        except ValidationError as e:
            return self._rejected(bundle, e, attempts + 1)

        key = "name_updated" if bundle.user.is_registered else "name_confirmation"
        reply = bundle.reply(key, name=name)
        if not bundle.user.is_registered:
            reply += bundle.reply("motivational")
        logger.info(f"User {bundle.user.identity} registered as '{name}'")
        return HandlerResult(
            reply=reply,
            context=ContextTransition.clear(),
            side_actions=[SideAction.persist_user(display_name=name, is_registered=True)]
        )

    def _rejected(self, bundle: MessageContext, error: ValidationError, attempts: int) -> HandlerResult:
        if attempts >= self.max_attempts:
            logger.info(f"Registration for {bundle.user.identity} abandoned after {attempts} attempts")
            return HandlerResult(
                success=False,
                reply=bundle.reply("registration_gave_up"),
                context=ContextTransition.clear()
            )

        reply = bundle.reply_error(error) + bundle.reply("name_retry", attempt=attempts, max=self.max_attempts)
        data = {"attempts": attempts, "last_error": error.reply_key}
        if bundle.context is not None and self.owns(bundle.context):
            transition = self.stay(data)
        else:
            transition = self.start(AWAITING_NAME, data=data)
        return HandlerResult(success=False, reply=reply, context=transition)


class NameDeclarationHandler(MessageHandler):
    """
    "me llamo Ana" sent with no open conversation.

    Runs the same validation as the registration flow; a rejected name opens
    a registration context at awaiting_name so the user can retry.
    """

    name = "name_declaration"
    priority = 80

    def __init__(self, flow: RegistrationFlow):
        self.flow = flow

    def accepts(self, bundle: MessageContext) -> bool:
        return (
            bundle.context is None
            and bundle.label is MessageKind.CONTEXT_RESPONSE
            and bool(bundle.classification.candidate_name)
        )

    async def handle(self, bundle: MessageContext) -> HandlerResult:
        return self.flow.submit_name(bundle, bundle.classification.candidate_name, attempts=0)
