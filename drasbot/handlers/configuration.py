"""
Configuration flow

Single step `awaiting_value`: the context data names the setting being
changed; the next message is validated and stored in the user's preference
map. Invalid values retry in place until the context expires or the user
escapes.
"""

import logging

from drasbot.exceptions import ValidationError
from drasbot.handlers.base import ContextFlow, MessageContext
from drasbot.i18n.translations import t
from drasbot.models.context import CONFIGURATION, Context, ContextTransition
from drasbot.models.handler import HandlerResult, SideAction
from drasbot.validators import validate_setting_value

logger = logging.getLogger(__name__)

AWAITING_VALUE = "awaiting_value"


class ConfigurationFlow(ContextFlow):
    name = "configuration"
    priority = 90
    context_type = CONFIGURATION
    steps = (AWAITING_VALUE,)
    initial_step = AWAITING_VALUE

    def ask(self, bundle: MessageContext, setting: str) -> HandlerResult:
        """Open the flow for `setting` and prompt for its value"""
        return HandlerResult(
            reply=bundle.reply(f"config_ask_{setting}"),
            context=self.start(data={"setting": setting})
        )

    def store(self, bundle: MessageContext, setting: str, raw: str, in_context: bool) -> HandlerResult:
        """Validate and persist a value; keep asking on rejection"""
        try:
            key, value = validate_setting_value(setting, raw)
        except ValidationError as e:
            reply = bundle.reply_error(e)
            return HandlerResult(
                success=False,
                reply=reply,
                context=self.stay({"last_value": raw}) if in_context else ContextTransition.no_change()
            )

        shown = raw.strip().lower()
        # Confirm in the language just chosen
        lang = value if key == "language" else bundle.lang
        reply = t("config_saved", lang, setting=setting, value=shown, prefix=bundle.prefix)

        logger.info(f"User {bundle.user.identity} set {key}={value!r}")
        return HandlerResult(
            reply=reply,
            context=ContextTransition.clear() if in_context else ContextTransition.no_change(),
            side_actions=[SideAction.persist_user(preferences={key: value})]
        )

    async def handle_step(self, bundle: MessageContext, context: Context) -> HandlerResult:
        setting = context.data.get("setting")
        if setting not in ("language", "notifications"):
            return HandlerResult(reply=bundle.reply("stale_context"), context=ContextTransition.clear())
        return self.store(bundle, setting, bundle.text, in_context=True)
