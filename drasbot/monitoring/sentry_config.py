"""
Sentry error reporting

Only dispatch crashes are reported. Message bodies never leave the process:
`_scrub_event` drops every `text` / `content` / `message_text` field from the
event extras and contexts before it is sent.
"""
import logging
from typing import Any, Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from drasbot.config import ENABLE_SENTRY, SENTRY_DSN, SENTRY_ENVIRONMENT, SENTRY_TRACES_SAMPLE_RATE

logger = logging.getLogger(__name__)

PRIVATE_KEYS = frozenset({"text", "content", "message_text"})


def _scrub(data: Any) -> Any:
    if isinstance(data, dict):
        return {k: ("[redacted]" if k in PRIVATE_KEYS else _scrub(v)) for k, v in data.items()}
    return data


def _scrub_event(event: dict, hint: dict) -> Optional[dict]:
    for section in ("extra", "contexts"):
        if section in event:
            event[section] = _scrub(event[section])
    return event


def init_sentry(release: Optional[str] = None) -> bool:
    """
    Start the Sentry SDK when ENABLE_SENTRY and SENTRY_DSN are both set.

    Returns:
        True if events will be reported
    """
    if not ENABLE_SENTRY:
        logger.info("Sentry reporting disabled")
        return False
    if not SENTRY_DSN:
        logger.warning("ENABLE_SENTRY is set but SENTRY_DSN is empty, not reporting")
        return False

    try:
        sentry_sdk.init(
            dsn=SENTRY_DSN,
            environment=SENTRY_ENVIRONMENT,
            release=release,
            traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
            send_default_pii=False,
            before_send=_scrub_event,
            integrations=[
                FastApiIntegration(transaction_style="endpoint"),
                # Dispatch failures are logged at ERROR; those become events
                LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
            ],
        )
    except Exception as e:
        logger.error(f"Sentry init failed: {e}", exc_info=True)
        return False

    logger.info(f"Sentry reporting to environment '{SENTRY_ENVIRONMENT}'")
    return True


def set_user_context(identity: str, level: Optional[str] = None) -> None:
    """Attach the sender to subsequent events"""
    if not ENABLE_SENTRY:
        return
    sentry_sdk.set_user({"id": identity})
    if level:
        sentry_sdk.set_tag("user_level", level)


def capture_exception(exception: Exception, **dispatch: Any) -> None:
    """
    Report a dispatch failure.

    Keyword arguments (label, handler, context_type, ...) are attached as the
    `dispatch` context; `label` and `handler` are also indexed as tags.
    """
    if not ENABLE_SENTRY:
        return

    try:
        with sentry_sdk.new_scope() as scope:
            scope.set_context("dispatch", {k: str(v) for k, v in dispatch.items()})
            for tag in ("label", "handler"):
                if dispatch.get(tag) is not None:
                    scope.set_tag(tag, str(dispatch[tag]))
            sentry_sdk.capture_exception(exception)
    except Exception as e:
        logger.error(f"Could not report exception to Sentry: {e}")
