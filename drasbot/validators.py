"""
Input validation for user-supplied values

Validation Categories:
1. Display names - length, not a phone number, allowed characters
2. Name extraction - natural-language prefixes ("me llamo", "my name is", ...)
3. Preference values - closed option sets per setting

Validators raise `ValidationError` whose `reply_key` names the catalog entry
to answer with and whose `reply_params` format it, so handlers can answer
with a corrective message and keep the conversation going.
"""

import logging
import re
from typing import Optional

from drasbot.exceptions import ValidationError

logger = logging.getLogger(__name__)


# ============================================================================
# DISPLAY NAME VALIDATION
# ============================================================================

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50

ONLY_DIGITS = re.compile(r"^\d+$")
PHONE_LIKE = re.compile(r"^[+]?[\d\s\-()]{8,}$")
ALLOWED_NAME_CHARS = re.compile(r"^[a-zA-ZáéíóúÁÉÍÓÚñÑüÜ0-9\s.\-_]+$")

# "hola, me llamo Ana": optional greeting, then one of the declaration
# prefixes, then the name. Shared with the classifier so a name is read the
# same way inside and outside a registration.
NAME_DECLARATION_PATTERN = re.compile(
    r"^\s*(?:(?:hola|hi|hello|hey|buenas)[\s,!.]+)?"
    r"(?:me llamo|mi nombre es|ll[aá]mame|soy|my name is|i'?m|i am|call me)\s+"
    r"(?P<name>.+?)[\s.!]*$",
    re.IGNORECASE | re.UNICODE
)


def _reject(reason: str, name: str, message: str, **params) -> ValidationError:
    return ValidationError(
        message=message,
        field="display_name",
        value=name,
        reply_key=reason,
        reply_params=params
    )


def validate_display_name(raw: Optional[str]) -> str:
    """
    Validate a display name.

    Args:
        raw: Candidate name as typed by the user

    Returns:
        The trimmed name with inner whitespace collapsed

    Raises:
        ValidationError: with reply_key one of name_error_empty,
            name_error_too_short, name_error_too_long, name_error_numeric,
            name_error_phone, name_error_chars
    """
    name = " ".join((raw or "").split())

    if not name:
        raise _reject("name_error_empty", name, "Name is empty")
    if len(name) < NAME_MIN_LENGTH:
        raise _reject("name_error_too_short", name, "Name too short", min=NAME_MIN_LENGTH)
    if len(name) > NAME_MAX_LENGTH:
        raise _reject("name_error_too_long", name, "Name too long", max=NAME_MAX_LENGTH)
    if ONLY_DIGITS.match(name):
        raise _reject("name_error_numeric", name, "Name is only digits")
    if PHONE_LIKE.match(name):
        raise _reject("name_error_phone", name, "Name looks like a phone number")
    if not ALLOWED_NAME_CHARS.match(name):
        raise _reject("name_error_chars", name, "Name has disallowed characters")

    return name


def extract_name(text: Optional[str]) -> str:
    """
    Strip a natural-language declaration ("hola, me llamo Ana" -> "Ana").

    Text without a known prefix is returned trimmed, as a bare name.
    """
    stripped = (text or "").strip()
    match = NAME_DECLARATION_PATTERN.match(stripped)
    if match:
        return match.group("name").strip()
    return stripped.strip(" .!")


# ============================================================================
# PREFERENCE VALIDATION
# ============================================================================

# setting -> (preference key, {accepted input: stored value})
SETTINGS: dict[str, tuple[str, dict[str, object]]] = {
    "language": ("language", {"es": "es", "español": "es", "espanol": "es", "en": "en", "english": "en", "inglés": "en", "ingles": "en"}),
    "notifications": ("notifications", {"on": True, "si": True, "sí": True, "yes": True, "off": False, "no": False}),
}

SETTING_ALIASES = {
    "idioma": "language",
    "language": "language",
    "lang": "language",
    "notificaciones": "notifications",
    "notifications": "notifications",
    "avisos": "notifications",
}


def resolve_setting(name: Optional[str]) -> Optional[str]:
    """Canonical setting name for a user-typed one, or None"""
    if not name:
        return None
    return SETTING_ALIASES.get(name.strip().lower())


def setting_options(setting: str) -> list[str]:
    """Short option list shown to the user"""
    return ["es", "en"] if setting == "language" else ["on", "off"]


def validate_setting_value(setting: str, raw: Optional[str]) -> tuple[str, object]:
    """
    Validate a value for a known setting.

    Returns:
        (preference key, stored value)

    Raises:
        ValidationError: unknown value; reply_key is config_invalid_value
    """
    key, accepted = SETTINGS[setting]
    value = (raw or "").strip().lower()
    if value not in accepted:
        raise ValidationError(
            message=f"Invalid value for {setting}",
            field=setting,
            value=raw,
            reply_key="config_invalid_value",
            reply_params={"options": ", ".join(setting_options(setting))}
        )
    return key, accepted[value]
