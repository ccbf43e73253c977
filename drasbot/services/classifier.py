"""
Message classifier

Labels an inbound message from its text and whether the sender has an open
conversation. Deterministic and side-effect free; the dispatcher branches on
the label only, never on the confidence.

Checks run in a fixed order and the first match wins:
    1. escape token (bare word or prefixed)    -> COMMAND (escape=True)
    2. open context                            -> CONTEXT_RESPONSE
    3. prefix + command token                  -> COMMAND (known or not)
    4. keyword / regex matchers in order       -> GREETING, FAREWELL,
       HELP_REQUEST, name declaration (CONTEXT_RESPONSE), QUESTION
    5. anything else                           -> GENERAL
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Pattern

from drasbot.models.message import ClassificationResult, MessageKind
from drasbot.validators import NAME_DECLARATION_PATTERN

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Matcher:
    name: str
    label: MessageKind
    pattern: Pattern[str]
    confidence: float
    extract_name: bool = False


_FLAGS = re.IGNORECASE | re.UNICODE

# Whole-message patterns: "hola, me llamo Ana" must not stop at the greeting
GREETING_PATTERN = re.compile(
    r"^(hola|holi|hello|hi|hey|buenas|saludos|buenos d[ií]as|buenas tardes|buenas noches|"
    r"good (morning|afternoon|evening)|qu[eé] tal|c[oó]mo est[aá]s|c[oó]mo and[aá]s|what'?s up)[\s\W]*$",
    _FLAGS
)
FAREWELL_PATTERN = re.compile(
    r"^(adi[oó]s|bye|goodbye|hasta luego|hasta pronto|hasta ma[nñ]ana|nos vemos|chao|chau|see you|"
    r"gracias|muchas gracias|thanks?|thank you|thx)[\s\W]*$",
    _FLAGS
)
THANKS_PATTERN = re.compile(r"^(gracias|muchas gracias|thanks?|thank you|thx)[\s\W]*$", _FLAGS)
HELP_PATTERN = re.compile(
    r"\b(ayuda|ay[uú]dame|help|socorro|no entiendo|qu[eé] puedes hacer|what can you do|how does this work)\b",
    _FLAGS
)
QUESTION_PATTERN = re.compile(
    r"(\?\s*$)|(^\s*¿)|"
    r"(^\s*(qu[eé]|c[oó]mo|cu[aá]ndo|d[oó]nde|por qu[eé]|qui[eé]n|cu[aá]l|cu[aá]nto|"
    r"what|how|when|where|why|who|which|can|could|is|are|do|does)\b)",
    _FLAGS
)

DEFAULT_MATCHERS: tuple[Matcher, ...] = (
    Matcher("greeting", MessageKind.GREETING, GREETING_PATTERN, 0.9),
    Matcher("farewell", MessageKind.FAREWELL, FAREWELL_PATTERN, 0.9),
    Matcher("help_request", MessageKind.HELP_REQUEST, HELP_PATTERN, 0.8),
    Matcher("name_declaration", MessageKind.CONTEXT_RESPONSE, NAME_DECLARATION_PATTERN, 0.85, extract_name=True),
    Matcher("question", MessageKind.QUESTION, QUESTION_PATTERN, 0.6),
)


class MessageClassifier:
    """
    Pure classifier built once at startup from the command registry's names.

    Args:
        command_prefix: Single-character command sigil
        command_names: Every registered command name and alias
        escape_tokens: Names and aliases of escape commands, honoured even
            inside an open context and without the prefix
        matchers: Ordered keyword/regex matchers (declaration order breaks ties)
    """

    def __init__(
        self,
        command_prefix: str,
        command_names: Iterable[str],
        escape_tokens: Iterable[str] = (),
        matchers: tuple[Matcher, ...] = DEFAULT_MATCHERS
    ):
        self.command_prefix = command_prefix
        self.command_names = frozenset(n.lower() for n in command_names)
        self.escape_tokens = frozenset(n.lower() for n in escape_tokens)
        self.matchers = matchers

    @classmethod
    def from_registry(cls, registry: Any, command_prefix: str) -> "MessageClassifier":
        """Build from a CommandRegistry after all commands are registered"""
        return cls(
            command_prefix=command_prefix,
            command_names=registry.all_names(),
            escape_tokens=registry.escape_names()
        )

    def classify(self, text: Optional[str], has_active_context: bool) -> ClassificationResult:
        """
        Label a message.

        Args:
            text: Raw message text (None is treated as empty)
            has_active_context: Whether the sender has an open, unexpired context

        Returns:
            ClassificationResult; empty or whitespace-only text is GENERAL with
            no extraction
        """
        stripped = (text or "").strip()
        if not stripped:
            return ClassificationResult(label=MessageKind.GENERAL, confidence=1.0, matched="empty")

        escape = self._match_escape(stripped)
        if escape is not None:
            return escape

        if has_active_context:
            return ClassificationResult(
                label=MessageKind.CONTEXT_RESPONSE,
                extraction={"text": stripped},
                confidence=0.9,
                matched="active_context"
            )

        command = self._match_command(stripped)
        if command is not None:
            return command

        for matcher in self.matchers:
            match = matcher.pattern.search(stripped)
            if not match:
                continue
            extraction: dict[str, Any] = {}
            if matcher.extract_name:
                extraction["candidate_name"] = match.group("name").strip()
            if matcher.label is MessageKind.FAREWELL and THANKS_PATTERN.match(stripped):
                extraction["thanks"] = True
            return ClassificationResult(
                label=matcher.label,
                extraction=extraction,
                confidence=matcher.confidence,
                matched=matcher.name
            )

        return ClassificationResult(label=MessageKind.GENERAL, confidence=0.3, matched="default")

    def _split_command(self, text: str) -> Optional[tuple[str, list[str]]]:
        if not text.startswith(self.command_prefix):
            return None
        tokens = text[len(self.command_prefix):].split()
        if not tokens:
            return None
        return tokens[0].lower(), tokens[1:]

    def _match_escape(self, text: str) -> Optional[ClassificationResult]:
        split = self._split_command(text)
        if split is None:
            tokens = text.split()
            # Bare escape words only count on their own
            if len(tokens) != 1:
                return None
            split = (tokens[0].lower().strip(".!¡"), [])
        name, args = split
        if name not in self.escape_tokens:
            return None
        return ClassificationResult(
            label=MessageKind.COMMAND,
            extraction={"command": name, "args": args, "known": True, "escape": True},
            confidence=1.0,
            matched="escape"
        )

    def _match_command(self, text: str) -> Optional[ClassificationResult]:
        split = self._split_command(text)
        if split is None:
            return None
        name, args = split
        known = name in self.command_names
        return ClassificationResult(
            label=MessageKind.COMMAND,
            extraction={"command": name, "args": args, "known": known, "escape": False},
            confidence=1.0 if known else 0.7,
            matched="command" if known else "unknown_command"
        )
