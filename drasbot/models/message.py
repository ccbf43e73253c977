"""Inbound message and classification models"""
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field


class MessageKind(str, Enum):
    """Closed set of classification labels"""
    COMMAND = "command"
    GREETING = "greeting"
    FAREWELL = "farewell"
    QUESTION = "question"
    HELP_REQUEST = "help_request"
    CONTEXT_RESPONSE = "context_response"
    GENERAL = "general"


class InboundMessage(BaseModel):
    """Text message delivered by the bridge"""
    message_id: str
    sender: str  # identity key of the author
    text: str = ""
    timestamp: Optional[datetime] = None
    push_name: Optional[str] = None  # WhatsApp profile name, informational only


class ClassificationResult(BaseModel):
    """
    Label for an inbound message.

    `confidence` is diagnostic only; routing branches on `label`.
    """
    label: MessageKind
    extraction: dict[str, Any] = Field(default_factory=dict)
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    matched: Optional[str] = None  # name of the matcher that fired

    @property
    def candidate_name(self) -> Optional[str]:
        return self.extraction.get("candidate_name")

    @property
    def command_name(self) -> Optional[str]:
        return self.extraction.get("command")

    @property
    def command_args(self) -> list[str]:
        return list(self.extraction.get("args", []))
