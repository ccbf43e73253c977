"""Pydantic models for webhook request/response validation"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from drasbot.models.message import InboundMessage, MessageKind


class InboundMessageRequest(BaseModel):
    """Message pushed by the bridge"""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1, description="Bridge message id")
    sender: str = Field(..., alias="from", description="Author identity (phone number or JID)")
    text: str = Field(default="", alias="content", description="Message text, may be empty")
    timestamp: Optional[datetime] = Field(default=None, description="When the message was sent")
    message_type: str = Field(default="text", description="Only 'text' is accepted")
    push_name: Optional[str] = Field(default=None, description="WhatsApp profile name")

    @field_validator("sender")
    @classmethod
    def sender_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("sender must not be empty")
        return v

    @field_validator("message_type")
    @classmethod
    def text_only(cls, v: str) -> str:
        if v.lower() != "text":
            raise ValueError(f"unsupported message_type '{v}'")
        return "text"

    def to_inbound(self) -> InboundMessage:
        return InboundMessage(
            message_id=self.id,
            sender=self.sender,
            text=self.text,
            timestamp=self.timestamp,
            push_name=self.push_name
        )


class DispatchResponse(BaseModel):
    """Result of dispatching one webhook message"""
    processed: bool
    label: Optional[MessageKind] = None
    handler: Optional[str] = None
    replied: bool = False
    delivered: Optional[bool] = None


class HealthResponse(BaseModel):
    status: str
    bridge: str
    storage: str
    timestamp: datetime
