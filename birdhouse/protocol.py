"""
Wire protocol shared by the server, the client and every provider adapter.

Fields are snake_case in Python and camelCase on the wire; dump with
``by_alias=True`` when serializing.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import AnyUrl, BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ProviderKind(str, Enum):
    AI_SDK = "ai-sdk"
    OPENCLAW = "openclaw"
    PI_MONO = "pi-mono"
    TERMINAL_CLI = "terminal-cli"
    CLAUDE_CODE_CLI = "claude-code-cli"
    OPENCLAW_CLI = "openclaw-cli"
    NANOCLAW_CLI = "nanoclaw-cli"


# ── Auth ─────────────────────────────────────────────────────────────────────

class NoAuth(WireModel):
    type: Literal["none"] = "none"


class BearerAuth(WireModel):
    type: Literal["bearer"] = "bearer"
    token: str = Field(min_length=1)


class BasicAuth(WireModel):
    type: Literal["basic"] = "basic"
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


AuthConfig = Annotated[Union[NoAuth, BearerAuth, BasicAuth], Field(discriminator="type")]


# ── Contacts and messages ────────────────────────────────────────────────────

class ProviderConfig(WireModel):
    kind: ProviderKind
    base_url: AnyUrl
    auth: AuthConfig = Field(default_factory=NoAuth)
    extra: dict[str, Any] = Field(default_factory=dict)


class Contact(WireModel):
    id: str = Field(min_length=1)
    display_name: str = Field(min_length=1)
    provider: ProviderConfig


class Attachment(WireModel):
    id: Optional[str] = Field(default=None, min_length=1)
    kind: Literal["image", "file"]
    name: str = Field(min_length=1)
    mime_type: Optional[str] = Field(default=None, min_length=1)
    size_bytes: Optional[int] = Field(default=None, ge=0)
    uri: Optional[str] = Field(default=None, min_length=1)
    data_base64: Optional[str] = Field(default=None, min_length=1)


ChatRole = Literal["user", "agent", "system"]
MessageStatus = Literal["sending", "sent", "received", "read", "failed", "streaming"]


class Message(WireModel):
    id: str = Field(min_length=1)
    thread_id: str = Field(min_length=1)
    role: ChatRole
    text: str
    attachments: list[Attachment] = Field(default_factory=list)
    status: MessageStatus = "sent"
    created_at: datetime


class OutboundMessageInput(WireModel):
    id: Optional[str] = Field(default=None, min_length=1)
    text: str
    attachments: list[Attachment] = Field(default_factory=list)


class ChatStreamRequest(WireModel):
    thread_id: str = Field(min_length=1)
    contact: Contact
    message: OutboundMessageInput
    history: list[Message] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


# ── Stream events ────────────────────────────────────────────────────────────

class MessageStartEvent(WireModel):
    type: Literal["message_start"] = "message_start"
    message_id: str = Field(min_length=1)
    thread_id: str = Field(min_length=1)
    created_at: datetime


class TokenEvent(WireModel):
    type: Literal["token"] = "token"
    text: str


class AttachmentEvent(WireModel):
    type: Literal["attachment"] = "attachment"
    attachment: Attachment


class TypingEvent(WireModel):
    type: Literal["typing"] = "typing"
    is_typing: bool


class MessageEndEvent(WireModel):
    type: Literal["message_end"] = "message_end"
    message_id: str = Field(min_length=1)
    text: str
    status: MessageStatus
    created_at: datetime


class ErrorEvent(WireModel):
    type: Literal["error"] = "error"
    code: str = Field(min_length=1)
    message: str = Field(min_length=1)
    retryable: bool = False


StreamEvent = Annotated[
    Union[MessageStartEvent, TokenEvent, AttachmentEvent, TypingEvent, MessageEndEvent, ErrorEvent],
    Field(discriminator="type"),
]

STREAM_EVENT = TypeAdapter(StreamEvent)


# ── Push, async jobs and discovery ───────────────────────────────────────────

class PushRegistration(WireModel):
    contact_id: str = Field(min_length=1)
    thread_id: str = Field(min_length=1)
    expo_push_token: str = Field(min_length=1)
    platform: Literal["ios", "android"]


class AsyncTriggerRequest(WireModel):
    contact: Contact
    thread_id: str = Field(min_length=1)
    text: Optional[str] = None


class AsyncScheduleRequest(WireModel):
    contact: Contact
    thread_id: str = Field(min_length=1)
    delay_seconds: int = Field(gt=0, le=3600)
    text: Optional[str] = None


class ProviderCapability(WireModel):
    kind: ProviderKind
    supports_streaming: bool
    supports_attachments: bool
    supports_async: bool


class ProviderDiscovery(WireModel):
    kind: ProviderKind
