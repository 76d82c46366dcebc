"""
Abstract provider adapter interface.
All adapters must implement `send_message_stream`.

Every turn follows the same event order:

    message_start, [typing(true)], token|attachment*, [typing(false)], message_end

A failure is raised out of the generator; the SSE encoder turns it into a
single `error` event.
"""
from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator

from birdhouse.protocol import (
    Contact,
    Message,
    OutboundMessageInput,
    ProviderCapability,
    ProviderKind,
    StreamEvent,
)


@dataclass(frozen=True)
class ProviderSendInput:
    contact: Contact
    thread_id: str
    message: OutboundMessageInput
    history: list[Message] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def summarize_attachments(message: OutboundMessageInput) -> str:
    if not message.attachments:
        return ""
    items = [
        f"{a.kind}:{a.name}" + (f" ({a.mime_type})" if a.mime_type else "")
        for a in message.attachments
    ]
    return "\n\nAttachments: " + ", ".join(items)


def build_prompt(message: OutboundMessageInput) -> str:
    return f"{message.text}{summarize_attachments(message)}"


class ProviderAdapter(ABC):
    """Unified interface for all agent providers."""

    kind: ProviderKind
    capability: ProviderCapability

    @abstractmethod
    def send_message_stream(self, input: ProviderSendInput) -> AsyncIterator[StreamEvent]:
        """
        Yield StreamEvents for one chat turn. The iterator is single-use and
        must not mutate `input`.
        """

    async def aclose(self) -> None:
        """Release long-lived clients; called once at server shutdown."""
