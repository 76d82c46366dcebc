"""Shared fixtures and fakes."""
from __future__ import annotations

import sys
from typing import Any, AsyncIterator

import pytest

from birdhouse.config import AppSettings
from birdhouse.protocol import (
    Contact,
    MessageEndEvent,
    MessageStartEvent,
    OutboundMessageInput,
    ProviderCapability,
    ProviderKind,
    StreamEvent,
    TokenEvent,
    TypingEvent,
)
from birdhouse.providers.base import ProviderAdapter, ProviderSendInput, new_id, utc_now

PYTHON = sys.executable


def make_contact(kind: str = "terminal-cli", extra: dict[str, Any] | None = None, **provider: Any) -> Contact:
    return Contact.model_validate({
        "id": "contact-1",
        "displayName": "Agent Smith",
        "provider": {
            "kind": kind,
            "baseUrl": provider.pop("baseUrl", "https://agent.example.com"),
            "extra": extra or {},
            **provider,
        },
    })


def make_input(contact: Contact, text: str = "hello", **kwargs: Any) -> ProviderSendInput:
    return ProviderSendInput(
        contact=contact,
        thread_id=kwargs.pop("thread_id", "thread-1"),
        message=OutboundMessageInput.model_validate({"text": text, **kwargs}),
    )


async def collect(events: AsyncIterator[StreamEvent]) -> list[StreamEvent]:
    return [event async for event in events]


class FakeAdapter(ProviderAdapter):
    """Replies with fixed tokens, optionally failing after them."""

    def __init__(self, kind: ProviderKind = ProviderKind.TERMINAL_CLI, tokens: list[str] | None = None,
                 error: Exception | None = None):
        self.kind = kind
        self.capability = ProviderCapability(
            kind=kind, supports_streaming=True, supports_attachments=False, supports_async=True,
        )
        self.tokens = tokens if tokens is not None else ["Hi ", "there"]
        self.error = error
        self.inputs: list[ProviderSendInput] = []

    async def send_message_stream(self, input: ProviderSendInput) -> AsyncIterator[StreamEvent]:
        self.inputs.append(input)
        message_id = new_id()
        yield MessageStartEvent(message_id=message_id, thread_id=input.thread_id, created_at=utc_now())
        yield TypingEvent(is_typing=True)
        for token in self.tokens:
            yield TokenEvent(text=token)
        if self.error is not None:
            raise self.error
        yield TypingEvent(is_typing=False)
        yield MessageEndEvent(message_id=message_id, text="".join(self.tokens), status="received",
                              created_at=utc_now())


class FakePushSender:
    def __init__(self, error: Exception | None = None):
        self.sent: list[dict[str, Any]] = []
        self.error = error

    async def send(self, tokens: list[str], title: str, body: str, data: dict[str, Any]) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append({"tokens": tokens, "title": title, "body": body, "data": data})


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(_env_file=None, OPENAI_API_KEY="", API_KEY="", default_provider=None)


@pytest.fixture
def contact() -> Contact:
    return make_contact()
