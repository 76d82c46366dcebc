"""
Hosted-model adapter ("ai-sdk").
Streams chat completion deltas from the OpenAI API as token events.
Compatible with openai SDK v1.x / v2.x.
"""
from __future__ import annotations

from typing import Any, AsyncIterator, Callable, Optional

from openai import AsyncOpenAI

from birdhouse.protocol import (
    Message,
    MessageEndEvent,
    MessageStartEvent,
    ProviderCapability,
    ProviderKind,
    StreamEvent,
    TokenEvent,
    TypingEvent,
)
from birdhouse.providers.base import ProviderAdapter, ProviderSendInput, build_prompt, new_id, utc_now

_ROLE_MAP = {"agent": "assistant", "system": "system", "user": "user"}


def to_openai_messages(history: list[Message], prompt: str) -> list[dict]:
    """Convert history plus the current prompt to chat completion messages."""
    messages: list[dict] = [{"role": _ROLE_MAP.get(m.role, "user"), "content": m.text} for m in history]
    messages.append({"role": "user", "content": prompt})
    return messages


class HostedModelAdapter(ProviderAdapter):
    kind = ProviderKind.AI_SDK
    capability = ProviderCapability(
        kind=ProviderKind.AI_SDK,
        supports_streaming=True,
        supports_attachments=True,
        supports_async=True,
    )

    def __init__(
        self,
        model_name: str = "gpt-4.1-mini",
        api_key: str = "",
        client_factory: Optional[Callable[[], Any]] = None,
    ):
        self.model_name = model_name
        self._api_key = api_key
        self._client_factory = client_factory
        self._client_instance: Any = None

    def _client(self) -> Any:
        if self._client_instance is None:
            if self._client_factory is not None:
                self._client_instance = self._client_factory()
            else:
                self._client_instance = AsyncOpenAI(api_key=self._api_key or None)
        return self._client_instance

    async def aclose(self) -> None:
        if self._client_instance is not None:
            await self._client_instance.close()
            self._client_instance = None

    async def send_message_stream(self, input: ProviderSendInput) -> AsyncIterator[StreamEvent]:
        message_id = new_id()
        yield MessageStartEvent(message_id=message_id, thread_id=input.thread_id, created_at=utc_now())
        yield TypingEvent(is_typing=True)

        client = self._client()
        stream = await client.chat.completions.create(
            model=self.model_name,
            messages=to_openai_messages(input.history, build_prompt(input.message)),
            stream=True,
        )

        full_text = ""
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta
            if delta.content:
                full_text += delta.content
                yield TokenEvent(text=delta.content)

        yield TypingEvent(is_typing=False)
        yield MessageEndEvent(message_id=message_id, text=full_text, status="received", created_at=utc_now())
