"""
Remote HTTP agent adapters.

  openclaw → POST {baseUrl}/chat      {threadId, message, history, metadata, stream}
  pi-mono  → POST {baseUrl}/api/chat  {threadId, input: {text, attachments}, history, metadata, stream}

`extra.path` overrides the route when it starts with "/". An event-stream
response is decoded and re-emitted; a JSON response is wrapped into a
start/token/end envelope.
"""
from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Optional

import httpx

from birdhouse.client import build_auth_headers, is_event_stream, join_url
from birdhouse.errors import RemoteProviderError
from birdhouse.protocol import (
    Contact,
    MessageEndEvent,
    MessageStartEvent,
    ProviderCapability,
    ProviderKind,
    StreamEvent,
    TokenEvent,
)
from birdhouse.providers.base import ProviderAdapter, ProviderSendInput, new_id, utc_now
from birdhouse.sse import decode_sse

logger = logging.getLogger(__name__)


def remote_path(contact: Contact, default_path: str) -> str:
    path = contact.provider.extra.get("path")
    if isinstance(path, str) and path.startswith("/"):
        return path
    return default_path


def extract_body_text(body: Any) -> str:
    if not isinstance(body, dict):
        return ""
    for key in ("text", "message", "output"):
        if isinstance(body.get(key), str):
            return body[key]
    return ""


class RemoteHttpAdapter(ProviderAdapter):
    default_path: str = "/chat"

    def __init__(self, http: Optional[httpx.AsyncClient] = None):
        self._http = http
        self.capability = ProviderCapability(
            kind=self.kind,
            supports_streaming=True,
            supports_attachments=True,
            supports_async=True,
        )

    def build_payload(self, input: ProviderSendInput) -> dict[str, Any]:
        raise NotImplementedError

    async def send_message_stream(self, input: ProviderSendInput) -> AsyncIterator[StreamEvent]:
        payload = self.build_payload(input)
        contact = input.contact
        url = join_url(str(contact.provider.base_url), remote_path(contact, self.default_path))
        headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream, application/json",
            **build_auth_headers(contact.provider.auth),
        }

        http = self._http or httpx.AsyncClient(timeout=None)
        try:
            async with http.stream("POST", url, json=payload, headers=headers) as response:
                if response.is_error:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    raise RemoteProviderError(
                        f"Remote provider request failed ({response.status_code}): {body}",
                        status_code=response.status_code,
                        body=body,
                    )

                if is_event_stream(response):
                    async for event in decode_sse(response.aiter_bytes()):
                        yield event
                    return

                await response.aread()
                body = response.json()
        finally:
            if self._http is None:
                await http.aclose()

        text = extract_body_text(body)
        message_id = new_id()
        created_at = utc_now()
        yield MessageStartEvent(message_id=message_id, thread_id=input.thread_id, created_at=created_at)
        yield TokenEvent(text=text)
        yield MessageEndEvent(message_id=message_id, text=text, status="received", created_at=created_at)


def _history(input: ProviderSendInput) -> list[dict]:
    return [m.to_wire() for m in input.history]


class OpenClawAdapter(RemoteHttpAdapter):
    kind = ProviderKind.OPENCLAW
    default_path = "/chat"

    def build_payload(self, input: ProviderSendInput) -> dict[str, Any]:
        return {
            "threadId": input.thread_id,
            "message": input.message.to_wire(),
            "history": _history(input),
            "metadata": dict(input.metadata),
            "stream": True,
        }


class PiMonoAdapter(RemoteHttpAdapter):
    kind = ProviderKind.PI_MONO
    default_path = "/api/chat"

    def build_payload(self, input: ProviderSendInput) -> dict[str, Any]:
        return {
            "threadId": input.thread_id,
            "input": {
                "text": input.message.text,
                "attachments": [a.to_wire() for a in input.message.attachments],
            },
            "history": _history(input),
            "metadata": dict(input.metadata),
            "stream": True,
        }
