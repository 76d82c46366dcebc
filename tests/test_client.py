"""Tests for the HTTP client against a mocked agent server."""
from __future__ import annotations

import json

import httpx
import pytest

from birdhouse.client import BirdhouseClient, EndpointTarget, build_auth_headers, join_url
from birdhouse.errors import RemoteProviderError
from birdhouse.protocol import (
    BasicAuth,
    BearerAuth,
    ChatStreamRequest,
    MessageEndEvent,
    MessageStartEvent,
    NoAuth,
    ProviderKind,
    PushRegistration,
    TokenEvent,
)

from conftest import make_contact

ENDPOINT = EndpointTarget(base_url="http://agent.local:8787/", auth=BearerAuth(token="k"))


def _client(routes: dict) -> tuple[BirdhouseClient, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        route = routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, text="not found")
        if isinstance(route, Exception):
            raise route
        return route

    return BirdhouseClient(httpx.AsyncClient(transport=httpx.MockTransport(handler))), seen


def _capabilities(*kinds: str) -> httpx.Response:
    return httpx.Response(200, json={"capabilities": [
        {"kind": k, "supportsStreaming": True, "supportsAttachments": False, "supportsAsync": True}
        for k in kinds
    ]})


def _request() -> ChatStreamRequest:
    return ChatStreamRequest.model_validate({
        "threadId": "t1",
        "contact": make_contact().to_wire(),
        "message": {"text": "hi"},
    })


def test_join_url():
    assert join_url("http://a/", "v1/x") == "http://a/v1/x"
    assert join_url("http://a//", "/v1/x") == "http://a/v1/x"


def test_auth_headers():
    assert build_auth_headers(None) == {}
    assert build_auth_headers(NoAuth()) == {}
    assert build_auth_headers(BearerAuth(token="t")) == {"Authorization": "Bearer t"}
    assert build_auth_headers(BasicAuth(username="u", password="p")) == {"Authorization": "Basic dTpw"}


class TestDiscoverProvider:
    async def test_uses_default_endpoint(self):
        client, seen = _client({"/v1/providers/default": httpx.Response(200, json={"kind": "pi-mono"})})
        assert await client.discover_provider(ENDPOINT) == ProviderKind.PI_MONO
        assert seen[0].headers["Authorization"] == "Bearer k"

    async def test_single_capability(self):
        client, _ = _client({"/v1/providers/capabilities": _capabilities("openclaw-cli")})
        assert await client.discover_provider(ENDPOINT) == ProviderKind.OPENCLAW_CLI

    async def test_prefers_hosted_model(self):
        client, _ = _client({
            "/v1/providers/default": httpx.Response(200, json={"kind": "nope"}),
            "/v1/providers/capabilities": _capabilities("openclaw", "ai-sdk"),
        })
        assert await client.discover_provider(ENDPOINT) == ProviderKind.AI_SDK

    async def test_first_capability_otherwise(self):
        client, _ = _client({"/v1/providers/capabilities": _capabilities("pi-mono", "openclaw")})
        assert await client.discover_provider(ENDPOINT) == ProviderKind.PI_MONO

    async def test_falls_back_when_nothing_answers(self):
        client, _ = _client({
            "/v1/providers/default": httpx.ConnectError("refused"),
            "/v1/providers/capabilities": httpx.ConnectError("refused"),
        })
        assert await client.discover_provider(ENDPOINT) == ProviderKind.TERMINAL_CLI

    async def test_falls_back_on_empty_capabilities(self):
        client, _ = _client({"/v1/providers/capabilities": httpx.Response(200, json={"capabilities": []})})
        assert await client.discover_provider(ENDPOINT) == ProviderKind.TERMINAL_CLI


async def test_chat_stream_decodes_sse():
    body = (
        b'data: {"type":"message_start","messageId":"m","threadId":"t1","createdAt":"2026-01-01T00:00:00Z"}\n\n'
        b'data: {"type":"token","text":"yo"}\n\n'
        b"data: [DONE]\n\n"
    )
    client, seen = _client({"/v1/chat.stream": httpx.Response(
        200, headers={"content-type": "text/event-stream"}, content=body,
    )})

    events = [e async for e in client.chat_stream(ENDPOINT, _request())]

    assert isinstance(events[0], MessageStartEvent)
    assert events[1] == TokenEvent(text="yo")
    assert len(events) == 2
    sent = json.loads(seen[0].content)
    assert sent["threadId"] == "t1"
    assert sent["contact"]["provider"]["kind"] == "terminal-cli"
    assert seen[0].headers["Accept"] == "text/event-stream"


async def test_chat_stream_json_fallback():
    client, _ = _client({"/v1/chat.stream": httpx.Response(200, json={"text": "plain"})})
    events = [e async for e in client.chat_stream(ENDPOINT, _request())]
    assert [type(e) for e in events] == [MessageStartEvent, TokenEvent, MessageEndEvent]
    assert events[2].text == "plain"
    assert events[0].thread_id == "t1"


async def test_chat_stream_error_status():
    client, _ = _client({"/v1/chat.stream": httpx.Response(400, json={"error": "validation_error"})})
    with pytest.raises(RemoteProviderError, match=r"chat.stream failed \(400\)"):
        [e async for e in client.chat_stream(ENDPOINT, _request())]


async def test_register_push_posts_wire_payload():
    client, seen = _client({"/v1/push/register": httpx.Response(200, json={"ok": True})})
    registration = PushRegistration(contact_id="c", thread_id="t", expo_push_token="tok", platform="ios")
    assert await client.register_push(ENDPOINT, registration) == {"ok": True}
    assert json.loads(seen[0].content) == {
        "contactId": "c", "threadId": "t", "expoPushToken": "tok", "platform": "ios",
    }
