"""Tests for push token storage and Expo delivery."""
from __future__ import annotations

import json

import httpx
import pytest

from birdhouse.errors import PushDeliveryError
from birdhouse.push import ExpoPushSender, InMemoryPushTokenStore


def test_store_deduplicates_and_keeps_order():
    store = InMemoryPushTokenStore()
    store.register("c", "t", "b")
    store.register("c", "t", "a")
    store.register("c", "t", "b")
    assert store.tokens("c", "t") == ["b", "a"]
    assert store.tokens("c", "other") == []

    store.clear()
    assert store.tokens("c", "t") == []


async def test_no_tokens_sends_nothing():
    calls = []
    http = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: calls.append(r) or httpx.Response(200)))
    await ExpoPushSender(http=http).send([], "title", "body", {})
    assert calls == []


async def test_posts_one_notification_per_token():
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"data": []})

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    sender = ExpoPushSender(url="https://push.example.com/send", http=http)
    await sender.send(["t1", "t2"], "Agent", "hello", {"threadId": "x"})

    request = requests[0]
    assert str(request.url) == "https://push.example.com/send"
    assert json.loads(request.content) == [
        {"to": "t1", "sound": "default", "title": "Agent", "body": "hello", "data": {"threadId": "x"}},
        {"to": "t2", "sound": "default", "title": "Agent", "body": "hello", "data": {"threadId": "x"}},
    ]


async def test_error_status_raises():
    http = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(400, text="bad token")))
    with pytest.raises(PushDeliveryError) as info:
        await ExpoPushSender(http=http).send(["t1"], "Agent", "hello", {})
    assert str(info.value) == "Expo push failed (400): bad token"
