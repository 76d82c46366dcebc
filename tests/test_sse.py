"""Tests for SSE framing in both directions."""
from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from birdhouse.protocol import (
    Attachment,
    AttachmentEvent,
    ErrorEvent,
    MessageEndEvent,
    MessageStartEvent,
    TokenEvent,
    TypingEvent,
)
from birdhouse.sse import DONE_FRAME, SseDecoder, decode_sse, encode_event, encode_sse

from conftest import collect

CREATED = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

ALL_EVENTS = [
    MessageStartEvent(message_id="m1", thread_id="t1", created_at=CREATED),
    TypingEvent(is_typing=True),
    TokenEvent(text="héllo\nworld"),
    AttachmentEvent(attachment=Attachment(kind="image", name="cat.png", mime_type="image/png", size_bytes=12)),
    TypingEvent(is_typing=False),
    MessageEndEvent(message_id="m1", text="héllo\nworld", status="received", created_at=CREATED),
    ErrorEvent(code="provider_error", message="boom", retryable=True),
]


async def _aiter(items):
    for item in items:
        yield item


async def _encode(events) -> bytes:
    frames = [frame async for frame in encode_sse(_aiter(events))]
    return "".join(frames).encode("utf-8")


def test_encode_event_uses_camel_case_data_line():
    frame = encode_event(MessageStartEvent(message_id="m1", thread_id="t1", created_at=CREATED))
    assert frame.startswith("data: ")
    assert frame.endswith("\n\n")
    payload = json.loads(frame[len("data: "):])
    assert payload["type"] == "message_start"
    assert payload["messageId"] == "m1"
    assert payload["threadId"] == "t1"


async def test_encode_appends_done_after_normal_completion():
    frames = [f async for f in encode_sse(_aiter([TokenEvent(text="a")]))]
    assert frames[-1] == DONE_FRAME
    assert len(frames) == 2


async def test_encode_replaces_failure_with_single_error_event():
    async def failing():
        yield TokenEvent(text="partial")
        raise RuntimeError("provider exploded")

    frames = [f async for f in encode_sse(failing())]
    assert len(frames) == 2
    assert DONE_FRAME not in frames
    error = json.loads(frames[1][len("data: "):])
    assert error == {"type": "error", "code": "provider_error", "message": "provider exploded", "retryable": False}


async def test_encode_failure_without_message_gets_generic_text():
    async def failing():
        raise RuntimeError()
        yield  # pragma: no cover

    frames = [f async for f in encode_sse(failing())]
    assert json.loads(frames[0][6:])["message"] == "Unknown provider error"


async def test_round_trip_every_event_variant():
    data = await _encode(ALL_EVENTS)
    assert await collect(decode_sse(_aiter([data]))) == ALL_EVENTS


@pytest.mark.parametrize("size", [1, 2, 3, 7, 64])
async def test_round_trip_survives_any_chunking(size):
    data = await _encode(ALL_EVENTS)
    chunks = [data[i:i + size] for i in range(0, len(data), size)]
    assert await collect(decode_sse(_aiter(chunks))) == ALL_EVENTS


def test_decoder_keeps_partial_frame_until_boundary():
    decoder = SseDecoder()
    assert decoder.feed(b'data: {"type":"token",') == []
    assert decoder.feed(b'"text":"hi"}\n') == []
    assert decoder.feed(b"\n") == [TokenEvent(text="hi")]


def test_decoder_normalizes_crlf_split_across_chunks():
    decoder = SseDecoder()
    events = decoder.feed(b'data: {"type":"token","text":"a"}\r')
    events += decoder.feed(b"\n\r\n")
    assert events == [TokenEvent(text="a")]


def test_decoder_skips_done_and_blank_data_lines():
    decoder = SseDecoder()
    assert decoder.feed(b"data: [DONE]\n\ndata:   \n\nevent: ping\n\n") == []


def test_decoder_wraps_non_json_payload_as_token():
    assert SseDecoder().feed(b"data: plain words\n\n") == [TokenEvent(text="plain words")]


def test_decoder_synthesizes_token_from_loose_fields():
    decoder = SseDecoder()
    events = decoder.feed(b'data: {"text":"from text"}\n\ndata: {"token":"from token"}\n\n')
    assert events == [TokenEvent(text="from text"), TokenEvent(text="from token")]


def test_decoder_never_drops_unrecognized_json():
    assert SseDecoder().feed(b'data: {"foo":1}\n\n') == [TokenEvent(text='{"foo":1}')]


def test_decoder_reads_every_data_line_in_a_frame():
    events = SseDecoder().feed(b"id: 1\ndata: one\ndata: two\n\n")
    assert events == [TokenEvent(text="one"), TokenEvent(text="two")]


def test_flush_processes_trailing_frame_without_boundary():
    decoder = SseDecoder()
    assert decoder.feed(b'data: {"type":"typing","isTyping":true}') == []
    assert decoder.flush() == [TypingEvent(is_typing=True)]


def test_flush_decodes_incomplete_utf8_tail():
    decoder = SseDecoder()
    decoder.feed(b"data: caf\xc3")
    events = decoder.flush()
    assert len(events) == 1
    assert events[0].text.startswith("caf")
