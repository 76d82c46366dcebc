"""
Server-Sent Events framing for StreamEvents.

Send side: one ``data: <json>`` line per event followed by a blank line,
then ``data: [DONE]`` once the producer finishes. A producer failure is
turned into a single ``error`` event and the stream ends without [DONE].

Receive side: SseDecoder buffers arbitrary byte chunks, splits them on blank
lines and turns each ``data:`` payload back into a StreamEvent.
"""
from __future__ import annotations

import codecs
import json
import logging
from typing import AsyncIterable, AsyncIterator

from pydantic import ValidationError

from birdhouse.protocol import STREAM_EVENT, ErrorEvent, StreamEvent, TokenEvent

logger = logging.getLogger(__name__)

DONE = "[DONE]"
DONE_FRAME = f"data: {DONE}\n\n"


def encode_event(event: StreamEvent) -> str:
    return f"data: {json.dumps(event.to_wire(), ensure_ascii=False)}\n\n"


async def encode_sse(events: AsyncIterable[StreamEvent]) -> AsyncIterator[str]:
    try:
        async for event in events:
            yield encode_event(event)
    except Exception as e:
        logger.warning("Provider stream failed: %s", e)
        yield encode_event(ErrorEvent(
            code="provider_error",
            message=str(e) or "Unknown provider error",
            retryable=False,
        ))
        return
    yield DONE_FRAME


def parse_payload(payload: str) -> StreamEvent:
    """Map one data payload to a StreamEvent. Nothing is ever dropped."""
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError:
        return TokenEvent(text=payload)

    try:
        return STREAM_EVENT.validate_python(parsed)
    except ValidationError:
        pass

    if isinstance(parsed, dict):
        for key in ("text", "token"):
            if isinstance(parsed.get(key), str):
                return TokenEvent(text=parsed[key])
    return TokenEvent(text=payload)


def frame_payloads(frame: str) -> list[str]:
    payloads = []
    for line in frame.split("\n"):
        if not line.startswith("data:"):
            continue
        item = line[5:].strip()
        if item:
            payloads.append(item)
    return payloads


class SseDecoder:
    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> list[StreamEvent]:
        self._buffer += self._decoder.decode(chunk)
        return self._drain()

    def flush(self) -> list[StreamEvent]:
        """Process whatever is left once the byte source has ended."""
        self._buffer += self._decoder.decode(b"", final=True)
        trailing = self._buffer.replace("\r\n", "\n")
        self._buffer = ""
        events = []
        for frame in trailing.split("\n\n"):
            events.extend(self._frame_events(frame))
        return events

    def _drain(self) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        while True:
            normalized = self._buffer.replace("\r\n", "\n")
            boundary = normalized.find("\n\n")
            if boundary < 0:
                self._buffer = normalized
                return events
            frame = normalized[:boundary]
            self._buffer = normalized[boundary + 2:]
            events.extend(self._frame_events(frame))

    @staticmethod
    def _frame_events(frame: str) -> list[StreamEvent]:
        return [parse_payload(p) for p in frame_payloads(frame) if p != DONE]


async def decode_sse(chunks: AsyncIterable[bytes]) -> AsyncIterator[StreamEvent]:
    decoder = SseDecoder()
    async for chunk in chunks:
        for event in decoder.feed(chunk):
            yield event
    for event in decoder.flush():
        yield event
