"""
Chat API router.
POST /chat.stream  - run one turn against the contact's provider (returns SSE stream)
"""
from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from birdhouse.protocol import ChatStreamRequest
from birdhouse.server import AgentServer, get_server
from birdhouse.sse import encode_sse

router = APIRouter(tags=["chat"])


@router.post("/chat.stream")
async def chat_stream(body: ChatStreamRequest, server: AgentServer = Depends(get_server)):
    return StreamingResponse(
        encode_sse(server.stream(body)),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
