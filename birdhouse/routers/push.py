"""
Push registration router.
POST /push/register - remember a device token for a (contact, thread)
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from birdhouse.protocol import PushRegistration
from birdhouse.server import AgentServer, get_server

router = APIRouter(prefix="/push", tags=["push"])


@router.post("/register")
async def register_push(body: PushRegistration, server: AgentServer = Depends(get_server)):
    server.push_store.register(body.contact_id, body.thread_id, body.expo_push_token)
    return {"ok": True, "contactId": body.contact_id, "threadId": body.thread_id}
