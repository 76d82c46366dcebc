"""
Async messaging router.
POST /async/trigger  - generate a follow-up now and push it
POST /async/schedule - same, after delaySeconds (1..3600)
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from birdhouse.protocol import AsyncScheduleRequest, AsyncTriggerRequest
from birdhouse.server import AgentServer, get_server

router = APIRouter(prefix="/async", tags=["async"])


@router.post("/trigger")
async def trigger(body: AsyncTriggerRequest, server: AgentServer = Depends(get_server)):
    result = await server.dispatcher.trigger(body.contact, body.thread_id, body.text)
    return {"queued": True, "deliveredTo": result.delivered_to, "text": result.text}


@router.post("/schedule")
async def schedule(body: AsyncScheduleRequest, server: AgentServer = Depends(get_server)):
    job = server.dispatcher.schedule(body.contact, body.thread_id, body.delay_seconds, body.text)
    return {
        "scheduled": True,
        "jobId": job.job_id,
        "delaySeconds": job.delay_seconds,
        "runAt": job.run_at.isoformat(),
    }
