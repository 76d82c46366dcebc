"""
Provider discovery router.
GET /providers/capabilities - what every available provider kind supports
GET /providers/default      - the kind clients should use when unsure
"""
from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from birdhouse.server import AgentServer, get_server

router = APIRouter(prefix="/providers", tags=["providers"])


@router.get("/capabilities")
async def list_capabilities(server: AgentServer = Depends(get_server)):
    return {"capabilities": [c.to_wire() for c in server.capabilities()]}


@router.get("/default")
async def default_provider(server: AgentServer = Depends(get_server)):
    kind = server.default_kind()
    if kind is None:
        return JSONResponse(
            {"error": "no_provider", "message": "No provider is available on this endpoint."},
            status_code=503,
        )
    return {"kind": kind.value}
