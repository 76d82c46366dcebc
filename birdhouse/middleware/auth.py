"""
Simple API-key authentication middleware.

Configuration:
  Set API_KEY=<your-secret> (or BIRDHOUSE_API_KEY) in .env or environment.
  If it is empty / not set → auth is disabled (trusted network mode).

Clients must send the key as:
  Authorization: Bearer <key>
  OR
  X-API-Key: <key>

Public endpoints (always allowed regardless of key):
  GET /v1/health
"""
from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

# Paths that don't require auth
_PUBLIC_PATHS = {"/v1/health"}


async def api_key_middleware(request: Request, call_next):
    api_key = request.app.state.server.settings.api_key.strip()

    if not api_key or request.url.path in _PUBLIC_PATHS or request.method == "OPTIONS":
        return await call_next(request)

    auth_header = request.headers.get("Authorization", "")
    x_api_key = request.headers.get("X-API-Key", "")

    if auth_header.startswith("Bearer "):
        provided = auth_header[7:].strip()
    elif x_api_key:
        provided = x_api_key.strip()
    else:
        provided = ""

    if provided != api_key:
        return JSONResponse(
            {"error": "unauthorized", "message": "API key required"},
            status_code=401,
        )

    return await call_next(request)
