"""
HTTP client for a birdhouse agent server.

    client = BirdhouseClient()
    async for event in client.chat_stream(endpoint, request):
        ...
"""
from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import httpx
from pydantic import ValidationError

from birdhouse.errors import RemoteProviderError
from birdhouse.protocol import (
    STREAM_EVENT,
    AsyncScheduleRequest,
    AsyncTriggerRequest,
    AuthConfig,
    BasicAuth,
    BearerAuth,
    ChatStreamRequest,
    MessageEndEvent,
    MessageStartEvent,
    ProviderCapability,
    ProviderDiscovery,
    ProviderKind,
    PushRegistration,
    StreamEvent,
    TokenEvent,
)
from birdhouse.providers.base import new_id, utc_now
from birdhouse.sse import decode_sse

logger = logging.getLogger(__name__)

FALLBACK_PROVIDER = ProviderKind.TERMINAL_CLI
PREFERRED_PROVIDER = ProviderKind.AI_SDK


def join_url(base_url: str, path: str) -> str:
    trimmed = str(base_url).rstrip("/")
    normalized = path if path.startswith("/") else f"/{path}"
    return f"{trimmed}{normalized}"


def build_auth_headers(auth: Optional[AuthConfig]) -> dict[str, str]:
    if isinstance(auth, BearerAuth):
        return {"Authorization": f"Bearer {auth.token}"}
    if isinstance(auth, BasicAuth):
        encoded = base64.b64encode(f"{auth.username}:{auth.password}".encode("utf-8")).decode("ascii")
        return {"Authorization": f"Basic {encoded}"}
    return {}


def is_event_stream(response: httpx.Response) -> bool:
    return "text/event-stream" in response.headers.get("content-type", "")


@dataclass
class EndpointTarget:
    base_url: str
    auth: Optional[AuthConfig] = None


class BirdhouseClient:
    def __init__(self, http: Optional[httpx.AsyncClient] = None):
        self._http = http or httpx.AsyncClient(timeout=None)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _post(self, endpoint: EndpointTarget, path: str, payload: dict, operation: str) -> httpx.Response:
        response = await self._http.post(
            join_url(endpoint.base_url, path),
            json=payload,
            headers=build_auth_headers(endpoint.auth),
        )
        _raise_for_status(response, operation)
        return response

    async def chat_stream(self, endpoint: EndpointTarget, request: ChatStreamRequest) -> AsyncIterator[StreamEvent]:
        headers = {"Accept": "text/event-stream", **build_auth_headers(endpoint.auth)}
        async with self._http.stream(
            "POST",
            join_url(endpoint.base_url, "/v1/chat.stream"),
            json=request.to_wire(),
            headers=headers,
        ) as response:
            if response.is_error:
                await response.aread()
                _raise_for_status(response, "chat.stream")

            if is_event_stream(response):
                async for event in decode_sse(response.aiter_bytes()):
                    yield event
                return

            await response.aread()
            body = response.json()

        if isinstance(body, dict) and isinstance(body.get("events"), list):
            for item in body["events"]:
                yield STREAM_EVENT.validate_python(item)
            return

        text = body.get("text") if isinstance(body, dict) else None
        text = text if isinstance(text, str) else ""
        message_id = new_id()
        yield MessageStartEvent(message_id=message_id, thread_id=request.thread_id, created_at=utc_now())
        yield TokenEvent(text=text)
        yield MessageEndEvent(message_id=message_id, text=text, status="received", created_at=utc_now())

    async def register_push(self, endpoint: EndpointTarget, registration: PushRegistration) -> dict:
        response = await self._post(endpoint, "/v1/push/register", registration.to_wire(), "push.register")
        return response.json()

    async def trigger_async(self, endpoint: EndpointTarget, request: AsyncTriggerRequest) -> dict:
        response = await self._post(endpoint, "/v1/async/trigger", request.to_wire(), "async.trigger")
        return response.json()

    async def schedule_async(self, endpoint: EndpointTarget, request: AsyncScheduleRequest) -> dict:
        response = await self._post(endpoint, "/v1/async/schedule", request.to_wire(), "async.schedule")
        return response.json()

    async def list_capabilities(self, endpoint: EndpointTarget) -> list[ProviderCapability]:
        response = await self._http.get(
            join_url(endpoint.base_url, "/v1/providers/capabilities"),
            headers=build_auth_headers(endpoint.auth),
        )
        _raise_for_status(response, "providers.capabilities")
        payload = response.json()
        items = payload.get("capabilities") if isinstance(payload, dict) else None
        if not isinstance(items, list):
            return []
        return [ProviderCapability.model_validate(item) for item in items]

    async def discover_provider(self, endpoint: EndpointTarget) -> ProviderKind:
        """
        Pick the provider kind to talk to:
          1. the kind reported by /v1/providers/default, when parseable
          2. the capabilities list (only entry, else ai-sdk, else first entry)
          3. terminal-cli when capabilities are empty or unreachable
        """
        try:
            response = await self._http.get(
                join_url(endpoint.base_url, "/v1/providers/default"),
                headers=build_auth_headers(endpoint.auth),
            )
            if response.is_success:
                return ProviderDiscovery.model_validate(response.json()).kind
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            logger.debug("Default provider lookup failed: %s", e)

        try:
            capabilities = await self.list_capabilities(endpoint)
        except (httpx.HTTPError, RemoteProviderError, ValueError, ValidationError) as e:
            logger.debug("Capabilities lookup failed: %s", e)
            return FALLBACK_PROVIDER

        if not capabilities:
            return FALLBACK_PROVIDER
        if len(capabilities) == 1:
            return capabilities[0].kind
        for capability in capabilities:
            if capability.kind == PREFERRED_PROVIDER:
                return capability.kind
        return capabilities[0].kind


def _raise_for_status(response: httpx.Response, operation: str) -> None:
    if response.is_error:
        raise RemoteProviderError(
            f"{operation} failed ({response.status_code}): {response.text}",
            status_code=response.status_code,
            body=response.text,
        )
