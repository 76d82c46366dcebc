"""
Push delivery collaborators: where device tokens are kept and how a
notification reaches them (Expo push service).
"""
from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

import httpx

from birdhouse.config import DEFAULT_EXPO_PUSH_URL
from birdhouse.errors import PushDeliveryError

logger = logging.getLogger(__name__)


class PushTokenStore(Protocol):
    def register(self, contact_id: str, thread_id: str, token: str) -> None: ...

    def tokens(self, contact_id: str, thread_id: str) -> list[str]: ...

    def clear(self) -> None: ...


class PushSender(Protocol):
    async def send(self, tokens: list[str], title: str, body: str, data: dict[str, Any]) -> None: ...


class InMemoryPushTokenStore:
    """Tokens keyed by (contact, thread), de-duplicated, in registration order."""

    def __init__(self) -> None:
        self._tokens: dict[tuple[str, str], dict[str, None]] = {}

    def register(self, contact_id: str, thread_id: str, token: str) -> None:
        self._tokens.setdefault((contact_id, thread_id), {})[token] = None

    def tokens(self, contact_id: str, thread_id: str) -> list[str]:
        return list(self._tokens.get((contact_id, thread_id), {}))

    def clear(self) -> None:
        self._tokens.clear()


class ExpoPushSender:
    def __init__(self, url: str = DEFAULT_EXPO_PUSH_URL, http: Optional[httpx.AsyncClient] = None):
        self.url = url
        self._http = http

    async def send(self, tokens: list[str], title: str, body: str, data: dict[str, Any]) -> None:
        if not tokens:
            return

        notifications = [
            {"to": to, "sound": "default", "title": title, "body": body, "data": data}
            for to in tokens
        ]
        headers = {"Content-Type": "application/json", "Accept": "application/json"}

        if self._http is not None:
            response = await self._http.post(self.url, json=notifications, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.post(self.url, json=notifications, headers=headers)

        if response.is_error:
            raise PushDeliveryError(response.status_code, response.text)
        logger.info("Delivered push to %d device(s)", len(tokens))
