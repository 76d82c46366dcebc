"""
Per-app wiring: the registry (or wrapped command), push stores and the
async dispatcher, created once in create_app() and shared by the routers
through `request.app.state.server`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import AsyncIterator, Optional

from fastapi import Request

from birdhouse.config import AppSettings
from birdhouse.dispatch import AsyncDispatcher
from birdhouse.protocol import ChatStreamRequest, Contact, ProviderCapability, ProviderKind, StreamEvent
from birdhouse.providers.base import ProviderAdapter, ProviderSendInput
from birdhouse.providers.registry import ProviderRegistry, default_provider_kind
from birdhouse.providers.wrapped import WrappedCommandAdapter
from birdhouse.push import PushSender, PushTokenStore


@dataclass
class AgentServer:
    settings: AppSettings
    registry: ProviderRegistry
    push_store: PushTokenStore
    push_sender: PushSender
    wrapped: Optional[WrappedCommandAdapter] = None
    dispatcher: AsyncDispatcher = field(init=False)

    def __post_init__(self) -> None:
        self.dispatcher = AsyncDispatcher(self.resolve_adapter, self.push_store, self.push_sender)

    @property
    def mode(self) -> str:
        return "wrapped-command" if self.wrapped else "provider-registry"

    def resolve_adapter(self, contact: Contact) -> ProviderAdapter:
        if self.wrapped is not None:
            return self.wrapped
        return self.registry.get(contact.provider.kind)

    def capabilities(self) -> list[ProviderCapability]:
        if self.wrapped is not None:
            return [self.wrapped.capability]
        return self.registry.capabilities()

    def default_kind(self) -> Optional[ProviderKind]:
        if self.wrapped is not None:
            return self.wrapped.kind
        return default_provider_kind(self.registry, self.settings)

    async def stream(self, request: ChatStreamRequest) -> AsyncIterator[StreamEvent]:
        adapter = self.resolve_adapter(request.contact)
        async for event in adapter.send_message_stream(ProviderSendInput(
            contact=request.contact,
            thread_id=request.thread_id,
            message=request.message,
            history=request.history,
            metadata=request.metadata,
        )):
            yield event

    async def shutdown(self) -> None:
        self.dispatcher.jobs.clear()
        self.push_store.clear()
        await self.registry.aclose()
        if self.wrapped is not None:
            await self.wrapped.aclose()


def get_server(request: Request) -> AgentServer:
    return request.app.state.server
