"""
Provider registry - one adapter per provider kind, bound at startup.

Supported kinds:
  ai-sdk           → HostedModelAdapter (OpenAI chat completions)
  openclaw         → OpenClawAdapter (remote HTTP, /chat)
  pi-mono          → PiMonoAdapter (remote HTTP, /api/chat)
  terminal-cli     → CliWrappedAdapter (codex exec {prompt})
  claude-code-cli  → CliWrappedAdapter (claude -p {prompt})
  openclaw-cli     → CliWrappedAdapter (openclaw --no-color agent --message {prompt})
  nanoclaw-cli     → CliWrappedAdapter (command from contact or env)
"""
from __future__ import annotations

from typing import Iterable, Optional

from birdhouse.config import AppSettings
from birdhouse.errors import UnregisteredProviderError
from birdhouse.protocol import ProviderCapability, ProviderKind
from birdhouse.providers.base import ProviderAdapter
from birdhouse.providers.cli_wrapped import (
    claude_code_cli_adapter,
    nanoclaw_cli_adapter,
    openclaw_cli_adapter,
    terminal_cli_adapter,
)
from birdhouse.providers.hosted import HostedModelAdapter
from birdhouse.providers.remote import OpenClawAdapter, PiMonoAdapter


class ProviderRegistry:
    def __init__(self, adapters: Iterable[ProviderAdapter]):
        self._adapters: dict[ProviderKind, ProviderAdapter] = {}
        for adapter in adapters:
            self._adapters[adapter.kind] = adapter

    def get(self, kind: ProviderKind | str) -> ProviderAdapter:
        try:
            return self._adapters[ProviderKind(kind)]
        except (KeyError, ValueError):
            raise UnregisteredProviderError(str(getattr(kind, "value", kind))) from None

    def kinds(self) -> list[ProviderKind]:
        return list(self._adapters)

    def capabilities(self) -> list[ProviderCapability]:
        return [adapter.capability for adapter in self._adapters.values()]

    async def aclose(self) -> None:
        for adapter in self._adapters.values():
            await adapter.aclose()


def create_default_registry(settings: AppSettings) -> ProviderRegistry:
    return ProviderRegistry([
        HostedModelAdapter(model_name=settings.openai_model, api_key=settings.openai_api_key),
        OpenClawAdapter(),
        PiMonoAdapter(),
        terminal_cli_adapter(settings),
        claude_code_cli_adapter(settings),
        openclaw_cli_adapter(settings),
        nanoclaw_cli_adapter(settings),
    ])


def default_provider_kind(registry: ProviderRegistry, settings: AppSettings) -> Optional[ProviderKind]:
    """
    Priority: BIRDHOUSE_DEFAULT_PROVIDER → ai-sdk with an API key →
    terminal-cli → ai-sdk → first registered kind.
    """
    kinds = registry.kinds()
    if not kinds:
        return None

    if settings.default_provider:
        try:
            configured = ProviderKind(settings.default_provider)
        except ValueError:
            configured = None
        if configured in kinds:
            return configured

    if ProviderKind.AI_SDK in kinds and settings.openai_api_key.strip():
        return ProviderKind.AI_SDK
    if ProviderKind.TERMINAL_CLI in kinds:
        return ProviderKind.TERMINAL_CLI
    if ProviderKind.AI_SDK in kinds:
        return ProviderKind.AI_SDK
    return kinds[0]
