"""
Wrapped-command mode: one server instance bound to one local executable.

    birdhouse-server -- claude
    birdhouse-server -- openclaw --no-color agent

The registry is bypassed; every contact is answered by the bound command.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

from birdhouse.config import AppSettings
from birdhouse.process.normalize import ParseMode
from birdhouse.process.runner import CliCommand, resolve_timeout_ms
from birdhouse.protocol import ProviderKind
from birdhouse.providers.base import ProviderSendInput, build_prompt
from birdhouse.providers.cli_wrapped import PROMPT_PLACEHOLDER, CliWrappedAdapter, apply_prompt_to_args


def infer_wrapped_kind(command: str) -> ProviderKind:
    normalized = command.lower()
    if "claude" in normalized:
        return ProviderKind.CLAUDE_CODE_CLI
    if "openclaw" in normalized:
        return ProviderKind.OPENCLAW_CLI
    if "nano" in normalized:
        return ProviderKind.NANOCLAW_CLI
    return ProviderKind.TERMINAL_CLI


def is_codex_command(command: str) -> bool:
    leaf = re.split(r"[\\/]", command)[-1].lower()
    return leaf == "codex" or leaf.startswith("codex.")


@dataclass
class WrappedCommandConfig:
    command: str
    base_args: list[str] = field(default_factory=list)
    timeout_ms: int = 180_000
    stdin: bool = False
    parse: ParseMode = "text"

    @property
    def inferred_kind(self) -> ProviderKind:
        return infer_wrapped_kind(self.command)

    @classmethod
    def from_argv(cls, argv: list[str], settings: AppSettings) -> "WrappedCommandConfig":
        command, *base_args = argv
        if not base_args and is_codex_command(command):
            # Bare codex wants an interactive TTY
            base_args = ["exec", PROMPT_PLACEHOLDER]
        return cls(
            command=command,
            base_args=base_args,
            timeout_ms=resolve_timeout_ms(_as_number(settings.server_timeout_ms)),
            stdin=(settings.server_stdin or "").strip() == "1",
            parse="json" if (settings.server_parse or "").strip() == "json" else "text",
        )


def _as_number(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class WrappedCommandAdapter(CliWrappedAdapter):
    def __init__(self, config: WrappedCommandConfig):
        super().__init__(
            config.inferred_kind,
            config.command,
            config.base_args,
            default_parse=config.parse,
            supports_async=True,
        )
        self.config = config

    def resolve_command(self, input: ProviderSendInput) -> CliCommand:
        prompt = build_prompt(input.message)
        return CliCommand(
            command=self.config.command,
            args=apply_prompt_to_args(self.config.base_args, prompt, append_if_missing=not self.config.stdin),
            timeout_ms=self.config.timeout_ms,
            stdin_text=prompt if self.config.stdin else None,
            parse=self.config.parse,
        )
