"""
Adapters that answer a chat turn by running a local agent CLI.

The command comes from the contact's `provider.extra` (command, args, cwd,
env, timeoutMs, stdin, parse), falling back to per-kind defaults. Every
"{prompt}" in args is replaced by the prompt text; without a placeholder the
prompt is appended as the last argument unless it is sent on stdin.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional

from birdhouse.config import DEFAULT_CLI_TIMEOUT_MS, AppSettings
from birdhouse.errors import ProviderConfigError
from birdhouse.process.normalize import ParseMode, normalize_cli_output
from birdhouse.process.runner import CliCommand, resolve_timeout_ms, run_cli_command
from birdhouse.protocol import (
    MessageEndEvent,
    MessageStartEvent,
    ProviderCapability,
    ProviderKind,
    StreamEvent,
    TokenEvent,
    TypingEvent,
)
from birdhouse.providers.base import ProviderAdapter, ProviderSendInput, build_prompt, new_id, utc_now

logger = logging.getLogger(__name__)

PROMPT_PLACEHOLDER = "{prompt}"


@dataclass
class CliExtra:
    command: Optional[str] = None
    args: Optional[list[str]] = None
    cwd: Optional[str] = None
    env: dict[str, str] = field(default_factory=dict)
    timeout_ms: Optional[int] = None
    stdin: bool = False
    parse: Optional[ParseMode] = None


def parse_cli_extra(extra: dict[str, Any]) -> CliExtra:
    """Pick the CLI settings out of a contact's extra bag, ignoring bad types."""
    parsed = CliExtra()

    command = extra.get("command")
    if isinstance(command, str) and command.strip():
        parsed.command = command.strip()

    args = extra.get("args")
    if isinstance(args, list) and all(isinstance(a, str) for a in args):
        parsed.args = list(args)

    cwd = extra.get("cwd")
    if isinstance(cwd, str) and cwd.strip():
        parsed.cwd = cwd.strip()

    if "timeoutMs" in extra:
        parsed.timeout_ms = resolve_timeout_ms(extra["timeoutMs"])

    if isinstance(extra.get("stdin"), bool):
        parsed.stdin = extra["stdin"]

    if extra.get("parse") in ("text", "json"):
        parsed.parse = extra["parse"]

    env = extra.get("env")
    if isinstance(env, dict):
        parsed.env = {k: v for k, v in env.items() if isinstance(k, str) and isinstance(v, str)}

    return parsed


def apply_prompt_to_args(args: list[str], prompt: str, append_if_missing: bool) -> list[str]:
    has_placeholder = False
    resolved = []
    for arg in args:
        if PROMPT_PLACEHOLDER in arg:
            has_placeholder = True
            arg = arg.replace(PROMPT_PLACEHOLDER, prompt)
        resolved.append(arg)

    if append_if_missing and not has_placeholder:
        resolved.append(prompt)
    return resolved


def chunk_text(text: str) -> list[str]:
    """One chunk per non-empty line; every chunk but the last keeps its newline."""
    trimmed = text.strip()
    if not trimmed:
        return []
    lines = [line for line in trimmed.replace("\r\n", "\n").split("\n") if line]
    if len(lines) <= 1:
        return [trimmed]
    return [line + "\n" for line in lines[:-1]] + [lines[-1]]


class CliWrappedAdapter(ProviderAdapter):
    def __init__(
        self,
        kind: ProviderKind,
        default_command: Optional[str],
        default_args: list[str],
        default_parse: ParseMode = "text",
        supports_async: bool = False,
    ):
        self.kind = kind
        self.default_command = default_command
        self.default_args = list(default_args)
        self.default_parse = default_parse
        self.capability = ProviderCapability(
            kind=kind,
            supports_streaming=True,
            supports_attachments=False,
            supports_async=supports_async,
        )

    def resolve_command(self, input: ProviderSendInput) -> CliCommand:
        extra = parse_cli_extra(input.contact.provider.extra)
        command = extra.command or self.default_command
        if not command:
            raise ProviderConfigError(
                f'{self.kind.value} requires provider.extra.command. '
                f'Example: {{"command":"nanoclaw","args":["{{prompt}}"]}}'
            )

        prompt = build_prompt(input.message)
        args = apply_prompt_to_args(
            extra.args if extra.args is not None else self.default_args,
            prompt,
            append_if_missing=not extra.stdin,
        )
        return CliCommand(
            command=command,
            args=args,
            cwd=extra.cwd,
            env=extra.env,
            timeout_ms=extra.timeout_ms or DEFAULT_CLI_TIMEOUT_MS,
            stdin_text=prompt if extra.stdin else None,
            parse=extra.parse or self.default_parse,
        )

    async def send_message_stream(self, input: ProviderSendInput) -> AsyncIterator[StreamEvent]:
        message_id = new_id()
        yield MessageStartEvent(message_id=message_id, thread_id=input.thread_id, created_at=utc_now())
        yield TypingEvent(is_typing=True)

        command = self.resolve_command(input)
        result = await run_cli_command(command)
        if not result.ok:
            logger.warning("%s exited with code %d", command.command, result.exit_code)
        result.raise_for_exit()

        text = normalize_cli_output(result.stdout, result.stderr, command.parse)
        for chunk in chunk_text(text):
            yield TokenEvent(text=chunk)

        yield TypingEvent(is_typing=False)
        yield MessageEndEvent(message_id=message_id, text=text, status="received", created_at=utc_now())


def terminal_cli_adapter(settings: AppSettings) -> CliWrappedAdapter:
    return CliWrappedAdapter(
        ProviderKind.TERMINAL_CLI,
        settings.terminal_cli_command,
        settings.terminal_cli_default_args() or ["exec", PROMPT_PLACEHOLDER],
    )


def claude_code_cli_adapter(settings: AppSettings) -> CliWrappedAdapter:
    return CliWrappedAdapter(ProviderKind.CLAUDE_CODE_CLI, settings.claude_code_command, ["-p", PROMPT_PLACEHOLDER])


def openclaw_cli_adapter(settings: AppSettings) -> CliWrappedAdapter:
    return CliWrappedAdapter(
        ProviderKind.OPENCLAW_CLI,
        settings.openclaw_command,
        ["--no-color", "agent", "--message", PROMPT_PLACEHOLDER],
    )


def nanoclaw_cli_adapter(settings: AppSettings) -> CliWrappedAdapter:
    return CliWrappedAdapter(ProviderKind.NANOCLAW_CLI, settings.nanoclaw_command, [PROMPT_PLACEHOLDER])
