"""
Configuration system - reads environment variables and .env
"""
from __future__ import annotations

import json
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings

DEFAULT_PORT = 8787
DEFAULT_CLI_TIMEOUT_MS = 180_000
DEFAULT_EXPO_PUSH_URL = "https://exp.host/--/api/v2/push/send"


class AppSettings(BaseSettings):
    host: str = "0.0.0.0"
    port: int = Field(default=DEFAULT_PORT, validation_alias=AliasChoices("PORT", "BIRDHOUSE_PORT"))
    log_level: str = "INFO"
    cors_origins: str = "*"
    api_key: str = Field(default="", validation_alias=AliasChoices("BIRDHOUSE_API_KEY", "API_KEY"))

    # Provider registry mode
    default_provider: Optional[str] = None
    openai_api_key: str = Field(default="", validation_alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4.1-mini", validation_alias="OPENAI_MODEL")
    terminal_cli_command: str = Field(
        default="codex",
        validation_alias=AliasChoices("BIRDHOUSE_TERMINAL_CLI_COMMAND", "BIRDHOUSE_CODEX_COMMAND"),
    )
    terminal_cli_args: Optional[str] = None  # JSON string array
    claude_code_command: str = "claude"
    openclaw_command: str = "openclaw"
    nanoclaw_command: Optional[str] = None

    # Wrapped-command mode
    server_port: int = 0
    # Raw env values, interpreted by WrappedCommandConfig.from_argv
    server_timeout_ms: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("BIRDHOUSE_SERVER_TIMEOUT_MS", "BIRDHOUSE_WRAPPED_TIMEOUT_MS"),
    )
    server_stdin: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("BIRDHOUSE_SERVER_STDIN", "BIRDHOUSE_WRAPPED_STDIN"),
    )
    server_parse: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("BIRDHOUSE_SERVER_PARSE", "BIRDHOUSE_WRAPPED_PARSE"),
    )

    expo_push_url: str = DEFAULT_EXPO_PUSH_URL

    model_config = {"env_prefix": "BIRDHOUSE_", "env_file": ".env", "extra": "ignore", "populate_by_name": True}

    def terminal_cli_default_args(self) -> Optional[list[str]]:
        """Parse BIRDHOUSE_TERMINAL_CLI_ARGS; malformed input yields None."""
        if not self.terminal_cli_args or not self.terminal_cli_args.strip():
            return None
        try:
            parsed = json.loads(self.terminal_cli_args)
        except json.JSONDecodeError:
            return None
        if isinstance(parsed, list) and all(isinstance(item, str) for item in parsed):
            return parsed
        return None

    def resolve_cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()] or ["*"]


# ── Singleton loader ──────────────────────────────────────────────────────────

_settings: Optional[AppSettings] = None


def get_settings() -> AppSettings:
    global _settings
    if _settings is None:
        _settings = AppSettings()
    return _settings
