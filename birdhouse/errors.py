"""
Error taxonomy. Everything raised on purpose by birdhouse derives from
BirdhouseError; a failure is scoped to the single stream that raised it.
"""
from __future__ import annotations


class BirdhouseError(Exception):
    """Base class for all birdhouse errors."""


class ProviderError(BirdhouseError):
    """A provider adapter failed while producing a turn."""


class UnregisteredProviderError(ProviderError):
    def __init__(self, kind: str):
        super().__init__(f"No provider adapter registered for kind: {kind}")
        self.kind = kind


class ProviderConfigError(ProviderError):
    """The contact does not carry enough configuration to run the provider."""


class CliError(ProviderError):
    """A wrapped command could not produce an answer."""


class CliSpawnError(CliError):
    """The command could not be started (missing executable, bad cwd...)."""


class CliTimeoutError(CliError):
    def __init__(self, command: str, timeout_ms: int):
        super().__init__(f"{command} timed out after {timeout_ms}ms")
        self.command = command
        self.timeout_ms = timeout_ms


class CliExitError(CliError):
    def __init__(self, message: str, exit_code: int):
        super().__init__(message)
        self.exit_code = exit_code


class RemoteProviderError(ProviderError):
    """Non-success HTTP response; the body text is kept verbatim."""

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class PushDeliveryError(BirdhouseError):
    def __init__(self, status_code: int, body: str):
        super().__init__(f"Expo push failed ({status_code}): {body}")
        self.status_code = status_code
        self.body = body
