"""
Run an external command with a timeout and collect its output.

Each run is a small state machine:

    CREATED -> RUNNING -> TIMED_OUT | ERRORED | EXITED | CANCELLED

Completion goes through a single future, so whichever of timeout, spawn
failure or process exit happens first decides the outcome; later signals
are ignored.
"""
from __future__ import annotations

import asyncio
import codecs
import contextlib
import logging
import math
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from birdhouse.config import DEFAULT_CLI_TIMEOUT_MS
from birdhouse.errors import CliExitError, CliSpawnError, CliTimeoutError

logger = logging.getLogger(__name__)

_READ_CHUNK = 4096
_REAP_TIMEOUT_S = 2.0


def resolve_timeout_ms(value: Any, default: int = DEFAULT_CLI_TIMEOUT_MS) -> int:
    """Floor a configured timeout to a positive integer, else use the default."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if not math.isfinite(value) or value <= 0:
        return default
    return max(1, math.floor(value))


@dataclass
class CliCommand:
    command: str
    args: list[str] = field(default_factory=list)
    cwd: Optional[str] = None
    env: dict[str, str] = field(default_factory=dict)
    timeout_ms: int = DEFAULT_CLI_TIMEOUT_MS
    stdin_text: Optional[str] = None
    parse: str = "text"


@dataclass
class CliResult:
    stdout: str
    stderr: str
    exit_code: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def failure_message(self) -> str:
        """stderr, then stdout, then a generic exit code message."""
        return self.stderr.strip() or self.stdout.strip() or f"exit code {self.exit_code}"

    def raise_for_exit(self) -> None:
        if not self.ok:
            raise CliExitError(self.failure_message(), self.exit_code)


class ProcessState(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    TIMED_OUT = "timed_out"
    ERRORED = "errored"
    EXITED = "exited"
    CANCELLED = "cancelled"


class CliProcess:
    def __init__(self, command: CliCommand):
        self.command = command
        self.state = ProcessState.CREATED
        self._proc: Optional[asyncio.subprocess.Process] = None
        self._done: Optional[asyncio.Future] = None
        self._stdout: list[str] = []
        self._stderr: list[str] = []

    @property
    def stdout(self) -> str:
        return "".join(self._stdout)

    @property
    def stderr(self) -> str:
        return "".join(self._stderr)

    def _settle(self, state: ProcessState, result: Optional[CliResult] = None,
                error: Optional[BaseException] = None) -> bool:
        if self._done is None or self._done.done():
            return False
        self.state = state
        if error is not None:
            self._done.set_exception(error)
        else:
            self._done.set_result(result)
        return True

    async def run(self) -> CliResult:
        loop = asyncio.get_running_loop()
        self._done = loop.create_future()
        cmd = self.command

        try:
            self._proc = await asyncio.create_subprocess_exec(
                cmd.command,
                *cmd.args,
                cwd=cmd.cwd,
                env={**os.environ, **cmd.env},
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            self._settle(ProcessState.ERRORED, error=CliSpawnError(f"Failed to start {cmd.command}: {e}"))
            return await self._done

        self.state = ProcessState.RUNNING
        timer = loop.call_later(cmd.timeout_ms / 1000, self._on_timeout)
        collector = asyncio.ensure_future(self._collect(self._proc))
        collector.add_done_callback(self._on_collected)

        try:
            return await self._done
        finally:
            timer.cancel()
            if not collector.done():
                collector.cancel()
            if self.state is ProcessState.RUNNING:
                # Caller went away (e.g. client disconnect)
                self.state = ProcessState.CANCELLED
                logger.info("Command %s cancelled", cmd.command)
            await self._reap()

    @property
    def returncode(self) -> Optional[int]:
        return self._proc.returncode if self._proc is not None else None

    def _terminate(self) -> None:
        if self._proc is not None and self._proc.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                self._proc.terminate()

    async def _reap(self) -> None:
        """Terminate the child if still alive and wait for it, killing it if it lingers."""
        proc = self._proc
        if proc is None or proc.returncode is not None:
            return
        self._terminate()
        try:
            await asyncio.wait_for(proc.wait(), timeout=_REAP_TIMEOUT_S)
        except asyncio.TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()

    def _on_timeout(self) -> None:
        error = CliTimeoutError(self.command.command, self.command.timeout_ms)
        if self._settle(ProcessState.TIMED_OUT, error=error):
            logger.warning("Command %s timed out after %dms", self.command.command, self.command.timeout_ms)
            self._terminate()

    def _on_collected(self, task: asyncio.Future) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._settle(ProcessState.ERRORED, error=exc)
            return
        self._settle(ProcessState.EXITED, result=CliResult(self.stdout, self.stderr, task.result()))

    async def _collect(self, proc: asyncio.subprocess.Process) -> int:
        assert proc.stdin is not None and proc.stdout is not None and proc.stderr is not None
        if self.command.stdin_text:
            proc.stdin.write(self.command.stdin_text.encode("utf-8"))
            with contextlib.suppress(BrokenPipeError, ConnectionResetError):
                await proc.stdin.drain()
        proc.stdin.close()

        await asyncio.gather(
            self._pump(proc.stdout, self._stdout),
            self._pump(proc.stderr, self._stderr),
        )
        code = await proc.wait()
        return code if code is not None else 0

    @staticmethod
    async def _pump(stream: asyncio.StreamReader, sink: list[str]) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            chunk = await stream.read(_READ_CHUNK)
            if not chunk:
                break
            sink.append(decoder.decode(chunk))
        sink.append(decoder.decode(b"", final=True))


async def run_cli_command(command: CliCommand) -> CliResult:
    """Run `command` and return its output whatever the exit code.

    Raises CliSpawnError when the command cannot start and CliTimeoutError
    when it outlives `command.timeout_ms`.
    """
    logger.debug("Running %s %s", command.command, command.args)
    return await CliProcess(command).run()
