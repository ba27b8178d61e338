"""Shell command runner.

Runs one approved command at a time:
- Executes through the user's $SHELL (fallback /bin/sh) with inherited
  environment and working directory
- Child runs in its own session/process group so the whole pipeline can be
  signalled at once
- stdout and stderr are read concurrently in 4 KiB reads, decoded
  incrementally, and written to the sink as they arrive
- Only the tail of each stream is kept for the result

Cancellation:
- If the cancel event fires, the process group gets SIGINT, then SIGTERM,
  then SIGKILL, waiting stop_grace_s between steps; the result is cancelled=True
- If the awaiting task is cancelled, the child is stopped the same way and
  CancelledError propagates

A non-zero exit code is data, not an exception. Callers that want one use
CommandResult.raise_for_exit().
"""

import asyncio
import codecs
import os
import signal
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from shellpilot.errors import CommandCancelledError, NonZeroExitError
from shellpilot.logging import get_logger
from shellpilot.redact import hash_text, safe_kv

logger = get_logger(__name__)

READ_SIZE = 4096
DEFAULT_TAIL_CHARS = 4000
DEFAULT_STOP_GRACE_S = 2.0
FALLBACK_SHELL = "/bin/sh"

_STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGKILL)


class OutputSink(Protocol):
    def write(self, stream: str, text: str) -> None:
        """Receive decoded output. stream is "stdout" or "stderr"."""
        ...


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one command.

    Attributes:
        exit_code: Process return code (negative signal number if killed by a
            signal, None if it could not be collected)
        stdout_tail: Last tail_chars characters of stdout
        stderr_tail: Last tail_chars characters of stderr
        cancelled: True if the run was stopped by the cancel event
    """

    exit_code: int | None
    stdout_tail: str
    stderr_tail: str
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        return not self.cancelled and self.exit_code == 0

    def raise_for_exit(self) -> None:
        """Raise if the command was cancelled or exited non-zero."""
        if self.cancelled:
            raise CommandCancelledError()
        if self.exit_code != 0:
            raise NonZeroExitError(self.exit_code if self.exit_code is not None else -1)


class _Tail:
    """Keeps the last max_chars characters written to it."""

    def __init__(self, max_chars: int):
        self._max_chars = max_chars
        self._text = ""

    def append(self, text: str) -> None:
        self._text = (self._text + text)[-self._max_chars :]

    @property
    def text(self) -> str:
        return self._text


class CommandRunner:
    """Runs approved commands in the user's shell."""

    def __init__(
        self,
        *,
        shell: str | None = None,
        tail_chars: int = DEFAULT_TAIL_CHARS,
        stop_grace_s: float = DEFAULT_STOP_GRACE_S,
    ):
        """Initialize runner.

        Args:
            shell: Shell executable; defaults to $SHELL, then /bin/sh.
            tail_chars: Characters of each stream kept in the result.
            stop_grace_s: Wait between escalating stop signals.
        """
        self._shell = shell
        self._tail_chars = tail_chars
        self._stop_grace_s = stop_grace_s

    @property
    def shell(self) -> str:
        return self._shell or os.environ.get("SHELL") or FALLBACK_SHELL

    async def run(
        self,
        command: str,
        sink: OutputSink,
        cancel: asyncio.Event | None = None,
        cwd: Path | None = None,
    ) -> CommandResult:
        """Run one command to completion or cancellation.

        Args:
            command: Command text passed to the shell's -c.
            sink: Receives output incrementally.
            cancel: Optional event; when set the process group is stopped.
            cwd: Working directory (defaults to the current one).

        Returns:
            CommandResult with exit code and output tails.
        """
        logger.info(
            "executor.command.started",
            **safe_kv(command_chars=len(command), command_sha256=hash_text(command)),
        )
        start = time.monotonic()

        proc = await asyncio.create_subprocess_shell(
            command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd) if cwd is not None else None,
            executable=self.shell,
            start_new_session=True,
        )

        stdout_tail = _Tail(self._tail_chars)
        stderr_tail = _Tail(self._tail_chars)
        completion = asyncio.ensure_future(
            self._drain_and_wait(proc, sink, stdout_tail, stderr_tail)
        )
        cancel_wait = asyncio.ensure_future(cancel.wait()) if cancel is not None else None
        cancelled = False

        try:
            waiters = {completion} if cancel_wait is None else {completion, cancel_wait}
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)

            if completion.done():
                completion.result()
            else:
                cancelled = True
                logger.info("executor.command.cancelling")
                await self._stop(proc)
                await self._settle(completion)
        except asyncio.CancelledError:
            await self._stop(proc)
            completion.cancel()
            raise
        finally:
            if cancel_wait is not None:
                cancel_wait.cancel()

        result = CommandResult(
            exit_code=proc.returncode,
            stdout_tail=stdout_tail.text,
            stderr_tail=stderr_tail.text,
            cancelled=cancelled,
        )
        logger.info(
            "executor.command.finished",
            **safe_kv(
                exit_code=result.exit_code,
                cancelled=cancelled,
                duration_ms=int((time.monotonic() - start) * 1000),
            ),
        )
        return result

    async def _drain_and_wait(
        self,
        proc: asyncio.subprocess.Process,
        sink: OutputSink,
        stdout_tail: _Tail,
        stderr_tail: _Tail,
    ) -> None:
        await asyncio.gather(
            self._pump(proc.stdout, "stdout", sink, stdout_tail),
            self._pump(proc.stderr, "stderr", sink, stderr_tail),
        )
        await proc.wait()

    @staticmethod
    async def _pump(reader: asyncio.StreamReader, name: str, sink: OutputSink, tail: _Tail) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            data = await reader.read(READ_SIZE)
            if not data:
                break
            text = decoder.decode(data)
            if text:
                sink.write(name, text)
                tail.append(text)
        text = decoder.decode(b"", final=True)
        if text:
            sink.write(name, text)
            tail.append(text)

    async def _settle(self, completion: asyncio.Future) -> None:
        """Give the output pumps a bounded window to hit EOF after a stop."""
        done, _ = await asyncio.wait({completion}, timeout=self._stop_grace_s)
        if not done:
            completion.cancel()
            logger.warning("executor.command.output_abandoned")

    async def _stop(self, proc: asyncio.subprocess.Process) -> None:
        """Escalate SIGINT → SIGTERM → SIGKILL on the process group."""
        for sig in _STOP_SIGNALS:
            if proc.returncode is not None:
                return
            try:
                os.killpg(proc.pid, sig)
            except ProcessLookupError:
                return
            try:
                await asyncio.wait_for(proc.wait(), timeout=self._stop_grace_s)
                return
            except asyncio.TimeoutError:
                logger.info("executor.command.stop_escalated", **safe_kv(signal=sig.name))
