"""Dispatches approved gate results to the command runner or file writer."""

import asyncio
from pathlib import Path

from shellpilot.execute.files import FileWriter, FileWriteResult
from shellpilot.execute.runner import CommandResult, CommandRunner, OutputSink
from shellpilot.intent import CommandProposal
from shellpilot.logging import get_logger
from shellpilot.safety.states import GateResult, GateState

logger = get_logger(__name__)


class ActionExecutor:
    """Runs what the gate approved and reports the outcome truthfully.

    Owns the child process for its whole lifetime; nothing else signals it.
    """

    def __init__(self, runner: CommandRunner, writer: FileWriter):
        self._runner = runner
        self._writer = writer

    async def execute(
        self,
        gate_result: GateResult,
        sink: OutputSink,
        cancel: asyncio.Event | None = None,
        cwd: Path | None = None,
    ) -> CommandResult | FileWriteResult:
        """Execute an APPROVED gate result.

        Appends EXECUTED (or CANCELLED when a command was interrupted) to the
        result's trail.

        Raises:
            ValueError: If the gate result is not APPROVED.
            WriteFailedError: If the file write fails.
        """
        if not gate_result.approved:
            raise ValueError(f"Cannot execute gate result in state {gate_result.state.value}")

        intent = gate_result.intent
        if isinstance(intent, CommandProposal):
            result = await self._runner.run(intent.command, sink, cancel=cancel, cwd=cwd)
            gate_result.advance(GateState.CANCELLED if result.cancelled else GateState.EXECUTED)
            return result

        if gate_result.preview is None:
            raise ValueError("Approved file write has no preview")
        file_result = await asyncio.to_thread(self._writer.write, gate_result.preview)
        gate_result.advance(GateState.EXECUTED)
        return file_result
