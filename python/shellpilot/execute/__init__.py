"""Action execution for approved proposals.

Exports:
- ActionExecutor: dispatches an approved GateResult
- CommandRunner / CommandResult / OutputSink: shell commands
- FileWriter / FileWriteResult: diff preview and atomic writes
"""

from shellpilot.execute.executor import ActionExecutor
from shellpilot.execute.files import FileWriter, FileWriteResult, render_diff
from shellpilot.execute.runner import CommandResult, CommandRunner, OutputSink

__all__ = [
    "ActionExecutor",
    "CommandRunner",
    "CommandResult",
    "OutputSink",
    "FileWriter",
    "FileWriteResult",
    "render_diff",
]
