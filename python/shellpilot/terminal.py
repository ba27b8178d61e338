"""Rich terminal renderer.

Implements everything the session and the safety gate need from a terminal:
- streams response text as it arrives
- shows proposed commands, diff previews, rejections and provider error boxes
- reads confirmation input
- edits commands inline and file content in $VISUAL / $EDITOR
- receives command output as an OutputSink

The editor temp file is always removed, whether the edit succeeds or not.
"""

import os
import shlex
import subprocess
import tempfile
from pathlib import Path
from typing import IO

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.syntax import Syntax
from rich.text import Text

from shellpilot.errors import (
    ConfigError,
    InvalidApiKeyError,
    NoProvidersError,
    ProviderError,
    ProviderNetworkError,
    ProviderUnavailableError,
    RateLimitedError,
    ShellpilotError,
    StreamParseError,
)
from shellpilot.intent import CommandProposal
from shellpilot.safety.states import FilePreview

DEFAULT_EDITOR = "vi"


def remediation_hint(error: ShellpilotError) -> str | None:
    """One line telling the user what to do next, if there is anything."""
    if isinstance(error, InvalidApiKeyError):
        return f"Check the API key configured for {error.provider}, or switch providers."
    if isinstance(error, RateLimitedError):
        return f"Wait {error.retry_after_s} seconds and retry, or switch providers."
    if isinstance(error, ProviderNetworkError):
        return "Check your network connection and retry."
    if isinstance(error, StreamParseError):
        return "The provider sent a response that could not be read. Retry or switch providers."
    if isinstance(error, ProviderUnavailableError):
        return "Retry later or switch providers."
    if isinstance(error, NoProvidersError):
        return "Set OPENAI_API_KEY or ANTHROPIC_API_KEY, or start Ollama."
    if isinstance(error, ConfigError):
        return "Fix the configuration value named above."
    return None


class RichTerminal:
    """Terminal UI on a rich Console."""

    def __init__(
        self,
        console: Console | None = None,
        *,
        input_stream: IO[str] | None = None,
        editor: str | None = None,
    ):
        """Initialize terminal.

        Args:
            console: Console to render on (defaults to stdout).
            input_stream: Read prompts from this stream instead of stdin.
            editor: Editor command for file content (defaults to $VISUAL, $EDITOR, then vi).
        """
        self._console = console or Console()
        self._input_stream = input_stream
        self._editor = editor

    @property
    def console(self) -> Console:
        return self._console

    # -- streaming ----------------------------------------------------------

    def stream_text(self, text: str) -> None:
        self._console.print(text, end="", markup=False, highlight=False, soft_wrap=True)

    def end_stream(self) -> None:
        self._console.print()

    def write(self, stream: str, text: str) -> None:
        """OutputSink: command output, stderr in red."""
        style = "red" if stream == "stderr" else None
        self._console.print(Text(text, style=style or ""), end="", soft_wrap=True)

    # -- rendering ----------------------------------------------------------

    def show_command(self, proposal: CommandProposal) -> None:
        self._console.print(
            Panel(
                Syntax(proposal.command, "bash", word_wrap=True),
                title="Proposed command",
                border_style="yellow",
            )
        )

    def show_file_preview(self, preview: FilePreview) -> None:
        title = f"New file {preview.path}" if preview.is_new_file else f"Changes to {preview.path}"
        self._console.print(Panel(Syntax(preview.diff, "diff", word_wrap=True), title=title, border_style="cyan"))

    def show_rejection(self, error: ShellpilotError) -> None:
        self._console.print(Panel(Text(error.message), title="Blocked", border_style="red"))

    def show_notice(self, message: str) -> None:
        self._console.print(Text(message, style="dim"))

    def show_error(self, error: ShellpilotError) -> None:
        """Error box with a remediation hint."""
        body = Text(error.message)
        hint = remediation_hint(error)
        if hint:
            body.append("\n")
            body.append(hint, style="bold")
        title = "Provider error" if isinstance(error, ProviderError) else "Error"
        self._console.print(Panel(body, title=title, border_style="red"))

    # -- input --------------------------------------------------------------

    def ask(self, prompt: str) -> str | None:
        """Read one answer. EOF returns None."""
        try:
            return Prompt.ask(
                Text(prompt),
                console=self._console,
                default="",
                show_default=False,
                stream=self._input_stream,
            )
        except EOFError:
            return None

    def edit_text(self, text: str, *, filename: str | None = None) -> str | None:
        """Revise a command inline, or file content in an external editor.

        Returns:
            The revised text, or None if the edit was aborted.
        """
        if filename is None:
            return self.ask_inline("Edit command", text)
        return self._edit_in_editor(text, filename)

    def ask_inline(self, prompt: str, default: str) -> str | None:
        try:
            return Prompt.ask(Text(prompt), console=self._console, default=default, stream=self._input_stream)
        except EOFError:
            return None

    def _edit_in_editor(self, text: str, filename: str) -> str | None:
        editor = self._editor or os.environ.get("VISUAL") or os.environ.get("EDITOR") or DEFAULT_EDITOR
        fd, tmp_name = tempfile.mkstemp(prefix="shellpilot-", suffix=Path(filename).suffix)
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            completed = subprocess.run([*shlex.split(editor), str(tmp_path)], check=False)
            if completed.returncode != 0:
                self.show_notice(f"Editor exited with status {completed.returncode}; edit discarded")
                return None
            return tmp_path.read_text(encoding="utf-8")
        finally:
            tmp_path.unlink(missing_ok=True)
