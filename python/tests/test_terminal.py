"""Tests for the rich terminal renderer."""

import io
import sys
from pathlib import Path

import pytest
from rich.console import Console

from shellpilot.errors import (
    CommandBlockedError,
    InvalidApiKeyError,
    NoProvidersError,
    ProviderUnavailableError,
    RateLimitedError,
)
from shellpilot.execute import render_diff
from shellpilot.intent import CommandProposal
from shellpilot.safety import FilePreview
from shellpilot.terminal import RichTerminal, remediation_hint


def make_terminal(input_text: str = "", **kwargs) -> tuple[RichTerminal, io.StringIO]:
    out = io.StringIO()
    console = Console(file=out, width=100, color_system=None, force_terminal=False)
    return RichTerminal(console, input_stream=io.StringIO(input_text), **kwargs), out


class TestRendering:
    """What the user sees."""

    def test_streamed_text_verbatim(self):
        terminal, out = make_terminal()
        terminal.stream_text("Hello [bold]")
        terminal.stream_text("world")
        terminal.end_stream()
        assert out.getvalue() == "Hello [bold]world\n"

    def test_command_panel(self):
        terminal, out = make_terminal()
        terminal.show_command(CommandProposal(command="ls -la"))
        assert "Proposed command" in out.getvalue()
        assert "ls -la" in out.getvalue()

    def test_file_preview(self):
        terminal, out = make_terminal()
        diff = render_diff("", "x = 1\n", "app.py", is_new_file=True)
        terminal.show_file_preview(
            FilePreview(path=Path("app.py"), old_content="", new_content="x = 1\n", is_new_file=True, diff=diff)
        )
        assert "New file app.py" in out.getvalue()
        assert "+x = 1" in out.getvalue()

    def test_rejection_names_pattern(self):
        terminal, out = make_terminal()
        terminal.show_rejection(CommandBlockedError("rm -rf /"))
        assert "Blocked" in out.getvalue()
        assert "rm -rf /" in out.getvalue()

    def test_error_box_with_hint(self):
        terminal, out = make_terminal()
        terminal.show_error(RateLimitedError("openai", 20))
        text = out.getvalue()
        assert "Provider error" in text
        assert "Wait 20 seconds" in text

    def test_command_output(self):
        terminal, out = make_terminal()
        terminal.write("stdout", "line one\n")
        terminal.write("stderr", "warn\n")
        assert out.getvalue() == "line one\nwarn\n"


class TestRemediationHint:
    """One-line next steps."""

    @pytest.mark.parametrize(
        "error,fragment",
        [
            (InvalidApiKeyError("anthropic"), "API key configured for anthropic"),
            (ProviderUnavailableError("ollama", "x"), "Retry later"),
            (NoProvidersError(), "OPENAI_API_KEY"),
        ],
    )
    def test_hints(self, error, fragment):
        assert fragment in remediation_hint(error)

    def test_no_hint_for_policy_errors(self):
        assert remediation_hint(CommandBlockedError("mkfs")) is None


class TestInput:
    """Prompts read from the input stream."""

    def test_ask(self):
        terminal, out = make_terminal("y\n")
        assert terminal.ask("Run this? [y/n/e]") == "y"
        assert "Run this? [y/n/e]" in out.getvalue()

    def test_ask_eof_is_blank(self):
        terminal, _ = make_terminal("")
        assert terminal.ask("Run this? [y/n/e]") == ""

    def test_inline_command_edit(self):
        terminal, _ = make_terminal("ls -l src\n")
        assert terminal.edit_text("ls") == "ls -l src"

    def test_inline_edit_eof_keeps_text(self):
        terminal, _ = make_terminal("")
        assert terminal.edit_text("ls") == "ls"


class TestEditor:
    """File content is edited in an external editor."""

    def _editor_script(self, tmp_path, body: str) -> str:
        script = tmp_path / "fake_editor.py"
        script.write_text(body)
        return f"{sys.executable} {script}"

    def test_editor_result_returned_and_temp_removed(self, tmp_path):
        editor = self._editor_script(
            tmp_path,
            "import sys, pathlib\n"
            "p = pathlib.Path(sys.argv[1])\n"
            "pathlib.Path(sys.argv[0]).with_name('seen.txt').write_text(str(p))\n"
            "p.write_text(p.read_text() + 'edited\\n')\n",
        )
        terminal, _ = make_terminal(editor=editor)
        assert terminal.edit_text("original\n", filename="notes.txt") == "original\nedited\n"

        temp_file = Path((tmp_path / "seen.txt").read_text())
        assert temp_file.suffix == ".txt"
        assert not temp_file.exists()

    def test_editor_failure_aborts(self, tmp_path):
        editor = self._editor_script(tmp_path, "import sys\nsys.exit(1)\n")
        terminal, out = make_terminal(editor=editor)
        assert terminal.edit_text("original\n", filename="notes.txt") is None
        assert "edit discarded" in out.getvalue()

    def test_editor_from_environment(self, tmp_path, monkeypatch):
        editor = self._editor_script(
            tmp_path, "import sys, pathlib\npathlib.Path(sys.argv[1]).write_text('from env\\n')\n"
        )
        monkeypatch.setenv("VISUAL", editor)
        terminal, _ = make_terminal()
        assert terminal.edit_text("x", filename="a.md") == "from env\n"
