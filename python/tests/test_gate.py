"""Tests for the safety gate state machine.

Driven by a scripted UI: each test lists the answers the user gives and
checks the final state, the states visited, and what was shown.
"""

import pytest

from shellpilot.errors import CommandBlockedError, FileTooLargeError, OutOfScopeError
from shellpilot.execute import FileWriter
from shellpilot.intent import CommandProposal, FileWriteProposal
from shellpilot.safety import CommandPolicy, GateState, SafetyGate, ScopeResolver, parse_confirmation
from shellpilot.safety.confirm import CONFIRM_PROMPT, CONFIRM_WRITE_PROMPT, DecisionKind
from tests.helpers import ScriptedUI

S = GateState


@pytest.fixture
def project(tmp_path):
    root = tmp_path / "project"
    (root / ".git").mkdir(parents=True)
    return root.resolve()


def make_gate(ui, *, patterns=None, max_file_bytes=1024 * 1024):
    policy = CommandPolicy(patterns) if patterns is not None else CommandPolicy()
    return SafetyGate(policy, ScopeResolver(), FileWriter(max_file_bytes=max_file_bytes), ui)


class TestParseConfirmation:
    """Input normalization."""

    @pytest.mark.parametrize(
        "raw,kind",
        [
            ("y", DecisionKind.YES),
            (" YES ", DecisionKind.YES),
            ("e", DecisionKind.EDIT),
            ("Edit", DecisionKind.EDIT),
            ("n", DecisionKind.NO),
            ("", DecisionKind.NO),
            ("sure", DecisionKind.NO),
            (None, DecisionKind.NO),
        ],
    )
    def test_answers(self, raw, kind):
        assert parse_confirmation(raw) == kind


class TestCommandFlow:
    """Command proposals."""

    def test_blocked_rejected_without_prompt(self):
        """A blocked command is rejected with zero prompts shown."""
        ui = ScriptedUI()
        result = make_gate(ui, patterns=["rm -rf /"]).review(CommandProposal(command="rm -rf /"))

        assert result.state == S.REJECTED
        assert isinstance(result.error, CommandBlockedError)
        assert result.error.pattern == "rm -rf /"
        assert ui.prompts == []
        assert ui.commands == []
        assert result.trail == [S.PROPOSED, S.BLOCKED_PATTERN_CHECK, S.REJECTED]

    def test_yes_approves(self):
        ui = ScriptedUI(answers=["y"])
        result = make_gate(ui).review(CommandProposal(command="ls -la"))

        assert result.state == S.APPROVED
        assert result.approved
        assert ui.prompts == [CONFIRM_PROMPT]
        assert ui.commands == [CommandProposal(command="ls -la")]
        assert result.trail == [S.PROPOSED, S.BLOCKED_PATTERN_CHECK, S.AWAITING_CONFIRMATION, S.APPROVED]

    def test_no_denies(self):
        ui = ScriptedUI(answers=["n"])
        result = make_gate(ui).review(CommandProposal(command="ls"))
        assert result.state == S.CANCELLED
        assert result.reason == "denied"
        assert S.DENIED in result.trail

    @pytest.mark.parametrize("interrupt", [EOFError(), KeyboardInterrupt()])
    def test_eof_and_ctrl_c_deny(self, interrupt):
        ui = ScriptedUI(answers=[interrupt])
        result = make_gate(ui).review(CommandProposal(command="ls"))
        assert result.state == S.CANCELLED
        assert result.reason == "denied"

    def test_edit_then_approve(self):
        ui = ScriptedUI(answers=["e", "y"], edits=["ls -l src"])
        result = make_gate(ui).review(CommandProposal(command="ls", rationale="List"))

        assert result.state == S.APPROVED
        assert result.intent == CommandProposal(command="ls -l src", rationale="List")
        assert ui.edit_requests == [("ls", None)]
        assert result.trail == [
            S.PROPOSED,
            S.BLOCKED_PATTERN_CHECK,
            S.AWAITING_CONFIRMATION,
            S.EDITED,
            S.BLOCKED_PATTERN_CHECK,
            S.AWAITING_CONFIRMATION,
            S.APPROVED,
        ]

    def test_edit_into_blocked_command_rejected(self):
        """Edits are re-checked; confirmation never overrides the denylist."""
        ui = ScriptedUI(answers=["e"], edits=["rm -rf /"])
        result = make_gate(ui).review(CommandProposal(command="rm -rf build"))

        assert result.state == S.REJECTED
        assert result.error.pattern == "rm -rf /"
        assert len(ui.prompts) == 1
        assert ui.rejections == [result.error]

    @pytest.mark.parametrize("edit", [None, "", "   "])
    def test_aborted_edit_cancels(self, edit):
        ui = ScriptedUI(answers=["e"], edits=[edit])
        result = make_gate(ui).review(CommandProposal(command="ls"))
        assert result.state == S.CANCELLED
        assert result.reason == "edit aborted"

    def test_gate_logs_without_command_text(self, log_sink):
        ui = ScriptedUI()
        make_gate(ui).review(CommandProposal(command="rm -rf / # secret-marker"))
        rejected = [e for e in log_sink if e["event"] == "gate.rejected"]
        assert rejected[0]["error_code"] == "E_COMMAND_BLOCKED"
        assert rejected[0]["blocked_pattern"] == "rm -rf /"
        assert "secret-marker" not in str(log_sink)


class TestFileFlow:
    """File write proposals."""

    def test_new_file_preview_and_approve(self, project):
        ui = ScriptedUI(answers=["y"])
        proposal = FileWriteProposal(path=project / "src" / "app.py", new_content="x = 1\n", is_new_file=True)
        result = make_gate(ui).review(proposal, cwd=project)

        assert result.state == S.APPROVED
        assert ui.prompts == [CONFIRM_WRITE_PROMPT]
        preview = ui.previews[0]
        assert result.preview == preview
        assert preview.is_new_file
        assert "--- /dev/null" in preview.diff
        assert "+++ b/src/app.py" in preview.diff
        assert "+x = 1" in preview.diff
        assert result.trail == [S.PROPOSED, S.SCOPE_CHECK, S.AWAITING_CONFIRMATION, S.APPROVED]

    def test_out_of_scope_rejected_without_prompt(self, project, tmp_path):
        ui = ScriptedUI()
        proposal = FileWriteProposal(path=tmp_path / "elsewhere.txt", new_content="x", is_new_file=True)
        result = make_gate(ui).review(proposal, cwd=project)

        assert result.state == S.REJECTED
        assert isinstance(result.error, OutOfScopeError)
        assert ui.prompts == []
        assert ui.previews == []

    def test_too_large_rejected(self, project):
        target = project / "big.txt"
        target.write_text("a" * 100)
        ui = ScriptedUI()
        proposal = FileWriteProposal(path=target, new_content="b", is_new_file=False)
        result = make_gate(ui, max_file_bytes=10).review(proposal, cwd=project)
        assert result.state == S.REJECTED
        assert isinstance(result.error, FileTooLargeError)

    def test_identical_content_cancelled(self, project):
        target = project / "same.txt"
        target.write_text("same\n")
        ui = ScriptedUI()
        proposal = FileWriteProposal(path=target, new_content="same\n", is_new_file=False)
        result = make_gate(ui).review(proposal, cwd=project)

        assert result.state == S.CANCELLED
        assert result.reason == "no changes"
        assert ui.prompts == []
        assert ui.notices

    def test_edit_file_content_rediffed(self, project):
        target = project / "notes.txt"
        target.write_text("one\n")
        ui = ScriptedUI(answers=["e", "y"], edits=["one\nthree\n"])
        proposal = FileWriteProposal(path=target, new_content="one\ntwo\n", is_new_file=False)
        result = make_gate(ui).review(proposal, cwd=project)

        assert result.state == S.APPROVED
        assert ui.edit_requests == [("one\ntwo\n", "notes.txt")]
        assert result.intent.new_content == "one\nthree\n"
        assert "+three" in result.preview.diff
        assert len(ui.previews) == 2
