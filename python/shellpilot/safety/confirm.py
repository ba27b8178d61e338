"""Three-way confirmation: yes, no, or edit.

Input is trimmed and case-insensitive:
- y, yes → YES
- e, edit → EDIT
- n, no, blank, anything else, EOF, Ctrl-C → NO

The terminal renders proposals and reads input through the ConfirmationUI
protocol, so the gate can be driven by a scripted UI in tests.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from shellpilot.errors import ShellpilotError
from shellpilot.intent import CommandProposal
from shellpilot.logging import get_logger
from shellpilot.safety.states import FilePreview

logger = get_logger(__name__)

CONFIRM_PROMPT = "Run this? [y/n/e]"
CONFIRM_WRITE_PROMPT = "Apply this change? [y/n/e]"


class DecisionKind(str, Enum):
    YES = "yes"
    NO = "no"
    EDIT = "edit"


@dataclass(frozen=True)
class ConfirmationDecision:
    """The user's answer to one proposal.

    Attributes:
        kind: YES, NO or EDIT
        revised_text: Edited command or file content for EDIT (None if the edit was aborted)
    """

    kind: DecisionKind
    revised_text: str | None = None


class ConfirmationUI(Protocol):
    """What the gate needs from a terminal."""

    def show_command(self, proposal: CommandProposal) -> None: ...

    def show_file_preview(self, preview: FilePreview) -> None: ...

    def show_rejection(self, error: ShellpilotError) -> None: ...

    def show_notice(self, message: str) -> None: ...

    def ask(self, prompt: str) -> str | None:
        """Read one line. None means EOF."""
        ...

    def edit_text(self, text: str, *, filename: str | None = None) -> str | None:
        """Let the user revise text. filename is set for file content. None means aborted."""
        ...


def parse_confirmation(raw: str | None) -> DecisionKind:
    """Map raw input to a decision. Anything unrecognized is NO."""
    if raw is None:
        return DecisionKind.NO
    answer = raw.strip().lower()
    if answer in ("y", "yes"):
        return DecisionKind.YES
    if answer in ("e", "edit"):
        return DecisionKind.EDIT
    return DecisionKind.NO


def request_decision(
    ui: ConfirmationUI,
    current_text: str,
    *,
    prompt: str = CONFIRM_PROMPT,
    filename: str | None = None,
) -> ConfirmationDecision:
    """Prompt once and, for EDIT, collect the revised text.

    EOF and Ctrl-C at the prompt count as NO.
    """
    try:
        raw = ui.ask(prompt)
    except (EOFError, KeyboardInterrupt):
        logger.info("gate.prompt.interrupted")
        raw = None

    kind = parse_confirmation(raw)
    if kind != DecisionKind.EDIT:
        return ConfirmationDecision(kind=kind)

    try:
        revised = ui.edit_text(current_text, filename=filename)
    except (EOFError, KeyboardInterrupt):
        logger.info("gate.edit.interrupted")
        revised = None
    return ConfirmationDecision(kind=DecisionKind.EDIT, revised_text=revised)
