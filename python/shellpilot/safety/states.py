"""Gate states and the records passed from the gate to the executor."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from shellpilot.errors import ShellpilotError
from shellpilot.intent import CommandProposal, FileWriteProposal


class GateState(str, Enum):
    """Safety gate state machine.

    PROPOSED → BLOCKED_PATTERN_CHECK (commands) | SCOPE_CHECK (files)
    → AWAITING_CONFIRMATION → APPROVED | DENIED | EDITED

    EDITED loops back to the pattern/scope check with the revised value.
    Terminal: EXECUTED, REJECTED, CANCELLED.
    """

    PROPOSED = "proposed"
    BLOCKED_PATTERN_CHECK = "blocked_pattern_check"
    SCOPE_CHECK = "scope_check"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    APPROVED = "approved"
    DENIED = "denied"
    EDITED = "edited"
    EXECUTED = "executed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({GateState.EXECUTED, GateState.REJECTED, GateState.CANCELLED})


@dataclass(frozen=True)
class FilePreview:
    """Rendered change for one file, shown before the confirmation prompt.

    Attributes:
        path: Target path
        old_content: Current content ("" for a new file)
        new_content: Proposed content
        is_new_file: True if nothing exists at path
        diff: Unified diff text (a/ b/ labels, /dev/null for new files)
    """

    path: Path
    old_content: str
    new_content: str
    is_new_file: bool
    diff: str

    @property
    def has_changes(self) -> bool:
        return self.is_new_file or self.old_content != self.new_content


@dataclass
class GateResult:
    """Outcome of one pass through the safety gate.

    Attributes:
        state: Final state reached (APPROVED, REJECTED or CANCELLED; the
            executor moves APPROVED to EXECUTED or CANCELLED)
        intent: The proposal as approved, which may differ from the original after edits
        error: Policy error for REJECTED results
        preview: Diff shown for file proposals
        trail: Every state visited, in order
        reason: Short fixed text for CANCELLED results
    """

    state: GateState
    intent: CommandProposal | FileWriteProposal
    error: ShellpilotError | None = None
    preview: FilePreview | None = None
    trail: list[GateState] = field(default_factory=list)
    reason: str | None = None

    @property
    def approved(self) -> bool:
        return self.state == GateState.APPROVED

    def advance(self, state: GateState) -> None:
        self.state = state
        self.trail.append(state)
