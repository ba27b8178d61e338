"""Safety gate: every proposed side effect passes through here before it runs.

Commands:  PROPOSED → BLOCKED_PATTERN_CHECK → AWAITING_CONFIRMATION → ...
Files:     PROPOSED → SCOPE_CHECK → (diff preview) → AWAITING_CONFIRMATION → ...

- A blocked pattern or out-of-scope path goes straight to REJECTED; nothing is
  shown and no input is read
- YES → APPROVED (the executor takes it from there)
- NO → DENIED → CANCELLED
- EDIT with revised text → EDITED, then the checks run again on the revision
- EDIT aborted or emptied → CANCELLED

The gate renders and asks; it never writes files or spawns processes.
"""

import dataclasses
from pathlib import Path
from typing import Protocol

from shellpilot.errors import CommandBlockedError, FileError, ShellpilotError
from shellpilot.intent import CommandProposal, FileWriteProposal
from shellpilot.logging import get_logger
from shellpilot.redact import safe_kv
from shellpilot.safety.confirm import (
    CONFIRM_PROMPT,
    CONFIRM_WRITE_PROMPT,
    ConfirmationUI,
    DecisionKind,
    request_decision,
)
from shellpilot.safety.patterns import CommandPolicy
from shellpilot.safety.scope import ScopeResolver
from shellpilot.safety.states import FilePreview, GateResult, GateState

logger = get_logger(__name__)


class FilePreviewer(Protocol):
    def preview(self, proposal: FileWriteProposal, *, display_root: Path | None = None) -> FilePreview: ...


class SafetyGate:
    """Drives one proposal to APPROVED, REJECTED or CANCELLED."""

    def __init__(
        self,
        policy: CommandPolicy,
        scope: ScopeResolver,
        previewer: FilePreviewer,
        ui: ConfirmationUI,
    ):
        self._policy = policy
        self._scope = scope
        self._previewer = previewer
        self._ui = ui

    def review(
        self,
        proposal: CommandProposal | FileWriteProposal,
        *,
        cwd: Path | None = None,
    ) -> GateResult:
        """Run the proposal through checks and confirmation.

        Args:
            proposal: Command or file write proposed by the assistant.
            cwd: Working directory the scope boundary is resolved from
                (defaults to the process working directory).

        Returns:
            GateResult in state APPROVED, REJECTED or CANCELLED.
        """
        result = GateResult(state=GateState.PROPOSED, intent=proposal, trail=[GateState.PROPOSED])
        edit_round = 0
        logger.info("gate.proposed", **safe_kv(proposal_kind=type(proposal).__name__))

        while True:
            result.intent = proposal
            result.preview = None

            if isinstance(proposal, CommandProposal):
                result.advance(GateState.BLOCKED_PATTERN_CHECK)
                pattern = self._policy.check(proposal.command)
                if pattern is not None:
                    return self._reject(result, CommandBlockedError(pattern))
                self._ui.show_command(proposal)
                current_text = proposal.command
                prompt = CONFIRM_PROMPT
                filename = None
            else:
                result.advance(GateState.SCOPE_CHECK)
                try:
                    boundary = self._scope.resolve(cwd)
                    boundary.check(proposal.path)
                    preview = self._previewer.preview(proposal, display_root=boundary.root)
                except FileError as e:
                    return self._reject(result, e)
                if not preview.has_changes:
                    self._ui.show_notice(f"No changes to {preview.path.name}")
                    return self._cancel(result, "no changes")
                result.preview = preview
                self._ui.show_file_preview(preview)
                current_text = proposal.new_content
                prompt = CONFIRM_WRITE_PROMPT
                filename = proposal.path.name

            result.advance(GateState.AWAITING_CONFIRMATION)
            decision = request_decision(self._ui, current_text, prompt=prompt, filename=filename)

            if decision.kind == DecisionKind.YES:
                result.advance(GateState.APPROVED)
                logger.info("gate.approved", **safe_kv(edit_rounds=edit_round))
                return result

            if decision.kind == DecisionKind.NO:
                result.advance(GateState.DENIED)
                return self._cancel(result, "denied")

            revised = decision.revised_text
            if revised is None or not revised.strip():
                return self._cancel(result, "edit aborted")

            edit_round += 1
            result.advance(GateState.EDITED)
            logger.info("gate.edited", **safe_kv(edit_round=edit_round, revised_chars=len(revised)))
            if isinstance(proposal, CommandProposal):
                proposal = dataclasses.replace(proposal, command=revised.strip())
            else:
                proposal = dataclasses.replace(proposal, new_content=revised)

    def _reject(self, result: GateResult, error: ShellpilotError) -> GateResult:
        result.error = error
        result.advance(GateState.REJECTED)
        self._ui.show_rejection(error)
        logger.warning(
            "gate.rejected",
            **safe_kv(
                error_code=error.code.value,
                blocked_pattern=getattr(error, "pattern", None),
            ),
        )
        return result

    def _cancel(self, result: GateResult, reason: str) -> GateResult:
        result.reason = reason
        result.advance(GateState.CANCELLED)
        logger.info("gate.cancelled", **safe_kv(reason=reason))
        return result
