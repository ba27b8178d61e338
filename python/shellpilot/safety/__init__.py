"""Safety pipeline between an assistant proposal and the user's machine.

Exports:
- SafetyGate: state machine from proposal to approval, rejection or cancel
- CommandPolicy: blocked command patterns
- ScopeBoundary / ScopeResolver: project root and write-target checks
- ConfirmationUI / parse_confirmation: the y/n/e prompt contract
- GateState / GateResult / FilePreview: records handed to the executor
"""

from shellpilot.safety.confirm import (
    ConfirmationDecision,
    ConfirmationUI,
    DecisionKind,
    parse_confirmation,
)
from shellpilot.safety.gate import SafetyGate
from shellpilot.safety.patterns import CommandPolicy
from shellpilot.safety.scope import ScopeBoundary, ScopeResolver, is_secrets_file
from shellpilot.safety.states import FilePreview, GateResult, GateState

__all__ = [
    "SafetyGate",
    "CommandPolicy",
    "ScopeBoundary",
    "ScopeResolver",
    "is_secrets_file",
    "ConfirmationDecision",
    "ConfirmationUI",
    "DecisionKind",
    "parse_confirmation",
    "FilePreview",
    "GateResult",
    "GateState",
]
