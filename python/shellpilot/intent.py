"""Intent classification for completed assistant responses.

A response is classified once, after the stream completes, into exactly one of:
- FileWriteProposal: the response carries complete content for one file
- CommandProposal: the response carries a shell code block
- Explanation: anything else

File proposals are recognized, in priority order, from:
1. --- FILE: path --- ... --- END FILE --- markers
2. fenced blocks whose info string carries a path (```python src/app.py)
3. fenced blocks whose first two lines hold a "// filename: path" or
   "# filename: path" comment (the comment is stripped from the content)

The first proposal found wins; any others are logged and ignored.

Users can force a mode with explicit markers in their input:
- leading "!" or "/run" → command
- trailing "?" → explanation only
"""

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath

from shellpilot.logging import get_logger
from shellpilot.redact import safe_kv

logger = get_logger(__name__)

SHELL_LANGUAGES = frozenset({"bash", "sh", "shell", "zsh", "console"})

_FENCE_RE = re.compile(r"^```([^\n`]*)\n(.*?)^```", re.MULTILINE | re.DOTALL)
_FILE_MARKER_RE = re.compile(
    r"^---\s*FILE:\s*(.+?)\s*---[ \t]*\n(.*?)^---\s*END FILE\s*---",
    re.MULTILINE | re.DOTALL,
)
_FILENAME_COMMENT_RE = re.compile(r"^\s*(?://|#)\s*filename:\s*(.+?)\s*$")


class IntentMode(str, Enum):
    """User-forced interpretation of the next response."""

    AUTO = "auto"
    COMMAND = "command"
    EXPLAIN = "explain"


@dataclass(frozen=True)
class Explanation:
    text: str


@dataclass(frozen=True)
class CommandProposal:
    """A shell command the assistant wants to run.

    Attributes:
        command: Command text exactly as it would be passed to the shell
        rationale: Prose preceding the code block (may be empty)
    """

    command: str
    rationale: str = ""


@dataclass(frozen=True)
class FileWriteProposal:
    """Complete replacement content for one file.

    Attributes:
        path: Target path joined onto the working directory (not yet canonicalized)
        new_content: Full proposed file content
        is_new_file: True if nothing exists at path yet
    """

    path: Path
    new_content: str
    is_new_file: bool


Intent = Explanation | CommandProposal | FileWriteProposal


def detect_mode(user_input: str) -> tuple[IntentMode, str]:
    """Strip explicit mode markers from user input.

    Returns:
        (mode, cleaned text). A trailing "?" is kept since it is part of the question.
    """
    text = user_input.strip()

    if text.startswith("/run") and (len(text) == 4 or text[4].isspace()):
        return IntentMode.COMMAND, text[4:].strip()
    if text.startswith("!"):
        return IntentMode.COMMAND, text[1:].strip()
    if text.endswith("?"):
        return IntentMode.EXPLAIN, text
    return IntentMode.AUTO, text


def classify(response_text: str, cwd: Path, mode: IntentMode = IntentMode.AUTO) -> Intent:
    """Classify a completed response.

    Args:
        response_text: Full assistant response.
        cwd: Directory relative paths are joined onto.
        mode: Forced mode from detect_mode(); EXPLAIN always yields Explanation.

    Returns:
        The classified Intent.
    """
    if mode == IntentMode.EXPLAIN:
        return _classified(Explanation(text=response_text), response_text)

    proposals = extract_file_proposals(response_text, cwd)
    if proposals:
        if len(proposals) > 1:
            logger.info("intent.extra_proposals_ignored", **safe_kv(proposal_count=len(proposals)))
        return _classified(proposals[0], response_text)

    command = extract_command(response_text)
    if command is not None:
        return _classified(command, response_text)

    return _classified(Explanation(text=response_text), response_text)


def extract_file_proposals(response_text: str, cwd: Path) -> list[FileWriteProposal]:
    """All file proposals in priority order (markers, info-string paths, filename comments)."""
    proposals: list[FileWriteProposal] = []

    for match in _FILE_MARKER_RE.finditer(response_text):
        _append_proposal(proposals, match.group(1), match.group(2), cwd)

    fences = list(_FENCE_RE.finditer(response_text))

    for match in fences:
        path_token = _path_from_info(match.group(1))
        if path_token:
            _append_proposal(proposals, path_token, match.group(2), cwd)

    for match in fences:
        if _path_from_info(match.group(1)):
            continue
        body = match.group(2)
        lines = body.splitlines(keepends=True)
        for index, line in enumerate(lines[:2]):
            comment = _FILENAME_COMMENT_RE.match(line)
            if comment:
                content = "".join(lines[:index] + lines[index + 1 :])
                _append_proposal(proposals, comment.group(1), content, cwd)
                break

    return proposals


def extract_command(response_text: str) -> CommandProposal | None:
    """First non-empty shell code block, with the prose before it as rationale."""
    for match in _FENCE_RE.finditer(response_text):
        info = match.group(1).split()
        language = info[0].lower() if info else ""
        if language not in SHELL_LANGUAGES:
            continue
        body = match.group(2)
        if language == "console":
            body = "\n".join(line[2:] if line.startswith("$ ") else line for line in body.splitlines())
        command = body.strip()
        if not command:
            continue
        return CommandProposal(command=command, rationale=response_text[: match.start()].strip())
    return None


def _path_from_info(info: str) -> str | None:
    """Path token from a fence info string, if any (token after the language)."""
    for token in info.split()[1:]:
        if "/" in token or "\\" in token or PurePosixPath(token).suffix:
            return token
    return None


def _append_proposal(proposals: list[FileWriteProposal], path_str: str, content: str, cwd: Path) -> None:
    path_str = path_str.strip()
    if not path_str or not content:
        return
    path = cwd / Path(path_str).expanduser()
    proposals.append(
        FileWriteProposal(path=path, new_content=content, is_new_file=not path.exists())
    )


def _classified(intent: Intent, response_text: str) -> Intent:
    logger.info(
        "intent.classified",
        **safe_kv(intent_kind=type(intent).__name__, response_chars=len(response_text)),
    )
    return intent
