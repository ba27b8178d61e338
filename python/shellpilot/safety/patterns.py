"""Blocked command patterns.

Patterns are literal substrings by default. A pattern prefixed with "re:" is a
regular expression matched with re.search.

Matching is done on the literal command text. Shell obfuscation (quoting,
variable expansion, aliases) can get around it; the denylist catches the
obvious destructive shapes and nothing more.
"""

import re
from collections.abc import Iterable

from shellpilot.config import DEFAULT_BLOCKED_PATTERNS
from shellpilot.errors import CommandBlockedError, InvalidConfigFormatError

REGEX_PREFIX = "re:"


class CommandPolicy:
    """Denylist of command patterns. Not overridable by confirmation."""

    def __init__(self, patterns: Iterable[str] = DEFAULT_BLOCKED_PATTERNS):
        """Compile the configured patterns.

        Args:
            patterns: Literal substrings, or regexes prefixed with "re:". Blank
                entries are ignored.

        Raises:
            InvalidConfigFormatError: If a regex pattern does not compile.
        """
        self._patterns: list[tuple[str, re.Pattern[str] | None]] = []
        for pattern in patterns:
            if not pattern.strip():
                continue
            if pattern.startswith(REGEX_PREFIX):
                try:
                    compiled = re.compile(pattern[len(REGEX_PREFIX) :])
                except re.error as e:
                    raise InvalidConfigFormatError(
                        "blocked_patterns", f"invalid regex '{pattern}': {e}"
                    ) from e
                self._patterns.append((pattern, compiled))
            else:
                self._patterns.append((pattern, None))

    @property
    def patterns(self) -> list[str]:
        return [pattern for pattern, _ in self._patterns]

    def check(self, command: str) -> str | None:
        """Return the first configured pattern the command matches, or None."""
        for pattern, compiled in self._patterns:
            if compiled is None:
                if pattern in command:
                    return pattern
            elif compiled.search(command):
                return pattern
        return None

    def enforce(self, command: str) -> None:
        """Raise CommandBlockedError if the command matches any pattern."""
        pattern = self.check(command)
        if pattern is not None:
            raise CommandBlockedError(pattern)
