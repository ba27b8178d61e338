"""Conversation history collaborator.

Persisted storage lives outside this package; the session only needs:
- append(role, content): record one message
- recent(n): the last n messages, oldest first

InMemoryConversationStore backs tests and storage-less sessions.
"""

from typing import Protocol

from shellpilot.providers.types import Turn


class ConversationStore(Protocol):
    def append(self, role: str, content: str) -> None: ...

    def recent(self, n: int) -> list[Turn]: ...


class InMemoryConversationStore:
    """Process-local history. Not shared across sessions."""

    def __init__(self, turns: list[Turn] | None = None):
        self._turns: list[Turn] = list(turns or [])

    def append(self, role: str, content: str) -> None:
        if role not in ("system", "user", "assistant"):
            raise ValueError(f"Invalid role: {role}")
        self._turns.append(Turn(role=role, content=content))

    def recent(self, n: int) -> list[Turn]:
        if n <= 0:
            return []
        return list(self._turns[-n:])

    def __len__(self) -> int:
        return len(self._turns)
