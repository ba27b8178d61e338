"""Shared type definitions for the provider layer.

- Turn: Provider-agnostic conversation turn
- CompletionRequest: Request handed to an adapter
- CompletionChunk: Single increment of generated text
- ProviderConfig: Validated connection settings for one provider

Streaming invariants:
- Chunks are never empty; control-only events produce no chunk
- Termination is out-of-band: the adapter's iterator simply ends
- Concatenating every chunk's text in order reconstructs the response
- If a stream ends without its terminal marker the adapter raises
  ProviderUnavailableError instead of ending quietly
"""

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, SecretStr


@dataclass(frozen=True)
class Turn:
    """Provider-agnostic conversation turn.

    Attributes:
        role: One of "system", "user", or "assistant"
        content: The text content of the turn
    """

    role: Literal["system", "user", "assistant"]
    content: str


@dataclass(frozen=True)
class CompletionRequest:
    """Request to a provider adapter.

    Attributes:
        messages: List of Turn objects (system turn first if present)
        max_tokens: Maximum tokens in the completion
        temperature: Sampling temperature, None uses provider default
        model: Model override, None uses the adapter's configured model
    """

    messages: list[Turn]
    max_tokens: int
    temperature: float | None = None
    model: str | None = None

    @property
    def message_chars(self) -> int:
        return sum(len(turn.content) for turn in self.messages)


@dataclass(frozen=True)
class CompletionChunk:
    """Single chunk of streamed text."""

    text: str


class ProviderConfig(BaseModel):
    """Connection settings for one provider.

    The API key is a SecretStr so it never renders in repr, logs, or errors.
    Only adapters call get_secret_value(), and only to build request headers.
    """

    model_config = ConfigDict(frozen=True)

    base_url: str
    api_key: SecretStr | None = None
    model: str
    timeout_s: float = 60.0

    @property
    def endpoint_root(self) -> str:
        """Base URL without a trailing slash."""
        return self.base_url.rstrip("/")
