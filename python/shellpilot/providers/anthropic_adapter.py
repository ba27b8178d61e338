"""Anthropic adapter implementation.

- Endpoint: POST {base_url}/messages (default base https://api.anthropic.com/v1)
- Headers: x-api-key: <key>, anthropic-version: 2023-06-01, Content-Type: application/json
- Health: GET {base_url}/models

Turn conversion:
- System turns are lifted into the top-level "system" field (Anthropic doesn't
  accept system in the messages array); several are joined by a blank line
- Remaining turns mapped to messages with role preserved

Request body:
{
  "model": "<model>",
  "max_tokens": 1024,
  "temperature": 0.7,
  "system": "<system_prompt>",
  "messages": [
    {"role": "user", "content": "..."},
    {"role": "assistant", "content": "..."}
  ],
  "stream": true
}

Streaming:
- Events: content_block_delta with data: {"delta": {"text": "..."}}
- Terminal: message_stop
- error events mid-stream are fatal
"""

import httpx

from shellpilot.providers.adapter import ProviderAdapter
from shellpilot.providers.decoders import DEFAULT_MAX_BUFFER_BYTES, AnthropicSSEDecoder, StreamDecoder
from shellpilot.providers.types import CompletionRequest, ProviderConfig

ANTHROPIC_API_VERSION = "2023-06-01"


class AnthropicAdapter(ProviderAdapter):
    """Anthropic Messages API adapter."""

    provider_id = "anthropic"
    chat_path = "/messages"
    health_path = "/models"
    api_key_prefix = "sk-ant-"

    def __init__(
        self,
        client: httpx.AsyncClient,
        config: ProviderConfig,
        *,
        max_buffer_bytes: int = DEFAULT_MAX_BUFFER_BYTES,
        api_version: str = ANTHROPIC_API_VERSION,
    ):
        super().__init__(client, config, max_buffer_bytes=max_buffer_bytes)
        self._api_version = api_version

    def _new_decoder(self) -> StreamDecoder:
        return AnthropicSSEDecoder(self._max_buffer_bytes)

    def _build_headers(self) -> dict[str, str]:
        return {
            "x-api-key": self._api_key(),
            "anthropic-version": self._api_version,
            "Content-Type": "application/json",
        }

    def _build_request_body(self, req: CompletionRequest) -> dict:
        """Build request body, extracting system turns to a separate field."""
        system_parts = [turn.content for turn in req.messages if turn.role == "system"]
        messages = [self._turn_to_message(turn) for turn in req.messages if turn.role != "system"]

        body: dict = {
            "model": req.model or self._config.model,
            "max_tokens": req.max_tokens,
            "messages": messages,
            "stream": True,
        }

        if system_parts:
            body["system"] = "\n\n".join(system_parts)

        if req.temperature is not None:
            body["temperature"] = req.temperature

        return body
