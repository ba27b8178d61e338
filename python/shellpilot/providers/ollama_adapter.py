"""Ollama adapter implementation.

- Endpoint: POST {host}/api/chat (default host http://localhost:11434)
- No auth header
- Streaming: newline-delimited JSON, one object per line
- Terminal line: {"done": true, ...}
- Health: GET {host}/api/version

Request body:
{
  "model": "<model>",
  "messages": [{"role": "user", "content": "..."}],
  "stream": true,
  "options": {"num_predict": 1024, "temperature": 0.7}
}

Ollama failures are almost always local setup problems, so 404 and refused
connections carry the command that fixes them.
"""

from shellpilot.providers.adapter import ProviderAdapter
from shellpilot.providers.decoders import OllamaNDJSONDecoder, StreamDecoder
from shellpilot.providers.types import CompletionRequest


class OllamaAdapter(ProviderAdapter):
    """Local Ollama chat adapter."""

    provider_id = "ollama"
    chat_path = "/api/chat"
    health_path = "/api/version"
    requires_api_key = False

    def _new_decoder(self) -> StreamDecoder:
        return OllamaNDJSONDecoder(self._max_buffer_bytes)

    def _build_headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def _build_request_body(self, req: CompletionRequest) -> dict:
        options: dict = {"num_predict": req.max_tokens}
        if req.temperature is not None:
            options["temperature"] = req.temperature

        return {
            "model": req.model or self._config.model,
            "messages": [self._turn_to_message(turn) for turn in req.messages],
            "stream": True,
            "options": options,
        }

    def _not_found_reason(self) -> str:
        return f"model '{self._config.model}' not found. Pull it with: ollama pull {self._config.model}"

    def _connect_error_reason(self) -> str:
        return "Ollama is not running. Start it with: ollama serve"
