"""OpenAI adapter implementation.

- Endpoint: POST {base_url}/chat/completions (default base https://api.openai.com/v1)
- Headers: Authorization: Bearer <key>, Content-Type: application/json
- Streaming: Server-Sent Events with data: {...} format
- Terminal event: data: [DONE]
- Health: GET {base_url}/models

Any OpenAI-compatible server works by pointing SHELLPILOT_OPENAI_BASE_URL at it.

Request body:
{
  "model": "<model>",
  "messages": [
    {"role": "system", "content": "..."},
    {"role": "user", "content": "..."},
    {"role": "assistant", "content": "..."}
  ],
  "max_tokens": 1024,
  "temperature": 0.7,
  "stream": true
}
"""

from shellpilot.providers.adapter import ProviderAdapter
from shellpilot.providers.decoders import OpenAISSEDecoder, StreamDecoder
from shellpilot.providers.types import CompletionRequest


class OpenAIAdapter(ProviderAdapter):
    """OpenAI chat completions adapter.

    OpenAI uses the same role names as Turn, so messages map one to one.
    """

    provider_id = "openai"
    chat_path = "/chat/completions"
    health_path = "/models"

    def _new_decoder(self) -> StreamDecoder:
        return OpenAISSEDecoder(self._max_buffer_bytes)

    def _build_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key()}",
            "Content-Type": "application/json",
        }

    def _build_request_body(self, req: CompletionRequest) -> dict:
        body: dict = {
            "model": req.model or self._config.model,
            "messages": [self._turn_to_message(turn) for turn in req.messages],
            "max_tokens": req.max_tokens,
            "stream": True,
        }

        if req.temperature is not None:
            body["temperature"] = req.temperature

        return body
