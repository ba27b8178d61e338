"""Provider layer: one streaming interface over OpenAI, Anthropic, and Ollama.

- Provider adapters on a shared httpx.AsyncClient
- Incremental SSE / NDJSON stream decoders
- HTTP and transport error classification
- Prompt rendering (provider-agnostic)
- Provider registry with deterministic default selection

Usage:
    from shellpilot.providers import CompletionRequest, ProviderFactory, Turn

    async with ProviderFactory.from_settings(get_settings()) as factory:
        adapter = factory.get_default()
        request = CompletionRequest(messages=[Turn(role="user", content="Hello!")], max_tokens=100)
        async for chunk in adapter.complete(request):
            print(chunk.text, end="")
"""

from shellpilot.providers.adapter import ProviderAdapter
from shellpilot.providers.anthropic_adapter import AnthropicAdapter
from shellpilot.providers.decoders import (
    AnthropicSSEDecoder,
    OllamaNDJSONDecoder,
    OpenAISSEDecoder,
    StreamDecoder,
)
from shellpilot.providers.factory import ProviderFactory
from shellpilot.providers.ollama_adapter import OllamaAdapter
from shellpilot.providers.openai_adapter import OpenAIAdapter
from shellpilot.providers.prompt import (
    DEFAULT_SYSTEM_PROMPT,
    PromptTooLargeError,
    build_request,
    render_prompt,
    validate_prompt_size,
)
from shellpilot.providers.types import CompletionChunk, CompletionRequest, ProviderConfig, Turn

__all__ = [
    # Core types
    "Turn",
    "CompletionRequest",
    "CompletionChunk",
    "ProviderConfig",
    # Adapters
    "ProviderAdapter",
    "OpenAIAdapter",
    "AnthropicAdapter",
    "OllamaAdapter",
    # Decoders
    "StreamDecoder",
    "OpenAISSEDecoder",
    "AnthropicSSEDecoder",
    "OllamaNDJSONDecoder",
    # Registry
    "ProviderFactory",
    # Prompt rendering
    "build_request",
    "render_prompt",
    "validate_prompt_size",
    "PromptTooLargeError",
    "DEFAULT_SYSTEM_PROMPT",
]
