"""Abstract base class for provider adapters.

- Async adapters over one shared httpx.AsyncClient
- No retries inside adapters
- No logging of request/response bodies
- Provider errors are classified here and raised as ProviderError subclasses
- Each adapter handles Turn → provider format conversion internally

complete() is an async generator. Nothing touches the network until the first
iteration; closing the generator (aclose(), contextlib.aclosing, or task
cancellation) exits the httpx stream context and releases the connection.
"""

import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

import httpx

from shellpilot.errors import (
    InvalidConfigFormatError,
    MissingApiKeyError,
    ProviderError,
)
from shellpilot.logging import get_logger
from shellpilot.providers.decoders import DEFAULT_MAX_BUFFER_BYTES, StreamDecoder
from shellpilot.providers.errors import (
    CONNECT_REFUSED_REASON,
    NOT_FOUND_REASON,
    classify_http_status,
    classify_transport_error,
)
from shellpilot.providers.types import CompletionChunk, CompletionRequest, ProviderConfig, Turn
from shellpilot.redact import safe_kv

logger = get_logger(__name__)

# Connect timeout is kept short; the read timeout comes from ProviderConfig
CONNECT_TIMEOUT_S = 10.0


class ProviderAdapter(ABC):
    """Abstract base class for AI provider adapters.

    Subclasses declare their wire details (endpoint paths, headers, body shape,
    decoder) and inherit the streaming, validation, and error mapping.

    Rules:
    - No retries inside adapters
    - No logging of request/response bodies
    - Immutable after construction
    """

    provider_id: str = ""
    chat_path: str = ""
    health_path: str = ""
    requires_api_key: bool = True
    api_key_prefix: str | None = None

    def __init__(
        self,
        client: httpx.AsyncClient,
        config: ProviderConfig,
        *,
        max_buffer_bytes: int = DEFAULT_MAX_BUFFER_BYTES,
    ):
        """Initialize adapter with shared HTTP client.

        Args:
            client: Shared httpx.AsyncClient for connection pooling.
            config: Connection settings for this provider.
            max_buffer_bytes: Decoder buffer ceiling for one unterminated record.
        """
        self._client = client
        self._config = config
        self._max_buffer_bytes = max_buffer_bytes

    @property
    def config(self) -> ProviderConfig:
        return self._config

    @property
    def model(self) -> str:
        return self._config.model

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model={self._config.model!r}, base_url={self._config.base_url!r})"

    # =========================================================================
    # Capability interface
    # =========================================================================

    def validate_config(self) -> None:
        """Check this adapter's config locally. Never touches the network.

        Raises:
            MissingApiKeyError: If a required key is absent.
            InvalidConfigFormatError: If any field has the wrong shape.
        """
        self.check_config(self._config)

    @classmethod
    def check_config(cls, config: ProviderConfig) -> None:
        """Same checks as validate_config, before any client or adapter exists."""
        field_prefix = cls.provider_id
        api_key = config.api_key.get_secret_value() if config.api_key else ""

        if cls.requires_api_key:
            if not api_key:
                raise MissingApiKeyError(f"{field_prefix}.api_key")
            if any(ch.isspace() or not ch.isprintable() for ch in api_key):
                raise InvalidConfigFormatError(
                    f"{field_prefix}.api_key", "contains whitespace or control characters"
                )
            if cls.api_key_prefix and not api_key.startswith(cls.api_key_prefix):
                raise InvalidConfigFormatError(
                    f"{field_prefix}.api_key", f"expected a key starting with '{cls.api_key_prefix}'"
                )

        try:
            url = httpx.URL(config.base_url)
        except httpx.InvalidURL as e:
            raise InvalidConfigFormatError(f"{field_prefix}.base_url", "not a valid URL") from e
        if url.scheme not in ("http", "https") or not url.host:
            raise InvalidConfigFormatError(
                f"{field_prefix}.base_url", "must be an absolute http(s) URL with a host"
            )

        if not config.model.strip():
            raise InvalidConfigFormatError(f"{field_prefix}.model", "must not be empty")

        if config.timeout_s <= 0:
            raise InvalidConfigFormatError(f"{field_prefix}.timeout_s", "must be positive")

    async def health_check(self) -> None:
        """One cheap round trip to confirm the provider is reachable.

        Used at startup only, never per request.

        Raises:
            ProviderError: On any failure.
        """
        try:
            response = await self._client.get(
                self._config.endpoint_root + self.health_path,
                headers=self._build_headers(),
                timeout=self._timeout(),
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise self._classify_status(e.response) from e
        except httpx.TransportError as e:
            raise self._classify_transport(e) from e

    async def complete(self, request: CompletionRequest) -> AsyncIterator[CompletionChunk]:
        """Stream a completion.

        This is an async generator, so the HTTP request is sent on the first
        iteration rather than when complete() is called. Closing the generator
        early closes the response.

        Args:
            request: The completion request.

        Yields:
            Non-empty CompletionChunk objects in arrival order.

        Raises:
            ProviderError: On HTTP, transport, or stream failure. A body that
                ends cleanly without the completion marker is not an error; it
                is logged as unterminated and the stream just ends.
        """
        model_name = request.model or self._config.model
        base = {"provider": self.provider_id, "model_name": model_name}
        logger.info(
            "provider.request.started",
            **safe_kv(**base, message_chars=request.message_chars, turn_count=len(request.messages)),
        )

        decoder = self._new_decoder()
        chunk_count = 0
        output_chars = 0
        start = time.monotonic()

        try:
            async with self._client.stream(
                "POST",
                self._config.endpoint_root + self.chat_path,
                headers=self._build_headers(),
                json=self._build_request_body(request),
                timeout=self._timeout(),
            ) as response:
                response.raise_for_status()

                async for data in response.aiter_bytes():
                    for chunk in decoder.feed(data):
                        chunk_count += 1
                        output_chars += len(chunk.text)
                        yield chunk
                    if decoder.done:
                        break

                if not decoder.done:
                    for chunk in decoder.finish():
                        chunk_count += 1
                        output_chars += len(chunk.text)
                        yield chunk

                if not decoder.done:
                    logger.warning(
                        "provider.stream.unterminated",
                        **safe_kv(**base, chunk_count=chunk_count, output_chars=output_chars),
                    )

        except httpx.HTTPStatusError as e:
            raise self._failed(self._classify_status(e.response), start, e.response.status_code) from e

        except httpx.TransportError as e:
            raise self._failed(self._classify_transport(e), start) from e

        except ProviderError as e:
            raise self._failed(e, start)

        logger.info(
            "provider.request.finished",
            **safe_kv(
                **base,
                outcome="success",
                latency_ms=int((time.monotonic() - start) * 1000),
                chunk_count=chunk_count,
                output_chars=output_chars,
            ),
        )

    # =========================================================================
    # Wire details (per provider)
    # =========================================================================

    @abstractmethod
    def _new_decoder(self) -> StreamDecoder:
        """Fresh decoder for one response."""

    @abstractmethod
    def _build_headers(self) -> dict[str, str]:
        """Request headers, including auth where the provider uses it."""

    @abstractmethod
    def _build_request_body(self, req: CompletionRequest) -> dict:
        """Provider-specific JSON body with stream enabled."""

    def _turn_to_message(self, turn: Turn) -> dict[str, str]:
        return {"role": turn.role, "content": turn.content}

    def _not_found_reason(self) -> str:
        return NOT_FOUND_REASON

    def _connect_error_reason(self) -> str:
        return CONNECT_REFUSED_REASON

    # =========================================================================
    # Helpers
    # =========================================================================

    def _api_key(self) -> str:
        return self._config.api_key.get_secret_value() if self._config.api_key else ""

    def _timeout(self) -> httpx.Timeout:
        return httpx.Timeout(self._config.timeout_s, connect=min(CONNECT_TIMEOUT_S, self._config.timeout_s))

    def _classify_status(self, response: httpx.Response) -> ProviderError:
        return classify_http_status(
            self.provider_id,
            response.status_code,
            response.headers,
            not_found_reason=self._not_found_reason(),
        )

    def _classify_transport(self, exc: httpx.TransportError) -> ProviderError:
        return classify_transport_error(
            self.provider_id, exc, connect_reason=self._connect_error_reason()
        )

    def _failed(self, error: ProviderError, start: float, status_code: int | None = None) -> ProviderError:
        logger.warning(
            "provider.request.failed",
            **safe_kv(
                provider=self.provider_id,
                outcome="error",
                error_code=error.code.value,
                status_code=status_code,
                latency_ms=int((time.monotonic() - start) * 1000),
            ),
        )
        return error
