"""Provider registry and default selection.

- Registers adapters after local config validation; a provider that fails
  validation is logged and excluded, never fatal on its own
- Startup fails with NoProvidersError only when zero providers validate
- Resolves the default provider deterministically:
  1. explicit runtime override (the session's active provider), if registered
  2. configured default, if registered
  3. alphabetically first registered provider
- Owns the shared httpx.AsyncClient when it created it

The registry is read-only after startup. The active provider selection lives
on the Session, not here.
"""

import httpx

from shellpilot.errors import ConfigError, NoProvidersError, ProviderError
from shellpilot.logging import get_logger
from shellpilot.providers.adapter import ProviderAdapter
from shellpilot.providers.anthropic_adapter import AnthropicAdapter
from shellpilot.providers.ollama_adapter import OllamaAdapter
from shellpilot.providers.openai_adapter import OpenAIAdapter
from shellpilot.redact import safe_kv

logger = get_logger(__name__)


class ProviderFactory:
    """Holds every provider adapter that passed validation."""

    def __init__(
        self,
        *,
        default_provider: str | None = None,
        client: httpx.AsyncClient | None = None,
        owns_client: bool = False,
    ):
        """Initialize an empty registry.

        Args:
            default_provider: Configured default provider id.
            client: Shared client the adapters were built on (closed by aclose()
                only when owns_client is set).
            owns_client: Whether this factory created the client.
        """
        self._adapters: dict[str, ProviderAdapter] = {}
        self._default_provider = default_provider
        self._client = client
        self._owns_client = owns_client

    @classmethod
    def from_settings(cls, settings, *, client: httpx.AsyncClient | None = None) -> "ProviderFactory":
        """Build and register the OpenAI, Anthropic and Ollama adapters.

        Args:
            settings: shellpilot.config.Settings instance.
            client: Optional shared client; one is created (and owned) if omitted.

        Returns:
            A factory holding every provider whose config validated.

        Raises:
            NoProvidersError: If no provider validated.
        """
        configs = settings.provider_configs()
        usable = [
            adapter_cls
            for adapter_cls in (OpenAIAdapter, AnthropicAdapter, OllamaAdapter)
            if _config_accepted(adapter_cls, configs[adapter_cls.provider_id])
        ]
        # No client is created unless at least one provider validated.
        if not usable:
            raise NoProvidersError(
                "No AI provider is configured. Set OPENAI_API_KEY or ANTHROPIC_API_KEY, "
                "or point OLLAMA_HOST at a running Ollama server."
            )

        owns_client = client is None
        if client is None:
            client = httpx.AsyncClient()

        factory = cls(
            default_provider=settings.default_provider,
            client=client,
            owns_client=owns_client,
        )
        buffer_limit = settings.stream_buffer_limit_bytes
        for adapter_cls in usable:
            extra = {"api_version": settings.anthropic_version} if adapter_cls is AnthropicAdapter else {}
            adapter = adapter_cls(
                client, configs[adapter_cls.provider_id], max_buffer_bytes=buffer_limit, **extra
            )
            factory.register(adapter.provider_id, adapter)

        return factory

    def register(self, name: str, adapter: ProviderAdapter) -> bool:
        """Validate and register one adapter.

        Args:
            name: Registry key (normally adapter.provider_id).
            adapter: The adapter to register.

        Returns:
            True if registered, False if its config was rejected.
        """
        try:
            adapter.validate_config()
        except ConfigError as e:
            _log_skipped(name, e)
            return False

        self._adapters[name] = adapter
        logger.info("provider.registered", **safe_kv(provider=name, model_name=adapter.model))
        return True

    def get(self, name: str) -> ProviderAdapter | None:
        return self._adapters.get(name)

    def resolve_default_name(self, override: str | None = None) -> str:
        """Name of the provider get_default() would return.

        Raises:
            NoProvidersError: If the registry is empty.
        """
        if not self._adapters:
            raise NoProvidersError()
        if override and override in self._adapters:
            return override
        if self._default_provider and self._default_provider in self._adapters:
            return self._default_provider
        return sorted(self._adapters)[0]

    def get_default(self, override: str | None = None) -> ProviderAdapter:
        """Resolve the provider for the next request.

        Args:
            override: Session-level active provider, if any.

        Raises:
            NoProvidersError: If the registry is empty.
        """
        return self._adapters[self.resolve_default_name(override)]

    async def check_health(self) -> dict[str, ProviderError | None]:
        """Run each registered provider's health check once.

        Returns:
            Mapping of provider id to None (healthy) or the error it raised.
        """
        results: dict[str, ProviderError | None] = {}
        for name in sorted(self._adapters):
            try:
                await self._adapters[name].health_check()
            except ProviderError as e:
                logger.warning(
                    "provider.health.failed",
                    **safe_kv(provider=name, error_code=e.code.value),
                )
                results[name] = e
            else:
                logger.info("provider.health.ok", **safe_kv(provider=name))
                results[name] = None
        return results

    async def aclose(self) -> None:
        """Close the shared HTTP client if this factory created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()

    async def __aenter__(self) -> "ProviderFactory":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def list(self) -> list[str]:
        """Registered provider ids, sorted alphabetically."""
        return sorted(self._adapters)


def _log_skipped(name: str, error: ConfigError) -> None:
    logger.warning(
        "provider.registration.skipped",
        **safe_kv(provider=name, error_code=error.code.value),
    )


def _config_accepted(adapter_cls: type[ProviderAdapter], config) -> bool:
    try:
        adapter_cls.check_config(config)
    except ConfigError as e:
        _log_skipped(adapter_cls.provider_id, e)
        return False
    return True
