"""Provider error classification and normalization.

Maps HTTP statuses and httpx transport exceptions onto the ProviderError
family. One place, shared by every adapter.

- 401/403 → InvalidApiKeyError
- 429 → RateLimitedError (Retry-After seconds, default 60)
- 404 → ProviderUnavailableError (model or endpoint not found)
- 5xx, 529 → ProviderUnavailableError (server error)
- other non-2xx → ProviderUnavailableError (request rejected)
- timeout → ProviderNetworkError
- connection refused → ProviderUnavailableError
- other transport failure → ProviderNetworkError

Messages carry the provider id, the status code, and fixed text only. Response
bodies are never read into an error.
"""

import httpx

from shellpilot.errors import (
    DEFAULT_RETRY_AFTER_S,
    InvalidApiKeyError,
    ProviderError,
    ProviderNetworkError,
    ProviderUnavailableError,
    RateLimitedError,
)

NOT_FOUND_REASON = "model or endpoint not found"
CONNECT_REFUSED_REASON = "connection refused"


def parse_retry_after(value: str | None) -> int:
    """Parse a Retry-After header given in seconds.

    HTTP-date values, negatives, and garbage fall back to the default.
    """
    if value is None:
        return DEFAULT_RETRY_AFTER_S
    try:
        seconds = int(value.strip())
    except ValueError:
        return DEFAULT_RETRY_AFTER_S
    if seconds < 0:
        return DEFAULT_RETRY_AFTER_S
    return seconds


def classify_http_status(
    provider: str,
    status_code: int,
    headers: httpx.Headers | dict | None = None,
    *,
    not_found_reason: str = NOT_FOUND_REASON,
) -> ProviderError:
    """Classify a non-2xx response into a ProviderError.

    Args:
        provider: Provider id for the error message.
        status_code: HTTP status returned by the provider.
        headers: Response headers (only Retry-After is consulted).
        not_found_reason: Provider-specific text for 404s.

    Returns:
        The ProviderError to raise.
    """
    if status_code in (401, 403):
        return InvalidApiKeyError(provider)

    if status_code == 429:
        retry_after = headers.get("retry-after") if headers is not None else None
        return RateLimitedError(provider, parse_retry_after(retry_after))

    if status_code == 404:
        return ProviderUnavailableError(provider, not_found_reason)

    if status_code >= 500:
        # 529 is Anthropic's "overloaded"
        return ProviderUnavailableError(provider, f"server error (HTTP {status_code})")

    return ProviderUnavailableError(provider, f"request rejected (HTTP {status_code})")


def classify_transport_error(
    provider: str,
    exc: httpx.TransportError,
    *,
    connect_reason: str = CONNECT_REFUSED_REASON,
) -> ProviderError:
    """Classify an httpx transport exception into a ProviderError.

    Timeouts are checked first since httpx.ConnectTimeout is a timeout, not a
    refused connection.
    """
    if isinstance(exc, httpx.TimeoutException):
        return ProviderNetworkError(provider, "request timed out")
    if isinstance(exc, httpx.ConnectError):
        return ProviderUnavailableError(provider, connect_reason)
    return ProviderNetworkError(provider, f"transport error ({type(exc).__name__})")
