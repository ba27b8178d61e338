"""Error taxonomy for shellpilot.

All errors raised across the provider layer, the safety gate, and the action
executor are defined here with a stable code and a process exit status.

Families:
- ProviderError: network/auth/rate-limit/parse failures talking to a provider
- ConfigError: provider configuration rejected before any network call
- CommandError: shell command blocked, cancelled, or exited non-zero
- FileError: file write rejected (scope, size, binary, secrets) or failed

Messages never contain API keys, tokens, or raw prompt text. Policy rejections
(Blocked, OutOfScope) always name the pattern or path that triggered them.
"""

from enum import Enum
from pathlib import Path

# Retry-After fallback when the provider omits the header or sends garbage
DEFAULT_RETRY_AFTER_S = 60


class ErrorCode(str, Enum):
    """Standardized error codes.

    Format: E_FAMILY_NAME
    """

    # Provider errors
    E_PROVIDER_NETWORK = "E_PROVIDER_NETWORK"
    E_PROVIDER_RATE_LIMITED = "E_PROVIDER_RATE_LIMITED"
    E_PROVIDER_INVALID_API_KEY = "E_PROVIDER_INVALID_API_KEY"
    E_PROVIDER_UNAVAILABLE = "E_PROVIDER_UNAVAILABLE"
    E_PROVIDER_PARSE = "E_PROVIDER_PARSE"

    # Configuration errors
    E_CONFIG_MISSING_API_KEY = "E_CONFIG_MISSING_API_KEY"
    E_CONFIG_INVALID_FORMAT = "E_CONFIG_INVALID_FORMAT"
    E_CONFIG_NO_PROVIDERS = "E_CONFIG_NO_PROVIDERS"

    # Command errors
    E_COMMAND_BLOCKED = "E_COMMAND_BLOCKED"
    E_COMMAND_CANCELLED = "E_COMMAND_CANCELLED"
    E_COMMAND_NON_ZERO_EXIT = "E_COMMAND_NON_ZERO_EXIT"

    # File errors
    E_FILE_OUT_OF_SCOPE = "E_FILE_OUT_OF_SCOPE"
    E_FILE_SECRETS = "E_FILE_SECRETS"
    E_FILE_TOO_LARGE = "E_FILE_TOO_LARGE"
    E_FILE_BINARY = "E_FILE_BINARY"
    E_FILE_WRITE_FAILED = "E_FILE_WRITE_FAILED"


# Exit status reported to the host shell for each error code.
# 2 = configuration, 3 = provider/network, 4 = policy rejection,
# 1 = execution failure, 130 = user cancellation (128 + SIGINT).
ERROR_CODE_TO_EXIT_STATUS: dict[ErrorCode, int] = {
    ErrorCode.E_PROVIDER_NETWORK: 3,
    ErrorCode.E_PROVIDER_RATE_LIMITED: 3,
    ErrorCode.E_PROVIDER_INVALID_API_KEY: 3,
    ErrorCode.E_PROVIDER_UNAVAILABLE: 3,
    ErrorCode.E_PROVIDER_PARSE: 3,
    ErrorCode.E_CONFIG_MISSING_API_KEY: 2,
    ErrorCode.E_CONFIG_INVALID_FORMAT: 2,
    ErrorCode.E_CONFIG_NO_PROVIDERS: 2,
    ErrorCode.E_COMMAND_BLOCKED: 4,
    ErrorCode.E_COMMAND_CANCELLED: 130,
    ErrorCode.E_COMMAND_NON_ZERO_EXIT: 1,
    ErrorCode.E_FILE_OUT_OF_SCOPE: 4,
    ErrorCode.E_FILE_SECRETS: 4,
    ErrorCode.E_FILE_TOO_LARGE: 4,
    ErrorCode.E_FILE_BINARY: 4,
    ErrorCode.E_FILE_WRITE_FAILED: 1,
}

RETRYABLE_CODES = frozenset(
    {
        ErrorCode.E_PROVIDER_NETWORK,
        ErrorCode.E_PROVIDER_RATE_LIMITED,
        ErrorCode.E_PROVIDER_UNAVAILABLE,
    }
)


class ShellpilotError(Exception):
    """Base exception for all shellpilot errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        exit_status: Process exit status (derived from code)
    """

    def __init__(self, code: ErrorCode, message: str):
        self.code = code
        self.message = message
        self.exit_status = ERROR_CODE_TO_EXIT_STATUS.get(code, 1)
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        """Whether retrying the same action could succeed."""
        return self.code in RETRYABLE_CODES


# =============================================================================
# Provider errors
# =============================================================================


class ProviderError(ShellpilotError):
    """Failure talking to an AI provider.

    Attributes:
        provider: The provider id that failed (if known)
    """

    def __init__(self, code: ErrorCode, message: str, provider: str | None = None):
        self.provider = provider
        super().__init__(code, message)


class ProviderNetworkError(ProviderError):
    """Transport-level failure (timeout, reset, DNS)."""

    def __init__(self, provider: str | None, reason: str):
        self.reason = reason
        super().__init__(
            ErrorCode.E_PROVIDER_NETWORK,
            f"Network error talking to {provider}: {reason}",
            provider=provider,
        )


class RateLimitedError(ProviderError):
    """Provider returned 429."""

    def __init__(self, provider: str | None, retry_after_s: int = DEFAULT_RETRY_AFTER_S):
        self.retry_after_s = retry_after_s
        super().__init__(
            ErrorCode.E_PROVIDER_RATE_LIMITED,
            f"Rate limited by {provider}, retry after {retry_after_s} seconds",
            provider=provider,
        )


class InvalidApiKeyError(ProviderError):
    """Provider rejected the configured credentials."""

    def __init__(self, provider: str | None):
        super().__init__(
            ErrorCode.E_PROVIDER_INVALID_API_KEY,
            f"Invalid API key for {provider}",
            provider=provider,
        )


class ProviderUnavailableError(ProviderError):
    """Provider is down, unreachable, or refused the request."""

    def __init__(self, provider: str | None, reason: str):
        self.reason = reason
        super().__init__(
            ErrorCode.E_PROVIDER_UNAVAILABLE,
            f"Provider {provider} is unavailable: {reason}",
            provider=provider,
        )


class StreamParseError(ProviderError):
    """The response stream could not be decoded at all."""

    def __init__(self, provider: str | None, reason: str):
        self.reason = reason
        super().__init__(
            ErrorCode.E_PROVIDER_PARSE,
            f"Response parsing failed for {provider}: {reason}",
            provider=provider,
        )


# =============================================================================
# Configuration errors
# =============================================================================


class ConfigError(ShellpilotError):
    """Provider configuration rejected by local validation."""


class MissingApiKeyError(ConfigError):
    def __init__(self, field: str):
        self.field = field
        super().__init__(ErrorCode.E_CONFIG_MISSING_API_KEY, f"Missing required configuration: {field}")


class InvalidConfigFormatError(ConfigError):
    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(ErrorCode.E_CONFIG_INVALID_FORMAT, f"Invalid value for {field}: {reason}")


class NoProvidersError(ConfigError):
    """Raised when no provider passed validation."""

    def __init__(self, message: str = "No AI provider is configured"):
        super().__init__(ErrorCode.E_CONFIG_NO_PROVIDERS, message)


# =============================================================================
# Command errors
# =============================================================================


class CommandError(ShellpilotError):
    """A proposed or executed shell command did not complete normally."""


class CommandBlockedError(CommandError):
    """Command matched a denylist pattern. Never retryable, never overridable."""

    def __init__(self, pattern: str):
        self.pattern = pattern
        super().__init__(
            ErrorCode.E_COMMAND_BLOCKED,
            f"Command blocked for safety: matches blocked pattern '{pattern}'",
        )


class CommandCancelledError(CommandError):
    def __init__(self, message: str = "Command cancelled by user"):
        super().__init__(ErrorCode.E_COMMAND_CANCELLED, message)


class NonZeroExitError(CommandError):
    def __init__(self, exit_code: int):
        self.exit_code = exit_code
        super().__init__(ErrorCode.E_COMMAND_NON_ZERO_EXIT, f"Command exited with status {exit_code}")


# =============================================================================
# File errors
# =============================================================================


class FileError(ShellpilotError):
    """A proposed file write was rejected or failed.

    Attributes:
        path: The target path as proposed
    """

    def __init__(self, code: ErrorCode, message: str, path: Path | str):
        self.path = Path(path)
        super().__init__(code, message)


class OutOfScopeError(FileError):
    """Target resolves outside the project scope boundary."""

    def __init__(self, path: Path | str, root: Path | str):
        self.root = Path(root)
        super().__init__(
            ErrorCode.E_FILE_OUT_OF_SCOPE,
            f"Refusing to write {path}: outside project root {root}",
            path,
        )


class SecretsFileError(FileError):
    def __init__(self, path: Path | str):
        super().__init__(
            ErrorCode.E_FILE_SECRETS,
            f"Refusing to write {path}: looks like a secrets file",
            path,
        )


class FileTooLargeError(FileError):
    def __init__(self, path: Path | str, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(
            ErrorCode.E_FILE_TOO_LARGE,
            f"Refusing to diff {path}: {size} bytes exceeds limit of {limit}",
            path,
        )


class BinaryFileError(FileError):
    def __init__(self, path: Path | str):
        super().__init__(
            ErrorCode.E_FILE_BINARY,
            f"Refusing to overwrite {path}: existing file is binary",
            path,
        )


class WriteFailedError(FileError):
    def __init__(self, path: Path | str, reason: str):
        self.reason = reason
        super().__init__(
            ErrorCode.E_FILE_WRITE_FAILED,
            f"Failed to write {path}: {reason}",
            path,
        )
