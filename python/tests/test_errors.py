"""Tests for the error taxonomy.

Covers:
- Every error code has an exit status
- Exit status per family (config 2, provider 3, policy 4, cancel 130)
- Retryable classification
- Messages carry the pattern or path that triggered a rejection
"""

from pathlib import Path

import pytest

from shellpilot.errors import (
    ERROR_CODE_TO_EXIT_STATUS,
    BinaryFileError,
    CommandBlockedError,
    CommandCancelledError,
    ErrorCode,
    FileTooLargeError,
    InvalidApiKeyError,
    InvalidConfigFormatError,
    MissingApiKeyError,
    NoProvidersError,
    NonZeroExitError,
    OutOfScopeError,
    ProviderError,
    ProviderNetworkError,
    ProviderUnavailableError,
    RateLimitedError,
    SecretsFileError,
    ShellpilotError,
    StreamParseError,
    WriteFailedError,
)


class TestErrorCodeToExitStatus:
    """Tests for ERROR_CODE_TO_EXIT_STATUS mapping."""

    def test_every_code_has_status(self):
        """No error code falls through to the default."""
        for code in ErrorCode:
            assert code in ERROR_CODE_TO_EXIT_STATUS, f"{code} has no exit status"

    @pytest.mark.parametrize(
        "error,expected",
        [
            (ProviderNetworkError("openai", "request timed out"), 3),
            (RateLimitedError("openai"), 3),
            (InvalidApiKeyError("anthropic"), 3),
            (ProviderUnavailableError("ollama", "connection refused"), 3),
            (StreamParseError("openai", "bad"), 3),
            (MissingApiKeyError("openai.api_key"), 2),
            (InvalidConfigFormatError("openai.base_url", "bad"), 2),
            (NoProvidersError(), 2),
            (CommandBlockedError("rm -rf /"), 4),
            (OutOfScopeError("/etc/passwd", "/home/u/project"), 4),
            (SecretsFileError(".env"), 4),
            (CommandCancelledError(), 130),
            (NonZeroExitError(2), 1),
            (WriteFailedError("a.txt", "disk full"), 1),
        ],
    )
    def test_exit_status_by_family(self, error, expected):
        assert error.exit_status == expected


class TestRetryable:
    """Only transient provider failures are retryable."""

    @pytest.mark.parametrize(
        "error",
        [
            RateLimitedError("openai", 5),
            ProviderNetworkError("openai", "request timed out"),
            ProviderUnavailableError("openai", "server error (HTTP 503)"),
        ],
    )
    def test_transient_errors_retryable(self, error):
        assert error.retryable is True

    @pytest.mark.parametrize(
        "error",
        [
            CommandBlockedError("mkfs"),
            OutOfScopeError("../x", "/root"),
            InvalidApiKeyError("openai"),
            StreamParseError("openai", "bad"),
            MissingApiKeyError("openai.api_key"),
        ],
    )
    def test_policy_and_auth_errors_not_retryable(self, error):
        assert error.retryable is False


class TestErrorMessages:
    """Error messages name what triggered them and nothing secret."""

    def test_blocked_names_pattern(self):
        err = CommandBlockedError("rm -rf /")
        assert err.pattern == "rm -rf /"
        assert "rm -rf /" in err.message

    def test_out_of_scope_names_path_and_root(self):
        err = OutOfScopeError("/etc/passwd", "/home/u/project")
        assert err.path == Path("/etc/passwd")
        assert err.root == Path("/home/u/project")
        assert "/etc/passwd" in err.message
        assert "/home/u/project" in err.message

    def test_rate_limited_carries_retry_after(self):
        err = RateLimitedError("anthropic", 17)
        assert err.retry_after_s == 17
        assert err.provider == "anthropic"
        assert "17" in err.message

    def test_invalid_api_key_names_provider_only(self):
        err = InvalidApiKeyError("openai")
        assert err.message == "Invalid API key for openai"

    def test_missing_key_names_field(self):
        err = MissingApiKeyError("anthropic.api_key")
        assert err.field == "anthropic.api_key"
        assert err.code == ErrorCode.E_CONFIG_MISSING_API_KEY

    def test_file_too_large_reports_sizes(self):
        err = FileTooLargeError("big.log", 2048, 1024)
        assert err.size == 2048
        assert err.limit == 1024
        assert "2048" in err.message

    def test_binary_file_code(self):
        assert BinaryFileError("a.bin").code == ErrorCode.E_FILE_BINARY

    def test_str_is_message(self):
        err = NonZeroExitError(7)
        assert str(err) == err.message == "Command exited with status 7"


class TestHierarchy:
    """Family base classes."""

    def test_provider_errors_share_base(self):
        for err in (
            ProviderNetworkError("x", "r"),
            RateLimitedError("x"),
            InvalidApiKeyError("x"),
            ProviderUnavailableError("x", "r"),
            StreamParseError("x", "r"),
        ):
            assert isinstance(err, ProviderError)
            assert isinstance(err, ShellpilotError)

