"""Application settings loaded from environment variables.

Environment Configuration:
    SHELLPILOT_ENV: Deployment environment (local | test | prod)
    SHELLPILOT_LOG_LEVEL: Root log level (default WARNING)
    SHELLPILOT_LOG_JSON: Emit JSON logs on stderr instead of console lines
    SHELLPILOT_DEFAULT_PROVIDER: Preferred provider id (openai | anthropic | ollama)

Provider Configuration:
    OPENAI_API_KEY / SHELLPILOT_OPENAI_BASE_URL / SHELLPILOT_OPENAI_MODEL
    ANTHROPIC_API_KEY / SHELLPILOT_ANTHROPIC_BASE_URL / SHELLPILOT_ANTHROPIC_MODEL
    OLLAMA_HOST / SHELLPILOT_OLLAMA_MODEL
    SHELLPILOT_REQUEST_TIMEOUT_S: Per-request read timeout in seconds

Safety Configuration:
    SHELLPILOT_BLOCKED_PATTERNS: JSON list of denylist patterns. Replaces the
        defaults entirely. Prefix a pattern with "re:" to use a regex.
    SHELLPILOT_MAX_FILE_BYTES: Largest existing file that will be diffed

A provider without a key is still configured; it is excluded at registration
time when its adapter rejects the config.
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings

from shellpilot.providers.types import ProviderConfig

DEFAULT_BLOCKED_PATTERNS = (
    "rm -rf /",
    "rm -rf ~",
    "> /dev/sda",
    "mkfs",
    ":(){:|:&};:",
)

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    PROD = "prod"


class Settings(BaseSettings):
    """Application configuration.

    Settings are loaded from environment variables and an optional .env file.
    Validation rules:
    - log level must be a stdlib level name
    - all size and count limits must be positive
    - default provider, when set, must be a known provider id
    """

    shellpilot_env: Environment = Field(default=Environment.LOCAL, alias="SHELLPILOT_ENV")
    log_level: str = Field(default="WARNING", alias="SHELLPILOT_LOG_LEVEL")
    log_json: bool = Field(default=False, alias="SHELLPILOT_LOG_JSON")
    default_provider: str | None = Field(default=None, alias="SHELLPILOT_DEFAULT_PROVIDER")

    # OpenAI
    openai_api_key: SecretStr | None = Field(default=None, alias="OPENAI_API_KEY")
    openai_base_url: str = Field(default="https://api.openai.com/v1", alias="SHELLPILOT_OPENAI_BASE_URL")
    openai_model: str = Field(default="gpt-4o", alias="SHELLPILOT_OPENAI_MODEL")

    # Anthropic
    anthropic_api_key: SecretStr | None = Field(default=None, alias="ANTHROPIC_API_KEY")
    anthropic_base_url: str = Field(
        default="https://api.anthropic.com/v1", alias="SHELLPILOT_ANTHROPIC_BASE_URL"
    )
    anthropic_model: str = Field(default="claude-sonnet-4-20250514", alias="SHELLPILOT_ANTHROPIC_MODEL")
    anthropic_version: str = Field(default="2023-06-01", alias="SHELLPILOT_ANTHROPIC_VERSION")

    # Ollama (local, no key)
    ollama_host: str = Field(default="http://localhost:11434", alias="OLLAMA_HOST")
    ollama_model: str = Field(default="llama3.2", alias="SHELLPILOT_OLLAMA_MODEL")

    # Request shaping
    request_timeout_s: float = Field(default=60.0, alias="SHELLPILOT_REQUEST_TIMEOUT_S")
    max_tokens: int = Field(default=4096, alias="SHELLPILOT_MAX_TOKENS")
    temperature: float | None = Field(default=None, alias="SHELLPILOT_TEMPERATURE")
    history_turns: int = Field(default=10, alias="SHELLPILOT_HISTORY_TURNS")
    max_prompt_chars: int = Field(default=100_000, alias="SHELLPILOT_MAX_PROMPT_CHARS")
    stream_buffer_limit_bytes: int = Field(
        default=1024 * 1024, alias="SHELLPILOT_STREAM_BUFFER_LIMIT_BYTES"
    )  # 1 MiB
    cancel_timeout_s: float = Field(default=2.0, alias="SHELLPILOT_CANCEL_TIMEOUT_S")

    # Safety + execution
    blocked_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_BLOCKED_PATTERNS), alias="SHELLPILOT_BLOCKED_PATTERNS"
    )
    max_file_bytes: int = Field(default=1024 * 1024, alias="SHELLPILOT_MAX_FILE_BYTES")  # 1 MiB
    output_tail_chars: int = Field(default=4000, alias="SHELLPILOT_OUTPUT_TAIL_CHARS")
    stop_grace_s: float = Field(default=2.0, alias="SHELLPILOT_STOP_GRACE_S")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def validate_limits(self) -> "Settings":
        """Reject nonsensical limits and unknown provider ids."""
        self.log_level = self.log_level.upper()
        if self.log_level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"SHELLPILOT_LOG_LEVEL must be one of {', '.join(VALID_LOG_LEVELS)}, got {self.log_level}"
            )

        non_positive = [
            alias
            for alias, value in (
                ("SHELLPILOT_MAX_TOKENS", self.max_tokens),
                ("SHELLPILOT_HISTORY_TURNS", self.history_turns),
                ("SHELLPILOT_MAX_PROMPT_CHARS", self.max_prompt_chars),
                ("SHELLPILOT_STREAM_BUFFER_LIMIT_BYTES", self.stream_buffer_limit_bytes),
                ("SHELLPILOT_CANCEL_TIMEOUT_S", self.cancel_timeout_s),
                ("SHELLPILOT_MAX_FILE_BYTES", self.max_file_bytes),
                ("SHELLPILOT_OUTPUT_TAIL_CHARS", self.output_tail_chars),
                ("SHELLPILOT_STOP_GRACE_S", self.stop_grace_s),
            )
            if value <= 0
        ]
        if non_positive:
            raise ValueError(f"Settings must be positive: {', '.join(non_positive)}")

        if self.default_provider is not None:
            self.default_provider = self.default_provider.strip().lower() or None
            if self.default_provider not in (None, "openai", "anthropic", "ollama"):
                raise ValueError(f"Unknown SHELLPILOT_DEFAULT_PROVIDER: {self.default_provider}")

        return self

    def provider_configs(self) -> dict[str, ProviderConfig]:
        """Build one ProviderConfig per known provider.

        Configs are built even when a key is missing; adapters decide whether
        that is acceptable.
        """
        return {
            "openai": ProviderConfig(
                base_url=self.openai_base_url,
                api_key=self.openai_api_key,
                model=self.openai_model,
                timeout_s=self.request_timeout_s,
            ),
            "anthropic": ProviderConfig(
                base_url=self.anthropic_base_url,
                api_key=self.anthropic_api_key,
                model=self.anthropic_model,
                timeout_s=self.request_timeout_s,
            ),
            "ollama": ProviderConfig(
                base_url=self.ollama_host,
                api_key=None,
                model=self.ollama_model,
                timeout_s=self.request_timeout_s,
            ),
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
