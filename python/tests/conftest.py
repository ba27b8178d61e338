"""Pytest configuration and fixtures for shellpilot tests.

Test isolation strategy:
- Every test runs with SHELLPILOT_ENV=test so safe_kv raises on forbidden log keys
- Provider credentials and SHELLPILOT_* variables from the developer's shell are removed
- Settings are built without reading .env and the settings cache is cleared
- No test touches the network; HTTP is mocked with respx
"""

import os
from collections.abc import Callable

import httpx
import pytest
import structlog

from shellpilot.config import Settings, clear_settings_cache

_ISOLATED_ENV_VARS = ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "OLLAMA_HOST")


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Run each test against a clean, test-mode environment."""
    for name in list(os.environ):
        if name.startswith("SHELLPILOT_") or name in _ISOLATED_ENV_VARS:
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SHELLPILOT_ENV", "test")
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Build Settings from alias keyword arguments, ignoring any .env file.

    Example:
        settings = make_settings(OPENAI_API_KEY="sk-test", SHELLPILOT_MAX_TOKENS=10)
    """

    def _make(**values) -> Settings:
        values.setdefault("SHELLPILOT_ENV", "test")
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def httpx_client():
    """Create an httpx AsyncClient for testing."""
    return httpx.AsyncClient()


@pytest.fixture
def log_sink():
    """Configure structlog to capture events into a list.

    Returns a list that will contain all emitted log event dicts.
    After the test, structlog is reset to normal.
    """
    events: list[dict] = []
    original_config = structlog.get_config()

    def capture_processor(logger, method_name, event_dict):
        event_dict = event_dict.copy()
        event_dict["log_level"] = method_name
        events.append(event_dict)
        raise structlog.DropEvent

    structlog.configure(
        processors=[capture_processor],
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    yield events

    structlog.configure(**original_config)
