"""Tests for logging and redaction.

Covers:
- Redaction utilities (hash_text, safe_kv)
- Turn ContextVars (session_id, turn_id, provider)
- configure_logging writes to stderr, never stdout
- No sensitive data in logs (prompt, api_key, command text)
"""

import json
import logging

import pytest
import structlog

from shellpilot.logging import (
    add_turn_context,
    clear_turn_context,
    configure_logging,
    configure_from_settings,
    get_logger,
    get_turn_id,
    set_session_context,
    set_turn_context,
)
from shellpilot.redact import FORBIDDEN_KEYS, hash_text, safe_kv

# ─── Redaction Unit Tests ────────────────────────────────────────────────


class TestHashText:
    """Tests for hash_text function."""

    def test_stable_output(self):
        """Same input always produces same hash."""
        assert hash_text("ls -la") == hash_text("ls -la")

    def test_different_inputs_differ(self):
        assert hash_text("ls") != hash_text("ls -la")

    def test_returns_hex_string(self):
        """Output is a 64-char hex string (SHA-256)."""
        result = hash_text("test")
        assert len(result) == 64
        assert all(c in "0123456789abcdef" for c in result)


class TestSafeKv:
    """Tests for the safe_kv log guard."""

    def test_allows_safe_keys(self):
        result = safe_kv(provider="openai", latency_ms=12)
        assert result == {"provider": "openai", "latency_ms": 12}

    def test_allows_redacted_suffix_keys(self):
        result = safe_kv(command_chars=10, command_sha256="abc", prompt_length=3)
        assert set(result) == {"command_chars", "command_sha256", "prompt_length"}

    @pytest.mark.parametrize("key", sorted(FORBIDDEN_KEYS))
    def test_all_forbidden_keys_blocked(self, key):
        with pytest.raises(ValueError, match="Forbidden log keys"):
            safe_kv(**{key: "value"})

    def test_prod_strips_instead_of_raising(self):
        result = safe_kv(_env="prod", command="rm -rf /", provider="openai")
        assert result == {"provider": "openai"}


# ─── Context Injection ────────────────────────────────────────────────


class TestTurnContext:
    """ContextVars are injected into every log event."""

    @pytest.fixture(autouse=True)
    def _reset_context(self):
        yield
        set_session_context(None)
        clear_turn_context()

    def test_all_context_injected(self):
        set_session_context("sess-1")
        set_turn_context("turn-1", provider="anthropic")
        event = add_turn_context(None, "info", {"event": "x"})
        assert event["session_id"] == "sess-1"
        assert event["turn_id"] == "turn-1"
        assert event["provider"] == "anthropic"

    def test_explicit_fields_win(self):
        set_turn_context("turn-1", provider="anthropic")
        event = add_turn_context(None, "info", {"event": "x", "provider": "ollama"})
        assert event["provider"] == "ollama"

    def test_clear_keeps_session(self):
        set_session_context("sess-1")
        set_turn_context("turn-1", provider="openai")
        clear_turn_context()
        event = add_turn_context(None, "info", {"event": "x"})
        assert event == {"event": "x", "session_id": "sess-1"}
        assert get_turn_id() is None

    def test_none_values_not_injected(self):
        event = add_turn_context(None, "info", {"event": "x"})
        assert event == {"event": "x"}


# ─── Log Output ─────────────────────────────────────────────────────


@pytest.fixture
def restore_logging():
    """Undo configure_logging after the test."""
    original_config = structlog.get_config()
    root_logger = logging.getLogger()
    original_handlers = list(root_logger.handlers)
    original_level = root_logger.level
    yield
    structlog.configure(**original_config)
    root_logger.handlers[:] = original_handlers
    root_logger.setLevel(original_level)


class TestConfigureLogging:
    """configure_logging output destination and format."""

    def test_json_logs_go_to_stderr(self, capsys, restore_logging):
        configure_logging(json_format=True, level="INFO")
        set_turn_context("turn-42", provider="openai")
        try:
            get_logger("shellpilot.test").info("test.event", **safe_kv(output_chars=5))
        finally:
            clear_turn_context()

        captured = capsys.readouterr()
        assert captured.out == ""
        record = json.loads(captured.err.strip().splitlines()[-1])
        assert record["event"] == "test.event"
        assert record["output_chars"] == 5
        assert record["turn_id"] == "turn-42"
        assert record["provider"] == "openai"
        assert record["level"] == "info"

    def test_level_filters(self, capsys, restore_logging):
        configure_logging(json_format=True, level="warning")
        get_logger("shellpilot.test").info("test.hidden")
        assert "test.hidden" not in capsys.readouterr().err

    def test_from_settings(self, capsys, restore_logging, make_settings):
        configure_from_settings(make_settings(SHELLPILOT_LOG_JSON="true", SHELLPILOT_LOG_LEVEL="error"))
        log = get_logger("shellpilot.test")
        log.warning("test.hidden")
        log.error("test.shown")

        lines = capsys.readouterr().err.strip().splitlines()
        assert [json.loads(line)["event"] for line in lines] == ["test.shown"]

    def test_httpx_silenced(self, restore_logging):
        configure_logging(level="DEBUG")
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING


class TestEventTaxonomy:
    """Event names are dotted and scoped by component."""

    VALID_PREFIXES = {
        "provider.",
        "decoder.",
        "intent.",
        "gate.",
        "scope.",
        "executor.",
        "session.",
        "signals.",
    }

    def test_event_names_use_valid_prefix(self):
        known_events = [
            "provider.request.started",
            "provider.request.finished",
            "provider.request.failed",
            "provider.registered",
            "provider.registration.skipped",
            "provider.health.ok",
            "provider.health.failed",
            "decoder.record.dropped",
            "intent.classified",
            "gate.proposed",
            "gate.approved",
            "gate.edited",
            "gate.rejected",
            "gate.cancelled",
            "executor.command.started",
            "executor.command.finished",
            "executor.file.written",
            "session.turn.started",
            "session.turn.failed",
        ]
        for event in known_events:
            assert any(event.startswith(prefix) for prefix in self.VALID_PREFIXES), (
                f"Event {event} does not match any valid prefix"
            )
