"""Keeps secrets and user text out of log lines.

Log fields describe the shape of a turn, never its words. Commands, prompts,
model output, file bodies and credentials are reported by size or digest:

    logger.info("command.started", **safe_kv(
        command_chars=len(command),
        command_sha256=hash_text(command),
    ))

A field named after raw text (``command=...``) is a programming error. Under
SHELLPILOT_ENV=local or test it raises; in any other environment the field is
dropped and a ``safe_kv_violation`` warning is emitted instead.
"""

import hashlib
import os

import structlog

# Field names that would carry raw text or credentials.
FORBIDDEN_KEYS = frozenset(
    {
        "api_key",
        "bearer",
        "token",
        "secret",
        "password",
        "prompt",
        "content",
        "message_text",
        "response_text",
        "command",
        "new_content",
        "stdout",
        "stderr",
        "raw_body",
    }
)

# A key ending in one of these already holds a size or digest.
REDACTED_SUFFIXES = ("_sha256", "_hash", "_length", "_chars")

_STRICT_ENVS = ("local", "test")


def hash_text(value: str) -> str:
    """Hex SHA-256 of ``value``, for correlating log lines about the same text."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def _violations(fields: dict) -> list[str]:
    return [
        key
        for key in fields
        if key in FORBIDDEN_KEYS and not key.endswith(REDACTED_SUFFIXES)
    ]


def safe_kv(*, _env: str | None = None, **kwargs) -> dict:
    """Check log fields before they reach a logger.

    Args:
        _env: Environment name to check against. Defaults to SHELLPILOT_ENV.
        **kwargs: Log fields.

    Returns:
        The fields, minus any forbidden ones when running outside local/test.

    Raises:
        ValueError: A forbidden field was passed under local or test.
    """
    bad = _violations(kwargs)
    if not bad:
        return kwargs

    env = _env or os.environ.get("SHELLPILOT_ENV", "local")
    if env in _STRICT_ENVS:
        raise ValueError(f"Forbidden log keys without redacted suffix: {bad}")

    structlog.get_logger("shellpilot.redact").warning("safe_kv_violation", forbidden_keys=bad)
    return {key: value for key, value in kwargs.items() if key not in bad}
