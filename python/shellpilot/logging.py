"""structlog setup for shellpilot.

stdout is reserved for the conversation and command output, so every log
record is rendered to stderr, as console lines by default or as JSON lines
with ``SHELLPILOT_LOG_JSON=true``.

Records emitted while a turn is in flight pick up ``session_id``, ``turn_id``
and ``provider`` from context variables, so call sites only pass what is
specific to the event:

    log = get_logger(__name__)
    log.info("provider.request.started", model_name="gpt-4o-mini", prompt_chars=812)
"""

import logging
import sys
from contextvars import ContextVar

import structlog

session_id_var: ContextVar[str | None] = ContextVar("session_id", default=None)
turn_id_var: ContextVar[str | None] = ContextVar("turn_id", default=None)
provider_var: ContextVar[str | None] = ContextVar("provider", default=None)

_CONTEXT_FIELDS = (
    ("session_id", session_id_var),
    ("turn_id", turn_id_var),
    ("provider", provider_var),
)

# Libraries whose INFO lines would land between streamed tokens.
_NOISY_LOGGERS = ("httpx", "httpcore")


def add_turn_context(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    """structlog processor: fill in the turn correlation fields that are set.

    A field passed explicitly at the call site is left alone.
    """
    for field, var in _CONTEXT_FIELDS:
        value = var.get()
        if value:
            event_dict.setdefault(field, value)
    return event_dict


def _pre_chain() -> list:
    return [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_turn_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def configure_logging(json_format: bool = True, level: str = "INFO") -> None:
    """Route structlog and stdlib logging through one stderr handler.

    Safe to call more than once; the root handlers are replaced each time.

    Args:
        json_format: Render JSON lines instead of the dev console format.
        level: Minimum level name, case-insensitive.
    """
    chain = _pre_chain()
    renderer = structlog.processors.JSONRenderer() if json_format else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[*chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def configure_from_settings(settings) -> None:
    """Apply SHELLPILOT_LOG_JSON and SHELLPILOT_LOG_LEVEL from a Settings object."""
    configure_logging(json_format=settings.log_json, level=settings.log_level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def set_session_context(session_id: str | None) -> None:
    session_id_var.set(session_id)


def set_turn_context(turn_id: str | None, provider: str | None = None) -> None:
    """Mark the start of a turn. ``provider`` is only replaced when given."""
    turn_id_var.set(turn_id)
    if provider is not None:
        provider_var.set(provider)


def clear_turn_context() -> None:
    """Drop turn and provider ids; the session id outlives the turn."""
    turn_id_var.set(None)
    provider_var.set(None)


def get_turn_id() -> str | None:
    return turn_id_var.get()
