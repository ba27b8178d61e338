"""SIGINT → asyncio.Event bridge for cancelling the in-flight turn."""

import asyncio
import signal
from collections.abc import Iterator
from contextlib import contextmanager

from shellpilot.logging import get_logger

logger = get_logger(__name__)


@contextmanager
def interrupt_event() -> Iterator[asyncio.Event]:
    """Install a SIGINT handler on the running loop that sets an Event.

    While installed, Ctrl-C cancels the current turn instead of raising
    KeyboardInterrupt. The previous handling is restored on exit. Where the
    loop does not support signal handlers (Windows, non-main thread) the event
    is returned but never set by a signal.

    Must be called from inside a running event loop.
    """
    loop = asyncio.get_running_loop()
    event = asyncio.Event()
    installed = False
    try:
        loop.add_signal_handler(signal.SIGINT, event.set)
        installed = True
    except (NotImplementedError, RuntimeError, ValueError) as e:
        logger.debug("signals.handler_unavailable", error_type=type(e).__name__)

    try:
        yield event
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)
