"""Session orchestration: one turn at a time.

A turn is:
1. detect explicit mode markers in the user input
2. build the request from recent history
3. record the user turn and stream the completion to the terminal, racing
   the cancel event
4. record the assistant turn and classify it
5. pass any proposal through the safety gate
6. execute what was approved and append an execution note to the store

The active provider selection is owned by the Session, so independent sessions
never share it. Provider errors are rendered with a hint and returned as
FAILED; they never escape ask().
"""

import asyncio
import contextlib
import uuid
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol

from shellpilot.conversations import ConversationStore, InMemoryConversationStore
from shellpilot.errors import (
    CommandCancelledError,
    InvalidConfigFormatError,
    ShellpilotError,
)
from shellpilot.execute.executor import ActionExecutor
from shellpilot.execute.files import FileWriter, FileWriteResult
from shellpilot.execute.runner import CommandResult, CommandRunner
from shellpilot.intent import Explanation, Intent, classify, detect_mode
from shellpilot.logging import clear_turn_context, get_logger, set_session_context, set_turn_context
from shellpilot.providers.adapter import ProviderAdapter
from shellpilot.providers.factory import ProviderFactory
from shellpilot.providers.prompt import PromptTooLargeError, build_request
from shellpilot.providers.types import CompletionRequest
from shellpilot.redact import safe_kv
from shellpilot.safety.confirm import ConfirmationUI
from shellpilot.safety.gate import SafetyGate
from shellpilot.safety.patterns import CommandPolicy
from shellpilot.safety.scope import ScopeResolver
from shellpilot.safety.states import GateResult, GateState
from shellpilot.signals import interrupt_event

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CANCELLED = 130

NOTE_PREFIX = "[shellpilot]"


class TerminalUI(ConfirmationUI, Protocol):
    """Everything a session renders to, beyond the confirmation contract."""

    def stream_text(self, text: str) -> None: ...

    def end_stream(self) -> None: ...

    def show_error(self, error: ShellpilotError) -> None: ...

    def write(self, stream: str, text: str) -> None: ...


class TurnOutcome(str, Enum):
    ANSWERED = "answered"
    EXECUTED = "executed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class TurnResult:
    """Outcome of one session turn.

    Attributes:
        outcome: What happened overall
        response_text: Assistant text received (possibly partial if cancelled)
        intent: Classified intent, if the response completed
        gate: Safety gate result for proposals
        execution: Command or file write result for executed proposals
        error: Error that ended the turn, if any
    """

    outcome: TurnOutcome
    response_text: str = ""
    intent: Intent | None = None
    gate: GateResult | None = None
    execution: CommandResult | FileWriteResult | None = None
    error: Exception | None = None

    @property
    def exit_code(self) -> int:
        return exit_code_for(self)


def exit_code_for(value: Exception | TurnResult | None) -> int:
    """Process exit status for an error or a turn.

    0 success, 130 user cancellation, 3 provider/network failure,
    2 configuration failure, 4 policy rejection, 1 anything else.
    A command that ran and exited non-zero is still a successful turn.
    """
    if value is None:
        return EXIT_OK
    if isinstance(value, ShellpilotError):
        return value.exit_status
    if isinstance(value, Exception):
        return EXIT_FAILURE
    if value.error is not None:
        return exit_code_for(value.error)
    if value.outcome == TurnOutcome.CANCELLED:
        return EXIT_CANCELLED
    if value.outcome == TurnOutcome.FAILED:
        return EXIT_FAILURE
    return EXIT_OK


class Session:
    """One interactive conversation."""

    def __init__(
        self,
        factory: ProviderFactory,
        store: ConversationStore,
        terminal: TerminalUI,
        gate: SafetyGate,
        executor: ActionExecutor,
        settings,
        cwd: Path | None = None,
    ):
        """Initialize session.

        Args:
            factory: Provider registry.
            store: Conversation history collaborator.
            terminal: Renderer and input source.
            gate: Safety gate (sharing the same terminal as its UI).
            executor: Runs approved proposals.
            settings: shellpilot.config.Settings instance.
            cwd: Working directory for path resolution and commands
                (defaults to the process working directory at each turn).
        """
        self._factory = factory
        self._store = store
        self._terminal = terminal
        self._gate = gate
        self._executor = executor
        self._settings = settings
        self._cwd = cwd
        self._active_provider: str | None = None
        self.session_id = uuid.uuid4().hex
        set_session_context(self.session_id)

    @property
    def active_provider(self) -> str:
        """Provider id the next request will go to."""
        return self._factory.resolve_default_name(self._active_provider)

    def switch_provider(self, name: str) -> str:
        """Route subsequent requests to a registered provider.

        History is untouched; it belongs to the store.

        Raises:
            InvalidConfigFormatError: If name is not registered.
        """
        if self._factory.get(name) is None:
            available = ", ".join(self._factory.list()) or "none"
            raise InvalidConfigFormatError("provider", f"'{name}' is not configured (available: {available})")
        self._active_provider = name
        logger.info("session.provider.switched", **safe_kv(provider=name))
        return name

    async def ask(self, user_input: str, cancel: asyncio.Event | None = None) -> TurnResult:
        """Run one full turn.

        Args:
            user_input: Raw text typed by the user (mode markers allowed).
            cancel: Event that cancels the in-flight stream or command. When
                omitted, Ctrl-C is bridged to an event for the streaming and
                execution phases only, so it still answers "no" at prompts.

        Returns:
            TurnResult describing what happened.
        """
        turn_id = uuid.uuid4().hex
        set_turn_context(turn_id)
        try:
            return await self._run_turn(turn_id, user_input, cancel)
        finally:
            clear_turn_context()

    async def _run_turn(self, turn_id: str, user_input: str, cancel: asyncio.Event | None) -> TurnResult:
        mode, text = detect_mode(user_input)
        if not text:
            return TurnResult(outcome=TurnOutcome.CANCELLED)

        try:
            adapter = self._factory.get_default(self._active_provider)
            set_turn_context(turn_id, provider=adapter.provider_id)
            request = build_request(
                text,
                self._store.recent(self._settings.history_turns),
                max_tokens=self._settings.max_tokens,
                temperature=self._settings.temperature,
                mode=mode.value,
                max_chars=self._settings.max_prompt_chars,
            )
        except ShellpilotError as e:
            self._terminal.show_error(e)
            return TurnResult(outcome=TurnOutcome.FAILED, error=e)
        except PromptTooLargeError as e:
            self._terminal.show_notice(f"{e}. Shorten the message or start a new session.")
            return TurnResult(outcome=TurnOutcome.FAILED, error=e)

        logger.info("session.turn.started", **safe_kv(mode=mode.value, message_chars=len(text)))
        self._store.append("user", text)

        try:
            async with self._cancel_scope(cancel) as event:
                response_text, interrupted = await self._stream(adapter, request, event)
        except ShellpilotError as e:
            self._terminal.show_error(e)
            logger.info("session.turn.failed", **safe_kv(error_code=e.code.value))
            return TurnResult(outcome=TurnOutcome.FAILED, error=e)

        if response_text:
            self._store.append("assistant", response_text)

        if interrupted:
            self._terminal.show_notice("Cancelled.")
            logger.info("session.turn.cancelled", **safe_kv(response_chars=len(response_text)))
            return TurnResult(
                outcome=TurnOutcome.CANCELLED,
                response_text=response_text,
                error=CommandCancelledError("Response cancelled by user"),
            )

        intent = classify(response_text, self._working_dir(), mode)
        if isinstance(intent, Explanation):
            return TurnResult(outcome=TurnOutcome.ANSWERED, response_text=response_text, intent=intent)

        gate_result = self._gate.review(intent, cwd=self._cwd)
        if gate_result.state == GateState.REJECTED:
            self._note(f"Proposal rejected: {gate_result.error.message}")
            return TurnResult(
                outcome=TurnOutcome.REJECTED,
                response_text=response_text,
                intent=intent,
                gate=gate_result,
                error=gate_result.error,
            )
        if gate_result.state == GateState.CANCELLED:
            self._note(f"Proposal not applied ({gate_result.reason}).")
            return TurnResult(
                outcome=TurnOutcome.CANCELLED,
                response_text=response_text,
                intent=intent,
                gate=gate_result,
            )

        return await self._execute(gate_result, response_text, intent, cancel)

    async def _execute(
        self,
        gate_result: GateResult,
        response_text: str,
        intent: Intent,
        cancel: asyncio.Event | None,
    ) -> TurnResult:
        try:
            async with self._cancel_scope(cancel) as event:
                execution = await self._executor.execute(
                    gate_result, self._terminal, cancel=event, cwd=self._cwd
                )
        except ShellpilotError as e:
            self._terminal.show_error(e)
            self._note(f"Action failed: {e.message}")
            return TurnResult(
                outcome=TurnOutcome.FAILED,
                response_text=response_text,
                intent=intent,
                gate=gate_result,
                error=e,
            )

        if isinstance(execution, CommandResult):
            if execution.cancelled:
                self._terminal.show_notice("Command cancelled.")
                self._note("Command was cancelled by the user.")
                return TurnResult(
                    outcome=TurnOutcome.CANCELLED,
                    response_text=response_text,
                    intent=gate_result.intent,
                    gate=gate_result,
                    execution=execution,
                )
            if execution.exit_code != 0:
                self._terminal.show_notice(f"Command exited with status {execution.exit_code}.")
            self._note(f"Command exited with status {execution.exit_code}.")
        else:
            self._terminal.show_notice(f"Wrote {execution.bytes_written} bytes to {execution.path}.")
            self._note(f"Wrote {execution.bytes_written} bytes to {execution.path}.")

        return TurnResult(
            outcome=TurnOutcome.EXECUTED,
            response_text=response_text,
            intent=gate_result.intent,
            gate=gate_result,
            execution=execution,
        )

    async def _stream(
        self,
        adapter: ProviderAdapter,
        request: CompletionRequest,
        cancel: asyncio.Event,
    ) -> tuple[str, bool]:
        """Stream a completion to the terminal until it ends or cancel fires.

        Returns:
            (text received, whether the stream was interrupted)

        Raises:
            ProviderError: If the stream fails before completion.
        """
        parts: list[str] = []

        async def consume() -> None:
            async with contextlib.aclosing(adapter.complete(request)) as stream:
                async for chunk in stream:
                    parts.append(chunk.text)
                    self._terminal.stream_text(chunk.text)

        consumer = asyncio.ensure_future(consume())
        cancel_wait = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({consumer, cancel_wait}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            consumer.cancel()
            raise
        finally:
            cancel_wait.cancel()

        if consumer.done():
            self._terminal.end_stream()
            consumer.result()
            return "".join(parts), False

        consumer.cancel()
        done, _ = await asyncio.wait({consumer}, timeout=self._settings.cancel_timeout_s)
        if not done:
            logger.warning("session.stream.cancel_timeout")
        elif not consumer.cancelled() and consumer.exception() is not None:
            logger.info(
                "session.stream.error_after_cancel",
                **safe_kv(error_type=type(consumer.exception()).__name__),
            )
        self._terminal.end_stream()
        return "".join(parts), True

    @contextlib.asynccontextmanager
    async def _cancel_scope(self, cancel: asyncio.Event | None) -> AsyncIterator[asyncio.Event]:
        if cancel is not None:
            yield cancel
            return
        with interrupt_event() as event:
            yield event

    def _note(self, message: str) -> None:
        self._store.append("user", f"{NOTE_PREFIX} {message}")

    def _working_dir(self) -> Path:
        return self._cwd if self._cwd is not None else Path.cwd()


def create_session(
    settings,
    factory: ProviderFactory,
    terminal: TerminalUI,
    *,
    store: ConversationStore | None = None,
    cwd: Path | None = None,
) -> Session:
    """Wire a Session from settings.

    Raises:
        InvalidConfigFormatError: If a configured blocked pattern is an invalid regex.
    """
    writer = FileWriter(max_file_bytes=settings.max_file_bytes)
    runner = CommandRunner(tail_chars=settings.output_tail_chars, stop_grace_s=settings.stop_grace_s)
    gate = SafetyGate(CommandPolicy(settings.blocked_patterns), ScopeResolver(), writer, terminal)
    return Session(
        factory,
        store if store is not None else InMemoryConversationStore(),
        terminal,
        gate,
        ActionExecutor(runner, writer),
        settings,
        cwd=cwd,
    )
