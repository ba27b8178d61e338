"""Test doubles shared across the suite.

Provides:
- ScriptedUI: terminal double that answers prompts from a script and records
  everything rendered to it
- FakeAdapter: provider adapter whose stream is scripted in memory
- sse() / ndjson(): wire-format builders for stream bodies
"""

import asyncio
import json
from collections.abc import AsyncIterator

from shellpilot.errors import ShellpilotError
from shellpilot.intent import CommandProposal
from shellpilot.providers.adapter import ProviderAdapter
from shellpilot.providers.decoders import OllamaNDJSONDecoder, StreamDecoder
from shellpilot.providers.types import CompletionChunk, CompletionRequest, ProviderConfig
from shellpilot.safety.states import FilePreview


class ScriptedUI:
    """Answers prompts and edits from fixed scripts.

    A scripted value that is an exception instance is raised instead of
    returned, which simulates EOF or Ctrl-C at the prompt.
    """

    def __init__(self, answers: list | None = None, edits: list | None = None):
        self.answers = list(answers or [])
        self.edits = list(edits or [])
        self.prompts: list[str] = []
        self.edit_requests: list[tuple[str, str | None]] = []
        self.commands: list[CommandProposal] = []
        self.previews: list[FilePreview] = []
        self.rejections: list[ShellpilotError] = []
        self.notices: list[str] = []
        self.errors: list[ShellpilotError] = []
        self.streamed: list[str] = []
        self.output: list[tuple[str, str]] = []
        self.stream_ends = 0

    def show_command(self, proposal: CommandProposal) -> None:
        self.commands.append(proposal)

    def show_file_preview(self, preview: FilePreview) -> None:
        self.previews.append(preview)

    def show_rejection(self, error: ShellpilotError) -> None:
        self.rejections.append(error)

    def show_notice(self, message: str) -> None:
        self.notices.append(message)

    def show_error(self, error: ShellpilotError) -> None:
        self.errors.append(error)

    def stream_text(self, text: str) -> None:
        self.streamed.append(text)

    def end_stream(self) -> None:
        self.stream_ends += 1

    def write(self, stream: str, text: str) -> None:
        self.output.append((stream, text))

    def ask(self, prompt: str) -> str | None:
        self.prompts.append(prompt)
        return self._next(self.answers)

    def edit_text(self, text: str, *, filename: str | None = None) -> str | None:
        self.edit_requests.append((text, filename))
        return self._next(self.edits)

    @staticmethod
    def _next(script: list):
        if not script:
            raise AssertionError("UI script exhausted")
        value = script.pop(0)
        if isinstance(value, BaseException):
            raise value
        return value

    def output_text(self, stream: str = "stdout") -> str:
        return "".join(text for name, text in self.output if name == stream)


class FakeAdapter(ProviderAdapter):
    """Adapter whose completion is scripted in memory.

    Args:
        chunks: Texts yielded in order.
        error: Raised after all chunks are yielded.
        hang: If set, the stream blocks after the chunks until cancelled.
    """

    requires_api_key = False

    def __init__(
        self,
        provider_id: str = "fake",
        chunks: list[str] | None = None,
        *,
        error: Exception | None = None,
        hang: bool = False,
        model: str = "fake-model",
    ):
        super().__init__(None, ProviderConfig(base_url="http://fake.test", model=model))
        self.provider_id = provider_id
        self.chunks = list(chunks or [])
        self.error = error
        self.hang = hang
        self.requests: list[CompletionRequest] = []
        self.closed = False

    async def complete(self, request: CompletionRequest) -> AsyncIterator[CompletionChunk]:
        self.requests.append(request)
        try:
            for text in self.chunks:
                await asyncio.sleep(0)
                yield CompletionChunk(text=text)
            if self.error is not None:
                raise self.error
            if self.hang:
                await asyncio.Event().wait()
        finally:
            self.closed = True

    def _new_decoder(self) -> StreamDecoder:
        return OllamaNDJSONDecoder()

    def _build_headers(self) -> dict[str, str]:
        return {}

    def _build_request_body(self, req: CompletionRequest) -> dict:
        return {}


def sse(*payloads, event: str | None = None) -> bytes:
    """SSE body with one data: record per payload (dicts are JSON-encoded)."""
    records = []
    for payload in payloads:
        data = payload if isinstance(payload, str) else json.dumps(payload)
        prefix = f"event: {event}\n" if event else ""
        records.append(f"{prefix}data: {data}\n\n")
    return "".join(records).encode("utf-8")


def anthropic_sse(*payloads: dict) -> bytes:
    """SSE body using each payload's type as its event: line, as Anthropic does."""
    return b"".join(sse(payload, event=payload["type"]) for payload in payloads)


def ndjson(*payloads: dict) -> bytes:
    return "".join(json.dumps(payload) + "\n" for payload in payloads).encode("utf-8")
