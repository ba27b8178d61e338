"""Incremental wire decoders for streamed completions.

Network reads never line up with protocol records, so each decoder buffers raw
bytes and only decodes a record once its boundary has arrived:

- SSE (OpenAI, Anthropic): a record ends at a blank line (\\n\\n, \\r\\n\\r\\n or \\r\\r)
- NDJSON (Ollama): a record ends at \\n

Decoding happens on whole records, so a multi-byte UTF-8 sequence split across
two reads is reassembled before it is decoded.

Once the terminal marker is seen the decoder is done: the buffer is dropped and
every later feed() returns nothing, including bytes that arrived in the same
read as the marker.

Malformed records are dropped with a warning that carries only the provider and
the record length. Provider-side error events are fatal.
"""

import json
import re
from abc import ABC, abstractmethod

from shellpilot.errors import ProviderUnavailableError, StreamParseError
from shellpilot.logging import get_logger
from shellpilot.providers.types import CompletionChunk
from shellpilot.redact import safe_kv

logger = get_logger(__name__)

DEFAULT_MAX_BUFFER_BYTES = 1024 * 1024  # 1 MiB

_SSE_BOUNDARY = re.compile(rb"\r\n\r\n|\n\n|\r\r")


class StreamDecoder(ABC):
    """Base class for byte-stream → CompletionChunk decoders.

    Subclasses provide record framing (_next_record) and record interpretation
    (_handle_record). A decoder instance serves exactly one response.
    """

    provider_id: str = ""

    def __init__(self, max_buffer_bytes: int = DEFAULT_MAX_BUFFER_BYTES):
        self._buffer = bytearray()
        self._max_buffer_bytes = max_buffer_bytes
        self._done = False

    @property
    def done(self) -> bool:
        """Whether the terminal marker has been seen."""
        return self._done

    def feed(self, data: bytes) -> list[CompletionChunk]:
        """Consume one network read and return any chunks it completes.

        Raises:
            StreamParseError: If the unterminated remainder outgrows the buffer limit.
            ProviderUnavailableError: If the provider reported an error mid-stream.
        """
        if self._done:
            return []

        self._buffer.extend(data)
        chunks: list[CompletionChunk] = []
        while not self._done:
            record = self._next_record()
            if record is None:
                break
            chunks.extend(self._handle_record(record))

        if self._done:
            self._buffer.clear()
        elif len(self._buffer) > self._max_buffer_bytes:
            size = len(self._buffer)
            self._buffer.clear()
            raise StreamParseError(
                self.provider_id,
                f"no record boundary within {self._max_buffer_bytes} bytes (buffered {size})",
            )
        return chunks

    def finish(self) -> list[CompletionChunk]:
        """Flush an unterminated trailing record at EOF."""
        if self._done or not self._buffer.strip():
            self._buffer.clear()
            return []
        record = bytes(self._buffer)
        self._buffer.clear()
        return self._handle_record(record)

    def _mark_done(self) -> None:
        self._done = True

    def _drop(self, record: bytes, reason: str) -> list[CompletionChunk]:
        logger.warning(
            "decoder.record.dropped",
            **safe_kv(provider=self.provider_id, reason=reason, record_length=len(record)),
        )
        return []

    def _load_json(self, raw: str, record: bytes) -> dict | None:
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            self._drop(record, "invalid_json")
            return None
        if not isinstance(payload, dict):
            self._drop(record, "not_an_object")
            return None
        return payload

    @abstractmethod
    def _next_record(self) -> bytes | None:
        """Pop one complete record off the buffer, or None if none is complete."""

    @abstractmethod
    def _handle_record(self, record: bytes) -> list[CompletionChunk]:
        """Interpret one complete record. May call _mark_done()."""


class SSEDecoder(StreamDecoder):
    """Server-Sent Events framing shared by the OpenAI and Anthropic decoders."""

    def _next_record(self) -> bytes | None:
        match = _SSE_BOUNDARY.search(self._buffer)
        if match is None:
            return None
        record = bytes(self._buffer[: match.start()])
        del self._buffer[: match.end()]
        return record

    def _handle_record(self, record: bytes) -> list[CompletionChunk]:
        event, data = self._parse_event(record)
        if event is None and data is None:
            return []
        return self._handle_event(event, data, record)

    @staticmethod
    def _parse_event(record: bytes) -> tuple[str | None, str | None]:
        """Split an SSE block into its event name and joined data lines.

        Comment lines (leading ':') and unknown fields are ignored.
        """
        event: str | None = None
        data_lines: list[str] = []
        for line in record.decode("utf-8", errors="replace").splitlines():
            if not line or line.startswith(":"):
                continue
            field, _, value = line.partition(":")
            if value.startswith(" "):
                value = value[1:]
            if field == "event":
                event = value
            elif field == "data":
                data_lines.append(value)
        data = "\n".join(data_lines) if data_lines else None
        return event, data

    @abstractmethod
    def _handle_event(self, event: str | None, data: str | None, record: bytes) -> list[CompletionChunk]:
        """Interpret one parsed SSE event."""


class OpenAISSEDecoder(SSEDecoder):
    """OpenAI chat-completions stream.

    data: {"choices":[{"delta":{"content":"..."}}]}
    data: [DONE]
    """

    provider_id = "openai"

    def _handle_event(self, event: str | None, data: str | None, record: bytes) -> list[CompletionChunk]:
        if data is None:
            return []
        if data.strip() == "[DONE]":
            self._mark_done()
            return []

        payload = self._load_json(data, record)
        if payload is None:
            return []

        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return []
        delta = choices[0].get("delta")
        if not isinstance(delta, dict):
            return []
        text = delta.get("content")
        if isinstance(text, str) and text:
            return [CompletionChunk(text=text)]
        return []


class AnthropicSSEDecoder(SSEDecoder):
    """Anthropic messages stream.

    The JSON "type" field is the discriminator; the SSE event: line is the
    fallback when a payload omits it. Only content_block_delta carries text.
    Unknown types (ping, message_start, content_block_start, ...) are ignored.
    """

    provider_id = "anthropic"

    def _handle_event(self, event: str | None, data: str | None, record: bytes) -> list[CompletionChunk]:
        if data is None:
            payload: dict = {}
        else:
            loaded = self._load_json(data, record)
            if loaded is None:
                return []
            payload = loaded

        event_type = payload.get("type") or event
        if not isinstance(event_type, str) or not event_type:
            return self._drop(record, "missing_type")

        if event_type == "message_stop":
            self._mark_done()
            return []

        if event_type == "error":
            error = payload.get("error")
            error_type = error.get("type") if isinstance(error, dict) else None
            raise ProviderUnavailableError(
                self.provider_id,
                f"stream error ({error_type or 'unknown'})",
            )

        if event_type != "content_block_delta":
            return []

        delta = payload.get("delta")
        if not isinstance(delta, dict):
            return []
        text = delta.get("text")
        if isinstance(text, str) and text:
            return [CompletionChunk(text=text)]
        return []


class OllamaNDJSONDecoder(StreamDecoder):
    """Ollama /api/chat stream: one JSON object per line.

    {"message":{"content":"..."},"done":false}
    ...
    {"message":{"content":""},"done":true}
    """

    provider_id = "ollama"

    def _next_record(self) -> bytes | None:
        index = self._buffer.find(b"\n")
        if index < 0:
            return None
        record = bytes(self._buffer[:index])
        del self._buffer[: index + 1]
        return record

    def _handle_record(self, record: bytes) -> list[CompletionChunk]:
        line = record.decode("utf-8", errors="replace").strip()
        if not line:
            return []

        payload = self._load_json(line, record)
        if payload is None:
            return []

        if payload.get("error"):
            raise ProviderUnavailableError(self.provider_id, "stream error reported by server")

        chunks: list[CompletionChunk] = []
        message = payload.get("message")
        if isinstance(message, dict):
            text = message.get("content")
            if isinstance(text, str) and text:
                chunks.append(CompletionChunk(text=text))

        if payload.get("done") is True:
            self._mark_done()
        return chunks
