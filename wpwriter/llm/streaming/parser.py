"""
Incremental SSE frame parser and chat-completion chunk accumulation.

The parser is fed decoded text in whatever pieces the network delivers and
dispatches complete event frames regardless of where chunk boundaries fall.
The accumulator turns each frame payload into an appended content delta.
"""

from __future__ import annotations

import json
import re
import time
from collections.abc import Callable

import structlog

from .models import AccumulatorState, EventFrame, StreamChunk

logger = structlog.get_logger(__name__)

# Constants
DONE_SENTINEL = "[DONE]"
BATCH_SEPARATOR = "\\ "
PREVIEW_LENGTH = 120

_LINE_END = re.compile(r"\r\n|\r|\n")
_BOM = "\ufeff"


def split_batched_payload(data: str) -> list[str]:
    """
    Split a data field that carries several JSON chunks.

    Some upstreams batch multiple chunks into a single SSE data field,
    separated by a literal backslash-space token. Each piece is handed to the
    accumulator as an independent payload; blank pieces are dropped.
    """
    return [piece for piece in data.split(BATCH_SEPARATOR) if piece.strip()]


class SSEFrameParser:
    """
    Chunk-boundary independent Server-Sent Events parser.

    Recognized fields are ``data`` (repeatable, newline-joined), ``event``,
    ``id`` and ``retry``. Comment lines and unknown fields are ignored. A
    frame is dispatched through ``on_event`` only when its terminating blank
    line has been seen; whatever is still pending when the stream ends is
    discarded by ``flush()``.
    """

    def __init__(
        self,
        on_event: Callable[[EventFrame], None],
        on_retry: Callable[[int], None] | None = None,
    ):
        self.on_event = on_event
        self.on_retry = on_retry
        self.reset()

    def reset(self) -> None:
        """Drop buffered residue and any pending frame."""
        self._buffer = ""
        self._pending_cr = False
        self._first_fragment = True
        self._clear_pending()

    def _clear_pending(self) -> None:
        self._data_lines: list[str] = []
        self._event: str | None = None
        self._id: str | None = None
        self._retry: int | None = None

    @property
    def has_pending(self) -> bool:
        """Whether unterminated input is buffered."""
        return bool(
            self._buffer or self._data_lines or self._event or self._id
        )

    def feed(self, fragment: str) -> None:
        """Consume the next decoded fragment of the stream."""
        if not fragment:
            return

        if self._first_fragment:
            self._first_fragment = False
            if fragment.startswith(_BOM):
                fragment = fragment[1:]

        # A '\r' ending the previous fragment was already a terminator
        if self._pending_cr:
            self._pending_cr = False
            if fragment.startswith("\n"):
                fragment = fragment[1:]

        text = self._buffer + fragment
        pos = 0
        while True:
            match = _LINE_END.search(text, pos)
            if match is None:
                break
            self._process_line(text[pos:match.start()])
            pos = match.end()
            if match.group() == "\r" and pos == len(text):
                self._pending_cr = True
        self._buffer = text[pos:]

    def flush(self) -> None:
        """End of stream: discard anything not terminated by a blank line."""
        if self.has_pending:
            logger.debug(
                "Discarding unterminated SSE frame at end of stream",
                residue_length=len(self._buffer),
                pending_data_lines=len(self._data_lines),
            )
        self._buffer = ""
        self._pending_cr = False
        self._clear_pending()

    def _process_line(self, line: str) -> None:
        if not line:
            self._dispatch()
            return

        if line.startswith(":"):
            return

        name, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if name == "data":
            self._data_lines.append(value)
        elif name == "event":
            self._event = value or None
        elif name == "id":
            if "\0" not in value:
                self._id = value
        elif name == "retry":
            if value.isascii() and value.isdigit():
                self._retry = int(value)
                if self.on_retry:
                    self.on_retry(self._retry)

    def _dispatch(self) -> None:
        if not self._data_lines:
            self._clear_pending()
            return

        frame = EventFrame(
            data="\n".join(self._data_lines),
            event=self._event,
            id=self._id,
            retry=self._retry,
        )
        self._clear_pending()
        self.on_event(frame)


class ChunkAccumulator:
    """
    Append-only accumulation of OpenAI-compatible streaming deltas.

    Payloads that are not JSON, or JSON of an unexpected shape, are skipped
    so that a single malformed chunk never fails the whole stream.
    """

    def __init__(self):
        self.state = AccumulatorState()

    @property
    def content(self) -> str:
        return self.state.content_buffer

    def process_data(self, data: str) -> StreamChunk | None:
        """Apply one data payload; returns a chunk only when content grew."""
        # Keep-alive frames may carry an empty data field
        if not data.strip():
            return None

        self.state.total_payloads += 1

        if data.strip() == DONE_SENTINEL:
            self.state.done_markers += 1
            return None

        try:
            parsed = json.loads(data)
        except json.JSONDecodeError as e:
            self.state.error_chunks += 1
            logger.warning(
                "Failed to parse SSE data",
                error_message=str(e),
                data_preview=data[:PREVIEW_LENGTH],
            )
            return None

        content = self._extract_delta_content(parsed)
        if not content:
            return None

        now = time.time()
        self.state.update_timing(now)
        self.state.content_buffer += content
        self.state.content_chunks += 1
        return StreamChunk(
            content=content,
            accumulated_content=self.state.content_buffer,
            timestamp=now,
        )

    @staticmethod
    def _extract_delta_content(parsed: object) -> str | None:
        if not isinstance(parsed, dict):
            return None
        choices = parsed.get("choices")
        if not isinstance(choices, list) or not choices:
            return None
        choice = choices[0]
        if not isinstance(choice, dict):
            return None
        delta = choice.get("delta")
        if not isinstance(delta, dict):
            return None
        content = delta.get("content")
        return content if isinstance(content, str) else None

    def get_statistics(self) -> dict[str, int]:
        """Get accumulation counters for monitoring."""
        return {
            "total_payloads": self.state.total_payloads,
            "content_chunks": self.state.content_chunks,
            "error_chunks": self.state.error_chunks,
            "done_markers": self.state.done_markers,
        }

    def reset(self) -> None:
        """Reset accumulator state for a new stream."""
        self.state = AccumulatorState()
