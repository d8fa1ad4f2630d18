"""
Streaming chat-completion client.

One call issues a POST to an OpenAI-compatible endpoint, pulls the SSE body
chunk by chunk, and delivers the growing content to caller callbacks:

    IDLE -> REQUESTING -> STREAMING -> COMPLETED | ERRORED | ABORTED

Terminal states are absorbing. Exactly one of ``on_complete``, ``on_error``
or ``on_aborted`` fires per call, exactly once.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator, Awaitable, Callable, Coroutine, Sequence
from typing import Any, TypeVar

import httpx

from ..logging_utils import ContextualLogger, operation_context
from .exceptions import (
    EmptyResponseError,
    HTTPStatusError,
    StreamingError,
    TransportError,
)
from .models import (
    DEFAULT_STREAM_TIMEOUT,
    ChatMessage,
    StreamCallbacks,
    StreamOutcome,
    StreamRequestConfig,
)
from .streaming.models import EventFrame, StreamState
from .streaming.parser import (
    PREVIEW_LENGTH,
    ChunkAccumulator,
    SSEFrameParser,
    split_batched_payload,
)

# Statuses that never carry a body
NO_BODY_STATUSES = (204, 205)

DataSplitter = Callable[[str], list[str]]

T = TypeVar("T")


async def _pull(chunks: AsyncIterator[str]) -> str | None:
    return await anext(chunks, None)


async def _close_response(response: httpx.Response) -> None:
    await response.aclose()


class CancellationToken:
    """Cooperative cancellation signal shared between a caller and a call."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Request cancellation; idempotent."""
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


class ChatStreamSession:
    """
    State for exactly one streaming call.

    Owns its parser, accumulator and settlement latch; nothing here is
    shared with any other call.
    """

    def __init__(
        self,
        request: StreamRequestConfig,
        callbacks: StreamCallbacks,
        data_splitter: DataSplitter | None = split_batched_payload,
    ):
        self.request = request
        self.callbacks = callbacks
        self.data_splitter = data_splitter
        self.state = StreamState.IDLE
        self.error: Exception | None = None
        self.accumulator = ChunkAccumulator()
        self.parser = SSEFrameParser(
            on_event=self._handle_frame,
            on_retry=self._handle_retry,
        )
        self._settled = False
        self._log = ContextualLogger(
            {"endpoint": request.endpoint, "model": request.model or "default"}
        )

    @property
    def content(self) -> str:
        return self.accumulator.content

    @property
    def cancelled(self) -> bool:
        token = self.request.cancellation_token
        return token is not None and token.cancelled

    async def run(self, http_client: httpx.AsyncClient) -> StreamOutcome:
        """Drive the call to a terminal state."""
        if self.cancelled:
            self._abort()
            return self.outcome()

        self._transition(StreamState.REQUESTING)
        self._log.info(
            "Chat stream started", message_count=len(self.request.messages)
        )

        model = self.request.model or "unknown"
        try:
            http_request = http_client.build_request(
                "POST",
                self.request.endpoint,
                json=self.request.build_payload(),
                headers=self.request.build_headers(),
                timeout=httpx.Timeout(self.request.timeout),
            )
            async with asyncio.timeout(self.request.timeout):
                response = await self._race_cancellation(
                    http_client.send(http_request, stream=True),
                    discard=_close_response,
                )
                if response is None:
                    self._abort()
                    return self.outcome()
                try:
                    if await self._check_response(response):
                        self._transition(StreamState.STREAMING)
                        await self._pump(response)
                finally:
                    await response.aclose()
        except asyncio.CancelledError:
            # Task-level cancellation is treated like the caller's own abort
            self._abort()
            raise
        except TimeoutError as e:
            self._fail_or_abort(
                TransportError(
                    f"Streaming call timed out after {self.request.timeout}s",
                    model=model,
                ),
                cause=e,
            )
        except httpx.HTTPError as e:
            self._fail_or_abort(
                TransportError(f"Streaming request failed: {e!s}", model=model),
                cause=e,
            )
        except Exception as e:
            self._fail_or_abort(
                StreamingError(f"Stream processing failed: {e!s}", model=model),
                cause=e,
            )

        return self.outcome()

    async def _check_response(self, response: httpx.Response) -> bool:
        """Fail fast on error statuses and bodiless responses."""
        if not response.is_success:
            body = await self._race_cancellation(response.aread())
            if body is None:
                self._abort()
                return False
            error_text = body.decode("utf-8", errors="replace")
            self._fail_or_abort(
                HTTPStatusError(
                    f"Streaming API error {response.status_code}: "
                    f"{error_text[:PREVIEW_LENGTH]}",
                    status_code=response.status_code,
                    response_text=error_text,
                    model=self.request.model or "unknown",
                )
            )
            return False

        if (
            response.status_code in NO_BODY_STATUSES
            or response.headers.get("content-length") == "0"
        ):
            self._fail_or_abort(
                EmptyResponseError(
                    "Streaming response carried no body",
                    status_code=response.status_code,
                    model=self.request.model or "unknown",
                )
            )
            return False

        return True

    async def _pump(self, response: httpx.Response) -> None:
        """Sequential pull loop; one chunk is fully processed before the next."""
        # httpx decodes incrementally, so multi-byte characters split across
        # network chunks come out whole
        chunks = response.aiter_text()
        try:
            while True:
                if self.cancelled:
                    self._abort()
                    return

                text = await self._next_chunk(chunks)
                if self.cancelled:
                    self._abort()
                    return
                if text is None:
                    break

                self.parser.feed(text)
                if self.state.is_terminal:
                    return
        finally:
            with contextlib.suppress(Exception):
                await chunks.aclose()

        self.parser.flush()
        self._complete()

    async def _next_chunk(self, chunks: AsyncIterator[str]) -> str | None:
        """
        Await the next decoded chunk; ``None`` at end of stream.

        Also ``None`` when cancellation wins the pull; the caller tells the
        two apart through ``self.cancelled``.
        """
        return await self._race_cancellation(_pull(chunks))

    async def _race_cancellation(
        self,
        operation: Coroutine[Any, Any, T],
        discard: Callable[[T], Awaitable[None]] | None = None,
    ) -> T | None:
        """
        Await ``operation`` unless the cancellation token fires first.

        If cancellation wins, the operation's task is cancelled and drained,
        ``discard`` releases a result that arrived anyway, and ``None`` is
        returned.
        """
        token = self.request.cancellation_token
        if token is None:
            return await operation

        task = asyncio.create_task(operation)
        cancel_wait = asyncio.create_task(token.wait())
        try:
            await asyncio.wait(
                {task, cancel_wait}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            cancel_wait.cancel()
            if not task.done():
                task.cancel()

        if token.cancelled:
            with contextlib.suppress(asyncio.CancelledError, Exception):
                result = await task
                if discard is not None:
                    await discard(result)
            return None
        return task.result()

    def _handle_frame(self, frame: EventFrame) -> None:
        if self.state.is_terminal or not frame.data:
            return
        if self.callbacks.on_event:
            self.callbacks.on_event(frame)

        payloads = (
            self.data_splitter(frame.data) if self.data_splitter else [frame.data]
        )
        for payload in payloads:
            chunk = self.accumulator.process_data(payload)
            if chunk is not None:
                self.callbacks.on_update(chunk.accumulated_content)

    def _handle_retry(self, interval: int) -> None:
        self._log.debug("Server sent reconnection interval", retry_ms=interval)
        if self.callbacks.on_retry:
            self.callbacks.on_retry(interval)

    def _transition(self, state: StreamState) -> None:
        self._log.debug(
            "Stream state transition", from_state=self.state.value, to_state=state.value
        )
        self.state = state

    def _settle(self, state: StreamState) -> bool:
        """Latch the first terminal state; later settlements are ignored."""
        if self._settled:
            return False
        self._settled = True
        self._transition(state)
        return True

    def _complete(self) -> None:
        if self._settle(StreamState.COMPLETED):
            self._log.info(
                "Chat stream completed",
                content_length=len(self.content),
                **self.accumulator.get_statistics(),
            )
            self.callbacks.on_complete()

    def _fail(self, error: Exception) -> None:
        if self._settle(StreamState.ERRORED):
            self.error = error
            self._log.error(
                "Chat stream failed",
                error_type=type(error).__name__,
                error_message=str(error),
                content_length=len(self.content),
            )
            self.callbacks.on_error(error)

    def _fail_or_abort(
        self, error: Exception, cause: BaseException | None = None
    ) -> None:
        """Route a failure, unless it is the fallout of the caller's own abort."""
        if cause is not None:
            error.__cause__ = cause
        if self.cancelled:
            self._abort()
        else:
            self._fail(error)

    def _abort(self) -> None:
        if self._settle(StreamState.ABORTED):
            self._log.info("Chat stream aborted", content_length=len(self.content))
            if self.callbacks.on_aborted:
                self.callbacks.on_aborted()

    def outcome(self) -> StreamOutcome:
        return StreamOutcome(
            state=self.state,
            content=self.content,
            error=self.error,
            stats=self.accumulator.get_statistics(),
        )


class StreamingChatClient:
    """
    Streaming client for OpenAI-compatible chat-completion endpoints.

    Every call gets a fresh ``ChatStreamSession``; concurrent calls share
    nothing but the underlying connection pool.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        data_splitter: DataSplitter | None = split_batched_payload,
    ):
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            timeout=DEFAULT_STREAM_TIMEOUT
        )
        self.data_splitter = data_splitter

    async def stream_chat(
        self, request: StreamRequestConfig, callbacks: StreamCallbacks
    ) -> StreamOutcome:
        """Run one streaming call; failures are reported via ``on_error``."""
        session = ChatStreamSession(request, callbacks, self.data_splitter)
        async with operation_context(
            "stream_chat", context={"endpoint": request.endpoint}
        ) as operation_logger:
            outcome = await session.run(self.http_client)
            operation_logger.info(
                "Stream settled",
                state=outcome.state.value,
                content_length=len(outcome.content),
            )
        return outcome

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self.http_client.aclose()

    async def __aenter__(self) -> StreamingChatClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


async def send_chat_stream(
    *,
    endpoint: str,
    messages: Sequence[ChatMessage],
    on_update: Callable[[str], None],
    on_complete: Callable[[], None],
    on_error: Callable[[Exception], None],
    api_key: str | None = None,
    model: str | None = None,
    app_id: str | None = None,
    on_aborted: Callable[[], None] | None = None,
    cancellation_token: CancellationToken | None = None,
    timeout: float = DEFAULT_STREAM_TIMEOUT,
    http_client: httpx.AsyncClient | None = None,
) -> StreamOutcome:
    """Convenience wrapper for a single streaming call."""
    request = StreamRequestConfig(
        endpoint=endpoint,
        messages=tuple(messages),
        api_key=api_key,
        model=model,
        app_id=app_id,
        timeout=timeout,
        cancellation_token=cancellation_token,
    )
    callbacks = StreamCallbacks(
        on_update=on_update,
        on_complete=on_complete,
        on_error=on_error,
        on_aborted=on_aborted,
    )
    async with StreamingChatClient(http_client) as client:
        return await client.stream_chat(request, callbacks)
