"""
stratostream - Message Stream

Runs one streaming session and delivers its results to the caller.

Lifecycle:
    connecting -> streaming -> done | failed | cancelled

The network work runs in its own asyncio task. Each byte chunk goes
through the SSE decoder; every complete event is mapped to a typed event,
forwarded to the caller and folded into the message accumulator. At the
end of the body the decoder is flushed and the finished Message delivered.

The caller receives, in order:
- zero or more StreamEvent notifications
- exactly one StreamDone or StreamFailed, or nothing after a cancel

No retry happens here. Once any chunk was received, re-issuing the
request would duplicate output; before that, ``can_retry`` tells the
caller whether re-issuing is safe.

Usage:
    async with client.stream(messages, model="claude-sonnet-4-20250514") as stream:
        async for notification in stream:
            if isinstance(notification, StreamEvent):
                text = get_text(notification.event)
                if text:
                    print(text, end="", flush=True)
            elif isinstance(notification, StreamDone):
                message = notification.message
            elif isinstance(notification, StreamFailed):
                raise notification.error
"""

import asyncio
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import AsyncContextManager, AsyncIterator, Callable, List, Optional, Union

import httpx

from .accumulator import MessageAccumulator
from .errors import APIError
from .events import ErrorEvent, Event, from_sse, get_text
from .logging import LogContext, get_logger
from .models import Message
from .sse import RawEvent, SSEDecoder


logger = get_logger(__name__)

OpenStream = Callable[[], AsyncContextManager[httpx.Response]]


class StreamStatus(str, Enum):
    """States of a streaming session."""
    CONNECTING = "connecting"
    STREAMING = "streaming"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (StreamStatus.DONE, StreamStatus.FAILED, StreamStatus.CANCELLED)


@dataclass
class StreamEvent:
    """One typed event, forwarded as soon as it is decoded."""
    event: Event


@dataclass
class StreamDone:
    """The stream ended normally; carries the complete message."""
    message: Message


@dataclass
class StreamFailed:
    """The stream ended with an error."""
    error: APIError


Notification = Union[StreamEvent, StreamDone, StreamFailed]


class StreamCancelledError(Exception):
    """Raised by helpers that wait for a result when the stream was cancelled."""


_CLOSED = object()


class MessageStream:
    """
    One streaming session.

    Args:
        open_stream: Returns an async context manager yielding the streamed
            ``httpx.Response``. Entering it sends the request.
        request_id: Correlation ID used in logs.
        model: Model name, for logs.
        link_to_caller: Cancel the session when the task that started it
            fails or is cancelled while the session is still running. A
            task that returns normally leaves the session alone.

    The session is also an async context manager: leaving the block by any
    path cancels a session that has not finished.
    """

    def __init__(
        self,
        open_stream: OpenStream,
        request_id: Optional[str] = None,
        model: Optional[str] = None,
        link_to_caller: bool = True
    ):
        self.request_id = request_id or f"stream_{uuid.uuid4().hex[:12]}"
        self.model = model
        self.status = StreamStatus.CONNECTING
        self.data_received = False
        self.final_message: Optional[Message] = None
        self.error: Optional[APIError] = None

        self._open_stream = open_stream
        self._link_to_caller = link_to_caller
        self._decoder: Optional[SSEDecoder] = SSEDecoder()
        self._accumulator: Optional[MessageAccumulator] = MessageAccumulator()
        self._queue: "asyncio.Queue[object]" = asyncio.Queue()
        self._task: Optional["asyncio.Task[None]"] = None
        self._caller: Optional["asyncio.Task[object]"] = None
        self._exhausted = False

    # ============================================================
    # Lifecycle
    # ============================================================

    def start(self) -> "MessageStream":
        """
        Dispatch the request in a background task and return immediately.

        Must be called from a running event loop.
        """
        if self._task is not None:
            raise RuntimeError("Stream already started")

        self._task = asyncio.create_task(self._run())
        self._set_status(StreamStatus.STREAMING)

        if self._link_to_caller:
            self._caller = asyncio.current_task()
            if self._caller is not None:
                self._caller.add_done_callback(self._on_caller_done)

        return self

    def cancel(self) -> None:
        """
        Abort the session.

        Stops the network task, drops notifications not yet consumed and
        ends iteration. Safe to call in any state, any number of times.
        """
        if self._task is not None and not self._task.done():
            self._task.cancel()

        if not self.status.is_terminal:
            self._set_status(StreamStatus.CANCELLED)

        self._release()
        self._close_channel()

    async def aclose(self) -> None:
        """Cancel the session if still running and wait for its task to end."""
        if not self.status.is_terminal:
            self.cancel()
        if self._task is not None:
            await asyncio.wait({self._task})

    @property
    def can_retry(self) -> bool:
        """
        True when re-issuing the request cannot duplicate output.

        Only a failed session that never received data, with a transient
        error, qualifies.
        """
        return (
            self.status == StreamStatus.FAILED
            and not self.data_received
            and self.error is not None
            and self.error.retryable
        )

    async def __aenter__(self) -> "MessageStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ============================================================
    # Consumer side
    # ============================================================

    def __aiter__(self) -> "MessageStream":
        return self

    async def __anext__(self) -> Notification:
        if self._exhausted:
            raise StopAsyncIteration
        if self._task is None:
            raise RuntimeError("Stream not started")

        item = await self._queue.get()

        if item is _CLOSED:
            self._exhausted = True
            raise StopAsyncIteration

        if isinstance(item, (StreamDone, StreamFailed)):
            self._exhausted = True

        return item  # type: ignore[return-value]

    async def until_done(self) -> Message:
        """
        Consume the stream and return the complete message.

        Raises:
            APIError: If the stream failed
            StreamCancelledError: If the stream was cancelled
        """
        async for notification in self:
            if isinstance(notification, StreamDone):
                return notification.message
            if isinstance(notification, StreamFailed):
                raise notification.error

        if self.final_message is not None:
            return self.final_message
        if self.error is not None:
            raise self.error
        raise StreamCancelledError(f"Stream {self.request_id} was cancelled")

    async def text_stream(self) -> AsyncIterator[str]:
        """
        Yield only the text deltas.

        Raises:
            APIError: If the stream failed
        """
        async for notification in self:
            if isinstance(notification, StreamEvent):
                text = get_text(notification.event)
                if text:
                    yield text
            elif isinstance(notification, StreamFailed):
                raise notification.error

    # ============================================================
    # Network task
    # ============================================================

    async def _run(self) -> None:
        LogContext.set_current(
            LogContext(request_id=self.request_id, stream_id=self.request_id, model=self.model or "")
        )

        try:
            async with self._open_stream() as response:
                if not 200 <= response.status_code < 300:
                    # Error body, not SSE
                    body = await response.aread()
                    self._fail(APIError.from_response(response.status_code, body, response.headers))
                    return

                async for chunk in response.aiter_bytes():
                    if not chunk:
                        continue
                    self.data_received = True
                    if not self._process(self._decoder.feed(chunk)):
                        return

            if not self._process(self._decoder.flush()):
                return
            self._complete(self._accumulator.finalize())

        except httpx.HTTPError as e:
            self._fail(APIError.from_transport(e))
        except Exception as e:
            logger.exception(f"Unexpected error in stream task: {e}")
            self._fail(APIError(f"Unexpected error: {e}"))

    def _process(self, raw_events: List[RawEvent]) -> bool:
        """
        Map, forward and fold decoded events.

        Returns False once the stream has failed on an error event.
        """
        for raw in raw_events:
            event = from_sse(raw.event, raw.data)

            if isinstance(event, ErrorEvent):
                self._fail(APIError.from_sse_event(raw.data))
                return False

            self._deliver(StreamEvent(event))
            self._accumulator.apply(event)

        return True

    # ============================================================
    # Transitions
    # ============================================================

    def _complete(self, message: Message) -> None:
        self.final_message = message
        self._set_status(StreamStatus.DONE)
        self._deliver(StreamDone(message))
        self._release()

    def _fail(self, error: APIError) -> None:
        self.error = error
        self._set_status(StreamStatus.FAILED)
        logger.warning(
            f"Stream failed: {error}",
            error_kind=error.kind.value,
            data_received=self.data_received,
        )
        self._deliver(StreamFailed(error))
        self._release()

    def _deliver(self, notification: Notification) -> None:
        if self.status == StreamStatus.CANCELLED:
            return
        self._queue.put_nowait(notification)

    def _set_status(self, status: StreamStatus) -> None:
        logger.debug(f"Stream {self.status.value} -> {status.value}", stream_id=self.request_id)
        self.status = status

    def _release(self) -> None:
        self._decoder = None
        self._accumulator = None
        if self._caller is not None:
            self._caller.remove_done_callback(self._on_caller_done)
            self._caller = None

    def _close_channel(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
        self._queue.put_nowait(_CLOSED)

    def _on_caller_done(self, task: "asyncio.Task[object]") -> None:
        # Only a failed or cancelled caller tears the session down
        if not task.cancelled() and task.exception() is None:
            self._caller = None
            return
        if not self.status.is_terminal:
            logger.info("Caller terminated abnormally, cancelling stream", stream_id=self.request_id)
            self.cancel()
