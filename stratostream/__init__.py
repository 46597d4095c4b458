"""
stratostream - Streaming client for the Messages API

Quick Start:
    import stratostream

    client = stratostream.create_client(api_key="sk-ant-...")
    message = client.chat(
        [{"role": "user", "content": "Hello!"}],
        model="claude-sonnet-4-20250514",
    )
    print(message.get_text())

    # Streaming
    async with stratostream.AsyncClient() as client:
        async with client.stream(messages, model="claude-sonnet-4-20250514") as stream:
            async for text in stream.text_stream():
                print(text, end="", flush=True)
"""

from .client import Client, __version__
from .async_client import AsyncClient
from .config import ClientConfig
from .models import (
    ContentBlock,
    Message,
    TextBlock,
    ThinkingBlock,
    ToolUseBlock,
    UnknownBlock,
    Usage,
)
from .events import (
    ContentBlockDelta,
    ContentBlockStart,
    ContentBlockStop,
    ErrorEvent,
    Event,
    InputJSONDelta,
    MessageDelta,
    MessageStart,
    MessageStop,
    Ping,
    SignatureDelta,
    TextDelta,
    ThinkingDelta,
    UnknownDelta,
    UnknownEvent,
    from_sse,
)
from .errors import (
    APIConnectionError,
    APIError,
    APIServerError,
    AuthenticationError,
    ErrorKind,
    InvalidRequestError,
    NotFoundError,
    OverloadedError,
    PermissionDeniedError,
    RateLimitError,
    StreamError,
    is_retryable_error,
)
from .stream import (
    MessageStream,
    StreamCancelledError,
    StreamDone,
    StreamEvent,
    StreamFailed,
    StreamStatus,
)
from .accumulator import MessageAccumulator
from .sse import RawEvent, SSEDecoder
from .retry import RetryHandler, calculate_delay, with_retry, with_retry_async
from .logging import setup_logging
from .utils import chat, create_async_client, create_client, set_api_key

__all__ = [
    # Clients
    "Client",
    "AsyncClient",
    "ClientConfig",
    # Models
    "Message",
    "Usage",
    "ContentBlock",
    "TextBlock",
    "ToolUseBlock",
    "ThinkingBlock",
    "UnknownBlock",
    # Events
    "Event",
    "MessageStart",
    "MessageDelta",
    "MessageStop",
    "ContentBlockStart",
    "ContentBlockDelta",
    "ContentBlockStop",
    "ErrorEvent",
    "Ping",
    "UnknownEvent",
    "TextDelta",
    "InputJSONDelta",
    "ThinkingDelta",
    "SignatureDelta",
    "UnknownDelta",
    "from_sse",
    # Streaming
    "MessageStream",
    "StreamStatus",
    "StreamEvent",
    "StreamDone",
    "StreamFailed",
    "StreamCancelledError",
    "MessageAccumulator",
    "SSEDecoder",
    "RawEvent",
    # Errors
    "APIError",
    "ErrorKind",
    "InvalidRequestError",
    "AuthenticationError",
    "PermissionDeniedError",
    "NotFoundError",
    "RateLimitError",
    "APIServerError",
    "OverloadedError",
    "APIConnectionError",
    "StreamError",
    "is_retryable_error",
    # Retry
    "RetryHandler",
    "calculate_delay",
    "with_retry",
    "with_retry_async",
    # Logging
    "setup_logging",
    # Convenience functions
    "create_client",
    "create_async_client",
    "chat",
    "set_api_key",
]
