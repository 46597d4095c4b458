"""
stratostream - Pytest Configuration

Configures:
- Integration test markers (skip by default)
- A clean environment for client configuration
- Canned SSE streams and an httpx MockTransport factory
"""

import os
import json
import pytest
from typing import Any, AsyncIterator, Callable, Dict, Iterable, List, Optional

import httpx


# ============================================================
# Environment Configuration
# ============================================================

def _is_truthy(value: Optional[str]) -> bool:
    """Check if environment variable is truthy."""
    if value is None:
        return False
    return value.lower() in ("1", "true", "yes", "on")


RUN_INTEGRATION = _is_truthy(os.getenv("RUN_INTEGRATION"))

TEST_API_KEY = "sk-ant-test-key"
TEST_MODEL = "claude-sonnet-4-20250514"


# ============================================================
# Pytest Markers
# ============================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test (requires RUN_INTEGRATION=1)"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless RUN_INTEGRATION=1."""
    skip_integration = pytest.mark.skip(
        reason="Integration test - set RUN_INTEGRATION=1 to run"
    )

    for item in items:
        if "integration" in item.keywords and not RUN_INTEGRATION:
            item.add_marker(skip_integration)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove configuration variables so tests never depend on the shell."""
    for name in list(os.environ):
        if name.startswith("STRATOSTREAM_") or name.startswith("ANTHROPIC_"):
            monkeypatch.delenv(name, raising=False)
    yield


# ============================================================
# SSE Helpers
# ============================================================

def sse(event: str, data: Dict[str, Any]) -> str:
    """Render one SSE event block."""
    return f"event: {event}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"


def message_start(message_id: str = "msg_1", input_tokens: int = 10) -> str:
    return sse("message_start", {
        "type": "message_start",
        "message": {
            "id": message_id,
            "type": "message",
            "role": "assistant",
            "model": TEST_MODEL,
            "content": [],
            "stop_reason": None,
            "stop_sequence": None,
            "usage": {"input_tokens": input_tokens, "output_tokens": 1},
        },
    })


def text_start(index: int) -> str:
    return sse("content_block_start", {
        "type": "content_block_start",
        "index": index,
        "content_block": {"type": "text", "text": ""},
    })


def text_delta(index: int, text: str) -> str:
    return sse("content_block_delta", {
        "type": "content_block_delta",
        "index": index,
        "delta": {"type": "text_delta", "text": text},
    })


def tool_start(index: int, tool_id: str = "toolu_1", name: str = "get_weather") -> str:
    return sse("content_block_start", {
        "type": "content_block_start",
        "index": index,
        "content_block": {"type": "tool_use", "id": tool_id, "name": name, "input": {}},
    })


def json_delta(index: int, partial: str) -> str:
    return sse("content_block_delta", {
        "type": "content_block_delta",
        "index": index,
        "delta": {"type": "input_json_delta", "partial_json": partial},
    })


def block_stop(index: int) -> str:
    return sse("content_block_stop", {"type": "content_block_stop", "index": index})


def message_delta(stop_reason: str = "end_turn", output_tokens: int = 5) -> str:
    return sse("message_delta", {
        "type": "message_delta",
        "delta": {"stop_reason": stop_reason, "stop_sequence": None},
        "usage": {"output_tokens": output_tokens},
    })


def message_stop() -> str:
    return sse("message_stop", {"type": "message_stop"})


def ping() -> str:
    return sse("ping", {"type": "ping"})


def error_event(error_type: str = "overloaded_error", message: str = "Overloaded") -> str:
    return sse("error", {"type": "error", "error": {"type": error_type, "message": message}})


@pytest.fixture
def hello_stream() -> str:
    """A complete text stream producing "Hello world"."""
    return "".join([
        message_start(),
        text_start(0),
        ping(),
        text_delta(0, "Hello"),
        text_delta(0, " world"),
        block_stop(0),
        message_delta("end_turn", 5),
        message_stop(),
    ])


@pytest.fixture
def tool_stream() -> str:
    """A stream with a text block followed by a tool call split across deltas."""
    return "".join([
        message_start(),
        text_start(0),
        text_delta(0, "Let me check."),
        block_stop(0),
        tool_start(1),
        json_delta(1, '{"loc'),
        json_delta(1, 'ation":"S'),
        json_delta(1, 'F"}'),
        block_stop(1),
        message_delta("tool_use", 12),
        message_stop(),
    ])


# ============================================================
# Mock Transport
# ============================================================

class ChunkedStream(httpx.AsyncByteStream):
    """Async response body yielding the given chunks, then optionally failing."""

    def __init__(self, chunks: Iterable[bytes], error: Optional[Exception] = None):
        self._chunks = list(chunks)
        self._error = error

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for chunk in self._chunks:
            yield chunk
        if self._error is not None:
            raise self._error


def chunk_bytes(payload: str, size: int) -> List[bytes]:
    """Split an SSE payload into byte chunks of ``size``."""
    data = payload.encode("utf-8")
    return [data[i:i + size] for i in range(0, len(data), size)]


@pytest.fixture
def mock_async_http() -> Callable[..., httpx.AsyncClient]:
    """
    Build an httpx.AsyncClient backed by a MockTransport.

    Usage:
        http = mock_async_http(handler)
        client = AsyncClient(api_key=TEST_API_KEY, http_client=http)
    """
    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return factory


@pytest.fixture
def mock_sync_http() -> Callable[..., httpx.Client]:
    """Build an httpx.Client backed by a MockTransport."""
    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(handler))

    return factory


@pytest.fixture
def mock_message_response() -> Dict[str, Any]:
    """Standard whole (non-streaming) Messages API response."""
    return {
        "id": "msg_test123",
        "type": "message",
        "role": "assistant",
        "model": TEST_MODEL,
        "content": [
            {"type": "text", "text": "Hello! I'm a mock response."}
        ],
        "stop_reason": "end_turn",
        "stop_sequence": None,
        "usage": {"input_tokens": 10, "output_tokens": 8},
    }
