"""
stratostream - Stream Events

Typed representations of the SSE events of a Messages API stream.

Raw ``(event name, JSON payload)`` pairs from the SSE decoder are mapped to
a closed set of dataclasses. Anything unrecognized becomes an
``UnknownEvent`` / ``UnknownBlock`` / ``UnknownDelta`` holding the raw
payload, so new server-side additions never break a stream.

Event types:
- message_start: stream started, initial message metadata
- message_delta: message-level updates (stop_reason, output usage)
- message_stop: stream complete
- content_block_start: new content block (text, tool_use, thinking)
- content_block_delta: content update for one block
- content_block_stop: content block complete
- error: error during streaming
- ping: keep-alive

Example:
    event = from_sse(raw.event, raw.data)

    if isinstance(event, ContentBlockDelta) and isinstance(event.delta, TextDelta):
        print(event.delta.text, end="")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional, Union

from .models import ContentBlock, Message, Usage, parse_content_block


# ============================================================
# Deltas
# ============================================================

@dataclass
class TextDelta:
    text: str = ""

    type: ClassVar[str] = "text_delta"


@dataclass
class InputJSONDelta:
    """A fragment of a tool's input JSON; not decodable on its own."""
    partial_json: str = ""

    type: ClassVar[str] = "input_json_delta"


@dataclass
class ThinkingDelta:
    thinking: str = ""

    type: ClassVar[str] = "thinking_delta"


@dataclass
class SignatureDelta:
    signature: str = ""

    type: ClassVar[str] = "signature_delta"


@dataclass
class UnknownDelta:
    raw: Any = None

    type: ClassVar[str] = "unknown"


Delta = Union[TextDelta, InputJSONDelta, ThinkingDelta, SignatureDelta, UnknownDelta]


# ============================================================
# Events
# ============================================================

@dataclass
class MessageStart:
    message: Message = field(default_factory=Message)

    type: ClassVar[str] = "message_start"


@dataclass
class MessageDelta:
    """Message-level update. Carries output tokens only."""
    stop_reason: Optional[str] = None
    stop_sequence: Optional[str] = None
    output_tokens: int = 0

    type: ClassVar[str] = "message_delta"


@dataclass
class MessageStop:
    type: ClassVar[str] = "message_stop"


@dataclass
class ContentBlockStart:
    index: int
    content_block: ContentBlock

    type: ClassVar[str] = "content_block_start"


@dataclass
class ContentBlockDelta:
    index: int
    delta: Delta

    type: ClassVar[str] = "content_block_delta"


@dataclass
class ContentBlockStop:
    index: int

    type: ClassVar[str] = "content_block_stop"


@dataclass
class ErrorEvent:
    """Error reported by the server inside the stream."""
    error_type: str = "unknown"
    message: str = "Unknown error"

    type: ClassVar[str] = "error"


@dataclass
class Ping:
    type: ClassVar[str] = "ping"


@dataclass
class UnknownEvent:
    raw: Any = None

    type: ClassVar[str] = "unknown"


Event = Union[
    MessageStart,
    MessageDelta,
    MessageStop,
    ContentBlockStart,
    ContentBlockDelta,
    ContentBlockStop,
    ErrorEvent,
    Ping,
    UnknownEvent,
]


# ============================================================
# Mapping
# ============================================================

def from_sse(event_name: str, data: Any) -> Event:
    """
    Convert a raw SSE event into its typed form.

    Total: a recognized event name with missing required fields, or any
    unrecognized name, maps to ``UnknownEvent`` with the raw payload.
    """
    if event_name == "message_stop":
        return MessageStop()

    if event_name == "ping":
        return Ping()

    if not isinstance(data, dict):
        return UnknownEvent(raw=data)

    if event_name == "message_start" and "message" in data:
        return MessageStart(message=_parse_message_info(data["message"]))

    if event_name == "message_delta":
        delta = _as_dict(data.get("delta"))
        usage = _as_dict(data.get("usage"))
        return MessageDelta(
            stop_reason=delta.get("stop_reason"),
            stop_sequence=delta.get("stop_sequence"),
            output_tokens=usage.get("output_tokens") or 0
        )

    if event_name == "content_block_start" and "index" in data and "content_block" in data:
        return ContentBlockStart(
            index=data["index"],
            content_block=parse_content_block(data["content_block"])
        )

    if event_name == "content_block_delta" and "index" in data and "delta" in data:
        return ContentBlockDelta(index=data["index"], delta=parse_delta(data["delta"]))

    if event_name == "content_block_stop" and "index" in data:
        return ContentBlockStop(index=data["index"])

    if event_name == "error" and "error" in data:
        error = data["error"] if isinstance(data["error"], dict) else {}
        return ErrorEvent(
            error_type=error.get("type") or "unknown",
            message=error.get("message") or "Unknown error"
        )

    return UnknownEvent(raw=data)


def parse_delta(delta: Any) -> Delta:
    """Convert a wire delta into its typed form."""
    if not isinstance(delta, dict):
        return UnknownDelta(raw=delta)

    delta_type = delta.get("type")

    if delta_type == "text_delta":
        return TextDelta(text=delta.get("text") or "")
    if delta_type == "input_json_delta":
        return InputJSONDelta(partial_json=delta.get("partial_json") or "")
    if delta_type == "thinking_delta":
        return ThinkingDelta(thinking=delta.get("thinking") or "")
    if delta_type == "signature_delta":
        return SignatureDelta(signature=delta.get("signature") or "")

    return UnknownDelta(raw=delta)


def _parse_message_info(message: Any) -> Message:
    message = _as_dict(message)
    return Message(
        id=message.get("id"),
        type=message.get("type"),
        role=message.get("role"),
        model=message.get("model"),
        content=[parse_content_block(b) for b in (message.get("content") or [])],
        stop_reason=message.get("stop_reason"),
        stop_sequence=message.get("stop_sequence"),
        usage=Usage.from_dict(message.get("usage"))
    )


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


# ============================================================
# Helpers
# ============================================================

def is_text_delta(event: Event) -> bool:
    return isinstance(event, ContentBlockDelta) and isinstance(event.delta, TextDelta)


def is_thinking_delta(event: Event) -> bool:
    return isinstance(event, ContentBlockDelta) and isinstance(event.delta, ThinkingDelta)


def is_tool_input_delta(event: Event) -> bool:
    return isinstance(event, ContentBlockDelta) and isinstance(event.delta, InputJSONDelta)


def is_error(event: Event) -> bool:
    return isinstance(event, ErrorEvent)


def get_text(event: Event) -> Optional[str]:
    """Text of a text delta event, or None for any other event."""
    if is_text_delta(event):
        return event.delta.text
    return None


def get_thinking(event: Event) -> Optional[str]:
    """Thinking text of a thinking delta event, or None for any other event."""
    if is_thinking_delta(event):
        return event.delta.thinking
    return None
