"""
stratostream - SSE Decoder

Stateful Server-Sent Events parser with buffering.

Network reads do not line up with SSE event boundaries. A single event
might arrive as:

    Chunk 1: b'event: message_start\\ndata: {"type": "mes'
    Chunk 2: b'sage_start", "message": {...}}\\n\\n'

The decoder buffers bytes until a blank-line delimiter is seen and only
then parses the complete events. Buffering happens on bytes, so a UTF-8
character split across reads is decoded intact.

Usage:
    decoder = SSEDecoder()

    for chunk in chunks:
        for raw in decoder.feed(chunk):
            handle(raw.event, raw.data)

    # When the stream ends, flush any trailing event
    for raw in decoder.flush():
        handle(raw.event, raw.data)
"""

import json
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Union

from .logging import get_logger


EVENT_DELIMITER = b"\n\n"

_EVENT_LINE = re.compile(r"^event:[ \t]*(.+)$", re.MULTILINE)
_DATA_LINE = re.compile(r"^data:[ \t]?(.*)$", re.MULTILINE)

logger = get_logger(__name__)


@dataclass
class RawEvent:
    """One complete SSE event: its name and decoded JSON payload."""
    event: str
    data: Any


class SSEDecoder:
    """
    Turns an arbitrarily chunked byte stream into complete RawEvents.

    One decoder belongs to one stream. Feeding the same stream in one call
    or in any number of pieces, followed by ``flush``, yields the same
    events.
    """

    def __init__(self):
        self._buffer = b""

    @property
    def buffer(self) -> bytes:
        """Bytes received but not yet part of a complete event."""
        return self._buffer

    def feed(self, chunk: Union[bytes, str]) -> List[RawEvent]:
        """
        Feed a chunk of the stream.

        Returns the events completed by this chunk, in order. Incomplete
        trailing data stays buffered.
        """
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")

        combined = (self._buffer + chunk).replace(b"\r\n", b"\n")

        # Everything up to the last delimiter is complete
        split_at = combined.rfind(EVENT_DELIMITER)
        if split_at == -1:
            self._buffer = combined
            return []

        split_at += len(EVENT_DELIMITER)
        complete, self._buffer = combined[:split_at], combined[split_at:]

        events = []
        for block in complete.split(EVENT_DELIMITER):
            if not block:
                continue
            event = parse_event_block(block.decode("utf-8", errors="replace"))
            if event is not None:
                events.append(event)
        return events

    def flush(self) -> List[RawEvent]:
        """
        Parse whatever is left once the stream has ended.

        The remainder is treated as one event even without a closing
        delimiter. Whitespace-only or unparseable data is discarded.
        The buffer is always cleared.
        """
        remaining, self._buffer = self._buffer, b""

        text = remaining.decode("utf-8", errors="replace")
        if not text.strip():
            return []

        event = parse_event_block(text)
        return [event] if event is not None else []

    def reset(self) -> None:
        """Clear any buffered data."""
        self._buffer = b""


def parse_event_block(block: str) -> Optional[RawEvent]:
    """
    Parse one delimiter-free SSE block.

    Returns None for blocks without an event name (stray data) and for
    blocks whose data is missing or not valid JSON. ``ping`` needs no data.
    """
    match = _EVENT_LINE.search(block)
    event_name = match.group(1).strip() if match else ""

    # Multiple data lines are joined with newlines
    data = "\n".join(line.rstrip("\r") for line in _DATA_LINE.findall(block))

    if event_name == "ping":
        return RawEvent(event="ping", data={})

    if not event_name:
        return None

    if data == "":
        logger.debug(f"Dropping SSE block without data: event={event_name}")
        return None

    try:
        return RawEvent(event=event_name, data=json.loads(data))
    except ValueError:
        logger.debug(f"Dropping SSE block with undecodable data: event={event_name}")
        return None
