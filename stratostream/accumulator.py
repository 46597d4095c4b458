"""
stratostream - Message Accumulator

Folds the events of one stream into a complete Message.

Content blocks are keyed by their stream index while in flight and
rendered in ascending index order at the end, whatever order their
deltas arrived in.

Tool arguments stream as a JSON string cut at arbitrary points, so
input_json deltas are collected per index and decoded only once the
block stops.
"""

import json
from dataclasses import replace
from typing import Dict

from .events import (
    ContentBlockDelta,
    ContentBlockStart,
    ContentBlockStop,
    Delta,
    Event,
    InputJSONDelta,
    MessageDelta,
    MessageStart,
    SignatureDelta,
    TextDelta,
    ThinkingDelta,
)
from .models import (
    ContentBlock,
    Message,
    TextBlock,
    ThinkingBlock,
    ToolUseBlock,
    Usage,
)


class MessageAccumulator:
    """
    In-progress state of one streamed message.

    Owned by a single stream; ``apply`` never raises and ignores events it
    has no rule for.
    """

    def __init__(self):
        self.message = Message()
        self.content_blocks: Dict[int, ContentBlock] = {}
        self.tool_json: Dict[int, str] = {}

    def apply(self, event: Event) -> None:
        """Fold one event into the message."""
        if isinstance(event, MessageStart):
            info = event.message
            self.message.id = info.id
            self.message.type = info.type
            self.message.role = info.role
            self.message.model = info.model
            self.message.usage = replace(info.usage)

        elif isinstance(event, MessageDelta):
            self.message.stop_reason = event.stop_reason
            self.message.stop_sequence = event.stop_sequence
            # input_tokens is only known from message_start
            self.message.usage = Usage(
                input_tokens=self.message.usage.input_tokens,
                output_tokens=event.output_tokens
            )

        elif isinstance(event, ContentBlockStart):
            # Copy so the event already handed to the caller is never mutated
            self.content_blocks[event.index] = replace(event.content_block)

        elif isinstance(event, ContentBlockDelta):
            self._apply_delta(event.index, event.delta)

        elif isinstance(event, ContentBlockStop):
            self._finalize_block(event.index)

    def finalize(self) -> Message:
        """Render the complete message with content in index order."""
        content = [self.content_blocks[index] for index in sorted(self.content_blocks)]
        return replace(self.message, content=content)

    def _apply_delta(self, index: int, delta: Delta) -> None:
        block = self.content_blocks.get(index)

        if isinstance(delta, TextDelta):
            if block is None:
                self.content_blocks[index] = TextBlock(text=delta.text)
            elif isinstance(block, TextBlock):
                block.text += delta.text

        elif isinstance(delta, ThinkingDelta):
            if block is None:
                self.content_blocks[index] = ThinkingBlock(thinking=delta.thinking)
            elif isinstance(block, ThinkingBlock):
                block.thinking += delta.thinking

        elif isinstance(delta, SignatureDelta):
            if block is None:
                self.content_blocks[index] = ThinkingBlock(signature=delta.signature)
            elif isinstance(block, ThinkingBlock):
                block.signature = (block.signature or "") + delta.signature

        elif isinstance(delta, InputJSONDelta):
            self.tool_json[index] = self.tool_json.get(index, "") + delta.partial_json

    def _finalize_block(self, index: int) -> None:
        block = self.content_blocks.get(index)
        if not isinstance(block, ToolUseBlock):
            return

        json_str = self.tool_json.pop(index, "")
        try:
            parsed = json.loads(json_str)
        except ValueError:
            parsed = {}

        # The block is over; a bad payload cannot be re-requested
        block.input = parsed if isinstance(parsed, dict) else {}
