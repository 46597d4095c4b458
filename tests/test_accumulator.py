"""
stratostream - Message Accumulator Tests
"""

from stratostream.accumulator import MessageAccumulator
from stratostream.events import (
    ContentBlockDelta,
    ContentBlockStart,
    ContentBlockStop,
    InputJSONDelta,
    MessageDelta,
    MessageStart,
    MessageStop,
    Ping,
    SignatureDelta,
    TextDelta,
    ThinkingDelta,
    UnknownEvent,
    from_sse,
)
from stratostream.models import Message, TextBlock, ThinkingBlock, ToolUseBlock, Usage
from stratostream.sse import SSEDecoder


def accumulate(events):
    acc = MessageAccumulator()
    for event in events:
        acc.apply(event)
    return acc.finalize()


def accumulate_payload(payload: str) -> Message:
    decoder = SSEDecoder()
    raw_events = decoder.feed(payload) + decoder.flush()
    return accumulate(from_sse(raw.event, raw.data) for raw in raw_events)


class TestMessageFields:
    """Message-level events."""

    def test_message_start_seeds_message(self):
        message = accumulate([
            MessageStart(message=Message(
                id="msg_1", type="message", role="assistant",
                model="claude-sonnet-4-20250514", usage=Usage(input_tokens=25, output_tokens=1),
            )),
        ])

        assert message.id == "msg_1"
        assert message.role == "assistant"
        assert message.model == "claude-sonnet-4-20250514"
        assert message.usage == Usage(input_tokens=25, output_tokens=1)
        assert message.content == []

    def test_message_delta_keeps_input_tokens(self):
        """Output tokens come from message_delta; input tokens are preserved."""
        message = accumulate([
            MessageStart(message=Message(id="msg_1", usage=Usage(input_tokens=25, output_tokens=1))),
            MessageDelta(stop_reason="end_turn", stop_sequence=None, output_tokens=15),
        ])

        assert message.stop_reason == "end_turn"
        assert message.usage == Usage(input_tokens=25, output_tokens=15)

    def test_ignored_events(self):
        """Ping, message_stop and unknown events change nothing."""
        message = accumulate([Ping(), MessageStop(), UnknownEvent(raw={"x": 1})])

        assert message == Message()


class TestContentBlocks:
    """Content block assembly."""

    def test_text_deltas_concatenate(self):
        message = accumulate([
            ContentBlockStart(index=0, content_block=TextBlock()),
            ContentBlockDelta(index=0, delta=TextDelta(text="Hello")),
            ContentBlockDelta(index=0, delta=TextDelta(text=" world")),
            ContentBlockStop(index=0),
        ])

        assert message.content == [TextBlock(text="Hello world")]
        assert message.get_text() == "Hello world"

    def test_order_follows_index_not_arrival(self):
        """Blocks render in ascending index order whatever the arrival order."""
        message = accumulate([
            ContentBlockStart(index=2, content_block=TextBlock()),
            ContentBlockStart(index=0, content_block=TextBlock()),
            ContentBlockDelta(index=2, delta=TextDelta(text="third")),
            ContentBlockStart(index=1, content_block=TextBlock()),
            ContentBlockDelta(index=0, delta=TextDelta(text="first")),
            ContentBlockDelta(index=1, delta=TextDelta(text="second")),
        ])

        assert [b.text for b in message.content] == ["first", "second", "third"]

    def test_delta_without_start_creates_block(self):
        message = accumulate([
            ContentBlockDelta(index=0, delta=TextDelta(text="orphan")),
            ContentBlockDelta(index=1, delta=ThinkingDelta(thinking="hmm")),
        ])

        assert message.content == [TextBlock(text="orphan"), ThinkingBlock(thinking="hmm")]

    def test_mismatched_delta_ignored(self):
        """A text delta aimed at a tool block leaves the block alone."""
        message = accumulate([
            ContentBlockStart(index=0, content_block=ToolUseBlock(id="toolu_1", name="calc")),
            ContentBlockDelta(index=0, delta=TextDelta(text="stray")),
        ])

        assert message.content == [ToolUseBlock(id="toolu_1", name="calc", input={})]

    def test_thinking_with_signature(self):
        message = accumulate([
            ContentBlockStart(index=0, content_block=ThinkingBlock()),
            ContentBlockDelta(index=0, delta=ThinkingDelta(thinking="Let me ")),
            ContentBlockDelta(index=0, delta=ThinkingDelta(thinking="think.")),
            ContentBlockDelta(index=0, delta=SignatureDelta(signature="abc")),
            ContentBlockDelta(index=0, delta=SignatureDelta(signature="def")),
            ContentBlockStop(index=0),
        ])

        assert message.content == [ThinkingBlock(thinking="Let me think.", signature="abcdef")]
        assert message.get_thinking() == "Let me think."

    def test_events_are_not_mutated(self):
        """The block carried by content_block_start stays as delivered."""
        start = ContentBlockStart(index=0, content_block=TextBlock())
        accumulate([start, ContentBlockDelta(index=0, delta=TextDelta(text="changed"))])

        assert start.content_block == TextBlock(text="")


class TestToolInput:
    """Tool input reassembly."""

    def test_fragments_reassembled(self):
        message = accumulate([
            ContentBlockStart(index=0, content_block=ToolUseBlock(id="toolu_1", name="get_weather")),
            ContentBlockDelta(index=0, delta=InputJSONDelta(partial_json='{"loc')),
            ContentBlockDelta(index=0, delta=InputJSONDelta(partial_json='ation":"S')),
            ContentBlockDelta(index=0, delta=InputJSONDelta(partial_json='F"}')),
            ContentBlockStop(index=0),
        ])

        assert message.content == [ToolUseBlock(id="toolu_1", name="get_weather", input={"location": "SF"})]

    def test_invalid_json_gives_empty_input(self):
        message = accumulate([
            ContentBlockStart(index=0, content_block=ToolUseBlock(id="toolu_1", name="calc")),
            ContentBlockDelta(index=0, delta=InputJSONDelta(partial_json='{"expr": ')),
            ContentBlockStop(index=0),
        ])

        assert message.content[0].input == {}

    def test_non_object_json_gives_empty_input(self):
        message = accumulate([
            ContentBlockStart(index=0, content_block=ToolUseBlock(id="toolu_1", name="calc")),
            ContentBlockDelta(index=0, delta=InputJSONDelta(partial_json="[1, 2]")),
            ContentBlockStop(index=0),
        ])

        assert message.content[0].input == {}

    def test_no_fragments_gives_empty_input(self):
        message = accumulate([
            ContentBlockStart(index=0, content_block=ToolUseBlock(id="toolu_1", name="now")),
            ContentBlockStop(index=0),
        ])

        assert message.content[0].input == {}

    def test_input_not_decoded_before_stop(self):
        acc = MessageAccumulator()
        acc.apply(ContentBlockStart(index=0, content_block=ToolUseBlock(id="toolu_1", name="calc")))
        acc.apply(ContentBlockDelta(index=0, delta=InputJSONDelta(partial_json='{"a": 1}')))

        assert acc.finalize().content[0].input == {}
        assert acc.tool_json == {0: '{"a": 1}'}


class TestEndToEnd:
    """Decoder, mapper and accumulator together."""

    def test_hello_world(self, hello_stream):
        message = accumulate_payload(hello_stream)

        assert message.id == "msg_1"
        assert message.get_text() == "Hello world"
        assert message.stop_reason == "end_turn"
        assert message.usage == Usage(input_tokens=10, output_tokens=5)

    def test_text_and_tool(self, tool_stream):
        message = accumulate_payload(tool_stream)

        assert message.content == [
            TextBlock(text="Let me check."),
            ToolUseBlock(id="toolu_1", name="get_weather", input={"location": "SF"}),
        ]
        assert message.is_tool_use_stop()
        assert message.usage.output_tokens == 12

    def test_delta_without_block_start(self):
        """A minimal stream with no content_block_start still yields its text."""
        decoder = SSEDecoder()
        raw_events = []
        raw_events += decoder.feed(
            'event: message_start\ndata: {"type": "message_start", "message": {"id": "msg_hi", "role": "assistant"}}\n\n'
        )
        raw_events += decoder.feed(
            'event: content_block_delta\ndata: {"index":0,"delta":{"type":"text_delta","text":"Hi"}}\n\n'
        )
        raw_events += decoder.feed("event: message_stop\ndata: {}\n\n")
        raw_events += decoder.flush()

        message = accumulate(from_sse(raw.event, raw.data) for raw in raw_events)

        assert message.content == [TextBlock(text="Hi")]
        assert [block.to_dict() for block in message.content] == [{"type": "text", "text": "Hi"}]
        assert message.id == "msg_hi"
