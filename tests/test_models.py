"""
stratostream - Model Tests
"""

from stratostream.models import (
    Message,
    TextBlock,
    ThinkingBlock,
    ToolUseBlock,
    UnknownBlock,
    Usage,
    parse_content_block,
)


class TestContentBlocks:
    """Tests for content block parsing and serialization."""

    def test_parse_known_blocks(self):
        assert parse_content_block({"type": "text", "text": "hi"}) == TextBlock(text="hi")
        assert parse_content_block(
            {"type": "tool_use", "id": "toolu_1", "name": "calc", "input": {"x": 1}}
        ) == ToolUseBlock(id="toolu_1", name="calc", input={"x": 1})
        assert parse_content_block(
            {"type": "thinking", "thinking": "hmm", "signature": "sig"}
        ) == ThinkingBlock(thinking="hmm", signature="sig")

    def test_parse_unknown_block(self):
        raw = {"type": "redacted_thinking", "data": "xyz"}
        block = parse_content_block(raw)

        assert block == UnknownBlock(raw=raw)
        assert block.to_dict() == raw

    def test_thinking_signature_omitted_when_absent(self):
        assert ThinkingBlock(thinking="a").to_dict() == {"type": "thinking", "thinking": "a"}
        assert ThinkingBlock(thinking="a", signature="s").to_dict()["signature"] == "s"


class TestMessage:
    """Tests for Message."""

    def test_round_trip(self, mock_message_response):
        message = Message.from_dict(mock_message_response)

        assert message.to_dict() == mock_message_response

    def test_helpers(self):
        message = Message(
            content=[
                ThinkingBlock(thinking="Let me think."),
                TextBlock(text="It is "),
                ToolUseBlock(id="toolu_1", name="get_weather", input={"location": "SF"}),
                TextBlock(text="sunny."),
            ],
            stop_reason="tool_use",
        )

        assert message.get_text() == "It is sunny."
        assert message.get_thinking() == "Let me think."
        assert [t.name for t in message.get_tool_uses()] == ["get_weather"]
        assert message.has_tool_use()
        assert message.is_tool_use_stop()

    def test_defaults(self):
        message = Message.from_dict({})

        assert message.content == []
        assert message.usage == Usage()
        assert not message.has_tool_use()
