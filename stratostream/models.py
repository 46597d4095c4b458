"""
stratostream - Data Models

Dataclasses for messages and their content blocks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Union


# ============================================================
# Content Blocks
# ============================================================

@dataclass
class TextBlock:
    """Plain text output."""
    text: str = ""

    type: ClassVar[str] = "text"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "text": self.text}


@dataclass
class ToolUseBlock:
    """A tool invocation with its decoded input arguments."""
    id: Optional[str] = None
    name: Optional[str] = None
    input: Dict[str, Any] = field(default_factory=dict)

    type: ClassVar[str] = "tool_use"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "id": self.id, "name": self.name, "input": self.input}


@dataclass
class ThinkingBlock:
    """
    Extended-thinking output.

    The signature streams separately from the thinking text.
    """
    thinking: str = ""
    signature: Optional[str] = None

    type: ClassVar[str] = "thinking"

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"type": self.type, "thinking": self.thinking}
        if self.signature is not None:
            result["signature"] = self.signature
        return result


@dataclass
class UnknownBlock:
    """A block type this client does not know; kept verbatim."""
    raw: Any = None

    type: ClassVar[str] = "unknown"

    def to_dict(self) -> Dict[str, Any]:
        return self.raw if isinstance(self.raw, dict) else {"type": self.type, "raw": self.raw}


ContentBlock = Union[TextBlock, ToolUseBlock, ThinkingBlock, UnknownBlock]


def parse_content_block(block: Any) -> ContentBlock:
    """Convert a wire content block into its typed form."""
    if not isinstance(block, dict):
        return UnknownBlock(raw=block)

    block_type = block.get("type")

    if block_type == "text":
        return TextBlock(text=block.get("text") or "")

    if block_type == "tool_use":
        return ToolUseBlock(
            id=block.get("id"),
            name=block.get("name"),
            input=block.get("input") or {}
        )

    if block_type == "thinking":
        return ThinkingBlock(
            thinking=block.get("thinking") or "",
            signature=block.get("signature")
        )

    return UnknownBlock(raw=block)


# ============================================================
# Message
# ============================================================

@dataclass
class Usage:
    """Token usage for one message."""
    input_tokens: int = 0
    output_tokens: int = 0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Usage:
        data = data if isinstance(data, dict) else {}
        return cls(
            input_tokens=data.get("input_tokens") or 0,
            output_tokens=data.get("output_tokens") or 0
        )

    def to_dict(self) -> Dict[str, int]:
        return {"input_tokens": self.input_tokens, "output_tokens": self.output_tokens}


@dataclass
class Message:
    """
    A complete assistant message.

    Content is an ordered list of typed blocks:

        Message(content=[
            ThinkingBlock(thinking="Let me analyze..."),
            TextBlock(text="Based on my analysis..."),
            ToolUseBlock(id="toolu_123", name="get_weather", input={}),
        ])
    """
    id: Optional[str] = None
    type: Optional[str] = None
    role: Optional[str] = None
    model: Optional[str] = None
    content: List[ContentBlock] = field(default_factory=list)
    stop_reason: Optional[str] = None
    stop_sequence: Optional[str] = None
    usage: Usage = field(default_factory=Usage)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Message:
        """Create from a whole (non-streaming) API response."""
        return cls(
            id=data.get("id"),
            type=data.get("type"),
            role=data.get("role"),
            model=data.get("model"),
            content=[parse_content_block(b) for b in (data.get("content") or [])],
            stop_reason=data.get("stop_reason"),
            stop_sequence=data.get("stop_sequence"),
            usage=Usage.from_dict(data.get("usage"))
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire dictionary format."""
        return {
            "id": self.id,
            "type": self.type,
            "role": self.role,
            "model": self.model,
            "content": [block.to_dict() for block in self.content],
            "stop_reason": self.stop_reason,
            "stop_sequence": self.stop_sequence,
            "usage": self.usage.to_dict(),
        }

    def get_text(self) -> str:
        """All text content concatenated."""
        return "".join(b.text for b in self.content if isinstance(b, TextBlock))

    def get_thinking(self) -> str:
        """All thinking content concatenated."""
        return "".join(b.thinking for b in self.content if isinstance(b, ThinkingBlock))

    def get_tool_uses(self) -> List[ToolUseBlock]:
        return [b for b in self.content if isinstance(b, ToolUseBlock)]

    def has_tool_use(self) -> bool:
        return bool(self.get_tool_uses())

    def is_tool_use_stop(self) -> bool:
        """Check if the message stopped to call a tool."""
        return self.stop_reason == "tool_use"
