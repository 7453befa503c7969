"""LLM-related data models and types (provider-agnostic)."""

from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel


# Content block types
class TextBlock(BaseModel):
    """Text content block."""

    type: Literal["text"] = "text"
    text: str

    class Config:
        extra = "ignore"  # Ignore any additional fields from Anthropic


class ToolUseBlock(BaseModel):
    """Tool use content block."""

    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: dict[str, Any]

    class Config:
        extra = "ignore"  # Ignore any additional fields from Anthropic


class ToolResultBlock(BaseModel):
    """Tool result content block."""

    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: str
    is_error: bool = False

    class Config:
        extra = "ignore"  # Ignore any additional fields from Anthropic


class UnknownBlock(BaseModel):
    """Any content block type this service does not interpret.

    Kept in place so block order survives normalization, but never sent back to the API.
    """

    type: Literal["unknown"] = "unknown"
    raw: dict[str, Any]


ContentBlock = TextBlock | ToolUseBlock | ToolResultBlock | UnknownBlock


class LLMMessage(BaseModel):
    """A message for LLM conversation."""

    role: Literal["user", "assistant"]
    content: str | list[ContentBlock]

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the request shape expected by the messages endpoint."""
        if isinstance(self.content, str):
            return {"role": self.role, "content": self.content}
        return {
            "role": self.role,
            "content": [block.model_dump() for block in self.content if not isinstance(block, UnknownBlock)],
        }


class LLMToolDefinition(BaseModel):
    """Complete tool definition for LLM."""

    name: str
    description: str
    input_schema: dict[str, Any]


@dataclass
class LLMUsage:
    """Token usage information from LLM provider."""

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class LLMResponse:
    """Provider-agnostic response from LLM service."""

    content: list[ContentBlock]
    stop_reason: str | None
    usage: LLMUsage = field(default_factory=LLMUsage)
    model: str | None = None
    id: str | None = None

    @property
    def text(self) -> str:
        """Concatenated text of every text block, in order."""
        return "".join(block.text for block in self.content if isinstance(block, TextBlock))

    @property
    def tool_uses(self) -> list[ToolUseBlock]:
        """Tool-use blocks in the order the model emitted them."""
        return [block for block in self.content if isinstance(block, ToolUseBlock)]


# Stream mailbox messages
@dataclass
class StreamEvent:
    """A forwarded server-sent event carrying incremental content."""

    type: str
    data: dict[str, Any]


@dataclass
class StreamEnd:
    """Terminal signal: the stream completed successfully."""


@dataclass
class StreamError:
    """Terminal signal: the stream failed."""

    message: str
    status_code: int | None = None


StreamMessage = StreamEvent | StreamEnd | StreamError
