"""Conversation, message and tool call records."""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now() -> datetime:
    return datetime.now(UTC)


class Conversation(BaseModel):
    """A conversation thread with the assistant."""

    id: str
    title: str | None = Field(default=None, max_length=255)
    archived: bool = False
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class ConversationMessage(BaseModel):
    """A persisted message in a conversation.

    Only text is stored; structured tool-use content lives in the per-conversation session
    while a tool call is in flight.
    """

    id: str
    conversation_id: str
    role: Literal["user", "assistant", "system"]
    content: str
    completed: bool = True
    input_tokens: int | None = None
    output_tokens: int | None = None
    created_at: datetime = Field(default_factory=_now)


class ToolCallStatus(StrEnum):
    """Lifecycle of a tool invocation attempt."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"
    CANCELLED = "cancelled"


# Forward-only lifecycle: pending -> running -> success|error, or pending -> cancelled
_TRANSITIONS: dict[ToolCallStatus, frozenset[ToolCallStatus]] = {
    ToolCallStatus.PENDING: frozenset({ToolCallStatus.RUNNING, ToolCallStatus.CANCELLED}),
    ToolCallStatus.RUNNING: frozenset({ToolCallStatus.SUCCESS, ToolCallStatus.ERROR}),
    ToolCallStatus.SUCCESS: frozenset(),
    ToolCallStatus.ERROR: frozenset(),
    ToolCallStatus.CANCELLED: frozenset(),
}


class InvalidToolCallTransitionError(Exception):
    """Raised when a tool call would move backwards or skip its confirmation."""


class ToolCall(BaseModel):
    """Audit record for one tool invocation requested by the model."""

    id: str
    conversation_id: str
    message_id: str | None = None
    tool_use_id: str
    tool_name: str
    tool_input: dict[str, Any] = Field(default_factory=dict)
    tool_output: dict[str, Any] | None = None
    status: ToolCallStatus = ToolCallStatus.PENDING
    error_message: str | None = None
    requires_confirmation: bool = False
    confirmed_at: datetime | None = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    def can_transition(self, status: ToolCallStatus) -> bool:
        return status in _TRANSITIONS[self.status]

    def transition(self, status: ToolCallStatus) -> None:
        """Advance the status, refusing regressions and unconfirmed starts."""
        if not self.can_transition(status):
            raise InvalidToolCallTransitionError(f"Tool call {self.tool_use_id}: {self.status} -> {status} not allowed")
        if status == ToolCallStatus.RUNNING and self.requires_confirmation and self.confirmed_at is None:
            raise InvalidToolCallTransitionError(f"Tool call {self.tool_use_id} requires confirmation before running")

        self.status = status
        self.updated_at = _now()

    def confirm(self) -> None:
        if self.status != ToolCallStatus.PENDING:
            raise InvalidToolCallTransitionError(f"Tool call {self.tool_use_id} is {self.status}, cannot confirm")
        self.confirmed_at = _now()
        self.updated_at = self.confirmed_at
