"""Per-conversation turn state kept outside the persisted message store."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from aurora.models.extraction import Extraction
from aurora.models.llm import ContentBlock
from aurora.utils.logging import get_logger

logger = get_logger(__name__)


class TurnState(StrEnum):
    """Where the orchestrator is within a conversational turn."""

    IDLE = "idle"
    AWAITING_MODEL = "awaiting_model"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    EXECUTING_TOOL = "executing_tool"


@dataclass
class PendingToolCall:
    """A tool invocation waiting for the user to confirm or cancel it."""

    tool_use_id: str
    tool_name: str
    tool_input: dict[str, Any]


@dataclass
class ChatSession:
    """Transient orchestration state for one conversation.

    Holds at most one pending tool call. ``pending_assistant_content`` is the assistant turn
    (text blocks plus the single tool-use block being processed) that has to be replayed
    to the API when the tool result is sent back.
    """

    conversation_id: str
    state: TurnState = TurnState.IDLE
    trigger_query: str | None = None
    pending_tool_call: PendingToolCall | None = None
    pending_assistant_content: list[ContentBlock] | None = None
    pending_message_id: str | None = None
    pending_extraction: Extraction | None = None
    tool_rounds: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    last_activity: datetime = field(default_factory=lambda: datetime.now(UTC))

    def as_dict(self) -> dict[str, Any]:
        """Return the session as a dictionary."""
        return {
            "conversation_id": self.conversation_id,
            "state": self.state.value,
            "pending_tool": self.pending_tool_call.tool_name if self.pending_tool_call else None,
            "has_extraction": self.pending_extraction is not None,
            "last_activity": self.last_activity.isoformat(),
        }

    def update_activity(self) -> None:
        """Update the last activity timestamp."""
        self.last_activity = datetime.now(UTC)

    def begin_turn(self, query: str) -> None:
        self.trigger_query = query
        self.tool_rounds = 0
        self.state = TurnState.AWAITING_MODEL
        self.update_activity()

    def hold_tool_use(self, content: list[ContentBlock], message_id: str | None) -> None:
        """Remember the assistant content that carries the tool use being processed."""
        self.pending_assistant_content = content
        self.pending_message_id = message_id

    def await_confirmation(self, pending: PendingToolCall) -> None:
        if self.pending_tool_call is not None:
            raise RuntimeError(
                f"Conversation {self.conversation_id} already has pending tool call "
                f"{self.pending_tool_call.tool_use_id}"
            )
        logger.info(f"Conversation {self.conversation_id} awaiting confirmation for {pending.tool_name}")
        self.pending_tool_call = pending
        self.state = TurnState.AWAITING_CONFIRMATION
        self.update_activity()

    def take_pending_tool_call(self) -> PendingToolCall | None:
        pending = self.pending_tool_call
        self.pending_tool_call = None
        return pending

    def end_turn(self) -> None:
        """Return to idle and drop every piece of in-flight tool state."""
        self.pending_tool_call = None
        self.pending_assistant_content = None
        self.pending_message_id = None
        self.tool_rounds = 0
        self.state = TurnState.IDLE
        self.update_activity()
