"""Durable conversation state: conversations, messages and the tool call audit trail."""

from datetime import UTC, datetime
from typing import Any, Protocol

from cuid2 import cuid_wrapper

from aurora.models.messages import Conversation, ConversationMessage, ToolCall, ToolCallStatus
from aurora.utils.logging import get_logger

logger = get_logger(__name__)

cuid = cuid_wrapper()

DEFAULT_CONVERSATION_TITLE = "New Conversation"


class ConversationStore(Protocol):
    """Interface for conversation persistence."""

    async def create_conversation(self, title: str | None = None) -> Conversation: ...

    async def list_conversations(self) -> list[Conversation]:
        """Non-archived conversations, most recently updated first."""
        ...

    async def get_conversation(self, conversation_id: str) -> Conversation | None: ...

    async def archive_conversation(self, conversation_id: str) -> Conversation | None: ...

    async def delete_conversation(self, conversation_id: str) -> bool: ...

    async def get_or_create_default(self) -> Conversation: ...

    async def add_user_message(self, conversation_id: str, content: str) -> ConversationMessage: ...

    async def add_assistant_message(
        self,
        conversation_id: str,
        content: str,
        input_tokens: int | None = None,
        output_tokens: int | None = None,
        completed: bool = True,
    ) -> ConversationMessage: ...

    async def list_messages(self, conversation_id: str) -> list[ConversationMessage]: ...

    async def get_recent_messages(self, conversation_id: str, limit: int = 20) -> list[ConversationMessage]:
        """The last ``limit`` messages, oldest first."""
        ...

    async def create_tool_call(
        self,
        conversation_id: str,
        tool_use_id: str,
        tool_name: str,
        tool_input: dict[str, Any],
        requires_confirmation: bool,
        message_id: str | None = None,
    ) -> ToolCall: ...

    async def get_tool_call_by_use_id(self, tool_use_id: str) -> ToolCall | None: ...

    async def list_tool_calls(self, conversation_id: str) -> list[ToolCall]: ...

    async def confirm_tool_call(self, tool_call: ToolCall) -> ToolCall: ...

    async def start_tool_call(self, tool_call: ToolCall) -> ToolCall: ...

    async def complete_tool_call(self, tool_call: ToolCall, output: Any) -> ToolCall: ...

    async def fail_tool_call(self, tool_call: ToolCall, error_message: str) -> ToolCall: ...

    async def cancel_tool_call(self, tool_call: ToolCall) -> ToolCall: ...


class InMemoryConversationStore:
    """In-memory conversation store.

    Conversation, message and tool call ids are CUIDs.
    """

    def __init__(self):
        self.conversations: dict[str, Conversation] = {}
        self.messages: dict[str, list[ConversationMessage]] = {}
        self.tool_calls: dict[str, ToolCall] = {}

    async def create_conversation(self, title: str | None = None) -> Conversation:
        conversation = Conversation(id=cuid(), title=title)
        self.conversations[conversation.id] = conversation
        self.messages[conversation.id] = []
        logger.info(f"Created conversation {conversation.id}")
        return conversation

    async def list_conversations(self) -> list[Conversation]:
        active = [c for c in self.conversations.values() if not c.archived]
        return sorted(active, key=lambda c: c.updated_at, reverse=True)

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        return self.conversations.get(conversation_id)

    async def archive_conversation(self, conversation_id: str) -> Conversation | None:
        conversation = self.conversations.get(conversation_id)
        if conversation is not None:
            conversation.archived = True
            conversation.updated_at = datetime.now(UTC)
        return conversation

    async def delete_conversation(self, conversation_id: str) -> bool:
        if self.conversations.pop(conversation_id, None) is None:
            return False
        self.messages.pop(conversation_id, None)
        self.tool_calls = {k: tc for k, tc in self.tool_calls.items() if tc.conversation_id != conversation_id}
        logger.info(f"Deleted conversation {conversation_id}")
        return True

    async def get_or_create_default(self) -> Conversation:
        """The most recent active conversation, or a fresh one."""
        conversations = await self.list_conversations()
        if conversations:
            return conversations[0]
        return await self.create_conversation(DEFAULT_CONVERSATION_TITLE)

    async def add_user_message(self, conversation_id: str, content: str) -> ConversationMessage:
        message = ConversationMessage(id=cuid(), conversation_id=conversation_id, role="user", content=content)
        return self._append(message)

    async def add_assistant_message(
        self,
        conversation_id: str,
        content: str,
        input_tokens: int | None = None,
        output_tokens: int | None = None,
        completed: bool = True,
    ) -> ConversationMessage:
        return self._append(
            ConversationMessage(
                id=cuid(),
                conversation_id=conversation_id,
                role="assistant",
                content=content,
                completed=completed,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
            )
        )

    async def list_messages(self, conversation_id: str) -> list[ConversationMessage]:
        return list(self.messages.get(conversation_id, []))

    async def get_recent_messages(self, conversation_id: str, limit: int = 20) -> list[ConversationMessage]:
        messages = self.messages.get(conversation_id, [])
        return list(messages[-limit:]) if limit > 0 else []

    async def create_tool_call(
        self,
        conversation_id: str,
        tool_use_id: str,
        tool_name: str,
        tool_input: dict[str, Any],
        requires_confirmation: bool,
        message_id: str | None = None,
    ) -> ToolCall:
        tool_call = ToolCall(
            id=cuid(),
            conversation_id=conversation_id,
            message_id=message_id,
            tool_use_id=tool_use_id,
            tool_name=tool_name,
            tool_input=tool_input,
            requires_confirmation=requires_confirmation,
        )
        self.tool_calls[tool_call.id] = tool_call
        return tool_call

    async def get_tool_call_by_use_id(self, tool_use_id: str) -> ToolCall | None:
        for tool_call in self.tool_calls.values():
            if tool_call.tool_use_id == tool_use_id:
                return tool_call
        return None

    async def list_tool_calls(self, conversation_id: str) -> list[ToolCall]:
        calls = [tc for tc in self.tool_calls.values() if tc.conversation_id == conversation_id]
        return sorted(calls, key=lambda tc: tc.created_at)

    async def confirm_tool_call(self, tool_call: ToolCall) -> ToolCall:
        tool_call.confirm()
        return tool_call

    async def start_tool_call(self, tool_call: ToolCall) -> ToolCall:
        tool_call.transition(ToolCallStatus.RUNNING)
        return tool_call

    async def complete_tool_call(self, tool_call: ToolCall, output: Any) -> ToolCall:
        tool_call.transition(ToolCallStatus.SUCCESS)
        tool_call.tool_output = output if isinstance(output, dict) else {"result": output}
        return tool_call

    async def fail_tool_call(self, tool_call: ToolCall, error_message: str) -> ToolCall:
        tool_call.transition(ToolCallStatus.ERROR)
        tool_call.error_message = error_message
        return tool_call

    async def cancel_tool_call(self, tool_call: ToolCall) -> ToolCall:
        tool_call.transition(ToolCallStatus.CANCELLED)
        return tool_call

    def _append(self, message: ConversationMessage) -> ConversationMessage:
        if message.conversation_id not in self.conversations:
            raise KeyError(f"Conversation {message.conversation_id} does not exist")
        self.messages.setdefault(message.conversation_id, []).append(message)
        self.conversations[message.conversation_id].updated_at = message.created_at
        return message


conversation_store = InMemoryConversationStore()
