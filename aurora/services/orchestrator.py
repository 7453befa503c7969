"""Turn orchestration: model calls, single-tool gating, continuation and extraction handling."""

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, Field

from aurora.clients.anthropic import AnthropicClient, LLMClientError, get_anthropic_client
from aurora.clients.streaming import StreamAccumulator
from aurora.models.extraction import Extraction, ExtractionReport, ExtractionSection
from aurora.models.llm import (
    ContentBlock,
    LLMMessage,
    LLMResponse,
    LLMToolDefinition,
    StreamError,
    StreamEvent,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
)
from aurora.models.messages import ConversationMessage, ToolCall
from aurora.models.session import ChatSession, PendingToolCall, TurnState
from aurora.services.context_builder import ContextBuilder
from aurora.services.conversation_store import ConversationStore, conversation_store
from aurora.services.domains import domain_services
from aurora.services.extraction import ExtractionProcessor, parse_extraction
from aurora.services.intent import Intent, IntentClassifier
from aurora.services.session_manager import InMemorySessionManager, session_manager
from aurora.services.tool_selector import ToolSelector
from aurora.tools.base import ToolResult, ToolSuccess
from aurora.tools.registry import ToolCatalog, get_tool_catalog
from aurora.utils.logging import get_logger

logger = get_logger(__name__)

HISTORY_LIMIT = 20
MAX_TOOL_ROUNDS = 10

TextCallback = Callable[[str], Awaitable[None]]


class ConversationNotFoundError(Exception):
    """The conversation does not exist."""


class TurnInProgressError(Exception):
    """A new message arrived while the previous turn is still running or awaiting confirmation."""


class NoPendingToolCallError(Exception):
    """Confirm or cancel was requested but nothing is waiting for confirmation."""


class NoPendingExtractionError(Exception):
    """An extraction action was requested but the conversation has no pending extraction."""


class PendingConfirmation(BaseModel):
    """A gated tool call surfaced to the user for approval."""

    tool_use_id: str
    tool_name: str
    tool_input: dict[str, Any]
    destructive: bool = False
    description: str | None = None


class TurnResult(BaseModel):
    """Everything a caller needs to render after a turn step."""

    conversation_id: str
    messages: list[ConversationMessage] = Field(default_factory=list)
    pending_confirmation: PendingConfirmation | None = None
    pending_extraction: Extraction | None = None
    error: str | None = None
    state: TurnState = TurnState.IDLE


class ConversationOrchestrator:
    """Drives conversational turns against the model and the tool catalog.

    At most one tool use is acted on per model response. Mutating tools wait for an explicit
    ``confirm`` or ``cancel``; read-only tools run immediately and their result is fed straight
    back to the model. Only API errors end a turn with an error; tool failures are returned to
    the model as error tool results.
    """

    def __init__(
        self,
        llm_client: AnthropicClient,
        catalog: ToolCatalog,
        store: ConversationStore,
        sessions: InMemorySessionManager,
        context_builder: ContextBuilder,
        extraction_processor: ExtractionProcessor,
        classifier: IntentClassifier | None = None,
        selector: ToolSelector | None = None,
        history_limit: int = HISTORY_LIMIT,
        max_tool_rounds: int = MAX_TOOL_ROUNDS,
    ):
        self.llm_client = llm_client
        self.catalog = catalog
        self.store = store
        self.sessions = sessions
        self.context_builder = context_builder
        self.extraction_processor = extraction_processor
        self.classifier = classifier or IntentClassifier(llm_client)
        self.selector = selector or ToolSelector(catalog)
        self.history_limit = history_limit
        self.max_tool_rounds = max_tool_rounds

    async def ensure_ready(self, conversation_id: str, text: str) -> ChatSession:
        """Check that ``text`` can start a turn now and return the conversation's session."""
        await self._require_conversation(conversation_id)
        self.llm_client.validate_message_tokens(text)

        session = self.sessions.get_or_create_session(conversation_id)
        if session.state != TurnState.IDLE:
            raise TurnInProgressError(f"Conversation {conversation_id} is {session.state}")
        return session

    async def submit(self, conversation_id: str, text: str, on_text: TextCallback | None = None) -> TurnResult:
        """Run a turn for a new user message.

        Args:
            conversation_id: Conversation to post into
            text: The user's message
            on_text: When given, the model is streamed and each text delta is passed here

        Raises:
            ConversationNotFoundError: If the conversation does not exist
            TurnInProgressError: If the previous turn has not finished
            ValueError: If the message exceeds the token limit
        """
        session = await self.ensure_ready(conversation_id, text)
        session.begin_turn(text)
        logger.info(f"Starting turn for conversation {conversation_id}")

        result = TurnResult(conversation_id=conversation_id)
        try:
            result.messages.append(await self.store.add_user_message(conversation_id, text))

            intent = await self.classifier.classify(text)
            tools = [] if intent == Intent.CONVERSATION_ONLY else self.selector.select(text)
            logger.info(f"Intent {intent}, offering {len(tools)} tools")

            history = await self._history(session)
            return await self._run(session, history, tools, result, on_text)
        except (Exception, asyncio.CancelledError):
            session.end_turn()
            raise

    async def confirm(self, conversation_id: str, on_text: TextCallback | None = None) -> TurnResult:
        """Run the pending tool call and continue the turn with its result.

        Raises:
            ConversationNotFoundError: If the conversation does not exist
            NoPendingToolCallError: If nothing is awaiting confirmation
        """
        session = await self._awaiting_confirmation(conversation_id)
        pending = session.take_pending_tool_call()
        logger.info(f"Confirmed {pending.tool_name} ({pending.tool_use_id}) in conversation {conversation_id}")

        result = TurnResult(conversation_id=conversation_id)
        try:
            tool_call = await self._tool_call_for(pending)
            await self.store.confirm_tool_call(tool_call)
            outcome = await self._execute(session, tool_call)
            messages = await self._continuation(session, pending.tool_use_id, outcome)
            tools = self.selector.select(session.trigger_query or "")
            return await self._run(session, messages, tools, result, on_text)
        except (Exception, asyncio.CancelledError):
            session.end_turn()
            raise

    async def cancel(self, conversation_id: str) -> TurnResult:
        """Drop the pending tool call and end the turn without calling the model again.

        Raises:
            ConversationNotFoundError: If the conversation does not exist
            NoPendingToolCallError: If nothing is awaiting confirmation
        """
        session = await self._awaiting_confirmation(conversation_id)
        pending = session.take_pending_tool_call()
        try:
            tool_call = await self._tool_call_for(pending)
            await self.store.cancel_tool_call(tool_call)
        finally:
            session.end_turn()

        logger.info(f"Cancelled {pending.tool_name} ({pending.tool_use_id}) in conversation {conversation_id}")
        return TurnResult(
            conversation_id=conversation_id,
            pending_extraction=session.pending_extraction,
            state=session.state,
        )

    async def get_pending_extraction(self, conversation_id: str) -> Extraction | None:
        await self._require_conversation(conversation_id)
        session = self.sessions.get_session(conversation_id)
        return session.pending_extraction if session else None

    async def toggle_extraction(
        self, conversation_id: str, section: ExtractionSection, index: int | None = None
    ) -> Extraction:
        """Flip approval of one extraction item.

        Raises:
            NoPendingExtractionError: If there is no pending extraction
            IndexError: If the index does not address an item
            ValueError: If the journal bundle is toggled but absent
        """
        _, extraction = await self._pending_extraction(conversation_id)
        extraction.toggle(section, index)
        return extraction

    async def process_extraction(self, conversation_id: str) -> ExtractionReport:
        """Apply the approved items and discard the extraction."""
        session, extraction = await self._pending_extraction(conversation_id)
        report = await self.extraction_processor.process(extraction)
        session.pending_extraction = None
        return report

    async def dismiss_extraction(self, conversation_id: str) -> None:
        session, _ = await self._pending_extraction(conversation_id)
        session.pending_extraction = None
        logger.info(f"Dismissed extraction in conversation {conversation_id}")

    async def _run(
        self,
        session: ChatSession,
        messages: list[LLMMessage],
        tools: list[LLMToolDefinition],
        result: TurnResult,
        on_text: TextCallback | None,
    ) -> TurnResult:
        """Call the model until it stops asking for tools or a tool needs confirmation."""
        conversation_id = session.conversation_id
        system_prompt = await self.context_builder.build_system_prompt()

        while True:
            session.state = TurnState.AWAITING_MODEL
            messages = self.llm_client.truncate_conversation(messages, system_prompt, tools)
            try:
                response = await self._call_model(messages, system_prompt, tools, on_text)
            except LLMClientError as e:
                logger.error(f"Model call failed for conversation {conversation_id}: {e.message}")
                session.end_turn()
                result.error = f"API Error: {e.message}"
                result.state = session.state
                return result

            message = await self._persist_reply(session, response, result)

            tool_uses = response.tool_uses
            if not tool_uses:
                session.end_turn()
                result.state = session.state
                logger.info(f"Turn finished for conversation {conversation_id}")
                return result

            tool_use = tool_uses[0]
            if len(tool_uses) > 1:
                dropped = ", ".join(f"{t.name} ({t.id})" for t in tool_uses[1:])
                logger.warning(f"Model requested {len(tool_uses)} tools at once, dropping {dropped}")

            if session.tool_rounds >= self.max_tool_rounds:
                logger.warning(
                    f"Conversation {conversation_id} hit {self.max_tool_rounds} tool rounds, ignoring {tool_use.name}"
                )
                session.end_turn()
                result.state = session.state
                return result

            # Empty text blocks are rejected by the API when replayed
            content: list[ContentBlock] = [
                block
                for block in response.content
                if block is tool_use or (isinstance(block, TextBlock) and block.text.strip())
            ]
            session.hold_tool_use(content, message.id if message else None)

            requires_confirmation = self.catalog.requires_confirmation(tool_use.name)
            tool_call = await self.store.create_tool_call(
                conversation_id,
                tool_use.id,
                tool_use.name,
                tool_use.input,
                requires_confirmation,
                message_id=message.id if message else None,
            )

            if requires_confirmation:
                session.await_confirmation(PendingToolCall(tool_use.id, tool_use.name, tool_use.input))
                result.pending_confirmation = self._pending_confirmation(tool_use)
                result.state = session.state
                return result

            outcome = await self._execute(session, tool_call)
            messages = await self._continuation(session, tool_use.id, outcome)
            tools = self.selector.select(session.trigger_query or "")

    async def _call_model(
        self,
        messages: list[LLMMessage],
        system_prompt: str,
        tools: list[LLMToolDefinition],
        on_text: TextCallback | None,
    ) -> LLMResponse:
        if on_text is None:
            return await self.llm_client.send(messages, system_prompt, tools)

        handle = self.llm_client.stream(messages, system_prompt, tools)
        accumulator = StreamAccumulator()
        try:
            async for message in handle.iter_messages():
                if isinstance(message, StreamEvent):
                    delta = accumulator.feed(message)
                    if delta:
                        await on_text(delta)
                elif isinstance(message, StreamError):
                    raise LLMClientError(message.message, status_code=message.status_code)
        finally:
            handle.close()
        return accumulator.build()

    async def _persist_reply(
        self, session: ChatSession, response: LLMResponse, result: TurnResult
    ) -> ConversationMessage | None:
        """Store the reply text, if any, and pick up an extraction block from it."""
        text = response.text
        if not text.strip():
            return None

        message = await self.store.add_assistant_message(
            session.conversation_id,
            text,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        result.messages.append(message)

        extraction = parse_extraction(text)
        if extraction is not None:
            session.pending_extraction = extraction
            result.pending_extraction = extraction
        return message

    async def _execute(self, session: ChatSession, tool_call: ToolCall) -> ToolResult:
        session.state = TurnState.EXECUTING_TOOL
        session.tool_rounds += 1
        await self.store.start_tool_call(tool_call)

        outcome = await self.catalog.execute(tool_call.tool_name, tool_call.tool_input)
        if isinstance(outcome, ToolSuccess):
            await self.store.complete_tool_call(tool_call, outcome.data)
        else:
            await self.store.fail_tool_call(tool_call, outcome.error)
        return outcome

    async def _history(self, session: ChatSession) -> list[LLMMessage]:
        recent = await self.store.get_recent_messages(session.conversation_id, self.history_limit)
        return [LLMMessage(role=m.role, content=m.content) for m in recent if m.role in ("user", "assistant")]

    async def _continuation(self, session: ChatSession, tool_use_id: str, outcome: ToolResult) -> list[LLMMessage]:
        """History with the stored reply swapped for its structured content, plus the tool result."""
        pending = LLMMessage(role="assistant", content=session.pending_assistant_content or [])
        recent = await self.store.get_recent_messages(session.conversation_id, self.history_limit)

        messages: list[LLMMessage] = []
        replaced = False
        for stored in recent:
            if stored.role not in ("user", "assistant"):
                continue
            if session.pending_message_id is not None and stored.id == session.pending_message_id:
                messages.append(pending)
                replaced = True
            else:
                messages.append(LLMMessage(role=stored.role, content=stored.content))
        if not replaced:
            messages.append(pending)

        if isinstance(outcome, ToolSuccess):
            block = ToolResultBlock(tool_use_id=tool_use_id, content=json.dumps(outcome.data, default=str))
        else:
            block = ToolResultBlock(tool_use_id=tool_use_id, content=f"Error: {outcome.error}", is_error=True)
        messages.append(LLMMessage(role="user", content=[block]))
        return messages

    def _pending_confirmation(self, tool_use: ToolUseBlock) -> PendingConfirmation:
        return PendingConfirmation(
            tool_use_id=tool_use.id,
            tool_name=tool_use.name,
            tool_input=tool_use.input,
            destructive=self.catalog.is_destructive(tool_use.name),
            description=self.catalog.get_tool_description(tool_use.name),
        )

    async def _tool_call_for(self, pending: PendingToolCall) -> ToolCall:
        tool_call = await self.store.get_tool_call_by_use_id(pending.tool_use_id)
        if tool_call is None:
            raise NoPendingToolCallError(f"No tool call recorded for {pending.tool_use_id}")
        return tool_call

    async def _require_conversation(self, conversation_id: str) -> None:
        if await self.store.get_conversation(conversation_id) is None:
            raise ConversationNotFoundError(f"Conversation {conversation_id} not found")

    async def _awaiting_confirmation(self, conversation_id: str) -> ChatSession:
        await self._require_conversation(conversation_id)
        session = self.sessions.get_session(conversation_id)
        if session is None or session.state != TurnState.AWAITING_CONFIRMATION or session.pending_tool_call is None:
            raise NoPendingToolCallError(f"Conversation {conversation_id} has no tool call awaiting confirmation")
        return session

    async def _pending_extraction(self, conversation_id: str) -> tuple[ChatSession, Extraction]:
        await self._require_conversation(conversation_id)
        session = self.sessions.get_session(conversation_id)
        if session is None or session.pending_extraction is None:
            raise NoPendingExtractionError(f"Conversation {conversation_id} has no pending extraction")
        return session, session.pending_extraction


_orchestrator: ConversationOrchestrator | None = None


def get_orchestrator() -> ConversationOrchestrator:
    """Get or create the process-wide orchestrator."""
    global _orchestrator
    if _orchestrator is None:
        catalog = get_tool_catalog(domain_services)
        _orchestrator = ConversationOrchestrator(
            llm_client=get_anthropic_client(),
            catalog=catalog,
            store=conversation_store,
            sessions=session_manager,
            context_builder=ContextBuilder(domain_services),
            extraction_processor=ExtractionProcessor(catalog, domain_services.boards),
        )
    return _orchestrator
