"""Tests for turn orchestration, confirmation gating and continuation."""

import asyncio
import json

import pytest

from aurora.clients.anthropic import LLMClientError, StreamHandle
from aurora.models.extraction import ExtractionSection
from aurora.models.llm import (
    LLMResponse,
    LLMUsage,
    StreamEnd,
    StreamError,
    StreamEvent,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
)
from aurora.models.messages import ToolCallStatus
from aurora.models.session import TurnState
from aurora.services.intent import Intent
from aurora.services.orchestrator import (
    ConversationNotFoundError,
    ConversationOrchestrator,
    NoPendingExtractionError,
    NoPendingToolCallError,
    TurnInProgressError,
)


def text_response(text: str) -> LLMResponse:
    return LLMResponse(
        content=[TextBlock(text=text)], stop_reason="end_turn", usage=LLMUsage(input_tokens=12, output_tokens=5)
    )


def tool_response(*tool_uses: ToolUseBlock, text: str | None = None) -> LLMResponse:
    content = [TextBlock(text=text)] if text else []
    return LLMResponse(content=[*content, *tool_uses], stop_reason="tool_use", usage=LLMUsage(20, 8))


def tool_use(tool_use_id: str, name: str, tool_input: dict | None = None) -> ToolUseBlock:
    return ToolUseBlock(id=tool_use_id, name=name, input=tool_input or {})


def sent_messages(llm_client, call_index: int):
    return llm_client.send.call_args_list[call_index].args[0]


class TestConversationalTurn:
    """Turns that never touch a tool."""

    @pytest.mark.asyncio
    async def test_text_reply_is_persisted(self, orchestrator, llm_client, store):
        conversation = await store.create_conversation("Chat")
        llm_client.send.side_effect = [text_response("Hello there!")]

        result = await orchestrator.submit(conversation.id, "hello")

        assert result.error is None
        assert result.state == TurnState.IDLE
        assert [m.role for m in result.messages] == ["user", "assistant"]
        assert result.messages[1].content == "Hello there!"
        assert result.messages[1].input_tokens == 12
        assert result.messages[1].output_tokens == 5

        stored = await store.list_messages(conversation.id)
        assert [m.content for m in stored] == ["hello", "Hello there!"]
        assert await store.list_tool_calls(conversation.id) == []

    @pytest.mark.asyncio
    async def test_conversation_only_intent_sends_no_tools(self, orchestrator, llm_client, store, classifier):
        conversation = await store.create_conversation()
        classifier.classify.return_value = Intent.CONVERSATION_ONLY
        llm_client.send.side_effect = [text_response("Hi!")]

        await orchestrator.submit(conversation.id, "show my habits")

        assert llm_client.send.call_args_list[0].args[2] == []

    @pytest.mark.asyncio
    async def test_needs_tools_intent_offers_selected_domains(self, orchestrator, llm_client, store):
        conversation = await store.create_conversation()
        llm_client.send.side_effect = [text_response("Here they are")]

        await orchestrator.submit(conversation.id, "what are my habits today")

        tool_names = {tool.name for tool in llm_client.send.call_args_list[0].args[2]}
        assert "list_habits" in tool_names
        assert "list_transactions" not in tool_names

    @pytest.mark.asyncio
    async def test_history_is_sent_with_new_message(self, orchestrator, llm_client, store):
        conversation = await store.create_conversation()
        llm_client.send.side_effect = [text_response("First answer"), text_response("Second answer")]

        await orchestrator.submit(conversation.id, "first question")
        await orchestrator.submit(conversation.id, "second question")

        messages = sent_messages(llm_client, 1)
        assert [(m.role, m.content) for m in messages] == [
            ("user", "first question"),
            ("assistant", "First answer"),
            ("user", "second question"),
        ]

    @pytest.mark.asyncio
    async def test_unknown_conversation_raises(self, orchestrator):
        with pytest.raises(ConversationNotFoundError):
            await orchestrator.submit("missing", "hello")

    @pytest.mark.asyncio
    async def test_over_long_message_is_rejected_before_persisting(self, orchestrator, llm_client, store):
        conversation = await store.create_conversation()
        llm_client.config.max_message_tokens = 10

        with pytest.raises(ValueError, match="Message exceeds token limit"):
            await orchestrator.submit(conversation.id, "word " * 100)

        assert await store.list_messages(conversation.id) == []
        llm_client.send.assert_not_called()


class TestAutomaticToolRounds:
    """Read-only tools run straight away and their result goes back to the model."""

    @pytest.mark.asyncio
    async def test_read_only_tool_runs_and_continues(self, orchestrator, llm_client, store):
        conversation = await store.create_conversation()
        llm_client.send.side_effect = [
            tool_response(tool_use("toolu_1", "list_boards"), text="Let me check your boards."),
            text_response("You have one board: Personal."),
        ]

        result = await orchestrator.submit(conversation.id, "show my boards")

        assert result.state == TurnState.IDLE
        assert result.pending_confirmation is None
        assert [m.content for m in result.messages] == [
            "show my boards",
            "Let me check your boards.",
            "You have one board: Personal.",
        ]

        tool_calls = await store.list_tool_calls(conversation.id)
        assert len(tool_calls) == 1
        assert tool_calls[0].status == ToolCallStatus.SUCCESS
        assert tool_calls[0].requires_confirmation is False
        assert tool_calls[0].tool_output["boards"][0]["name"] == "Personal"

    @pytest.mark.asyncio
    async def test_continuation_replays_tool_use_then_result(self, orchestrator, llm_client, store):
        conversation = await store.create_conversation()
        llm_client.send.side_effect = [
            tool_response(tool_use("toolu_1", "list_boards"), text="Checking."),
            text_response("Done."),
        ]

        await orchestrator.submit(conversation.id, "show my boards")

        messages = sent_messages(llm_client, 1)
        assert [m.role for m in messages] == ["user", "assistant", "user"]

        assistant = messages[1].content
        assert isinstance(assistant[0], TextBlock) and assistant[0].text == "Checking."
        assert isinstance(assistant[1], ToolUseBlock) and assistant[1].id == "toolu_1"

        result_block = messages[2].content[0]
        assert isinstance(result_block, ToolResultBlock)
        assert result_block.tool_use_id == "toolu_1"
        assert result_block.is_error is False
        assert json.loads(result_block.content)["count"] == 1

    @pytest.mark.asyncio
    async def test_tool_use_without_text_is_appended(self, orchestrator, llm_client, store):
        conversation = await store.create_conversation()
        llm_client.send.side_effect = [
            tool_response(tool_use("toolu_1", "list_boards")),
            text_response("One board."),
        ]

        result = await orchestrator.submit(conversation.id, "show my boards")

        assert [m.role for m in result.messages] == ["user", "assistant"]
        messages = sent_messages(llm_client, 1)
        assert messages[0].content == "show my boards"
        assert messages[1].role == "assistant"
        assert [block.type for block in messages[1].content] == ["tool_use"]
        assert messages[2].content[0].tool_use_id == "toolu_1"

    @pytest.mark.asyncio
    async def test_only_first_tool_use_is_acted_on(self, orchestrator, llm_client, store):
        conversation = await store.create_conversation()
        llm_client.send.side_effect = [
            tool_response(tool_use("toolu_1", "list_boards"), tool_use("toolu_2", "list_habits")),
            text_response("Here you go."),
        ]

        await orchestrator.submit(conversation.id, "show my boards and habits")

        tool_calls = await store.list_tool_calls(conversation.id)
        assert [tc.tool_use_id for tc in tool_calls] == ["toolu_1"]

        messages = sent_messages(llm_client, 1)
        replayed_ids = [block.id for block in messages[1].content if isinstance(block, ToolUseBlock)]
        assert replayed_ids == ["toolu_1"]
        assert [block.tool_use_id for block in messages[2].content] == ["toolu_1"]

    @pytest.mark.asyncio
    async def test_unknown_tool_result_goes_back_to_model(self, orchestrator, llm_client, store):
        conversation = await store.create_conversation()
        llm_client.send.side_effect = [
            tool_response(tool_use("toolu_1", "summon_dragon")),
            text_response("I can't do that."),
        ]

        result = await orchestrator.submit(conversation.id, "show my dragons")

        assert result.error is None
        # Unknown tools are gated like any other change
        assert result.pending_confirmation is not None
        assert result.pending_confirmation.tool_name == "summon_dragon"

        result = await orchestrator.confirm(conversation.id)

        block = sent_messages(llm_client, 1)[-1].content[0]
        assert block.is_error is True
        assert block.content == "Error: Unknown tool: summon_dragon"
        tool_calls = await store.list_tool_calls(conversation.id)
        assert tool_calls[0].status == ToolCallStatus.ERROR
        assert result.messages[-1].content == "I can't do that."

    @pytest.mark.asyncio
    async def test_tool_rounds_are_bounded(self, llm_client, catalog, store, sessions, services, classifier):
        from aurora.services.context_builder import ContextBuilder
        from aurora.services.extraction import ExtractionProcessor

        orchestrator = ConversationOrchestrator(
            llm_client=llm_client,
            catalog=catalog,
            store=store,
            sessions=sessions,
            context_builder=ContextBuilder(services),
            extraction_processor=ExtractionProcessor(catalog, services.boards),
            classifier=classifier,
            max_tool_rounds=1,
        )
        conversation = await store.create_conversation()
        llm_client.send.side_effect = [
            tool_response(tool_use("toolu_1", "list_boards")),
            tool_response(tool_use("toolu_2", "list_boards")),
        ]

        result = await orchestrator.submit(conversation.id, "show my boards")

        assert result.state == TurnState.IDLE
        assert llm_client.send.call_count == 2
        assert [tc.tool_use_id for tc in await store.list_tool_calls(conversation.id)] == ["toolu_1"]


class TestConfirmationGating:
    """Tools that change data wait for the user."""

    @pytest.mark.asyncio
    async def test_mutating_tool_waits_for_confirmation(self, orchestrator, llm_client, store, services, sessions):
        conversation = await store.create_conversation()
        llm_client.send.side_effect = [
            tool_response(tool_use("toolu_1", "create_board", {"name": "Work"}), text="I'll create it."),
        ]

        result = await orchestrator.submit(conversation.id, "create a board called Work")

        assert result.state == TurnState.AWAITING_CONFIRMATION
        assert result.pending_confirmation.tool_use_id == "toolu_1"
        assert result.pending_confirmation.tool_name == "create_board"
        assert result.pending_confirmation.tool_input == {"name": "Work"}
        assert result.pending_confirmation.destructive is False
        assert [m.content for m in result.messages] == ["create a board called Work", "I'll create it."]

        assert llm_client.send.call_count == 1
        assert [b.name for b in await services.boards.list_boards()] == ["Personal"]

        tool_call = await store.get_tool_call_by_use_id("toolu_1")
        assert tool_call.status == ToolCallStatus.PENDING
        assert tool_call.requires_confirmation is True
        assert tool_call.message_id == result.messages[1].id
        assert sessions.get_pending_confirmation_count() == 1

    @pytest.mark.asyncio
    async def test_confirm_executes_and_continues(self, orchestrator, llm_client, store, services):
        conversation = await store.create_conversation()
        llm_client.send.side_effect = [
            tool_response(tool_use("toolu_1", "create_board", {"name": "Work"}), text="I'll create it."),
            text_response("Created the Work board."),
        ]

        await orchestrator.submit(conversation.id, "create a board called Work")
        result = await orchestrator.confirm(conversation.id)

        assert result.state == TurnState.IDLE
        assert result.pending_confirmation is None
        assert [m.content for m in result.messages] == ["Created the Work board."]
        assert [b.name for b in await services.boards.list_boards()] == ["Personal", "Work"]

        tool_call = await store.get_tool_call_by_use_id("toolu_1")
        assert tool_call.status == ToolCallStatus.SUCCESS
        assert tool_call.confirmed_at is not None

        messages = sent_messages(llm_client, 1)
        assert messages[1].content[1].id == "toolu_1"
        assert json.loads(messages[2].content[0].content)["name"] == "Work"

    @pytest.mark.asyncio
    async def test_continuation_reselects_tools_for_original_query(self, orchestrator, llm_client, store):
        conversation = await store.create_conversation()
        llm_client.send.side_effect = [
            tool_response(tool_use("toolu_1", "create_board", {"name": "Work"})),
            text_response("Done."),
        ]

        await orchestrator.submit(conversation.id, "create a board called Work")
        await orchestrator.confirm(conversation.id)

        first_tools = [t.name for t in llm_client.send.call_args_list[0].args[2]]
        second_tools = [t.name for t in llm_client.send.call_args_list[1].args[2]]
        assert first_tools == second_tools

    @pytest.mark.asyncio
    async def test_failed_confirmed_tool_still_continues(self, orchestrator, llm_client, store):
        conversation = await store.create_conversation()
        llm_client.send.side_effect = [
            tool_response(tool_use("toolu_1", "delete_task", {"task_id": 999})),
            text_response("That task doesn't exist."),
        ]

        result = await orchestrator.submit(conversation.id, "delete task 999")
        assert result.pending_confirmation.destructive is True

        result = await orchestrator.confirm(conversation.id)

        assert result.state == TurnState.IDLE
        block = sent_messages(llm_client, 1)[-1].content[0]
        assert block.is_error is True
        assert block.content == "Error: Task not found with ID 999"

        tool_call = await store.get_tool_call_by_use_id("toolu_1")
        assert tool_call.status == ToolCallStatus.ERROR
        assert tool_call.error_message == "Task not found with ID 999"

    @pytest.mark.asyncio
    async def test_cancel_ends_turn_without_model_call(self, orchestrator, llm_client, store, services):
        conversation = await store.create_conversation()
        llm_client.send.side_effect = [
            tool_response(tool_use("toolu_1", "create_board", {"name": "Work"}), text="I'll create it."),
        ]

        await orchestrator.submit(conversation.id, "create a board called Work")
        result = await orchestrator.cancel(conversation.id)

        assert result.state == TurnState.IDLE
        assert llm_client.send.call_count == 1
        assert [b.name for b in await services.boards.list_boards()] == ["Personal"]

        tool_call = await store.get_tool_call_by_use_id("toolu_1")
        assert tool_call.status == ToolCallStatus.CANCELLED
        assert tool_call.confirmed_at is None

        # The partial answer survives the cancellation
        stored = await store.list_messages(conversation.id)
        assert [m.content for m in stored] == ["create a board called Work", "I'll create it."]

    @pytest.mark.asyncio
    async def test_new_message_while_awaiting_confirmation_is_rejected(self, orchestrator, llm_client, store):
        conversation = await store.create_conversation()
        llm_client.send.side_effect = [tool_response(tool_use("toolu_1", "create_board", {"name": "Work"}))]

        await orchestrator.submit(conversation.id, "create a board called Work")

        with pytest.raises(TurnInProgressError):
            await orchestrator.submit(conversation.id, "actually, never mind")

    @pytest.mark.asyncio
    async def test_confirm_without_pending_call_raises(self, orchestrator, store):
        conversation = await store.create_conversation()

        with pytest.raises(NoPendingToolCallError):
            await orchestrator.confirm(conversation.id)
        with pytest.raises(NoPendingToolCallError):
            await orchestrator.cancel(conversation.id)

    @pytest.mark.asyncio
    async def test_gated_calls_only_run_after_confirm(self, orchestrator, llm_client, store):
        conversation = await store.create_conversation()
        llm_client.send.side_effect = [
            tool_response(tool_use("toolu_1", "create_board", {"name": "A"})),
            tool_response(tool_use("toolu_2", "create_board", {"name": "B"})),
            text_response("Both created."),
        ]

        await orchestrator.submit(conversation.id, "create boards A and B")
        result = await orchestrator.confirm(conversation.id)
        assert result.pending_confirmation.tool_use_id == "toolu_2"
        await orchestrator.confirm(conversation.id)

        for tool_call in await store.list_tool_calls(conversation.id):
            assert tool_call.requires_confirmation is True
            assert tool_call.confirmed_at is not None
            assert tool_call.status == ToolCallStatus.SUCCESS


class TestApiErrors:
    """Model failures end the turn and leave history untouched."""

    @pytest.mark.asyncio
    async def test_api_error_is_reported_and_turn_ends(self, orchestrator, llm_client, store, sessions):
        conversation = await store.create_conversation()
        llm_client.send.side_effect = LLMClientError("API error 500: overloaded", status_code=500)

        result = await orchestrator.submit(conversation.id, "hello")

        assert result.error == "API Error: API error 500: overloaded"
        assert result.state == TurnState.IDLE
        assert [m.content for m in await store.list_messages(conversation.id)] == ["hello"]
        assert sessions.get_session(conversation.id).state == TurnState.IDLE

    @pytest.mark.asyncio
    async def test_api_error_after_confirm_keeps_audit_record(self, orchestrator, llm_client, store, sessions):
        conversation = await store.create_conversation()
        llm_client.send.side_effect = [
            tool_response(tool_use("toolu_1", "create_board", {"name": "Work"})),
            LLMClientError("Request failed: timeout"),
        ]

        await orchestrator.submit(conversation.id, "create a board called Work")
        result = await orchestrator.confirm(conversation.id)

        assert result.error == "API Error: Request failed: timeout"
        session = sessions.get_session(conversation.id)
        assert session.state == TurnState.IDLE
        assert session.pending_assistant_content is None
        assert (await store.get_tool_call_by_use_id("toolu_1")).status == ToolCallStatus.SUCCESS


class TestStreamingTurn:
    """Streaming preserves turn semantics and reports text deltas."""

    @staticmethod
    def scripted_stream(*messages):
        def stream(*args, **kwargs):
            events = asyncio.Queue()
            for message in messages:
                events.put_nowait(message)
            task = asyncio.get_running_loop().create_future()
            task.set_result(None)
            return StreamHandle(events=events, task=task)

        return stream

    @pytest.mark.asyncio
    async def test_text_deltas_reach_callback(self, orchestrator, llm_client, store):
        conversation = await store.create_conversation()
        llm_client.stream = self.scripted_stream(
            StreamEvent("message_start", {"type": "message_start", "message": {"id": "msg_1", "usage": {}}}),
            StreamEvent(
                "content_block_start",
                {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}},
            ),
            StreamEvent(
                "content_block_delta",
                {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Hel"}},
            ),
            StreamEvent(
                "content_block_delta",
                {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "lo!"}},
            ),
            StreamEvent("message_stop", {"type": "message_stop"}),
            StreamEnd(),
        )
        deltas = []

        async def on_text(delta):
            deltas.append(delta)

        result = await orchestrator.submit(conversation.id, "hello", on_text=on_text)

        assert deltas == ["Hel", "lo!"]
        assert result.messages[-1].content == "Hello!"
        llm_client.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_stream_error_becomes_turn_error(self, orchestrator, llm_client, store):
        conversation = await store.create_conversation()
        llm_client.stream = self.scripted_stream(StreamError("API error 529", status_code=529))

        async def on_text(delta):
            pass

        result = await orchestrator.submit(conversation.id, "hello", on_text=on_text)

        assert result.error == "API Error: API error 529"
        assert result.state == TurnState.IDLE


class TestExtractionFlow:
    """Extraction blocks in replies become a pending checklist."""

    REPLY = (
        "Sounds like a good day.\n\n"
        "```extraction\n"
        "MOOD: 4\n"
        "NEW_TASKS:\n"
        "- Buy milk\n"
        "```\n"
        "Review above and approve the items you want saved."
    )

    @pytest.mark.asyncio
    async def test_extraction_is_surfaced_and_processed(self, orchestrator, llm_client, store, services):
        conversation = await store.create_conversation()
        llm_client.send.side_effect = [text_response(self.REPLY)]

        result = await orchestrator.submit(conversation.id, "good day, need to buy milk")

        assert result.pending_extraction.mood == 4
        assert result.pending_extraction.new_tasks == ["Buy milk"]

        extraction = await orchestrator.toggle_extraction(conversation.id, ExtractionSection.NEW_TASKS, 0)
        assert extraction.approved_new_tasks == {0}

        report = await orchestrator.process_extraction(conversation.id)

        assert report.created_tasks == ["Buy milk"]
        assert [t.title for t in await services.boards.list_open_tasks()] == ["Buy milk"]
        assert await orchestrator.get_pending_extraction(conversation.id) is None
        with pytest.raises(NoPendingExtractionError):
            await orchestrator.process_extraction(conversation.id)

    @pytest.mark.asyncio
    async def test_dismiss_discards_extraction(self, orchestrator, llm_client, store, services):
        conversation = await store.create_conversation()
        llm_client.send.side_effect = [text_response(self.REPLY)]

        await orchestrator.submit(conversation.id, "good day, need to buy milk")
        await orchestrator.dismiss_extraction(conversation.id)

        assert await orchestrator.get_pending_extraction(conversation.id) is None
        assert await services.boards.list_open_tasks() == []

    @pytest.mark.asyncio
    async def test_toggle_out_of_range_raises(self, orchestrator, llm_client, store):
        conversation = await store.create_conversation()
        llm_client.send.side_effect = [text_response(self.REPLY)]

        await orchestrator.submit(conversation.id, "good day, need to buy milk")

        with pytest.raises(IndexError):
            await orchestrator.toggle_extraction(conversation.id, ExtractionSection.NEW_TASKS, 3)
