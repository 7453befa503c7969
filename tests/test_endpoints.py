"""Tests for API endpoints."""

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from aurora.clients.anthropic import StreamHandle
from aurora.main import app
from aurora.models.llm import LLMResponse, StreamEnd, StreamEvent, TextBlock, ToolUseBlock
from aurora.services.orchestrator import get_orchestrator

EXTRACTION_REPLY = "Noted.\n\n```extraction\nMOOD: 4\nNEW_TASKS:\n- Buy milk\n```"


def text_response(text: str) -> LLMResponse:
    return LLMResponse(content=[TextBlock(text=text)], stop_reason="end_turn")


def create_task_response() -> LLMResponse:
    return LLMResponse(
        content=[
            TextBlock(text="I'll add that."),
            ToolUseBlock(id="toolu_1", name="create_task", input={"column_id": 2, "title": "Buy milk"}),
        ],
        stop_reason="tool_use",
    )


def parse_sse(body: str) -> list[tuple[str, dict]]:
    events = []
    for chunk in body.strip().split("\n\n"):
        lines = dict(line.split(": ", 1) for line in chunk.splitlines())
        events.append((lines["event"], json.loads(lines["data"])))
    return events


@pytest.fixture
def client(orchestrator):
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def conversation_id(client):
    return client.post("/conversations", json={"title": "Planning"}).json()["id"]


class TestHealthEndpoint:
    """Tests for the health check endpoint."""

    def test_health_check_returns_200(self, client):
        response = client.get("/health")
        assert response.status_code == 200

    def test_health_check_response_structure(self, client):
        data = client.get("/health").json()

        assert data["status"] == "healthy"
        assert data["version"] == "0.1.0"
        assert isinstance(data["active_sessions"], int)
        assert isinstance(data["pending_confirmations"], int)

    def test_health_check_content_type(self, client):
        response = client.get("/health")
        assert response.headers["content-type"] == "application/json"


class TestConversationEndpoints:
    """Tests for conversation management."""

    def test_create_and_list(self, client):
        response = client.post("/conversations", json={"title": "Groceries"})

        assert response.status_code == 201
        assert response.json()["title"] == "Groceries"
        assert [c["title"] for c in client.get("/conversations").json()] == ["Groceries"]

    def test_create_without_title(self, client):
        response = client.post("/conversations", json={})
        assert response.status_code == 201
        assert response.json()["title"] is None

    def test_delete(self, client, conversation_id):
        assert client.delete(f"/conversations/{conversation_id}").status_code == 204
        assert client.delete(f"/conversations/{conversation_id}").status_code == 404
        assert client.get(f"/conversations/{conversation_id}/messages").status_code == 404

    @pytest.mark.parametrize("path", ["messages", "tool-calls"])
    def test_unknown_conversation_history_is_404(self, client, path):
        assert client.get(f"/conversations/missing/{path}").status_code == 404


class TestMessageEndpoint:
    """Tests for posting messages."""

    def test_text_reply(self, client, conversation_id, llm_client):
        llm_client.send.side_effect = [text_response("Hello there!")]

        response = client.post(f"/conversations/{conversation_id}/messages", json={"message": "hello"})

        assert response.status_code == 200
        data = response.json()
        assert data["state"] == "idle"
        assert [m["content"] for m in data["messages"]] == ["hello", "Hello there!"]

        history = client.get(f"/conversations/{conversation_id}/messages").json()
        assert [m["role"] for m in history] == ["user", "assistant"]

    def test_empty_message_is_rejected(self, client, conversation_id):
        response = client.post(f"/conversations/{conversation_id}/messages", json={"message": ""})
        assert response.status_code == 422

    def test_unknown_conversation_is_404(self, client):
        response = client.post("/conversations/missing/messages", json={"message": "hello"})
        assert response.status_code == 404

    def test_over_long_message_is_400(self, client, conversation_id):
        response = client.post(f"/conversations/{conversation_id}/messages", json={"message": "word " * 5000})

        assert response.status_code == 400
        assert "token limit" in response.json()["detail"]

    def test_unexpected_failure_is_500(self, client, conversation_id, llm_client):
        llm_client.send.side_effect = RuntimeError("boom")

        response = client.post(f"/conversations/{conversation_id}/messages", json={"message": "hello"})

        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to process message"


class TestConfirmationEndpoints:
    """Tests for confirm and cancel."""

    def test_confirm_runs_tool_and_continues(self, client, conversation_id, llm_client, services):
        llm_client.send.side_effect = [create_task_response(), text_response("Added it to To Do.")]

        pending = client.post(f"/conversations/{conversation_id}/messages", json={"message": "add a task"}).json()

        assert pending["state"] == "awaiting_confirmation"
        assert pending["pending_confirmation"]["tool_name"] == "create_task"
        assert pending["pending_confirmation"]["destructive"] is False

        busy = client.post(f"/conversations/{conversation_id}/messages", json={"message": "hello?"})
        assert busy.status_code == 409

        confirmed = client.post(f"/conversations/{conversation_id}/confirm")

        assert confirmed.status_code == 200
        assert confirmed.json()["state"] == "idle"
        assert confirmed.json()["messages"][-1]["content"] == "Added it to To Do."

        tool_calls = client.get(f"/conversations/{conversation_id}/tool-calls").json()
        assert [(tc["tool_name"], tc["status"]) for tc in tool_calls] == [("create_task", "success")]

    def test_cancel_ends_turn(self, client, conversation_id, llm_client):
        llm_client.send.side_effect = [create_task_response()]
        client.post(f"/conversations/{conversation_id}/messages", json={"message": "add a task"})

        response = client.post(f"/conversations/{conversation_id}/cancel")

        assert response.status_code == 200
        assert response.json()["state"] == "idle"
        assert llm_client.send.call_count == 1
        tool_calls = client.get(f"/conversations/{conversation_id}/tool-calls").json()
        assert tool_calls[0]["status"] == "cancelled"

    @pytest.mark.parametrize("action", ["confirm", "cancel"])
    def test_nothing_pending_is_409(self, client, conversation_id, action):
        assert client.post(f"/conversations/{conversation_id}/{action}").status_code == 409


class TestExtractionEndpoints:
    """Tests for reviewing and applying extractions."""

    @pytest.fixture
    def with_extraction(self, client, conversation_id, llm_client):
        llm_client.send.side_effect = [text_response(EXTRACTION_REPLY)]
        result = client.post(f"/conversations/{conversation_id}/messages", json={"message": "good day"}).json()
        assert result["pending_extraction"]["new_tasks"] == ["Buy milk"]
        return conversation_id

    def test_toggle_and_process(self, client, with_extraction):
        toggled = client.post(
            f"/conversations/{with_extraction}/extraction/toggle", json={"section": "new_tasks", "index": 0}
        )

        assert toggled.status_code == 200
        assert toggled.json()["extraction"]["approved_new_tasks"] == [0]

        report = client.post(f"/conversations/{with_extraction}/extraction/process")

        assert report.status_code == 200
        assert report.json()["created_tasks"] == ["Buy milk"]
        assert client.post(f"/conversations/{with_extraction}/extraction/process").status_code == 409

    def test_toggle_out_of_range_is_422(self, client, with_extraction):
        response = client.post(
            f"/conversations/{with_extraction}/extraction/toggle", json={"section": "complete_tasks", "index": 0}
        )
        assert response.status_code == 422

    def test_dismiss(self, client, with_extraction):
        assert client.delete(f"/conversations/{with_extraction}/extraction").status_code == 204
        assert client.delete(f"/conversations/{with_extraction}/extraction").status_code == 409

    def test_toggle_without_extraction_is_409(self, client, conversation_id):
        response = client.post(f"/conversations/{conversation_id}/extraction/toggle", json={"section": "journal"})
        assert response.status_code == 409


class TestStreamEndpoint:
    """Tests for the server-sent events endpoint."""

    def test_stream_emits_deltas_then_result(self, client, conversation_id, llm_client):
        def stream(*args, **kwargs):
            events = asyncio.Queue()
            for message in (
                StreamEvent(
                    "content_block_start",
                    {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}},
                ),
                StreamEvent(
                    "content_block_delta",
                    {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Hi "}},
                ),
                StreamEvent(
                    "content_block_delta",
                    {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "there"}},
                ),
                StreamEnd(),
            ):
                events.put_nowait(message)
            task = asyncio.get_running_loop().create_future()
            task.set_result(None)
            return StreamHandle(events=events, task=task)

        llm_client.stream = stream

        response = client.post(f"/conversations/{conversation_id}/messages/stream", json={"message": "hello"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = parse_sse(response.text)
        assert events[:2] == [("delta", {"text": "Hi "}), ("delta", {"text": "there"})]
        assert events[-1][0] == "result"
        assert events[-1][1]["messages"][-1]["content"] == "Hi there"

    def test_stream_unknown_conversation_is_404(self, client):
        response = client.post("/conversations/missing/messages/stream", json={"message": "hello"})
        assert response.status_code == 404
