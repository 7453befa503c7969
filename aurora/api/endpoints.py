"""API endpoints for the Aurora assistant."""

import asyncio
import json
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import StreamingResponse

from aurora import __version__
from aurora.models.conversation import (
    CreateConversationRequest,
    ExtractionResponse,
    HealthResponse,
    MessageRequest,
    ToggleExtractionRequest,
)
from aurora.models.extraction import ExtractionReport
from aurora.models.messages import Conversation, ConversationMessage, ToolCall
from aurora.services.orchestrator import (
    ConversationNotFoundError,
    ConversationOrchestrator,
    NoPendingExtractionError,
    NoPendingToolCallError,
    TurnInProgressError,
    TurnResult,
    get_orchestrator,
)
from aurora.services.session_manager import session_manager
from aurora.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()

ORCHESTRATION_ERRORS = (
    ConversationNotFoundError,
    TurnInProgressError,
    NoPendingToolCallError,
    NoPendingExtractionError,
    ValueError,
    IndexError,
)


def to_http_error(error: Exception) -> HTTPException:
    """Map an orchestration error to its HTTP status."""
    if isinstance(error, ConversationNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, TurnInProgressError | NoPendingToolCallError | NoPendingExtractionError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    if isinstance(error, IndexError):
        return HTTPException(status_code=422, detail=str(error))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))


def format_sse(event: str, data: dict[str, Any]) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


@router.post(
    "/conversations",
    response_model=Conversation,
    status_code=status.HTTP_201_CREATED,
    tags=["Conversations"],
)
async def create_conversation(
    request: CreateConversationRequest,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> Conversation:
    return await orchestrator.store.create_conversation(request.title)


@router.get("/conversations", response_model=list[Conversation], tags=["Conversations"])
async def list_conversations(orchestrator: ConversationOrchestrator = Depends(get_orchestrator)) -> list[Conversation]:
    """Active conversations, most recently updated first."""
    return await orchestrator.store.list_conversations()


@router.delete("/conversations/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Conversations"])
async def delete_conversation(
    conversation_id: str,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> Response:
    if not await orchestrator.store.delete_conversation(conversation_id):
        raise HTTPException(status_code=404, detail=f"Conversation {conversation_id} not found")
    orchestrator.sessions.delete_session(conversation_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/conversations/{conversation_id}/messages",
    response_model=list[ConversationMessage],
    tags=["Conversations"],
)
async def list_messages(
    conversation_id: str,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> list[ConversationMessage]:
    if await orchestrator.store.get_conversation(conversation_id) is None:
        raise HTTPException(status_code=404, detail=f"Conversation {conversation_id} not found")
    return await orchestrator.store.list_messages(conversation_id)


@router.get("/conversations/{conversation_id}/tool-calls", response_model=list[ToolCall], tags=["Conversations"])
async def list_tool_calls(
    conversation_id: str,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> list[ToolCall]:
    """Audit trail of every tool invocation the model requested."""
    if await orchestrator.store.get_conversation(conversation_id) is None:
        raise HTTPException(status_code=404, detail=f"Conversation {conversation_id} not found")
    return await orchestrator.store.list_tool_calls(conversation_id)


@router.post("/conversations/{conversation_id}/messages", response_model=TurnResult, tags=["Chat"])
async def post_message(
    conversation_id: str,
    request: MessageRequest,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> TurnResult:
    """Send a user message and run the turn.

    The result carries the messages appended during the turn, plus a pending confirmation
    when the model asked for a tool that changes data.
    """
    logger.info(f"Processing message for conversation {conversation_id}: {request.message[:50]}...")
    try:
        return await orchestrator.submit(conversation_id, request.message)
    except ORCHESTRATION_ERRORS as e:
        logger.warning(f"Rejected message for conversation {conversation_id}: {e}")
        raise to_http_error(e) from e
    except Exception as e:
        logger.error(f"Conversation processing error for {conversation_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to process message") from e


@router.post("/conversations/{conversation_id}/messages/stream", tags=["Chat"])
async def stream_message(
    conversation_id: str,
    request: MessageRequest,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> StreamingResponse:
    """Send a user message and stream the reply.

    Emits ``delta`` events with text fragments as they arrive and a final ``result`` event
    with the turn payload (or an ``error`` event).
    """
    try:
        await orchestrator.ensure_ready(conversation_id, request.message)
    except ORCHESTRATION_ERRORS as e:
        raise to_http_error(e) from e

    events: asyncio.Queue[str | None] = asyncio.Queue()

    async def on_text(delta: str) -> None:
        await events.put(format_sse("delta", {"text": delta}))

    async def run_turn() -> None:
        try:
            result = await orchestrator.submit(conversation_id, request.message, on_text=on_text)
            await events.put(format_sse("result", result.model_dump(mode="json")))
        except ORCHESTRATION_ERRORS as e:
            await events.put(format_sse("error", {"detail": str(e)}))
        except Exception as e:
            logger.error(f"Streaming turn failed for {conversation_id}: {e}", exc_info=True)
            await events.put(format_sse("error", {"detail": "Failed to process message"}))
        finally:
            await events.put(None)

    async def event_stream() -> AsyncIterator[str]:
        task = asyncio.create_task(run_turn())
        try:
            while (chunk := await events.get()) is not None:
                yield chunk
        finally:
            if not task.done():
                task.cancel()

    return StreamingResponse(event_stream(), media_type="text/event-stream")


@router.post("/conversations/{conversation_id}/confirm", response_model=TurnResult, tags=["Chat"])
async def confirm_tool_call(
    conversation_id: str,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> TurnResult:
    """Approve the pending tool call and continue the turn."""
    try:
        return await orchestrator.confirm(conversation_id)
    except ORCHESTRATION_ERRORS as e:
        raise to_http_error(e) from e


@router.post("/conversations/{conversation_id}/cancel", response_model=TurnResult, tags=["Chat"])
async def cancel_tool_call(
    conversation_id: str,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> TurnResult:
    try:
        return await orchestrator.cancel(conversation_id)
    except ORCHESTRATION_ERRORS as e:
        raise to_http_error(e) from e


@router.post(
    "/conversations/{conversation_id}/extraction/toggle",
    response_model=ExtractionResponse,
    tags=["Extraction"],
)
async def toggle_extraction_item(
    conversation_id: str,
    request: ToggleExtractionRequest,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> ExtractionResponse:
    try:
        extraction = await orchestrator.toggle_extraction(conversation_id, request.section, request.index)
    except ValueError as e:
        # Toggling a journal bundle that isn't there
        raise HTTPException(status_code=422, detail=str(e)) from e
    except ORCHESTRATION_ERRORS as e:
        raise to_http_error(e) from e
    return ExtractionResponse(conversation_id=conversation_id, extraction=extraction)


@router.post(
    "/conversations/{conversation_id}/extraction/process",
    response_model=ExtractionReport,
    tags=["Extraction"],
)
async def process_extraction(
    conversation_id: str,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> ExtractionReport:
    """Save the approved extraction items and discard the extraction."""
    try:
        return await orchestrator.process_extraction(conversation_id)
    except ORCHESTRATION_ERRORS as e:
        raise to_http_error(e) from e


@router.delete(
    "/conversations/{conversation_id}/extraction",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Extraction"],
)
async def dismiss_extraction(
    conversation_id: str,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> Response:
    try:
        await orchestrator.dismiss_extraction(conversation_id)
    except ORCHESTRATION_ERRORS as e:
        raise to_http_error(e) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        version=__version__,
        active_sessions=session_manager.get_session_count(),
        pending_confirmations=session_manager.get_pending_confirmation_count(),
    )
