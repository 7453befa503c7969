"""Request and response models for the HTTP API."""

from datetime import datetime

from pydantic import BaseModel, Field

from aurora.models.extraction import Extraction, ExtractionSection


class CreateConversationRequest(BaseModel):
    """Request model for creating a conversation."""

    title: str | None = Field(default=None, max_length=255)


class MessageRequest(BaseModel):
    """Request model for posting a user message."""

    message: str = Field(..., min_length=1)


class ToggleExtractionRequest(BaseModel):
    """Flip approval of one extraction item; ``index`` is ignored for the journal bundle."""

    section: ExtractionSection
    index: int | None = None


class ExtractionResponse(BaseModel):
    conversation_id: str
    extraction: Extraction


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: datetime
    version: str
    active_sessions: int
    pending_confirmations: int
