"""Shared fixtures for the Aurora test suite."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from aurora.clients.anthropic import AnthropicClient, AnthropicConfig
from aurora.services.context_builder import ContextBuilder
from aurora.services.conversation_store import InMemoryConversationStore
from aurora.services.domains import DomainServices
from aurora.services.extraction import ExtractionProcessor
from aurora.services.intent import Intent
from aurora.services.orchestrator import ConversationOrchestrator
from aurora.services.session_manager import InMemorySessionManager
from aurora.tools.registry import build_tool_catalog


@pytest.fixture
def services():
    """Fresh in-memory domain services with the default "Personal" board."""
    return DomainServices()


@pytest.fixture
def catalog(services):
    return build_tool_catalog(services)


@pytest.fixture
def llm_client():
    """AnthropicClient whose ``send`` is scripted per test."""
    client = AnthropicClient(client=MagicMock(), config=AnthropicConfig())
    client.tokenizer = None
    client.send = AsyncMock()
    return client


@pytest.fixture
def classifier():
    classifier = MagicMock()
    classifier.classify = AsyncMock(return_value=Intent.NEEDS_TOOLS)
    return classifier


@pytest.fixture
def store():
    return InMemoryConversationStore()


@pytest.fixture
def sessions():
    return InMemorySessionManager()


@pytest.fixture
def orchestrator(llm_client, catalog, store, sessions, services, classifier):
    return ConversationOrchestrator(
        llm_client=llm_client,
        catalog=catalog,
        store=store,
        sessions=sessions,
        context_builder=ContextBuilder(services),
        extraction_processor=ExtractionProcessor(catalog, services.boards),
        classifier=classifier,
    )
