"""Base types and definitions for tools."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import date
from enum import StrEnum
from typing import Any

from pydantic import BaseModel

from aurora.models.llm import LLMToolDefinition


class ToolDomain(StrEnum):
    """Productivity area that owns a tool. Declaration order is catalog order."""

    BOARDS = "boards"
    GOALS = "goals"
    HABITS = "habits"
    JOURNAL = "journal"
    FINANCE = "finance"
    CALENDAR = "calendar"
    ANALYTICS = "analytics"


class ToolErrorKind(StrEnum):
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    UNKNOWN_TOOL = "unknown_tool"
    EXECUTION = "execution"


@dataclass
class ToolSuccess:
    """A tool ran; ``data`` is sent back to the model JSON-encoded."""

    data: Any


@dataclass
class ToolFailure:
    """A tool could not do what was asked; the error is sent back to the model."""

    error: str
    kind: ToolErrorKind = ToolErrorKind.EXECUTION


ToolResult = ToolSuccess | ToolFailure
ToolHandler = Callable[[Any], Awaitable[ToolResult]]


def not_found(entity: str, entity_id: Any) -> ToolFailure:
    return ToolFailure(f"{entity} not found with ID {entity_id}", ToolErrorKind.NOT_FOUND)


def invalid(message: str) -> ToolFailure:
    return ToolFailure(message, ToolErrorKind.VALIDATION)


def parse_date(value: str | None) -> date | None:
    """Parse YYYY-MM-DD, returning None for blank or malformed input."""
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


class EmptyInput(BaseModel):
    """Input schema for tools that take no parameters."""


@dataclass
class ToolDefinition:
    """Definition of a tool available to the AI assistant."""

    name: str
    description: str
    input_schema_class: type[BaseModel]
    handler: ToolHandler
    domain: ToolDomain
    mutates: bool = False
    destructive: bool = False

    def get_json_schema(self) -> dict[str, Any]:
        """Get JSON schema for this tool's input."""
        schema = self.input_schema_class.model_json_schema()
        schema.pop("title", None)
        schema.setdefault("properties", {})
        schema.setdefault("required", [])
        return schema

    def parse_input(self, raw_input: dict[str, Any]) -> BaseModel:
        """Parse and validate tool input."""
        return self.input_schema_class.model_validate(raw_input)

    def to_llm_tool(self) -> LLMToolDefinition:
        return LLMToolDefinition(name=self.name, description=self.description, input_schema=self.get_json_schema())
