"""Tests for the tool catalog and its confirmation policy."""

import pytest
from pydantic import BaseModel

from aurora.tools.base import ToolDefinition, ToolDomain, ToolErrorKind, ToolFailure, ToolSuccess
from aurora.tools.registry import ToolCatalog


class EchoInput(BaseModel):
    value: int


async def echo(params: EchoInput):
    return ToolSuccess({"value": params.value})


async def explode(params: EchoInput):
    raise RuntimeError("disk on fire")


class TestCatalogStructure:
    """Tests for definitions and lookups."""

    def test_every_domain_contributes_tools(self, catalog):
        domains = {catalog.domain_of(name) for name in catalog.get_tool_names()}
        assert domains == set(ToolDomain)

    def test_definitions_carry_json_schema(self, catalog):
        create_task = next(t for t in catalog.definitions() if t.name == "create_task")

        assert create_task.input_schema["type"] == "object"
        assert set(create_task.input_schema["required"]) == {"column_id", "title"}
        assert "title" not in create_task.input_schema

    def test_no_parameter_tools_have_empty_properties(self, catalog):
        list_boards = next(t for t in catalog.definitions() if t.name == "list_boards")
        assert list_boards.input_schema["properties"] == {}
        assert list_boards.input_schema["required"] == []

    def test_duplicate_names_are_rejected(self):
        tool = ToolDefinition("echo", "Echo", EchoInput, echo, ToolDomain.BOARDS)
        with pytest.raises(ValueError, match="Duplicate tool name"):
            ToolCatalog([tool, tool])

    def test_definitions_for_filters_by_domain(self, catalog):
        names = {t.name for t in catalog.definitions_for([ToolDomain.JOURNAL])}
        assert names == {
            "list_journal_entries",
            "get_journal_entry",
            "create_journal_entry",
            "update_journal_entry",
            "delete_journal_entry",
        }


class TestConfirmationPolicy:
    """Every mutating tool is gated; deletes are destructive."""

    MUTATING_PREFIXES = ("create_", "update_", "delete_", "move_", "toggle_", "complete_")

    def test_mutating_tools_require_confirmation(self, catalog):
        for name in catalog.get_tool_names():
            expected = name.startswith(self.MUTATING_PREFIXES)
            assert catalog.requires_confirmation(name) is expected, name

    def test_delete_tools_are_destructive(self, catalog):
        for name in catalog.get_tool_names():
            assert catalog.is_destructive(name) is name.startswith("delete_"), name

    def test_unknown_tool_requires_confirmation(self, catalog):
        assert catalog.requires_confirmation("format_hard_drive") is True
        assert catalog.is_destructive("format_hard_drive") is False

    def test_analytics_tools_are_read_only(self, catalog):
        for tool in catalog.definitions_for([ToolDomain.ANALYTICS]):
            assert catalog.requires_confirmation(tool.name) is False


class TestExecute:
    """Tests for executing tools through the catalog."""

    @pytest.mark.asyncio
    async def test_success(self):
        catalog = ToolCatalog([ToolDefinition("echo", "Echo", EchoInput, echo, ToolDomain.BOARDS)])
        assert await catalog.execute("echo", {"value": 3}) == ToolSuccess({"value": 3})

    @pytest.mark.asyncio
    async def test_unknown_tool(self, catalog):
        result = await catalog.execute("summon_dragon", {})
        assert result == ToolFailure("Unknown tool: summon_dragon", ToolErrorKind.UNKNOWN_TOOL)

    @pytest.mark.asyncio
    async def test_invalid_input(self):
        catalog = ToolCatalog([ToolDefinition("echo", "Echo", EchoInput, echo, ToolDomain.BOARDS)])
        result = await catalog.execute("echo", {"value": "not a number"})

        assert isinstance(result, ToolFailure)
        assert result.kind == ToolErrorKind.VALIDATION
        assert result.error.startswith("value:")

    @pytest.mark.asyncio
    async def test_missing_input_is_validated(self):
        catalog = ToolCatalog([ToolDefinition("echo", "Echo", EchoInput, echo, ToolDomain.BOARDS)])
        result = await catalog.execute("echo", None)
        assert result.kind == ToolErrorKind.VALIDATION

    @pytest.mark.asyncio
    async def test_handler_exception_is_contained(self):
        catalog = ToolCatalog([ToolDefinition("explode", "Boom", EchoInput, explode, ToolDomain.BOARDS)])
        result = await catalog.execute("explode", {"value": 1})

        assert result == ToolFailure("Tool execution failed: disk on fire", ToolErrorKind.EXECUTION)

    @pytest.mark.asyncio
    async def test_not_found_is_a_typed_failure(self, catalog):
        result = await catalog.execute("get_board", {"board_id": 404})
        assert result == ToolFailure("Board not found with ID 404", ToolErrorKind.NOT_FOUND)
