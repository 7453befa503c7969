"""Tool catalog: the single lookup from tool name to its executor and confirmation policy."""

from collections.abc import Iterable
from typing import Any

from pydantic import ValidationError

from aurora.models.llm import LLMToolDefinition
from aurora.services.domains import DomainServices
from aurora.tools.analytics import create_analytics_tools
from aurora.tools.base import ToolDefinition, ToolDomain, ToolErrorKind, ToolFailure, ToolResult
from aurora.tools.boards import create_boards_tools
from aurora.tools.calendar import create_calendar_tools
from aurora.tools.finance import create_finance_tools
from aurora.tools.goals import create_goals_tools
from aurora.tools.habits import create_habits_tools
from aurora.tools.journal import create_journal_tools
from aurora.utils.logging import get_logger

logger = get_logger(__name__)


def format_validation_error(error: ValidationError) -> str:
    """Render pydantic errors as ``field: message; ...``."""
    parts = []
    for err in error.errors():
        field = ".".join(str(loc) for loc in err["loc"]) or "input"
        parts.append(f"{field}: {err['msg']}")
    return "; ".join(parts)


class ToolCatalog:
    """Registry of tool definitions, built once.

    The definitions list is the source of truth: its order is the order reported to the model,
    and the name lookup table is derived from it.
    """

    def __init__(self, definitions: Iterable[ToolDefinition]):
        self._definitions: list[ToolDefinition] = list(definitions)
        self._tools: dict[str, ToolDefinition] = {}
        for tool in self._definitions:
            if tool.name in self._tools:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            self._tools[tool.name] = tool

    def definitions(self) -> list[LLMToolDefinition]:
        """Descriptors for every tool, in catalog order."""
        return [tool.to_llm_tool() for tool in self._definitions]

    def definitions_for(self, domains: Iterable[ToolDomain]) -> list[LLMToolDefinition]:
        """Descriptors for the given domains, in catalog order."""
        wanted = set(domains)
        return [tool.to_llm_tool() for tool in self._definitions if tool.domain in wanted]

    def get_tool(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def get_tool_names(self) -> list[str]:
        """Get list of all registered tool names."""
        return [tool.name for tool in self._definitions]

    def domain_of(self, name: str) -> ToolDomain | None:
        tool = self._tools.get(name)
        return tool.domain if tool else None

    def requires_confirmation(self, name: str) -> bool:
        """True for every tool that changes domain state; unknown names are gated too."""
        tool = self._tools.get(name)
        return tool is None or tool.mutates

    def is_destructive(self, name: str) -> bool:
        """True only for delete-class tools; used to escalate the confirmation prompt."""
        tool = self._tools.get(name)
        return tool is not None and tool.destructive

    def get_tool_description(self, name: str) -> str | None:
        tool = self._tools.get(name)
        return tool.description if tool else None

    async def execute(self, name: str, args: dict[str, Any] | None) -> ToolResult:
        """Run a tool. Never raises: every failure comes back as a ``ToolFailure``."""
        tool = self._tools.get(name)
        if tool is None:
            logger.warning(f"Model requested unknown tool: {name}")
            return ToolFailure(f"Unknown tool: {name}", ToolErrorKind.UNKNOWN_TOOL)

        try:
            params = tool.parse_input(args or {})
        except ValidationError as e:
            logger.info(f"Rejected input for {name}: {e.error_count()} validation error(s)")
            return ToolFailure(format_validation_error(e), ToolErrorKind.VALIDATION)

        try:
            result = await tool.handler(params)
        except Exception as e:
            logger.error(f"Tool {name} raised during execution", exc_info=True)
            return ToolFailure(f"Tool execution failed: {e}", ToolErrorKind.EXECUTION)

        if isinstance(result, ToolFailure):
            logger.info(f"Tool {name} failed ({result.kind}): {result.error}")
        else:
            logger.info(f"Tool {name} executed successfully")
        return result


def build_tool_catalog(services: DomainServices) -> ToolCatalog:
    """Assemble the catalog from every domain's tool factory."""
    return ToolCatalog(
        [
            *create_boards_tools(services.boards),
            *create_goals_tools(services.goals),
            *create_habits_tools(services.habits),
            *create_journal_tools(services.journal),
            *create_finance_tools(services.finance),
            *create_calendar_tools(services.calendar),
            *create_analytics_tools(services),
        ]
    )


_tool_catalog: ToolCatalog | None = None


def get_tool_catalog(services: DomainServices | None = None) -> ToolCatalog:
    """Get or create the tool catalog instance."""
    global _tool_catalog

    if _tool_catalog is None:
        if services is None:
            raise ValueError("Must provide domain services for initial catalog creation")
        _tool_catalog = build_tool_catalog(services)

    return _tool_catalog
