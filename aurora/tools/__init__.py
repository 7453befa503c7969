"""Tools the assistant can invoke against the productivity domains."""

from aurora.tools.registry import ToolCatalog, build_tool_catalog, get_tool_catalog

__all__ = ["ToolCatalog", "build_tool_catalog", "get_tool_catalog"]
