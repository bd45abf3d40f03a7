from __future__ import annotations

from pathlib import Path

from config import RuntimeConfig

from .apply_patch_tool import ApplyPatchTool
from .base import SandboxTool, ToolContext
from .contracts import ToolDefinition, ToolError, ToolResult
from .edit_tool import EditTool
from .list_files_tool import ListFilesTool
from .read_file_tool import ReadFileTool
from .registry import ToolRegistry
from .search_tool import SearchTool


def get_all_tools(runtime: RuntimeConfig | None = None) -> list[SandboxTool]:
    runtime = runtime or RuntimeConfig()
    limits = runtime.tool_limits
    return [
        ReadFileTool(max_chars_default=limits.read_file_chars),
        SearchTool(max_results_default=limits.search_max_results),
        EditTool(),
        ApplyPatchTool(),
        ListFilesTool(max_results_default=limits.list_max_results),
    ]


def create_default_registry(
    runtime: RuntimeConfig | None = None,
    audit_file: Path | None = None,
) -> ToolRegistry:
    registry = ToolRegistry(audit_file=audit_file)
    for tool in get_all_tools(runtime):
        registry.register_tool(tool)
    return registry


__all__ = [
    "ToolContext",
    "ToolDefinition",
    "ToolError",
    "ToolRegistry",
    "ToolResult",
    "create_default_registry",
    "get_all_tools",
]
