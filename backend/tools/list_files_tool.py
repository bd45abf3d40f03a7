from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

from .arguments import ListFilesArgs, parse_args
from .base import ToolContext
from .contracts import ToolDefinition, ToolResult
from .file_walker import glob_to_regex, walk_files
from .path_guard import ensure_file_exists, resolve_safe_path


LIST_FILES_DEFINITION = ToolDefinition(
    name="list_files",
    description="List files under a directory within the project root.",
    parameters={
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "Directory path to list, relative to the project root (default: .).",
            },
            "includePattern": {
                "type": "string",
                "description": "Optional glob pattern to filter file paths.",
            },
            "maxResults": {"type": "integer", "description": "Maximum number of files to return."},
        },
        "additionalProperties": False,
    },
)


@dataclass
class ListFilesTool:
    max_results_default: int = 1000
    definition: ToolDefinition = field(default=LIST_FILES_DEFINITION)

    def run(self, args: dict[str, Any], context: ToolContext) -> ToolResult:
        parsed = parse_args(ListFilesArgs, args)
        root = context.base_dir()
        target = resolve_safe_path(parsed.path or ".", root)
        ensure_file_exists(target.absolute_path, target.relative_path)

        if target.absolute_path.is_file():
            return ToolResult.success(
                tool_name=self.definition.name,
                data={"path": target.relative_path, "files": [target.relative_path], "truncated": False},
            )

        # Patterns match paths relative to the listed directory.
        include = glob_to_regex(parsed.include_pattern) if parsed.include_pattern else None
        max_results = (
            max(parsed.max_results, 1) if parsed.max_results is not None else self.max_results_default
        )
        base_root = resolve_safe_path(".", root).absolute_path

        files: list[str] = []
        truncated = False
        for file_path in walk_files(target.absolute_path, include):
            if len(files) >= max_results:
                truncated = True
                break
            files.append(os.path.relpath(file_path, base_root).replace(os.sep, "/"))

        return ToolResult.success(
            tool_name=self.definition.name,
            data={"path": target.relative_path, "files": files, "truncated": truncated},
            truncated=truncated,
        )
