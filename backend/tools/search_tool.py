from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from utils.fs import content_lines

from .arguments import SearchArgs, parse_args
from .base import ToolContext
from .contracts import InvalidArgsError, ToolDefinition, ToolResult
from .file_walker import glob_to_regex, walk_files
from .path_guard import resolve_safe_path


SEARCH_DEFINITION = ToolDefinition(
    name="search",
    description="Search for text in files under the project root.",
    parameters={
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "Search query string or regex pattern."},
            "isRegex": {"type": "boolean", "description": "Treat query as regex (default: false)."},
            "includePattern": {
                "type": "string",
                "description": "Optional glob pattern to filter file paths.",
            },
            "maxResults": {"type": "integer", "description": "Maximum number of matches to return."},
        },
        "required": ["query"],
        "additionalProperties": False,
    },
)

_BINARY_SNIFF_BYTES = 8192


def _compile_query(query: str, is_regex: bool) -> re.Pattern[str]:
    if not query:
        return re.compile(".*", re.IGNORECASE)
    if not is_regex:
        return re.compile(re.escape(query), re.IGNORECASE)
    try:
        return re.compile(query, re.IGNORECASE)
    except re.error as exc:
        raise InvalidArgsError(f"Invalid regex: {exc}") from exc


def _read_searchable(path: Path) -> str | None:
    raw = path.read_bytes()
    if b"\x00" in raw[:_BINARY_SNIFF_BYTES]:
        return None
    return raw.decode("utf-8", errors="replace")


@dataclass
class SearchTool:
    max_results_default: int = 50
    definition: ToolDefinition = field(default=SEARCH_DEFINITION)

    def run(self, args: dict[str, Any], context: ToolContext) -> ToolResult:
        parsed = parse_args(SearchArgs, args)
        root = resolve_safe_path(".", context.base_dir()).absolute_path
        regex = _compile_query(parsed.query, parsed.is_regex)
        include = glob_to_regex(parsed.include_pattern) if parsed.include_pattern else None
        max_results = (
            max(parsed.max_results, 1) if parsed.max_results is not None else self.max_results_default
        )

        matches: list[dict[str, Any]] = []
        truncated = False
        for file_path in walk_files(root, include):
            try:
                text = _read_searchable(file_path)
            except OSError as exc:
                context.log_warning("search skipped unreadable file %s: %s", file_path, exc)
                continue
            if text is None:
                continue

            relative = os.path.relpath(file_path, root).replace(os.sep, "/")
            for number, line in enumerate(content_lines(text), start=1):
                if not regex.search(line):
                    continue
                if len(matches) >= max_results:
                    truncated = True
                    break
                matches.append({"path": relative, "line": number, "text": line})
            if truncated:
                break

        return ToolResult.success(
            tool_name=self.definition.name,
            data={"matches": matches, "truncated": truncated},
            truncated=truncated,
        )
