from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from utils.fs import content_lines, read_text

from .arguments import ReadFileArgs, parse_args
from .base import ToolContext
from .contracts import InvalidArgsError, ToolDefinition, ToolResult
from .path_guard import ensure_file_exists, resolve_safe_path


READ_FILE_DEFINITION = ToolDefinition(
    name="read_file",
    description="Read a file from disk with optional line range.",
    parameters={
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "Path to the file, relative to the project root."},
            "startLine": {"type": "integer", "description": "1-based start line number (inclusive)."},
            "endLine": {"type": "integer", "description": "1-based end line number (inclusive)."},
            "encoding": {"type": "string", "description": "File encoding (default: utf-8)."},
            "maxChars": {"type": "integer", "description": "Clip returned content to this many characters."},
        },
        "required": ["path"],
        "additionalProperties": False,
    },
)


@dataclass
class ReadFileTool:
    max_chars_default: int = 100000
    definition: ToolDefinition = field(default=READ_FILE_DEFINITION)

    def run(self, args: dict[str, Any], context: ToolContext) -> ToolResult:
        parsed = parse_args(ReadFileArgs, args)
        target = resolve_safe_path(parsed.path, context.base_dir())
        ensure_file_exists(target.absolute_path, target.relative_path)
        if not target.absolute_path.is_file():
            raise InvalidArgsError(f"Not a file: {target.relative_path}")

        lines = content_lines(read_text(target.absolute_path, encoding=parsed.encoding))
        total = len(lines)
        start_line = max(parsed.start_line, 1) if parsed.start_line is not None else 1
        end_line = min(parsed.end_line, total) if parsed.end_line is not None else total
        content = "\n".join(lines[start_line - 1 : end_line])

        max_chars = parsed.max_chars or self.max_chars_default
        truncated = False
        if len(content) > max_chars:
            content = content[:max_chars] + "\n...[truncated]"
            truncated = True

        return ToolResult.success(
            tool_name=self.definition.name,
            data={
                "path": target.relative_path,
                "startLine": start_line,
                "endLine": end_line,
                "totalLines": total,
                "content": content,
                "truncated": truncated,
            },
            truncated=truncated,
        )
