from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from utils.fs import content_lines, read_text, write_text_atomic

from .arguments import EditArgs, parse_args
from .base import ToolContext
from .contracts import InvalidArgsError, ToolDefinition, ToolResult
from .path_guard import SafePath, ensure_file_exists, resolve_safe_path


EDIT_MODES = ("overwrite", "append", "replace", "insert")

EDIT_DEFINITION = ToolDefinition(
    name="edit",
    description="Edit a text file by replacing, inserting, appending, or overwriting content.",
    parameters={
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "Path to the file, relative to the project root."},
            "mode": {
                "type": "string",
                "enum": list(EDIT_MODES),
                "description": "Edit mode to apply.",
            },
            "content": {"type": "string", "description": "Content to write or insert."},
            "startLine": {"type": "integer", "description": "1-based start line for replace/insert."},
            "endLine": {"type": "integer", "description": "1-based end line for replace."},
            "find": {"type": "string", "description": "String or regex pattern to replace."},
            "replace": {"type": "string", "description": "Replacement string."},
            "useRegex": {"type": "boolean", "description": "Treat find as regex (default: false)."},
        },
        "required": ["path", "mode"],
        "additionalProperties": False,
    },
)


def _split_content(text: str) -> tuple[list[str], bool]:
    return content_lines(text), text.endswith("\n")


def _join_content(lines: list[str], trailing_newline: bool) -> str:
    body = "\n".join(lines)
    return body + "\n" if trailing_newline and lines else body


@dataclass
class EditTool:
    encoding: str = "utf-8"
    definition: ToolDefinition = field(default=EDIT_DEFINITION)

    def run(self, args: dict[str, Any], context: ToolContext) -> ToolResult:
        parsed = parse_args(EditArgs, args)
        if parsed.mode not in EDIT_MODES:
            raise InvalidArgsError(
                f"Unsupported mode: {parsed.mode}",
                details={"allowed": list(EDIT_MODES)},
            )

        target = resolve_safe_path(parsed.path, context.base_dir())
        if parsed.mode == "overwrite":
            return self._overwrite(target, parsed)

        ensure_file_exists(target.absolute_path, target.relative_path)
        if parsed.mode == "append":
            return self._append(target, parsed)
        if parsed.mode == "insert":
            return self._insert(target, parsed)
        return self._replace(target, parsed)

    def _success(self, data: dict[str, Any]) -> ToolResult:
        return ToolResult.success(tool_name=self.definition.name, data=data)

    def _overwrite(self, target: SafePath, parsed: EditArgs) -> ToolResult:
        written = write_text_atomic(target.absolute_path, parsed.content or "", encoding=self.encoding)
        return self._success({"path": target.relative_path, "mode": parsed.mode, "bytes": written})

    def _append(self, target: SafePath, parsed: EditArgs) -> ToolResult:
        content = parsed.content or ""
        with target.absolute_path.open("a", encoding=self.encoding) as fh:
            fh.write(content)
        return self._success(
            {
                "path": target.relative_path,
                "mode": parsed.mode,
                "bytes": len(content.encode(self.encoding)),
            }
        )

    def _insert(self, target: SafePath, parsed: EditArgs) -> ToolResult:
        lines, trailing_newline = _split_content(read_text(target.absolute_path, self.encoding))
        start_line = max(parsed.start_line, 1) if parsed.start_line is not None else len(lines) + 1
        start_line = min(start_line, len(lines) + 1)
        insert_lines, _ = _split_content(parsed.content or "")
        updated = lines[: start_line - 1] + insert_lines + lines[start_line - 1 :]
        if not lines:
            trailing_newline = (parsed.content or "").endswith("\n")
        write_text_atomic(target.absolute_path, _join_content(updated, trailing_newline), self.encoding)
        return self._success(
            {
                "path": target.relative_path,
                "mode": parsed.mode,
                "startLine": start_line,
                "linesInserted": len(insert_lines),
            }
        )

    def _replace(self, target: SafePath, parsed: EditArgs) -> ToolResult:
        text = read_text(target.absolute_path, self.encoding)

        if parsed.start_line is not None:
            lines, trailing_newline = _split_content(text)
            start_line = max(parsed.start_line, 1)
            end_line = max(parsed.end_line, start_line) if parsed.end_line is not None else start_line
            replacement, _ = _split_content(parsed.content or "")
            updated = lines[: start_line - 1] + replacement + lines[end_line:]
            write_text_atomic(target.absolute_path, _join_content(updated, trailing_newline), self.encoding)
            return self._success(
                {
                    "path": target.relative_path,
                    "mode": parsed.mode,
                    "startLine": start_line,
                    "endLine": end_line,
                }
            )

        if not parsed.find:
            raise InvalidArgsError("find is required when startLine is not provided")

        replacement_text = parsed.replace or ""
        if parsed.use_regex:
            try:
                updated_text, count = re.subn(parsed.find, replacement_text, text)
            except re.error as exc:
                raise InvalidArgsError(f"Invalid regex: {exc}") from exc
        else:
            count = text.count(parsed.find)
            updated_text = text.replace(parsed.find, replacement_text)

        if count:
            write_text_atomic(target.absolute_path, updated_text, self.encoding)
        return self._success(
            {
                "path": target.relative_path,
                "mode": parsed.mode,
                "replacements": count,
            }
        )
