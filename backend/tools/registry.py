from __future__ import annotations

import time
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from utils.redaction import redact_json_line

from .base import SandboxTool, ToolContext, ToolHandler
from .contracts import ToolDefinition, ToolError, ToolResult


class ToolRegistry:
    """Name-keyed table of tool definitions and handlers.

    ``call`` always returns a :class:`ToolResult`; handler exceptions are
    converted, never propagated.
    """

    def __init__(self, audit_file: Path | None = None) -> None:
        self.audit_file = audit_file
        self._definitions: dict[str, ToolDefinition] = {}
        self._handlers: dict[str, ToolHandler] = {}

    def register(self, definition: ToolDefinition, handler: ToolHandler) -> None:
        name = definition.name
        if not name or name != name.strip():
            raise ValueError(f"Invalid tool name: {name!r}")
        self._definitions[name] = definition.frozen_copy()
        self._handlers[name] = handler

    def register_tool(self, tool: SandboxTool) -> None:
        self.register(tool.definition, tool.run)

    def get_definition(self, name: str) -> ToolDefinition | None:
        definition = self._definitions.get(name)
        return definition.frozen_copy() if definition is not None else None

    def get_definitions(self) -> list[ToolDefinition]:
        return [definition.frozen_copy() for definition in self._definitions.values()]

    def get_handler(self, name: str) -> ToolHandler | None:
        return self._handlers.get(name)

    def names(self) -> list[str]:
        return list(self._definitions)

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)

    def _write_audit(self, payload: dict[str, Any], context: ToolContext) -> None:
        if self.audit_file is None:
            return
        try:
            self.audit_file.parent.mkdir(parents=True, exist_ok=True)
            with self.audit_file.open("a", encoding="utf-8") as fh:
                fh.write(redact_json_line(payload) + "\n")
        except OSError as exc:
            context.log_warning("tool audit write failed: %s", exc)

    def _finish(self, result: ToolResult, context: ToolContext) -> ToolResult:
        self._write_audit(
            {
                "event": "tool_end",
                "tool": result.meta.tool_name,
                "run_id": context.run_id,
                "duration_ms": result.meta.duration_ms,
                "ok": result.ok,
                "error_code": result.error.code if result.error else None,
                "error": result.error.message if result.error else None,
                "timestamp_ms": int(time.time() * 1000),
            },
            context,
        )
        error = result.error
        if result.ok or error is None:
            context.log_info("tool %s ok in %sms", result.meta.tool_name, result.meta.duration_ms)
        else:
            context.log_warning(
                "tool %s failed [%s]: %s",
                result.meta.tool_name,
                error.code,
                error.message,
            )
        return result

    def call(self, name: str, args: Any, context: ToolContext | None = None) -> ToolResult:
        context = context or ToolContext()
        started = time.monotonic()

        def elapsed() -> int:
            return int((time.monotonic() - started) * 1000)

        self._write_audit(
            {
                "event": "tool_start",
                "tool": name,
                "run_id": context.run_id,
                "args": args,
                "timestamp_ms": int(time.time() * 1000),
            },
            context,
        )

        handler = self._handlers.get(name)
        if handler is None:
            return self._finish(
                ToolResult.failure(
                    tool_name=name,
                    code="TOOL_NOT_FOUND",
                    message=f"Tool not found: {name}",
                    duration_ms=elapsed(),
                ),
                context,
            )

        if not isinstance(args, Mapping):
            return self._finish(
                ToolResult.failure(
                    tool_name=name,
                    code="INVALID_ARGS",
                    message=f"Tool arguments must be an object, got {type(args).__name__}",
                    duration_ms=elapsed(),
                ),
                context,
            )

        try:
            outcome = handler(dict(args), context)
        except ToolError as exc:
            result = ToolResult.from_error(name, exc, duration_ms=elapsed())
        except Exception as exc:  # noqa: BLE001
            result = ToolResult.failure(
                tool_name=name,
                code="TOOL_EXEC_ERROR",
                message=str(exc) or type(exc).__name__,
                duration_ms=elapsed(),
                details={"exception": type(exc).__name__},
            )
        else:
            if isinstance(outcome, ToolResult):
                result = outcome
                result.meta.tool_name = name
                result.meta.duration_ms = elapsed()
            else:
                result = ToolResult.success(tool_name=name, data=outcome, duration_ms=elapsed())
        return self._finish(result, context)
