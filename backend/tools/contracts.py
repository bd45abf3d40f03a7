from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Literal


ErrorCode = Literal[
    "PATH_ESCAPE",
    "FILE_NOT_FOUND",
    "FILE_EXISTS",
    "INVALID_ARGS",
    "PATCH_MISMATCH",
    "TOOL_NOT_FOUND",
    "TOOL_EXEC_ERROR",
    "TOOL_REGISTRY_MISSING",
]


class ToolError(Exception):
    """Base class for failures that carry a stable, branchable error code."""

    code: ErrorCode = "TOOL_EXEC_ERROR"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class PathEscapeError(ToolError):
    code: ErrorCode = "PATH_ESCAPE"


class FileMissingError(ToolError):
    code: ErrorCode = "FILE_NOT_FOUND"


class FileAlreadyExistsError(ToolError):
    code: ErrorCode = "FILE_EXISTS"


class InvalidArgsError(ToolError):
    code: ErrorCode = "INVALID_ARGS"


class PatchMismatchError(ToolError):
    code: ErrorCode = "PATCH_MISMATCH"


class ToolRegistryMissingError(ToolError):
    code: ErrorCode = "TOOL_REGISTRY_MISSING"


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    def frozen_copy(self) -> "ToolDefinition":
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=copy.deepcopy(self.parameters),
        )

    def to_openai(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": copy.deepcopy(self.parameters),
            },
        }


@dataclass
class ToolErrorInfo:
    message: str
    code: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolMeta:
    tool_name: str
    duration_ms: int
    truncated: bool = False


@dataclass
class ToolResult:
    ok: bool
    data: Any
    meta: ToolMeta
    error: ToolErrorInfo | None = None

    @staticmethod
    def success(
        tool_name: str,
        data: Any,
        duration_ms: int = 0,
        truncated: bool = False,
    ) -> "ToolResult":
        return ToolResult(
            ok=True,
            data=data,
            meta=ToolMeta(tool_name=tool_name, duration_ms=duration_ms, truncated=truncated),
            error=None,
        )

    @staticmethod
    def failure(
        tool_name: str,
        code: str,
        message: str,
        duration_ms: int = 0,
        details: dict[str, Any] | None = None,
    ) -> "ToolResult":
        return ToolResult(
            ok=False,
            data=None,
            meta=ToolMeta(tool_name=tool_name, duration_ms=duration_ms),
            error=ToolErrorInfo(message=message, code=code, details=details or {}),
        )

    @staticmethod
    def from_error(tool_name: str, exc: ToolError, duration_ms: int = 0) -> "ToolResult":
        return ToolResult.failure(
            tool_name=tool_name,
            code=exc.code,
            message=exc.message,
            duration_ms=duration_ms,
            details=exc.details,
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "ok": self.ok,
            "meta": {
                "tool_name": self.meta.tool_name,
                "duration_ms": self.meta.duration_ms,
                "truncated": self.meta.truncated,
            },
        }
        if self.ok:
            payload["data"] = self.data
        else:
            error = self.error or ToolErrorInfo(message="Unknown tool failure")
            payload["error"] = {"message": error.message, "code": error.code}
            if error.details:
                payload["error"]["details"] = error.details
        return payload
