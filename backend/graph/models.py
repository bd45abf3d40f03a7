from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from tools.contracts import ToolResult


ToolCallKind = Literal["function_call", "apply_patch_call"]

_OUTPUT_TYPES: dict[str, str] = {
    "function_call": "function_call_output",
    "apply_patch_call": "apply_patch_call_output",
}


def _field(item: Any, key: str, default: Any = None) -> Any:
    if isinstance(item, Mapping):
        return item.get(key, default)
    return getattr(item, key, default)


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: str | Mapping[str, Any] | None
    call_id: str
    kind: ToolCallKind = "function_call"


@dataclass
class ModelResponse:
    """One generation round in Responses-API shape.

    ``id`` is the continuation token for the next round; ``output`` holds
    message, ``function_call`` and ``apply_patch_call`` items.
    """

    id: str | None
    output_text: str = ""
    output: list[Any] = field(default_factory=list)
    raw: Any = None

    def tool_calls(self) -> list[ToolCall]:
        calls: list[ToolCall] = []
        for item in self.output:
            item_type = _field(item, "type")
            if item_type == "function_call":
                call_id = str(_field(item, "call_id") or _field(item, "id") or "")
                calls.append(
                    ToolCall(
                        id=str(_field(item, "id") or call_id),
                        name=str(_field(item, "name") or ""),
                        arguments=_field(item, "arguments"),
                        call_id=call_id,
                    )
                )
            elif item_type == "apply_patch_call":
                call_id = str(_field(item, "call_id") or _field(item, "id") or "")
                operation = _field(item, "operation")
                if operation is not None and not isinstance(operation, Mapping):
                    operation = {
                        "type": _field(operation, "type"),
                        "path": _field(operation, "path"),
                        "diff": _field(operation, "diff"),
                    }
                calls.append(
                    ToolCall(
                        id=str(_field(item, "id") or call_id),
                        name="apply_patch",
                        arguments={"operation": operation},
                        call_id=call_id,
                        kind="apply_patch_call",
                    )
                )
        return calls


@dataclass
class ToolEvent:
    name: str
    call_id: str
    arguments: dict[str, Any]
    result: ToolResult

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "call_id": self.call_id,
            "arguments": self.arguments,
            "result": self.result.to_dict(),
        }


@dataclass
class ToolLoopResult:
    text: str
    response: ModelResponse
    rounds: int = 0
    tool_events: list[ToolEvent] = field(default_factory=list)


def tool_output_item(call: ToolCall, result: ToolResult) -> dict[str, Any]:
    return {
        "type": _OUTPUT_TYPES[call.kind],
        "call_id": call.call_id,
        "output": json.dumps(result.to_dict(), ensure_ascii=False, default=str),
        "status": "completed",
    }
