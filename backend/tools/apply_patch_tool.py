from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .arguments import ApplyPatchArgs, parse_args
from .base import ToolContext
from .contracts import InvalidArgsError, ToolDefinition, ToolResult
from .patch_engine import PatchOperation, apply_operations, parse_patch_document


APPLY_PATCH_DEFINITION = ToolDefinition(
    name="apply_patch",
    description=(
        "Create, update or delete files inside the project root. Pass a single "
        "'operation' {type, path, diff} or a multi-file 'input' patch wrapped in "
        "'*** Begin Patch' / '*** End Patch'."
    ),
    parameters={
        "type": "object",
        "properties": {
            "operation": {
                "type": "object",
                "properties": {
                    "type": {
                        "type": "string",
                        "enum": ["create_file", "update_file", "delete_file"],
                    },
                    "path": {"type": "string", "description": "Path relative to the project root."},
                    "diff": {
                        "type": "string",
                        "description": "Hunks of context/+added/-removed lines. Not used for delete_file.",
                    },
                },
                "required": ["type", "path"],
                "additionalProperties": False,
            },
            "input": {"type": "string", "description": "Multi-file patch document."},
        },
        "additionalProperties": False,
    },
)


@dataclass
class ApplyPatchTool:
    max_patch_chars: int = 200000
    definition: ToolDefinition = field(default=APPLY_PATCH_DEFINITION)

    def _operations(self, parsed: ApplyPatchArgs) -> list[PatchOperation]:
        if parsed.operation is not None:
            op = parsed.operation
            return [PatchOperation(type=op.type, path=op.path, diff=op.diff)]
        return parse_patch_document(parsed.input or "")

    def run(self, args: dict[str, Any], context: ToolContext) -> ToolResult:
        parsed = parse_args(ApplyPatchArgs, args)
        size = len(parsed.input or "") + len((parsed.operation.diff or "") if parsed.operation else "")
        if size > self.max_patch_chars:
            raise InvalidArgsError(f"Patch input exceeds max size of {self.max_patch_chars} chars")

        planned = apply_operations(self._operations(parsed), context.base_dir())
        context.log_info(
            "apply_patch committed %d operation(s): %s",
            len(planned),
            ", ".join(f"{change.type}:{change.path}" for change in planned),
        )
        return ToolResult.success(
            tool_name=self.definition.name,
            data={
                "applied": [{"type": change.type, "path": change.path} for change in planned],
                "hunks_applied": sum(change.hunks_applied for change in planned),
            },
        )
