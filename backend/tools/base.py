from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from .contracts import ToolDefinition, ToolResult


@dataclass
class ToolContext:
    root_path: Path | None = None
    cwd: Path | None = None
    logger: logging.Logger | None = None
    run_id: str | None = None

    def base_dir(self) -> Path:
        if self.root_path is not None:
            return Path(self.root_path)
        if self.cwd is not None:
            return Path(self.cwd)
        return Path.cwd()

    def log_info(self, message: str, *args: Any) -> None:
        if self.logger is not None:
            self.logger.info(message, *args)

    def log_warning(self, message: str, *args: Any) -> None:
        if self.logger is not None:
            self.logger.warning(message, *args)


class ToolHandler(Protocol):
    def __call__(self, args: dict[str, Any], context: ToolContext) -> ToolResult:
        ...


class SandboxTool(Protocol):
    definition: ToolDefinition

    def run(self, args: dict[str, Any], context: ToolContext) -> ToolResult:
        ...
