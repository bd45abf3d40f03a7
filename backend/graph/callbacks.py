from __future__ import annotations

import time
from pathlib import Path
from typing import Any

from langchain_core.callbacks import BaseCallbackHandler
from langchain_core.messages import BaseMessage
from utils.redaction import redact_json_line


class AuditCallbackHandler(BaseCallbackHandler):
    def __init__(self, audit_file: Path, run_id: str) -> None:
        super().__init__()
        self.audit_file = audit_file
        self.run_id = run_id
        self.audit_file.parent.mkdir(parents=True, exist_ok=True)

    def _write(self, event: str, payload: dict[str, Any]) -> None:
        row = {
            "timestamp_ms": int(time.time() * 1000),
            "event": event,
            "run_id": self.run_id,
            **payload,
        }
        with self.audit_file.open("a", encoding="utf-8") as fh:
            fh.write(redact_json_line(row) + "\n")

    def on_chat_model_start(
        self,
        serialized: dict[str, Any],
        messages: list[list[BaseMessage]],
        **kwargs: Any,
    ) -> None:
        self._write(
            "llm_start",
            {
                "model": (serialized or {}).get("name", "unknown"),
                "message_count": sum(len(batch) for batch in messages),
            },
        )

    def on_llm_start(self, serialized: dict[str, Any], prompts: list[str], **kwargs: Any) -> None:
        self._write(
            "llm_start",
            {
                "model": (serialized or {}).get("name", "unknown"),
                "prompt_count": len(prompts),
            },
        )

    def on_llm_end(self, response: Any, **kwargs: Any) -> None:
        self._write(
            "llm_end",
            {
                "generation_count": len(getattr(response, "generations", [])),
            },
        )

    def on_llm_error(self, error: BaseException, **kwargs: Any) -> None:
        self._write(
            "llm_error",
            {
                "error": str(error),
            },
        )

    def on_tool_start(self, serialized: dict[str, Any], input_str: str, **kwargs: Any) -> None:
        self._write(
            "lc_tool_start",
            {
                "tool": (serialized or {}).get("name", "unknown"),
                "input": input_str,
            },
        )

    def on_tool_end(self, output: Any, **kwargs: Any) -> None:
        self._write(
            "lc_tool_end",
            {
                "output": str(output)[:2000],
            },
        )
