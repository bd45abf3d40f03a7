from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from langchain_openai import ChatOpenAI
from pydantic import SecretStr

from config import AppConfig, validate_required_secrets
from tools.base import ToolContext
from tools.registry import ToolRegistry

from .callbacks import AuditCallbackHandler
from .chat_client import ChatModelResponseClient
from .models import ToolEvent
from .tool_loop import ResponseClient, ToolCallLoop, ToolChoiceValue


def build_chat_model(config: AppConfig, model: str | None = None) -> ChatOpenAI:
    missing = validate_required_secrets(config.secrets)
    if missing:
        raise RuntimeError(f"Missing required secrets: {', '.join(missing)}")
    llm_kwargs: dict[str, Any] = {
        "model": model or config.secrets.openai_model,
        "api_key": SecretStr(config.secrets.openai_api_key),
        "base_url": config.secrets.openai_base_url,
        "temperature": config.runtime.llm_runtime.temperature,
        "timeout": config.runtime.llm_runtime.timeout_seconds,
    }
    return ChatOpenAI(**llm_kwargs)


@dataclass
class GenerateOptions:
    model: str | None = None
    tools: list[dict[str, Any]] | None = None
    tool_registry: ToolRegistry | None = None
    tool_context: ToolContext | None = None
    tool_choice: ToolChoiceValue | None = None
    max_tool_calls: int | None = None
    instructions: str | None = None
    on_progress: Callable[[str], Any] | None = None
    on_tool_call: Callable[[ToolEvent], Any] | None = None
    on_response: Callable[[Any], Any] | None = None


class GenerationProvider:
    """Entry point for collaborators: ``generate(prompt, options) -> text``.

    Either pass a ready ``client`` or an ``AppConfig`` from which
    OpenAI-compatible chat models are built (one client per model name).
    """

    def __init__(self, config: AppConfig | None = None, client: ResponseClient | None = None) -> None:
        if config is None and client is None:
            raise ValueError("GenerationProvider needs a config or a client")
        self.config = config
        self._client = client
        self._clients: dict[str, ResponseClient] = {}

    def _client_for(self, model: str | None) -> ResponseClient:
        if self._client is not None:
            return self._client
        if self.config is None:
            raise ValueError("GenerationProvider needs a config or a client")
        name = model or self.config.secrets.openai_model
        if name not in self._clients:
            callbacks = []
            audit_path = self.config.audit_path()
            if audit_path is not None:
                callbacks.append(AuditCallbackHandler(audit_path, run_id=uuid.uuid4().hex))
            self._clients[name] = ChatModelResponseClient(
                build_chat_model(self.config, model=name),
                callbacks=callbacks,
            )
        return self._clients[name]

    def _defaults(self) -> tuple[ToolChoiceValue, int]:
        if self.config is None:
            return "auto", 3
        loop = self.config.runtime.tool_loop
        return loop.tool_choice.value, loop.max_tool_calls

    def generate(self, prompt: str, options: GenerateOptions | None = None) -> str:
        options = options or GenerateOptions()
        default_choice, default_budget = self._defaults()
        context = options.tool_context or ToolContext(
            root_path=self.config.base_dir if self.config is not None else None
        )
        loop = ToolCallLoop(
            client=self._client_for(options.model),
            registry=options.tool_registry,
            context=context,
            tools=options.tools,
            tool_choice=options.tool_choice if options.tool_choice is not None else default_choice,
            max_tool_calls=options.max_tool_calls if options.max_tool_calls is not None else default_budget,
            instructions=options.instructions,
            on_progress=options.on_progress,
            on_tool_call=options.on_tool_call,
            on_response=options.on_response,
        )
        return loop.run(prompt).text
