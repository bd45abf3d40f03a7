from __future__ import annotations

from typing import TYPE_CHECKING, Any

__all__ = [
    "ChatModelResponseClient",
    "ConversationCache",
    "GenerateOptions",
    "GenerationProvider",
    "ModelResponse",
    "ToolCallLoop",
    "ToolLoopResult",
]

if TYPE_CHECKING:
    from .chat_client import ChatModelResponseClient, ConversationCache
    from .models import ModelResponse, ToolLoopResult
    from .provider import GenerateOptions, GenerationProvider
    from .tool_loop import ToolCallLoop


def __getattr__(name: str) -> Any:
    # Lazy exports keep `import graph.models` free of LangChain imports.
    if name in {"ChatModelResponseClient", "ConversationCache"}:
        from . import chat_client

        return getattr(chat_client, name)
    if name in {"ModelResponse", "ToolLoopResult"}:
        from . import models

        return getattr(models, name)
    if name in {"GenerateOptions", "GenerationProvider"}:
        from . import provider

        return getattr(provider, name)
    if name == "ToolCallLoop":
        from .tool_loop import ToolCallLoop

        return ToolCallLoop
    raise AttributeError(name)
