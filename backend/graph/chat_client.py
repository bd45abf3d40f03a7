from __future__ import annotations

import json
import uuid
from collections import OrderedDict
from collections.abc import Mapping
from typing import Any

from langchain_core.callbacks import BaseCallbackHandler
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)

from .models import ModelResponse


_ROLE_MESSAGES: dict[str, type[BaseMessage]] = {
    "user": HumanMessage,
    "system": SystemMessage,
    "assistant": AIMessage,
}
_TOOL_OUTPUT_TYPES = {"function_call_output", "apply_patch_call_output"}


class ConversationCache:
    """Bounded transcript store keyed by response id."""

    def __init__(self, max_entries: int = 64) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.max_entries = max_entries
        self._entries: OrderedDict[str, list[BaseMessage]] = OrderedDict()

    def get(self, response_id: str) -> list[BaseMessage] | None:
        messages = self._entries.get(response_id)
        if messages is None:
            return None
        self._entries.move_to_end(response_id)
        return list(messages)

    def put(self, response_id: str, messages: list[BaseMessage]) -> None:
        self._entries[response_id] = list(messages)
        self._entries.move_to_end(response_id)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def invalidate(self, response_id: str) -> None:
        self._entries.pop(response_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, response_id: object) -> bool:
        return response_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def _as_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, Mapping) and block.get("type") in {"text", "output_text"}:
                parts.append(str(block.get("text", "")))
        return "".join(parts)
    return str(content)


def _to_messages(input_items: str | list[Any]) -> list[BaseMessage]:
    if isinstance(input_items, str):
        return [HumanMessage(content=input_items)]

    messages: list[BaseMessage] = []
    for item in input_items:
        if isinstance(item, BaseMessage):
            messages.append(item)
            continue
        if not isinstance(item, Mapping):
            raise TypeError(f"Unsupported input item: {type(item).__name__}")
        if item.get("type") in _TOOL_OUTPUT_TYPES:
            messages.append(ToolMessage(content=str(item.get("output", "")), tool_call_id=str(item["call_id"])))
            continue
        role = str(item.get("role", ""))
        message_cls = _ROLE_MESSAGES.get(role)
        if message_cls is None:
            raise ValueError(f"Unsupported input item role: {role or '<missing>'}")
        messages.append(message_cls(content=_as_text(item.get("content", ""))))
    return messages


def _output_items(message: AIMessage, text: str) -> list[dict[str, Any]]:
    items: list[dict[str, Any]] = []
    if text:
        items.append(
            {
                "type": "message",
                "role": "assistant",
                "content": [{"type": "output_text", "text": text}],
            }
        )
    for call in message.tool_calls:
        call_id = call.get("id") or f"call_{uuid.uuid4().hex}"
        items.append(
            {
                "type": "function_call",
                "id": call_id,
                "call_id": call_id,
                "name": call["name"],
                "arguments": json.dumps(call.get("args", {}), ensure_ascii=False),
            }
        )
    for call in message.invalid_tool_calls:
        call_id = call.get("id") or f"call_{uuid.uuid4().hex}"
        items.append(
            {
                "type": "function_call",
                "id": call_id,
                "call_id": call_id,
                "name": call.get("name") or "",
                "arguments": call.get("args") or "",
            }
        )
    return items


class ChatModelResponseClient:
    """Presents a LangChain chat model as a response client with continuation ids."""

    def __init__(
        self,
        model: BaseChatModel,
        cache: ConversationCache | None = None,
        callbacks: list[BaseCallbackHandler] | None = None,
    ) -> None:
        self.model = model
        self.cache = cache if cache is not None else ConversationCache()
        self.callbacks = list(callbacks or [])

    def _runnable(self, tools: list[dict[str, Any]] | None, tool_choice: str | dict[str, Any]) -> Any:
        if not tools or tool_choice == "none":
            return self.model
        if isinstance(tool_choice, Mapping) and tool_choice.get("name"):
            return self.model.bind_tools(tools, tool_choice=str(tool_choice["name"]))
        return self.model.bind_tools(tools)

    def create(
        self,
        *,
        input: str | list[Any],
        tools: list[dict[str, Any]] | None = None,
        tool_choice: str | dict[str, Any] = "auto",
        previous_response_id: str | None = None,
        instructions: str | None = None,
    ) -> ModelResponse:
        if previous_response_id is not None:
            history = self.cache.get(previous_response_id)
            if history is None:
                raise ValueError(f"Unknown previous response id: {previous_response_id}")
        else:
            history = []

        messages = list(history)
        if not messages and instructions:
            messages.append(SystemMessage(content=instructions))
        messages.extend(_to_messages(input))

        config = {"callbacks": self.callbacks} if self.callbacks else None
        reply = self._runnable(tools, tool_choice).invoke(messages, config=config)
        if not isinstance(reply, AIMessage):
            reply = AIMessage(content=_as_text(getattr(reply, "content", reply)))

        messages.append(reply)
        response_id = f"resp_{uuid.uuid4().hex}"
        self.cache.put(response_id, messages)

        text = _as_text(reply.content)
        return ModelResponse(
            id=response_id,
            output_text=text,
            output=_output_items(reply, text),
            raw=reply,
        )
