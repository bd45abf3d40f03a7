from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from tools.base import ToolContext
from tools.contracts import ToolRegistryMissingError
from tools.registry import ToolRegistry

from .models import ModelResponse, ToolCall, ToolEvent, ToolLoopResult, tool_output_item


logger = logging.getLogger(__name__)

ToolChoiceValue = str | dict[str, Any]


class ResponseClient(Protocol):
    def create(
        self,
        *,
        input: str | list[Any],
        tools: list[dict[str, Any]] | None = None,
        tool_choice: ToolChoiceValue = "auto",
        previous_response_id: str | None = None,
        instructions: str | None = None,
    ) -> ModelResponse:
        ...


def decode_arguments(raw: Any) -> dict[str, Any]:
    if raw is None or raw == "":
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    if isinstance(raw, str):
        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("tool call arguments are not valid JSON: %s", exc)
            return {}
        if isinstance(decoded, dict):
            return decoded
        logger.warning("tool call arguments decoded to %s, expected object", type(decoded).__name__)
        return {}
    logger.warning("unsupported tool call arguments type: %s", type(raw).__name__)
    return {}


@dataclass
class ToolCallLoop:
    """Alternates generation rounds and tool execution until the model stops
    asking for tools or ``max_tool_calls`` rounds have run.

    The client is called at most ``max_tool_calls + 1`` times. When the budget
    runs out the last response is returned as-is.
    """

    client: ResponseClient
    registry: ToolRegistry | None = None
    context: ToolContext = field(default_factory=ToolContext)
    tools: list[dict[str, Any]] | None = None
    tool_choice: ToolChoiceValue = "auto"
    max_tool_calls: int = 3
    instructions: str | None = None
    on_progress: Callable[[str], Any] | None = None
    on_tool_call: Callable[[ToolEvent], Any] | None = None
    on_response: Callable[[Any], Any] | None = None

    def _advertised_tools(self) -> list[dict[str, Any]] | None:
        if self.tools is not None:
            return self.tools
        if self.registry is None:
            return None
        return [definition.to_openai() for definition in self.registry.get_definitions()]

    @staticmethod
    def _fire(hook: Callable[[Any], Any] | None, payload: Any, label: str) -> None:
        if hook is None:
            return
        try:
            hook(payload)
        except Exception:  # noqa: BLE001
            logger.exception("%s hook failed", label)

    def _request(
        self,
        input_items: str | list[Any],
        tools: list[dict[str, Any]] | None,
        previous_response_id: str | None,
    ) -> ModelResponse:
        response = self.client.create(
            input=input_items,
            tools=tools,
            tool_choice=self.tool_choice,
            previous_response_id=previous_response_id,
            instructions=self.instructions,
        )
        if response.output_text:
            self._fire(self.on_progress, response.output_text, "on_progress")
        return response

    def _execute(self, registry: ToolRegistry, call: ToolCall) -> tuple[ToolEvent, dict[str, Any]]:
        arguments = decode_arguments(call.arguments)
        result = registry.call(call.name, arguments, self.context)
        event = ToolEvent(name=call.name, call_id=call.call_id, arguments=arguments, result=result)
        return event, tool_output_item(call, result)

    def run(self, prompt: str | list[Any]) -> ToolLoopResult:
        tools = self._advertised_tools()
        response = self._request(prompt, tools, None)
        rounds = 0
        events: list[ToolEvent] = []

        while True:
            calls = response.tool_calls()
            if not calls:
                break
            registry = self.registry
            if registry is None:
                raise ToolRegistryMissingError(
                    "Model requested tool calls but no tool registry was provided",
                    details={"tools": [call.name for call in calls]},
                )
            if rounds >= self.max_tool_calls:
                logger.info(
                    "tool call budget of %d round(s) exhausted; returning last response",
                    self.max_tool_calls,
                )
                break

            rounds += 1
            outputs: list[dict[str, Any]] = []
            for call in calls:
                event, output = self._execute(registry, call)
                events.append(event)
                self._fire(self.on_tool_call, event, "on_tool_call")
                outputs.append(output)
            response = self._request(outputs, tools, response.id)

        self._fire(self.on_response, response.raw if response.raw is not None else response, "on_response")
        return ToolLoopResult(
            text=response.output_text,
            response=response,
            rounds=rounds,
            tool_events=events,
        )
