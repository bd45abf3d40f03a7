from __future__ import annotations

import json
from typing import Any

import pytest

from graph.models import ModelResponse
from graph.tool_loop import ToolCallLoop, decode_arguments
from tools.base import ToolContext
from tools.contracts import ToolRegistryMissingError


def _call(call_id: str, name: str, arguments: Any) -> dict[str, Any]:
    return {"type": "function_call", "id": f"fc_{call_id}", "call_id": call_id, "name": name, "arguments": arguments}


class ScriptedClient:
    """Replays canned responses and records every request."""

    def __init__(self, responses: list[ModelResponse]) -> None:
        self.responses = list(responses)
        self.requests: list[dict[str, Any]] = []

    def create(self, **kwargs: Any) -> ModelResponse:
        self.requests.append(kwargs)
        if len(self.requests) <= len(self.responses):
            return self.responses[len(self.requests) - 1]
        return self.responses[-1]


def _tool_response(response_id: str, *calls: dict[str, Any]) -> ModelResponse:
    return ModelResponse(id=response_id, output_text="", output=list(calls))


def test_loop_without_tool_calls_returns_text(registry, tool_context):
    client = ScriptedClient([ModelResponse(id="r1", output_text="done")])
    loop = ToolCallLoop(client=client, registry=registry, context=tool_context)

    result = loop.run("hi")

    assert result.text == "done"
    assert result.rounds == 0
    assert len(client.requests) == 1
    assert client.requests[0]["input"] == "hi"
    assert client.requests[0]["previous_response_id"] is None


def test_loop_executes_tools_and_threads_continuation(registry, tool_context):
    client = ScriptedClient(
        [
            _tool_response("r1", _call("c1", "read_file", json.dumps({"path": "src/util.py"}))),
            ModelResponse(id="r2", output_text="VALUE is 1"),
        ]
    )
    loop = ToolCallLoop(client=client, registry=registry, context=tool_context)

    result = loop.run("what is VALUE?")

    assert result.text == "VALUE is 1"
    assert result.rounds == 1
    second = client.requests[1]
    assert second["previous_response_id"] == "r1"
    [output] = second["input"]
    assert output["type"] == "function_call_output"
    assert output["call_id"] == "c1"
    assert output["status"] == "completed"
    assert json.loads(output["output"])["data"]["content"] == "VALUE = 1"
    assert [event.name for event in result.tool_events] == ["read_file"]


def test_loop_advertises_registry_tools_by_default(registry, tool_context):
    client = ScriptedClient([ModelResponse(id="r1", output_text="ok")])
    ToolCallLoop(client=client, registry=registry, context=tool_context, tool_choice="none").run("x")

    request = client.requests[0]
    assert request["tool_choice"] == "none"
    assert sorted(tool["function"]["name"] for tool in request["tools"]) == [
        "apply_patch",
        "edit",
        "list_files",
        "read_file",
        "search",
    ]


@pytest.mark.parametrize("budget", [0, 1, 3])
def test_round_budget_bounds_client_calls(registry, tool_context, budget):
    client = ScriptedClient([_tool_response("r", _call("c", "list_files", "{}"))])
    loop = ToolCallLoop(client=client, registry=registry, context=tool_context, max_tool_calls=budget)

    result = loop.run("loop forever")

    assert len(client.requests) == budget + 1
    assert result.rounds == budget
    assert result.response.tool_calls()


def test_missing_registry_is_a_configuration_error():
    client = ScriptedClient([_tool_response("r1", _call("c1", "read_file", "{}"))])
    loop = ToolCallLoop(client=client, registry=None, max_tool_calls=0)

    with pytest.raises(ToolRegistryMissingError) as excinfo:
        loop.run("x")
    assert excinfo.value.code == "TOOL_REGISTRY_MISSING"


def test_malformed_arguments_degrade_only_that_call(registry, tool_context):
    client = ScriptedClient(
        [
            _tool_response(
                "r1",
                _call("bad", "list_files", "{not json"),
                _call("good", "read_file", '{"path": "README.md"}'),
            ),
            ModelResponse(id="r2", output_text="ok"),
        ]
    )

    result = ToolCallLoop(client=client, registry=registry, context=tool_context).run("x")

    assert [event.arguments for event in result.tool_events] == [{}, {"path": "README.md"}]
    assert all(event.result.ok for event in result.tool_events)
    assert [item["call_id"] for item in client.requests[1]["input"]] == ["bad", "good"]


def test_tool_failures_are_passed_back_as_data(registry, tool_context):
    client = ScriptedClient(
        [
            _tool_response("r1", _call("c1", "no_such_tool", "{}")),
            ModelResponse(id="r2", output_text="sorry"),
        ]
    )

    result = ToolCallLoop(client=client, registry=registry, context=tool_context).run("x")

    assert result.text == "sorry"
    payload = json.loads(client.requests[1]["input"][0]["output"])
    assert payload["error"]["code"] == "TOOL_NOT_FOUND"
    assert client.requests[1]["input"][0]["status"] == "completed"


def test_apply_patch_calls_are_routed_to_apply_patch(registry, tool_context, project_root):
    patch_call = {
        "type": "apply_patch_call",
        "call_id": "p1",
        "operation": {"type": "update_file", "path": "src/util.py", "diff": "@@\n-VALUE = 1\n+VALUE = 9\n"},
    }
    client = ScriptedClient([_tool_response("r1", patch_call), ModelResponse(id="r2", output_text="patched")])

    ToolCallLoop(client=client, registry=registry, context=tool_context).run("patch it")

    [output] = client.requests[1]["input"]
    assert output["type"] == "apply_patch_call_output"
    assert output["call_id"] == "p1"
    assert (project_root / "src" / "util.py").read_text(encoding="utf-8") == "VALUE = 9\n"


def test_failing_hooks_do_not_change_control_flow(registry, tool_context):
    seen: list[str] = []

    def explode(payload: Any) -> None:
        seen.append(type(payload).__name__)
        raise RuntimeError("hook failure")

    client = ScriptedClient(
        [
            ModelResponse(id="r1", output_text="thinking", output=[_call("c1", "list_files", "{}")]),
            ModelResponse(id="r2", output_text="final"),
        ]
    )
    loop = ToolCallLoop(
        client=client,
        registry=registry,
        context=tool_context,
        on_progress=explode,
        on_tool_call=explode,
        on_response=explode,
    )

    result = loop.run("x")

    assert result.text == "final"
    assert seen.count("str") == 2
    assert seen.count("ToolEvent") == 1
    assert seen.count("ModelResponse") == 1


def test_response_hook_sees_only_the_final_response(registry, tool_context):
    seen: list[Any] = []
    final = ModelResponse(id="r3", output_text="done")
    client = ScriptedClient(
        [
            _tool_response("r1", _call("c1", "list_files", "{}")),
            _tool_response("r2", _call("c2", "list_files", "{}")),
            final,
        ]
    )
    loop = ToolCallLoop(client=client, registry=registry, context=tool_context, on_response=seen.append)

    result = loop.run("x")

    assert result.rounds == 2
    assert seen == [final]


def test_decode_arguments():
    assert decode_arguments('{"a": 1}') == {"a": 1}
    assert decode_arguments({"a": 1}) == {"a": 1}
    assert decode_arguments("[1, 2]") == {}
    assert decode_arguments("{oops") == {}
    assert decode_arguments(None) == {}
    assert decode_arguments(42) == {}


def test_loop_uses_given_context_root(registry, tmp_path):
    (tmp_path / "only.txt").write_text("x", encoding="utf-8")
    client = ScriptedClient(
        [_tool_response("r1", _call("c1", "list_files", "{}")), ModelResponse(id="r2", output_text="ok")]
    )

    result = ToolCallLoop(client=client, registry=registry, context=ToolContext(root_path=tmp_path)).run("x")

    assert result.tool_events[0].result.data["files"] == ["only.txt"]
