from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage
from langchain_core.outputs import ChatGeneration, ChatResult
from pydantic import Field

from config import AppConfig, RuntimeConfig, SecretConfig
from graph.callbacks import AuditCallbackHandler
from graph.chat_client import ChatModelResponseClient, ConversationCache
from graph.models import ModelResponse
from graph.provider import GenerateOptions, GenerationProvider, build_chat_model
from graph.tool_loop import ToolCallLoop


class FakeChatModel(BaseChatModel):
    replies: list[AIMessage]
    seen: list[list[BaseMessage]] = Field(default_factory=list)
    bindings: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def _llm_type(self) -> str:
        return "fake-chat"

    def _generate(self, messages, stop=None, run_manager=None, **kwargs) -> ChatResult:
        self.seen.append(list(messages))
        reply = self.replies[min(len(self.seen), len(self.replies)) - 1]
        return ChatResult(generations=[ChatGeneration(message=reply)])

    def bind_tools(self, tools, **kwargs):
        self.bindings.append({"tools": tools, **kwargs})
        return self


def _tool_reply(name: str, args: dict[str, Any], call_id: str = "call_1") -> AIMessage:
    return AIMessage(content="", tool_calls=[{"name": name, "args": args, "id": call_id}])


def test_text_reply_is_mapped_to_response():
    model = FakeChatModel(replies=[AIMessage(content="hello there")])
    client = ChatModelResponseClient(model)

    response = client.create(input="hi", instructions="be brief")

    assert response.output_text == "hello there"
    assert response.id is not None and response.id.startswith("resp_")
    assert response.output[0]["type"] == "message"
    assert response.tool_calls() == []
    assert isinstance(model.seen[0][0], SystemMessage)
    assert isinstance(model.seen[0][1], HumanMessage)


def test_tool_calls_are_exposed_as_function_call_items():
    model = FakeChatModel(replies=[_tool_reply("read_file", {"path": "README.md"})])
    response = ChatModelResponseClient(model).create(input="read it", tools=[{"type": "function"}])

    [call] = response.tool_calls()
    assert call.name == "read_file"
    assert call.call_id == "call_1"
    assert json.loads(call.arguments) == {"path": "README.md"}
    assert model.bindings == [{"tools": [{"type": "function"}]}]


def test_invalid_tool_calls_keep_raw_arguments():
    reply = AIMessage(
        content="",
        invalid_tool_calls=[{"name": "search", "args": "{bad", "id": "call_x", "error": "bad json"}],
    )
    response = ChatModelResponseClient(FakeChatModel(replies=[reply])).create(input="x")

    [call] = response.tool_calls()
    assert call.name == "search"
    assert call.arguments == "{bad"


def test_tool_choice_controls_binding():
    model = FakeChatModel(replies=[AIMessage(content="ok")])
    client = ChatModelResponseClient(model)

    client.create(input="x", tools=[{"type": "function"}], tool_choice="none")
    assert model.bindings == []

    client.create(input="x", tools=[{"type": "function"}], tool_choice={"name": "search"})
    assert model.bindings == [{"tools": [{"type": "function"}], "tool_choice": "search"}]


def test_continuation_replays_history_with_tool_outputs():
    model = FakeChatModel(replies=[_tool_reply("list_files", {}), AIMessage(content="two files")])
    client = ChatModelResponseClient(model)

    first = client.create(input="list", instructions="sys")
    second = client.create(
        input=[{"type": "function_call_output", "call_id": "call_1", "output": "{}", "status": "completed"}],
        previous_response_id=first.id,
        instructions="sys",
    )

    assert second.output_text == "two files"
    history = model.seen[1]
    assert [type(message) for message in history] == [SystemMessage, HumanMessage, AIMessage, ToolMessage]
    assert history[3].tool_call_id == "call_1"


def test_unknown_continuation_id_is_rejected():
    client = ChatModelResponseClient(FakeChatModel(replies=[AIMessage(content="x")]))

    with pytest.raises(ValueError):
        client.create(input="x", previous_response_id="resp_missing")


def test_conversation_cache_is_bounded_and_invalidatable():
    cache = ConversationCache(max_entries=2)
    cache.put("a", [HumanMessage(content="a")])
    cache.put("b", [HumanMessage(content="b")])
    assert cache.get("a") is not None
    cache.put("c", [HumanMessage(content="c")])

    assert "b" not in cache
    assert "a" in cache and "c" in cache

    cache.invalidate("a")
    assert cache.get("a") is None
    cache.clear()
    assert len(cache) == 0


def test_chat_client_drives_full_tool_loop(registry, tool_context):
    model = FakeChatModel(replies=[_tool_reply("read_file", {"path": "src/util.py"}), AIMessage(content="VALUE = 1")])
    loop = ToolCallLoop(client=ChatModelResponseClient(model), registry=registry, context=tool_context)

    result = loop.run("what is in util?")

    assert result.text == "VALUE = 1"
    tool_message = model.seen[1][-1]
    assert isinstance(tool_message, ToolMessage)
    assert json.loads(tool_message.content)["data"]["content"] == "VALUE = 1"


def test_audit_callback_writes_llm_rows(tmp_path: Path):
    audit_file = tmp_path / "storage" / "llm_audit.jsonl"
    model = FakeChatModel(replies=[AIMessage(content="ok")])
    client = ChatModelResponseClient(model, callbacks=[AuditCallbackHandler(audit_file, run_id="run-1")])

    client.create(input="hi")

    rows = [json.loads(line) for line in audit_file.read_text(encoding="utf-8").splitlines()]
    assert [row["event"] for row in rows] == ["llm_start", "llm_end"]
    assert rows[0]["run_id"] == "run-1"
    assert rows[0]["message_count"] == 1


class _StaticClient:
    def __init__(self) -> None:
        self.requests: list[dict[str, Any]] = []

    def create(self, **kwargs: Any) -> ModelResponse:
        self.requests.append(kwargs)
        return ModelResponse(id="r1", output_text="generated")


def test_provider_generate_uses_options():
    client = _StaticClient()
    provider = GenerationProvider(client=client)

    text = provider.generate(
        "prompt",
        GenerateOptions(tools=[], tool_choice={"name": "search"}, max_tool_calls=1, instructions="sys"),
    )

    assert text == "generated"
    assert client.requests[0]["tool_choice"] == {"name": "search"}
    assert client.requests[0]["instructions"] == "sys"


def test_build_chat_model_from_config(tmp_path: Path):
    secrets = SecretConfig(openai_api_key="sk-test-key-123456", openai_base_url="http://localhost:1/v1", openai_model="gpt-test")
    config = AppConfig(base_dir=tmp_path, runtime=RuntimeConfig(), secrets=secrets)

    model = build_chat_model(config)

    assert model.model_name == "gpt-test"
    assert build_chat_model(config, model="other").model_name == "other"

    config.secrets.openai_api_key = ""
    with pytest.raises(RuntimeError):
        build_chat_model(config)


def test_provider_requires_config_or_client():
    with pytest.raises(ValueError):
        GenerationProvider()
