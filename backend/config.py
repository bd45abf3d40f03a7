from __future__ import annotations

import hashlib
import json
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from dotenv import load_dotenv


class ToolChoice(str, Enum):
    AUTO = "auto"
    NONE = "none"


@dataclass
class ToolLimits:
    read_file_chars: int = 100000
    search_max_results: int = 50
    list_max_results: int = 1000


@dataclass
class ToolLoopConfig:
    max_tool_calls: int = 3
    tool_choice: ToolChoice = ToolChoice.AUTO


@dataclass
class LlmRuntimeConfig:
    temperature: float = 0.2
    timeout_seconds: int = 60


@dataclass
class AuditConfig:
    enabled: bool = True
    file: str = ".tool-audit/tool_audit.jsonl"


@dataclass
class RuntimeConfig:
    tool_limits: ToolLimits = field(default_factory=ToolLimits)
    tool_loop: ToolLoopConfig = field(default_factory=ToolLoopConfig)
    llm_runtime: LlmRuntimeConfig = field(default_factory=LlmRuntimeConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)


@dataclass
class SecretConfig:
    openai_api_key: str
    openai_base_url: str
    openai_model: str


@dataclass
class AppConfig:
    base_dir: Path
    runtime: RuntimeConfig
    secrets: SecretConfig

    def audit_path(self) -> Path | None:
        if not self.runtime.audit.enabled:
            return None
        return self.base_dir / self.runtime.audit.file


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _runtime_to_payload(runtime: RuntimeConfig) -> dict[str, Any]:
    return {
        "tool_limits": {
            "read_file_chars": runtime.tool_limits.read_file_chars,
            "search_max_results": runtime.tool_limits.search_max_results,
            "list_max_results": runtime.tool_limits.list_max_results,
        },
        "tool_loop": {
            "max_tool_calls": runtime.tool_loop.max_tool_calls,
            "tool_choice": runtime.tool_loop.tool_choice.value,
        },
        "llm_runtime": {
            "temperature": runtime.llm_runtime.temperature,
            "timeout_seconds": runtime.llm_runtime.timeout_seconds,
        },
        "audit": {
            "enabled": runtime.audit.enabled,
            "file": runtime.audit.file,
        },
    }


def _runtime_from_payload(payload: dict[str, Any]) -> RuntimeConfig:
    tool_limits = payload.get("tool_limits", {})
    tool_loop = payload.get("tool_loop", {})
    llm_runtime = payload.get("llm_runtime", {})
    audit = payload.get("audit", {})

    choice_value = tool_loop.get("tool_choice", ToolChoice.AUTO.value)
    try:
        tool_choice = ToolChoice(choice_value)
    except ValueError:
        tool_choice = ToolChoice.AUTO

    return RuntimeConfig(
        tool_limits=ToolLimits(
            read_file_chars=max(1, int(tool_limits.get("read_file_chars", 100000))),
            search_max_results=max(1, int(tool_limits.get("search_max_results", 50))),
            list_max_results=max(1, int(tool_limits.get("list_max_results", 1000))),
        ),
        tool_loop=ToolLoopConfig(
            max_tool_calls=max(0, int(tool_loop.get("max_tool_calls", 3))),
            tool_choice=tool_choice,
        ),
        llm_runtime=LlmRuntimeConfig(
            temperature=float(llm_runtime.get("temperature", 0.2)),
            timeout_seconds=max(5, int(llm_runtime.get("timeout_seconds", 60))),
        ),
        audit=AuditConfig(
            enabled=bool(audit.get("enabled", True)),
            file=str(audit.get("file", ".tool-audit/tool_audit.jsonl")),
        ),
    )


def load_runtime_config(config_path: Path) -> RuntimeConfig:
    if not config_path.exists():
        return RuntimeConfig()
    payload: dict[str, Any] = json.loads(config_path.read_text(encoding="utf-8"))
    return _runtime_from_payload(payload)


def merge_runtime_payload(runtime: RuntimeConfig, override: dict[str, Any]) -> RuntimeConfig:
    return _runtime_from_payload(_deep_merge(_runtime_to_payload(runtime), override))


def runtime_config_digest(runtime: RuntimeConfig) -> str:
    payload = _runtime_to_payload(runtime)
    encoded = json.dumps(payload, sort_keys=True, ensure_ascii=True).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


def _load_secrets() -> SecretConfig:
    return SecretConfig(
        openai_api_key=os.getenv("OPENAI_API_KEY", ""),
        openai_base_url=os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1"),
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
    )


def validate_required_secrets(secrets: SecretConfig) -> list[str]:
    missing: list[str] = []
    if not secrets.openai_api_key:
        missing.append("OPENAI_API_KEY")
    return missing


def load_config(base_dir: Path) -> AppConfig:
    load_dotenv(dotenv_path=base_dir / ".env", override=False)
    runtime = load_runtime_config(base_dir / "config.json")
    secrets = _load_secrets()
    return AppConfig(base_dir=base_dir, runtime=runtime, secrets=secrets)


def save_runtime_config(base_dir: Path, runtime: RuntimeConfig) -> None:
    config_path = base_dir / "config.json"
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(
        json.dumps(_runtime_to_payload(runtime), indent=2) + "\n",
        encoding="utf-8",
    )
