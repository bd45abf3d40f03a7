from __future__ import annotations

import json
import re
from typing import Any


_PATTERNS = [
    re.compile(r"\bsk-[A-Za-z0-9_-]{8,}\b"),
    re.compile(
        r"\b(?:api[_-]?key|token|authorization)\s*[:=]\s*['\"]?([A-Za-z0-9._-]{8,})['\"]?",
        re.I,
    ),
    re.compile(r"\bBearer\s+[A-Za-z0-9._-]{8,}\b", re.I),
]

_SECRET_KEY_FLAGS = ("api_key", "apikey", "token", "secret", "authorization", "password")

# File bodies and diffs can be large; audit rows keep a prefix only.
DEFAULT_MAX_STRING_CHARS = 2000


def redact_text(value: str) -> str:
    redacted = value
    for pattern in _PATTERNS:
        redacted = pattern.sub("[REDACTED]", redacted)
    return redacted


def clip_text(value: str, limit: int = DEFAULT_MAX_STRING_CHARS) -> str:
    if len(value) <= limit:
        return value
    return value[:limit] + f"...[{len(value) - limit} chars clipped]"


def redact_value(value: Any, *, max_string_chars: int = DEFAULT_MAX_STRING_CHARS) -> Any:
    if isinstance(value, str):
        return clip_text(redact_text(value), max_string_chars)
    if isinstance(value, dict):
        output: dict[str, Any] = {}
        for key, item in value.items():
            lowered = str(key).lower()
            if any(flag in lowered for flag in _SECRET_KEY_FLAGS):
                output[str(key)] = "[REDACTED]"
            else:
                output[str(key)] = redact_value(item, max_string_chars=max_string_chars)
        return output
    if isinstance(value, (list, tuple)):
        return [redact_value(item, max_string_chars=max_string_chars) for item in value]
    return value


def redact_json_line(payload: dict[str, Any]) -> str:
    return json.dumps(redact_value(payload), ensure_ascii=False, default=str)
