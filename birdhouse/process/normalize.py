"""
Turn raw command output into answer text.

In json mode the output is searched for the first non-empty value under a
prioritized list of keys; when the whole document is not JSON each line is
tried on its own (newline-delimited JSON).
"""
from __future__ import annotations

import json
from typing import Any, Literal

ParseMode = Literal["text", "json"]

PREFERRED_KEYS = ("text", "message", "output", "response", "result", "completion", "content")
MAX_DEPTH = 32


def extract_text(value: Any) -> str:
    return _extract(value, 0, set())


def _extract(value: Any, depth: int, seen: set[int]) -> str:
    if isinstance(value, str):
        return value
    if depth >= MAX_DEPTH or not isinstance(value, (list, dict)):
        return ""
    if id(value) in seen:
        return ""
    seen = seen | {id(value)}

    if isinstance(value, list):
        parts = [_extract(item, depth + 1, seen) for item in value]
        return "\n".join(p for p in parts if p).strip()

    for key in PREFERRED_KEYS:
        if key in value:
            text = _extract(value[key], depth + 1, seen)
            if text:
                return text

    for nested in value.values():
        text = _extract(nested, depth + 1, seen)
        if text:
            return text
    return ""


def _extract_json_lines(stdout: str) -> str:
    parts: list[str] = []
    for line in stdout.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            parsed = json.loads(line)
        except (json.JSONDecodeError, RecursionError):
            continue
        text = extract_text(parsed).strip()
        if text:
            parts.append(text)
    return "\n".join(parts)


def normalize_cli_output(stdout: str, stderr: str, parse: ParseMode = "text") -> str:
    trimmed = stdout.strip()

    if parse == "json" and trimmed:
        try:
            parsed = json.loads(trimmed)
        except (json.JSONDecodeError, RecursionError):
            text = _extract_json_lines(trimmed)
        else:
            text = extract_text(parsed).strip()
        if text:
            return text

    if trimmed:
        return trimmed
    return stderr.strip()
