from __future__ import annotations

import json
from typing import Any

from event_model import ContentBlock


SUMMARY_MAX_CHARS = 160


def compact_json(value: Any) -> str:
    try:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError):
        return str(value)


def _tool_use_text(part: dict[str, Any]) -> str:
    name = part.get("name") if isinstance(part.get("name"), str) else ""
    tool_id = part.get("id") if isinstance(part.get("id"), str) else ""
    text = f"Tool: {name} (ID: {tool_id})"
    if part.get("input") is not None:
        text += f"\nInput: {compact_json(part.get('input'))}"
    return text


def _nested_result_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        parts = [block.text for block in normalize_content(value) if block.text]
        return "\n".join(parts)
    return compact_json(value)


def _tool_result_text(part: dict[str, Any]) -> str:
    tool_id = part.get("tool_use_id") if isinstance(part.get("tool_use_id"), str) else ""
    text = f"Tool Result (ID: {tool_id})"
    if part.get("is_error") is True:
        text += " [error]"
    result = _nested_result_text(part.get("content"))
    if result:
        text += f"\nOutput: {result}"
    return text


def _element_block(part: Any) -> ContentBlock:
    if not isinstance(part, dict):
        return ContentBlock(type="json", text=compact_json(part))

    part_type = part.get("type") if isinstance(part.get("type"), str) else ""
    text = part.get("text")

    if part_type == "text" and isinstance(text, str):
        return ContentBlock(type="text", text=text)
    if part_type == "tool_use":
        return ContentBlock(type="tool_use", text=_tool_use_text(part))
    if part_type == "tool_result":
        return ContentBlock(type="tool_result", text=_tool_result_text(part))
    if part_type == "thinking" and isinstance(part.get("thinking"), str):
        return ContentBlock(type="thinking", text=part["thinking"])
    if part_type and isinstance(text, str):
        return ContentBlock(type=part_type, text=text)
    return ContentBlock(type="json", text=compact_json(part))


def normalize_content(value: Any) -> list[ContentBlock]:
    """Flatten a message ``content`` value into renderable blocks.

    Strings become one ``text`` block, arrays one block per element (tool
    results embed their own content, decoded recursively), and any other value
    is kept as compact JSON for the renderer to pretty-print.
    """
    if value is None:
        return []
    if isinstance(value, str):
        return [ContentBlock(type="text", text=value)]
    if isinstance(value, list):
        return [_element_block(part) for part in value]
    return [ContentBlock(type="json", text=compact_json(value))]


def tool_call_ids(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    ids: list[str] = []
    for part in value:
        if not isinstance(part, dict):
            continue
        for key in ("id", "tool_use_id"):
            candidate = part.get(key)
            if part.get("type") in {"tool_use", "tool_result"} and isinstance(candidate, str) and candidate:
                ids.append(candidate)
                break
    return tuple(ids)


def build_summary_text(blocks: tuple[ContentBlock, ...] | list[ContentBlock]) -> str:
    parts: list[str] = []
    length = 0
    for block in blocks:
        if not block.text:
            continue
        cleaned = block.text.strip()
        parts.append(cleaned)
        length += len(cleaned) + (1 if len(parts) > 1 else 0)
        if length >= SUMMARY_MAX_CHARS:
            break
    return " ".join(parts)
