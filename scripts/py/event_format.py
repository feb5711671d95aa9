from __future__ import annotations

import json
from typing import Iterable

from event_model import ContentBlock, Event
from terminal_text import wrap_text


TEXT_BLOCK_TYPES = {"input_text", "output_text", "text", "summary_text"}


def format_json(raw: str) -> str:
    if not raw:
        return raw
    try:
        value = json.loads(raw)
    except ValueError:
        return raw
    return json.dumps(value, ensure_ascii=False, indent=2)


def wrap_body(text: str, width: int) -> str:
    if width <= 0:
        return text
    lines: list[str] = []
    for line in text.split("\n"):
        lines.extend(wrap_text(line, width))
    return "\n".join(lines)


def _labelled_json(label: str, text: str) -> str:
    formatted = format_json(text)
    if formatted == text:
        return f"{label}: {text}"
    return f"{label}:\n{formatted}"


def render_block(block: ContentBlock, wrap_width: int = 0) -> str:
    if block.type in TEXT_BLOCK_TYPES:
        return wrap_body(block.text.strip(), wrap_width)
    if block.type == "json":
        return format_json(block.text)
    if block.type == "function_name":
        return f"Function: {block.text}"
    if block.type == "function_arguments":
        return _labelled_json("Arguments", block.text)
    if block.type == "function_output":
        return _labelled_json("Output", block.text)
    return f"[{block.type}] " + wrap_body(block.text.strip(), wrap_width)


def render_blocks(blocks: Iterable[ContentBlock], wrap_width: int = 0) -> str:
    return "\n".join(render_block(block, wrap_width) for block in blocks)


def render_event_lines(event: Event, wrap_width: int = 0) -> list[str]:
    """Body lines of ``event``; empty when it has nothing to show."""
    body = render_blocks(event.content, wrap_width)
    if not body:
        return []
    return body.split("\n")
