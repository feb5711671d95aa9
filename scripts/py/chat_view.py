from __future__ import annotations

from datetime import datetime
from typing import Iterable

from event_format import render_event_lines
from event_model import Event
from terminal_text import (
    ANSI_SEPARATOR,
    ANSI_TIMESTAMP,
    colorize,
    role_color,
    title_case,
    truncate_to_width,
    visible_width,
    wrap_lines,
)


DEFAULT_WIDTH = 80
BUBBLE_PADDING = 2
NO_CONTENT = "(no content)"
TAB_SIZE = 4

ALIGN_LEFT = "left"
ALIGN_CENTER = "center"
ALIGN_RIGHT = "right"

_KIND_LABELS = {"event_msg", "turn_context", "response_item"}
_LEFT_KINDS = {"session_meta", "event_msg", "turn_context"}


def available_content_width(total_width: int, padding: int = BUBBLE_PADDING) -> int:
    width = total_width - padding * 2 - 10
    if width < 20:
        width = total_width - 12 if total_width > 30 else total_width - 8
        width = max(width, 8)
    return width


def role_label(event: Event) -> str:
    if event.role:
        if event.payload_type:
            return f"{event.role}: {event.payload_type}"
        return event.role
    if event.kind:
        if event.kind in _KIND_LABELS and event.payload_type:
            return f"{event.kind}: {event.payload_type}"
        return event.kind
    return event.payload_type or "event"


def raw_role(event: Event) -> str:
    return event.role or event.kind or event.payload_type or "event"


def alignment_for_role(role: str) -> str:
    if role in _LEFT_KINDS:
        return ALIGN_LEFT
    if role == "user":
        return ALIGN_RIGHT
    if role in {"tool", "system"}:
        return ALIGN_CENTER
    return ALIGN_LEFT


def compute_left_pad(total_width: int, bubble_width: int, padding: int, align: str) -> int:
    max_pad = max(total_width - bubble_width - 4, 0)
    if align == ALIGN_RIGHT:
        return max_pad
    if align == ALIGN_CENTER:
        return min(max(max_pad // 2, padding), max_pad)
    return min(padding, max_pad)


def chat_header(role: str, ts: datetime | None) -> tuple[str, str, str]:
    label = title_case(role) or "Event"
    time_text = ts.strftime("%b %d %H:%M") if ts is not None else "-"
    return f"{label} · {time_text}", label, time_text


def _body_line(line: str, bubble_width: int, left_pad: int, use_color: bool) -> str:
    if visible_width(line) > bubble_width:
        line = truncate_to_width(line, bubble_width)
    fill = " " * max(bubble_width - visible_width(line), 0)
    border = colorize(ANSI_SEPARATOR, "│", use_color)
    return f"{' ' * left_pad}{border} {line}{fill} {border}"


def render_chat_bubble(event: Event, total_width: int, padding: int = BUBBLE_PADDING, use_color: bool = False) -> list[str]:
    body = [line.expandtabs(TAB_SIZE) for line in render_event_lines(event, 0)] or [NO_CONTENT]
    content_width = available_content_width(total_width, padding)

    header, label, time_text = chat_header(role_label(event).lower(), event.timestamp)
    content = wrap_lines([header] + body, content_width)
    bubble_width = min(max(visible_width(line) for line in content), content_width)

    role = raw_role(event)
    left_pad = compute_left_pad(total_width, bubble_width, padding, alignment_for_role(role))

    if use_color:
        colored = f"{colorize(role_color(role), label)} · {colorize(ANSI_TIMESTAMP, time_text)}"
        content[0] = content[0].replace(header, colored, 1)

    margin = " " * left_pad
    rule = "─" * (bubble_width + 2)
    lines = [f"{margin}╭{rule}╮"]
    lines.extend(_body_line(line, bubble_width, left_pad, use_color) for line in content)
    lines.append(f"{margin}╰{rule}╯")
    return lines


def render_chat_transcript(events: Iterable[Event], width: int, use_color: bool = False) -> list[str]:
    if width <= 0:
        width = DEFAULT_WIDTH
    lines: list[str] = []
    for idx, event in enumerate(events):
        if idx > 0:
            lines.append("")
        lines.extend(render_chat_bubble(event, width, BUBBLE_PADDING, use_color))
    return lines
