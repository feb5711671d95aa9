from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from content_blocks import compact_json, normalize_content
from event_model import ContentBlock, DecodeError, Event, SessionMeta, parse_timestamp


ENTRY_SESSION_META = "session_meta"
ENTRY_RESPONSE_ITEM = "response_item"
ENTRY_EVENT_MSG = "event_msg"
ENTRY_TURN_CONTEXT = "turn_context"
ENTRY_KINDS = (ENTRY_SESSION_META, ENTRY_RESPONSE_ITEM, ENTRY_EVENT_MSG, ENTRY_TURN_CONTEXT)

RESPONSE_ITEM_TYPES = (
    "message",
    "reasoning",
    "function_call",
    "function_call_output",
    "custom_tool_call",
    "custom_tool_call_output",
)
TOOL_CALL_TYPES = {"function_call", "custom_tool_call"}
TOOL_OUTPUT_TYPES = {"function_call_output", "custom_tool_call_output"}

EVENT_MSG_TYPES = ("token_count", "agent_reasoning", "user_message", "agent_message", "turn_aborted")


def _as_object(value: Any, what: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise DecodeError(f"unmarshal {what}: expected object, got {type(value).__name__}")
    return value


def _str_field(node: dict[str, Any], key: str, what: str) -> str:
    value = node.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise DecodeError(f"unmarshal {what}: field {key!r} must be a string")
    return value


def _int_field(node: dict[str, Any], key: str, what: str) -> int:
    value = node.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise DecodeError(f"unmarshal {what}: field {key!r} must be an integer")
    return value


def _text_field(node: dict[str, Any], key: str) -> str:
    # Tool arguments and outputs are usually JSON-encoded strings, but some
    # writers inline the object itself.
    value = node.get(key)
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return compact_json(value)


@dataclass
class SessionMetaPayload:
    id: str
    timestamp: str
    cwd: str
    originator: str
    cli_version: str

    @classmethod
    def from_node(cls, node: Any, what: str = "session_meta payload") -> "SessionMetaPayload":
        obj = _as_object(node, what)
        return cls(
            id=_str_field(obj, "id", what),
            timestamp=_str_field(obj, "timestamp", what),
            cwd=_str_field(obj, "cwd", what),
            originator=_str_field(obj, "originator", what),
            cli_version=_str_field(obj, "cli_version", what),
        )


@dataclass
class ResponseItemPayload:
    type: str
    role: str
    name: str
    arguments: str
    output: str
    call_id: str
    content: Any
    summary: Any

    @classmethod
    def from_node(cls, node: Any) -> "ResponseItemPayload":
        what = "response payload"
        obj = _as_object(node, what)
        arguments = _text_field(obj, "arguments") or _text_field(obj, "input")
        return cls(
            type=_str_field(obj, "type", what),
            role=_str_field(obj, "role", what),
            name=_str_field(obj, "name", what),
            arguments=arguments,
            output=_text_field(obj, "output"),
            call_id=_str_field(obj, "call_id", what),
            content=obj.get("content"),
            summary=obj.get("summary"),
        )


@dataclass
class TokenCounts:
    input_tokens: int = 0
    cached_input_tokens: int = 0
    output_tokens: int = 0
    reasoning_output_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_node(cls, node: Any) -> "TokenCounts":
        what = "token usage"
        obj = _as_object(node, what)
        return cls(
            input_tokens=_int_field(obj, "input_tokens", what),
            cached_input_tokens=_int_field(obj, "cached_input_tokens", what),
            output_tokens=_int_field(obj, "output_tokens", what),
            reasoning_output_tokens=_int_field(obj, "reasoning_output_tokens", what),
            total_tokens=_int_field(obj, "total_tokens", what),
        )


@dataclass
class EventMsgPayload:
    type: str
    content: str
    text: str
    message: str
    total_usage: TokenCounts | None

    @classmethod
    def from_node(cls, node: Any) -> "EventMsgPayload":
        what = "event_msg payload"
        obj = _as_object(node, what)
        info = obj.get("info")
        total_usage = None
        if info is not None:
            total_usage = TokenCounts.from_node(_as_object(info, "token_count info").get("total_token_usage"))
        return cls(
            type=_str_field(obj, "type", what),
            content=_str_field(obj, "content", what),
            text=_str_field(obj, "text", what),
            message=_str_field(obj, "message", what),
            total_usage=total_usage,
        )


@dataclass
class TurnContextPayload:
    turn_id: str
    context: str
    cwd: str
    model: str
    effort: str

    @classmethod
    def from_node(cls, node: Any) -> "TurnContextPayload":
        what = "turn_context payload"
        obj = _as_object(node, what)
        return cls(
            turn_id=_str_field(obj, "turn_id", what),
            context=_str_field(obj, "context", what),
            cwd=_str_field(obj, "cwd", what),
            model=_str_field(obj, "model", what),
            effort=_str_field(obj, "effort", what),
        )


def _load_record(raw: bytes | str) -> dict[str, Any]:
    try:
        record = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise DecodeError(f"unmarshal record: {exc}") from exc
    if not isinstance(record, dict):
        raise DecodeError("unmarshal record: expected a JSON object")
    return record


def _raw_text(raw: bytes | str) -> str:
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="replace")
    return raw


def _response_item_blocks(payload: ResponseItemPayload) -> list[ContentBlock]:
    if payload.type in TOOL_CALL_TYPES:
        if payload.name:
            return [
                ContentBlock(type="function_name", text=payload.name),
                ContentBlock(type="function_arguments", text=payload.arguments),
            ]
        return normalize_content(payload.content)

    if payload.type in TOOL_OUTPUT_TYPES:
        if payload.output:
            return [ContentBlock(type="function_output", text=payload.output)]
        return normalize_content(payload.content)

    blocks = normalize_content(payload.content)
    if not blocks and payload.summary is not None:
        # Encrypted reasoning only carries the summary.
        blocks = normalize_content(payload.summary)
    return blocks


def _token_count_text(usage: TokenCounts | None) -> str:
    if usage is None:
        return "Token usage unavailable"
    text = f"Tokens: {usage.input_tokens} in / {usage.output_tokens} out"
    if usage.cached_input_tokens > 0:
        text += f" ({usage.cached_input_tokens} cached)"
    if usage.reasoning_output_tokens > 0:
        text += f" [{usage.reasoning_output_tokens} reasoning]"
    return text


def _event_msg_blocks(payload: EventMsgPayload, node: Any) -> list[ContentBlock]:
    if payload.type in {"user_message", "agent_message"}:
        text = payload.content or payload.message
        return [ContentBlock(type="text", text=text)] if text else []
    if payload.type == "token_count":
        return [ContentBlock(type="text", text=_token_count_text(payload.total_usage))]
    if payload.type == "agent_reasoning":
        return [ContentBlock(type="text", text=payload.text)] if payload.text else []
    if payload.type == "turn_aborted":
        return [ContentBlock(type="text", text="Turn aborted")]
    return normalize_content(node)


def _turn_context_text(payload: TurnContextPayload) -> str:
    if payload.turn_id and payload.context:
        return f"Turn: {payload.turn_id} - {payload.context}"

    parts: list[str] = []
    if payload.model:
        parts.append(f"Model: {payload.model}")
    if payload.effort:
        parts.append(f"Effort: {payload.effort}")
    if payload.cwd:
        parts.append(f"CWD: {payload.cwd}")
    return ", ".join(parts) if parts else "Turn context"


def _decode_record(record: dict[str, Any], raw: bytes | str) -> Event:
    ts_value = record.get("timestamp")
    if ts_value is not None and not isinstance(ts_value, str):
        raise DecodeError("unmarshal record: field 'timestamp' must be a string")
    kind = record.get("type")
    if kind is not None and not isinstance(kind, str):
        raise DecodeError("unmarshal record: field 'type' must be a string")
    kind = kind or ""

    timestamp = parse_timestamp(ts_value) if ts_value else None
    node = record.get("payload")
    base = {"timestamp": timestamp, "kind": kind, "raw": _raw_text(raw)}

    if kind == ENTRY_SESSION_META:
        meta = SessionMetaPayload.from_node(node)
        return Event(
            payload_type=meta.originator,
            content=(ContentBlock(type="id", text=meta.id),),
            cwd=meta.cwd,
            session_id=meta.id,
            version=meta.cli_version,
            **base,
        )

    if kind == ENTRY_RESPONSE_ITEM:
        item = ResponseItemPayload.from_node(node)
        return Event(
            role=item.role,
            payload_type=item.type,
            content=tuple(_response_item_blocks(item)),
            tool_call_ids=(item.call_id,) if item.call_id else (),
            **base,
        )

    if kind == ENTRY_EVENT_MSG:
        msg = EventMsgPayload.from_node(node)
        return Event(payload_type=msg.type, content=tuple(_event_msg_blocks(msg, node)), **base)

    if kind == ENTRY_TURN_CONTEXT:
        turn = TurnContextPayload.from_node(node)
        return Event(
            payload_type=ENTRY_TURN_CONTEXT,
            content=(ContentBlock(type="text", text=_turn_context_text(turn)),),
            cwd=turn.cwd,
            model=turn.model,
            **base,
        )

    return Event(content=tuple(normalize_content(node)), **base)


def decode_line(raw: bytes | str) -> Event:
    return _decode_record(_load_record(raw), raw)


def try_parse_meta(raw: bytes | str) -> SessionMeta | None:
    """Return session metadata if ``raw`` is a metadata record.

    Records without the ``session_meta`` discriminator are checked for the
    legacy top-level shape before giving up.
    """
    record = _load_record(raw)
    event = _decode_record(record, raw)

    if event.kind != ENTRY_SESSION_META:
        try:
            legacy = SessionMetaPayload.from_node(record, what="legacy meta")
        except DecodeError:
            return None
        if not legacy.id:
            return None
        if legacy.timestamp or event.timestamp is None:
            started_at = parse_timestamp(legacy.timestamp)
        else:
            started_at = event.timestamp
        return SessionMeta(
            id=legacy.id,
            path="",
            cwd=legacy.cwd,
            started_at=started_at,
            originator=legacy.originator,
            cli_version=legacy.cli_version,
        )

    payload = SessionMetaPayload.from_node(record.get("payload"))
    ts_value = payload.timestamp or str(record.get("timestamp") or "")
    return SessionMeta(
        id=payload.id,
        path="",
        cwd=payload.cwd,
        started_at=parse_timestamp(ts_value),
        originator=payload.originator,
        cli_version=payload.cli_version,
    )
