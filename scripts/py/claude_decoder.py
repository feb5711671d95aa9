from __future__ import annotations

import json
from typing import Any

from content_blocks import compact_json, normalize_content, tool_call_ids
from event_model import ContentBlock, DecodeError, Event, TokenUsage, parse_timestamp


ENTRY_USER = "user"
ENTRY_ASSISTANT = "assistant"
ENTRY_SUMMARY = "summary"
ENTRY_KINDS = (ENTRY_USER, ENTRY_ASSISTANT, ENTRY_SUMMARY)
MESSAGE_KINDS = {ENTRY_USER, ENTRY_ASSISTANT}

PAYLOAD_MESSAGE = "message"
PAYLOAD_SUMMARY = "summary"

_ENVELOPE_FIELDS = (
    "type",
    "uuid",
    "parentUuid",
    "sessionId",
    "cwd",
    "version",
    "timestamp",
    "requestId",
    "summary",
    "leafUuid",
)


def _str_value(node: dict[str, Any], key: str, what: str) -> str:
    value = node.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise DecodeError(f"unmarshal {what}: field {key!r} must be a string")
    return value


def _int_value(node: dict[str, Any], key: str) -> int:
    value = node.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return value


def _usage(node: Any) -> TokenUsage | None:
    if not isinstance(node, dict):
        return None
    tier = node.get("service_tier")
    return TokenUsage(
        input_tokens=_int_value(node, "input_tokens"),
        cache_creation_input_tokens=_int_value(node, "cache_creation_input_tokens"),
        cache_read_input_tokens=_int_value(node, "cache_read_input_tokens"),
        output_tokens=_int_value(node, "output_tokens"),
        service_tier=tier if isinstance(tier, str) else "",
    )


def _load_entry(raw: bytes | str) -> dict[str, Any]:
    try:
        entry = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise DecodeError(f"unmarshal entry: {exc}") from exc
    if not isinstance(entry, dict):
        raise DecodeError("unmarshal entry: expected a JSON object")
    return entry


def decode_line(raw: bytes | str) -> Event:
    entry = _load_entry(raw)
    fields = {key: _str_value(entry, key, "entry") for key in _ENVELOPE_FIELDS}

    kind = fields["type"]
    timestamp = parse_timestamp(fields["timestamp"]) if fields["timestamp"] else None
    base: dict[str, Any] = {
        "timestamp": timestamp,
        "kind": kind,
        "raw": raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw,
        "uuid": fields["uuid"],
        "parent_uuid": fields["parentUuid"],
        "session_id": fields["sessionId"],
        "cwd": fields["cwd"],
        "version": fields["version"],
        "request_id": fields["requestId"],
    }

    if kind in MESSAGE_KINDS:
        message = entry.get("message")
        if message is None:
            return Event(role=kind, payload_type=PAYLOAD_MESSAGE, **base)
        if not isinstance(message, dict):
            raise DecodeError("unmarshal message: expected a JSON object")
        content = message.get("content")
        return Event(
            role=_str_value(message, "role", "message") or kind,
            payload_type=PAYLOAD_MESSAGE,
            content=tuple(normalize_content(content)),
            message_id=_str_value(message, "id", "message"),
            model=_str_value(message, "model", "message"),
            usage=_usage(message.get("usage")),
            tool_call_ids=tool_call_ids(content),
            **base,
        )

    if kind == ENTRY_SUMMARY:
        summary = fields["summary"]
        content = (ContentBlock(type="text", text=summary),) if summary else ()
        return Event(
            payload_type=PAYLOAD_SUMMARY,
            content=content,
            summary_text=summary,
            leaf_uuid=fields["leafUuid"],
            **base,
        )

    return Event(content=(ContentBlock(type="json", text=compact_json(entry)),), **base)
