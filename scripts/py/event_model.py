from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any


ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
ROLE_TOOL = "tool"
ROLE_SYSTEM = "system"
KNOWN_ROLES = {ROLE_USER, ROLE_ASSISTANT, ROLE_TOOL, ROLE_SYSTEM}

_TIMESTAMP_RE = re.compile(
    r"^(?P<head>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<frac>\d+))?"
    r"(?P<tz>Z|[+-]\d{2}:\d{2})$"
)


class SessionError(RuntimeError):
    pass


class DecodeError(SessionError):
    pass


class SessionMetaNotFound(SessionError):
    pass


@dataclass(frozen=True)
class ContentBlock:
    type: str
    text: str


@dataclass(frozen=True)
class TokenUsage:
    input_tokens: int = 0
    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0
    output_tokens: int = 0
    service_tier: str = ""


@dataclass(frozen=True)
class Event:
    """One decoded log line.

    ``timestamp`` is None when the record carries none; ``raw`` always holds
    the line as it was read.
    """

    timestamp: datetime | None
    kind: str
    role: str = ""
    payload_type: str = ""
    content: tuple[ContentBlock, ...] = ()
    raw: str = ""
    message_id: str = ""
    request_id: str = ""
    model: str = ""
    usage: TokenUsage | None = None
    uuid: str = ""
    parent_uuid: str = ""
    session_id: str = ""
    cwd: str = ""
    version: str = ""
    summary_text: str = ""
    leaf_uuid: str = ""
    tool_call_ids: tuple[str, ...] = ()

    @property
    def display_role(self) -> str:
        return self.role or self.kind


@dataclass
class SessionMeta:
    id: str
    path: str
    cwd: str
    started_at: datetime
    originator: str = ""
    cli_version: str = ""
    version: str = ""


@dataclass
class SessionDigest:
    summary: str
    message_count: int
    last_timestamp: datetime | None


@dataclass
class SessionSummary:
    id: str
    path: str
    cwd: str
    started_at: datetime
    summary: str
    message_count: int
    duration_seconds: int
    originator: str = ""
    cli_version: str = ""
    version: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "path": self.path,
            "cwd": self.cwd,
            "started_at": format_rfc3339(self.started_at),
            "summary": self.summary,
            "message_count": self.message_count,
            "duration_seconds": self.duration_seconds,
            "originator": self.originator,
            "cli_version": self.cli_version,
            "version": self.version,
        }


def _parse_with_profile(value: str, fractional: bool) -> datetime | None:
    match = _TIMESTAMP_RE.match(value)
    if not match:
        return None
    frac = match.group("frac")
    if fractional != (frac is not None):
        return None

    head = match.group("head")
    tz = match.group("tz")
    try:
        if fractional:
            micros = (frac or "")[:6].ljust(6, "0")
            return datetime.strptime(f"{head}.{micros}{tz}", "%Y-%m-%dT%H:%M:%S.%f%z")
        return datetime.strptime(f"{head}{tz}", "%Y-%m-%dT%H:%M:%S%z")
    except ValueError:
        return None


def parse_timestamp(value: str) -> datetime:
    if not value:
        raise DecodeError("missing timestamp")

    for fractional in (True, False):
        parsed = _parse_with_profile(value, fractional)
        if parsed is not None:
            return parsed
    raise DecodeError(f"parse timestamp {value!r}: not RFC 3339")


def format_rfc3339(ts: datetime | None) -> str:
    if ts is None:
        return "-"
    offset = ts.utcoffset()
    base = ts.strftime("%Y-%m-%dT%H:%M:%S")
    if offset is None or not offset:
        return f"{base}Z"
    return base + ts.strftime("%z")[:3] + ":" + ts.strftime("%z")[3:]


def duration_seconds(start: datetime | None, end: datetime | None) -> int:
    if start is None or end is None:
        return 0
    if end < start:
        return 0
    return int((end - start).total_seconds())


def format_duration(seconds: int) -> str:
    if seconds <= 0:
        return "00:00:00"
    h = seconds // 3600
    m = (seconds % 3600) // 60
    s = seconds % 60
    return f"{h:02d}:{m:02d}:{s:02d}"
