from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Iterator, Protocol

import claude_decoder
import codex_decoder
from content_blocks import build_summary_text
from event_model import (
    ROLE_USER,
    DecodeError,
    Event,
    SessionDigest,
    SessionError,
    SessionMeta,
    SessionMetaNotFound,
)


MAX_LINE_BYTES = 8 * 1024 * 1024


class AgentType(str, Enum):
    CODEX = "codex"
    CLAUDE = "claude"


def parse_agent(value: AgentType | str) -> AgentType:
    if isinstance(value, AgentType):
        return value
    try:
        return AgentType(str(value).strip().lower())
    except ValueError:
        raise SessionError(f"unknown agent type: {value}") from None


def _scan_lines(handle: BinaryIO) -> Iterator[tuple[int, bytes]]:
    line_no = 0
    while True:
        chunk = handle.readline(MAX_LINE_BYTES + 1)
        if not chunk:
            return
        line_no += 1
        if len(chunk) > MAX_LINE_BYTES and not chunk.endswith(b"\n"):
            raise SessionError(f"scan session: line {line_no} exceeds {MAX_LINE_BYTES} bytes")
        line = chunk.rstrip(b"\r\n")
        if not line.strip():
            continue
        yield line_no, line


@contextmanager
def open_lines(path: str | Path) -> Iterator[Iterator[tuple[int, bytes]]]:
    """Yield ``(line_number, raw_line)`` pairs for the non-blank lines of ``path``."""
    try:
        handle = open(path, "rb")
    except OSError as exc:
        raise SessionError(f"open session file: {exc}") from exc
    with handle:
        yield _scan_lines(handle)


def _latest(current: datetime | None, candidate: datetime | None) -> datetime | None:
    if candidate is None:
        return current
    if current is None or candidate > current:
        return candidate
    return current


class SessionParser(Protocol):
    agent: AgentType

    def read_session_meta(self, path: str | Path) -> SessionMeta:
        ...

    def first_user_summary(self, path: str | Path) -> SessionDigest:
        ...

    def iterate_events(self, path: str | Path) -> Iterator[Event]:
        ...


class CodexSessionParser:
    """Codex CLI rollouts: any undecodable line aborts the whole file."""

    agent = AgentType.CODEX
    message_kinds = frozenset({codex_decoder.ENTRY_RESPONSE_ITEM})

    def read_session_meta(self, path: str | Path) -> SessionMeta:
        with open_lines(path) as lines:
            for line_no, raw in lines:
                try:
                    meta = codex_decoder.try_parse_meta(raw)
                except DecodeError as exc:
                    raise DecodeError(f"parse session_meta: line {line_no}: {exc}") from exc
                if meta is not None:
                    meta.path = str(path)
                    return meta
        raise SessionMetaNotFound("session metadata not found")

    def first_user_summary(self, path: str | Path) -> SessionDigest:
        summary = ""
        count = 0
        last: datetime | None = None
        for event in self.iterate_events(path):
            last = _latest(last, event.timestamp)
            if event.kind not in self.message_kinds:
                continue
            count += 1
            if not summary and event.role == ROLE_USER:
                summary = build_summary_text(event.content)
        return SessionDigest(summary=summary, message_count=count, last_timestamp=last)

    def iterate_events(self, path: str | Path) -> Iterator[Event]:
        with open_lines(path) as lines:
            for line_no, raw in lines:
                try:
                    event = codex_decoder.decode_line(raw)
                except DecodeError as exc:
                    raise DecodeError(f"line {line_no}: {exc}") from exc
                yield event


class ClaudeSessionParser:
    """Claude Code transcripts: malformed lines are skipped."""

    agent = AgentType.CLAUDE
    message_kinds = frozenset({claude_decoder.ENTRY_USER, claude_decoder.ENTRY_ASSISTANT})

    def read_session_meta(self, path: str | Path) -> SessionMeta:
        for event in self.iterate_events(path):
            if event.timestamp is None:
                continue
            return SessionMeta(
                id=event.session_id or Path(path).stem,
                path=str(path),
                cwd=event.cwd,
                started_at=event.timestamp,
                version=event.version,
            )
        raise SessionMetaNotFound("session metadata not found")

    def first_user_summary(self, path: str | Path) -> SessionDigest:
        summary = ""
        count = 0
        last: datetime | None = None
        for event in self.iterate_events(path):
            last = _latest(last, event.timestamp)
            if event.kind in self.message_kinds:
                count += 1
                if not summary and event.kind == claude_decoder.ENTRY_USER:
                    summary = build_summary_text(event.content)
            elif not summary and event.kind == claude_decoder.ENTRY_SUMMARY and event.summary_text:
                summary = event.summary_text
        return SessionDigest(summary=summary, message_count=count, last_timestamp=last)

    def iterate_events(self, path: str | Path) -> Iterator[Event]:
        with open_lines(path) as lines:
            for _, raw in lines:
                try:
                    event = claude_decoder.decode_line(raw)
                except DecodeError:
                    continue
                yield event


_PARSERS: dict[AgentType, type] = {
    AgentType.CODEX: CodexSessionParser,
    AgentType.CLAUDE: ClaudeSessionParser,
}


def new_parser(agent: AgentType | str) -> SessionParser:
    return _PARSERS[parse_agent(agent)]()
