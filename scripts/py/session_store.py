from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterator

from event_model import SessionError, SessionSummary, duration_seconds
from session_parser import AgentType, SessionParser, parse_agent


SESSION_SUFFIX = ".jsonl"

DEFAULT_SESSION_DIRS = {
    AgentType.CODEX: (".codex", "sessions"),
    AgentType.CLAUDE: (".claude", "projects"),
}


class StoreError(RuntimeError):
    pass


@dataclass
class ListOptions:
    root: str
    cwd: str = ""
    exact_cwd: bool = False
    after: datetime | None = None
    before: datetime | None = None
    limit: int = 0
    max_summary: int = 0


@dataclass
class ListResult:
    summaries: list[SessionSummary] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def default_sessions_dir(agent: AgentType | str) -> Path:
    return Path.home().joinpath(*DEFAULT_SESSION_DIRS[parse_agent(agent)])


def truncate_summary(text: str, max_len: int) -> str:
    if max_len <= 0 or len(text) <= max_len:
        return text
    return text[:max_len] + "…"


def iter_session_files(root: str | Path, warnings: list[str] | None = None) -> Iterator[Path]:
    """Walk ``root`` in name order and yield every ``*.jsonl`` file."""

    def on_error(exc: OSError) -> None:
        if warnings is not None:
            warnings.append(f"walk {exc.filename or root}: {exc.strerror or exc}")

    for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
        dirnames.sort()
        for name in sorted(filenames):
            if name.endswith(SESSION_SUFFIX):
                yield Path(dirpath) / name


def _cwd_matches(cwd: str, opts: ListOptions) -> bool:
    if not opts.cwd:
        return True
    if opts.exact_cwd:
        return cwd == opts.cwd
    return cwd.startswith(opts.cwd)


def _sort_key(summary: SessionSummary) -> float:
    return summary.started_at.timestamp()


def list_sessions(parser: SessionParser, opts: ListOptions) -> ListResult:
    if not opts.root:
        raise StoreError("root directory is required")

    result = ListResult()
    for path in iter_session_files(opts.root, result.warnings):
        try:
            meta = parser.read_session_meta(path)
        except SessionError as exc:
            result.warnings.append(f"parse meta {path}: {exc}")
            continue

        if not _cwd_matches(meta.cwd, opts):
            continue
        if opts.after is not None and meta.started_at < opts.after:
            continue
        if opts.before is not None and meta.started_at > opts.before:
            continue

        try:
            digest = parser.first_user_summary(path)
        except SessionError as exc:
            result.warnings.append(f"extract summary {path}: {exc}")
            continue

        last = digest.last_timestamp
        if last is None or last < meta.started_at:
            last = meta.started_at

        result.summaries.append(
            SessionSummary(
                id=meta.id,
                path=str(path),
                cwd=meta.cwd,
                started_at=meta.started_at,
                summary=truncate_summary(digest.summary, opts.max_summary),
                message_count=digest.message_count,
                duration_seconds=duration_seconds(meta.started_at, last),
                originator=meta.originator,
                cli_version=meta.cli_version,
                version=meta.version,
            )
        )

    result.summaries.sort(key=_sort_key, reverse=True)
    if opts.limit > 0:
        del result.summaries[opts.limit:]
    return result


def find_session_path(parser: SessionParser, root: str | Path, session_id: str) -> Path:
    """Locate a session by id.

    An exact id match ends the walk. Otherwise a single session whose id or
    file name starts with ``session_id`` is accepted; several are an error.
    """
    if not str(root):
        raise StoreError("root directory is required")
    if not session_id:
        raise StoreError("session id is required")

    prefixed: list[Path] = []
    for path in iter_session_files(root):
        try:
            meta = parser.read_session_meta(path)
        except SessionError:
            continue
        if meta.id == session_id:
            return path
        if meta.id.startswith(session_id) or path.stem.startswith(session_id):
            prefixed.append(path)

    if len(prefixed) == 1:
        return prefixed[0]
    if prefixed:
        raise StoreError(f"session id {session_id} is ambiguous: {len(prefixed)} sessions match under {root}")
    raise StoreError(f"session id {session_id} not found under {root}")


def resolve_session_path(parser: SessionParser, arg: str, root: str | Path) -> Path:
    if not arg:
        raise StoreError("session identifier is empty")

    direct = Path(arg).expanduser()
    if direct.is_file():
        return direct

    candidate = Path(root) / arg
    if candidate.is_file():
        return candidate

    return find_session_path(parser, root, arg)
