#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import os
import shlex
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

from config import ConfigError, default_config_path, load_config, resolve_context, write_default_config
from event_filter import FilterError
from event_model import (
    DecodeError,
    SessionError,
    duration_seconds,
    format_duration,
    format_rfc3339,
    parse_timestamp,
)
from list_format import LIST_FORMATS, ListFormatError, write_summaries
from session_parser import AgentType, SessionParser, new_parser
from session_store import ListOptions, StoreError, list_sessions, resolve_session_path
from view_runner import VIEW_FORMATS, ViewError, ViewOptions, check_view_options, run_view


INFO_LABEL_WIDTH = 14
INFO_SUMMARY_CHARS = 160


def die(msg: str, code: int = 1) -> None:
    print(f"Error: {msg}", file=sys.stderr)
    raise SystemExit(code)


def warn(msg: str) -> None:
    print(f"warning: {msg}", file=sys.stderr)


def load_ctx(args: argparse.Namespace) -> tuple[dict[str, Any], dict[str, Any], SessionParser]:
    config, config_path = load_config(args.config)
    ctx = resolve_context(config, args.agent, args.sessions_dir, config_path=config_path)
    return config, ctx, new_parser(ctx["agent"])


def to_env(ctx: dict[str, Any]) -> str:
    plain = {
        "AGENTLOG_AGENT": ctx["agent"],
        "AGENTLOG_SESSIONS_DIR": ctx["sessions_dir"],
        "AGENTLOG_CONFIG": ctx["config_path"],
        "VIEW_FORMAT": str(ctx["view"]["format"]),
        "VIEW_WRAP": str(ctx["view"]["wrap"]),
        "VIEW_MAX_EVENTS": str(ctx["view"]["max_events"]),
        "VIEW_PAGER": str(ctx["view"]["pager"]),
        "LIST_FORMAT": str(ctx["list"]["format"]),
        "LIST_SUMMARY_WIDTH": str(ctx["list"]["summary_width"]),
        "LIST_LIMIT": str(ctx["list"]["limit"]),
    }
    return "\n".join(f"{k}={shlex.quote(v)}" for k, v in plain.items())


def cmd_config(args: argparse.Namespace) -> None:
    if args.init:
        target = Path(args.config).expanduser() if args.config else default_config_path()
        print(write_default_config(target, force=args.force))
        return

    _, ctx, _ = load_ctx(args)
    if args.format == "env":
        print(to_env(ctx))
        return

    print(json.dumps(ctx, ensure_ascii=False, indent=2))


def _parse_bound(value: str | None, flag: str) -> datetime | None:
    if not value:
        return None
    try:
        return parse_timestamp(value)
    except DecodeError as exc:
        die(f"invalid {flag} value: {exc}")


def cmd_list(args: argparse.Namespace) -> None:
    if args.all and args.cwd:
        die("--cwd cannot be used with --all")

    after = _parse_bound(args.after, "--after")
    before = _parse_bound(args.before, "--before")

    _, ctx, parser = load_ctx(args)
    fmt = args.format or ctx["list"]["format"]

    opts = ListOptions(
        root=ctx["sessions_dir"],
        after=after,
        before=before,
        limit=args.limit if args.limit is not None else int(ctx["list"]["limit"]),
        max_summary=args.summary_width if args.summary_width is not None else int(ctx["list"]["summary_width"]),
    )
    if not args.all:
        opts.cwd = args.cwd or os.getcwd()
        opts.exact_cwd = True

    result = list_sessions(parser, opts)
    for message in result.warnings:
        warn(message)

    write_summaries(sys.stdout, result.summaries, include_header=not args.no_header, fmt=fmt)


def cmd_view(args: argparse.Namespace) -> None:
    _, ctx, parser = load_ctx(args)
    fmt = args.format or ctx["view"]["format"]

    opts = ViewOptions(
        path="",
        format=fmt,
        wrap=args.wrap if args.wrap is not None else int(ctx["view"]["wrap"]),
        max_events=args.max if args.max is not None else int(ctx["view"]["max_events"]),
        entry_arg=args.entry_type or "",
        payload_type_arg=args.payload_type or "",
        event_msg_type_arg=args.event_msg_type or "",
        role_arg=args.payload_role or "",
        all_filter=args.all,
        force_color=args.color,
        force_no_color=args.no_color,
        raw_file=args.raw,
        pager=str(ctx["view"]["pager"]),
        out=sys.stdout,
    )
    check_view_options(parser, opts)

    opts.path = str(resolve_session_path(parser, args.session, ctx["sessions_dir"]))
    run_view(parser, opts)


def collapse_whitespace(text: str) -> str:
    return " ".join(text.split())


def clip_summary(text: str, max_len: int) -> str:
    if max_len <= 0:
        return ""
    if len(text) <= max_len:
        return text
    if max_len == 1:
        return "…"
    return text[: max_len - 1] + "…"


def info_payload(parser: SessionParser, path: Path) -> dict[str, Any]:
    meta = parser.read_session_meta(path)
    digest = parser.first_user_summary(path)

    last = digest.last_timestamp
    if last is None or last < meta.started_at:
        last = meta.started_at
    duration = duration_seconds(meta.started_at, last)

    return {
        "session_id": meta.id,
        "jsonl_path": str(path),
        "started_at": format_rfc3339(meta.started_at),
        "cwd": meta.cwd,
        "originator": meta.originator,
        "cli_version": meta.cli_version,
        "version": meta.version,
        "message_count": digest.message_count,
        "duration_seconds": duration,
        "duration_display": format_duration(duration),
        "summary": digest.summary,
    }


def render_info_text(payload: dict[str, Any], summary: str, agent: str) -> str:
    rows = [
        ("Session ID", payload["session_id"]),
        ("Started At", payload["started_at"]),
        ("Duration", payload["duration_display"]),
        ("CWD", payload["cwd"]),
    ]
    if agent == AgentType.CODEX.value:
        rows.append(("Originator", payload["originator"]))
        rows.append(("CLI Version", payload["cli_version"]))
    else:
        rows.append(("Version", payload["version"]))
    rows.extend(
        [
            ("Message Count", str(payload["message_count"])),
            ("JSONL Path", payload["jsonl_path"]),
            ("Summary", summary),
        ]
    )
    return "\n".join(f"{label:<{INFO_LABEL_WIDTH}}: {value}" for label, value in rows)


def cmd_info(args: argparse.Namespace) -> None:
    _, ctx, parser = load_ctx(args)
    path = resolve_session_path(parser, args.session, ctx["sessions_dir"])
    payload = info_payload(parser, path)

    if args.format == "json":
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return

    summary = collapse_whitespace(payload["summary"])
    if args.summary != "full":
        summary = clip_summary(summary, INFO_SUMMARY_CHARS)
    print(render_info_text(payload, summary, ctx["agent"]))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agentlog",
        description="Browse Codex CLI and Claude Code session logs",
    )
    sub = parser.add_subparsers(dest="cmd", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--agent", choices=[a.value for a in AgentType],
                       help="Agent log family (env: AGENTLOG_AGENT)")
        p.add_argument("--sessions-dir", dest="sessions_dir",
                       help="Sessions directory override (env: AGENTLOG_SESSIONS_DIR)")
        p.add_argument("--config", help="Config path override (env: AGENTLOG_CONFIG)")

    p_list = sub.add_parser("list", help="List sessions, newest first")
    add_common(p_list)
    p_list.add_argument("--cwd", help="Only sessions whose cwd equals this path")
    p_list.add_argument("--all", action="store_true", help="Sessions from every directory")
    p_list.add_argument("--after", help="Sessions starting on/after this RFC 3339 time")
    p_list.add_argument("--before", help="Sessions starting on/before this RFC 3339 time")
    p_list.add_argument("--limit", type=int)
    p_list.add_argument("--format", type=str.lower, choices=list(LIST_FORMATS))
    p_list.add_argument("--no-header", dest="no_header", action="store_true")
    p_list.add_argument("--summary-width", dest="summary_width", type=int)
    p_list.set_defaults(fn=cmd_list)

    p_view = sub.add_parser("view", help="Render a session transcript")
    add_common(p_view)
    p_view.add_argument("session", help="Session id, id prefix, or JSONL path")
    p_view.add_argument("--format", type=str.lower, choices=list(VIEW_FORMATS))
    p_view.add_argument("-E", "--entry-type", dest="entry_type",
                        help="Comma-separated entry types to include")
    p_view.add_argument("-T", "--payload-type", "--response-type", dest="payload_type",
                        help="Comma-separated payload types (default: message)")
    p_view.add_argument("-M", "--event-msg-type", dest="event_msg_type",
                        help="Comma-separated event_msg types")
    p_view.add_argument("-R", "--payload-role", dest="payload_role",
                        help="Comma-separated roles (default: user,assistant)")
    p_view.add_argument("--all", action="store_true", help="Show every entry")
    p_view.add_argument("--raw", action="store_true", help="Copy the JSONL file unchanged")
    p_view.add_argument("--wrap", type=int)
    p_view.add_argument("--max", type=int, help="Only the most recent N events")
    p_view.add_argument("--color", action="store_true")
    p_view.add_argument("--no-color", dest="no_color", action="store_true")
    p_view.set_defaults(fn=cmd_view)

    p_info = sub.add_parser("info", help="Show session metadata")
    add_common(p_info)
    p_info.add_argument("session", help="Session id, id prefix, or JSONL path")
    p_info.add_argument("--format", type=str.lower, choices=["text", "json"], default="text")
    p_info.add_argument("--summary", type=str.lower, choices=["clip", "full"], default="clip")
    p_info.set_defaults(fn=cmd_info)

    p_config = sub.add_parser("config", help="Show or create the configuration")
    add_common(p_config)
    p_config.add_argument("--format", choices=["json", "env"], default="json")
    p_config.add_argument("--init", action="store_true", help="Write a default config file")
    p_config.add_argument("--force", action="store_true", help="Overwrite with --init")
    p_config.set_defaults(fn=cmd_config)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        args.fn(args)
    except (ConfigError, SessionError, FilterError, ViewError, StoreError, ListFormatError) as exc:
        die(str(exc))


if __name__ == "__main__":
    main()
