from __future__ import annotations

import codecs
import os
import shutil
import subprocess
import sys
import threading
from dataclasses import dataclass
from typing import Iterable, Iterator, TextIO

from chat_view import render_chat_transcript
from event_filter import ViewFilters, build_view_filters, event_matches
from event_format import render_event_lines
from event_model import Event, format_rfc3339
from event_window import EventRing
from session_parser import SessionParser
from terminal_text import (
    ANSI_BOLD_WHITE,
    ANSI_SEPARATOR,
    ANSI_TIMESTAMP,
    colorize,
    role_color,
)


FORMAT_TEXT = "text"
FORMAT_CHAT = "chat"
FORMAT_RAW = "raw"
VIEW_FORMATS = (FORMAT_TEXT, FORMAT_CHAT, FORMAT_RAW)
DEFAULT_WIDTH = 80


class ViewError(RuntimeError):
    pass


@dataclass
class ViewOptions:
    path: str
    format: str = FORMAT_TEXT
    wrap: int = 0
    max_events: int = 0
    entry_arg: str = ""
    payload_type_arg: str = ""
    event_msg_type_arg: str = ""
    role_arg: str = ""
    all_filter: bool = False
    force_color: bool = False
    force_no_color: bool = False
    raw_file: bool = False
    pager: str = ""
    out: TextIO | None = None


def _is_tty(out: TextIO) -> bool:
    isatty = getattr(out, "isatty", None)
    if isatty is None:
        return False
    try:
        return bool(isatty())
    except ValueError:
        return False


def resolve_color_choice(force_color: bool, force_no_color: bool, out: TextIO) -> bool:
    if force_color and force_no_color:
        raise ViewError("--color and --no-color cannot be used together")
    if force_color:
        return True
    if force_no_color:
        return False
    if os.environ.get("NO_COLOR", ""):
        return False
    return _is_tty(out)


def determine_width(out: TextIO, wrap: int) -> int:
    if wrap > 0:
        return wrap
    try:
        columns = os.get_terminal_size(out.fileno()).columns
    except (AttributeError, OSError, ValueError):
        columns = 0
    if columns > 0:
        return columns
    try:
        columns = int(os.environ.get("COLUMNS", ""))
    except ValueError:
        columns = 0
    return columns if columns > 0 else DEFAULT_WIDTH


def print_event(out: TextIO, event: Event, index: int, wrap: int, use_color: bool) -> None:
    role = (event.display_role or "event").lower()
    ts = format_rfc3339(event.timestamp)
    header_plain = f"[#{index:03d}] {role} | {ts}"

    index_text = colorize(ANSI_BOLD_WHITE, f"#{index:03d}", use_color)
    role_text = colorize(role_color(role), role, use_color)
    ts_text = colorize(ANSI_TIMESTAMP, ts, use_color)
    separator = colorize(ANSI_SEPARATOR, "|", use_color)

    out.write(f"[{index_text}] {role_text} {separator} {ts_text}\n")
    out.write("-" * len(header_plain) + "\n")

    lines = render_event_lines(event, wrap)
    if not lines:
        out.write(f"{separator} (no content)\n")
        return
    for line in lines:
        if line:
            out.write(f"{separator} {line}\n")
        else:
            out.write(f"{separator}\n")


def write_lines(out: TextIO, lines: Iterable[str]) -> None:
    for line in lines:
        out.write(line + "\n")


def pager_command(pager: str, color_enabled: bool) -> list[str]:
    env_pager = os.environ.get("PAGER", "")
    if env_pager:
        return ["sh", "-c", env_pager]
    if pager:
        return ["sh", "-c", pager]
    cmd = ["less"]
    if color_enabled:
        cmd.append("-R")
    return cmd


def pipe_through_pager(lines: list[str], color_enabled: bool, pager: str = "") -> None:
    text = "\n".join(lines)
    if not text.endswith("\n"):
        text += "\n"

    cmd = pager_command(pager, color_enabled)
    try:
        proc = subprocess.Popen(cmd, stdin=subprocess.PIPE)
    except OSError as exc:
        raise ViewError(f"run pager: {exc}") from exc

    def feed() -> None:
        assert proc.stdin is not None
        try:
            proc.stdin.write(text.encode("utf-8"))
        except BrokenPipeError:
            # Pager quit before reading everything.
            pass
        finally:
            try:
                proc.stdin.close()
            except BrokenPipeError:
                pass

    writer = threading.Thread(target=feed, daemon=True)
    writer.start()
    code = proc.wait()
    writer.join()
    if code != 0:
        raise ViewError(f"run pager: {' '.join(cmd)} exited with status {code}")


def copy_file(out: TextIO, path: str) -> None:
    try:
        handle = open(path, "rb")
    except OSError as exc:
        raise ViewError(f"open session file: {exc}") from exc

    with handle:
        target = getattr(out, "buffer", None)
        if target is not None:
            out.flush()
            shutil.copyfileobj(handle, target)
            target.flush()
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        for chunk in iter(lambda: handle.read(64 * 1024), b""):
            out.write(decoder.decode(chunk))
        out.write(decoder.decode(b"", final=True))


def _collect(events: Iterator[Event], max_events: int) -> list[Event]:
    if max_events > 0:
        ring: EventRing[Event] = EventRing(max_events)
        ring.extend(events)
        return ring.items()
    return list(events)


def check_view_options(parser: SessionParser, opts: ViewOptions) -> tuple[str, bool, ViewFilters]:
    """Validate format, color and filter flags without touching the session file."""
    out = opts.out if opts.out is not None else sys.stdout

    mode = (opts.format or FORMAT_TEXT).lower()
    if mode not in VIEW_FORMATS:
        raise ViewError(f"unsupported format: {opts.format}")
    use_color = resolve_color_choice(opts.force_color, opts.force_no_color, out)
    filters = build_view_filters(
        parser.agent,
        opts.all_filter,
        opts.entry_arg,
        opts.payload_type_arg,
        opts.event_msg_type_arg,
        opts.role_arg,
    )
    return mode, use_color, filters


def run_view(parser: SessionParser, opts: ViewOptions) -> None:
    """Render the session at ``opts.path`` in text, raw or chat form."""
    out = opts.out if opts.out is not None else sys.stdout
    mode, use_color, filters = check_view_options(parser, opts)

    if opts.raw_file:
        copy_file(out, opts.path)
        return

    parser.read_session_meta(opts.path)
    events = _filtered(parser, opts.path, filters)

    if mode == FORMAT_RAW:
        source: Iterable[Event] = _collect(events, opts.max_events) if opts.max_events > 0 else events
        for event in source:
            out.write(event.raw + "\n")
        return

    if mode == FORMAT_TEXT:
        source = _collect(events, opts.max_events) if opts.max_events > 0 else events
        for idx, event in enumerate(source):
            if idx > 0:
                out.write("\n")
            print_event(out, event, idx + 1, opts.wrap, use_color)
        return

    collected = _collect(events, opts.max_events)
    if not collected:
        return
    lines = render_chat_transcript(collected, determine_width(out, opts.wrap), use_color)
    if _is_tty(out):
        pipe_through_pager(lines, use_color, opts.pager)
        return
    write_lines(out, lines)


def _filtered(parser: SessionParser, path: str, filters: ViewFilters) -> Iterator[Event]:
    for event in parser.iterate_events(path):
        if event_matches(event, filters, parser.agent):
            yield event
