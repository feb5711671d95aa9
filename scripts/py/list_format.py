from __future__ import annotations

import json
from typing import TextIO

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from event_model import SessionSummary, format_duration, format_rfc3339


LIST_FORMATS = ("table", "plain", "json", "jsonl")
PLAIN_HEADER = "timestamp\tsession_id\tcwd\tduration\tmessage_count\tsummary"
SUMMARY_COLUMN_MAX = 80


class ListFormatError(RuntimeError):
    pass


def escape_newlines(text: str) -> str:
    return text.replace("\n", "\\n")


def _row(item: SessionSummary) -> list[str]:
    return [
        format_rfc3339(item.started_at),
        item.id,
        item.cwd,
        format_duration(item.duration_seconds),
        str(item.message_count),
        escape_newlines(item.summary),
    ]


def write_plain(out: TextIO, items: list[SessionSummary], include_header: bool = True) -> None:
    if include_header:
        out.write(PLAIN_HEADER + "\n")
    for item in items:
        out.write("\t".join(_row(item)) + "\n")


def write_json(out: TextIO, items: list[SessionSummary]) -> None:
    out.write(json.dumps([item.to_dict() for item in items], ensure_ascii=False, indent=2) + "\n")


def write_jsonl(out: TextIO, items: list[SessionSummary]) -> None:
    for item in items:
        out.write(json.dumps(item.to_dict(), ensure_ascii=False) + "\n")


def build_table(items: list[SessionSummary], include_header: bool = True) -> Table:
    table = Table(box=box.ROUNDED, show_header=include_header, show_lines=True)
    table.add_column("Timestamp", justify="left", header_style="bold", no_wrap=True)
    table.add_column("Session ID", justify="left", header_style="bold")
    table.add_column("CWD", justify="left", header_style="bold")
    table.add_column("Duration", justify="center", header_style="bold", no_wrap=True)
    table.add_column("Messages", justify="right", header_style="bold", no_wrap=True)
    table.add_column("Summary", justify="left", header_style="bold", max_width=SUMMARY_COLUMN_MAX, overflow="fold")

    for item in items:
        table.add_row(*(Text(cell) for cell in _row(item)))
    if not items:
        table.add_row("-", "(no sessions)", "-", "00:00:00", "0", "-")
    return table


def write_table(
    out: TextIO,
    items: list[SessionSummary],
    include_header: bool = True,
    width: int | None = None,
) -> None:
    console = Console(file=out, width=width, color_system=None, highlight=False, emoji=False)
    console.print(build_table(items, include_header))


def write_summaries(
    out: TextIO,
    items: list[SessionSummary],
    include_header: bool = True,
    fmt: str = "table",
    width: int | None = None,
) -> None:
    mode = (fmt or "table").lower()
    if mode == "table":
        write_table(out, items, include_header, width)
    elif mode == "plain":
        write_plain(out, items, include_header)
    elif mode == "json":
        write_json(out, items)
    elif mode == "jsonl":
        write_jsonl(out, items)
    else:
        raise ListFormatError(f"unsupported format: {fmt}")
