from __future__ import annotations

import re

from rich.cells import cell_len


ANSI_ESCAPE_RE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")

ANSI_RESET = "\x1b[0m"
ANSI_BOLD_WHITE = "\x1b[1;97m"
ANSI_TIMESTAMP = "\x1b[38;5;245m"
ANSI_SEPARATOR = "\x1b[38;5;240m"
ANSI_ASSISTANT = "\x1b[38;5;44m"
ANSI_USER = "\x1b[38;5;220m"
ANSI_TOOL = "\x1b[38;5;207m"


def strip_ansi(text: str) -> str:
    return ANSI_ESCAPE_RE.sub("", text.replace("\r", ""))


def visible_width(text: str) -> int:
    return cell_len(ANSI_ESCAPE_RE.sub("", text))


def colorize(code: str, text: str, enabled: bool = True) -> str:
    if not enabled:
        return text
    return f"{code}{text}{ANSI_RESET}"


def role_color(role: str) -> str:
    role = role.lower()
    if role == "assistant":
        return ANSI_ASSISTANT
    if role == "user":
        return ANSI_USER
    if role in {"tool", "system"}:
        return ANSI_TOOL
    return ANSI_SEPARATOR


def title_case(text: str) -> str:
    if not text:
        return ""
    return text[0].upper() + text[1:].lower()


def _split_by_width(word: str, first_room: int, width: int) -> list[str]:
    pieces: list[str] = []
    chunk = ""
    chunk_width = 0
    limit = first_room
    for ch in word:
        ch_width = cell_len(ch)
        if chunk_width + ch_width > limit:
            if chunk or limit < width:
                pieces.append(chunk)
                chunk, chunk_width = "", 0
            limit = width
        chunk += ch
        chunk_width += ch_width
    pieces.append(chunk)
    return pieces


def wrap_text(text: str, width: int) -> list[str]:
    """Word-wrap one line so that no piece is wider than ``width`` cells.

    Words keep their order; a word wider than the line is broken by
    characters. Leading indentation is kept on the first piece.
    """
    if width <= 0:
        return [text]
    text = text.rstrip()
    if not text:
        return [""]
    if visible_width(text) <= width:
        return [text]

    body = text.lstrip()
    indent = text[: len(text) - len(body)]
    if visible_width(indent) >= width:
        indent = ""

    lines: list[str] = []
    current = indent
    current_width = visible_width(indent)
    has_words = False

    for word in body.split():
        word_width = visible_width(word)
        if has_words and current_width + 1 + word_width <= width:
            current += " " + word
            current_width += 1 + word_width
            continue
        if has_words:
            lines.append(current)
            current, current_width = "", 0
        has_words = True
        if current_width + word_width <= width:
            current += word
            current_width += word_width
            continue
        pieces = _split_by_width(word, width - current_width, width)
        for piece in pieces[:-1]:
            lines.append(current + piece)
            current, current_width = "", 0
        current = pieces[-1]
        current_width = visible_width(current)

    lines.append(current)
    return lines


def wrap_lines(lines: list[str], width: int) -> list[str]:
    out: list[str] = []
    for line in lines:
        out.extend(wrap_text(line, width))
    return out


def truncate_to_width(text: str, width: int) -> str:
    """Cut ``text`` to ``width`` visible cells, keeping every escape sequence."""
    if visible_width(text) <= width:
        return text

    out: list[str] = []
    used = 0
    full = False
    pos = 0
    while pos < len(text):
        match = ANSI_ESCAPE_RE.match(text, pos)
        if match:
            out.append(match.group(0))
            pos = match.end()
            continue
        ch = text[pos]
        pos += 1
        if full:
            continue
        ch_width = cell_len(ch)
        if used + ch_width > width:
            full = True
            continue
        out.append(ch)
        used += ch_width
    return "".join(out)
