"""ANSI-aware text measurement and line shaping utilities.

Splits printer output into display lines without breaking escape sequences,
exposes the plain-text channel used for pattern matching, and clips styled
lines to a column budget while keeping their styling intact.
"""

from __future__ import annotations

import re
import unicodedata

ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;?:<=>]*[ -/]*[@-~]")
OSC_ESCAPE_RE = re.compile(r"\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)?")
_ANY_ESCAPE_RE = re.compile(rf"{ANSI_ESCAPE_RE.pattern}|{OSC_ESCAPE_RE.pattern}|\x1b[@-Z\\-_]?")
TAB_STOP = 8


def char_display_width(ch: str, col: int) -> int:
    """Return terminal column width for one character at visual column ``col``.

    Tabs expand to the next 8-column stop, combining marks consume no columns,
    and East Asian wide/fullwidth characters consume two.
    """
    if ch == "\t":
        return TAB_STOP - (col % TAB_STOP)
    if unicodedata.combining(ch):
        return 0
    if unicodedata.east_asian_width(ch) in {"W", "F"}:
        return 2
    return 1


def _match_escape(text: str, index: int) -> re.Match[str] | None:
    """Match any escape sequence starting at ``text[index]``."""
    return _ANY_ESCAPE_RE.match(text, index)


def split_styled_lines(text: str) -> list[str]:
    """Split styled text into lines, keeping every escape sequence intact.

    Newlines inside an escape sequence (possible in unterminated OSC payloads)
    never start a new line. Line terminators are dropped, including a trailing
    ``\\r`` from CRLF output. Empty input yields no lines.
    """
    if not text:
        return []

    lines: list[str] = []
    current: list[str] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "\x1b":
            match = _match_escape(text, i)
            if match and match.end() > i:
                current.append(match.group(0))
                i = match.end()
                continue
        if ch == "\n":
            line = "".join(current)
            if line.endswith("\r"):
                line = line[:-1]
            lines.append(line)
            current = []
            i += 1
            continue
        current.append(ch)
        i += 1

    if current:
        line = "".join(current)
        if line.endswith("\r"):
            line = line[:-1]
        lines.append(line)
    return lines


def plain_text(line: str) -> str:
    """Return the semantic text of ``line`` with escape sequences skipped."""
    if "\x1b" not in line:
        return line
    return _ANY_ESCAPE_RE.sub("", line)


def display_width(text: str) -> int:
    """Return visible column width of a possibly styled string."""
    col = 0
    for ch in plain_text(text):
        col += char_display_width(ch, col)
    return col


def clip_ansi_line(text: str, max_cols: int) -> str:
    """Trim a styled line to at most ``max_cols`` display columns.

    ANSI escape sequences are preserved verbatim and do not count toward width.
    Tabs are expanded into spaces so clipping aligns with rendered terminal cells.
    """
    if max_cols <= 0 or not text:
        return ""

    out: list[str] = []
    col = 0
    i = 0
    n = len(text)
    while i < n and col < max_cols:
        if text[i] == "\x1b":
            match = _match_escape(text, i)
            if match and match.end() > i:
                out.append(match.group(0))
                i = match.end()
                continue
        ch = text[i]
        w = char_display_width(ch, col)
        if ch == "\t":
            if col + w > max_cols:
                break
            out.append(" " * w)
            col += w
            i += 1
            continue
        if col + w > max_cols:
            break
        out.append(ch)
        col += w
        i += 1

    # Keep trailing style resets that sit right after the last visible cell.
    while i < n and text[i] == "\x1b":
        match = ANSI_ESCAPE_RE.match(text, i)
        if not match:
            break
        out.append(match.group(0))
        i = match.end()

    return "".join(out)


def sanitize_printer_output(text: str) -> str:
    """Drop terminal side-effect sequences from printer output.

    OSC sequences (titles, hyperlinks) and device-attribute queries are removed,
    as are stray backspaces and a leading ``^D`` left by pseudo-terminal
    wrappers. SGR styling and every other CSI sequence pass through untouched.
    """
    while text.startswith("^D") or text.startswith("\x08"):
        text = text[2:] if text.startswith("^D") else text[1:]

    out: list[str] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "\x1b" and i + 1 < n:
            nxt = text[i + 1]
            if nxt == "]":
                match = OSC_ESCAPE_RE.match(text, i)
                i = match.end() if match else n
                continue
            if nxt == "[":
                match = ANSI_ESCAPE_RE.match(text, i)
                if match:
                    seq = match.group(0)
                    i = match.end()
                    # Device attribute queries (ESC [ ... c) would make the terminal answer back.
                    if not seq.endswith("c"):
                        out.append(seq)
                    continue
        if ch == "\x08":
            i += 1
            continue
        out.append(ch)
        i += 1
    return "".join(out)
