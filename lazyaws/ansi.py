"""ANSI-aware width measurement and clipping for painted rows.

Escape sequences never count toward width; wide characters count twice.
"""

from __future__ import annotations

import re
import unicodedata

ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]")
TAB_STOP = 8


def char_display_width(ch: str, col: int) -> int:
    """Terminal columns taken by ``ch`` when drawn at column ``col``."""
    if ch == "\t":
        return TAB_STOP - (col % TAB_STOP)
    if unicodedata.combining(ch):
        return 0
    if unicodedata.east_asian_width(ch) in {"W", "F"}:
        return 2
    return 1


def strip_ansi(text: str) -> str:
    return ANSI_ESCAPE_RE.sub("", text)


def display_width(text: str) -> int:
    col = 0
    for ch in strip_ansi(text):
        col += char_display_width(ch, col)
    return col


def clip_ansi_line(text: str, max_cols: int) -> str:
    """Cut ``text`` to ``max_cols`` columns, keeping escapes and expanding tabs."""
    if max_cols <= 0 or not text:
        return ""
    out: list[str] = []
    col = 0
    i = 0
    while i < len(text) and col < max_cols:
        if text[i] == "\x1b":
            match = ANSI_ESCAPE_RE.match(text, i)
            if match:
                out.append(match.group(0))
                i = match.end()
                continue
        ch = text[i]
        width = char_display_width(ch, col)
        if col + width > max_cols:
            break
        out.append(" " * width if ch == "\t" else ch)
        col += width
        i += 1
    return "".join(out)


def fit_ansi_line(text: str, cols: int) -> str:
    """Clip or pad ``text`` to exactly ``cols`` columns."""
    clipped = clip_ansi_line(text, cols)
    return clipped + " " * max(0, cols - display_width(clipped))
