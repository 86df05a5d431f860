"""
Readers for the XDG key-file style text databases.

desktop entries, mimeapps.list and mimeinfo.cache share one grammar:
`#` comments, `[Section]` headers and `key=value` lines. The MIME
database's aliases and subclasses files are plain two-column tables.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import structlog

log = structlog.get_logger()


def read_lines(path: str | Path) -> list[str] | None:
    """Read a text file as lines. Returns None if it can't be read."""
    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            return f.read().splitlines()
    except OSError as e:
        log.debug("file_unreadable", path=str(path), error=str(e))
        return None


def iter_entries(lines: list[str]) -> Iterator[tuple[str, str, str]]:
    """Yield (section, key, value) for every key=value line.

    Keys and values are trimmed. Lines before the first header report
    section "". Malformed lines are skipped.
    """
    section = ""
    for raw_line in lines:
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("["):
            section = line[1:-1] if line.endswith("]") else ""
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        yield section, key.strip(), value.strip()


def read_section(path: str | Path, section: str) -> dict[str, str] | None:
    """Read one section of a key file into a dict. Later keys win."""
    lines = read_lines(path)
    if lines is None:
        return None
    return {k: v for s, k, v in iter_entries(lines) if s == section}


def split_list(value: str, delimiter: str = ";") -> list[str]:
    """Split a list value, dropping empty items."""
    if not value:
        return []
    return [item.strip() for item in value.split(delimiter) if item.strip()]


def iter_columns(path: str | Path) -> Iterator[tuple[str, str]]:
    """Yield the first two whitespace-separated columns of a table file."""
    lines = read_lines(path)
    if lines is None:
        return
    for raw_line in lines:
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        parts = line.split()
        if len(parts) >= 2:
            yield parts[0], parts[1]


def unescape_string(s: str) -> str:
    """Resolve key-file string escapes (\\s \\n \\t \\r \\\\).

    Unknown escapes drop the backslash and keep the character. A trailing
    backslash is kept as a literal.
    """
    result = []
    i = 0
    n = len(s)
    while i < n:
        c = s[i]
        if c == "\\":
            if i + 1 < n:
                i += 1
                result.append(_ESCAPES.get(s[i], s[i]))
            else:
                result.append("\\")
        else:
            result.append(c)
        i += 1
    return "".join(result)


_ESCAPES = {"s": " ", "n": "\n", "t": "\t", "r": "\r", "\\": "\\"}
