"""Bash quoting utilities for launch command assembly."""

from __future__ import annotations

import bashlex

# Bytes that never need quoting in a POSIX shell word
_SAFE_CHARS = frozenset(
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789._/-"
)


def bash_quote(s: str) -> str:
    """Quote a string for safe use in bash.

    Uses single quotes, with embedded single quotes written as '\\''.
    Returns '' for empty strings. Returns unquoted if no special chars.
    """
    if not s:
        return "''"
    if all(c in _SAFE_CHARS for c in s):
        return s
    return "'" + s.replace("'", "'\\''") + "'"


def split_command(command: str) -> list[str]:
    """Split a generated command line back into argv words.

    Returns [] if the command can't be parsed or isn't a single simple command.
    """
    if not command or not command.strip():
        return []
    try:
        nodes = bashlex.parse(command)
    except Exception:
        # bashlex raises assorted errors on input it does not support
        return []
    if len(nodes) != 1 or nodes[0].kind != "command":
        return []
    return [p.word for p in nodes[0].parts if p.kind == "word"]
