"""
Exec line compiler for desktop entries.

An Exec value goes through two unescaping layers: key-file string escapes
first (\\s, \\n, ...), then the Exec quoting rules (double quotes, with
backslash escaping only ` " $ \\ inside them). The resulting argument
templates are expanded against concrete files and re-quoted for the shell.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

from openwith.core.bash import bash_quote
from openwith.core.keyfile import unescape_string

# How files are handed to the program:
#   file-list: %F/%U, all files in one invocation
#   per-file: %f/%u, one invocation per file
#   legacy-implicit: no file field codes, paths appended after the arguments
ExecutionModel = Literal["file-list", "per-file", "legacy-implicit"]

LIST_CODES = frozenset({"%F", "%U"})
SINGLE_CODES = frozenset({"f", "u"})
DEPRECATED_CODES = frozenset("dDnNvm")

# Escapable characters inside a double-quoted Exec argument
_QUOTED_ESCAPES = frozenset('`"$\\')

# Unreserved URI characters (RFC 3986) plus the path separator
_URI_SAFE = frozenset(
    b"abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789-_.~/"
)


@dataclass(frozen=True)
class ArgTemplate:
    """One Exec argument before field code expansion."""

    value: str
    is_quoted_literal: bool = False
    """True if any part of the argument was double-quoted."""


@dataclass(frozen=True)
class ExecAnalysis:
    """Execution model and argument templates derived from an Exec value."""

    model: ExecutionModel
    templates: tuple[ArgTemplate, ...] = ()

    @property
    def launchable(self) -> bool:
        """True if expansion can produce at least one argument."""
        return any(_can_produce_argument(t) for t in self.templates)


def tokenize_exec(exec_value: str) -> list[ArgTemplate]:
    """Split an (already key-file-unescaped) Exec value into arguments.

    Returns [] if a double quote is left open.
    """
    tokens: list[ArgTemplate] = []
    buffer: list[str] = []
    escape_pending = False
    in_quotes = False
    # Distinguishes an explicit "" argument from a run of spaces
    has_quoted_part = False

    def flush() -> None:
        nonlocal has_quoted_part
        if buffer or has_quoted_part:
            tokens.append(ArgTemplate("".join(buffer), has_quoted_part))
            buffer.clear()
            has_quoted_part = False

    for c in exec_value:
        if escape_pending:
            if in_quotes and c not in _QUOTED_ESCAPES:
                buffer.append("\\")
            buffer.append(c)
            escape_pending = False
        elif c == "\\":
            escape_pending = True
        elif in_quotes:
            if c == '"':
                in_quotes = False
            else:
                buffer.append(c)
        elif c == '"':
            in_quotes = True
            has_quoted_part = True
        elif c == " ":
            flush()
        else:
            buffer.append(c)

    if in_quotes:
        return []
    if escape_pending:
        buffer.append("\\")
    flush()
    return tokens


def analyze_exec_line(exec_value: str) -> ExecAnalysis:
    """Tokenize an Exec value and determine its execution model.

    Field codes inside quoted arguments are illegal and ignored.
    """
    templates = tuple(tokenize_exec(unescape_string(exec_value)))
    unquoted = [t for t in templates if not t.is_quoted_literal]

    if any(t.value in LIST_CODES for t in unquoted):
        return ExecAnalysis("file-list", templates)
    for t in unquoted:
        if any(code in SINGLE_CODES for _, code in _scan(t.value)):
            return ExecAnalysis("per-file", templates)
    return ExecAnalysis("legacy-implicit", templates)


def _scan(value: str) -> list[tuple[str, str]]:
    """Split a template into (literal, code) pairs.

    code is the character after a '%', or "" for trailing literal text.
    A lone '%' at the very end counts as literal.
    """
    pairs = []
    literal: list[str] = []
    i = 0
    n = len(value)
    while i < n:
        c = value[i]
        if c == "%" and i + 1 < n:
            pairs.append(("".join(literal), value[i + 1]))
            literal = []
            i += 2
            continue
        literal.append(c)
        i += 1
    if literal:
        pairs.append(("".join(literal), ""))
    return pairs


def _can_produce_argument(template: ArgTemplate) -> bool:
    if template.is_quoted_literal or "%" not in template.value:
        return True
    if template.value in LIST_CODES:
        return True
    produces = False
    for literal, code in _scan(template.value):
        if code == "i":
            return False
        if literal or (code and code not in DEPRECATED_CODES):
            produces = True
    return produces


def path_to_uri(path: str) -> str:
    """Convert an absolute path to a file:// URI. Relative paths yield ""."""
    if not path.startswith("/"):
        return ""
    encoded = []
    for byte in os.fsencode(path):
        if byte in _URI_SAFE:
            encoded.append(chr(byte))
        else:
            encoded.append(f"%{byte:02X}")
    return "file://" + "".join(encoded)


@dataclass(frozen=True)
class LaunchTarget:
    """What field codes other than file codes expand to."""

    name: str  # raw Name value, %c
    filepath: str  # .desktop location, %k
    treat_urls_as_paths: bool = False


def expand_arg_template(
    template: ArgTemplate, filepaths: list[str], target: LaunchTarget
) -> list[str]:
    """Expand one argument template into zero or more shell-quoted arguments."""
    if template.is_quoted_literal or "%" not in template.value:
        return [bash_quote(template.value)]

    value = template.value
    if value in LIST_CODES:
        to_uri = value == "%U" and not target.treat_urls_as_paths
        return [bash_quote(path_to_uri(p) if to_uri else p) for p in filepaths]

    # Everything else expands into one argument using the first file
    filepath = filepaths[0] if filepaths else ""
    expanded = []
    for literal, code in _scan(value):
        expanded.append(literal)
        if not code:
            continue
        if code == "%":
            expanded.append("%")
        elif code == "f":
            expanded.append(filepath)
        elif code == "u":
            expanded.append(filepath if target.treat_urls_as_paths else path_to_uri(filepath))
        elif code == "c":
            expanded.append(unescape_string(target.name))
        elif code == "k":
            expanded.append(target.filepath)
        elif code == "i":
            # Would expand to --icon <Icon>; icons aren't supported
            return []
        elif code in DEPRECATED_CODES:
            pass
        else:
            # Unknown codes are kept rather than rejecting the whole line
            expanded.append("%" + code)

    result = "".join(expanded)
    if not result:
        return []
    return [bash_quote(result)]


def assemble_launch_command(
    analysis: ExecAnalysis, filepaths: list[str], target: LaunchTarget
) -> str:
    """Build one shell-safe command line for a batch of files."""
    args: list[str] = []
    for template in analysis.templates:
        args.extend(expand_arg_template(template, filepaths, target))
    if analysis.model == "legacy-implicit":
        args.extend(bash_quote(p) for p in filepaths)
    return " ".join(args)


def generate_launch_commands(
    analysis: ExecAnalysis, filepaths: list[str], target: LaunchTarget
) -> list[str]:
    """Build the command lines needed to open all files.

    per-file entries get one command per file; the other models get a
    single command for the whole batch.
    """
    if not filepaths or not analysis.launchable:
        return []
    if analysis.model == "per-file":
        batches = [[p] for p in filepaths]
    else:
        batches = [list(filepaths)]
    commands = []
    for batch in batches:
        command = assemble_launch_command(analysis, batch, target)
        if command:
            commands.append(command)
    return commands
