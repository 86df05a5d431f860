"""
Desktop entry parsing and the per-call entry store.

Only the [Desktop Entry] group is read. Entries that are hidden, aren't
applications, or lack Exec or Name are treated as absent.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

import structlog

from openwith.core.execline import ExecAnalysis, analyze_exec_line
from openwith.core.keyfile import read_section

log = structlog.get_logger()

DESKTOP_SECTION = "Desktop Entry"
DESKTOP_SUFFIX = ".desktop"

# Checked in order; the first usable value decides the locale
LOCALE_ENV_VARS = ("LC_ALL", "LC_MESSAGES", "LANG")


@dataclass(frozen=True)
class DesktopEntry:
    """A validated application entry. String values are kept raw."""

    id: str  # desktop file id, e.g. "org.gnome.eog.desktop"
    filepath: str
    name: str
    exec: str
    generic_name: str = ""
    comment: str = ""
    categories: str = ""
    try_exec: str = ""
    terminal: str = ""
    mimetype: str = ""
    only_show_in: str = ""
    not_show_in: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.terminal == "true"


def parse_desktop_file(filepath: str, desktop_id: str | None = None) -> DesktopEntry | None:
    """Parse a .desktop file. Returns None if unreadable or not a usable app."""
    values = read_section(filepath, DESKTOP_SECTION)
    if values is None:
        return None

    if values.get("Type") != "Application" or values.get("Hidden") == "true":
        log.debug("desktop_entry_rejected", path=filepath, reason="hidden_or_not_application")
        return None

    exec_value = values.get("Exec", "")
    if not exec_value:
        log.debug("desktop_entry_rejected", path=filepath, reason="no_exec")
        return None

    name = get_localized_value(values, "Name")
    if not name:
        log.debug("desktop_entry_rejected", path=filepath, reason="no_name")
        return None

    return DesktopEntry(
        id=desktop_id or os.path.basename(filepath),
        filepath=filepath,
        name=name,
        exec=exec_value,
        generic_name=get_localized_value(values, "GenericName"),
        comment=get_localized_value(values, "Comment"),
        categories=values.get("Categories", ""),
        try_exec=values.get("TryExec", ""),
        terminal=values.get("Terminal", ""),
        mimetype=values.get("MimeType", ""),
        only_show_in=values.get("OnlyShowIn", ""),
        not_show_in=values.get("NotShowIn", ""),
    )


def _locale_candidates() -> list[str]:
    """Locale suffixes to try, most specific first."""
    result = []
    for var in LOCALE_ENV_VARS:
        value = os.environ.get(var, "")
        if len(value) < 2:
            continue
        # en_US.UTF-8@euro -> en_US
        locale = value.split(".", 1)[0].split("@", 1)[0]
        if not locale:
            continue
        result.append(locale)
        if "_" in locale:
            result.append(locale.split("_", 1)[0])
    return result


def get_localized_value(values: dict[str, str], key: str) -> str:
    """Look up key[locale], then key[lang], then the bare key."""
    for locale in _locale_candidates():
        localized = values.get(f"{key}[{locale}]")
        if localized is not None:
            return localized
    return values.get(key, "")


class DesktopEntryStore:
    """Call-scoped arena of parsed desktop entries, addressed by id.

    Lookups search the desktop directories in priority order. Misses are
    remembered so a missing id costs one filesystem walk per call.
    """

    def __init__(self, search_dirs: list[str] | None = None):
        self.search_dirs: list[str] = list(search_dirs or [])
        self._entries: dict[str, DesktopEntry | None] = {}
        self._analyses: dict[str, ExecAnalysis] = {}

    def get(self, desktop_id: str) -> DesktopEntry | None:
        """Return a cached entry without touching the filesystem."""
        return self._entries.get(desktop_id)

    def get_or_load(self, desktop_id: str) -> DesktopEntry | None:
        if not desktop_id:
            return None
        if desktop_id in self._entries:
            return self._entries[desktop_id]

        entry = None
        for directory in self.search_dirs:
            entry = parse_desktop_file(os.path.join(directory, desktop_id), desktop_id)
            if entry is not None:
                break
        self._entries[desktop_id] = entry
        return entry

    def analysis(self, desktop_id: str) -> ExecAnalysis | None:
        """Exec analysis for a loaded entry, computed once per call."""
        if desktop_id in self._analyses:
            return self._analyses[desktop_id]
        entry = self.get(desktop_id)
        if entry is None:
            return None
        result = analyze_exec_line(entry.exec)
        self._analyses[desktop_id] = result
        return result

    def clear(self) -> None:
        self._entries.clear()
        self._analyses.clear()

    def __len__(self) -> int:
        return len(self._entries)
