"""
Operation-scoped loading of the XDG association databases.

`open_context()` builds a ResolutionContext once per resolution call:
search paths, the merged mimeapps.list chain, MIME aliases and
subclasses, tool availability, and exactly one handler index (from
mimeinfo.cache, or a full .desktop scan when the cache is off or empty).
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

import structlog

from openwith.core import paths, tools
from openwith.core.config import Settings
from openwith.core.desktop import DESKTOP_SUFFIX, DesktopEntryStore
from openwith.core.detector import Detectors
from openwith.core.keyfile import iter_columns, iter_entries, read_lines, split_list

log = structlog.get_logger()

DEFAULT_APPLICATIONS = "Default Applications"
ADDED_ASSOCIATIONS = "Added Associations"
REMOVED_ASSOCIATIONS = "Removed Associations"
MIME_CACHE = "MIME Cache"
MIMEINFO_CACHE_FILE = "mimeinfo.cache"


@dataclass(frozen=True)
class AssociationSource:
    """A desktop id and the file that associated it."""

    desktop_id: str
    source_path: str


@dataclass
class MimeappsConfig:
    """Merged view of every mimeapps.list, highest priority parsed first."""

    defaults: dict[str, AssociationSource] = field(default_factory=dict)
    """MIME type -> default application; first (highest priority) wins."""

    added: dict[str, list[AssociationSource]] = field(default_factory=dict)
    """MIME type -> added applications, in priority then file order."""

    removed: dict[str, set[str]] = field(default_factory=dict)
    """MIME type -> desktop ids whose association is removed."""

    def is_removed(self, mime: str, desktop_id: str) -> bool:
        """Check the exact type and its major/* wildcard."""
        if desktop_id in self.removed.get(mime, ()):
            return True
        major, sep, _ = mime.partition("/")
        if sep and desktop_id in self.removed.get(f"{major}/*", ()):
            return True
        return False


def parse_mimeapps_list(path: str, config: MimeappsConfig) -> None:
    """Merge one mimeapps.list into config. Unreadable files are skipped."""
    lines = read_lines(path)
    if lines is None:
        return
    for section, mime, value in iter_entries(lines):
        desktop_ids = split_list(value)
        if not desktop_ids:
            continue
        if section == DEFAULT_APPLICATIONS:
            config.defaults.setdefault(mime, AssociationSource(desktop_ids[0], path))
        elif section == ADDED_ASSOCIATIONS:
            config.added.setdefault(mime, []).extend(
                AssociationSource(d, path) for d in desktop_ids
            )
        elif section == REMOVED_ASSOCIATIONS:
            config.removed.setdefault(mime, set()).update(desktop_ids)


def parse_mimeapps_lists(filepaths: list[str]) -> MimeappsConfig:
    config = MimeappsConfig()
    for path in filepaths:
        parse_mimeapps_list(path, config)
    return config


# MIME type -> handlers listed for it, across every mimeinfo.cache found
MimeinfoCache = dict[str, list[AssociationSource]]


def parse_mimeinfo_cache(path: str, cache: MimeinfoCache) -> None:
    """Merge one mimeinfo.cache file into cache."""
    lines = read_lines(path)
    if lines is None:
        return
    for section, mime, value in iter_entries(lines):
        if section != MIME_CACHE or not mime:
            continue
        desktop_ids = split_list(value)
        if desktop_ids:
            cache.setdefault(mime, []).extend(AssociationSource(d, path) for d in desktop_ids)


def parse_all_mimeinfo_caches(search_dirs: list[str]) -> MimeinfoCache:
    cache: MimeinfoCache = {}
    for directory in search_dirs:
        path = os.path.join(directory, MIMEINFO_CACHE_FILE)
        if paths.is_readable_file(path):
            parse_mimeinfo_cache(path, cache)
    return cache


# MIME type -> desktop ids declaring it in MimeType=
ScanIndex = dict[str, list[str]]


def full_scan_desktop_files(search_dirs: list[str], store: DesktopEntryStore) -> ScanIndex:
    """Index every .desktop file by its MimeType= values.

    Entries are loaded through the store, so later lookups are cache hits.
    """
    index: ScanIndex = {}
    for directory in search_dirs:
        try:
            filenames = sorted(os.listdir(directory))
        except OSError:
            continue
        for filename in filenames:
            if len(filename) <= len(DESKTOP_SUFFIX) or not filename.endswith(DESKTOP_SUFFIX):
                continue
            entry = store.get_or_load(filename)
            if entry is None:
                continue
            for mime in split_list(entry.mimetype):
                ids = index.setdefault(mime, [])
                if filename not in ids:
                    ids.append(filename)
    return index


def load_mime_aliases(mime_dirs: list[str]) -> dict[str, str]:
    """Load alias -> canonical. The highest-priority file wins."""
    aliases: dict[str, str] = {}
    for directory in mime_dirs:
        for alias, canonical in iter_columns(os.path.join(directory, "aliases")):
            aliases.setdefault(alias, canonical)
    return aliases


def load_mime_subclasses(mime_dirs: list[str]) -> dict[str, str]:
    """Load child -> parent. Read low to high priority so user rules win."""
    subclasses: dict[str, str] = {}
    for directory in reversed(mime_dirs):
        for child, parent in iter_columns(os.path.join(directory, "subclasses")):
            subclasses[child] = parent
    return subclasses


def major_type(mime: str) -> str:
    """Return "image" for "image/png", or "" if malformed."""
    major, sep, _ = mime.partition("/")
    return major if sep else ""


def reverse_aliases(aliases: dict[str, str]) -> dict[str, list[str]]:
    """Build canonical -> aliases, keeping only aliases of the same major type.

    This keeps e.g. image/x-icon for image/vnd.microsoft.icon but not
    text/ico.
    """
    reverse: dict[str, list[str]] = {}
    for alias, canonical in sorted(aliases.items()):
        alias_major = major_type(alias)
        if alias_major and alias_major == major_type(canonical):
            reverse.setdefault(canonical, []).append(alias)
    return reverse


@dataclass
class ResolutionContext:
    """Everything one resolution call needs, loaded once and then discarded."""

    settings: Settings
    store: DesktopEntryStore
    desktop_dirs: list[str] = field(default_factory=list)
    mimeapps: MimeappsConfig = field(default_factory=MimeappsConfig)
    aliases: dict[str, str] | None = None
    canonical_to_aliases: dict[str, list[str]] | None = None
    subclasses: dict[str, str] | None = None
    current_desktops: list[str] = field(default_factory=list)
    xdg_mime_available: bool = False
    detectors: Detectors = field(default_factory=Detectors)
    mimeinfo_cache: MimeinfoCache | None = None
    scan_index: ScanIndex | None = None
    default_app_memo: dict[str, str] = field(default_factory=dict)

    def default_app(self, mime: str) -> str:
        """System default handler for mime, queried at most once per call."""
        if not mime or not self.xdg_mime_available:
            return ""
        if mime not in self.default_app_memo:
            self.default_app_memo[mime] = tools.query_default_app(
                mime, self.settings.tool_timeout
            )
        return self.default_app_memo[mime]


def build_context(settings: Settings, store: DesktopEntryStore) -> ResolutionContext:
    """Load all operation-scoped state for one resolution call."""
    desktop_dirs = paths.desktop_file_dirs()
    store.search_dirs = desktop_dirs
    ctx = ResolutionContext(settings=settings, store=store, desktop_dirs=desktop_dirs)

    # 1. MIME database
    mime_dirs = paths.mime_database_dirs()
    if settings.load_mimetype_aliases:
        ctx.aliases = load_mime_aliases(mime_dirs)
        ctx.canonical_to_aliases = reverse_aliases(ctx.aliases)
    if settings.load_mimetype_subclasses:
        ctx.subclasses = load_mime_subclasses(mime_dirs)

    # 2. Associations and environment
    ctx.mimeapps = parse_mimeapps_lists(paths.mimeapps_list_files())
    if settings.filter_by_show_in:
        ctx.current_desktops = split_list(paths.get_env("XDG_CURRENT_DESKTOP"), ":")

    # 3. Tools, checked once
    ctx.xdg_mime_available = paths.is_executable_available(tools.XDG_MIME)
    ctx.detectors = Detectors(
        xdg_mime=settings.use_xdg_mime_tool and ctx.xdg_mime_available,
        file=settings.use_file_tool and paths.is_executable_available(tools.FILE),
        magika=settings.use_magika_tool and paths.is_executable_available(tools.MAGIKA),
        extension=settings.use_extension_based_fallback,
        timeout=settings.tool_timeout,
    )

    # 4. Exactly one handler index
    if settings.use_mimeinfo_cache:
        cache = parse_all_mimeinfo_caches(desktop_dirs)
        if cache:
            ctx.mimeinfo_cache = cache
    if ctx.mimeinfo_cache is None:
        ctx.scan_index = full_scan_desktop_files(desktop_dirs, store)

    log.debug(
        "context_loaded",
        desktop_dirs=desktop_dirs,
        mimeapps_defaults=len(ctx.mimeapps.defaults),
        index="mimeinfo.cache" if ctx.mimeinfo_cache is not None else "full_scan",
        detectors=[
            name
            for name, enabled in (
                ("xdg-mime", ctx.detectors.xdg_mime),
                ("file", ctx.detectors.file),
                ("magika", ctx.detectors.magika),
                ("extension", ctx.detectors.extension),
            )
            if enabled
        ],
    )
    return ctx


@contextmanager
def open_context(settings: Settings, store: DesktopEntryStore) -> Iterator[ResolutionContext]:
    """Build a ResolutionContext and tear it down on every exit path."""
    ctx = build_context(settings, store)
    try:
        yield ctx
    finally:
        ctx.mimeapps = MimeappsConfig()
        ctx.aliases = ctx.canonical_to_aliases = ctx.subclasses = None
        ctx.mimeinfo_cache = ctx.scan_index = None
        ctx.default_app_memo.clear()
        ctx.xdg_mime_available = False
        ctx.detectors = Detectors()
