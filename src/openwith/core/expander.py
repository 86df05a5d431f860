"""
Expansion of raw MIME signals into a prioritized candidate list.

Order matters: earlier types are more specific and rank higher in the
resolver. application/octet-stream is held back and only ever appended
last.
"""

from __future__ import annotations

from openwith.core.config import Settings
from openwith.core.detector import RawMimeProfile
from openwith.core.mimetable import OCTET_STREAM, SUFFIX_BASE_MIME


class _MimeList:
    """Ordered, de-duplicated list that defers octet-stream."""

    def __init__(self):
        self.items: list[str] = []
        self._seen: set[str] = set()
        self.octet_stream_detected = False

    def add(self, mime: str) -> None:
        mime = mime.strip()
        if not mime:
            return
        if mime == OCTET_STREAM:
            self.octet_stream_detected = True
            return
        if "/" in mime and mime not in self._seen:
            self._seen.add(mime)
            self.items.append(mime)


def expand_mime_types(
    profile: RawMimeProfile,
    settings: Settings,
    aliases: dict[str, str] | None = None,
    canonical_to_aliases: dict[str, list[str]] | None = None,
    subclasses: dict[str, str] | None = None,
) -> list[str]:
    """Expand a raw profile into MIME types, most specific first."""
    mimes = _MimeList()

    # 1. Raw signals in detector priority order
    for signal in (
        profile.xdg_mime,
        profile.file_mime,
        profile.magika_mime,
        profile.stat_mime,
        profile.ext_mime,
    ):
        mimes.add(signal)

    # 2. Aliases and parents; new entries are expanded in turn
    if aliases is not None or subclasses is not None:
        i = 0
        while i < len(mimes.items):
            current = mimes.items[i]
            if aliases is not None:
                canonical = aliases.get(current)
                if canonical:
                    mimes.add(canonical)
                for alias in (canonical_to_aliases or {}).get(current, ()):
                    mimes.add(alias)
            if subclasses is not None:
                parent = subclasses.get(current)
                if parent:
                    mimes.add(parent)
            i += 1

    # 3. Structured syntax suffixes (+xml, +zip, ...)
    if settings.resolve_structured_suffixes:
        for mime in list(mimes.items):
            _, plus, suffix = mime.rpartition("+")
            if plus and suffix in SUFFIX_BASE_MIME:
                mimes.add(SUFFIX_BASE_MIME[suffix])

    # 4. Generic fallbacks
    if settings.use_generic_mime_fallbacks:
        for mime in list(mimes.items):
            if mime.startswith("text/"):
                mimes.add("text/plain")
            major, sep, _ = mime.partition("/")
            if sep:
                mimes.add(f"{major}/*")

    # 5. Universal binary fallback
    result = mimes.items
    if profile.is_regular_file and (
        settings.show_universal_handlers or mimes.octet_stream_detected
    ):
        result.append(OCTET_STREAM)
    return result
