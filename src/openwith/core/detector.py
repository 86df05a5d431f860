"""
Raw MIME signal gathering for a single path.

Each detector contributes at most one MIME string. Nothing here raises:
a missing file, an unreadable file or a failing tool just leaves the
corresponding signal empty.
"""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass

from openwith.core import tools
from openwith.core.config import DEFAULT_TOOL_TIMEOUT
from openwith.core.mimetable import (
    EXTENSION_MIME,
    INODE_BLOCKDEVICE,
    INODE_CHARDEVICE,
    INODE_DIRECTORY,
    INODE_FIFO,
    INODE_SOCKET,
)


@dataclass(frozen=True)
class RawMimeProfile:
    """Raw signals for one file, before any expansion.

    Hashable, so files with identical profiles can share one resolution.
    """

    xdg_mime: str = ""  # xdg-mime query filetype
    file_mime: str = ""  # file --mime-type
    magika_mime: str = ""  # magika classifier
    stat_mime: str = ""  # inode/* pseudo-type for non-regular files
    ext_mime: str = ""  # extension table
    is_regular_file: bool = False

    def signals(self) -> list[str]:
        """Non-empty raw signals in detector priority order."""
        values = [self.xdg_mime, self.file_mime, self.magika_mime, self.stat_mime, self.ext_mime]
        return [v for v in values if v]


@dataclass(frozen=True)
class Detectors:
    """Which detectors may run. Tool flags already account for availability."""

    xdg_mime: bool = False
    file: bool = False
    magika: bool = False
    extension: bool = False
    timeout: float = DEFAULT_TOOL_TIMEOUT

    @property
    def any_tool(self) -> bool:
        return self.xdg_mime or self.file or self.magika


_STAT_MIME = (
    (stat.S_ISDIR, INODE_DIRECTORY),
    (stat.S_ISFIFO, INODE_FIFO),
    (stat.S_ISSOCK, INODE_SOCKET),
    (stat.S_ISCHR, INODE_CHARDEVICE),
    (stat.S_ISBLK, INODE_BLOCKDEVICE),
)


def get_raw_mime_profile(path: str, detectors: Detectors) -> RawMimeProfile:
    """Collect raw MIME signals for path using the enabled detectors."""
    try:
        st = os.stat(path)
    except (OSError, ValueError):
        return RawMimeProfile()

    if not stat.S_ISREG(st.st_mode):
        for predicate, mime in _STAT_MIME:
            if predicate(st.st_mode):
                return RawMimeProfile(stat_mime=mime)
        return RawMimeProfile()

    ext_mime = guess_mime_by_extension(path) if detectors.extension else ""
    xdg_mime = file_mime = magika_mime = ""

    # External tools only for files we can actually read
    if detectors.any_tool and os.access(path, os.R_OK):
        if detectors.xdg_mime:
            xdg_mime = tools.query_filetype(path, detectors.timeout)
        if detectors.file:
            file_mime = tools.query_file_tool(path, detectors.timeout)
        if detectors.magika:
            magika_mime = tools.query_magika(path, detectors.timeout)

    return RawMimeProfile(
        xdg_mime=xdg_mime,
        file_mime=file_mime,
        magika_mime=magika_mime,
        ext_mime=ext_mime,
        is_regular_file=True,
    )


def guess_mime_by_extension(path: str) -> str:
    """Look up the lowercase last suffix of path's basename."""
    name = os.path.basename(path)
    dot = name.rfind(".")
    if dot < 0:
        return ""
    return EXTENSION_MIME.get(name[dot:].lower(), "")
