"""
openwith - "Open With" resolution for XDG desktops.

Finds the applications able to open a set of files and builds the shell
commands that launch them.
"""

from __future__ import annotations

__version__ = "0.1.0"

from openwith.core.provider import CandidateInfo, Field, XDGAppProvider

__all__ = ["CandidateInfo", "Field", "XDGAppProvider", "__version__"]
