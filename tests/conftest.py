"""
Shared test fixtures for openwith tests.
"""

from __future__ import annotations

from pathlib import Path

import pytest
import structlog

from openwith.core import paths
from openwith.core.config import Settings


class XdgTree:
    """A throwaway XDG layout: one user and one system data/config dir."""

    def __init__(self, root: Path):
        self.root = root
        self.home = root / "home"
        self.data_home = self.home / ".local" / "share"
        self.config_home = self.home / ".config"
        self.data_dir = root / "usr" / "share"
        self.config_dir = root / "etc" / "xdg"
        self.bin = root / "bin"
        self.files = root / "files"
        for d in (
            self.data_home / "applications",
            self.config_home,
            self.data_dir / "applications",
            self.config_dir,
            self.bin,
            self.files,
        ):
            d.mkdir(parents=True, exist_ok=True)

    @property
    def user_apps(self) -> Path:
        return self.data_home / "applications"

    @property
    def system_apps(self) -> Path:
        return self.data_dir / "applications"

    def add_app(self, filename: str, system: bool = False, **keys: str) -> Path:
        """Write a .desktop file. Type=Application is implied."""
        values = {"Type": "Application"}
        values.update(keys)
        lines = ["[Desktop Entry]"] + [f"{k}={v}" for k, v in values.items()]
        path = (self.system_apps if system else self.user_apps) / filename
        path.write_text("\n".join(lines) + "\n")
        return path

    def write_mimeapps(self, text: str, system: bool = False) -> Path:
        path = (self.config_dir if system else self.config_home) / "mimeapps.list"
        path.write_text(text)
        return path

    def write_mimeinfo_cache(self, text: str, system: bool = False) -> Path:
        path = (self.system_apps if system else self.user_apps) / "mimeinfo.cache"
        path.write_text(text)
        return path

    def write_mime_table(self, name: str, text: str, system: bool = True) -> Path:
        """Write the MIME database 'aliases' or 'subclasses' file."""
        mime_dir = (self.data_dir if system else self.data_home) / "mime"
        mime_dir.mkdir(parents=True, exist_ok=True)
        path = mime_dir / name
        path.write_text(text)
        return path

    def add_tool(self, name: str, script: str) -> Path:
        """Install a fake executable on PATH."""
        path = self.bin / name
        path.write_text("#!/bin/sh\n" + script + "\n")
        path.chmod(0o755)
        return path

    def make_file(self, name: str, content: str = "x") -> str:
        path = self.files / name
        path.write_text(content)
        return str(path)


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo configure_logging() so captured streams don't leak between tests."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def xdg(tmp_path, monkeypatch):
    """Point every XDG variable, PATH and the locale at an empty fake tree."""
    tree = XdgTree(tmp_path)
    monkeypatch.setenv("HOME", str(tree.home))
    monkeypatch.setenv("XDG_DATA_HOME", str(tree.data_home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tree.config_home))
    monkeypatch.setenv("XDG_DATA_DIRS", str(tree.data_dir))
    monkeypatch.setenv("XDG_CONFIG_DIRS", str(tree.config_dir))
    monkeypatch.setenv("PATH", str(tree.bin))
    monkeypatch.setenv("LANG", "C")
    monkeypatch.setenv("OPENWITH_CONFIG", str(tmp_path / "openwith.conf"))
    for var in ("LC_ALL", "LC_MESSAGES", "XDG_CURRENT_DESKTOP"):
        monkeypatch.delenv(var, raising=False)
    # Keep the host's flatpak and snap exports out of the search path
    monkeypatch.setattr(paths, "FLATPAK_SYSTEM_APPS", str(tmp_path / "flatpak"))
    monkeypatch.setattr(paths, "SNAP_APPS", str(tmp_path / "snap"))
    return tree


@pytest.fixture
def settings():
    """Settings that detect by extension only, so no external tool is needed."""
    return Settings(
        use_xdg_mime_tool=False,
        use_file_tool=False,
        use_extension_based_fallback=True,
    )

