"""XDG base directory lookups and executable discovery."""

from __future__ import annotations

import os
import stat

DEFAULT_DATA_DIRS = "/usr/local/share:/usr/share"
DEFAULT_CONFIG_DIRS = "/etc/xdg"

# Application export directories outside the XDG data dirs
FLATPAK_USER_APPS = ".local/share/flatpak/exports/share/applications"
FLATPAK_SYSTEM_APPS = "/var/lib/flatpak/exports/share/applications"
SNAP_APPS = "/var/lib/snapd/desktop/applications"


def get_env(name: str, default: str = "") -> str:
    return os.environ.get(name, default)


def is_traversable_dir(path: str) -> bool:
    """Check that path is a directory we can enter (follows symlinks)."""
    try:
        st = os.stat(path)
    except OSError:
        return False
    return stat.S_ISDIR(st.st_mode) and os.access(path, os.X_OK)


def is_readable_file(path: str) -> bool:
    """Check that path is a regular file we can read (follows symlinks)."""
    try:
        st = os.stat(path)
    except OSError:
        return False
    return stat.S_ISREG(st.st_mode) and os.access(path, os.R_OK)


def is_executable_available(command: str) -> bool:
    """Check if command is a runnable executable.

    Names containing a slash are checked directly; bare names are searched
    in $PATH.
    """
    if not command:
        return False
    if "/" in command:
        return _is_executable_file(command)
    for directory in get_env("PATH").split(":"):
        if directory and _is_executable_file(os.path.join(directory, command)):
            return True
    return False


def _is_executable_file(path: str) -> bool:
    try:
        st = os.stat(path)
    except OSError:
        return False
    return stat.S_ISREG(st.st_mode) and os.access(path, os.X_OK)


def _data_home() -> str:
    xdg_data_home = get_env("XDG_DATA_HOME")
    if xdg_data_home:
        return xdg_data_home
    return os.path.join(get_env("HOME"), ".local/share")


def _absolute_dirs(value: str) -> list[str]:
    return [d for d in value.split(":") if d.startswith("/")]


class _OrderedPaths:
    """Accumulates unique paths that pass a filter, in insertion order."""

    def __init__(self, accept):
        self._accept = accept
        self._seen: set[str] = set()
        self.paths: list[str] = []

    def add(self, path: str) -> None:
        if not path or path in self._seen:
            return
        self._seen.add(path)
        if self._accept(path):
            self.paths.append(path)


def desktop_file_dirs() -> list[str]:
    """Return .desktop search directories, highest priority first."""
    result = _OrderedPaths(is_traversable_dir)
    result.add(os.path.join(_data_home(), "applications"))
    for directory in _absolute_dirs(get_env("XDG_DATA_DIRS", DEFAULT_DATA_DIRS)):
        result.add(os.path.join(directory, "applications"))
    result.add(os.path.join(get_env("HOME"), FLATPAK_USER_APPS))
    result.add(FLATPAK_SYSTEM_APPS)
    result.add(SNAP_APPS)
    return result.paths


def mimeapps_list_files() -> list[str]:
    """Return existing mimeapps.list files, highest priority first."""
    result = _OrderedPaths(is_readable_file)
    home = get_env("HOME")

    xdg_config_home = get_env("XDG_CONFIG_HOME")
    if xdg_config_home.startswith("/"):
        result.add(os.path.join(xdg_config_home, "mimeapps.list"))
    elif home:
        result.add(os.path.join(home, ".config", "mimeapps.list"))

    for directory in _absolute_dirs(get_env("XDG_CONFIG_DIRS", DEFAULT_CONFIG_DIRS)):
        result.add(os.path.join(directory, "mimeapps.list"))

    # Legacy locations under the data dirs
    xdg_data_home = get_env("XDG_DATA_HOME")
    if xdg_data_home.startswith("/"):
        result.add(os.path.join(xdg_data_home, "applications", "mimeapps.list"))
    elif home:
        result.add(os.path.join(home, ".local/share/applications", "mimeapps.list"))

    for directory in _absolute_dirs(get_env("XDG_DATA_DIRS", DEFAULT_DATA_DIRS)):
        result.add(os.path.join(directory, "applications", "mimeapps.list"))
    return result.paths


def mime_database_dirs() -> list[str]:
    """Return shared-mime-info directories, highest priority first."""
    result = _OrderedPaths(is_traversable_dir)
    result.add(os.path.join(_data_home(), "mime"))
    for directory in get_env("XDG_DATA_DIRS", DEFAULT_DATA_DIRS).split(":"):
        if directory:
            result.add(os.path.join(directory, "mime"))
    return result.paths
