"""openwith settings: feature flags, settings file and logging."""

import logging
import os
import sys
from dataclasses import dataclass, replace
from pathlib import Path

import structlog

USER_CONFIG = Path.home() / ".config" / "openwith" / "config"
ENV_CONFIG = "OPENWITH_CONFIG"

DEFAULT_TOOL_TIMEOUT = 3.0


@dataclass
class Settings:
    """Resolved feature flags and ambient options."""

    use_xdg_mime_tool: bool = True
    use_file_tool: bool = True
    use_magika_tool: bool = False
    use_extension_based_fallback: bool = False
    load_mimetype_aliases: bool = True
    load_mimetype_subclasses: bool = True
    resolve_structured_suffixes: bool = True
    use_generic_mime_fallbacks: bool = True
    show_universal_handlers: bool = True
    use_mimeinfo_cache: bool = True
    filter_by_show_in: bool = False
    validate_try_exec: bool = False
    sort_alphabetically: bool = False
    treat_urls_as_paths: bool = False

    tool_timeout: float = DEFAULT_TOOL_TIMEOUT
    """Seconds to wait for an external detector before giving up."""

    log: Path | None = None  # None = warnings to stderr only
    verbose: bool = False


@dataclass(frozen=True)
class SettingDefinition:
    """A user-toggleable flag: settings-file key, UI label and backing field."""

    key: str
    display_name: str
    attr: str
    tool: str | None = None  # setting is disabled in UI if tool is missing

    @property
    def default(self) -> bool:
        return getattr(Settings(), self.attr)


@dataclass(frozen=True)
class PlatformSetting:
    """A setting as exposed to the host: key, label, value, availability."""

    key: str
    display_name: str
    value: bool
    disabled: bool = False


SETTING_DEFINITIONS = (
    SettingDefinition("use-xdg-mime-tool", "Use xdg-mime tool", "use_xdg_mime_tool", "xdg-mime"),
    SettingDefinition("use-file-tool", "Use file tool", "use_file_tool", "file"),
    SettingDefinition("use-magika-tool", "Use magika tool", "use_magika_tool", "magika"),
    SettingDefinition(
        "use-extension-based-fallback",
        "Use extension-based fallback",
        "use_extension_based_fallback",
    ),
    SettingDefinition("load-mimetype-aliases", "Load MIME type aliases", "load_mimetype_aliases"),
    SettingDefinition(
        "load-mimetype-subclasses", "Load MIME type subclasses", "load_mimetype_subclasses"
    ),
    SettingDefinition(
        "resolve-structured-suffixes",
        "Resolve structured syntax suffixes",
        "resolve_structured_suffixes",
    ),
    SettingDefinition(
        "use-generic-mime-fallbacks", "Use generic MIME fallbacks", "use_generic_mime_fallbacks"
    ),
    SettingDefinition(
        "show-universal-handlers", "Show universal handlers", "show_universal_handlers"
    ),
    SettingDefinition("use-mimeinfo-cache", "Use mimeinfo.cache", "use_mimeinfo_cache"),
    SettingDefinition(
        "filter-by-show-in", "Filter by OnlyShowIn/NotShowIn", "filter_by_show_in"
    ),
    SettingDefinition("validate-try-exec", "Validate TryExec", "validate_try_exec"),
    SettingDefinition("sort-alphabetically", "Sort alphabetically", "sort_alphabetically"),
    SettingDefinition("treat-urls-as-paths", "Treat URLs as paths", "treat_urls_as_paths"),
)

_DEFINITIONS_BY_KEY = {d.key: d for d in SETTING_DEFINITIONS}


# === Config Loading ===


def config_path() -> Path:
    """Return the settings file location ($OPENWITH_CONFIG overrides)."""
    env_path = os.environ.get(ENV_CONFIG)
    if env_path:
        return Path(env_path).expanduser()
    return USER_CONFIG


def load_config(path: Path | None = None) -> Settings:
    """Load settings from file. Missing or malformed files yield defaults."""
    path = path or config_path()
    if not path.is_file():
        return Settings()
    try:
        return parse_config(path.read_text())
    except (OSError, UnicodeDecodeError) as e:
        structlog.get_logger().warning("config_unreadable", path=str(path), error=str(e))
    except ValueError as e:
        structlog.get_logger().warning("config_invalid", path=str(path), error=str(e))
    return Settings()


def parse_config(text: str) -> Settings:
    """Parse settings text into Settings. Raises ValueError on syntax errors."""
    settings = Settings()

    for lineno, raw_line in enumerate(text.splitlines(), 1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        parts = line.split(None, 1)
        directive = parts[0].lower()
        rest = parts[1].strip() if len(parts) > 1 else ""

        try:
            if directive == "set":
                settings = _apply_setting(settings, rest)
            elif directive == "unset":
                settings = _apply_unset(settings, rest)
            else:
                raise ValueError(f"unknown directive '{directive}'")
        except ValueError as e:
            raise ValueError(f"line {lineno}: {e}") from None

    return settings


def _parse_bool(key: str, value: str | None) -> bool:
    if value is None:
        return True
    lowered = value.lower()
    if lowered in ("true", "yes", "on", "1"):
        return True
    if lowered in ("false", "no", "off", "0"):
        return False
    raise ValueError(f"'{key}' expects true or false, got '{value}'")


def _apply_setting(settings: Settings, rest: str) -> Settings:
    """Apply a 'set' directive. Raises ValueError on invalid setting."""
    if not rest:
        raise ValueError("'set' requires a setting name")

    parts = rest.split(None, 1)
    key = parts[0].lower()
    value = parts[1].strip() if len(parts) > 1 else None

    # Boolean feature flags
    if key in _DEFINITIONS_BY_KEY:
        return replace(settings, **{_DEFINITIONS_BY_KEY[key].attr: _parse_bool(key, value)})

    if key == "verbose":
        return replace(settings, verbose=_parse_bool(key, value))

    if key == "tool-timeout":
        if value is None:
            raise ValueError("'tool-timeout' requires a number of seconds")
        try:
            timeout = float(value)
        except ValueError:
            raise ValueError(f"'tool-timeout' requires a number, got '{value}'") from None
        if timeout <= 0:
            raise ValueError("'tool-timeout' must be positive")
        return replace(settings, tool_timeout=timeout)

    if key == "log":
        if value is None:
            raise ValueError("'log' requires a path")
        return replace(settings, log=Path(value).expanduser())

    raise ValueError(f"unknown setting '{key}'")


def _apply_unset(settings: Settings, rest: str) -> Settings:
    """Apply an 'unset' directive, turning a flag off or clearing the log path."""
    key = rest.lower()
    if key in _DEFINITIONS_BY_KEY:
        return replace(settings, **{_DEFINITIONS_BY_KEY[key].attr: False})
    if key == "verbose":
        return replace(settings, verbose=False)
    if key == "log":
        return replace(settings, log=None)
    raise ValueError(f"cannot unset '{rest}'")


def format_config(settings: Settings) -> str:
    """Render settings in the file format parse_config reads."""
    lines = ["# openwith settings"]
    for definition in SETTING_DEFINITIONS:
        value = "true" if getattr(settings, definition.attr) else "false"
        lines.append(f"set {definition.key} {value}")
    if settings.tool_timeout != DEFAULT_TOOL_TIMEOUT:
        lines.append(f"set tool-timeout {settings.tool_timeout:g}")
    if settings.log is not None:
        lines.append(f"set log {settings.log}")
    if settings.verbose:
        lines.append("set verbose")
    return "\n".join(lines) + "\n"


def save_config(settings: Settings, path: Path | None = None) -> bool:
    """Write settings to file. Returns False if the file can't be written."""
    path = path or config_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(format_config(settings))
    except OSError as e:
        structlog.get_logger().warning("config_save_failed", path=str(path), error=str(e))
        return False
    return True


# === Logging ===


def configure_logging(settings: Settings) -> None:
    """Configure structlog from settings. Call once at startup.

    With a log path: JSON lines to that file. Without: warnings to stderr.
    """
    processors = [
        structlog.processors.TimeStamper(fmt="iso", key="ts"),
        structlog.processors.add_log_level,
        structlog.processors.JSONRenderer(),
    ]

    if settings.log is None:
        structlog.configure(
            processors=processors,
            wrapper_class=structlog.make_filtering_bound_logger(logging.WARNING),
            logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
            cache_logger_on_first_use=False,
        )
        return

    level = logging.DEBUG if settings.verbose else logging.INFO
    try:
        settings.log.parent.mkdir(parents=True, exist_ok=True)
        stream = open(settings.log, "a")
    except OSError:
        stream = sys.stderr
        level = logging.WARNING

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=False,
    )
