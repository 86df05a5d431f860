"""
Public provider API: resolve candidates for files, build launch commands,
and expose settings to the host.

The desktop entry store and the provenance of the last single-file call
outlive a resolution so the host can ask for details or commands for a
candidate it was just shown. Everything else is scoped to one call.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from openwith.core import paths
from openwith.core.config import (
    SETTING_DEFINITIONS,
    PlatformSetting,
    Settings,
    load_config,
    save_config,
)
from openwith.core.database import ResolutionContext, open_context
from openwith.core.desktop import DesktopEntryStore
from openwith.core.detector import RawMimeProfile, get_raw_mime_profile
from openwith.core.execline import LaunchTarget
from openwith.core.execline import generate_launch_commands as build_commands
from openwith.core.expander import expand_mime_types
from openwith.core.keyfile import unescape_string
from openwith.core.resolver import (
    CandidateMap,
    discover_candidates,
    intersect_candidates,
    sort_candidates,
)

log = structlog.get_logger()


@dataclass(frozen=True)
class CandidateInfo:
    """An application offered to the host."""

    name: str
    id: str  # desktop file id
    terminal: bool
    multi_file_aware: bool  # False for %f/%u entries, launched once per file


@dataclass(frozen=True)
class Field:
    label: str
    value: str


# Desktop entry keys shown in candidate details, in display order
DETAIL_KEYS = (
    ("Name", "name"),
    ("GenericName", "generic_name"),
    ("Comment", "comment"),
    ("Categories", "categories"),
    ("Exec", "exec"),
    ("TryExec", "try_exec"),
    ("Terminal", "terminal"),
    ("MimeType", "mimetype"),
    ("NotShowIn", "not_show_in"),
    ("OnlyShowIn", "only_show_in"),
)


class XDGAppProvider:
    """Finds applications for files using the XDG desktop databases."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or Settings()
        self._store = DesktopEntryStore()
        self._last_source_info: dict[str, str] = {}
        self._last_profiles: list[RawMimeProfile] = []

    # === Resolution ===

    def get_app_candidates(self, filepaths: list[str]) -> list[CandidateInfo]:
        """Return applications able to open every file, best first."""
        if not filepaths:
            return []

        self._store.clear()
        self._last_source_info.clear()
        self._last_profiles = []

        with open_context(self.settings, self._store) as ctx:
            if len(filepaths) == 1:
                profile = get_raw_mime_profile(filepaths[0], ctx.detectors)
                self._last_profiles.append(profile)
                candidates = discover_candidates(self._expand(profile, ctx), ctx)
            else:
                candidates = self._resolve_many(filepaths, ctx)

        ranked = sort_candidates(candidates, self._store, self.settings.sort_alphabetically)
        result = []
        for candidate in ranked:
            info = self._to_candidate_info(candidate.desktop_id)
            if info is None:
                continue
            # Provenance varies per file, so it's only kept for single files
            if len(filepaths) == 1:
                self._last_source_info.setdefault(info.id, candidate.source_info)
            result.append(info)

        log.info(
            "candidates_resolved",
            files=len(filepaths),
            profiles=len(self._last_profiles),
            candidates=[c.id for c in result],
        )
        return result

    def _expand(self, profile: RawMimeProfile, ctx: ResolutionContext) -> list[str]:
        expanded = expand_mime_types(
            profile,
            self.settings,
            aliases=ctx.aliases,
            canonical_to_aliases=ctx.canonical_to_aliases,
            subclasses=ctx.subclasses,
        )
        log.debug("mime_expanded", signals=profile.signals(), expanded=expanded)
        return expanded

    def _resolve_many(self, filepaths: list[str], ctx: ResolutionContext) -> CandidateMap:
        # Files sharing a profile share one resolution
        for filepath in filepaths:
            profile = get_raw_mime_profile(filepath, ctx.detectors)
            if profile not in self._last_profiles:
                self._last_profiles.append(profile)

        candidate_maps = []
        for profile in self._last_profiles:
            candidates = discover_candidates(self._expand(profile, ctx), ctx)
            if not candidates:
                return {}
            candidate_maps.append(candidates)
        return intersect_candidates(candidate_maps)

    def _to_candidate_info(self, desktop_id: str) -> CandidateInfo | None:
        entry = self._store.get(desktop_id)
        analysis = self._store.analysis(desktop_id)
        if entry is None or analysis is None:
            return None
        return CandidateInfo(
            name=unescape_string(entry.name),
            id=entry.id,
            terminal=entry.is_terminal,
            multi_file_aware=analysis.model != "per-file",
        )

    # === Launching and inspection ===

    def generate_launch_commands(self, candidate: CandidateInfo, filepaths: list[str]) -> list[str]:
        """Build shell command lines opening filepaths with candidate.

        The candidate must come from the last get_app_candidates() call.
        """
        if not filepaths:
            return []
        entry = self._store.get(candidate.id)
        analysis = self._store.analysis(candidate.id)
        if entry is None or analysis is None:
            log.warning("unknown_candidate", id=candidate.id)
            return []
        target = LaunchTarget(
            name=entry.name,
            filepath=entry.filepath,
            treat_urls_as_paths=self.settings.treat_urls_as_paths,
        )
        return build_commands(analysis, list(filepaths), target)

    def get_candidate_details(self, candidate: CandidateInfo) -> list[Field]:
        """Describe a candidate: its file, provenance and raw entry values."""
        entry = self._store.get(candidate.id)
        if entry is None:
            return []

        details = [Field("Desktop file", entry.filepath)]
        source_info = self._last_source_info.get(candidate.id)
        if source_info:
            details.append(Field("Source", source_info))
        for label, attr in DETAIL_KEYS:
            value = getattr(entry, attr)
            if value:
                details.append(Field(f"{label} =", value))
        return details

    def get_mime_types(self) -> list[str]:
        """Render the raw MIME profiles of the last call, e.g. "(image/png;text/plain)"."""
        rendered = set()
        has_none = False
        for profile in self._last_profiles:
            signals = sorted(set(profile.signals()))
            if signals:
                rendered.add("(" + ";".join(signals) + ")")
            else:
                has_none = True
        result = ["(none)"] if has_none else []
        result.extend(sorted(rendered))
        return result

    # === Settings ===

    def get_platform_settings(self) -> list[PlatformSetting]:
        """Boolean settings for the host UI, disabled where a tool is missing."""
        result = []
        for definition in SETTING_DEFINITIONS:
            disabled = definition.tool is not None and not paths.is_executable_available(
                definition.tool
            )
            result.append(
                PlatformSetting(
                    key=definition.key,
                    display_name=definition.display_name,
                    value=getattr(self.settings, definition.attr),
                    disabled=disabled,
                )
            )
        return result

    def set_platform_settings(self, settings: list[PlatformSetting]) -> None:
        """Apply values by key. Unknown keys are ignored."""
        attrs = {d.key: d.attr for d in SETTING_DEFINITIONS}
        for setting in settings:
            attr = attrs.get(setting.key)
            if attr is None:
                log.debug("unknown_setting", key=setting.key)
                continue
            setattr(self.settings, attr, bool(setting.value))

    def load_platform_settings(self) -> None:
        self.settings = load_config()

    def save_platform_settings(self) -> bool:
        return save_config(self.settings)
